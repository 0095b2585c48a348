"""Factory functions for creating database clients.

Provides a production factory that opens a client for any async SQLAlchemy
URL and a test factory backed by SQLite, in memory unless a path is given.
"""

import structlog
from sqlalchemy.ext.asyncio import create_async_engine

from schemable.config import Settings, get_settings
from schemable.services.client import DBClient, QueryLogger, StructlogQueryLogger


def create_db_client(
    url: str,
    echo: bool = False,
    logger: structlog.stdlib.BoundLogger | None = None,
    query_logger: QueryLogger | None = None,
) -> DBClient:
    """Create a DBClient for a database URL.

    The engine connects lazily, so no connection is made until the first
    statement or ``ping()``.

    Args:
        url: Async SQLAlchemy URL, e.g. ``sqlite+aiosqlite:///app.db``.
        echo: Have SQLAlchemy echo every statement.
        logger: Logger for client lifecycle events.
        query_logger: Receives every executed statement. Defaults to a no-op.

    Returns:
        DBClient owning a new engine.
    """
    logger = logger or structlog.get_logger(__name__)
    engine = create_async_engine(url, echo=echo)
    client = DBClient(engine=engine, query_logger=query_logger, logger=logger)
    logger.debug("client_opened", url=engine.url.render_as_string(), dialect=engine.dialect.name)
    return client


def create_test_db_client(
    db_path: str = ":memory:",
    logger: structlog.stdlib.BoundLogger | None = None,
    query_logger: QueryLogger | None = None,
) -> DBClient:
    """Create a DBClient backed by SQLite for testing.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.
        logger: Logger for client lifecycle events.
        query_logger: Receives every executed statement.

    Returns:
        DBClient using aiosqlite.
    """
    return create_db_client(sqlite_url(db_path), logger=logger, query_logger=query_logger)


def create_db_client_from_settings(
    settings: Settings | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> DBClient:
    """Create a DBClient configured from Settings (environment by default)."""
    settings = settings or get_settings()
    logger = logger or structlog.get_logger(__name__)
    query_logger = StructlogQueryLogger(logger) if settings.log_queries else None
    return create_db_client(
        settings.database_url,
        echo=settings.echo,
        logger=logger,
        query_logger=query_logger,
    )


def sqlite_url(db_path: str) -> str:
    """Return the aiosqlite URL for a database path or ":memory:"."""
    if db_path == ":memory:":
        # SQLAlchemy pools one shared connection for aiosqlite in-memory databases
        return "sqlite+aiosqlite:///:memory:"
    return f"sqlite+aiosqlite:///{db_path}"
