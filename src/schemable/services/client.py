"""Database and transaction clients.

Both clients run SQLAlchemy statements through an async connection, compile
them with a StatementBuilder bound to the engine's dialect, and report each
executed statement to a QueryLogger. DBClient checks a connection out of the
engine's pool per statement; TxnClient runs every statement on the single
connection that holds its transaction.

Driver errors are raised as DriverIOError with the SQLAlchemy error chained.
Cancellation is never wrapped.
"""

import time
from collections.abc import AsyncIterator, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy import Row, text
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction
from sqlalchemy.sql.expression import Executable

from schemable.errors import DriverIOError, NoRowsError
from schemable.services.builder import StatementBuilder
from schemable.services.context import db_duration_from, with_db_duration

Statement = Executable | str


class QueryLogger(Protocol):
    """Receives every executed statement.

    The elapsed execution time is available from ``db_duration_from()``
    while ``log_query`` runs.
    """

    def log_query(self, sql: str, params: Mapping[str, Any]) -> None: ...


class NoQueryLogger:
    """Discards queries. Installed on every client by default."""

    def log_query(self, sql: str, params: Mapping[str, Any]) -> None:
        return None


class StructlogQueryLogger:
    """Logs each query as a structlog ``sql_query`` event."""

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)

    def log_query(self, sql: str, params: Mapping[str, Any]) -> None:
        duration = db_duration_from()
        self._logger.debug(
            "sql_query",
            sql=sql,
            params=dict(params),
            duration_ms=round(duration * 1000, 3) if duration is not None else None,
        )


class TxOptions(BaseModel):
    """Options for beginning a transaction."""

    isolation_level: str | None = None

    model_config = ConfigDict(frozen=True)


class ExecResult(BaseModel):
    """Outcome of a statement that returns no rows."""

    rowcount: int = -1
    lastrowid: int | None = None

    model_config = ConfigDict(frozen=True)

    def last_insert_id(self) -> int:
        """Return the id generated by the last insert.

        Raises:
            DriverIOError: If the driver did not report one.
        """
        if self.lastrowid is None:
            raise DriverIOError("could not get last insert ID; the driver did not report one")
        return self.lastrowid


class Client(Protocol):
    """A database or transaction client."""

    @property
    def builder(self) -> StatementBuilder: ...

    async def execute(self, statement: Statement, params: Mapping[str, Any] | None = None) -> ExecResult: ...

    def query(
        self, statement: Statement, params: Mapping[str, Any] | None = None
    ) -> AbstractAsyncContextManager[Result[Any]]: ...

    async def query_row(self, statement: Statement, params: Mapping[str, Any] | None = None) -> Row[Any]: ...

    def log_query(self, sql: str, params: Mapping[str, Any]) -> None: ...


class _SQLClient:
    """Statement execution shared by DBClient and TxnClient."""

    def __init__(
        self,
        builder: StatementBuilder,
        query_logger: QueryLogger | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._builder = builder
        self._query_logger: QueryLogger = query_logger or NoQueryLogger()
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def builder(self) -> StatementBuilder:
        return self._builder

    @property
    def query_logger(self) -> QueryLogger:
        return self._query_logger

    def log_query(self, sql: str, params: Mapping[str, Any]) -> None:
        self._query_logger.log_query(sql, params)

    def _connect(self, write: bool) -> AbstractAsyncContextManager[AsyncConnection]:
        raise NotImplementedError

    async def execute(self, statement: Statement, params: Mapping[str, Any] | None = None) -> ExecResult:
        """Execute a statement that returns no rows (INSERT, UPDATE, DELETE)."""
        stmt = _executable(statement)
        sql, bound = self._builder.to_sql(stmt)
        start = time.perf_counter()
        try:
            async with self._connect(write=True) as conn:
                result = await conn.execute(stmt, params)
                lastrowid = result.lastrowid if result.context.isinsert else None
                outcome = ExecResult(rowcount=result.rowcount, lastrowid=lastrowid)
        except SQLAlchemyError as e:
            raise DriverIOError(str(e)) from e
        finally:
            self._log(sql, bound, params, start)
        return outcome

    @asynccontextmanager
    async def query(self, statement: Statement, params: Mapping[str, Any] | None = None) -> AsyncIterator[Result[Any]]:
        """Execute a statement that returns rows.

        Yields the result for iteration; it is closed when the block exits,
        including on error.
        """
        stmt = _executable(statement)
        sql, bound = self._builder.to_sql(stmt)
        start = time.perf_counter()
        try:
            async with self._connect(write=False) as conn:
                try:
                    result = await conn.execute(stmt, params)
                finally:
                    self._log(sql, bound, params, start)
                try:
                    yield result
                finally:
                    result.close()
        except SQLAlchemyError as e:
            raise DriverIOError(str(e)) from e

    async def query_row(self, statement: Statement, params: Mapping[str, Any] | None = None) -> Row[Any]:
        """Execute a statement and return its first row.

        Raises:
            NoRowsError: If the statement returned no rows.
        """
        async with self.query(statement, params) as result:
            try:
                row = result.first()
            except SQLAlchemyError as e:
                raise DriverIOError(str(e)) from e
        if row is None:
            raise NoRowsError()
        return row

    def _log(
        self,
        sql: str,
        bound: dict[str, Any],
        params: Mapping[str, Any] | None,
        start: float,
    ) -> None:
        if params:
            bound = {**bound, **params}
        with with_db_duration(start):
            self.log_query(sql, bound)


class DBClient(_SQLClient):
    """Client owning an engine and its connection pool."""

    def __init__(
        self,
        engine: AsyncEngine,
        query_logger: QueryLogger | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__(StatementBuilder(engine.dialect), query_logger, logger)
        self._engine = engine

    @property
    def db(self) -> AsyncEngine:
        return self._engine

    def set_logger(self, query_logger: QueryLogger | None) -> None:
        """Install a query logger, or restore the no-op logger with None."""
        self._query_logger = query_logger or NoQueryLogger()

    @asynccontextmanager
    async def _connect(self, write: bool) -> AsyncIterator[AsyncConnection]:
        if write:
            async with self._engine.begin() as conn:
                yield conn
        else:
            async with self._engine.connect() as conn:
                yield conn

    async def ping(self) -> None:
        """Verify a connection to the database can be made."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise DriverIOError(str(e)) from e

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self._engine.dispose()
        self._logger.debug("client_closed", url=self._engine.url.render_as_string())

    async def begin(self, options: TxOptions | None = None) -> "TxnClient":
        """Start a transaction on a dedicated connection."""
        try:
            conn = await self._engine.connect()
        except SQLAlchemyError as e:
            raise DriverIOError(str(e)) from e

        try:
            if options is not None and options.isolation_level:
                conn = await conn.execution_options(isolation_level=options.isolation_level)
            txn = await conn.begin()
        except SQLAlchemyError as e:
            await conn.close()
            raise DriverIOError(str(e)) from e

        self._logger.debug(
            "transaction_begun",
            isolation_level=options.isolation_level if options else None,
        )
        return TxnClient(
            connection=conn,
            transaction=txn,
            builder=self._builder,
            query_logger=self._query_logger,
            logger=self._logger,
        )

    async def __aenter__(self) -> "DBClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


class TxnClient(_SQLClient):
    """Client bound to one open transaction.

    Created by ``DBClient.begin``. Commit or roll back exactly once; either
    releases the connection.
    """

    def __init__(
        self,
        connection: AsyncConnection,
        transaction: AsyncTransaction,
        builder: StatementBuilder,
        query_logger: QueryLogger | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        super().__init__(builder, query_logger, logger)
        self._connection = connection
        self._transaction = transaction

    @asynccontextmanager
    async def _connect(self, write: bool) -> AsyncIterator[AsyncConnection]:
        yield self._connection

    async def commit(self) -> None:
        try:
            await self._transaction.commit()
        except SQLAlchemyError as e:
            raise DriverIOError(str(e)) from e
        finally:
            await self.close()
        self._logger.debug("transaction_committed")

    async def rollback(self) -> None:
        try:
            await self._transaction.rollback()
        except SQLAlchemyError as e:
            raise DriverIOError(str(e)) from e
        finally:
            await self.close()
        self._logger.debug("transaction_rolled_back")

    async def close(self) -> None:
        """Release the connection if it is still open."""
        if not self._connection.closed:
            await self._connection.close()


def _executable(statement: Statement) -> Executable:
    if isinstance(statement, str):
        return text(statement)
    return statement


__all__ = [
    "Client",
    "DBClient",
    "ExecResult",
    "NoQueryLogger",
    "QueryLogger",
    "Statement",
    "StructlogQueryLogger",
    "TxOptions",
    "TxnClient",
]
