"""Developer CLI.

Checks database connectivity and prints the column mapping of bound
schemers.
"""

import asyncio
import importlib
import sys
from typing import Optional

import structlog
import typer

from schemable.config import get_settings
from schemable.errors import DriverIOError
from schemable.services.factory import create_db_client_from_settings
from schemable.services.schemer import Schemer

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="schemable",
    help="""Inspect record bindings and database connectivity.

Examples:

  # Check the database in SCHEMABLE_DATABASE_URL
  uv run schemable ping

  # Check another database
  uv run schemable ping --url sqlite+aiosqlite:///app.db

  # Show the columns bound by a schemer
  uv run schemable describe myapp.records:ComicTitles""",
    rich_markup_mode="markdown",
)


@app.command()
def ping(
    url: Optional[str] = typer.Option(
        None,
        "--url",
        "-u",
        help="Database URL (default: SCHEMABLE_DATABASE_URL)",
    ),
) -> None:
    """Open a connection and run a trivial query."""
    settings = get_settings()
    if url:
        settings = settings.model_copy(update={"database_url": url})

    async def run_ping() -> None:
        async with create_db_client_from_settings(settings, logger=logger) as client:
            await client.ping()

    try:
        asyncio.run(run_ping())
    except DriverIOError as e:
        logger.error("ping_failed", error=str(e))
        typer.echo("Could not reach the database.")
        raise typer.Exit(1)

    typer.echo("ok")


@app.command()
def describe(
    target: str = typer.Argument(
        ...,
        help="Bound schemer as module:attribute",
    ),
) -> None:
    """Print the table, columns and key flags of a bound schemer."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        logger.error("invalid_target", target=target)
        typer.echo("Expected a target of the form module:attribute")
        raise typer.Exit(1)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        logger.error("module_not_found", module=module_name, error=str(e))
        raise typer.Exit(1)

    schemer = getattr(module, attribute, None)
    if not isinstance(schemer, Schemer):
        logger.error("not_a_schemer", target=target)
        typer.echo(f"{target} is not a bound Schemer")
        raise typer.Exit(1)

    typer.echo(f"{schemer.record_type.__name__} -> {schemer.table}")
    for field in schemer.fields:
        flags = []
        if field.is_key:
            flags.append("key")
        if field.is_auto:
            flags.append("auto")
        if field.is_optional:
            flags.append("optional")
        if field.is_aggregate:
            flags.append("json")
        typer.echo(f"  {field.qualified:<32} {field.name:<24} {' '.join(flags)}".rstrip())


@app.command()
def version() -> None:
    """Show version information."""
    from schemable import __version__

    typer.echo(f"schemable {__version__}")
