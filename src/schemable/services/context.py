"""Context binding for the active client and query timing.

The active client travels with the current execution context through
``contextvars``, so schemers and recorders find it without explicit
parameters. Context variables are copied into tasks at creation, so a client
bound before ``asyncio.create_task`` is visible inside the task.
"""

import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

from schemable.errors import NoClientInContextError, NotDBClientError

if TYPE_CHECKING:
    from schemable.services.client import Client, TxnClient, TxOptions

_client: ContextVar["Client | None"] = ContextVar("schemable_client", default=None)
_db_duration: ContextVar[float | None] = ContextVar("schemable_db_duration", default=None)


@contextmanager
def with_client(client: "Client") -> Iterator["Client"]:
    """Bind a client to the current context for the duration of the block."""
    token = _client.set(client)
    try:
        yield client
    finally:
        _client.reset(token)


def client_from() -> "Client | None":
    """Return the client bound to the current context, if any."""
    return _client.get()


def require_client() -> "Client":
    """Return the bound client.

    Raises:
        NoClientInContextError: If no client is bound.
    """
    client = _client.get()
    if client is None:
        raise NoClientInContextError()
    return client


@asynccontextmanager
async def with_transaction(options: "TxOptions | None" = None) -> AsyncIterator["TxnClient"]:
    """Begin a transaction on the bound DBClient and bind it for the block.

    The caller commits or rolls back. Leaving the block releases the
    connection; an unfinished transaction is discarded by the driver.

    Raises:
        NotDBClientError: If the bound client is not a DBClient.
    """
    from schemable.services.client import DBClient

    client = _client.get()
    if not isinstance(client, DBClient):
        raise NotDBClientError()

    txn = await client.begin(options)
    try:
        with with_client(txn):
            yield txn
    finally:
        await txn.close()


@contextmanager
def with_db_duration(start: float) -> Iterator[float]:
    """Bind the time elapsed since ``start`` (a ``time.perf_counter`` reading)."""
    duration = time.perf_counter() - start
    token = _db_duration.set(duration)
    try:
        yield duration
    finally:
        _db_duration.reset(token)


def db_duration_from() -> float | None:
    """Return the bound query duration in seconds, if any."""
    return _db_duration.get()


__all__ = [
    "client_from",
    "db_duration_from",
    "require_client",
    "with_client",
    "with_db_duration",
    "with_transaction",
]
