"""schemable - typed single-table record mapping over async SQLAlchemy."""

from importlib.metadata import version, PackageNotFoundError

from schemable.errors import (
    BuilderCompositionError,
    DriverIOError,
    NoClientInContextError,
    NoRowsError,
    NotDBClientError,
    ReflectionWritebackError,
    ScanError,
    SchemableError,
)
from schemable.models.field import FieldDescriptor, db
from schemable.services.client import (
    Client,
    DBClient,
    ExecResult,
    NoQueryLogger,
    QueryLogger,
    StructlogQueryLogger,
    TxnClient,
    TxOptions,
)
from schemable.services.context import (
    client_from,
    db_duration_from,
    require_client,
    with_client,
    with_db_duration,
    with_transaction,
)
from schemable.services.factory import create_db_client, create_db_client_from_settings, create_test_db_client
from schemable.services.recorder import Recorder
from schemable.services.schemer import Schemer, bind, targets

try:
    __version__ = version("schemable")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = [
    "__version__",
    "BuilderCompositionError",
    "Client",
    "DBClient",
    "DriverIOError",
    "ExecResult",
    "FieldDescriptor",
    "NoClientInContextError",
    "NoQueryLogger",
    "NoRowsError",
    "NotDBClientError",
    "QueryLogger",
    "Recorder",
    "ReflectionWritebackError",
    "ScanError",
    "Schemer",
    "SchemableError",
    "StructlogQueryLogger",
    "TxOptions",
    "TxnClient",
    "bind",
    "client_from",
    "create_db_client",
    "create_db_client_from_settings",
    "create_test_db_client",
    "db",
    "db_duration_from",
    "require_client",
    "targets",
    "with_client",
    "with_db_duration",
    "with_transaction",
]
