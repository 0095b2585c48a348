"""Exception hierarchy raised by schemers, recorders and clients."""

from typing import Any


class SchemableError(Exception):
    """Base class for all schemable errors."""


class NoClientInContextError(SchemableError):
    """Raised when an operation runs without a client bound to the context."""

    def __init__(self, message: str = "no client in context") -> None:
        super().__init__(message)


class NotDBClientError(SchemableError):
    """Raised when a transaction is requested without a DBClient in context."""

    def __init__(self, message: str = "no DBClient in context") -> None:
        super().__init__(message)


class BuilderCompositionError(SchemableError):
    """Raised when a statement cannot be composed or compiled to SQL."""


class ReflectionWritebackError(SchemableError):
    """Raised when a generated value cannot be written back to a target."""

    def __init__(self, field_name: str, reason: str | None = None) -> None:
        self.field_name = field_name
        message = f"could not set {field_name} to returned value"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class DriverIOError(SchemableError):
    """Raised for any error reported by the database driver."""


class NoRowsError(DriverIOError):
    """Raised when a single-row query returns no rows."""

    def __init__(self, message: str = "no rows in result set") -> None:
        super().__init__(message)


class ScanError(DriverIOError):
    """Raised when a row cannot be assigned to a target.

    Attributes:
        partial: Results scanned successfully before the failing row.
    """

    def __init__(self, message: str, partial: list[Any] | None = None) -> None:
        super().__init__(message)
        self.partial = partial if partial is not None else []


__all__ = [
    "SchemableError",
    "NoClientInContextError",
    "NotDBClientError",
    "BuilderCompositionError",
    "ReflectionWritebackError",
    "DriverIOError",
    "NoRowsError",
    "ScanError",
]
