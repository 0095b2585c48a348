"""Per-row record handles.

A Recorder pairs a mutable target with its Schemer and remembers the values
last read from or written to the database (the snapshot). ``update`` diffs
the target against the snapshot and writes only the changed columns.

A recorder created from user input has no snapshot, so ``update`` writes
every non-key column, zero values included. Load first when a partial update
is wanted::

    rec = ComicTitles.record(ComicTitle(id=1, id_two=1))
    await rec.load()
    rec.target.volume = 201
    await rec.update()  # UPDATE comic_titles SET volume=? WHERE ...
"""

from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog
from sqlalchemy import Row

from schemable.errors import BuilderCompositionError, ReflectionWritebackError, ScanError
from schemable.models.projection import decode_scanned, project_value
from schemable.services.builder import where_clause
from schemable.services.context import require_client

if TYPE_CHECKING:
    from schemable.services.schemer import Schemer

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class Recorder(Generic[T]):
    """Loads, inserts, updates and deletes a single row for a target.

    Not safe for concurrent use.
    """

    def __init__(self, schemer: "Schemer[T]", target: T) -> None:
        self.schemer = schemer
        self.target = target
        self._snapshot: dict[str, Any] | None = None

    def __repr__(self) -> str:
        return f"Recorder({self.schemer.table!r}, {self.target!r})"

    @property
    def snapshot(self) -> dict[str, Any] | None:
        """A copy of the last persisted values, or None before any."""
        return dict(self._snapshot) if self._snapshot is not None else None

    async def load(self) -> None:
        """Load the non-key columns of the row identified by the target's keys.

        Raises:
            NoRowsError: If no row has the target's key values.
            BuilderCompositionError: If the schemer has no keys.
        """
        client = require_client()
        query = (
            client.builder.select(*self.schemer.columns(False))
            .select_from(self.schemer.table_clause)
            .where(where_clause(self.where_ids()))
        )
        row = await client.query_row(query)
        self._scan(row, include_keys=False)

    async def load_where(self, predicate: Any, **params: Any) -> None:
        """Load every column, keys included, of the first row matching predicate."""
        client = require_client()
        query = (
            client.builder.select(*self.schemer.columns(True))
            .select_from(self.schemer.table_clause)
            .where(where_clause(predicate, **params))
        )
        row = await client.query_row(query)
        self._scan(row, include_keys=True)

    async def exists(self) -> bool:
        return await self.schemer.exists(self.where_ids())

    async def exists_where(self, predicate: Any, **params: Any) -> bool:
        return await self.schemer.exists(predicate, **params)

    async def insert(self) -> None:
        """Insert the target, then write generated ids back to auto-increment keys.

        Raises:
            DriverIOError: If the driver reports no generated id.
            ReflectionWritebackError: If a generated id cannot be assigned.
        """
        client = require_client()
        stmt = client.builder.insert(self.schemer.table_clause).values(self._insert_values())
        result = await client.execute(stmt)

        for field in self.schemer.fields:
            if not field.is_auto:
                continue
            generated = result.last_insert_id()
            try:
                setattr(self.target, field.name, generated)
            except (AttributeError, TypeError, ValueError) as e:
                raise ReflectionWritebackError(field.name, str(e)) from e

        self._set_snapshot()
        logger.debug("record_inserted", table=self.schemer.table, keys=self.where_ids())

    async def update(self) -> None:
        """Write the columns changed since the last load, insert or update.

        Does nothing, without contacting the database, when a snapshot exists
        and no column changed.

        Raises:
            BuilderCompositionError: If the record type has no non-key
                columns to set.
        """
        changes = self.updated_values()
        if not changes:
            if self._snapshot is not None:
                return
            raise BuilderCompositionError("update has no columns to set")

        client = require_client()
        stmt = (
            client.builder.update(self.schemer.table_clause)
            .values(changes)
            .where(where_clause(self.where_ids()))
        )
        await client.execute(stmt)
        self._set_snapshot()
        logger.debug(
            "record_updated",
            table=self.schemer.table,
            keys=self.where_ids(),
            columns=sorted(changes),
        )

    async def delete(self) -> None:
        """Delete the row identified by the target's keys."""
        client = require_client()
        stmt = client.builder.delete(self.schemer.table_clause).where(where_clause(self.where_ids()))
        await client.execute(stmt)
        logger.debug("record_deleted", table=self.schemer.table, keys=self.where_ids())

    def where_ids(self) -> dict[str, Any]:
        """Map each qualified key column to the target's key value."""
        return {f.qualified: getattr(self.target, f.name) for f in self.schemer.keys}

    def values(self) -> dict[str, Any]:
        """Map each unqualified non-key column to the target's projected value."""
        return {
            f.column: project_value(f, getattr(self.target, f.name))
            for f in self.schemer.fields
            if not f.is_key
        }

    def updated_values(self) -> dict[str, Any]:
        """Return ``values()`` without the columns that equal the snapshot."""
        current = self.values()
        if self._snapshot is None:
            return current
        return {
            col: val
            for col, val in current.items()
            if col not in self._snapshot or self._snapshot[col] != val
        }

    def _insert_values(self) -> dict[str, Any]:
        return {
            f.column: project_value(f, getattr(self.target, f.name))
            for f in self.schemer.fields
            if not f.is_auto
        }

    def _scan(self, row: Row[Any], include_keys: bool) -> None:
        fields = [f for f in self.schemer.fields if include_keys or not f.is_key]
        for field, raw in zip(fields, row):
            try:
                setattr(self.target, field.name, decode_scanned(field, raw))
            except (AttributeError, TypeError, ValueError) as e:
                raise ScanError(f"could not scan column {field.column} into {field.name}: {e}") from e
        self._set_snapshot()

    def _set_snapshot(self) -> None:
        self._snapshot = self.values()


__all__ = ["Recorder"]
