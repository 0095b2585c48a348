"""Per-type schema binding.

A Schemer is bound once per record type, usually at module level::

    ComicTitles = bind(ComicTitle, "comic_titles")

It owns the parsed field descriptors, creates recorders, and runs the
queries that span more than one row. Every query finds its client with
``require_client()``; see ``schemable.services.context``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any, Generic, TypeVar

import structlog
from sqlalchemy import Delete, Select, column, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.base import ReadOnlyColumnCollection
from sqlalchemy.sql.expression import TableClause

from schemable.errors import ScanError
from schemable.models.field import FieldDescriptor, scan_fields
from schemable.models.projection import zero_target
from schemable.services.builder import where_clause
from schemable.services.client import Client, ExecResult
from schemable.services.context import require_client
from schemable.services.recorder import Recorder

T = TypeVar("T")

SelectRefiner = Callable[[Select[Any]], Select[Any]]
DeleteRefiner = Callable[[Delete], Delete]

logger = structlog.get_logger(__name__)


class Schemer(Generic[T]):
    """Table and column mapping for record type T."""

    def __init__(self, record_type: type[T], table_name: str) -> None:
        fields, keys = scan_fields(record_type, table_name)
        self._record_type = record_type
        self._table = table_name
        self._fields = tuple(fields)
        self._keys = tuple(keys)
        self._table_clause = table(table_name, *(column(f.column) for f in fields))

    def __repr__(self) -> str:
        return f"Schemer({self._record_type.__name__}, {self._table!r})"

    @property
    def record_type(self) -> type[T]:
        return self._record_type

    @property
    def table(self) -> str:
        """The bound table name, verbatim."""
        return self._table

    @property
    def table_clause(self) -> TableClause:
        return self._table_clause

    @property
    def c(self) -> ReadOnlyColumnCollection[str, Any]:
        """Columns for building predicates, e.g. ``schemer.c.name == "one"``."""
        return self._table_clause.c

    @property
    def fields(self) -> tuple[FieldDescriptor, ...]:
        return self._fields

    @property
    def keys(self) -> tuple[FieldDescriptor, ...]:
        return self._keys

    def columns(self, include_keys: bool = True) -> list[str]:
        """Qualified column names in declaration order.

        Columns are prefixed with the table name so the list can be used in
        join queries.
        """
        return [f.qualified for f in self._fields if include_keys or not f.is_key]

    def insert_columns(self) -> list[str]:
        """Unqualified names of the columns written by an insert."""
        return [f.column for f in self._fields if not f.is_auto]

    def record(self, target: T | None = None) -> Recorder[T]:
        """Return a Recorder for target, or for a new zero-valued target."""
        if target is None:
            target = zero_target(self._record_type)
        return Recorder(self, target)

    async def first(self, refine: SelectRefiner | None = None) -> Recorder[T]:
        """Return the first row matched by the refined select.

        ``LIMIT 1`` is applied after the refiner.

        Raises:
            NoRowsError: If no row matches.
        """
        client = require_client()
        query = self._refine_select(client, refine).limit(1)
        row = await client.query_row(query)
        rec = self.record()
        rec._scan(row, include_keys=True)
        return rec

    async def list(self, limit: int, offset: int = 0) -> list[Recorder[T]]:
        """Return up to ``limit`` rows starting at ``offset``.

        No ordering is imposed; use ``list_where`` with ``order_by`` when it
        matters.
        """
        return await self.list_where(lambda q: q.limit(limit).offset(offset))

    async def list_where(self, refine: SelectRefiner | None = None) -> list[Recorder[T]]:
        """Return every row matched by the refined select.

        Raises:
            ScanError: If a row cannot be scanned. Recorders scanned before
                the failing row are available on ``partial``.
        """
        client = require_client()
        query = self._refine_select(client, refine)

        recs: list[Recorder[T]] = []
        async with client.query(query) as result:
            try:
                for row in result:
                    rec = self.record()
                    rec._scan(row, include_keys=True)
                    recs.append(rec)
            except ScanError as e:
                e.partial = recs
                raise
            except SQLAlchemyError as e:
                raise ScanError(str(e), partial=recs) from e
        return recs

    async def delete_where(self, refine: DeleteRefiner | None = None) -> ExecResult:
        """Delete the rows matched by the refined delete statement."""
        client = require_client()
        stmt = client.builder.delete(self._table_clause)
        if refine is not None:
            stmt = refine(stmt)
        result = await client.execute(stmt)
        logger.debug("rows_deleted", table=self._table, rowcount=result.rowcount)
        return result

    async def exists(self, predicate: Any, **params: Any) -> bool:
        """Whether any row matches the predicate.

        The predicate is a SQLAlchemy clause, a column-to-value mapping, or
        a SQL fragment with named params.
        """
        client = require_client()
        query = (
            client.builder.select("COUNT(*) > 0")
            .select_from(self._table_clause)
            .where(where_clause(predicate, **params))
        )
        row = await client.query_row(query)
        return bool(row[0])

    def _refine_select(self, client: Client, refine: SelectRefiner | None) -> Select[Any]:
        query = client.builder.select(*self.columns(True)).select_from(self._table_clause)
        if refine is not None:
            query = refine(query)
        return query


def bind(record_type: type[T], table_name: str) -> Schemer[T]:
    """Parse record_type's annotated attributes and bind them to table_name."""
    return Schemer(record_type, table_name)


def targets(recs: Iterable[Recorder[T]]) -> list[T]:
    """Return the target of each recorder, in order."""
    return [rec.target for rec in recs]


__all__ = ["DeleteRefiner", "Schemer", "SelectRefiner", "bind", "targets"]
