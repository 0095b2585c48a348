"""Statement building on top of SQLAlchemy Core.

A StatementBuilder is bound to a client's dialect. It produces plain
SQLAlchemy statements, so refiners can use the full fluent vocabulary
(``where``, ``order_by``, ``limit``, ``offset``, ``join`` ...), and compiles
them with ``to_sql`` for logging and error reporting.
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy import (
    Delete,
    Insert,
    Select,
    Update,
    and_,
    delete,
    insert,
    literal_column,
    select,
    table,
    text,
    update,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.expression import ClauseElement, ColumnElement, Executable, TableClause

from schemable.errors import BuilderCompositionError


class StatementBuilder:
    """Creates statements and compiles them for one SQL dialect."""

    def __init__(self, dialect: Dialect) -> None:
        self._dialect = dialect

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    def select(self, *columns: str | ColumnElement[Any]) -> Select[Any]:
        return select(*(_column(c) for c in columns))

    def insert(self, into: str | TableClause) -> Insert:
        return insert(_table(into))

    def update(self, target: str | TableClause) -> Update:
        return update(_table(target))

    def delete(self, target: str | TableClause) -> Delete:
        return delete(_table(target))

    def to_sql(self, statement: Executable) -> tuple[str, dict[str, Any]]:
        """Compile a statement to its SQL string and bound parameters.

        Raises:
            BuilderCompositionError: If SQLAlchemy refuses the statement.
        """
        try:
            compiled = statement.compile(dialect=self._dialect)
        except SQLAlchemyError as e:
            raise BuilderCompositionError(str(e)) from e
        return str(compiled), dict(compiled.params)


def where_clause(predicate: Any, **params: Any) -> ColumnElement[bool]:
    """Coerce a predicate into a SQLAlchemy boolean clause.

    Accepts a SQLAlchemy clause, a mapping of column name to value (each pair
    becomes ``column = value``; None becomes ``IS NULL`` and lists or tuples
    become ``IN``), or a SQL text fragment with named ``:params``.

    Raises:
        BuilderCompositionError: If the predicate is empty or unsupported.
    """
    if isinstance(predicate, str):
        if not predicate.strip():
            raise BuilderCompositionError("where clause is empty")
        try:
            return text(predicate).bindparams(**params) if params else text(predicate)
        except SQLAlchemyError as e:
            raise BuilderCompositionError(str(e)) from e

    if isinstance(predicate, Mapping):
        if not predicate:
            raise BuilderCompositionError("where clause is empty")
        return and_(*(_equals(column, value) for column, value in predicate.items()))

    if isinstance(predicate, ClauseElement):
        return predicate

    raise BuilderCompositionError(f"unsupported predicate type: {type(predicate).__name__}")


def _equals(column: str, value: Any) -> ColumnElement[bool]:
    expr = literal_column(column)
    if isinstance(value, (list, tuple)):
        return expr.in_(value)
    return expr == value


def _column(column: str | ColumnElement[Any]) -> ColumnElement[Any]:
    if isinstance(column, str):
        return literal_column(column)
    return column


def _table(name: str | TableClause) -> TableClause:
    if isinstance(name, str):
        return table(name)
    return name


__all__ = ["StatementBuilder", "where_clause"]
