"""Projection between record attributes and SQL column values.

Write path: optional attributes that are absent project to None, aggregates
(nested records, dataclasses, sequences, sets, mappings) project to a JSON
string, and scalars pass through unchanged.

Read path: raw driver values are assigned as-is, except aggregate attributes,
which are decoded from JSON into the declared type so that a value written by
insert reads back equal.
"""

import dataclasses
from collections.abc import Mapping, Sequence, Set
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, Literal, TypeVar, get_args, get_origin, get_type_hints

from pydantic import BaseModel, TypeAdapter
from pydantic_core import to_json

from schemable.models.field import FieldDescriptor, unwrap_optional

T = TypeVar("T")

_SCALAR_ZEROS: tuple[type, ...] = (bool, int, float, complex, Decimal, str, bytes)
_CONTAINER_ZEROS: tuple[type, ...] = (list, dict, set, frozenset, tuple)


def is_aggregate_value(value: Any) -> bool:
    if isinstance(value, (str, bytes, bytearray)):
        return False
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return True
    return isinstance(value, (BaseModel, Mapping, list, tuple, Set))


def project_value(descriptor: FieldDescriptor, value: Any) -> Any:
    """Project an attribute value into the value written to its column."""
    if value is None:
        return None
    if descriptor.encoder is not None:
        return descriptor.encoder(value)
    if is_aggregate_value(value):
        return to_json(value).decode()
    return value


def decode_scanned(descriptor: FieldDescriptor, raw: Any) -> Any:
    """Convert a raw column value into the value assigned to the attribute."""
    if raw is None:
        return None
    if descriptor.decoder is not None:
        return descriptor.decoder(raw)
    if descriptor.is_aggregate and isinstance(raw, (str, bytes, bytearray)):
        return _adapter(descriptor.annotation).validate_json(raw)
    return raw


@lru_cache(maxsize=256)
def _adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def zero_value(annotation: Any) -> Any:
    """Return the zero value for an attribute annotation.

    Optional attributes are None, scalars and containers are their empty
    constructors, nested records are zero-valued instances, enums are their
    first member. Anything else (datetimes, UUIDs) is None.
    """
    inner, optional = unwrap_optional(annotation)
    if optional:
        return None

    origin = get_origin(inner) or inner
    if origin is Literal:
        return get_args(inner)[0]
    if not isinstance(origin, type):
        return None
    if issubclass(origin, Enum):
        return next(iter(origin), None)
    if issubclass(origin, BaseModel) or dataclasses.is_dataclass(origin):
        return zero_target(origin)
    for base in _SCALAR_ZEROS + _CONTAINER_ZEROS:
        if issubclass(origin, base):
            return base()
    if issubclass(origin, Mapping):
        return {}
    if issubclass(origin, Set):
        return set()
    if issubclass(origin, Sequence):
        return []
    return None


def zero_target(record_type: type[T]) -> T:
    """Create a record instance with every required attribute at its zero value.

    Attributes with defaults keep them. Pydantic models are built with
    ``model_construct`` so zero values bypass validation.
    """
    if issubclass(record_type, BaseModel):
        zeros = {
            name: zero_value(info.annotation)
            for name, info in record_type.model_fields.items()
            if info.is_required()
        }
        return record_type.model_construct(**zeros)

    if dataclasses.is_dataclass(record_type):
        hints = get_type_hints(record_type)
        zeros = {
            item.name: zero_value(hints.get(item.name, item.type))
            for item in dataclasses.fields(record_type)
            if item.init
            and item.default is dataclasses.MISSING
            and item.default_factory is dataclasses.MISSING
        }
        return record_type(**zeros)

    raise TypeError(f"{record_type!r} is not a pydantic model or dataclass")


__all__ = [
    "decode_scanned",
    "is_aggregate_value",
    "project_value",
    "zero_target",
    "zero_value",
]
