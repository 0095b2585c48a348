"""Field descriptors and the schema scanner.

Record types declare persisted attributes with ``typing.Annotated`` and the
``db`` marker. The marker's tag is a comma-separated list: the column name
first, then any of the flags in ``FieldFlag``::

    class ComicTitle(BaseModel):
        id: Annotated[int, db("id, PRIMARY KEY, AUTO INCREMENT")] = 0
        id_two: Annotated[int, db("id_two, PRIMARY KEY")] = 0
        name: Annotated[str, db("name")] = ""
        ignored: str = ""

Attributes without a marker are neither persisted nor selected. The scanner
runs once per record type when a schemer is bound; descriptors are immutable
afterwards.
"""

import dataclasses
import types
from collections.abc import Callable, Mapping, Sequence, Set
from typing import Annotated, Any, Iterator, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel, ConfigDict

from schemable.models.enums import FieldFlag


@dataclasses.dataclass(frozen=True)
class DBTag:
    """Annotation marker naming the column and flags of a record attribute."""

    tag: str = ""
    encoder: Callable[[Any], Any] | None = None
    decoder: Callable[[Any], Any] | None = None


def db(
    tag: str = "",
    *,
    encoder: Callable[[Any], Any] | None = None,
    decoder: Callable[[Any], Any] | None = None,
) -> DBTag:
    """Mark an attribute as persisted.

    Args:
        tag: ``"column, FLAG, ..."``. A blank column falls back to the
            attribute name.
        encoder: Replaces the JSON projection of aggregate values on write.
        decoder: Replaces the JSON decoding of aggregate values on read.
    """
    return DBTag(tag=tag, encoder=encoder, decoder=decoder)


class FieldDescriptor(BaseModel):
    """Parsed metadata for one persisted attribute of a record type."""

    name: str
    column: str
    qualified: str
    is_key: bool = False
    is_auto: bool = False
    is_optional: bool = False
    is_aggregate: bool = False
    annotation: Any = None
    encoder: Callable[[Any], Any] | None = None
    decoder: Callable[[Any], Any] | None = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


def parse_tag(name: str, tag: str) -> list[str]:
    """Split a tag into its column name and flag tokens."""
    parts = tag.split(",")
    column = parts[0].strip()
    return [column or name, *parts[1:]]


def unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Strip ``None`` from a union annotation.

    Returns:
        The remaining annotation and whether ``None`` was present.
    """
    if get_origin(annotation) is Annotated:
        annotation = get_args(annotation)[0]
    if get_origin(annotation) in (Union, types.UnionType):
        args = get_args(annotation)
        remaining = tuple(arg for arg in args if arg is not type(None))
        if len(remaining) < len(args):
            if len(remaining) == 1:
                return remaining[0], True
            return Union[remaining], True
    return annotation, False


def is_aggregate_type(annotation: Any) -> bool:
    """Whether values of this type are stored as JSON text."""
    origin = get_origin(annotation) or annotation
    if not isinstance(origin, type):
        return False
    if issubclass(origin, (str, bytes, bytearray)):
        return False
    if dataclasses.is_dataclass(origin):
        return True
    return issubclass(origin, (BaseModel, Mapping, Sequence, Set))


def scan_fields(record_type: type, table: str) -> tuple[list[FieldDescriptor], list[FieldDescriptor]]:
    """Build the descriptor list and the primary-key subset for a record type.

    Unknown flag tokens are ignored. ``AUTO INCREMENT`` implies
    ``PRIMARY KEY``.

    Raises:
        TypeError: If record_type is neither a pydantic model nor a dataclass.
    """
    fields: list[FieldDescriptor] = []
    keys: list[FieldDescriptor] = []

    for name, annotation, metadata in _annotated_attributes(record_type):
        marker = next((item for item in metadata if isinstance(item, DBTag)), None)
        if marker is None:
            continue

        parts = parse_tag(name, marker.tag)
        flags = {part.strip() for part in parts[1:]}
        inner, optional = unwrap_optional(annotation)
        is_auto = FieldFlag.AUTO_INCREMENT in flags
        descriptor = FieldDescriptor(
            name=name,
            column=parts[0],
            qualified=f"{table}.{parts[0]}",
            is_key=is_auto or FieldFlag.PRIMARY_KEY in flags,
            is_auto=is_auto,
            is_optional=optional,
            is_aggregate=is_aggregate_type(inner),
            annotation=inner,
            encoder=marker.encoder,
            decoder=marker.decoder,
        )

        fields.append(descriptor)
        if descriptor.is_key:
            keys.append(descriptor)

    return fields, keys


def _annotated_attributes(record_type: type) -> Iterator[tuple[str, Any, tuple[Any, ...]]]:
    """Yield (name, annotation, Annotated metadata) in declaration order."""
    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        for name, info in record_type.model_fields.items():
            yield name, info.annotation, tuple(info.metadata)
        return

    if isinstance(record_type, type) and dataclasses.is_dataclass(record_type):
        hints = get_type_hints(record_type, include_extras=True)
        for item in dataclasses.fields(record_type):
            hint = hints.get(item.name, item.type)
            if get_origin(hint) is Annotated:
                yield item.name, get_args(hint)[0], tuple(hint.__metadata__)
            else:
                yield item.name, hint, ()
        return

    raise TypeError(f"{record_type!r} is not a pydantic model or dataclass")


__all__ = [
    "DBTag",
    "FieldDescriptor",
    "db",
    "parse_tag",
    "scan_fields",
    "unwrap_optional",
    "is_aggregate_type",
]
