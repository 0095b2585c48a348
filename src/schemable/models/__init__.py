from schemable.models.enums import FieldFlag
from schemable.models.field import DBTag, FieldDescriptor, db, parse_tag, scan_fields

__all__ = [
    "DBTag",
    "FieldDescriptor",
    "FieldFlag",
    "db",
    "parse_tag",
    "scan_fields",
]
