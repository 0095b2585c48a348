from enum import StrEnum


class FieldFlag(StrEnum):
    PRIMARY_KEY = "PRIMARY KEY"
    AUTO_INCREMENT = "AUTO INCREMENT"
