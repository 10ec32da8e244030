"""Core types shared across datagate."""

from datagate.core.encoding import to_jsonable
from datagate.core.types import (
    FIELD_TYPES,
    FieldType,
    Operation,
    get_field_type,
    get_pg_type,
    get_storage_type,
)

__all__ = [
    "FIELD_TYPES",
    "FieldType",
    "Operation",
    "get_field_type",
    "get_pg_type",
    "get_storage_type",
    "to_jsonable",
]
