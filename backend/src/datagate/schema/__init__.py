"""Collection schemas: types, Python builders and the YAML loader."""

from datagate.schema.types import (
    SYSTEM_FIELDS,
    CollectionSchema,
    FieldAccess,
    FieldSchema,
    OperationAccess,
    SchemaSet,
    SingletonConfig,
    ValidationRules,
)
from datagate.schema import fields
from datagate.schema.loader import SchemaLoader

__all__ = [
    "SYSTEM_FIELDS",
    "CollectionSchema",
    "FieldAccess",
    "FieldSchema",
    "OperationAccess",
    "SchemaLoader",
    "SchemaSet",
    "SingletonConfig",
    "ValidationRules",
    "fields",
]
