"""Field type registry and operation kinds."""

from dataclasses import dataclass
from enum import Enum


class Operation(Enum):
    """Operation an access rule or hook is evaluated for.

    Reads (findUnique, findMany, count) all evaluate as QUERY.
    """

    QUERY = "query"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"



@dataclass
class FieldType:
    name: str
    storage_type: str
    pg_type: str
    stored: bool = True


# Built-in field types
FIELD_TYPES: dict[str, FieldType] = {
    "text": FieldType(
        name="text",
        storage_type="TEXT",
        pg_type="TEXT",
    ),
    "integer": FieldType(
        name="integer",
        storage_type="INTEGER",
        pg_type="BIGINT",
    ),
    "decimal": FieldType(
        name="decimal",
        storage_type="REAL",
        pg_type="DOUBLE PRECISION",
    ),
    "checkbox": FieldType(
        name="checkbox",
        storage_type="INTEGER",
        pg_type="BOOLEAN",
    ),
    "timestamp": FieldType(
        name="timestamp",
        storage_type="TEXT",
        pg_type="TEXT",
    ),
    "password": FieldType(
        name="password",
        storage_type="TEXT",
        pg_type="TEXT",
    ),
    "select": FieldType(
        name="select",
        storage_type="TEXT",
        pg_type="TEXT",
    ),
    "json": FieldType(
        name="json",
        storage_type="TEXT",
        pg_type="JSONB",
    ),
    # Relationship columns are derived: single relations store a shadow key,
    # many relations store nothing on this side.
    "relationship": FieldType(
        name="relationship",
        storage_type="TEXT",
        pg_type="TEXT",
        stored=False,
    ),
    "virtual": FieldType(
        name="virtual",
        storage_type="",
        pg_type="",
        stored=False,
    ),
}


def get_field_type(type_name: str) -> FieldType:
    """Get field type definition by name."""
    if type_name not in FIELD_TYPES:
        raise ValueError(f"Unknown field type: {type_name}")
    return FIELD_TYPES[type_name]


def get_storage_type(type_name: str) -> str:
    """Get SQLite storage type for a field type."""
    return get_field_type(type_name).storage_type


def get_pg_type(type_name: str) -> str:
    """Get PostgreSQL column type for a field type."""
    return get_field_type(type_name).pg_type
