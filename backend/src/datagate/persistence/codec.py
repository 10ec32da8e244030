"""Column layout helpers shared by the store adapters."""

import uuid
from datetime import datetime, timezone

from datagate.errors import StoreError
from datagate.schema.types import CollectionSchema

SINGLETON_COLUMN = "_singleton"


def table_name(collection_name: str) -> str:
    """Convert collection name to snake_case table name."""
    result = []
    for i, char in enumerate(collection_name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def column_types(schema: CollectionSchema) -> dict[str, str]:
    """Column name -> field type, in storage order."""
    types = {"id": "text", "createdAt": "timestamp", "updatedAt": "timestamp"}
    for schema_field in schema.stored_fields():
        types[schema_field.name] = schema_field.type
    for shadow_key in schema.shadow_keys.values():
        types[shadow_key] = "text"
    return types


def unique_columns(schema: CollectionSchema) -> set[str]:
    return {f.name for f in schema.stored_fields() if f.unique}


def writable_columns(schema: CollectionSchema, data: dict) -> list[str]:
    """Columns present in data, in storage order.

    Raises:
        StoreError: If data names a column the collection does not have
    """
    types = column_types(schema)
    unknown = [key for key in data if key not in types]
    if unknown:
        raise StoreError(f"Unknown column(s) for {schema.name}: {', '.join(unknown)}")
    return [column for column in types if column in data and column != "id"]


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
