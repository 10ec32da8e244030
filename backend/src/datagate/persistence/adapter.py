"""StoreAdapter Protocol: the row I/O interface the engine shapes calls for.

Adapters own id generation (uuid4 strings), the createdAt/updatedAt
timestamps, value encoding, and the unique constraint that keeps a
singleton collection at one row.
"""

from typing import Any, Protocol, runtime_checkable

from datagate.schema.types import CollectionSchema


@runtime_checkable
class StoreAdapter(Protocol):
    """Interface all store adapters must implement.

    Adapters for other databases must conform to this protocol.
    """

    # Raw connection handle. Type varies by adapter.
    conn: Any

    def connect(self) -> None: ...

    def close(self) -> None: ...

    def initialize_collection(self, schema: CollectionSchema) -> None: ...

    def find_unique(self, schema: CollectionSchema, id: str) -> dict[str, Any] | None: ...

    def find_many(
        self,
        schema: CollectionSchema,
        where: dict[str, Any] | None = None,
        take: int | None = None,
        skip: int = 0,
        order_by: dict[str, str] | list[dict[str, str]] | None = None,
    ) -> list[dict[str, Any]]: ...

    def create(self, schema: CollectionSchema, data: dict[str, Any]) -> dict[str, Any]: ...

    def update(
        self, schema: CollectionSchema, id: str, data: dict[str, Any]
    ) -> dict[str, Any] | None: ...

    def delete(self, schema: CollectionSchema, id: str) -> dict[str, Any] | None: ...

    def count(self, schema: CollectionSchema, where: dict[str, Any] | None = None) -> int: ...
