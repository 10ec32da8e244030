"""SingletonGuard: at most one row for collections flagged as singletons.

create is allowed only while the collection is empty; delete and findMany
always fail; get() returns the row, creating it from field defaults when
auto-create is on. None of this is bypassed by sudo. The count check
can race, so the stores also carry a unique constraint that rejects a
second row outright.
"""

import logging
from typing import TYPE_CHECKING, Any

from datagate.errors import StructuralViolation, UniqueConstraintError
from datagate.schema.types import CollectionSchema

if TYPE_CHECKING:
    from datagate.context.orchestrator import CollectionAccessor

logger = logging.getLogger(__name__)


def guard_create(schema: CollectionSchema, store: Any) -> None:
    """Reject create when a singleton collection already has its row."""
    if not schema.is_singleton:
        return
    if store.count(schema) > 0:
        logger.warning("Rejected create on singleton collection %s", schema.name)
        raise StructuralViolation(
            f"Cannot create {schema.name}: it is a singleton collection "
            "with an existing record"
        )


def guard_delete(schema: CollectionSchema) -> None:
    if schema.is_singleton:
        logger.warning("Rejected delete on singleton collection %s", schema.name)
        raise StructuralViolation(
            f"Cannot delete from singleton collection {schema.name}"
        )


def guard_find_many(schema: CollectionSchema) -> None:
    if schema.is_singleton:
        logger.warning("Rejected findMany on singleton collection %s", schema.name)
        raise StructuralViolation(
            f"Cannot use findMany on singleton collection {schema.name}; use get() instead"
        )


async def get_singleton(
    accessor: "CollectionAccessor", include: dict[str, Any] | None = None
) -> dict[str, Any] | None:
    """Return the singleton row, auto-creating it when enabled.

    The row is created in elevated mode (hooks still run) and then read
    back through the caller's own access rules, so a caller without read
    access still gets None.
    """
    schema = accessor.schema
    if not schema.is_singleton:
        raise StructuralViolation(
            f"get() is only available on singleton collections; {schema.name} is not one"
        )

    store = accessor.context.store
    existing = store.find_many(schema, take=1)
    if not existing:
        if not schema.singleton.auto_create:
            return None
        existing = await _auto_create(accessor, schema, store)

    return await accessor.find_unique(id=existing[0]["id"], include=include)


async def _auto_create(
    accessor: "CollectionAccessor", schema: CollectionSchema, store: Any
) -> list[dict[str, Any]]:
    defaults = {
        f.name: f.resolve_default()
        for f in schema.stored_fields()
        if f.has_default
    }
    logger.info("Auto-creating singleton %s", schema.name)
    try:
        await accessor.context.sudo().db[schema.name].create(defaults)
    except (UniqueConstraintError, StructuralViolation):
        # A concurrent get() created the row first
        existing = store.find_many(schema, take=1)
        if not existing:
            raise
        logger.debug("Singleton %s created concurrently, re-reading", schema.name)
        return existing
    return store.find_many(schema, take=1)
