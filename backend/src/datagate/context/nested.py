"""Nested relationship writes.

Relationship fields are written with structured instructions, never with
raw foreign keys:

    single:  {"connect": {"id": x}} | {"create": {...}} | {"disconnect": True}
    many:    {"connect": [{"id": x}, ...], "create": [{...}], "disconnect": [{"id": x}]}

Resolution never writes. Every value is shape-checked and every connect
or disconnect target is access-checked first; nested creates are then
prepared through the target's create flow (access, hooks, validation).
Nothing reaches the store until commit: nested single creates are written
before the parent so their ids can fill its shadow keys, and many
relationships set the back key on their targets once the parent exists.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from datagate.access.filters import matches
from datagate.access.policy import check_collection_access
from datagate.core.types import Operation
from datagate.errors import AccessDeniedError, ValidationFailure
from datagate.schema.types import CollectionSchema, FieldSchema

logger = logging.getLogger(__name__)

_SINGLE_ACTIONS = ("connect", "create", "disconnect")


@dataclass
class PendingManyWrite:
    """Writes to a many relationship, applied once the parent id is known."""

    field: FieldSchema
    target: CollectionSchema
    back_key: str
    connect: list[str] = field(default_factory=list)
    disconnect: list[dict[str, Any]] = field(default_factory=list)
    payloads: list[dict[str, Any]] = field(default_factory=list)
    create: list[Any] = field(default_factory=list)


@dataclass
class RelationshipWrites:
    """A payload split into store data and deferred relationship writes.

    Attributes:
        store_data: Column values for the parent row
        single_creates: Shadow key -> prepared create of the related row
        many: Pending writes to many relationships
    """

    store_data: dict[str, Any] = field(default_factory=dict)
    single_creates: dict[str, Any] = field(default_factory=dict)
    many: list[PendingManyWrite] = field(default_factory=list)


async def resolve_relationship_writes(
    schema: CollectionSchema,
    data: dict[str, Any],
    context: Any,
) -> RelationshipWrites:
    """Check relationship values and prepare nested creates without writing.

    Raises:
        AccessDeniedError: If a connect/disconnect/create target is not allowed
        ValidationFailure: If a relationship value or a nested create is invalid
    """
    writes = RelationshipWrites()
    single_payloads: list[tuple[str, CollectionSchema, dict[str, Any]]] = []

    for key, value in data.items():
        schema_field = schema.fields.get(key)
        if schema_field is None or not schema_field.is_relationship:
            writes.store_data[key] = value
            continue

        target = context.schemas.get(schema_field.target)
        if schema_field.many:
            writes.many.append(await _check_many(schema_field, target, value, context))
            continue

        action, resolved = await _check_single(schema_field, target, value, context)
        if action == "create":
            single_payloads.append((schema_field.shadow_key, target, resolved))
        else:
            writes.store_data[schema_field.shadow_key] = resolved

    # creates are prepared only after every connect/disconnect has passed
    for shadow_key, target, payload in single_payloads:
        writes.single_creates[shadow_key] = await _prepare_create(target, payload, context)
    for pending in writes.many:
        for payload in pending.payloads:
            pending.create.append(await _prepare_create(pending.target, payload, context))

    return writes


async def _check_single(
    schema_field: FieldSchema,
    target: CollectionSchema,
    value: Any,
    context: Any,
) -> tuple[str | None, Any]:
    if value is None:
        return None, None
    actions = [a for a in _SINGLE_ACTIONS if isinstance(value, dict) and a in value]
    if len(actions) != 1:
        raise ValidationFailure(
            [f"{schema_field.display_name} must use exactly one of: connect, create, disconnect"],
            {schema_field.name: "invalid relationship write"},
        )

    action = actions[0]
    if action == "disconnect":
        return action, None
    if action == "connect":
        target_id = _target_id(schema_field, value["connect"])
        await require_update_access(target, target_id, context)
        return action, target_id
    return action, _create_payload(schema_field, value["create"])


async def _check_many(
    schema_field: FieldSchema,
    target: CollectionSchema,
    value: Any,
    context: Any,
) -> PendingManyWrite:
    if not isinstance(value, dict) or not set(value) <= set(_SINGLE_ACTIONS):
        raise ValidationFailure(
            [f"{schema_field.display_name} accepts connect, create and disconnect lists"],
            {schema_field.name: "invalid relationship write"},
        )

    back = target.fields[schema_field.back_field]
    pending = PendingManyWrite(field=schema_field, target=target, back_key=back.shadow_key)

    for entry in _as_list(value.get("connect")):
        target_id = _target_id(schema_field, entry)
        await require_update_access(target, target_id, context)
        pending.connect.append(target_id)

    for entry in _as_list(value.get("disconnect")):
        target_id = _target_id(schema_field, entry)
        row = await require_update_access(target, target_id, context)
        pending.disconnect.append(row)

    for entry in _as_list(value.get("create")):
        pending.payloads.append(_create_payload(schema_field, entry))
    return pending


async def _prepare_create(target: CollectionSchema, payload: dict[str, Any], context: Any) -> Any:
    prepared = await context.nested().db[target.name].prepare_create(payload)
    if prepared is None:
        raise AccessDeniedError(f"Cannot create related {target.name}")
    return prepared


async def commit_single_creates(writes: RelationshipWrites) -> dict[str, Any]:
    """Write nested single creates and point the parent's shadow keys at them."""
    for shadow_key, prepared in writes.single_creates.items():
        row = await prepared.commit()
        writes.store_data[shadow_key] = row["id"]
    return writes.store_data


async def apply_many_writes(
    pending: list[PendingManyWrite], parent_id: str, context: Any
) -> None:
    """Apply many-relationship writes for a parent row that now exists."""
    store = context.store
    for write in pending:
        for target_id in write.connect:
            store.update(write.target, target_id, {write.back_key: parent_id})

        for row in write.disconnect:
            if row.get(write.back_key) == parent_id:
                store.update(write.target, row["id"], {write.back_key: None})

        for prepared in write.create:
            await prepared.commit({write.back_key: parent_id})


async def require_update_access(
    target: CollectionSchema, target_id: str, context: Any
) -> dict[str, Any]:
    """Fetch a related row and check the caller may update it.

    Raises:
        AccessDeniedError: If the row is missing or the update rule rejects it
    """
    row = context.store.find_unique(target, target_id)
    if row is None:
        raise AccessDeniedError(f"Related {target.name} '{target_id}' not found")

    decision = await check_collection_access(target, Operation.UPDATE, context, item=row)
    if decision.is_deny or (decision.is_predicate and not matches(row, decision.predicate)):
        logger.debug("Relationship write to %s '%s' denied", target.name, target_id)
        raise AccessDeniedError(f"Related {target.name} '{target_id}' not found")
    return row


def _target_id(schema_field: FieldSchema, entry: Any) -> str:
    if isinstance(entry, dict) and entry.get("id") is not None:
        return entry["id"]
    raise ValidationFailure(
        [f"{schema_field.display_name} connect/disconnect entries need an id"],
        {schema_field.name: "missing id"},
    )


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _create_payload(schema_field: FieldSchema, entry: Any) -> dict[str, Any]:
    if isinstance(entry, dict):
        return entry
    raise ValidationFailure(
        [f"{schema_field.display_name} create entries must be objects"],
        {schema_field.name: "invalid relationship write"},
    )
