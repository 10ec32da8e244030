"""FieldMask: readable and writable subsets of a row for one principal."""

import logging
from typing import Any

from datagate.access.policy import check_field_access
from datagate.access.types import AccessContext
from datagate.core.awaitables import call
from datagate.core.types import Operation
from datagate.hooks.types import FieldHookContext
from datagate.schema.types import SYSTEM_FIELDS, CollectionSchema, FieldSchema

logger = logging.getLogger(__name__)


async def filter_readable(
    item: dict[str, Any],
    schema: CollectionSchema,
    context: AccessContext,
    operation: Operation = Operation.QUERY,
) -> dict[str, Any]:
    """Strip fields the principal may not read and apply output hooks.

    - System fields are always kept.
    - A shadow key follows the read rule of its relationship field.
    - Keys the schema does not describe are kept as-is.
    - resolveOutput runs only on fields that passed the read check.
    - Output hooks and virtual fields receive the masked row, never the
      stored one.
    - Related rows attached by IncludeExpander were masked when loaded
      and are kept as-is.
    """
    result: dict[str, Any] = {}
    transformed: list[FieldSchema] = []

    for key, value in item.items():
        if key in SYSTEM_FIELDS:
            result[key] = value
            continue

        schema_field = schema.fields.get(key)
        if schema_field is None:
            owner = schema.shadowed_by(key)
            if owner is not None and not await check_field_access(
                schema, schema.fields[owner], Operation.QUERY, context, item=item
            ):
                continue
            result[key] = value
            continue

        if schema_field.virtual:
            continue
        if not await check_field_access(
            schema, schema_field, Operation.QUERY, context, item=item
        ):
            continue

        if schema_field.hooks.resolve_output is not None:
            transformed.append(schema_field)
        result[key] = value

    # output hooks see only what the principal could read
    visible = dict(result)
    for schema_field in transformed:
        result[schema_field.name] = await _resolve_output(
            schema, schema_field, visible[schema_field.name], visible, operation, context
        )

    for schema_field in schema.virtual_fields():
        if not await check_field_access(
            schema, schema_field, Operation.QUERY, context, item=item
        ):
            continue
        result[schema_field.name] = await _resolve_output(
            schema, schema_field, None, visible, operation, context
        )

    return result


async def _resolve_output(
    schema: CollectionSchema,
    schema_field: FieldSchema,
    value: Any,
    item: dict[str, Any],
    operation: Operation,
    context: AccessContext,
) -> Any:
    hook_context = FieldHookContext(
        collection=schema.name,
        field=schema_field.name,
        operation=operation,
        value=value,
        item=item,
        session=context.session,
        context=context.nested(),
    )
    return await call(schema_field.hooks.resolve_output, hook_context)


async def filter_writable(
    data: dict[str, Any],
    schema: CollectionSchema,
    operation: Operation,
    context: AccessContext,
    item: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Strip fields the principal may not write.

    Removes system fields, keys the schema does not declare (which
    includes every shadow key, since a shadow key can never collide with
    a declared field), virtual fields, and fields whose create/update
    rule denies. Relationship values are kept; they carry nested write
    instructions.
    """
    result: dict[str, Any] = {}

    for key, value in data.items():
        if key in SYSTEM_FIELDS:
            continue

        schema_field = schema.fields.get(key)
        if schema_field is None:
            owner = schema.shadowed_by(key)
            if owner is not None:
                logger.debug(
                    "Dropping %s.%s: write through relationship '%s' instead",
                    schema.name,
                    key,
                    owner,
                )
            continue

        if schema_field.virtual:
            continue
        if not await check_field_access(
            schema, schema_field, operation, context, item=item, input_data=data
        ):
            logger.debug(
                "Dropping %s.%s: %s denied", schema.name, key, operation.value
            )
            continue

        result[key] = value

    return result
