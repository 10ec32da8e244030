"""PolicyEvaluator: turns access rules into AccessDecisions.

Collection-level rules default to Deny when unset; field-level rules
default to Allow. Elevated (sudo) contexts skip evaluation entirely.
Exceptions raised by a rule are never treated as a denial.
"""

import logging
from typing import Any

from datagate.access.filters import matches
from datagate.access.types import AccessContext, AccessDecision, RuleArgs
from datagate.core.awaitables import call
from datagate.core.types import Operation
from datagate.schema.types import CollectionSchema, FieldSchema, Rule

logger = logging.getLogger(__name__)


async def evaluate(rule: Rule, args: RuleArgs) -> AccessDecision:
    """Evaluate one rule. Sync and async rules are both supported.

    Raises:
        RuleFault: If the rule returns an unsupported value
        Exception: Anything the rule raises, unchanged
    """
    try:
        result = await call(rule, args)
    except Exception:
        logger.error(
            "Access rule %s failed for %s.%s",
            getattr(rule, "__name__", rule),
            args.collection,
            args.operation.value,
        )
        raise
    return AccessDecision.from_rule_result(result)


async def check_collection_access(
    schema: CollectionSchema,
    operation: Operation,
    context: AccessContext,
    item: dict[str, Any] | None = None,
) -> AccessDecision:
    """Collection-level decision for one operation.

    item must be the pre-operation row for update/delete and is never
    passed for create.
    """
    if context.is_sudo:
        return AccessDecision.allow()

    rule = schema.access.for_operation(operation)
    if rule is None:
        logger.debug(
            "No %s rule on %s, denying", operation.value, schema.name
        )
        return AccessDecision.deny()

    args = RuleArgs(
        session=context.session,
        context=context,
        operation=operation,
        collection=schema.name,
        item=None if operation == Operation.CREATE else item,
    )
    return await evaluate(rule, args)


async def check_field_access(
    schema: CollectionSchema,
    schema_field: FieldSchema,
    operation: Operation,
    context: AccessContext,
    item: dict[str, Any] | None = None,
    input_data: dict[str, Any] | None = None,
) -> bool:
    """Whether one field may be read (QUERY) or written (CREATE/UPDATE).

    A Predicate decision is checked in memory: against the stored row for
    reads, and against the proposed row (item overlaid with input_data)
    for writes.
    """
    if context.is_sudo:
        return True

    rule = schema_field.access.for_operation(operation)
    if rule is None:
        return True

    args = RuleArgs(
        session=context.session,
        context=context,
        operation=operation,
        collection=schema.name,
        item=item,
        input_data=input_data,
        field=schema_field.name,
    )
    decision = await evaluate(rule, args)
    if decision.is_allow:
        return True
    if decision.is_deny:
        return False

    if operation == Operation.QUERY:
        candidate = item or {}
    else:
        candidate = {**(item or {}), **(input_data or {})}
    return matches(candidate, decision.predicate)
