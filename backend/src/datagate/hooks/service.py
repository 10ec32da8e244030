"""HookPipeline: runs lifecycle hooks around one operation.

Stage order, per operation:

1. resolveInput (create/update): collection hooks may replace or patch
   the payload; then field hooks transform individual values
2. validateInput (create/update): collection hooks add messages through
   ctx.add_validation_error; declarative field rules add theirs; any
   message aborts with ValidationFailure before the store is touched
3. beforeOperation (all operations): side effects only
4. [store call, made by the orchestrator]
5. afterOperation (all operations): side effects only, sees the result

Hooks within a stage run sequentially in declared order. Exceptions
propagate unchanged after being logged.
"""

import logging
from typing import TYPE_CHECKING, Any

from datagate.core.awaitables import call
from datagate.core.types import Operation
from datagate.errors import ValidationFailure
from datagate.hooks.types import (
    FieldHookContext,
    HookContext,
    HookDefinition,
    HookResult,
    compute_changes,
)
from datagate.validation.field_rules import validate_fields

if TYPE_CHECKING:
    from datagate.schema.types import CollectionSchema

logger = logging.getLogger(__name__)


class HookPipeline:
    """Runs collection and field hooks for one collection in one context."""

    def __init__(self, schema: "CollectionSchema", context: Any):
        self.schema = schema
        self.context = context

    # ------------------------------------------------------------------
    # Stages 1 and 2
    # ------------------------------------------------------------------

    async def prepare_input(
        self,
        operation: Operation,
        data: dict[str, Any],
        item: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run resolveInput then validateInput and return the resolved payload.

        Declarative field rules see the payload after collection-level
        resolveInput but before field-level transforms (so a password
        field's length rule applies to the plain text, not the hash).

        Raises:
            ValidationFailure: If any validateInput hook or field rule failed
        """
        data = await self.resolve_input(operation, data, item)
        rule_errors = validate_fields(self.schema, data, operation)
        data = await self.resolve_field_input(operation, data, item)

        hook_context = self._hook_context(operation, data=data, item=item)
        await self.run_hooks("validateInput", self.schema.hooks.validate_input, hook_context)

        messages: list[str] = []
        field_errors: dict[str, str] = {}
        for field_name, message in hook_context.errors:
            messages.append(message)
            if field_name:
                field_errors.setdefault(field_name, message)
        for error in rule_errors:
            messages.append(error.message)
            field_errors.setdefault(error.field, error.message)

        if messages:
            logger.debug(
                "Validation failed for %s.%s: %s",
                self.schema.name,
                operation.value,
                messages,
            )
            raise ValidationFailure(messages, field_errors)
        return data

    async def resolve_input(
        self,
        operation: Operation,
        data: dict[str, Any],
        item: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Collection-level resolveInput.

        A hook returning a dict replaces the payload; a HookResult merges
        its update into it; None keeps the payload. Each hook sees the
        output of the previous one.
        """
        data = dict(data)
        for definition in self.schema.hooks.resolve_input:
            if not definition.applies_to(operation):
                continue
            hook_context = self._hook_context(operation, data=data, item=item)
            result = await self._call(definition, "resolveInput", hook_context)
            if isinstance(result, HookResult):
                if result.update:
                    data.update(result.update)
            elif isinstance(result, dict):
                data = dict(result)
            elif result is not None:
                raise TypeError(
                    f"resolveInput hook '{definition.name}' returned "
                    f"{type(result).__name__}; expected dict, HookResult or None"
                )
        return data

    async def resolve_field_input(
        self,
        operation: Operation,
        data: dict[str, Any],
        item: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Field-level resolveInput for fields present in the payload."""
        data = dict(data)
        for schema_field in self.schema.fields.values():
            fn = schema_field.hooks.resolve_input
            if fn is None or schema_field.name not in data:
                continue
            data[schema_field.name] = await call(
                fn, self._field_context(schema_field.name, operation, data[schema_field.name], data, item)
            )
        return data

    # ------------------------------------------------------------------
    # Stages 3 and 5
    # ------------------------------------------------------------------

    async def before_operation(
        self,
        operation: Operation,
        data: dict[str, Any] | None = None,
        item: dict[str, Any] | None = None,
    ) -> None:
        hook_context = self._hook_context(operation, data=data, item=item)
        await self.run_hooks("beforeOperation", self.schema.hooks.before_operation, hook_context)
        await self._run_field_side_effects("before_operation", operation, data, item)

    async def after_operation(
        self,
        operation: Operation,
        result: Any,
        data: dict[str, Any] | None = None,
        item: dict[str, Any] | None = None,
    ) -> None:
        hook_context = self._hook_context(operation, data=data, item=item, result=result)
        await self.run_hooks("afterOperation", self.schema.hooks.after_operation, hook_context)
        row = result if isinstance(result, dict) else item
        await self._run_field_side_effects("after_operation", operation, data, row)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def run_hooks(
        self,
        stage: str,
        definitions: list[HookDefinition],
        hook_context: HookContext,
    ) -> None:
        """Run side-effect hooks for a stage, sequentially in declared order."""
        for definition in definitions:
            if not definition.applies_to(hook_context.operation):
                continue
            await self._call(definition, stage, hook_context)

    async def _call(
        self, definition: HookDefinition, stage: str, hook_context: HookContext
    ) -> Any:
        try:
            return await call(definition.fn, hook_context)
        except Exception:
            logger.error(
                "%s hook '%s' failed on %s.%s",
                stage,
                definition.name,
                self.schema.name,
                hook_context.operation.value,
            )
            raise

    async def _run_field_side_effects(
        self,
        attr: str,
        operation: Operation,
        data: dict[str, Any] | None,
        row: dict[str, Any] | None,
    ) -> None:
        for schema_field in self.schema.fields.values():
            fn = getattr(schema_field.hooks, attr)
            if fn is None:
                continue
            if data is not None and schema_field.name in data:
                value = data[schema_field.name]
            else:
                value = (row or {}).get(schema_field.name)
            await call(fn, self._field_context(schema_field.name, operation, value, data, row))

    def _hook_context(
        self,
        operation: Operation,
        data: dict[str, Any] | None = None,
        item: dict[str, Any] | None = None,
        result: Any = None,
    ) -> HookContext:
        changes = None
        if operation == Operation.UPDATE and data is not None:
            changes = compute_changes(data, item)
        return HookContext(
            collection=self.schema.name,
            operation=operation,
            data=data,
            item=item,
            result=result,
            changes=changes,
            session=self.context.session,
            context=self.context.nested(),
        )

    def _field_context(
        self,
        field_name: str,
        operation: Operation,
        value: Any,
        data: dict[str, Any] | None,
        item: dict[str, Any] | None,
    ) -> FieldHookContext:
        return FieldHookContext(
            collection=self.schema.name,
            field=field_name,
            operation=operation,
            value=value,
            data=data,
            item=item,
            session=self.context.session,
            context=self.context.nested(),
        )
