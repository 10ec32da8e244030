"""Hook system types for datagate.

Defines the data structures for the operation lifecycle hook system:
- HookDefinition: a named hook function and the operations it applies to
- HookSet: collection-level hooks, one ordered list per stage
- FieldHooks: field-level hook functions, one per stage
- HookContext / FieldHookContext: runtime state passed to hook functions
- HookResult: optional partial update returned from resolveInput hooks
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from datagate.core.types import Operation


@dataclass
class HookDefinition:
    """A collection-level hook attached to one stage.

    Attributes:
        name: Registered hook name, or the function name for inline hooks
        fn: Sync or async callable receiving a HookContext
        on: Operations this hook applies to; None means every operation
            that reaches the stage
        description: Human-readable description
    """

    name: str
    fn: Callable[..., Any]
    on: list[Operation] | None = None
    description: str = ""

    def applies_to(self, operation: Operation) -> bool:
        return self.on is None or operation in self.on

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], resolve: Callable[[str], Callable[..., Any]]
    ) -> "HookDefinition":
        """Create HookDefinition from a YAML/JSON dict.

        Args:
            data: {"name": ..., "on": [...], "description": ...}
            resolve: Looks up the hook function for a registered name
        """
        operations = data.get("on")
        if isinstance(operations, str):
            operations = [operations]

        return cls(
            name=data["name"],
            fn=resolve(data["name"]),
            on=[Operation(op) for op in operations] if operations else None,
            description=data.get("description", ""),
        )

    @classmethod
    def wrap(cls, fn: "HookDefinition | Callable[..., Any]") -> "HookDefinition":
        """Accept either a HookDefinition or a bare function."""
        if isinstance(fn, HookDefinition):
            return fn
        return cls(name=getattr(fn, "__name__", "hook"), fn=fn)


@dataclass
class HookSet:
    """Collection-level hooks, in declaration order per stage."""

    resolve_input: list[HookDefinition] = field(default_factory=list)
    validate_input: list[HookDefinition] = field(default_factory=list)
    before_operation: list[HookDefinition] = field(default_factory=list)
    after_operation: list[HookDefinition] = field(default_factory=list)

    @classmethod
    def of(cls, **stages: Any) -> "HookSet":
        """Build a HookSet from functions or definitions, one or a list per stage.

        Example:
            HookSet.of(resolve_input=slugify, after_operation=[audit, notify])
        """
        built: dict[str, list[HookDefinition]] = {}
        for stage, value in stages.items():
            if value is None:
                continue
            items = value if isinstance(value, (list, tuple)) else [value]
            built[stage] = [HookDefinition.wrap(item) for item in items]
        return cls(**built)


@dataclass
class FieldHooks:
    """Field-level hooks.

    resolve_input and resolve_output return the new field value;
    before_operation and after_operation are side effects only.
    """

    resolve_input: Callable[..., Any] | None = None
    before_operation: Callable[..., Any] | None = None
    after_operation: Callable[..., Any] | None = None
    resolve_output: Callable[..., Any] | None = None


@dataclass
class HookContext:
    """Runtime context passed to every collection-level hook.

    Attributes:
        collection: Name of the collection being operated on
        operation: The current operation
        data: Resolved input payload (create/update only)
        item: Pre-operation row (update/delete only)
        result: Committed row, deleted row, or read result (afterOperation only)
        changes: Changed fields relative to item (update only)
        session: Principal for the call, or None when anonymous
        context: Execution context for hooks that need to query collections
    """

    collection: str
    operation: Operation
    data: dict[str, Any] | None = None
    item: dict[str, Any] | None = None
    result: Any = None
    changes: dict[str, Any] | None = None
    session: Any = None
    context: Any = None
    errors: list[tuple[str | None, str]] = field(default_factory=list)

    def add_validation_error(self, message: str, field: str | None = None) -> None:
        """Record a validation message; only meaningful during validateInput."""
        self.errors.append((field, message))


@dataclass
class FieldHookContext:
    """Runtime context passed to field-level hooks."""

    collection: str
    field: str
    operation: Operation
    value: Any = None
    data: dict[str, Any] | None = None
    item: dict[str, Any] | None = None
    session: Any = None
    context: Any = None


@dataclass
class HookResult:
    """Optional return value from resolveInput hooks.

    Attributes:
        update: Fields to merge into the payload
    """

    update: dict[str, Any] | None = None


def compute_changes(
    record: dict[str, Any], original: dict[str, Any] | None
) -> dict[str, Any] | None:
    """Compute a diff of changed fields between record and original.

    Returns None if original is None (create operations).
    Returns a dict of {field: new_value} for fields that differ.
    """
    if original is None:
        return None

    changes: dict[str, Any] = {}
    for key, value in record.items():
        if key in original and original[key] != value:
            changes[key] = value
        elif key not in original:
            changes[key] = value

    return changes
