"""Field and collection builders for configuring schemas in Python.

Usage:
    from datagate.schema import fields as f

    Post = f.collection(
        "Post",
        fields={
            "title": f.text(is_required=True, max_length=200),
            "status": f.select(["draft", "published"], default="draft"),
            "author": f.relationship("User.posts"),
        },
        access={"query": published_or_signed_in, "update": is_author},
    )
"""

from dataclasses import replace
from typing import Any

from datagate.auth.password import PasswordService, password_hooks
from datagate.errors import SchemaError
from datagate.hooks.types import FieldHooks, HookSet
from datagate.schema.types import (
    CollectionSchema,
    FieldAccess,
    FieldSchema,
    OperationAccess,
    Rule,
    SingletonConfig,
    ValidationRules,
)


def _access(access: FieldAccess | dict[str, Rule] | None) -> FieldAccess:
    if access is None:
        return FieldAccess()
    if isinstance(access, FieldAccess):
        return access
    return FieldAccess(**access)


def _hooks(hooks: FieldHooks | dict[str, Any] | None) -> FieldHooks:
    if hooks is None:
        return FieldHooks()
    if isinstance(hooks, FieldHooks):
        return hooks
    return FieldHooks(**hooks)


def _field(type_name: str, **kwargs: Any) -> FieldSchema:
    access = _access(kwargs.pop("access", None))
    hooks = _hooks(kwargs.pop("hooks", None))
    validation = ValidationRules(
        is_required=kwargs.pop("is_required", False),
        min_length=kwargs.pop("min_length", None),
        max_length=kwargs.pop("max_length", None),
        min=kwargs.pop("min", None),
        max=kwargs.pop("max", None),
        pattern=kwargs.pop("pattern", None),
    )
    return FieldSchema(
        name="", type=type_name, access=access, hooks=hooks, validation=validation, **kwargs
    )


def text(
    *,
    is_required: bool = False,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    default: Any = None,
    unique: bool = False,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    return _field(
        "text",
        is_required=is_required,
        min_length=min_length,
        max_length=max_length,
        pattern=pattern,
        default=default,
        unique=unique,
        access=access,
        hooks=hooks,
        label=label,
    )


def integer(
    *,
    is_required: bool = False,
    min: int | None = None,
    max: int | None = None,
    default: Any = None,
    unique: bool = False,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    return _field(
        "integer",
        is_required=is_required,
        min=min,
        max=max,
        default=default,
        unique=unique,
        access=access,
        hooks=hooks,
        label=label,
    )


def decimal(
    *,
    is_required: bool = False,
    min: float | None = None,
    max: float | None = None,
    default: Any = None,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    return _field(
        "decimal",
        is_required=is_required,
        min=min,
        max=max,
        default=default,
        access=access,
        hooks=hooks,
        label=label,
    )


def checkbox(
    *,
    default: bool | None = False,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    return _field("checkbox", default=default, access=access, hooks=hooks, label=label)


def timestamp(
    *,
    is_required: bool = False,
    default: Any = None,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    return _field(
        "timestamp",
        is_required=is_required,
        default=default,
        access=access,
        hooks=hooks,
        label=label,
    )


def password(
    *,
    is_required: bool = False,
    min_length: int | None = None,
    rounds: int = 12,
    access: FieldAccess | dict[str, Rule] | None = None,
    label: str | None = None,
) -> FieldSchema:
    """Password field: hashed on write, HashedPassword on read."""
    return _field(
        "password",
        is_required=is_required,
        min_length=min_length,
        access=access,
        hooks=password_hooks(PasswordService(rounds=rounds)),
        label=label,
    )


def select(
    options: list[Any],
    *,
    is_required: bool = False,
    default: Any = None,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    if not options:
        raise SchemaError("select fields need at least one option")
    return _field(
        "select",
        options=list(options),
        is_required=is_required,
        default=default,
        access=access,
        hooks=hooks,
        label=label,
    )


def json(
    *,
    is_required: bool = False,
    default: Any = None,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    return _field(
        "json",
        is_required=is_required,
        default=default,
        access=access,
        hooks=hooks,
        label=label,
    )


def relationship(
    ref: str,
    *,
    many: bool = False,
    is_required: bool = False,
    access: FieldAccess | dict[str, Rule] | None = None,
    hooks: FieldHooks | dict[str, Any] | None = None,
    label: str | None = None,
) -> FieldSchema:
    """Relationship to another collection.

    Args:
        ref: "Target" or "Target.backField"
        many: True for a to-many relationship (requires a back field)
    """
    return _field(
        "relationship",
        ref=ref,
        many=many,
        is_required=is_required,
        access=access,
        hooks=hooks,
        label=label,
    )


def virtual(
    resolve_output: Any,
    *,
    access: FieldAccess | dict[str, Rule] | None = None,
    label: str | None = None,
) -> FieldSchema:
    """Computed field; resolve_output receives a FieldHookContext with the row."""
    return _field(
        "virtual",
        virtual=True,
        access=access,
        hooks=FieldHooks(resolve_output=resolve_output),
        label=label,
    )


def collection(
    name: str,
    fields: dict[str, FieldSchema],
    *,
    access: OperationAccess | dict[str, Rule] | None = None,
    hooks: HookSet | dict[str, Any] | None = None,
    singleton: bool | dict[str, Any] | SingletonConfig | None = None,
) -> CollectionSchema:
    """Build a CollectionSchema, naming each field after its key."""
    named = {key: replace(value, name=key) for key, value in fields.items()}

    if access is None:
        access = OperationAccess()
    elif isinstance(access, dict):
        access = OperationAccess(**access)

    if hooks is None:
        hooks = HookSet()
    elif isinstance(hooks, dict):
        hooks = HookSet.of(**hooks)

    return CollectionSchema(
        name=name,
        fields=named,
        access=access,
        hooks=hooks,
        singleton=singleton_config(singleton),
    )


def singleton_config(
    value: bool | dict[str, Any] | SingletonConfig | None,
) -> SingletonConfig | None:
    """Normalise the singleton flag: True, False, {autoCreate: bool}."""
    if value is None or value is False:
        return None
    if value is True:
        return SingletonConfig()
    if isinstance(value, SingletonConfig):
        return value
    if isinstance(value, dict):
        return SingletonConfig(auto_create=value.get("autoCreate", value.get("auto_create", True)))
    raise SchemaError(f"Invalid singleton setting: {value!r}")
