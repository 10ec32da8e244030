"""Loads collection schemas from YAML files.

Each file under the schema directory describes one collection:

    collection: Post
    fields:
      - name: title
        type: text
        validation: {isRequired: true, length: {max: 200}}
      - name: author
        type: relationship
        ref: User.posts
    access:
      query: isSignedIn
      update: {ownedBy: authorId}
    hooks:
      resolveInput: [{name: slugifyTitle}]
    singleton: false

Rules and hooks are referenced by name and must be registered in
RuleRegistry / HookRegistry before loading.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from datagate.access.registry import (
    RuleRegistry,
    allow_all,
    deny_all,
    owned_by,
    register_builtin_rules,
)
from datagate.auth.password import PasswordService, password_hooks
from datagate.errors import SchemaError
from datagate.hooks.registry import HookRegistry
from datagate.hooks.types import FieldHooks, HookDefinition, HookSet
from datagate.schema.fields import singleton_config
from datagate.schema.types import (
    CollectionSchema,
    FieldAccess,
    FieldSchema,
    OperationAccess,
    Rule,
    SchemaSet,
    ValidationRules,
)

logger = logging.getLogger(__name__)

_STAGE_KEYS = {
    "resolveInput": "resolve_input",
    "validateInput": "validate_input",
    "beforeOperation": "before_operation",
    "afterOperation": "after_operation",
}
_FIELD_HOOK_KEYS = {
    "resolveInput": "resolve_input",
    "beforeOperation": "before_operation",
    "afterOperation": "after_operation",
    "resolveOutput": "resolve_output",
}


class SchemaLoader:
    """Loads and resolves collection YAML into a SchemaSet."""

    def __init__(self, schema_path: Path | str):
        self.schema_path = Path(schema_path)
        self.collections: dict[str, CollectionSchema] = {}

    def load(self) -> SchemaSet:
        """Load every *.yaml / *.yml file and resolve relationships."""
        if not self.schema_path.exists():
            raise SchemaError(f"Schema path does not exist: {self.schema_path}")

        register_builtin_rules()

        files = sorted(self.schema_path.glob("*.yaml")) + sorted(self.schema_path.glob("*.yml"))
        for yaml_file in files:
            with open(yaml_file) as f:
                data = yaml.safe_load(f)
            if not data or "collection" not in data:
                logger.debug("Skipping %s: no 'collection' key", yaml_file)
                continue
            collection = self.resolve_collection(data)
            self.collections[collection.name] = collection

        logger.info(
            "Loaded %d collections from %s", len(self.collections), self.schema_path
        )
        return SchemaSet(list(self.collections.values()))

    def resolve_collection(self, data: dict[str, Any]) -> CollectionSchema:
        """Convert one collection dict to a CollectionSchema."""
        name = data["collection"]
        fields: dict[str, FieldSchema] = {}
        for field_data in data.get("fields", []):
            schema_field = self._resolve_field(name, field_data)
            if schema_field.name in fields:
                raise SchemaError(f"{name}: duplicate field '{schema_field.name}'")
            fields[schema_field.name] = schema_field

        access_data = data.get("access") or {}
        access = OperationAccess(
            **{
                op: self._resolve_rule(access_data[op])
                for op in ("query", "create", "update", "delete")
                if op in access_data
            }
        )

        return CollectionSchema(
            name=name,
            fields=fields,
            access=access,
            hooks=self._resolve_hooks(data.get("hooks") or {}),
            singleton=singleton_config(data.get("singleton")),
        )

    def _resolve_field(self, collection: str, data: dict[str, Any]) -> FieldSchema:
        """Convert field dict to FieldSchema."""
        name = data["name"]
        field_type = data.get("type", "text")

        validation_data = data.get("validation") or {}
        length = validation_data.get("length") or {}
        validation = ValidationRules(
            is_required=validation_data.get("isRequired", False),
            min_length=length.get("min", validation_data.get("minLength")),
            max_length=length.get("max", validation_data.get("maxLength")),
            min=validation_data.get("min"),
            max=validation_data.get("max"),
            pattern=validation_data.get("pattern"),
        )

        access_data = data.get("access") or {}
        access = FieldAccess(
            **{
                op: self._resolve_rule(access_data[op])
                for op in ("read", "create", "update")
                if op in access_data
            }
        )

        hooks = self._resolve_field_hooks(data.get("hooks") or {})
        virtual = field_type == "virtual"
        if field_type == "password":
            hooks = password_hooks(PasswordService(rounds=data.get("rounds", 12)))
        if virtual and hooks.resolve_output is None:
            raise SchemaError(f"{collection}.{name}: virtual fields need hooks.resolveOutput")
        if field_type == "select" and not data.get("options"):
            raise SchemaError(f"{collection}.{name}: select fields need options")

        return FieldSchema(
            name=name,
            type=field_type,
            default=data.get("default"),
            validation=validation,
            options=data.get("options"),
            unique=data.get("unique", False),
            access=access,
            hooks=hooks,
            virtual=virtual,
            ref=data.get("ref"),
            many=data.get("many", False),
            label=data.get("label"),
        )

    def _resolve_rule(self, value: Any) -> Rule:
        """A rule is a registered name, a literal bool, or {ownedBy: key}."""
        if value is True:
            return allow_all
        if value is False:
            return deny_all
        if isinstance(value, str):
            try:
                return RuleRegistry.get(value)
            except ValueError as e:
                raise SchemaError(str(e)) from e
        if isinstance(value, dict) and "ownedBy" in value:
            return owned_by(value["ownedBy"])
        raise SchemaError(f"Invalid access rule: {value!r}")

    def _resolve_hooks(self, data: dict[str, Any]) -> HookSet:
        """Convert hooks dict from YAML to a HookSet."""
        stages: dict[str, list[HookDefinition]] = {}
        for stage, hook_list in data.items():
            if stage not in _STAGE_KEYS:
                raise SchemaError(f"Unknown hook stage '{stage}'")
            if isinstance(hook_list, (str, dict)):
                hook_list = [hook_list]
            stages[_STAGE_KEYS[stage]] = [self._resolve_hook(h) for h in hook_list]
        return HookSet(**stages)

    def _resolve_hook(self, data: str | dict[str, Any]) -> HookDefinition:
        if isinstance(data, str):
            data = {"name": data}
        on = self._get_on(data)
        if on is not None:
            data = {**data, "on": on}
        try:
            return HookDefinition.from_dict(data, HookRegistry.get)
        except ValueError as e:
            raise SchemaError(str(e)) from e

    def _resolve_field_hooks(self, data: dict[str, Any]) -> FieldHooks:
        hooks: dict[str, Any] = {}
        for stage, name in data.items():
            if stage not in _FIELD_HOOK_KEYS:
                raise SchemaError(f"Unknown field hook stage '{stage}'")
            try:
                hooks[_FIELD_HOOK_KEYS[stage]] = HookRegistry.get(name)
            except ValueError as e:
                raise SchemaError(str(e)) from e
        return FieldHooks(**hooks)

    def _get_on(self, data: dict[Any, Any]) -> list[str] | None:
        """Extract the 'on' field from a YAML dict.

        PyYAML parses the bare key `on:` as boolean True, so we check
        both the string key "on" and the boolean key True.
        """
        on = data.get("on") or data.get(True)
        if isinstance(on, str):
            on = [on]
        return on
