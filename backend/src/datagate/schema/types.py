"""Collection and field schema types.

A SchemaSet is built once at process start and is immutable afterwards.
Relationship targets, back references and shadow foreign keys are
resolved when the set is built, never per call.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any

from datagate.core.types import FIELD_TYPES, Operation
from datagate.errors import SchemaError, UnknownCollectionError
from datagate.hooks.types import FieldHooks, HookSet

logger = logging.getLogger(__name__)

# Rule signature: (RuleArgs) -> bool | dict, sync or async
Rule = Callable[..., Any]

SYSTEM_FIELDS = ("id", "createdAt", "updatedAt")


@dataclass(frozen=True)
class ValidationRules:
    """Declarative field rules checked during validateInput."""

    is_required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    min: float | None = None
    max: float | None = None
    pattern: str | None = None


@dataclass
class FieldAccess:
    """Field-level access rules. An unset rule allows."""

    read: Rule | None = None
    create: Rule | None = None
    update: Rule | None = None

    def for_operation(self, operation: Operation) -> Rule | None:
        if operation == Operation.QUERY:
            return self.read
        if operation == Operation.CREATE:
            return self.create
        if operation == Operation.UPDATE:
            return self.update
        return None


@dataclass
class OperationAccess:
    """Collection-level access rules. An unset rule denies."""

    query: Rule | None = None
    create: Rule | None = None
    update: Rule | None = None
    delete: Rule | None = None

    def for_operation(self, operation: Operation) -> Rule | None:
        return getattr(self, operation.value)


@dataclass
class SingletonConfig:
    """Marks a collection as holding at most one row."""

    auto_create: bool = True


@dataclass
class FieldSchema:
    """One field of a collection.

    Attributes:
        name: Field name (camelCase)
        type: Key into FIELD_TYPES
        default: Static value or zero-argument callable used on create
        validation: Declarative rules checked during validateInput
        options: Allowed values for select fields
        unique: Enforced by the store as a unique column
        access: Field-level read/create/update rules
        hooks: Field-level hooks
        virtual: Computed through hooks.resolve_output, never stored
        ref: Relationship target as "Target" or "Target.backField"
        many: Relationship cardinality
        label: Human-readable name used in validation messages
        shadow_key: Foreign key column of a single relationship (resolved)
        target: Target collection name (resolved)
        back_field: Field on the target pointing back here (resolved)
    """

    name: str
    type: str
    default: Any = None
    validation: ValidationRules = field(default_factory=ValidationRules)
    options: list[Any] | None = None
    unique: bool = False
    access: FieldAccess = field(default_factory=FieldAccess)
    hooks: FieldHooks = field(default_factory=FieldHooks)
    virtual: bool = False
    ref: str | None = None
    many: bool = False
    label: str | None = None
    shadow_key: str | None = None
    target: str | None = None
    back_field: str | None = None

    @property
    def is_relationship(self) -> bool:
        return self.type == "relationship"

    @property
    def is_stored(self) -> bool:
        """Whether the field has its own column."""
        return FIELD_TYPES[self.type].stored and not self.virtual

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def display_name(self) -> str:
        if self.label:
            return self.label
        return format_field_name(self.name)

    def resolve_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default


@dataclass
class CollectionSchema:
    """Static definition of one named collection."""

    name: str
    fields: dict[str, FieldSchema] = field(default_factory=dict)
    access: OperationAccess = field(default_factory=OperationAccess)
    hooks: HookSet = field(default_factory=HookSet)
    singleton: SingletonConfig | None = None

    @property
    def db_key(self) -> str:
        """Accessor key on Context.db, e.g. BlogPost -> blogPost."""
        return self.name[:1].lower() + self.name[1:]

    @property
    def is_singleton(self) -> bool:
        return self.singleton is not None

    @property
    def shadow_keys(self) -> dict[str, str]:
        """Relationship field name -> shadow key, for single relationships."""
        return {
            f.name: f.shadow_key
            for f in self.fields.values()
            if f.is_relationship and f.shadow_key
        }

    def shadowed_by(self, key: str) -> str | None:
        """Name of the relationship field owning shadow key, if any."""
        for name, shadow in self.shadow_keys.items():
            if shadow == key:
                return name
        return None

    def stored_fields(self) -> list[FieldSchema]:
        return [f for f in self.fields.values() if f.is_stored]

    def relationship_fields(self) -> list[FieldSchema]:
        return [f for f in self.fields.values() if f.is_relationship]

    def virtual_fields(self) -> list[FieldSchema]:
        return [f for f in self.fields.values() if f.virtual]

    def columns(self) -> list[str]:
        """All column names in storage order, system fields first."""
        names = list(SYSTEM_FIELDS)
        names.extend(f.name for f in self.stored_fields())
        names.extend(self.shadow_keys.values())
        return names


class SchemaSet:
    """Immutable set of collections with resolved relationships."""

    def __init__(self, collections: list[CollectionSchema]):
        self._collections: dict[str, CollectionSchema] = {}
        for collection in collections:
            if collection.name in self._collections:
                raise SchemaError(f"Duplicate collection '{collection.name}'")
            self._collections[collection.name] = collection
        self._by_db_key = {c.db_key: c for c in self._collections.values()}
        self._resolve()

    def get(self, name: str) -> CollectionSchema:
        """Look up a collection by name or db key."""
        if name in self._collections:
            return self._collections[name]
        if name in self._by_db_key:
            return self._by_db_key[name]
        raise UnknownCollectionError(name)

    def names(self) -> list[str]:
        return list(self._collections)

    def __contains__(self, name: object) -> bool:
        return name in self._collections or name in self._by_db_key

    def __iter__(self) -> Iterator[CollectionSchema]:
        return iter(self._collections.values())

    def __len__(self) -> int:
        return len(self._collections)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self) -> None:
        for collection in self._collections.values():
            for schema_field in collection.fields.values():
                if schema_field.type not in FIELD_TYPES:
                    raise SchemaError(
                        f"{collection.name}.{schema_field.name}: "
                        f"unknown field type '{schema_field.type}'"
                    )
                if schema_field.name in SYSTEM_FIELDS:
                    raise SchemaError(
                        f"{collection.name}.{schema_field.name}: "
                        "system fields cannot be declared"
                    )
                if schema_field.is_relationship:
                    self._resolve_relationship(collection, schema_field)

        for collection in self._collections.values():
            self._check_relationship_pairs(collection)
            self._check_shadow_collisions(collection)

    def _resolve_relationship(
        self, collection: CollectionSchema, schema_field: FieldSchema
    ) -> None:
        if not schema_field.ref:
            raise SchemaError(
                f"{collection.name}.{schema_field.name}: relationship needs 'ref'"
            )
        target_name, _, back_field = schema_field.ref.partition(".")
        if target_name not in self._collections:
            raise SchemaError(
                f"{collection.name}.{schema_field.name}: "
                f"unknown relationship target '{target_name}'"
            )
        target = self._collections[target_name]
        if back_field:
            back = target.fields.get(back_field)
            if back is None or not back.is_relationship:
                raise SchemaError(
                    f"{collection.name}.{schema_field.name}: "
                    f"'{target_name}.{back_field}' is not a relationship field"
                )

        schema_field.target = target_name
        schema_field.back_field = back_field or None
        if not schema_field.many:
            schema_field.shadow_key = f"{schema_field.name}Id"

    def _check_relationship_pairs(self, collection: CollectionSchema) -> None:
        for schema_field in collection.relationship_fields():
            if not schema_field.back_field:
                if schema_field.many:
                    raise SchemaError(
                        f"{collection.name}.{schema_field.name}: "
                        "many relationships need a back field ('Target.field')"
                    )
                continue
            back = self._collections[schema_field.target].fields[schema_field.back_field]
            if schema_field.many and back.many:
                raise SchemaError(
                    f"{collection.name}.{schema_field.name}: "
                    "many-to-many relationships are not supported"
                )
            if back.target != collection.name:
                raise SchemaError(
                    f"{collection.name}.{schema_field.name}: back field "
                    f"'{schema_field.target}.{back.name}' points at '{back.target}'"
                )

    def _check_shadow_collisions(self, collection: CollectionSchema) -> None:
        for relation, shadow in collection.shadow_keys.items():
            if shadow in collection.fields:
                raise SchemaError(
                    f"{collection.name}.{relation}: shadow key '{shadow}' "
                    "collides with a declared field"
                )
        logger.debug(
            "Resolved collection %s (shadow keys: %s)",
            collection.name,
            collection.shadow_keys,
        )


def format_field_name(name: str) -> str:
    """Convert camelCase to a human label: firstName -> First Name."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append(" ")
        result.append(char)
    label = "".join(result)
    return label[:1].upper() + label[1:]
