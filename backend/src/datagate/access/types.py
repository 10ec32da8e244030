"""Core types for access control.

- Session: the principal for one call (None when anonymous)
- AccessDecision: Allow / Deny / Predicate(filter), the outcome of one rule
- RuleArgs: everything a rule receives
- AccessContext: what the access layer needs from the execution context
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from datagate.core.types import Operation
from datagate.errors import RuleFault


class Session(Mapping[str, Any]):
    """Immutable key/value identity bag for the acting principal.

    Rules read well-known keys through the accessors below and anything
    else through get() or require().

    Example:
        session = Session(userId="u1", role="admin")
        session.user_id  # "u1"
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None, **kwargs: Any):
        merged = dict(data or {})
        merged.update(kwargs)
        self._data = merged

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Session({self._data!r})"

    @property
    def user_id(self) -> str | None:
        """Subject identifier: userId, falling back to the JWT 'sub' claim."""
        return self._data.get("userId", self._data.get("sub"))

    @property
    def role(self) -> str | None:
        return self._data.get("role")

    @property
    def email(self) -> str | None:
        return self._data.get("email")

    def require(self, key: str) -> Any:
        """Return a key that must be present.

        Raises:
            KeyError: If the session does not carry the key
        """
        if key not in self._data:
            raise KeyError(f"Session has no '{key}'")
        return self._data[key]

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


class DecisionKind(Enum):
    ALLOW = "allow"
    DENY = "deny"
    PREDICATE = "predicate"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of evaluating one access rule.

    Deny means nothing is visible or writable; Predicate means only rows
    matching the filter are.
    """

    kind: DecisionKind
    predicate: dict[str, Any] | None = None

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(DecisionKind.ALLOW)

    @classmethod
    def deny(cls) -> "AccessDecision":
        return cls(DecisionKind.DENY)

    @classmethod
    def where(cls, predicate: dict[str, Any]) -> "AccessDecision":
        if not predicate:
            return cls.allow()
        return cls(DecisionKind.PREDICATE, dict(predicate))

    @classmethod
    def from_rule_result(cls, value: Any) -> "AccessDecision":
        """Convert a rule's return value into a decision.

        Raises:
            RuleFault: If the rule returned neither a bool nor a mapping
        """
        if isinstance(value, AccessDecision):
            return value
        if value is True:
            return cls.allow()
        if value is False:
            return cls.deny()
        if isinstance(value, Mapping):
            return cls.where(dict(value))
        raise RuleFault(
            f"Access rule returned {type(value).__name__}; expected bool or filter dict"
        )

    @property
    def is_allow(self) -> bool:
        return self.kind == DecisionKind.ALLOW

    @property
    def is_deny(self) -> bool:
        return self.kind == DecisionKind.DENY

    @property
    def is_predicate(self) -> bool:
        return self.kind == DecisionKind.PREDICATE


@dataclass(frozen=True)
class RuleArgs:
    """Arguments passed to every access rule.

    Attributes:
        session: Principal, or None when anonymous
        context: Execution context; rules may query collections through it
        operation: The operation being evaluated
        collection: Collection name
        item: Pre-operation row (update/delete), or the row being read
            (field-level read); never set for collection-level create
        input_data: Proposed payload (field-level create/update)
        field: Field name for field-level rules
    """

    session: Session | None
    context: Any
    operation: Operation
    collection: str
    item: dict[str, Any] | None = None
    input_data: dict[str, Any] | None = None
    field: str | None = None


@runtime_checkable
class AccessContext(Protocol):
    """What the access layer reads from an execution context.

    depth counts include levels and hook re-entry for one call tree;
    it is carried by value, so concurrent calls never share it.
    """

    session: Session | None
    is_sudo: bool
    depth: int

    @property
    def store(self) -> Any: ...

    @property
    def schemas(self) -> Any: ...

    def nested(self) -> "AccessContext": ...


@dataclass
class IncludeRequest:
    """Normalised form of one entry in an include map."""

    where: dict[str, Any] | None = None
    include: dict[str, Any] = field(default_factory=dict)
    take: int | None = None

    @classmethod
    def parse(cls, value: Any) -> "IncludeRequest | None":
        """True -> plain include; dict -> {where, include, take}; falsy -> None."""
        if not value:
            return None
        if value is True:
            return cls()
        if isinstance(value, Mapping):
            return cls(
                where=value.get("where"),
                include=dict(value.get("include") or {}),
                take=value.get("take"),
            )
        raise ValueError(f"Invalid include value: {value!r}")
