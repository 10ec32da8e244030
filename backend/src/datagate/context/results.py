"""Result types returned by Context.run()."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OperationKind(Enum):
    """Operations accepted by Context.run()."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    FIND_UNIQUE = "findUnique"
    FIND_MANY = "findMany"
    COUNT = "count"
    GET = "get"


class ErrorKind(Enum):
    VALIDATION = "validation"
    STRUCTURAL = "structural"


@dataclass
class OperationError:
    """Typed, caller-facing error for validation and structural failures.

    Access denial never produces an OperationError.
    """

    kind: ErrorKind
    messages: list[str]
    field_errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "messages": self.messages,
            "fieldErrors": self.field_errors,
        }


@dataclass
class OperationResult:
    """Outcome of one run() call.

    A denied operation has result None (or [] / 0) and error None, which
    is indistinguishable from "not found".
    """

    result: Any = None
    error: OperationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
