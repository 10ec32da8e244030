"""Error taxonomy for datagate.

Access denial on the main path is never raised: it surfaces as an empty
result. Everything else is an exception:

- ValidationFailure: accumulated validateInput / field rule messages
- StructuralViolation: unsupported operation on a singleton collection
- AccessDeniedError: a nested write named a related row the caller may not touch
- RuleFault: an access rule returned something other than bool or a filter
- SchemaError: invalid collection configuration
- StoreError: raised by store adapters, propagated unchanged
"""

from typing import Any


class DatagateError(Exception):
    """Base class for all datagate errors."""

    pass


class ValidationFailure(DatagateError):
    """Raised when validateInput hooks or field rules report problems.

    Attributes:
        errors: All messages, in the order they were added
        field_errors: First message per field, for field-scoped messages
    """

    def __init__(
        self,
        errors: list[str],
        field_errors: dict[str, str] | None = None,
    ):
        self.errors = list(errors)
        self.field_errors = dict(field_errors or {})
        super().__init__("Validation failed: " + "; ".join(self.errors))

    def to_dict(self) -> dict[str, Any]:
        return {"errors": self.errors, "fieldErrors": self.field_errors}


class StructuralViolation(DatagateError):
    """Raised for operations a collection's structure forbids.

    Never bypassed by elevated (sudo) mode.
    """

    pass


class AccessDeniedError(DatagateError):
    """Raised when a nested relationship write targets a forbidden row."""

    pass


class RuleFault(DatagateError):
    """Raised when an access rule returns an unsupported value."""

    pass


class SchemaError(DatagateError):
    """Raised for invalid collection or field configuration."""

    pass


class UnknownCollectionError(DatagateError, KeyError):
    """Raised when an operation names a collection that is not loaded."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown collection '{self.name}'"


class StoreError(DatagateError):
    """Base class for errors raised by store adapters."""

    pass


class UniqueConstraintError(StoreError):
    """Raised when a write violates a unique constraint."""

    def __init__(self, collection: str, detail: str = ""):
        self.collection = collection
        self.detail = detail
        message = f"Unique constraint failed on {collection}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class FilterError(StoreError, ValueError):
    """Raised for malformed filter predicates."""

    pass
