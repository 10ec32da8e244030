"""Declarative field validation."""

from datagate.validation.field_rules import (
    FieldRuleValidator,
    ValidationError,
    validate_fields,
)

__all__ = ["FieldRuleValidator", "ValidationError", "validate_fields"]
