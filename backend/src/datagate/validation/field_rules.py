"""Declarative field rules checked during validateInput.

Generated from each field's ValidationRules:
- isRequired: value must be present and non-empty (create), or non-empty
  when supplied (update)
- min/max: numeric bounds
- length min/max: string length bounds
- pattern: regex match
- options: select values
- type checks for text, integer, decimal, checkbox, timestamp
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from datagate.core.types import Operation

if TYPE_CHECKING:
    from datagate.schema.types import CollectionSchema, FieldSchema


@dataclass(frozen=True)
class ValidationError:
    """A single field rule violation.

    Attributes:
        message: Human-readable message
        code: Machine-readable error code (e.g., "REQUIRED")
        field: Field name this error relates to
    """

    message: str
    code: str
    field: str

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code, "field": self.field}


# =============================================================================
# Field Rule Validator
# =============================================================================


@dataclass
class FieldRuleValidator:
    """Validates a single field against its declared rules."""

    field: "FieldSchema"

    def validate(
        self, data: dict[str, Any], operation: Operation
    ) -> list[ValidationError]:
        errors: list[ValidationError] = []
        name = self.field.name
        present = name in data
        value = data.get(name)
        rules = self.field.validation

        if rules.is_required:
            if operation == Operation.CREATE:
                # Defaults are applied after validation
                missing = not present and not self.field.has_default
                if missing or (present and self._is_empty(value)):
                    return [self._error("is required", "REQUIRED")]
            elif present and self._is_empty(value):
                return [self._error("is required", "REQUIRED")]

        if not present or value is None or self.field.is_relationship:
            return errors

        type_error = self._validate_type(value)
        if type_error:
            return [type_error]

        if self.field.type in ("integer", "decimal"):
            errors.extend(self._validate_numeric_bounds(value))
        if self.field.type in ("text", "password"):
            errors.extend(self._validate_string_length(value))
            if rules.pattern and not re.search(rules.pattern, value):
                errors.append(self._error("format is invalid", "PATTERN_MISMATCH"))
        if self.field.type == "select" and self.field.options:
            if value not in self.field.options:
                choices = ", ".join(str(option) for option in self.field.options)
                errors.append(self._error(f"must be one of: {choices}", "INVALID_OPTION"))

        return errors

    def _error(self, text: str, code: str) -> ValidationError:
        return ValidationError(
            message=f"{self.field.display_name} {text}",
            code=code,
            field=self.field.name,
        )

    def _is_empty(self, value: Any) -> bool:
        """Check if a value is considered empty."""
        if value is None:
            return True
        if isinstance(value, str) and value.strip() == "":
            return True
        if isinstance(value, (list, dict)) and len(value) == 0:
            return True
        return False

    def _validate_type(self, value: Any) -> ValidationError | None:
        field_type = self.field.type

        if field_type in ("text", "password") and not isinstance(value, str):
            return self._error("must be text", "INVALID_TEXT")

        if field_type == "integer":
            if isinstance(value, bool) or not isinstance(value, int):
                return self._error("must be an integer", "INVALID_INTEGER")

        elif field_type == "decimal":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return self._error("must be a number", "INVALID_NUMBER")

        elif field_type == "checkbox" and not isinstance(value, bool):
            return self._error("must be a boolean", "INVALID_CHECKBOX")

        elif field_type == "timestamp":
            if isinstance(value, datetime):
                return None
            try:
                datetime.fromisoformat(str(value))
            except ValueError:
                return self._error("must be a valid timestamp", "INVALID_TIMESTAMP")

        return None

    def _validate_numeric_bounds(self, value: Any) -> list[ValidationError]:
        errors = []
        rules = self.field.validation
        if rules.min is not None and value < rules.min:
            errors.append(self._error(f"must be at least {rules.min}", "MIN_VALUE"))
        if rules.max is not None and value > rules.max:
            errors.append(self._error(f"must be at most {rules.max}", "MAX_VALUE"))
        return errors

    def _validate_string_length(self, value: str) -> list[ValidationError]:
        errors = []
        rules = self.field.validation
        length = len(value)
        if rules.min_length is not None and length < rules.min_length:
            errors.append(
                self._error(f"must be at least {rules.min_length} characters", "MIN_LENGTH")
            )
        if rules.max_length is not None and length > rules.max_length:
            errors.append(
                self._error(f"must be at most {rules.max_length} characters", "MAX_LENGTH")
            )
        return errors


def validate_fields(
    schema: "CollectionSchema", data: dict[str, Any], operation: Operation
) -> list[ValidationError]:
    """Run every field's rules against a create/update payload."""
    errors: list[ValidationError] = []
    for schema_field in schema.fields.values():
        if schema_field.virtual:
            continue
        errors.extend(FieldRuleValidator(schema_field).validate(data, operation))
    return errors
