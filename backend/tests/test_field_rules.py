"""Tests for declarative field validation rules."""

import pytest

from datagate.core.types import Operation
from datagate.schema import fields as f
from datagate.validation import FieldRuleValidator, validate_fields


def _named(name, schema_field):
    schema_field.name = name
    return schema_field


def _validate(schema_field, data, operation=Operation.CREATE):
    return FieldRuleValidator(schema_field).validate(data, operation)


class TestRequired:
    def test_missing_on_create(self):
        errors = _validate(_named("title", f.text(is_required=True)), {})
        assert [e.message for e in errors] == ["Title is required"]
        assert errors[0].code == "REQUIRED"

    def test_blank_string_is_missing(self):
        errors = _validate(_named("title", f.text(is_required=True)), {"title": "   "})
        assert errors[0].code == "REQUIRED"

    def test_default_satisfies_required_on_create(self):
        field = _named("status", f.select(["a", "b"], is_required=True, default="a"))
        assert _validate(field, {}) == []

    def test_absent_on_update_is_fine(self):
        field = _named("title", f.text(is_required=True))
        assert _validate(field, {}, Operation.UPDATE) == []

    def test_cleared_on_update_fails(self):
        field = _named("title", f.text(is_required=True))
        errors = _validate(field, {"title": None}, Operation.UPDATE)
        assert errors[0].code == "REQUIRED"

    def test_label_used_in_message(self):
        field = _named("firstName", f.text(is_required=True))
        assert _validate(field, {})[0].message == "First Name is required"
        labelled = _named("fn", f.text(is_required=True, label="Given name"))
        assert _validate(labelled, {})[0].message == "Given name is required"


class TestTypes:
    @pytest.mark.parametrize(
        "schema_field,value,code",
        [
            (f.text(), 5, "INVALID_TEXT"),
            (f.integer(), "5", "INVALID_INTEGER"),
            (f.integer(), True, "INVALID_INTEGER"),
            (f.integer(), 1.5, "INVALID_INTEGER"),
            (f.decimal(), "1.5", "INVALID_NUMBER"),
            (f.checkbox(), "yes", "INVALID_CHECKBOX"),
            (f.timestamp(), "not a date", "INVALID_TIMESTAMP"),
        ],
    )
    def test_invalid(self, schema_field, value, code):
        errors = _validate(_named("value", schema_field), {"value": value})
        assert [e.code for e in errors] == [code]

    @pytest.mark.parametrize(
        "schema_field,value",
        [
            (f.text(), "x"),
            (f.integer(), 5),
            (f.decimal(), 5),
            (f.decimal(), 1.5),
            (f.checkbox(), False),
            (f.timestamp(), "2024-05-01T10:00:00"),
            (f.json(), {"any": ["thing"]}),
        ],
    )
    def test_valid(self, schema_field, value):
        assert _validate(_named("value", schema_field), {"value": value}) == []

    def test_none_skips_type_check(self):
        assert _validate(_named("count", f.integer()), {"count": None}) == []


class TestBounds:
    def test_numeric(self):
        field = _named("age", f.integer(min=18, max=65))
        assert _validate(field, {"age": 10})[0].message == "Age must be at least 18"
        assert _validate(field, {"age": 70})[0].message == "Age must be at most 65"
        assert _validate(field, {"age": 30}) == []

    def test_length(self):
        field = _named("code", f.text(min_length=2, max_length=4))
        assert _validate(field, {"code": "a"})[0].code == "MIN_LENGTH"
        assert _validate(field, {"code": "abcde"})[0].code == "MAX_LENGTH"

    def test_pattern(self):
        field = _named("slug", f.text(pattern=r"^[a-z-]+$"))
        assert _validate(field, {"slug": "Not A Slug"})[0].code == "PATTERN_MISMATCH"
        assert _validate(field, {"slug": "a-slug"}) == []

    def test_select_options(self):
        field = _named("status", f.select(["draft", "published"]))
        errors = _validate(field, {"status": "archived"})
        assert errors[0].message == "Status must be one of: draft, published"

    def test_password_length_checked(self):
        field = _named("password", f.password(min_length=8, rounds=4))
        assert _validate(field, {"password": "short"})[0].code == "MIN_LENGTH"


class TestValidateFields:
    def test_collects_across_fields_and_skips_virtual(self):
        schema = f.collection(
            "Thing",
            fields={
                "name": f.text(is_required=True),
                "size": f.integer(min=1),
                "label": f.virtual(lambda ctx: "x"),
            },
        )
        errors = validate_fields(schema, {"size": 0}, Operation.CREATE)
        assert {e.field for e in errors} == {"name", "size"}
        assert errors[0].to_dict()["field"] == "name"
