"""Tests for the jsonschema adapter, error mapping and localized messages."""

from __future__ import annotations

import math

import pytest
from jsonschema.exceptions import SchemaError

from dazzle_forms.core.paths import Path
from dazzle_forms.runtime.messages import (
    FALLBACK_MESSAGE,
    LOCALE_MESSAGES,
    localize,
    normalize_locale,
    supported_locales,
)
from dazzle_forms.runtime.validation import (
    FieldError,
    JsonSchemaValidator,
    RawError,
    ValidatorOutcome,
    attach_errors,
    to_field_error,
    to_validation_result,
)
from dazzle_forms.specs.control import ControlDescriptor, ControlKind


@pytest.fixture
def validator() -> JsonSchemaValidator:
    return JsonSchemaValidator()


class TestJsonSchemaValidator:
    def test_valid_data(self, validator: JsonSchemaValidator, person_schema) -> None:
        outcome = validator.compile(person_schema)({"name": "Ada", "age": 3})
        assert outcome.valid
        assert outcome.errors == []

    def test_type_error_pointer(self, validator: JsonSchemaValidator, person_schema) -> None:
        outcome = validator.compile(person_schema)({"name": "Ada", "age": "x"})
        assert not outcome.valid
        (error,) = outcome.errors
        assert error.instance_pointer == "/age"
        assert error.keyword == "type"
        assert error.params == {"type": "integer"}

    def test_each_missing_property_named(self, validator: JsonSchemaValidator) -> None:
        schema = {"type": "object", "required": ["a", "b"], "properties": {}}
        outcome = validator.compile(schema)({})
        missing = sorted(e.params["missingProperty"] for e in outcome.errors)
        assert missing == ["a", "b"]
        assert all(e.instance_pointer == "" for e in outcome.errors)

    def test_nested_required(self, validator: JsonSchemaValidator, pets_schema) -> None:
        outcome = validator.compile(pets_schema)({"pets": [{"kind": "dog"}]})
        (error,) = outcome.errors
        assert error.instance_pointer == "/pets/0"
        assert error.params["missingProperty"] == "name"

    def test_nan_reported_as_type_error(self, validator: JsonSchemaValidator) -> None:
        schema = {"type": "object", "properties": {"price": {"type": "number"}}}
        outcome = validator.compile(schema)({"price": math.nan})
        assert not outcome.valid
        (error,) = outcome.errors
        assert error.instance_pointer == "/price"
        assert error.keyword == "type"

    def test_nan_not_duplicated(self, validator: JsonSchemaValidator) -> None:
        schema = {"type": "object", "properties": {"count": {"type": "integer"}}}
        outcome = validator.compile(schema)({"count": math.nan})
        assert [e.keyword for e in outcome.errors] == ["type"]

    def test_format_checked(self, validator: JsonSchemaValidator) -> None:
        check = validator.compile({"type": "string", "format": "email"})
        assert not check("not-an-email").valid
        assert check("ada@example.com").valid

    def test_invalid_schema_raises(self, validator: JsonSchemaValidator) -> None:
        with pytest.raises(SchemaError):
            validator.compile({"type": 12})


class TestErrorMapping:
    def test_required_path_includes_missing_property(self) -> None:
        raw = RawError("/pets/0", "required", {"required": ["name"], "missingProperty": "name"}, "m")
        error = to_field_error(raw, "en")
        assert error.path == Path(("pets", 0, "name"))

    def test_other_keywords_keep_pointer(self) -> None:
        error = to_field_error(RawError("/age", "minimum", {"minimum": 0}, "too small"), "en")
        assert error.path == Path(("age",))
        assert error.message == "too small"

    def test_localized_message(self) -> None:
        error = to_field_error(RawError("/age", "minimum", {"minimum": 0}, "too small"), "de-DE")
        assert error.message == LOCALE_MESSAGES["de"]["minimum"]

    def test_result(self) -> None:
        outcome = ValidatorOutcome(valid=False, errors=[RawError("/a", "type", {}, "bad")])
        result = to_validation_result(outcome, "en")
        assert not result.valid
        assert result.errors_at(Path(("a",)))[0].message == "bad"
        assert result.to_dict()["errors"][0]["path"] == "a"


class TestMessages:
    def test_normalize(self) -> None:
        assert normalize_locale("de-DE") == "de"
        assert normalize_locale("pt_BR.UTF-8") == "pt"
        assert normalize_locale("FR") == "fr"
        assert normalize_locale(None) == "en"
        assert normalize_locale("") == "en"

    def test_english_keeps_validator_message(self) -> None:
        assert localize("required", "'name' is a required property", "en") == (
            "'name' is a required property"
        )

    def test_untranslated_keyword_falls_back(self) -> None:
        assert localize("multipleOf", "not a multiple", "es") == "not a multiple"
        assert localize("multipleOf", None, "es") == FALLBACK_MESSAGE

    def test_translations(self) -> None:
        assert localize("required", "x", "fr") == "Champ obligatoire manquant"
        assert localize("type", "x", "zh") == "类型不正确"

    def test_supported_locales(self) -> None:
        assert supported_locales() == ["en", "de", "es", "fr", "zh"]


class TestAttachErrors:
    @pytest.fixture
    def tree(self) -> ControlDescriptor:
        name = ControlDescriptor(kind=ControlKind.LEAF, path=Path(("name",)))
        group = ControlDescriptor(kind=ControlKind.OBJECT_GROUP, path=Path(("address",)))
        return ControlDescriptor(
            kind=ControlKind.OBJECT_GROUP, path=Path(), children=[name, group]
        )

    def test_exact_match(self, tree: ControlDescriptor) -> None:
        attach_errors(tree, [FieldError(Path(("name",)), "required", {}, "missing")])
        assert tree.find(Path(("name",))).errors == ["missing"]

    def test_nearest_ancestor(self, tree: ControlDescriptor) -> None:
        attach_errors(tree, [FieldError(Path(("address", "city")), "required", {}, "city")])
        assert tree.find(Path(("address",))).errors == ["city"]

    def test_root_fallback(self) -> None:
        layout = ControlDescriptor(kind=ControlKind.LAYOUT)
        assert attach_errors(layout, [FieldError(Path(("x",)), "type", {}, "bad")]) == 1
        assert layout.errors == ["bad"]

    def test_previous_errors_cleared(self, tree: ControlDescriptor) -> None:
        attach_errors(tree, [FieldError(Path(("name",)), "required", {}, "missing")])
        attach_errors(tree, [])
        assert tree.find(Path(("name",))).errors == []

    def test_no_tree(self) -> None:
        assert attach_errors(None, [FieldError(Path(), "schema", {}, "x")]) == 0
