"""
Tests for grpg_library/schema_registry.py -- Per-record-type field schemas.

Validates:
    - schema_for returns the right fields and raises for unknown types
    - base fields are shared and provenance fields are optional
    - reference fields carry their expected categories
    - extract_references walks nested fields and grantedBy
    - json_schema compiles to a valid Draft 2020-12 schema
"""

import jsonschema
import pytest

from grpg_library.exceptions import UnknownCategoryError, UnknownRecordTypeError
from grpg_library.schema_registry import (
    CATEGORIES,
    RECORD_TYPES,
    FieldKind,
    SchemaRegistry,
    default_registry,
)


@pytest.fixture
def registry():
    return SchemaRegistry()


class TestSchemaFor:
    """Tests for SchemaRegistry.schema_for and friends."""

    def test_every_record_type_has_a_schema(self, registry):
        for record_type, category in zip(RECORD_TYPES, CATEGORIES):
            schema = registry.schema_for(record_type)
            assert schema.record_type == record_type
            assert schema.category == category

    def test_unknown_type_raises(self, registry):
        with pytest.raises(UnknownRecordTypeError):
            registry.schema_for("monster")

    def test_category_and_type_mapping(self, registry):
        assert registry.category_for("class") == "classes"
        assert registry.type_for("abilities") == "ability"
        with pytest.raises(UnknownCategoryError):
            registry.type_for("monsters")

    def test_base_fields(self, registry):
        base = {spec.name: spec for spec in registry.base_fields()}
        for name in ("id", "recordType", "name", "summary", "description", "tags"):
            assert base[name].required, name
        for name in ("source", "version", "createdAt", "updatedAt", "lore"):
            assert not base[name].required, name
        assert base["recordType"].kind == FieldKind.ENUM
        assert "type" in base["recordType"].aliases

    def test_trait_requires_rules_text(self, registry):
        rules = registry.schema_for("trait").mechanics.child("rulesText")
        assert rules.required and rules.non_empty

    def test_ability_category_enum(self, registry):
        spec = registry.schema_for("ability").mechanics.child("category")
        assert spec.kind == FieldKind.ENUM
        assert set(spec.allowed) == {"combat", "adventuring", "social", "exploration", "other"}

    def test_reference_fields(self, registry):
        refs = dict(registry.schema_for("race").reference_fields())
        assert refs["mechanics.innateTraits"].ref_category == "traits"
        assert refs["mechanics.innateAbilities"].ref_category == "abilities"
        origin = dict(registry.schema_for("origin").reference_fields())
        assert origin["mechanics.startingTrait"].kind == FieldKind.ID

    def test_back_link_fields(self, registry):
        assert registry.schema_for("circle").back_link_fields == ("signatureAbilities",)
        assert registry.schema_for("trait").back_link_fields == ()

    def test_default_registry_is_shared(self):
        assert default_registry() is default_registry()


class TestExtractReferences:
    """Tests for SchemaRegistry.extract_references."""

    def test_race_references(self, registry, tettari_race):
        refs = registry.extract_references(tettari_race, "race")
        assert [(r.field, r.target_id, r.expected_category) for r in refs] == [
            ("mechanics.innateTraits", "trait-tettari-survivor", "traits"),
        ]

    def test_granted_by_uses_owner_type(self, registry, mark_prey_ability):
        refs = registry.extract_references(mark_prey_ability, "ability")
        assert [(r.field, r.target_id, r.expected_category) for r in refs] == [
            ("grantedBy.id", "class-warden", "classes"),
        ]

    def test_granted_by_with_invalid_owner_type_is_skipped(self, registry, mark_prey_ability):
        mark_prey_ability["grantedBy"]["type"] = "profession"
        assert registry.extract_references(mark_prey_ability, "ability") == []

    def test_malformed_values_are_skipped(self, registry, tettari_race):
        tettari_race["mechanics"]["innateTraits"] = ["", 7, "trait-a"]
        tettari_race["mechanics"]["innateAbilities"] = "ability-b"
        refs = registry.extract_references(tettari_race, "race")
        assert [r.target_id for r in refs] == ["trait-a"]


class TestJsonSchema:
    """Tests for SchemaRegistry.json_schema."""

    def test_compiled_schema_is_valid(self, registry):
        for record_type in RECORD_TYPES:
            jsonschema.Draft202012Validator.check_schema(registry.json_schema(record_type))

    def test_sample_records_validate(self, registry, tettari_race, warden_class,
                                     survivor_trait, mark_prey_ability):
        for record_type, record in (("race", tettari_race), ("class", warden_class),
                                    ("trait", survivor_trait), ("ability", mark_prey_ability)):
            validator = jsonschema.Draft202012Validator(registry.json_schema(record_type))
            assert list(validator.iter_errors(record)) == [], record_type

    def test_cross_reference_annotations(self, registry):
        schema = registry.json_schema("race")
        innate = schema["properties"]["mechanics"]["properties"]["innateTraits"]
        assert innate["x-cross-reference"] == "traits"

    def test_wrong_record_type_rejected(self, registry, survivor_trait):
        validator = jsonschema.Draft202012Validator(registry.json_schema("ability"))
        assert list(validator.iter_errors(survivor_trait))

    def test_closed_form_rejects_unknown_keys(self, registry, survivor_trait):
        schema = registry.json_schema("trait", closed=True)
        assert schema["additionalProperties"] is False
        assert schema["properties"]["source"]["additionalProperties"] is False
        assert "additionalProperties" not in schema["properties"]["lore"]
        validator = jsonschema.Draft202012Validator(schema)
        assert list(validator.iter_errors(survivor_trait)) == []
        errors = list(validator.iter_errors({**survivor_trait, "flavour": "pine"}))
        assert [e.validator for e in errors] == ["additionalProperties"]

    def test_open_form_allows_unknown_keys(self, registry):
        assert registry.json_schema("trait")["additionalProperties"] is True

    def test_mechanics_required_only_when_it_has_required_fields(self, registry):
        assert "mechanics" in registry.json_schema("trait")["required"]
        assert "mechanics" not in registry.json_schema("race")["required"]
        assert "grantedBy" not in registry.json_schema("ability")["required"]

    def test_version_parts_are_bounded_numbers(self, registry):
        version = registry.json_schema("race")["properties"]["version"]["properties"]
        assert version["major"] == {"type": "number", "minimum": 1}
        assert version["minor"] == {"type": "number", "minimum": 0}
