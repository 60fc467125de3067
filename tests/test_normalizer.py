"""Tests for specgraph.normalizer."""

from __future__ import annotations

from typing import Any, Callable

from specgraph.diagnostics import DiagnosticKind
from specgraph.spec import ApiSpec


def _schemas(spec: ApiSpec) -> dict[str, Any]:
    return spec.spec["components"]["schemas"]


def _names(spec: ApiSpec) -> list[str]:
    return [entry.name for entry in spec.schemas]


class TestRegistry:
    def test_component_schemas_are_registered(self, petstore_spec: ApiSpec) -> None:
        assert [entry.name for entry in petstore_spec.schemas] == ["Pet", "Error"]
        assert petstore_spec.normalizer.get_schema("Pet") is _schemas(petstore_spec)["Pet"]

    def test_swagger2_definitions(self, swagger2_spec: ApiSpec) -> None:
        assert _names(swagger2_spec) == ["Pet"]

    def test_name_of_and_origin(self, petstore_spec: ApiSpec) -> None:
        normalizer = petstore_spec.normalizer
        assert normalizer.name_of(_schemas(petstore_spec)["Error"]) == "Error"
        assert normalizer.name_of({"type": "object"}) is None
        assert normalizer.origin_of("Pet") == petstore_spec.document_uri

    def test_names_are_pascal_cased(self, load_doc: Callable[..., ApiSpec]) -> None:
        spec = load_doc(
            {
                "openapi": "3.1.0",
                "info": {"title": "t", "version": "1"},
                "components": {"schemas": {"pet_owner": {"type": "object"}}},
            }
        )
        assert _names(spec) == ["PetOwner"]

    def test_duplicate_names_keep_first(self, load_doc: Callable[..., ApiSpec]) -> None:
        spec = load_doc(
            {
                "openapi": "3.1.0",
                "info": {"title": "t", "version": "1"},
                "components": {"schemas": {"pet": {"title": "first"}, "Pet": {"title": "second"}}},
            }
        )
        assert _names(spec) == ["Pet"]
        assert spec.normalizer.get_schema("Pet") == {"title": "first"}
        assert spec.diagnostics.of_kind(DiagnosticKind.DUPLICATE_SCHEMA)

    def test_standalone_schema_documents(
        self, load_doc: Callable[..., ApiSpec], write_doc: Callable[..., Any]
    ) -> None:
        write_doc({"type": "object", "properties": {"kcal": {"type": "integer"}}}, "schemas/pet-food.schema.json")
        spec = load_doc(
            {
                "openapi": "3.1.0",
                "info": {"title": "t", "version": "1"},
                "components": {"schemas": {"Meal": {"$ref": "schemas/pet-food.schema.json"}}},
            }
        )
        assert _names(spec) == ["Meal", "PetFood"]
        assert spec.normalizer.model_name_for_ref("schemas/pet-food.schema.json") == "PetFood"

    def test_model_name_for_reference_inside_another_document(
        self, load_doc: Callable[..., ApiSpec], write_doc: Callable[..., Any]
    ) -> None:
        shared = {
            "openapi": "3.1.0",
            "info": {"title": "shared", "version": "1"},
            "components": {
                "schemas": {
                    "Pet": {"type": "object", "properties": {"owner": {"$ref": "#/components/schemas/Owner"}}},
                    "Owner": {"type": "object"},
                }
            },
        }
        write_doc(shared, "shared.json")
        spec = load_doc(
            {
                "openapi": "3.1.0",
                "info": {"title": "t", "version": "1"},
                "components": {"schemas": {"Animal": {"$ref": "shared.json#/components/schemas/Pet"}}},
            }
        )
        pet = spec.resolve(_schemas(spec)["Animal"])
        reference = pet["properties"]["owner"]
        assert spec.normalizer.model_name_for_reference(reference) == "Owner"
        assert spec.diagnostics.of_kind(DiagnosticKind.UNRESOLVED_REFERENCE) == []

    def test_model_name_for_unregistered_ref(self, petstore_spec: ApiSpec) -> None:
        assert petstore_spec.normalizer.model_name_for_ref("#/components/schemas/Pet") == "Pet"
        assert petstore_spec.normalizer.model_name_for_ref("#/components/responses/not_found") == "NotFound"


class TestPolymorphicOptions:
    def test_inferred_from_branch_values(self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict) -> None:
        spec = load_doc(polymorphic_raw)
        schemas = _schemas(spec)
        options = spec.get_polymorphic_schema_options(schemas["Pet"])
        assert [option.name for option in options] == ["cat", "dog"]
        assert options[0].schema_ is schemas["Cat"]
        assert options[1].schema_ is schemas["Dog"]

    def test_accepts_reference_to_parent(self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict) -> None:
        spec = load_doc(polymorphic_raw)
        options = spec.get_polymorphic_schema_options({"$ref": "#/components/schemas/Pet"})
        assert [option.name for option in options] == ["cat", "dog"]

    def test_explicit_mapping(self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict) -> None:
        polymorphic_raw["components"]["schemas"]["Pet"]["discriminator"]["mapping"] = {
            "kitty": "#/components/schemas/Cat",
            "doggo": "Dog",
        }
        spec = load_doc(polymorphic_raw)
        options = spec.get_polymorphic_schema_options(_schemas(spec)["Pet"])
        assert [option.name for option in options] == ["kitty", "doggo"]
        assert options[1].schema_ is _schemas(spec)["Dog"]

    def test_unresolvable_mapping_is_dropped(self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict) -> None:
        polymorphic_raw["components"]["schemas"]["Pet"]["discriminator"]["mapping"] = {
            "cat": "#/components/schemas/Cat",
            "ghost": "#/components/schemas/Ghost",
        }
        spec = load_doc(polymorphic_raw)
        options = spec.get_polymorphic_schema_options(_schemas(spec)["Pet"])
        assert [option.name for option in options] == ["cat"]
        assert spec.diagnostics.of_kind(DiagnosticKind.DROPPED_BRANCH)

    def test_branch_without_single_value_is_dropped(
        self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict
    ) -> None:
        polymorphic_raw["components"]["schemas"]["Dog"]["properties"]["petType"] = {"type": "string"}
        spec = load_doc(polymorphic_raw)
        options = spec.get_polymorphic_schema_options(_schemas(spec)["Pet"])
        assert [option.name for option in options] == ["cat"]
        dropped = spec.diagnostics.of_kind(DiagnosticKind.DROPPED_BRANCH)
        assert "does not declare a single enum or const value" in dropped[0].message

    def test_value_found_through_all_of(self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict) -> None:
        schemas = polymorphic_raw["components"]["schemas"]
        schemas["Cat"] = {
            "allOf": [
                {"$ref": "#/components/schemas/Animal"},
                {"properties": {"petType": {"const": "cat"}}},
            ]
        }
        schemas["Animal"] = {"type": "object", "properties": {"name": {"type": "string"}}}
        spec = load_doc(polymorphic_raw)
        assert [o.name for o in spec.get_polymorphic_schema_options(_schemas(spec)["Pet"])] == ["cat", "dog"]

    def test_no_discriminator(self, petstore_spec: ApiSpec) -> None:
        assert petstore_spec.get_polymorphic_schema_options(_schemas(petstore_spec)["Pet"]) == []


class TestDiscriminators:
    def test_inferred_mapping(self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict) -> None:
        spec = load_doc(polymorphic_raw)
        entry = spec.discriminators["Pet"]
        assert entry.property_name == "petType"
        assert entry.mapping == {"cat": "Cat", "dog": "Dog"}
        assert entry.default_mapping is None

    def test_branch_with_sibling_description_keeps_its_mapping(
        self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict
    ) -> None:
        polymorphic_raw["components"]["schemas"]["Pet"]["oneOf"][0] = {
            "$ref": "#/components/schemas/Cat",
            "description": "A cat",
        }
        spec = load_doc(polymorphic_raw)
        assert spec.discriminators["Pet"].mapping == {"cat": "Cat", "dog": "Dog"}
        assert spec.diagnostics.of_kind(DiagnosticKind.DROPPED_BRANCH) == []

    def test_anonymous_branch_is_reported(self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict) -> None:
        polymorphic_raw["components"]["schemas"]["Pet"]["oneOf"].append(
            {"type": "object", "properties": {"petType": {"const": "bird"}}}
        )
        spec = load_doc(polymorphic_raw)
        assert spec.discriminators["Pet"].mapping == {"cat": "Cat", "dog": "Dog"}
        dropped = spec.diagnostics.of_kind(DiagnosticKind.DROPPED_BRANCH)
        assert len(dropped) == 1
        assert '"bird"' in dropped[0].message

    def test_explicit_mapping_drops_dangling_targets(
        self, load_doc: Callable[..., ApiSpec], polymorphic_raw: dict
    ) -> None:
        polymorphic_raw["components"]["schemas"]["Pet"]["discriminator"].update(
            {
                "mapping": {"cat": "#/components/schemas/Cat", "ghost": "#/components/schemas/Ghost"},
                "defaultMapping": "#/components/schemas/Dog",
            }
        )
        spec = load_doc(polymorphic_raw)
        entry = spec.discriminators["Pet"]
        assert entry.mapping == {"cat": "Cat"}
        assert entry.default_mapping == "Dog"
        assert any("Ghost" in d.message for d in spec.diagnostics.of_kind(DiagnosticKind.DROPPED_BRANCH))

    def test_swagger2_string_discriminator(self, load_doc: Callable[..., ApiSpec], swagger2_raw: dict) -> None:
        swagger2_raw["definitions"]["Pet"]["discriminator"] = "petType"
        spec = load_doc(swagger2_raw)
        assert spec.discriminators["Pet"].property_name == "petType"
        assert spec.discriminators["Pet"].mapping == {}

    def test_schemas_without_discriminator_are_absent(self, petstore_spec: ApiSpec) -> None:
        assert petstore_spec.discriminators == {}
