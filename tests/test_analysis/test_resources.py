"""Tests for specgraph.analysis.resources."""

from __future__ import annotations

from typing import Any

import pytest

from specgraph.analysis.resources import (
    classify_action,
    discover_resources,
    get_form_properties,
    get_model_name,
    resource_name,
)
from specgraph.models import MediaType, Parameter, PathInfo, RequestBody, Response
from specgraph.parser.resolver import ReferenceResolver
from specgraph.spec import ApiSpec

DOC_URI = "file:///api/openapi.json"


@pytest.fixture
def resolver() -> ReferenceResolver:
    return ReferenceResolver({DOC_URI: {"openapi": "3.1.0"}}, entry_document_uri=DOC_URI)


def _op(method: str, path: str, **extra: Any) -> PathInfo:
    return PathInfo(path=path, method=method, **extra)


def _json_body(schema: Any, media_type: str = "application/json") -> RequestBody:
    return RequestBody(content={media_type: MediaType(schema=schema)})


class TestDiscoverResources:
    def test_petstore(self, petstore_spec: ApiSpec) -> None:
        (resource,) = petstore_spec.resources
        assert resource.name == "pets"
        assert resource.model_name == "Pet"
        assert resource.is_editable is True
        assert [op.action for op in resource.operations] == ["list", "create", "getById", "delete"]
        assert [op.method_name for op in resource.operations] == [
            "listPets",
            "createPet",
            "showPetById",
            "deletePet",
        ]

    def test_form_and_list_properties(self, petstore_spec: ApiSpec) -> None:
        (resource,) = petstore_spec.resources
        assert [(p.name, p.required) for p in resource.form_properties] == [
            ("id", True),
            ("name", True),
            ("tag", False),
        ]
        assert [p.name for p in resource.list_properties] == ["name"]

    def test_groups_keep_first_appearance_order(self, resolver: ReferenceResolver) -> None:
        operations = [
            _op("GET", "/store/inventory"),
            _op("GET", "/users", tags=["Pet Owners"]),
            _op("GET", "/store/orders"),
        ]
        resources = discover_resources(operations, resolver)
        assert [(r.name, len(r.operations)) for r in resources] == [("store", 2), ("petOwners", 1)]
        assert all(r.is_editable is False for r in resources)

    def test_custom_action_flags(self, resolver: ReferenceResolver) -> None:
        operations = [
            _op(
                "POST",
                "/pets/{petId}/start",
                operation_id="startPet",
                parameters=[Parameter(name="petId", location="path", required=True)],
            ),
            _op("POST", "/pets/search"),
        ]
        (resource,) = discover_resources(operations, resolver)
        start, search = resource.operations
        assert (start.action, start.is_custom_item_action, start.is_custom_collection_action) == (
            "startPet",
            True,
            False,
        )
        assert (search.action, search.is_custom_item_action, search.is_custom_collection_action) == (
            "postPetsSearch",
            False,
            True,
        )
        assert search.method_name == "postPetsSearch"


class TestResourceName:
    @pytest.mark.parametrize(
        ("path", "tags", "expected"),
        [
            ("/pets", ["Pet Store"], "petStore"),
            ("/store/inventory", [], "store"),
            ("/{id}", [], "default"),
            ("/", [], "default"),
        ],
    )
    def test_names(self, path: str, tags: list[str], expected: str) -> None:
        assert resource_name(_op("GET", path, tags=tags)) == expected


class TestClassifyAction:
    @pytest.mark.parametrize(
        ("method", "path", "operation_id", "expected"),
        [
            ("GET", "/pets", None, "list"),
            ("GET", "/pets/{id}", None, "getById"),
            ("QUERY", "/pets", None, "list"),
            ("POST", "/pets", "addPet", "create"),
            ("PUT", "/pets/{id}", None, "update"),
            ("PATCH", "/pets/{id}", "patchPet", "update"),
            ("DELETE", "/pets/{id}", None, "delete"),
            ("DELETE", "/pets/{id}/tags/{tagId}", None, "delete"),
            ("POST", "/pets", "searchPets", "searchPets"),
            ("POST", "/pets", "upload_photo", "uploadPhoto"),
            ("POST", "/pets/search", None, "postPetsSearch"),
            ("POST", "/pets/{id}", None, "postPetsById"),
            ("PUT", "/pets", None, "putPets"),
            ("PUT", "/pets", "replaceAll", "replaceAll"),
        ],
    )
    def test_actions(self, method: str, path: str, operation_id: str, expected: str) -> None:
        assert classify_action(_op(method, path, operation_id=operation_id)) == expected


class TestModelName:
    def test_from_request_body(self) -> None:
        ops = [_op("POST", "/orders", request_body=_json_body({"$ref": "#/components/schemas/Order"}))]
        assert get_model_name("orders", ops) == "Order"

    def test_from_array_response(self) -> None:
        response = Response(
            content={
                "application/json": MediaType(
                    schema={"type": "array", "items": {"$ref": "#/components/schemas/OrderLine"}}
                )
            }
        )
        ops = [_op("GET", "/lines", responses={"200": response})]
        assert get_model_name("lines", ops) == "OrderLine"

    def test_fallback_is_singular_pascal_case(self) -> None:
        assert get_model_name("categories", []) == "Category"
        assert get_model_name("petOwners", [_op("DELETE", "/x/{id}")]) == "PetOwner"


class TestFormProperties:
    def test_fallback(self, resolver: ReferenceResolver) -> None:
        (prop,) = get_form_properties([_op("GET", "/ping")], resolver)
        assert (prop.name, prop.schema_) == ("id", {"type": "string"})

    def test_form_bodies_drop_type_lists_and_references(self, resolver: ReferenceResolver) -> None:
        schema = {
            "type": "object",
            "properties": {
                "nickname": {"type": ["string", "null"], "maxLength": 20},
                "owner": {"$ref": "#/components/schemas/Owner"},
            },
        }
        op = _op("POST", "/pets", request_body=_json_body(schema, "multipart/form-data"))
        (prop,) = get_form_properties([op], resolver)
        assert prop.name == "nickname"
        assert prop.schema_ == {"maxLength": 20}

    def test_discriminator_property_is_synthesized(self, resolver: ReferenceResolver) -> None:
        schema = {
            "oneOf": [{"type": "object"}, {"type": "object"}],
            "discriminator": {"propertyName": "kind"},
        }
        (prop,) = get_form_properties([_op("POST", "/shapes", request_body=_json_body(schema))], resolver)
        assert prop.name == "kind"
        assert prop.schema_["type"] == "string"
        assert prop.schema_["discriminator"] == {"propertyName": "kind"}

    def test_all_of_chains_are_flattened(self, resolver: ReferenceResolver) -> None:
        schema = {
            "allOf": [
                {"type": "object", "required": ["id"], "properties": {"id": {"type": "integer"}}},
                {"type": "object", "properties": {"label": {"type": "string"}}},
            ]
        }
        props = get_form_properties([_op("POST", "/labels", request_body=_json_body(schema))], resolver)
        assert [(p.name, p.required) for p in props] == [("id", True), ("label", False)]

    def test_swagger2_form_data(self, swagger2_spec: ApiSpec) -> None:
        upload = next(op for op in swagger2_spec.operations if op.operation_id == "uploadPhoto")
        props = get_form_properties([upload], swagger2_spec.resolver)
        assert [p.name for p in props] == ["file", "caption"]
