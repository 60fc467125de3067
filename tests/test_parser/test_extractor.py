"""Tests for specgraph.parser.extractor."""

from __future__ import annotations

from typing import Any

from specgraph.models import PathInfo
from specgraph.parser.extractor import (
    assign_method_names,
    extract_paths,
    extract_servers,
    path_method_suffix,
)
from specgraph.parser.resolver import ReferenceResolver

DOC_URI = "file:///api/openapi.json"


def _extract(doc: dict[str, Any], **kwargs: Any) -> list[PathInfo]:
    resolver = ReferenceResolver({DOC_URI: doc}, entry_document_uri=DOC_URI)
    return extract_paths(doc.get("paths"), resolver.resolve_reference, doc.get("components"), **kwargs)


def _by_id(operations: list[PathInfo], operation_id: str) -> PathInfo:
    return next(op for op in operations if op.operation_id == operation_id)


class TestExtractPaths:
    def test_extracts_every_operation(self, petstore_31_raw: dict[str, Any]) -> None:
        operations = _extract(petstore_31_raw, global_security=petstore_31_raw["security"])
        assert [(op.method, op.path) for op in operations] == [
            ("GET", "/pets"),
            ("POST", "/pets"),
            ("GET", "/pets/{petId}"),
            ("DELETE", "/pets/{petId}"),
        ]

    def test_path_level_parameters_are_inherited(self, petstore_31_raw: dict[str, Any]) -> None:
        op = _by_id(_extract(petstore_31_raw), "deletePet")
        assert [p.name for p in op.parameters] == ["petId"]
        assert op.parameters[0].location == "path"
        assert op.deprecated is True

    def test_operation_parameters_override_path_parameters(self) -> None:
        doc = {
            "paths": {
                "/a/{id}": {
                    "parameters": [{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}],
                    "get": {
                        "parameters": [
                            {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}
                        ],
                        "responses": {},
                    },
                }
            }
        }
        op = _extract(doc)[0]
        assert len(op.parameters) == 1
        assert op.parameters[0].schema_ == {"type": "integer"}

    def test_schemas_keep_their_references(self, petstore_31_raw: dict[str, Any]) -> None:
        op = _by_id(_extract(petstore_31_raw), "createPet")
        schema = op.request_body.content["application/json"].schema_
        assert schema == {"$ref": "#/components/schemas/Pet"}
        assert op.request_body.required is True

    def test_referenced_parameters_are_resolved(self) -> None:
        doc = {
            "paths": {"/a": {"get": {"parameters": [{"$ref": "#/components/parameters/Limit"}], "responses": {}}}},
            "components": {"parameters": {"Limit": {"name": "limit", "in": "query", "schema": {"type": "integer"}}}},
        }
        op = _extract(doc)[0]
        assert op.parameters[0].name == "limit"

    def test_security_falls_back_to_global(self, petstore_31_raw: dict[str, Any]) -> None:
        operations = _extract(petstore_31_raw, global_security=[{"ApiKey": []}])
        assert _by_id(operations, "listPets").security == [{"ApiKey": []}]

    def test_empty_operation_security_disables_auth(self) -> None:
        doc = {"paths": {"/a": {"get": {"security": [], "responses": {}}}}}
        op = _extract(doc, global_security=[{"ApiKey": []}])[0]
        assert op.security == []

    def test_pointer_security_keys_are_normalized(self) -> None:
        doc = {
            "paths": {
                "/a": {"get": {"security": [{"#/components/securitySchemes/Token": ["read"]}], "responses": {}}}
            },
            "components": {"securitySchemes": {"Token": {"type": "http", "scheme": "bearer"}}},
        }
        op = _extract(doc)[0]
        assert op.security == [{"Token": ["read"]}]

    def test_oas3_ignores_reserved_header_parameters(self) -> None:
        doc = {
            "paths": {
                "/a": {
                    "get": {
                        "parameters": [
                            {"name": "Accept", "in": "header", "schema": {"type": "string"}},
                            {"name": "X-Trace", "in": "header", "schema": {"type": "string"}},
                        ],
                        "responses": {},
                    }
                }
            }
        }
        op = _extract(doc)[0]
        assert [p.name for p in op.parameters] == ["X-Trace"]

    def test_callbacks_are_extracted(self) -> None:
        doc = {
            "paths": {
                "/subscribe": {
                    "post": {
                        "callbacks": {
                            "onEvent": {
                                "{$request.body#/callbackUrl}": {
                                    "post": {"responses": {"200": {"description": "ok"}}}
                                }
                            }
                        },
                        "responses": {},
                    }
                }
            }
        }
        op = _extract(doc)[0]
        callback = op.callbacks["onEvent"][0]
        assert callback.path == "{$request.body#/callbackUrl}"
        assert callback.method == "POST"

    def test_additional_operations(self) -> None:
        doc = {"paths": {"/files": {"additionalOperations": {"COPY": {"responses": {}}}}}}
        op = _extract(doc)[0]
        assert op.method == "COPY"

    def test_query_method(self) -> None:
        doc = {"paths": {"/search": {"query": {"responses": {}}}}}
        assert _extract(doc)[0].method == "QUERY"

    def test_extensions_are_collected(self) -> None:
        doc = {"paths": {"/a": {"get": {"x-internal": True, "responses": {}}}}}
        assert _extract(doc)[0].extensions == {"x-internal": True}

    def test_none_paths(self) -> None:
        assert extract_paths(None) == []


class TestSwagger2:
    def _operations(self, swagger2_raw: dict[str, Any]) -> list[PathInfo]:
        return _extract(
            swagger2_raw,
            consumes=swagger2_raw["consumes"],
            produces=swagger2_raw["produces"],
            swagger2=True,
        )

    def test_body_parameter_becomes_request_body(self, swagger2_raw: dict[str, Any]) -> None:
        op = _by_id(self._operations(swagger2_raw), "addPet")
        assert op.request_body is not None
        assert op.request_body.content["application/json"].schema_ == {"$ref": "#/definitions/Pet"}
        assert all(p.location != "body" for p in op.parameters)

    def test_response_schema_becomes_content(self, swagger2_raw: dict[str, Any]) -> None:
        op = _by_id(self._operations(swagger2_raw), "addPet")
        assert op.responses["200"].content["application/json"].schema_ == {"$ref": "#/definitions/Pet"}

    def test_collection_format_maps_to_style(self, swagger2_raw: dict[str, Any]) -> None:
        op = _by_id(self._operations(swagger2_raw), "findPets")
        param = op.parameters[0]
        assert param.style == "pipeDelimited"
        assert param.explode is False
        assert param.schema_ == {"type": "array", "items": {"type": "string"}}

    def test_form_data_becomes_multipart_body(self, swagger2_raw: dict[str, Any]) -> None:
        op = _by_id(self._operations(swagger2_raw), "uploadPhoto")
        media = op.request_body.content["multipart/form-data"]
        assert media.schema_["properties"]["file"] == {"type": "string", "format": "binary"}
        assert media.schema_["required"] == ["file"]
        assert [p.name for p in op.parameters if p.location == "formData"] == ["file", "caption"]
        assert op.consumes == ["multipart/form-data"]

    def test_body_without_consumes_defaults_to_json(self) -> None:
        doc = {
            "paths": {
                "/a": {
                    "post": {
                        "parameters": [{"name": "body", "in": "body", "schema": {"type": "object"}}],
                        "responses": {},
                    }
                }
            }
        }
        op = _extract(doc, swagger2=True)[0]
        assert list(op.request_body.content) == ["application/json"]


class TestMethodNames:
    def test_operation_ids_are_camel_cased(self) -> None:
        ops = [PathInfo(path="/a", method="GET", operation_id="get-user_by ID")]
        assign_method_names(ops)
        assert ops[0].method_name == "getUserById"

    def test_path_derived_names(self) -> None:
        ops = [PathInfo(path="/users/{userId}/posts", method="GET")]
        assign_method_names(ops)
        assert ops[0].method_name == "getUsersByUserIdPosts"

    def test_collisions_get_numeric_suffix(self) -> None:
        ops = [
            PathInfo(path="/a", method="GET", operation_id="fetch"),
            PathInfo(path="/b", method="GET", operation_id="fetch"),
            PathInfo(path="/c", method="GET", operation_id="Fetch"),
        ]
        assign_method_names(ops)
        assert [op.method_name for op in ops] == ["fetch", "fetch2", "fetch3"]

    def test_customize_callback(self) -> None:
        ops = [PathInfo(path="/a", method="GET", operation_id="listPets")]
        assign_method_names(ops, lambda operation_id: operation_id.upper())
        assert ops[0].method_name == "LISTPETS"

    def test_path_method_suffix(self) -> None:
        assert path_method_suffix("/pet-store/{store_id}") == "PetStoreByStoreId"


class TestServers:
    def test_extract_servers(self) -> None:
        servers = extract_servers(
            [
                {"url": "https://{env}.api.test", "variables": {"env": {"default": "prod", "enum": ["prod"]}}},
                {"url": 42},
                "nonsense",
            ]
        )
        assert len(servers) == 1
        assert servers[0].variables["env"].default == "prod"

    def test_operation_servers_override_path_servers(self) -> None:
        doc = {
            "paths": {
                "/a": {
                    "servers": [{"url": "https://path.test"}],
                    "get": {"servers": [{"url": "https://op.test"}], "responses": {}},
                    "put": {"responses": {}},
                }
            }
        }
        get_op, put_op = _extract(doc)
        assert get_op.servers[0].url == "https://op.test"
        assert put_op.servers[0].url == "https://path.test"
