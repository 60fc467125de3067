"""Tests for specgraph.parser.validator."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from specgraph.exceptions import ValidationError
from specgraph.parser.validator import validate_spec


def _oas(**extra: Any) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "openapi": "3.1.0",
        "info": {"title": "Test", "version": "1.0"},
        "paths": {},
    }
    doc.update(extra)
    return doc


def _op(**extra: Any) -> dict[str, Any]:
    operation: dict[str, Any] = {"responses": {"200": {"description": "ok"}}}
    operation.update(extra)
    return operation


class TestVersionAndInfo:
    def test_accepts_fixtures(self, petstore_31_raw: dict, swagger2_raw: dict, polymorphic_raw: dict) -> None:
        validate_spec(petstore_31_raw)
        validate_spec(swagger2_raw)
        validate_spec(polymorphic_raw)

    def test_missing_version(self) -> None:
        with pytest.raises(ValidationError, match="Unsupported or missing OpenAPI/Swagger version"):
            validate_spec({"info": {"title": "t", "version": "1"}})

    def test_missing_title(self) -> None:
        with pytest.raises(ValidationError, match="'title'"):
            validate_spec(_oas(info={"version": "1.0"}))

    def test_swagger2_requires_paths(self) -> None:
        with pytest.raises(ValidationError, match="must contain a 'paths' object"):
            validate_spec({"swagger": "2.0", "info": {"title": "t", "version": "1"}})

    def test_oas3_requires_some_content(self) -> None:
        doc = _oas()
        del doc["paths"]
        with pytest.raises(ValidationError, match="at least one of"):
            validate_spec(doc)

    def test_components_only_document(self) -> None:
        doc = _oas(components={"schemas": {"Pet": {"type": "object"}}})
        del doc["paths"]
        validate_spec(doc)

    def test_self_must_not_have_fragment(self) -> None:
        with pytest.raises(ValidationError, match="must not contain a fragment"):
            validate_spec(_oas(**{"$self": "https://api.test/openapi.json#top"}))

    def test_error_exit_code(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_spec({"openapi": "3.1.0"})
        assert exc_info.value.exit_code == 4


class TestServers:
    def test_undefined_variable(self) -> None:
        doc = _oas(servers=[{"url": "https://{region}.api.test", "variables": {"env": {"default": "prod"}}}])
        with pytest.raises(ValidationError, match='"region" is not defined in variables'):
            validate_spec(doc)

    def test_missing_variables_object(self) -> None:
        doc = _oas(servers=[{"url": "https://{region}.api.test"}])
        with pytest.raises(ValidationError, match="'variables' is missing"):
            validate_spec(doc)

    def test_duplicate_server_names(self) -> None:
        doc = _oas(
            servers=[
                {"url": "https://a.api.test", "name": "prod"},
                {"url": "https://b.api.test", "name": "prod"},
            ]
        )
        with pytest.raises(ValidationError, match="must be unique"):
            validate_spec(doc)

    def test_default_must_be_in_enum(self) -> None:
        doc = _oas(
            servers=[
                {
                    "url": "https://{env}.api.test",
                    "variables": {"env": {"default": "dev", "enum": ["prod", "staging"]}},
                }
            ]
        )
        with pytest.raises(ValidationError, match="default MUST be present in enum"):
            validate_spec(doc)

    def test_query_in_url(self) -> None:
        with pytest.raises(ValidationError, match="MUST NOT include query or fragment"):
            validate_spec(_oas(servers=[{"url": "https://api.test/?debug=1"}]))

    def test_unbalanced_braces(self) -> None:
        with pytest.raises(ValidationError, match="without a matching"):
            validate_spec(_oas(servers=[{"url": "https://{env.api.test", "variables": {}}]))

    def test_operation_servers_are_checked(self) -> None:
        doc = _oas(paths={"/a": {"get": _op(servers=[{"url": "https://{x}.test"}])}})
        with pytest.raises(ValidationError, match="'variables' is missing"):
            validate_spec(doc)


class TestPaths:
    def test_path_must_start_with_slash(self) -> None:
        with pytest.raises(ValidationError, match='must start with "/"'):
            validate_spec(_oas(paths={"pets": {}}))

    def test_equivalent_templates(self) -> None:
        doc = _oas(
            paths={
                "/pets/{id}": {
                    "get": _op(parameters=[{"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}])
                },
                "/pets/{name}": {
                    "get": _op(parameters=[{"name": "name", "in": "path", "required": True, "schema": {"type": "string"}}])
                },
            }
        )
        with pytest.raises(ValidationError):
            validate_spec(doc)

    def test_operation_requires_responses(self) -> None:
        with pytest.raises(ValidationError, match="must define 'responses'"):
            validate_spec(_oas(paths={"/a": {"get": {}}}))

    def test_missing_path_parameter(self) -> None:
        with pytest.raises(ValidationError, match="missing a corresponding 'in: path'"):
            validate_spec(_oas(paths={"/pets/{id}": {"get": _op()}}))

    def test_path_parameter_must_be_required(self) -> None:
        param = {"name": "id", "in": "path", "schema": {"type": "string"}}
        with pytest.raises(ValidationError, match="must be marked as required"):
            validate_spec(_oas(paths={"/pets/{id}": {"get": _op(parameters=[param])}}))

    def test_path_level_parameters_count(self) -> None:
        param = {"name": "id", "in": "path", "required": True, "schema": {"type": "string"}}
        validate_spec(_oas(paths={"/pets/{id}": {"parameters": [param], "get": _op()}}))

    def test_duplicate_operation_ids(self) -> None:
        doc = _oas(
            paths={
                "/a": {"get": _op(operationId="dup")},
                "/b": {"get": _op(operationId="dup")},
            }
        )
        with pytest.raises(ValidationError, match='Duplicate operationId "dup"'):
            validate_spec(doc)

    def test_additional_operations_conflict_with_fixed_methods(self) -> None:
        doc = _oas(openapi="3.2.0", paths={"/a": {"additionalOperations": {"GET": _op()}}})
        with pytest.raises(ValidationError, match="conflicts with a fixed HTTP method"):
            validate_spec(doc)

    def test_additional_operations_custom_method(self) -> None:
        validate_spec(_oas(openapi="3.2.0", paths={"/a": {"additionalOperations": {"COPY": _op()}}}))


class TestParameters:
    def _with_param(self, param: dict[str, Any]) -> dict[str, Any]:
        return _oas(paths={"/a": {"get": _op(parameters=[param])}})

    def test_schema_and_content_are_exclusive(self) -> None:
        param = {
            "name": "q",
            "in": "query",
            "schema": {"type": "string"},
            "content": {"application/json": {}},
        }
        with pytest.raises(ValidationError, match="mutually exclusive"):
            validate_spec(self._with_param(param))

    def test_schema_or_content_required(self) -> None:
        with pytest.raises(ValidationError, match="either 'schema' or 'content'"):
            validate_spec(self._with_param({"name": "q", "in": "query"}))

    def test_invalid_style_for_location(self) -> None:
        param = {"name": "q", "in": "query", "style": "matrix", "schema": {"type": "string"}}
        with pytest.raises(ValidationError, match="invalid style 'matrix'"):
            validate_spec(self._with_param(param))

    def test_deep_object_needs_object_schema(self) -> None:
        param = {"name": "q", "in": "query", "style": "deepObject", "schema": {"type": "string"}}
        with pytest.raises(ValidationError, match="deepObject"):
            validate_spec(self._with_param(param))

    def test_querystring_requires_content(self) -> None:
        param = {"name": "qs", "in": "querystring", "schema": {"type": "object"}}
        with pytest.raises(ValidationError, match="MUST use 'content'"):
            validate_spec(self._with_param(param))

    def test_query_and_querystring_are_exclusive(self) -> None:
        doc = _oas(
            paths={
                "/a": {
                    "get": _op(
                        parameters=[
                            {"name": "q", "in": "query", "schema": {"type": "string"}},
                            {"name": "qs", "in": "querystring", "content": {"application/json": {}}},
                        ]
                    )
                }
            }
        )
        with pytest.raises(ValidationError, match="both 'query' and 'querystring'"):
            validate_spec(doc)

    def test_reserved_headers_are_skipped(self) -> None:
        validate_spec(self._with_param({"name": "Accept", "in": "header"}))

    def test_duplicate_parameters(self) -> None:
        param = {"name": "q", "in": "query", "schema": {"type": "string"}}
        doc = _oas(paths={"/a": {"get": _op(parameters=[param, copy.deepcopy(param)])}})
        with pytest.raises(ValidationError, match="Duplicate parameter 'q'"):
            validate_spec(doc)


class TestSecurityAndSchemas:
    def test_oauth2_urls_require_https(self) -> None:
        doc = _oas(
            components={
                "securitySchemes": {
                    "oauth": {
                        "type": "oauth2",
                        "flows": {
                            "clientCredentials": {"tokenUrl": "http://auth.test/token", "scopes": {}}
                        },
                    }
                }
            }
        )
        with pytest.raises(ValidationError, match="must use https"):
            validate_spec(doc)

    def test_api_key_needs_location(self) -> None:
        doc = _oas(components={"securitySchemes": {"key": {"type": "apiKey", "name": "X-Key"}}})
        with pytest.raises(ValidationError, match="must define 'in'"):
            validate_spec(doc)

    def test_invalid_component_key(self) -> None:
        doc = _oas(components={"schemas": {"Bad Name": {"type": "object"}}})
        with pytest.raises(ValidationError, match="Invalid component key"):
            validate_spec(doc)

    def test_discriminator_requires_property_name(self) -> None:
        doc = _oas(components={"schemas": {"Pet": {"oneOf": [], "discriminator": {}}}})
        with pytest.raises(ValidationError, match="propertyName"):
            validate_spec(doc)

    def test_swagger2_string_discriminator(self, swagger2_raw: dict[str, Any]) -> None:
        swagger2_raw["definitions"]["Pet"]["discriminator"] = "petType"
        validate_spec(swagger2_raw)

    def test_xml_node_type_excludes_attribute(self) -> None:
        doc = _oas(
            components={"schemas": {"Pet": {"type": "string", "xml": {"nodeType": "attribute", "attribute": True}}}}
        )
        with pytest.raises(ValidationError, match="MUST NOT define 'attribute'"):
            validate_spec(doc)

    def test_duplicate_tags(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate tag name"):
            validate_spec(_oas(tags=[{"name": "pets"}, {"name": "pets"}]))

    def test_circular_tag_parents(self) -> None:
        doc = _oas(tags=[{"name": "a", "parent": "b"}, {"name": "b", "parent": "a"}])
        with pytest.raises(ValidationError, match="Circular tag parent"):
            validate_spec(doc)
