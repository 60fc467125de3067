"""Shared test fixtures for specgraph.

Provides reusable API documents, helpers that write them to disk and load
them through the full pipeline, isolated configuration environments, output
state management and a CLI runner. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from specgraph.output import OutputFormat, OutputManager, reset_output, set_output
from specgraph.spec import ApiSpec, parse_spec


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Raw documents
# ---------------------------------------------------------------------------


PETSTORE_31: dict[str, Any] = {
    "openapi": "3.1.0",
    "info": {"title": "Petstore", "version": "1.0.0"},
    "servers": [
        {"url": "https://{env}.petstore.test/v1", "variables": {"env": {"default": "api"}}}
    ],
    "tags": [{"name": "pets"}],
    "security": [{"ApiKey": []}],
    "paths": {
        "/pets": {
            "get": {
                "operationId": "listPets",
                "summary": "List all pets",
                "tags": ["pets"],
                "parameters": [
                    {"name": "limit", "in": "query", "schema": {"type": "integer", "format": "int32"}},
                    {"name": "X-Request-Id", "in": "header", "schema": {"type": "string"}},
                ],
                "responses": {
                    "200": {
                        "description": "A list of pets",
                        "content": {
                            "application/json": {
                                "schema": {"type": "array", "items": {"$ref": "#/components/schemas/Pet"}}
                            }
                        },
                    },
                    "default": {
                        "description": "Unexpected error",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Error"}}},
                    },
                },
            },
            "post": {
                "operationId": "createPet",
                "tags": ["pets"],
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                },
                "responses": {
                    "201": {
                        "description": "Created",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                    }
                },
            },
        },
        "/pets/{petId}": {
            "parameters": [
                {"name": "petId", "in": "path", "required": True, "schema": {"type": "string"}}
            ],
            "get": {
                "operationId": "showPetById",
                "tags": ["pets"],
                "responses": {
                    "200": {
                        "description": "A pet",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}},
                    },
                    "404": {"description": "Not found"},
                },
            },
            "delete": {
                "operationId": "deletePet",
                "tags": ["pets"],
                "deprecated": True,
                "responses": {"204": {"description": "Deleted"}},
            },
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "required": ["id", "name"],
                "properties": {
                    "id": {"type": "integer", "format": "int64", "readOnly": True},
                    "name": {"type": "string", "minLength": 1},
                    "tag": {"type": ["string", "null"]},
                },
            },
            "Error": {
                "type": "object",
                "properties": {"code": {"type": "integer"}, "message": {"type": "string"}},
            },
        },
        "securitySchemes": {"ApiKey": {"type": "apiKey", "name": "X-API-Key", "in": "header"}},
    },
}


PETSTORE_SWAGGER2: dict[str, Any] = {
    "swagger": "2.0",
    "info": {"title": "Petstore v2", "version": "1.0.0"},
    "host": "petstore.test",
    "basePath": "/v2",
    "schemes": ["https", "http"],
    "consumes": ["application/json"],
    "produces": ["application/json"],
    "paths": {
        "/pets": {
            "post": {
                "operationId": "addPet",
                "parameters": [
                    {"name": "body", "in": "body", "required": True, "schema": {"$ref": "#/definitions/Pet"}}
                ],
                "responses": {"200": {"description": "ok", "schema": {"$ref": "#/definitions/Pet"}}},
            },
            "get": {
                "operationId": "findPets",
                "parameters": [
                    {
                        "name": "tags",
                        "in": "query",
                        "type": "array",
                        "items": {"type": "string"},
                        "collectionFormat": "pipes",
                    }
                ],
                "responses": {
                    "200": {
                        "description": "ok",
                        "schema": {"type": "array", "items": {"$ref": "#/definitions/Pet"}},
                    }
                },
            },
        },
        "/pets/{petId}/photo": {
            "post": {
                "operationId": "uploadPhoto",
                "consumes": ["multipart/form-data"],
                "parameters": [
                    {"name": "petId", "in": "path", "required": True, "type": "string"},
                    {"name": "file", "in": "formData", "required": True, "type": "file"},
                    {"name": "caption", "in": "formData", "type": "string"},
                ],
                "responses": {"200": {"description": "ok"}},
            }
        },
    },
    "definitions": {
        "Pet": {
            "type": "object",
            "required": ["name"],
            "properties": {"id": {"type": "integer", "format": "int64"}, "name": {"type": "string"}},
        }
    },
    "securityDefinitions": {
        "petstore_auth": {
            "type": "oauth2",
            "flow": "implicit",
            "authorizationUrl": "https://petstore.test/oauth/authorize",
            "scopes": {"write:pets": "modify pets"},
        }
    },
}


POLYMORPHIC_31: dict[str, Any] = {
    "openapi": "3.1.0",
    "info": {"title": "Zoo", "version": "1.0.0"},
    "paths": {},
    "components": {
        "schemas": {
            "Pet": {
                "oneOf": [
                    {"$ref": "#/components/schemas/Cat"},
                    {"$ref": "#/components/schemas/Dog"},
                ],
                "discriminator": {"propertyName": "petType"},
            },
            "Cat": {
                "type": "object",
                "properties": {"petType": {"type": "string", "enum": ["cat"]}, "lives": {"type": "integer"}},
            },
            "Dog": {
                "type": "object",
                "properties": {"petType": {"const": "dog"}, "bark": {"type": "boolean"}},
            },
        }
    },
}


@pytest.fixture
def petstore_31_raw() -> dict[str, Any]:
    """A fresh copy of the OpenAPI 3.1 petstore document."""
    return copy.deepcopy(PETSTORE_31)


@pytest.fixture
def swagger2_raw() -> dict[str, Any]:
    """A fresh copy of the Swagger 2.0 petstore document."""
    return copy.deepcopy(PETSTORE_SWAGGER2)


@pytest.fixture
def polymorphic_raw() -> dict[str, Any]:
    """A fresh copy of the discriminated ``oneOf`` document."""
    return copy.deepcopy(POLYMORPHIC_31)


# ---------------------------------------------------------------------------
# Writing and loading documents
# ---------------------------------------------------------------------------


@pytest.fixture
def write_doc(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper writing a document to ``tmp_path`` as JSON or YAML.

    The helper takes ``(document, name="openapi.json")``; a ``.yaml`` /
    ``.yml`` name writes YAML. Nested names create sub-directories.
    """

    def _write(document: Any, name: str = "openapi.json") -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if name.endswith((".yaml", ".yml")):
            path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
        else:
            path.write_text(json.dumps(document), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def load_doc(write_doc: Callable[..., Path]) -> Callable[..., ApiSpec]:
    """Return a helper that writes a document and loads it into an ApiSpec."""

    def _load(document: Any, name: str = "openapi.json", config: Any = None) -> ApiSpec:
        return parse_spec(str(write_doc(document, name)), config)

    return _load


@pytest.fixture
def petstore_spec(load_doc: Callable[..., ApiSpec], petstore_31_raw: dict[str, Any]) -> ApiSpec:
    """The OpenAPI 3.1 petstore loaded through the full pipeline."""
    return load_doc(petstore_31_raw)


@pytest.fixture
def swagger2_spec(load_doc: Callable[..., ApiSpec], swagger2_raw: dict[str, Any]) -> ApiSpec:
    """The Swagger 2.0 petstore loaded through the full pipeline."""
    return load_doc(swagger2_raw, "swagger.json")


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_DATA_HOME at a subdirectory of tmp_path, clears all
    SPECGRAPH_* environment variables and changes the working directory to
    tmp_path so no real ``specgraph.json`` is picked up.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "SPECGRAPH_INPUT",
        "SPECGRAPH_DATE_TYPE",
        "SPECGRAPH_INT64_TYPE",
        "SPECGRAPH_ENUM_STYLE",
        "SPECGRAPH_DECODING_DEPTH",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
