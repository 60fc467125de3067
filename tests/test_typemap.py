"""Tests for specgraph.typemap.python_type."""

from __future__ import annotations

from typing import Any

import pytest

from specgraph.models import DateType, EnumStyle, GeneratorOptions, Int64Type
from specgraph.typemap import python_type


class TestScalars:
    @pytest.mark.parametrize(
        ("schema", "expected"),
        [
            ({"type": "string"}, "str"),
            ({"type": "integer"}, "int"),
            ({"type": "integer", "format": "int64"}, "int"),
            ({"type": "number", "format": "double"}, "float"),
            ({"type": "boolean"}, "bool"),
            ({"type": "null"}, "None"),
            ({"type": "string", "format": "binary"}, "bytes"),
            ({"type": "string", "format": "date-time"}, "str"),
            ({}, "Any"),
            (True, "Any"),
        ],
    )
    def test_defaults(self, schema: Any, expected: str) -> None:
        assert python_type(schema) == expected

    def test_date_and_int64_options(self) -> None:
        options = GeneratorOptions(date_type=DateType.DATETIME, int64_type=Int64Type.STR)
        assert python_type({"type": "string", "format": "date"}, options) == "datetime.date"
        assert python_type({"type": "string", "format": "date-time"}, options) == "datetime.datetime"
        assert python_type({"type": "integer", "format": "int64"}, options) == "str"


class TestContainers:
    def test_arrays_and_tuples(self) -> None:
        assert python_type({"type": "array", "items": {"type": "integer"}}) == "list[int]"
        assert python_type({"type": "array"}) == "list[Any]"
        assert python_type({"type": "array", "prefixItems": [{"type": "string"}, {"type": "number"}]}) == (
            "tuple[str, float]"
        )

    def test_objects(self) -> None:
        assert python_type({"type": "object"}) == "dict[str, Any]"
        assert python_type({"type": "object", "additionalProperties": {"type": "string"}}) == "dict[str, str]"
        assert python_type({"properties": {"a": {"type": "string"}}}) == "dict[str, Any]"
        assert python_type({"items": {"type": "string"}}) == "list[str]"


class TestNullability:
    def test_type_lists(self) -> None:
        assert python_type({"type": ["string", "null"]}) == "Optional[str]"
        assert python_type({"type": ["string", "integer"]}) == "Union[str, int]"
        assert python_type({"type": ["null"]}) == "None"

    def test_nullable_flag(self) -> None:
        assert python_type({"type": "integer", "nullable": True}) == "Optional[int]"


class TestReferences:
    def test_ref_names(self) -> None:
        assert python_type({"$ref": "#/components/schemas/Pet"}) == "Pet"
        assert python_type({"$ref": "#/components/schemas/Pet"}, known_names={"Pet"}) == "Pet"
        assert python_type({"$ref": "#/components/schemas/Ghost"}, known_names={"Pet"}) == "Any"

    def test_custom_ref_namer(self) -> None:
        hint = python_type(
            {"type": "array", "items": {"$ref": "common.yaml#/Animal"}},
            ref_namer=lambda reference: "Pet",
        )
        assert hint == "list[Pet]"

    def test_ref_namer_receives_the_reference_object(self) -> None:
        reference = {"$ref": "common.yaml#/Animal"}
        seen: list[Any] = []

        def namer(node: dict[str, Any]) -> str:
            seen.append(node)
            return "Animal"

        assert python_type(reference, ref_namer=namer) == "Animal"
        assert seen[0] is reference


class TestCompositions:
    def test_one_of(self) -> None:
        schema = {"oneOf": [{"$ref": "#/components/schemas/Cat"}, {"$ref": "#/components/schemas/Dog"}]}
        assert python_type(schema) == "Union[Cat, Dog]"

    def test_any_of_with_null(self) -> None:
        assert python_type({"anyOf": [{"type": "string"}, {"type": "null"}]}) == "Optional[str]"

    def test_all_of(self) -> None:
        assert python_type({"allOf": [{"$ref": "#/components/schemas/Pet"}]}) == "Pet"
        assert python_type({"allOf": [{"type": "object"}, {"$ref": "#/components/schemas/Base"}]}) == "Base"
        assert python_type({"allOf": [{"type": "object"}, {"type": "object"}]}) == "dict[str, Any]"


class TestEnums:
    def test_enum_style_keeps_scalar(self) -> None:
        assert python_type({"type": "string", "enum": ["a", "b"]}) == "str"
        assert python_type({"enum": [1, "a"]}) == "Union[int, str]"
        assert python_type({"const": 3}) == "int"

    def test_union_style(self) -> None:
        options = GeneratorOptions(enum_style=EnumStyle.UNION)
        assert python_type({"type": "string", "enum": ["a", "b"]}, options) == "Literal['a', 'b']"
        assert python_type({"enum": ["a"], "nullable": True}, options) == "Optional[Literal['a']]"
        assert python_type({"const": "dog"}, options) == "Literal['dog']"
