"""Map JSON Schema values to Python type-hint strings.

The hints are descriptive strings (``"list[Pet]"``, ``"Optional[int]"``)
for emitters and for the ``inspect`` command. They are never evaluated.

**Mapping rules:**

* ``$ref`` / ``$dynamicRef`` become the registered model name. A reference
  whose name is not registered maps to ``Any``.
* ``string`` is ``str``. ``format: date`` / ``date-time`` become
  ``datetime.date`` / ``datetime.datetime`` when
  :attr:`~specgraph.models.GeneratorOptions.date_type` is ``datetime``.
  ``format: binary`` / ``byte`` become ``bytes``.
* ``integer`` is ``int``, or ``str`` for ``format: int64`` when
  :attr:`~specgraph.models.GeneratorOptions.int64_type` is ``str``.
* ``number`` is ``float``, ``boolean`` is ``bool`` and ``null`` is ``None``.
* ``array`` is ``list[...]``; ``prefixItems`` give a ``tuple[...]``.
* ``object`` is ``dict[str, ...]`` keyed by the ``additionalProperties``
  schema, or ``dict[str, Any]``.
* ``enum`` / ``const`` become ``Literal[...]`` when
  :attr:`~specgraph.models.GeneratorOptions.enum_style` is ``union``; with the
  ``enum`` style an inline enum keeps its scalar type (only named schemas get
  an ``Enum`` class).
* ``oneOf`` / ``anyOf`` become ``Union[...]``. A 3.1 type list containing
  ``null`` or a 3.0 ``nullable: true`` wraps the hint in ``Optional[...]``.
"""

from __future__ import annotations

from typing import Any, Callable, Collection, Optional

from specgraph.models import DateType, EnumStyle, GeneratorOptions, Int64Type
from specgraph.naming import model_name_from_uri


# ---------------------------------------------------------------------------
# Scalar tables
# ---------------------------------------------------------------------------

_TYPE_MAP: dict[str, str] = {
    "string": "str",
    "integer": "int",
    "number": "float",
    "boolean": "bool",
    "null": "None",
}

_FORMAT_OVERRIDES: dict[tuple[str, str], str] = {
    ("string", "binary"): "bytes",
    ("string", "byte"): "bytes",
    ("number", "float"): "float",
    ("number", "double"): "float",
}

_DATE_FORMATS: dict[str, str] = {
    "date": "datetime.date",
    "date-time": "datetime.datetime",
}

# Nesting bound for self-referential inline schemas.
_MAX_DEPTH = 12


def python_type(
    schema: Any,
    options: Optional[GeneratorOptions] = None,
    known_names: Optional[Collection[str]] = None,
    ref_namer: Optional[Callable[[dict[str, Any]], str]] = None,
) -> str:
    """Return the Python type hint for *schema*.

    Args:
        schema: A JSON Schema value (``dict`` or ``bool``), possibly a
            reference object.
        options: Type-mapping options. Defaults apply when omitted.
        known_names: Registered model names. When given, references to any
            other name map to ``Any``.
        ref_namer: Turns a reference object into a model name. Defaults to
            :func:`~specgraph.naming.model_name_from_uri` on its ``$ref``.

    Returns:
        A type-hint string such as ``"list[Pet]"``.

    Example::

        >>> python_type({"type": "array", "items": {"type": "integer"}})
        'list[int]'
        >>> python_type({"type": ["string", "null"]})
        'Optional[str]'
    """
    return _hint(schema, options or GeneratorOptions(), known_names, ref_namer, 0)


def _hint(
    schema: Any,
    options: GeneratorOptions,
    known_names: Optional[Collection[str]],
    ref_namer: Optional[Callable[[dict[str, Any]], str]],
    depth: int,
) -> str:
    if not isinstance(schema, dict) or depth > _MAX_DEPTH:
        return "Any"

    def sub(value: Any) -> str:
        return _hint(value, options, known_names, ref_namer, depth + 1)

    ref = schema.get("$ref", schema.get("$dynamicRef"))
    if isinstance(ref, str):
        name = ref_namer(schema) if ref_namer is not None else model_name_from_uri(ref)
        if not name or (known_names is not None and name not in known_names):
            return "Any"
        return name

    if "const" in schema:
        if options.enum_style == EnumStyle.UNION:
            return f"Literal[{schema['const']!r}]"
        return _scalar_of_values([schema["const"]])

    enum = schema.get("enum")
    if isinstance(enum, list) and enum:
        if options.enum_style == EnumStyle.UNION:
            literal = f"Literal[{', '.join(repr(value) for value in enum)}]"
            return _optional(literal) if schema.get("nullable") is True else literal
        declared = schema.get("type")
        if isinstance(declared, str):
            return _nullable(_scalar(declared, schema.get("format"), options), schema)
        return _scalar_of_values(enum)

    for keyword in ("oneOf", "anyOf"):
        members = schema.get(keyword)
        if isinstance(members, list) and members:
            return _nullable(_union([sub(member) for member in members]), schema)

    all_of = schema.get("allOf")
    if isinstance(all_of, list) and all_of:
        if len(all_of) == 1:
            return _nullable(sub(all_of[0]), schema)
        for member in all_of:
            if isinstance(member, dict) and "$ref" in member:
                return _nullable(sub(member), schema)
        return _nullable("dict[str, Any]", schema)

    declared = schema.get("type")
    if isinstance(declared, list):
        non_null = [item for item in declared if item != "null"]
        hints = [_typed(item, schema, options, sub) for item in non_null]
        hint = _union(hints) if hints else "None"
        return _optional(hint) if "null" in declared and non_null else hint

    if isinstance(declared, str):
        return _nullable(_typed(declared, schema, options, sub), schema)

    if "properties" in schema or "additionalProperties" in schema:
        return _nullable(_typed("object", schema, options, sub), schema)
    if "items" in schema or "prefixItems" in schema:
        return _nullable(_typed("array", schema, options, sub), schema)
    return "Any"


def _typed(
    declared: str,
    schema: dict[str, Any],
    options: GeneratorOptions,
    sub: Callable[[Any], str],
) -> str:
    if declared == "array":
        prefix = schema.get("prefixItems")
        if isinstance(prefix, list) and prefix:
            return f"tuple[{', '.join(sub(item) for item in prefix)}]"
        items = schema.get("items")
        return f"list[{sub(items) if items is not None else 'Any'}]"
    if declared == "object":
        extra = schema.get("additionalProperties")
        if isinstance(extra, dict):
            return f"dict[str, {sub(extra)}]"
        return "dict[str, Any]"
    return _scalar(declared, schema.get("format"), options)


def _scalar(declared: str, fmt: Any, options: GeneratorOptions) -> str:
    if isinstance(fmt, str):
        if declared == "string" and fmt in _DATE_FORMATS:
            return _DATE_FORMATS[fmt] if options.date_type == DateType.DATETIME else "str"
        if declared == "integer" and fmt == "int64":
            return "str" if options.int64_type == Int64Type.STR else "int"
        override = _FORMAT_OVERRIDES.get((declared, fmt))
        if override is not None:
            return override
    return _TYPE_MAP.get(declared, "Any")


def _scalar_of_values(values: list[Any]) -> str:
    hints: list[str] = []
    for value in values:
        if value is None:
            hint = "None"
        elif isinstance(value, bool):
            hint = "bool"
        elif isinstance(value, int):
            hint = "int"
        elif isinstance(value, float):
            hint = "float"
        elif isinstance(value, str):
            hint = "str"
        else:
            hint = "Any"
        hints.append(hint)
    return _union(hints)


def _union(hints: list[str]) -> str:
    unique: list[str] = []
    for hint in hints:
        if hint not in unique:
            unique.append(hint)
    if "Any" in unique:
        return "Any"
    if len(unique) == 1:
        return unique[0]
    if "None" in unique and len(unique) == 2:
        return _optional(next(hint for hint in unique if hint != "None"))
    return f"Union[{', '.join(unique)}]"


def _optional(hint: str) -> str:
    if hint in ("Any", "None") or hint.startswith("Optional["):
        return hint
    return f"Optional[{hint}]"


def _nullable(hint: str, schema: dict[str, Any]) -> str:
    return _optional(hint) if schema.get("nullable") is True else hint
