"""Group operations into logical resources for admin/form style emitters.

Operations are grouped by their first tag, or by the first literal path
segment when untagged. Within a group every operation is classified as one
of the CRUD actions (``list``, ``create``, ``getById``, ``update``,
``delete``) or a camelCase custom action, and the request/response schemas
of the group are merged into one flat list of form properties.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specgraph.models import (
    FormProperty,
    ParameterLocation,
    PathInfo,
    Resource,
    ResourceOperation,
)
from specgraph.naming import camel_case, model_name_from_uri, pascal_case, singular
from specgraph.parser.extractor import path_method_suffix
from specgraph.parser.resolver import ReferenceResolver, is_reference

logger = logging.getLogger(__name__)

_CRUD_ACTIONS = ("list", "create", "getById", "update", "delete")

# A POST on a collection path whose operationId contains one of these is a
# custom action rather than ``create``.
_CUSTOM_ACTION_KEYWORDS = (
    "search",
    "export",
    "query",
    "login",
    "upload",
    "import",
    "sync",
    "item",
    "reboot",
    "start",
)

_SCALAR_TYPES = ("string", "number", "integer", "boolean")
_EDITING_METHODS = ("POST", "PUT", "PATCH")
_JSON = "application/json"
_FORM_MEDIA_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


def _fallback_properties() -> list[FormProperty]:
    return [FormProperty(name="id", schema={"type": "string"})]


def discover_resources(operations: list[PathInfo], resolver: ReferenceResolver) -> list[Resource]:
    """Group *operations* into :class:`~specgraph.models.Resource` objects.

    Args:
        operations: Extracted operations, in document order.
        resolver: Used to follow schema references while merging form
            properties.

    Returns:
        One resource per group, in order of first appearance.
    """
    groups: dict[str, list[PathInfo]] = {}
    for op in operations:
        groups.setdefault(resource_name(op), []).append(op)

    resources: list[Resource] = []
    for name, group in groups.items():
        form_properties = get_form_properties(group, resolver)
        resources.append(
            Resource(
                name=name,
                model_name=get_model_name(name, group),
                operations=[_resource_operation(op) for op in group],
                is_editable=any(op.method in _EDITING_METHODS for op in group),
                form_properties=form_properties,
                list_properties=[p for p in form_properties if _is_list_column(p.schema_)],
            )
        )
    logger.debug("Discovered %d resource(s) from %d operation(s)", len(resources), len(operations))
    return resources


def resource_name(op: PathInfo) -> str:
    """First tag (camelCase), else the first literal path segment, else ``default``."""
    if op.tags:
        return camel_case(op.tags[0]) or "default"
    literal = [segment for segment in op.path.split("/") if segment and not segment.startswith("{")]
    return camel_case(literal[0]) if literal else "default"


def classify_action(op: PathInfo) -> str:
    """Label *op* with a CRUD action or a camelCase custom action name."""
    method = op.method.lower()
    has_id_suffix = op.path.endswith("}")
    operation_id = op.operation_id or ""
    literal = [segment for segment in op.path.split("/") if segment and not segment.startswith("{")]

    if method in ("get", "query"):
        return "getById" if has_id_suffix else "list"
    if method in ("put", "patch") and has_id_suffix:
        return "update"
    if method == "delete" and has_id_suffix:
        return "delete"
    if method == "post" and not has_id_suffix:
        is_custom_path = len(literal) > 1
        lowered = operation_id.lower()
        has_keyword = bool(operation_id) and any(kw in lowered for kw in _CUSTOM_ACTION_KEYWORDS)
        if not (is_custom_path or has_keyword):
            return "create"

    if operation_id:
        return camel_case(operation_id)
    parts = [method, *literal]
    if has_id_suffix:
        parts.append("ById")
    return camel_case(" ".join(parts))


def _resource_operation(op: PathInfo) -> ResourceOperation:
    action = classify_action(op)
    has_path_params = any(p.location == ParameterLocation.PATH.value for p in op.parameters)
    is_custom = action not in _CRUD_ACTIONS
    method_name = op.method_name
    if not method_name:
        if op.operation_id:
            method_name = camel_case(op.operation_id)
        else:
            method_name = op.method.lower() + path_method_suffix(op.path)
    return ResourceOperation(
        action=action,
        path=op.path,
        method=op.method,
        method_name=method_name,
        operation_id=op.operation_id,
        parameters=list(op.parameters),
        is_custom_item_action=is_custom and has_path_params,
        is_custom_collection_action=is_custom and not has_path_params,
    )


def _is_list_column(schema: Any) -> bool:
    return (
        isinstance(schema, dict)
        and schema.get("readOnly") is not True
        and schema.get("type") in _SCALAR_TYPES
    )


# ---------------------------------------------------------------------------
# Model name and form properties
# ---------------------------------------------------------------------------


def get_model_name(name: str, operations: list[PathInfo]) -> str:
    """Name of the schema backing a resource.

    Taken from the ``$ref`` of the JSON request body (or ``200`` JSON
    response, or its array items) of the first POST, else GET, else QUERY
    operation. Falls back to the singular PascalCase resource name.
    """
    op = next(
        (o for method in ("POST", "GET", "QUERY") for o in operations if o.method == method),
        None,
    )
    if op is not None:
        schema = _json_request_schema(op)
        if schema is None:
            schema = _json_response_schema(op, "200")
        ref = _ref_name(schema)
        if ref is not None:
            return ref
    return singular(pascal_case(name))


def _ref_name(schema: Any) -> Optional[str]:
    if not isinstance(schema, dict):
        return None
    if isinstance(schema.get("$ref"), str):
        return model_name_from_uri(schema["$ref"])
    items = schema.get("items")
    if schema.get("type") == "array" and isinstance(items, dict) and isinstance(items.get("$ref"), str):
        return model_name_from_uri(items["$ref"])
    return None


def _json_request_schema(op: PathInfo) -> Any:
    if op.request_body is None:
        return None
    media = op.request_body.content.get(_JSON)
    return media.schema_ if media is not None else None


def _json_response_schema(op: PathInfo, code: str) -> Any:
    response = op.responses.get(code)
    media = response.content.get(_JSON) if response is not None else None
    return media.schema_ if media is not None else None


def _find_schema(schema: Any, resolver: ReferenceResolver) -> Optional[dict[str, Any]]:
    if not isinstance(schema, dict):
        return None
    if is_reference(schema):
        resolved = resolver.resolve(schema)
        return resolved if isinstance(resolved, dict) else None
    return schema


def get_form_properties(operations: list[PathInfo], resolver: ReferenceResolver) -> list[FormProperty]:
    """Merge the editable properties of a resource's operations.

    Sources, in order: form bodies (``multipart/form-data`` and url-encoded),
    Swagger 2 ``formData`` parameters, then the JSON request bodies and
    ``200`` / ``201`` JSON responses with their ``allOf`` chains flattened.
    Properties listed in a ``required`` array are flagged on the
    :class:`~specgraph.models.FormProperty`. A
    polymorphic (``oneOf`` + ``discriminator``) schema contributes its
    discriminator property, synthesized when absent.

    Returns:
        The merged properties; a single ``id: string`` property when nothing
        was found.
    """
    schemas: list[dict[str, Any]] = []
    form_data: dict[str, Any] = {}

    for op in operations:
        request = _find_schema(_json_request_schema(op), resolver)
        if request is not None:
            schemas.append(request)

        if op.request_body is not None:
            for media_type in _FORM_MEDIA_TYPES:
                media = op.request_body.content.get(media_type)
                form_schema = _find_schema(media.schema_ if media is not None else None, resolver)
                properties = form_schema.get("properties") if form_schema is not None else None
                if not isinstance(properties, dict):
                    continue
                for prop_name, prop in properties.items():
                    if not isinstance(prop, dict) or is_reference(prop):
                        continue
                    cloned = dict(prop)
                    if isinstance(cloned.get("type"), list):
                        del cloned["type"]
                    form_data[prop_name] = cloned

        response = _find_schema(_json_response_schema(op, "200"), resolver)
        if response is None:
            response = _find_schema(_json_response_schema(op, "201"), resolver)
        if response is not None:
            schemas.append(response)

        for param in op.parameters:
            schema = param.schema_
            if param.location != ParameterLocation.FORM_DATA.value:
                continue
            if not isinstance(schema, dict) or is_reference(schema):
                continue
            prop: dict[str, Any] = {}
            if schema.get("format"):
                prop["format"] = schema["format"]
            if param.description:
                prop["description"] = param.description
            if isinstance(schema.get("type"), str):
                prop["type"] = schema["type"]
            form_data[param.name] = prop

    if not schemas and not form_data:
        return _fallback_properties()

    merged: dict[str, Any] = dict(form_data)
    required: set[str] = set()
    polymorphic: dict[str, Any] = {}

    def assign(schema: dict[str, Any], seen: frozenset[int]) -> None:
        if id(schema) in seen:
            return
        seen = seen | {id(schema)}
        if isinstance(schema.get("properties"), dict):
            merged.update(schema["properties"])
        if isinstance(schema.get("required"), list):
            required.update(name for name in schema["required"] if isinstance(name, str))
        if isinstance(schema.get("oneOf"), list):
            polymorphic["oneOf"] = schema["oneOf"]
        if isinstance(schema.get("discriminator"), dict):
            polymorphic["discriminator"] = schema["discriminator"]
        for member in schema.get("allOf") or []:
            resolved = _find_schema(member, resolver)
            if resolved is not None:
                assign(resolved, seen)

    for schema in schemas:
        effective = schema
        if schema.get("type") == "array":
            effective = _find_schema(schema.get("items"), resolver) or schema
        assign(effective, frozenset())

    result: list[FormProperty] = []
    for name, prop in merged.items():
        resolved = _find_schema(prop, resolver)
        final: Any = prop
        if resolved is not None and resolved is not prop:
            final = {key: value for key, value in {**prop, **resolved}.items() if key != "$ref"}
        result.append(FormProperty(name=name, schema=final, required=name in required))

    discriminator = polymorphic.get("discriminator")
    if "oneOf" in polymorphic and isinstance(discriminator, dict):
        property_name = discriminator.get("propertyName")
        if isinstance(property_name, str):
            existing = next((p for p in result if p.name == property_name), None)
            if existing is not None and isinstance(existing.schema_, dict):
                existing.schema_ = {
                    **existing.schema_,
                    "oneOf": polymorphic["oneOf"],
                    "discriminator": discriminator,
                }
            elif existing is None:
                result.append(
                    FormProperty(
                        name=property_name,
                        schema={
                            "type": "string",
                            "description": "Determines the type of the polymorphic object.",
                            "oneOf": polymorphic["oneOf"],
                            "discriminator": discriminator,
                        },
                    )
                )

    return result or _fallback_properties()
