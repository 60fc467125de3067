"""Flatten the ``paths`` (and ``webhooks``) maps into :class:`~specgraph.models.PathInfo` records.

The extractor walks the raw path items of the entry document. References to
path items, parameters, request bodies, responses and headers are followed
through the ``resolve_ref`` callback supplied by the caller (normally
:meth:`~specgraph.parser.resolver.ReferenceResolver.resolve_reference`
bound to the entry document). Schemas are left as they are, references
included, so that emitters can map them to named models.

Parameter merging follows the OpenAPI specification: path-level parameters
provide defaults, and operation-level parameters override them when they share
the same ``name`` and ``in`` values.

Swagger 2.0 documents are lifted into the OpenAPI 3 shape on the way:

* a ``body`` parameter becomes ``request_body.content[<media type>].schema``
  for every effective ``consumes`` entry
* ``formData`` parameters become a form ``request_body`` (and stay in the
  parameter list so the serialization analyzer can see them)
* ``collectionFormat`` becomes ``style`` / ``explode``
* a response ``schema`` becomes ``content`` for every effective ``produces``
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from specgraph.models import (
    Header,
    HTTPMethod,
    MediaType,
    Parameter,
    PathInfo,
    RequestBody,
    Response,
    Server,
    ServerVariable,
)
from specgraph.naming import camel_case, normalize_security_key, pascal_case
from specgraph.parser.resolver import is_reference

logger = logging.getLogger(__name__)

ResolveRef = Callable[[str], Any]

# HTTP methods recognized as fixed path item fields
_HTTP_METHODS = tuple(m.value for m in HTTPMethod)

_IGNORED_HEADERS = frozenset({"accept", "content-type", "authorization"})

_DEFAULT_MEDIA_TYPE = "application/json"

# collectionFormat -> (style, explode)
_COLLECTION_FORMATS: dict[str, tuple[str, bool]] = {
    "csv": ("form", False),
    "ssv": ("spaceDelimited", False),
    "tsv": ("tabDelimited", False),
    "pipes": ("pipeDelimited", False),
    "multi": ("form", True),
}

# Swagger 2.0 non-body parameter keys that describe the value itself.
_SWAGGER2_SCHEMA_KEYS = (
    "type",
    "format",
    "items",
    "enum",
    "default",
    "maximum",
    "exclusiveMaximum",
    "minimum",
    "exclusiveMinimum",
    "maxLength",
    "minLength",
    "pattern",
    "maxItems",
    "minItems",
    "uniqueItems",
    "multipleOf",
)


def extract_paths(
    paths: Optional[dict[str, Any]],
    resolve_ref: Optional[ResolveRef] = None,
    components: Optional[dict[str, Any]] = None,
    *,
    consumes: Optional[list[str]] = None,
    produces: Optional[list[str]] = None,
    global_security: Optional[list[dict[str, list[str]]]] = None,
    swagger2: bool = False,
) -> list[PathInfo]:
    """Extract every operation of a ``paths`` map.

    Args:
        paths: The raw ``paths`` object. ``None`` yields an empty list.
        resolve_ref: Callback turning a ``$ref`` string into its target.
            Without it, referenced path items and parameters are skipped.
        components: The document's ``components`` object. Its
            ``securitySchemes`` map is used to normalize security
            requirement keys.
        consumes: Document-level Swagger 2.0 ``consumes``.
        produces: Document-level Swagger 2.0 ``produces``.
        global_security: Document-level ``security``; used when an
            operation declares none.
        swagger2: The paths come from a Swagger 2.0 document. OpenAPI 3
            documents drop ``Accept`` / ``Content-Type`` / ``Authorization``
            header parameters.

    Returns:
        A list of :class:`~specgraph.models.PathInfo`, one per path + method
        combination, in document order.
    """
    if not paths:
        return []

    context = _Context(
        resolve_ref=resolve_ref,
        security_schemes=(components or {}).get("securitySchemes") or {},
        consumes=consumes or [],
        produces=produces or [],
        global_security=global_security,
        swagger2=swagger2,
    )

    operations: list[PathInfo] = []
    for path, raw_path_item in paths.items():
        path_item = context.resolve_path_item(raw_path_item, path)
        if path_item is None:
            continue
        operations.extend(_extract_path_item(path, path_item, context))
    return operations


def extract_webhooks(
    webhooks: Optional[dict[str, Any]],
    resolve_ref: Optional[ResolveRef] = None,
    components: Optional[dict[str, Any]] = None,
    **kwargs: Any,
) -> list[PathInfo]:
    """Extract the ``webhooks`` map like :func:`extract_paths`.

    The resulting :attr:`~specgraph.models.PathInfo.path` holds the webhook
    name rather than a URL template.
    """
    return extract_paths(webhooks, resolve_ref, components, **kwargs)


def assign_method_names(
    operations: list[PathInfo],
    customize: Optional[Callable[[str], str]] = None,
) -> None:
    """Give every operation a unique ``method_name``.

    The base name comes from *customize* (when given and the operation has an
    operationId), else the camelCased operationId, else the lower-case method
    followed by the PascalCased path (``{id}`` segments become ``ById``).
    Collisions get a numeric suffix starting at 2.
    """
    used: set[str] = set()
    for operation in operations:
        if customize is not None and operation.operation_id:
            base = customize(operation.operation_id)
        elif operation.operation_id:
            base = camel_case(operation.operation_id)
        else:
            base = operation.method.lower() + path_method_suffix(operation.path)

        name = base
        counter = 1
        while name in used:
            counter += 1
            name = f"{base}{counter}"
        used.add(name)
        operation.method_name = name


def path_method_suffix(path: str) -> str:
    """``/users/{userId}/posts`` -> ``UsersByUserIdPosts``."""
    parts: list[str] = []
    for segment in path.split("/"):
        if not segment:
            continue
        if segment.startswith("{") and segment.endswith("}"):
            parts.append("By" + pascal_case(segment[1:-1]))
        else:
            parts.append(pascal_case(segment))
    return "".join(parts)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class _Context:
    """Per-call settings shared by the helpers below."""

    def __init__(
        self,
        resolve_ref: Optional[ResolveRef],
        security_schemes: dict[str, Any],
        consumes: list[str],
        produces: list[str],
        global_security: Optional[list[dict[str, list[str]]]],
        swagger2: bool,
    ) -> None:
        self.resolve_ref = resolve_ref
        self.security_schemes = security_schemes
        self.consumes = consumes
        self.produces = produces
        self.global_security = global_security
        self.swagger2 = swagger2

    def resolve(self, value: Any) -> Any:
        """Follow *value* when it is a reference object; sibling summary/description win."""
        if not is_reference(value):
            return value
        if self.resolve_ref is None:
            return None
        ref = value.get("$ref") if isinstance(value.get("$ref"), str) else value.get("$dynamicRef")
        target = self.resolve_ref(ref)
        if target is None:
            return None
        if isinstance(target, dict):
            overrides = {k: v for k, v in value.items() if k in ("summary", "description")}
            return {**target, **overrides}
        return target

    def resolve_path_item(self, raw: Any, path: str) -> Optional[dict[str, Any]]:
        if not isinstance(raw, dict):
            return None
        if not is_reference(raw):
            return raw
        target = self.resolve(raw)
        if not isinstance(target, dict):
            logger.debug("Skipping unresolved path item %s", path)
            return None
        local = {k: v for k, v in raw.items() if k not in ("$ref", "$dynamicRef")}
        return {**target, **local}


def _extract_path_item(
    path: str, path_item: dict[str, Any], context: _Context
) -> list[PathInfo]:
    # Path-level parameters apply to all operations under this path
    path_params = _resolved_parameters(path_item.get("parameters"), context)
    path_servers = extract_servers(path_item.get("servers"))

    candidates = [(m, path_item.get(m)) for m in _HTTP_METHODS]
    extra = path_item.get("additionalOperations")
    if isinstance(extra, dict):
        candidates.extend(extra.items())

    result: list[PathInfo] = []
    for method, operation in candidates:
        if not isinstance(operation, dict):
            continue
        result.append(
            _extract_operation(path, method, operation, path_item, path_params, path_servers, context)
        )
    return result


def _extract_operation(
    path: str,
    method: str,
    operation: dict[str, Any],
    path_item: dict[str, Any],
    path_params: list[dict[str, Any]],
    path_servers: list[Server],
    context: _Context,
) -> PathInfo:
    op_params = _resolved_parameters(operation.get("parameters"), context)
    merged = _merge_parameters(path_params, op_params)

    consumes = _string_list(operation.get("consumes")) or context.consumes
    produces = _string_list(operation.get("produces")) or context.produces

    body_param = next((p for p in merged if p.get("in") == "body"), None)
    form_params = [p for p in merged if p.get("in") == "formData"]

    parameters = [
        _parameter(p)
        for p in merged
        if p.get("in") != "body" and not _is_ignored_header(p, context)
    ]

    request_body = _request_body(operation.get("requestBody"), context)
    if request_body is None and body_param is not None:
        request_body = _body_from_body_param(body_param, consumes)
    elif request_body is None and form_params:
        request_body = _body_from_form_params(form_params, consumes)

    # Security: operation-level overrides global, empty list means no auth
    security = operation.get("security")
    if security is None:
        security = context.global_security
    if security is not None:
        security = [_normalize_requirement(req, context) for req in security if isinstance(req, dict)]

    servers = extract_servers(operation.get("servers")) or path_servers

    callbacks: dict[str, list[PathInfo]] = {}
    for name, callback in (operation.get("callbacks") or {}).items():
        callback = context.resolve(callback)
        if not isinstance(callback, dict):
            continue
        callbacks[name] = extract_paths(
            callback,
            context.resolve_ref,
            {"securitySchemes": context.security_schemes},
            consumes=context.consumes,
            produces=context.produces,
            global_security=context.global_security,
            swagger2=context.swagger2,
        )

    return PathInfo(
        path=path,
        method=method.upper(),
        operation_id=operation.get("operationId"),
        summary=operation.get("summary") or path_item.get("summary"),
        description=operation.get("description") or path_item.get("description"),
        tags=[t for t in operation.get("tags") or [] if isinstance(t, str)],
        parameters=parameters,
        request_body=request_body,
        responses=_responses(operation.get("responses"), produces, context),
        security=security,
        deprecated=bool(operation.get("deprecated", False)),
        servers=servers,
        callbacks=callbacks,
        external_docs=operation.get("externalDocs"),
        consumes=_string_list(operation.get("consumes")),
        produces=_string_list(operation.get("produces")),
        extensions=_extensions(operation),
    )


def _merge_parameters(
    path_params: list[dict[str, Any]],
    op_params: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge path-level and operation-level parameters.

    Operation-level parameters override path-level parameters with the same
    name and location (``in`` field), per the OpenAPI spec.

    Args:
        path_params: Resolved parameters defined at the path level.
        op_params: Resolved parameters defined at the operation level.

    Returns:
        A merged list of parameter dicts.
    """
    op_lookup = {(p.get("name", ""), p.get("in", "")) for p in op_params}
    merged = [p for p in path_params if (p.get("name", ""), p.get("in", "")) not in op_lookup]
    merged.extend(op_params)
    return merged


def _resolved_parameters(raw: Any, context: _Context) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    resolved: list[dict[str, Any]] = []
    for item in raw:
        param = context.resolve(item)
        if not isinstance(param, dict):
            continue
        if isinstance(param.get("name"), str) and isinstance(param.get("in"), str):
            resolved.append(param)
    return resolved


def _is_ignored_header(param: dict[str, Any], context: _Context) -> bool:
    return (
        not context.swagger2
        and param.get("in") == "header"
        and str(param.get("name", "")).lower() in _IGNORED_HEADERS
    )


# ---------------------------------------------------------------------------
# Node builders
# ---------------------------------------------------------------------------


def _extensions(raw: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in raw.items() if isinstance(k, str) and k.startswith("x-")}


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


def _parameter(raw: dict[str, Any]) -> Parameter:
    data = {k: v for k, v in raw.items() if not k.startswith("x-")}
    data["extensions"] = _extensions(raw)

    content = raw.get("content")
    if isinstance(content, dict):
        data["content"] = {mt: _media_type(obj) for mt, obj in content.items() if isinstance(obj, dict)}
    else:
        data.pop("content", None)

    if "schema" not in raw and not isinstance(content, dict):
        synthesized = {k: raw[k] for k in _SWAGGER2_SCHEMA_KEYS if k in raw}
        if synthesized:
            data["schema"] = synthesized

    collection_format = raw.get("collectionFormat")
    if collection_format in _COLLECTION_FORMATS and "style" not in raw:
        style, explode = _COLLECTION_FORMATS[collection_format]
        data["style"] = style
        data["explode"] = explode

    if not isinstance(data.get("examples"), dict):
        data.pop("examples", None)
    return Parameter.model_validate(data)


def _media_type(raw: dict[str, Any]) -> MediaType:
    data = {k: v for k, v in raw.items() if not k.startswith("x-")}
    data["extensions"] = _extensions(raw)
    for key in ("encoding", "examples"):
        if not isinstance(data.get(key), dict):
            data.pop(key, None)
    if not isinstance(data.get("prefixEncoding"), list):
        data.pop("prefixEncoding", None)
    if not isinstance(data.get("itemEncoding"), dict):
        data.pop("itemEncoding", None)
    return MediaType.model_validate(data)


def _content(raw: Any) -> dict[str, MediaType]:
    if not isinstance(raw, dict):
        return {}
    return {mt: _media_type(obj) for mt, obj in raw.items() if isinstance(obj, dict)}


def _header(raw: dict[str, Any]) -> Header:
    schema = raw.get("schema")
    if schema is None:
        # Swagger 2.0 headers describe the value inline.
        schema = {k: raw[k] for k in _SWAGGER2_SCHEMA_KEYS if k in raw} or None
    return Header(
        description=raw.get("description"),
        required=bool(raw.get("required", False)),
        deprecated=bool(raw.get("deprecated", False)),
        schema=schema,
        content=_content(raw.get("content")),
        style=raw.get("style"),
        explode=raw.get("explode"),
        example=raw.get("example"),
        extensions=_extensions(raw),
    )


def _request_body(raw: Any, context: _Context) -> Optional[RequestBody]:
    body = context.resolve(raw)
    if not isinstance(body, dict):
        return None
    return RequestBody(
        description=body.get("description"),
        required=bool(body.get("required", False)),
        content=_content(body.get("content")),
        extensions=_extensions(body),
    )


def _body_from_body_param(param: dict[str, Any], consumes: list[str]) -> RequestBody:
    media_types = consumes or [_DEFAULT_MEDIA_TYPE]
    return RequestBody(
        description=param.get("description"),
        required=bool(param.get("required", False)),
        content={mt: MediaType(schema=param.get("schema")) for mt in media_types},
        extensions=_extensions(param),
    )


def _body_from_form_params(params: list[dict[str, Any]], consumes: list[str]) -> RequestBody:
    properties: dict[str, Any] = {}
    required: list[str] = []
    has_file = False
    for param in params:
        schema = {k: param[k] for k in _SWAGGER2_SCHEMA_KEYS if k in param}
        if param.get("type") == "file":
            has_file = True
            schema = {"type": "string", "format": "binary"}
        if param.get("description"):
            schema["description"] = param["description"]
        properties[param["name"]] = schema
        if param.get("required"):
            required.append(param["name"])

    form_schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        form_schema["required"] = required

    if has_file or any(mt.startswith("multipart/") for mt in consumes):
        media_type = "multipart/form-data"
    else:
        media_type = "application/x-www-form-urlencoded"
    return RequestBody(required=bool(required), content={media_type: MediaType(schema=form_schema)})


def _responses(raw: Any, produces: list[str], context: _Context) -> dict[str, Response]:
    if not isinstance(raw, dict):
        return {}
    responses: dict[str, Response] = {}
    for status_code, value in raw.items():
        response = context.resolve(value)
        if not isinstance(response, dict):
            continue

        headers: dict[str, Header] = {}
        for name, header in (response.get("headers") or {}).items():
            header = context.resolve(header)
            if isinstance(header, dict):
                headers[name] = _header(header)

        if "schema" in response:
            media_types = produces or [_DEFAULT_MEDIA_TYPE]
            content = {mt: MediaType(schema=response["schema"]) for mt in media_types}
        else:
            content = _content(response.get("content"))

        responses[str(status_code)] = Response(
            description=response.get("description"),
            headers=headers,
            content=content,
            links=response.get("links") or {},
            extensions=_extensions(response),
        )
    return responses


def extract_servers(raw: Any) -> list[Server]:
    """Build :class:`~specgraph.models.Server` objects from a raw ``servers`` array."""
    if not isinstance(raw, list):
        return []
    servers: list[Server] = []
    for server in raw:
        if not isinstance(server, dict) or not isinstance(server.get("url"), str):
            continue
        variables = {
            name: ServerVariable(
                default=var.get("default"),
                enum=var.get("enum"),
                description=var.get("description"),
                extensions=_extensions(var),
            )
            for name, var in (server.get("variables") or {}).items()
            if isinstance(var, dict)
        }
        servers.append(
            Server(
                url=server["url"],
                description=server.get("description"),
                name=server.get("name"),
                variables=variables,
                extensions=_extensions(server),
            )
        )
    return servers


# ---------------------------------------------------------------------------
# Security requirements
# ---------------------------------------------------------------------------


def _normalize_requirement(
    requirement: dict[str, Any], context: _Context
) -> dict[str, list[str]]:
    return {
        _security_key(key, context): list(scopes or [])
        for key, scopes in requirement.items()
    }


def _security_key(key: str, context: _Context) -> str:
    """Known scheme name first, then the scheme a pointer resolves to, then the last segment."""
    if key in context.security_schemes:
        return key
    if "#" in key and context.resolve_ref is not None:
        target = context.resolve_ref(key)
        if target is not None:
            for name, scheme in context.security_schemes.items():
                if scheme is target or scheme == target:
                    return name
    return normalize_security_key(key)
