"""Structural validation of a raw (unresolved) OpenAPI / Swagger document.

:func:`validate_spec` runs before any reference is followed by the loader and
fails fast: the first violation raises
:class:`~specgraph.exceptions.ValidationError` with a message naming the
offending location. Only local (``#/...``) references are followed, and only
where a check cannot be made without them (parameters, path items).

The checks are grouped by the part of the document they cover:

* version, ``info``, license, ``$self`` and top-level shape
* Server Objects at root, path-item and operation level
* Security Scheme Objects (OpenAPI 3) and Security Definitions (Swagger 2)
* Paths, operations and parameters
* component keys, tags, Discriminator and XML Objects
"""

from __future__ import annotations

import re
from typing import Any, Iterator, Optional
from urllib.parse import urlsplit

from specgraph.exceptions import ValidationError
from specgraph.parser.resolver import evaluate_json_pointer, is_reference

_FIXED_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace", "query")

_PARAM_STYLE_BY_IN: dict[str, frozenset[str]] = {
    "path": frozenset({"matrix", "label", "simple"}),
    "query": frozenset({"form", "spaceDelimited", "pipeDelimited", "deepObject"}),
    "header": frozenset({"simple"}),
    "cookie": frozenset({"form", "cookie"}),
}

_OAS3_LOCATIONS = frozenset({"query", "querystring", "header", "path", "cookie"})
_SWAGGER2_LOCATIONS = frozenset({"query", "header", "path", "formData", "body"})
_RESERVED_HEADERS = frozenset({"accept", "content-type", "authorization"})
_XML_NODE_TYPES = frozenset({"element", "attribute", "text", "cdata", "none"})

_COMPONENT_TYPES = (
    "schemas",
    "responses",
    "parameters",
    "examples",
    "requestBodies",
    "headers",
    "securitySchemes",
    "links",
    "callbacks",
    "pathItems",
    "mediaTypes",
    "webhooks",
)
_COMPONENT_KEY = re.compile(r"^[a-zA-Z0-9.\-_]+$")
_METHOD_TOKEN = re.compile(r"^[!#$%&'*+.^_`|~0-9A-Za-z-]+$")
_TEMPLATE_VAR = re.compile(r"\{([^}]+)\}")
_URI_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

# Keywords whose values are schemas (or lists / maps of schemas).
_SUBSCHEMA_KEYS = ("items", "not", "additionalProperties", "contains", "if", "then", "else")
_SUBSCHEMA_LIST_KEYS = ("allOf", "anyOf", "oneOf", "prefixItems")
_SUBSCHEMA_MAP_KEYS = ("properties", "patternProperties", "$defs", "definitions", "dependentSchemas")


def validate_spec(spec: dict[str, Any]) -> None:
    """Validate the structure of a raw OpenAPI / Swagger document.

    Args:
        spec: The parsed document, before reference resolution.

    Raises:
        ValidationError: On the first structural violation found.
    """
    if not isinstance(spec, dict):
        raise ValidationError("Specification must be an object.")

    is_swagger2 = isinstance(spec.get("swagger"), str) and spec["swagger"].startswith("2.")
    is_oas3 = isinstance(spec.get("openapi"), str) and spec["openapi"].startswith("3.")
    if not is_swagger2 and not is_oas3:
        raise ValidationError(
            "Unsupported or missing OpenAPI/Swagger version. Specification must contain "
            "'swagger: \"2.x\"' or 'openapi: \"3.x\"'."
        )

    _validate_info(spec)
    if is_oas3:
        _validate_self(spec)

    # --- Top-level shape ---
    has_paths = spec.get("paths") is not None
    if is_swagger2 and not has_paths:
        raise ValidationError("Swagger 2.0 specification must contain a 'paths' object.")
    if is_oas3:
        if not has_paths and not spec.get("components") and not spec.get("webhooks"):
            raise ValidationError(
                "OpenAPI 3.x specification must contain at least one of: "
                "'paths', 'components', or 'webhooks'."
            )
        _validate_json_schema_dialect(spec)
        _validate_servers(spec.get("servers"), "servers")

    # --- Security ---
    components = spec.get("components") if isinstance(spec.get("components"), dict) else {}
    if is_oas3:
        _validate_security_schemes(components.get("securitySchemes"), "components.securitySchemes")
    else:
        _validate_security_definitions(spec.get("securityDefinitions"), "securityDefinitions")

    # --- Paths and operations ---
    operation_ids: dict[str, list[str]] = {}
    paths = spec.get("paths")
    if isinstance(paths, dict):
        _validate_paths(spec, paths, is_oas3, operation_ids)
    webhooks = spec.get("webhooks")
    if is_oas3 and isinstance(webhooks, dict):
        for name, path_item in webhooks.items():
            _validate_path_item(
                spec, path_item, f"webhooks.{name}", None, is_oas3, operation_ids, "webhooks:"
            )

    for operation_id, locations in operation_ids.items():
        if len(locations) > 1:
            raise ValidationError(
                f'Duplicate operationId "{operation_id}" found in multiple operations: '
                f"{', '.join(locations)}"
            )

    # --- Components ---
    if is_oas3 and components:
        _validate_component_keys(components)
        parameters = components.get("parameters")
        if isinstance(parameters, dict):
            for name, param in parameters.items():
                _validate_parameter(spec, param, f"components.parameters.{name}", is_oas3)

    _validate_tags(spec.get("tags"))

    schemas = components.get("schemas") if is_oas3 else spec.get("definitions")
    prefix = "components.schemas" if is_oas3 else "definitions"
    if isinstance(schemas, dict):
        for name, schema in schemas.items():
            _validate_schema_objects(schema, f"{prefix}.{name}", allow_string_discriminator=not is_oas3)


# ---------------------------------------------------------------------------
# Info, $self, dialect
# ---------------------------------------------------------------------------


def _validate_info(spec: dict[str, Any]) -> None:
    info = spec.get("info")
    if not isinstance(info, dict):
        raise ValidationError("Specification must contain an 'info' object.")
    if not isinstance(info.get("title"), str) or not info["title"]:
        raise ValidationError(
            "Specification info object must contain a required string field: 'title'."
        )
    if not isinstance(info.get("version"), str) or not info["version"]:
        raise ValidationError(
            "Specification info object must contain a required string field: 'version'."
        )

    license_info = info.get("license")
    if license_info is None:
        return
    if not isinstance(license_info, dict):
        raise ValidationError("Info.license must be an object.")
    if not isinstance(license_info.get("name"), str) or not license_info["name"]:
        raise ValidationError("License object must contain a required string field: 'name'.")
    if license_info.get("url") is not None and license_info.get("identifier") is not None:
        raise ValidationError(
            "License object cannot contain both 'url' and 'identifier' fields. "
            "They are mutually exclusive."
        )


def _validate_self(spec: dict[str, Any]) -> None:
    if "$self" not in spec:
        return
    value = spec["$self"]
    if not isinstance(value, str) or not _is_uri_reference(value):
        raise ValidationError(f'OpenAPI \'$self\' must be a valid URI reference. Value: "{value}"')
    if "#" in value:
        raise ValidationError(f'OpenAPI \'$self\' must not contain a fragment. Value: "{value}"')


def _validate_json_schema_dialect(spec: dict[str, Any]) -> None:
    dialect = spec.get("jsonSchemaDialect")
    if dialect is None:
        return
    if not isinstance(dialect, str):
        raise ValidationError("Field 'jsonSchemaDialect' must be a string.")
    if not _URI_SCHEME.match(dialect):
        raise ValidationError(f'Field \'jsonSchemaDialect\' must be a valid URI. Value: "{dialect}"')


def _is_uri_reference(value: str) -> bool:
    if any(ch.isspace() for ch in value):
        return False
    try:
        urlsplit(value)
    except ValueError:
        return False
    return True


# ---------------------------------------------------------------------------
# Servers
# ---------------------------------------------------------------------------


def _validate_servers(servers: Any, location: str) -> None:
    """Check a ``servers`` array.

    Every ``{var}`` in a url must be declared in ``variables`` with a string
    ``default``; an ``enum`` must be a non-empty list of strings holding the
    default; server names must be unique within the array.
    """
    if not servers:
        return
    if not isinstance(servers, list):
        raise ValidationError(f"Servers at {location} must be an array.")

    seen_names: set[str] = set()
    for index, server in enumerate(servers):
        where = f"{location}[{index}]"
        if not isinstance(server, dict):
            raise ValidationError(f"Server at {where} must be an object.")
        url = server.get("url")
        if not isinstance(url, str) or not url:
            raise ValidationError(f"Server url must be a non-empty string at {where}.")
        _validate_template_braces(url, f"{where}.url", "Server url")
        if "?" in url or "#" in url:
            raise ValidationError(
                f'Server url MUST NOT include query or fragment at {where}. Value: "{url}"'
            )

        name = server.get("name")
        if name:
            if name in seen_names:
                raise ValidationError(
                    f'Server name "{name}" must be unique at {location}. Duplicate found.'
                )
            seen_names.add(name)

        variables = server.get("variables")
        template_vars = _TEMPLATE_VAR.findall(url)
        if template_vars and variables is None:
            raise ValidationError(
                f"Server url defines template variables but 'variables' is missing at {where}."
            )
        variables = variables if isinstance(variables, dict) else {}
        for var_name in dict.fromkeys(template_vars):
            if var_name not in variables:
                raise ValidationError(
                    f'Server url variable "{var_name}" is not defined in variables at {where}.'
                )
            if template_vars.count(var_name) > 1:
                raise ValidationError(
                    f'Server variable "{var_name}" appears more than once in url at {where}.'
                )

        for var_name, variable in variables.items():
            if not isinstance(variable, dict) or not isinstance(variable.get("default"), str):
                raise ValidationError(
                    f'Server variable "{var_name}" must define a string default at {where}.'
                )
            enum = variable.get("enum")
            if enum is None:
                continue
            if not isinstance(enum, list) or not enum:
                raise ValidationError(
                    f'Server variable "{var_name}" enum MUST NOT be empty at {where}.'
                )
            if not all(isinstance(item, str) for item in enum):
                raise ValidationError(
                    f'Server variable "{var_name}" enum MUST contain only strings at {where}.'
                )
            if variable["default"] not in enum:
                raise ValidationError(
                    f'Server variable "{var_name}" default MUST be present in enum at {where}.'
                )


def _validate_template_braces(value: str, location: str, label: str) -> None:
    index = 0
    while index < len(value):
        char = value[index]
        if char == "{":
            close = value.find("}", index + 1)
            if close == -1:
                raise ValidationError(
                    f"{label} at '{location}' contains an opening \"{{\" without a matching \"}}\"."
                )
            if close == index + 1:
                raise ValidationError(
                    f"{label} at '{location}' contains an empty template expression \"{{}}\"."
                )
            if "{" in value[index + 1 : close]:
                raise ValidationError(
                    f"{label} at '{location}' contains nested \"{{\" characters, which is not allowed."
                )
            index = close + 1
            continue
        if char == "}":
            raise ValidationError(
                f"{label} at '{location}' contains a closing \"}}\" without a matching \"{{\"."
            )
        index += 1


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


def _validate_https_url(value: Any, location: str, field: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} must be a non-empty string at {location}.")
    try:
        parts = urlsplit(value)
    except ValueError as exc:
        raise ValidationError(f'{field} must be a valid URL at {location}. Value: "{value}"') from exc
    if not parts.scheme or not parts.netloc:
        raise ValidationError(f'{field} must be a valid URL at {location}. Value: "{value}"')
    if parts.scheme != "https":
        raise ValidationError(
            f'{field} must use https (TLS required) at {location}. Value: "{value}"'
        )


def _validate_security_schemes(schemes: Any, location: str) -> None:
    if not isinstance(schemes, dict):
        return
    for name, scheme in schemes.items():
        if not isinstance(scheme, dict) or is_reference(scheme):
            continue
        scheme_type = scheme.get("type")
        if not isinstance(scheme_type, str):
            raise ValidationError(f'Security scheme "{name}" must define a string \'type\' at {location}.')

        if scheme_type == "apiKey":
            _validate_api_key(name, scheme, location, ("query", "header", "cookie"))
        elif scheme_type == "http":
            if not isinstance(scheme.get("scheme"), str) or not scheme["scheme"]:
                raise ValidationError(
                    f"http security scheme \"{name}\" must define non-empty 'scheme' at {location}."
                )
        elif scheme_type == "oauth2":
            flows = scheme.get("flows")
            if not isinstance(flows, dict):
                raise ValidationError(
                    f"oauth2 security scheme \"{name}\" must define 'flows' at {location}."
                )
            if not flows:
                raise ValidationError(
                    f'oauth2 security scheme "{name}" must define at least one flow at {location}.'
                )
            if "oauth2MetadataUrl" in scheme:
                _validate_https_url(scheme["oauth2MetadataUrl"], f"{location}.{name}", "oauth2MetadataUrl")
            for flow_name, flow in flows.items():
                _validate_oauth_flow(flow, flow_name, f"{location}.{name}.flows")
        elif scheme_type == "openIdConnect":
            _validate_https_url(scheme.get("openIdConnectUrl"), f"{location}.{name}", "openIdConnectUrl")
        elif scheme_type == "mutualTLS":
            continue
        else:
            raise ValidationError(
                f'Security scheme "{name}" has unsupported type "{scheme_type}" at {location}.'
            )


def _validate_security_definitions(definitions: Any, location: str) -> None:
    """Swagger 2 ``securityDefinitions``: apiKey, basic and oauth2 only."""
    if not isinstance(definitions, dict):
        return
    for name, scheme in definitions.items():
        if not isinstance(scheme, dict):
            continue
        scheme_type = scheme.get("type")
        if scheme_type == "apiKey":
            _validate_api_key(name, scheme, location, ("query", "header"))
        elif scheme_type == "basic":
            continue
        elif scheme_type == "oauth2":
            if not isinstance(scheme.get("scopes", {}), dict):
                raise ValidationError(
                    f"oauth2 security scheme \"{name}\" must define 'scopes' as an object at {location}."
                )
            for field in ("authorizationUrl", "tokenUrl"):
                if field in scheme:
                    _validate_https_url(scheme[field], f"{location}.{name}", field)
        else:
            raise ValidationError(
                f'Security scheme "{name}" has unsupported type "{scheme_type}" at {location}.'
            )


def _validate_api_key(
    name: str, scheme: dict[str, Any], location: str, allowed: tuple[str, ...]
) -> None:
    if not isinstance(scheme.get("name"), str) or not scheme["name"]:
        raise ValidationError(
            f"apiKey security scheme \"{name}\" must define non-empty 'name' at {location}."
        )
    if scheme.get("in") not in allowed:
        raise ValidationError(
            f"apiKey security scheme \"{name}\" must define 'in' as one of "
            f"{', '.join(repr(a) for a in allowed)} at {location}."
        )


def _validate_oauth_flow(flow: Any, flow_name: str, location: str) -> None:
    if not isinstance(flow, dict):
        raise ValidationError(f'OAuth2 flow "{flow_name}" must be an object at {location}.')
    for field in ("authorizationUrl", "tokenUrl", "refreshUrl", "deviceAuthorizationUrl"):
        if field in flow:
            _validate_https_url(flow[field], f"{location}.{flow_name}", field)
    if not isinstance(flow.get("scopes"), dict):
        raise ValidationError(
            f"OAuth2 flow \"{flow_name}\" must define 'scopes' as an object at {location}."
        )


# ---------------------------------------------------------------------------
# Paths, operations, parameters
# ---------------------------------------------------------------------------


def _template_signature(path: str) -> str:
    return "/".join(
        "{}" if segment.startswith("{") and segment.endswith("}") else segment
        for segment in path.split("/")
    )


def _validate_paths(
    spec: dict[str, Any],
    paths: dict[str, Any],
    is_oas3: bool,
    operation_ids: dict[str, list[str]],
) -> None:
    signatures: dict[str, str] = {}
    for path_key, path_item in paths.items():
        if not isinstance(path_key, str) or not path_key.startswith("/"):
            raise ValidationError(f'Path key "{path_key}" must start with "/".')
        _validate_template_braces(path_key, f"paths.{path_key}", "Path template")

        template_vars = _TEMPLATE_VAR.findall(path_key)
        duplicates = sorted({var for var in template_vars if template_vars.count(var) > 1})
        if duplicates:
            raise ValidationError(
                f'Path template "{path_key}" repeats template variable(s): {", ".join(duplicates)}'
            )

        signature = _template_signature(path_key)
        if "{}" in signature:
            if signature in signatures:
                raise ValidationError(
                    "Ambiguous path definition detected. Identical path hierarchies with "
                    "different parameter names are not allowed.\n"
                    f'Path 1: "{signatures[signature]}"\n'
                    f'Path 2: "{path_key}"'
                )
            signatures[signature] = path_key

        _validate_path_item(spec, path_item, f"paths.{path_key}", path_key, is_oas3, operation_ids, "")


def _iter_operations(path_item: dict[str, Any], is_oas3: bool) -> Iterator[tuple[str, Any, str]]:
    """Yield ``(method, operation, relative_location)`` for every operation of a path item."""
    for method in _FIXED_METHODS:
        if method in path_item:
            yield method, path_item[method], method
    extra = path_item.get("additionalOperations")
    if is_oas3 and isinstance(extra, dict):
        for method, operation in extra.items():
            yield method, operation, f"additionalOperations.{method}"


def _validate_path_item(
    spec: dict[str, Any],
    path_item: Any,
    location: str,
    template: Optional[str],
    is_oas3: bool,
    operation_ids: dict[str, list[str]],
    id_prefix: str,
) -> None:
    if not isinstance(path_item, dict):
        raise ValidationError(f"Path item at '{location}' must be an object.")

    has_ref = is_reference(path_item)
    if has_ref:
        target = _follow_local(spec, path_item)
        if target is None:
            return
        path_item = {**target, **{k: v for k, v in path_item.items() if k != "$ref"}}

    extra = path_item.get("additionalOperations")
    if is_oas3 and isinstance(extra, dict):
        for method_key in extra:
            if not _METHOD_TOKEN.match(method_key):
                raise ValidationError(
                    f"Path '{location}' defines additionalOperations method \"{method_key}\" "
                    "which is not a valid HTTP method token."
                )
            if method_key.lower() in _FIXED_METHODS:
                raise ValidationError(
                    f"Path '{location}' defines additionalOperations method \"{method_key}\" "
                    "which conflicts with a fixed HTTP method. Use the corresponding fixed "
                    f'field (e.g. "{method_key.lower()}") instead.'
                )

    if is_oas3:
        _validate_servers(path_item.get("servers"), f"{location}.servers")

    path_params = path_item.get("parameters") or []
    _validate_unique_parameters(spec, path_params, f"{location}.parameters")
    template_vars = set(_TEMPLATE_VAR.findall(template)) if template else set()

    operations = list(_iter_operations(path_item, is_oas3))
    for method, operation, relative in operations:
        where = f"{location}.{relative}"
        if not isinstance(operation, dict):
            raise ValidationError(f"Operation Object at '{where}' must be an object.")
        if is_oas3 and "responses" not in operation:
            raise ValidationError(f"Operation Object at '{where}' must define 'responses'.")
        if is_oas3:
            _validate_servers(operation.get("servers"), f"{where}.servers")

        operation_id = operation.get("operationId")
        if isinstance(operation_id, str):
            label = template if template is not None else location
            operation_ids.setdefault(operation_id, []).append(
                f"{id_prefix}{label} {method.upper()}"
            )

        op_params = operation.get("parameters") or []
        _validate_unique_parameters(spec, op_params, f"{where}.parameters")
        _validate_operation_parameters(
            spec,
            list(path_params) + list(op_params),
            f"{method.upper()} {template or location}",
            template_vars,
            skip_template_check=has_ref,
            is_oas3=is_oas3,
        )

        callbacks = operation.get("callbacks")
        if is_oas3 and isinstance(callbacks, dict):
            for callback_name, callback in callbacks.items():
                if not isinstance(callback, dict) or is_reference(callback):
                    continue
                for expression, callback_item in callback.items():
                    _validate_path_item(
                        spec,
                        callback_item,
                        f"{where}.callbacks.{callback_name}.{expression}",
                        None,
                        is_oas3,
                        operation_ids,
                        "callbacks:",
                    )


def _validate_operation_parameters(
    spec: dict[str, Any],
    params: list[Any],
    where: str,
    template_vars: set[str],
    *,
    skip_template_check: bool,
    is_oas3: bool,
) -> None:
    resolved: list[dict[str, Any]] = []
    unresolvable = False
    for param in params:
        target = _follow_local(spec, param) if is_reference(param) else param
        if target is None:
            unresolvable = True
            continue
        if not isinstance(target, dict):
            raise ValidationError(f"Parameter in '{where}' must be an object or Reference Object.")
        resolved.append(target)

    for param in resolved:
        _validate_parameter(spec, param, where, is_oas3)
        if param.get("in") == "path" and not skip_template_check:
            name = param.get("name")
            if name not in template_vars:
                raise ValidationError(
                    f"Path parameter '{name}' in '{where}' does not match any template variable."
                )
            if param.get("required") is not True:
                raise ValidationError(
                    f"Path parameter '{name}' in '{where}' must be marked as required: true."
                )

    if template_vars and not skip_template_check and not unresolvable:
        declared = {p.get("name") for p in resolved if p.get("in") == "path"}
        missing = sorted(template_vars - declared)
        if missing:
            raise ValidationError(
                f"Path template '{{{missing[0]}}}' in '{where}' is missing a corresponding "
                "'in: path' parameter definition."
            )

    locations = [p.get("in") for p in resolved]
    if "querystring" in locations:
        if "query" in locations:
            raise ValidationError(
                f"Operation '{where}' contains both 'query' and 'querystring' parameters. "
                "These are mutually exclusive."
            )
        if locations.count("querystring") > 1:
            raise ValidationError(
                f"Operation '{where}' defines more than one 'querystring' parameter. "
                "Only one is allowed."
            )


def _validate_unique_parameters(spec: dict[str, Any], params: Any, location: str) -> None:
    if not isinstance(params, list):
        raise ValidationError(f"Parameters at '{location}' must be an array.")
    seen: set[tuple[str, str]] = set()
    for param in params:
        if is_reference(param):
            param = _follow_local(spec, param)
        if not isinstance(param, dict):
            continue
        name, loc = param.get("name"), param.get("in")
        if not isinstance(name, str) or not isinstance(loc, str):
            continue
        key = (name.lower() if loc.lower() == "header" else name, loc)
        if key in seen:
            raise ValidationError(
                f"Duplicate parameter '{name}' in '{location}'. "
                "Parameter names must be unique per location."
            )
        seen.add(key)


def _validate_parameter(spec: dict[str, Any], param: Any, where: str, is_oas3: bool) -> None:
    """Check one Parameter Object (already dereferenced when it was local)."""
    if is_reference(param):
        return
    if not isinstance(param, dict):
        raise ValidationError(f"Parameter in '{where}' must be an object or Reference Object.")

    name = param.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(f"Parameter in '{where}' must define a non-empty string 'name'.")
    location = param.get("in")
    if not isinstance(location, str) or not location.strip():
        raise ValidationError(f"Parameter '{name}' in '{where}' must define a non-empty string 'in'.")

    allowed_locations = _OAS3_LOCATIONS if is_oas3 else _SWAGGER2_LOCATIONS
    if location not in allowed_locations:
        raise ValidationError(f"Parameter '{name}' in '{where}' has invalid location '{location}'.")
    if location == "header" and name.lower() in _RESERVED_HEADERS:
        return

    if "example" in param and "examples" in param:
        raise ValidationError(
            f"Parameter '{name}' in '{where}' contains both 'example' and 'examples'. "
            "These fields are mutually exclusive."
        )
    if param.get("allowEmptyValue"):
        if location != "query":
            raise ValidationError(
                f"Parameter '{name}' in '{where}' defines 'allowEmptyValue' but location is not 'query'."
            )
        if is_oas3 and "style" in param:
            raise ValidationError(
                f"Parameter '{name}' in '{where}' defines 'allowEmptyValue' alongside 'style'. "
                "This is forbidden."
            )

    if not is_oas3:
        return

    has_schema, has_content = "schema" in param, "content" in param
    if location == "querystring":
        if any(key in param for key in ("style", "explode", "allowReserved")):
            raise ValidationError(
                f"Parameter '{name}' in '{where}' has location 'querystring' but defines "
                "style/explode/allowReserved, which are forbidden."
            )
        if has_schema:
            raise ValidationError(
                f"Parameter '{name}' in '{where}' has location 'querystring' but defines 'schema'. "
                "Querystring parameters MUST use 'content' instead."
            )
        if not has_content:
            raise ValidationError(
                f"Parameter '{name}' in '{where}' has location 'querystring' but is missing "
                "'content'. Querystring parameters MUST use 'content'."
            )
    if not has_schema and not has_content:
        raise ValidationError(f"Parameter '{name}' in '{where}' must define either 'schema' or 'content'.")
    if has_schema and has_content:
        raise ValidationError(
            f"Parameter '{name}' in '{where}' contains both 'schema' and 'content'. "
            "These fields are mutually exclusive."
        )
    if has_content and (not isinstance(param["content"], dict) or len(param["content"]) != 1):
        raise ValidationError(
            f"Parameter '{name}' in '{where}' has an invalid 'content' map. "
            "It MUST contain exactly one entry."
        )
    _validate_parameter_style(spec, param, name, location, where)


def _validate_parameter_style(
    spec: dict[str, Any], param: dict[str, Any], name: str, location: str, where: str
) -> None:
    style = param.get("style")
    if style is None:
        return
    if not isinstance(style, str):
        raise ValidationError(f"Parameter '{name}' in '{where}' has non-string 'style'.")
    allowed = _PARAM_STYLE_BY_IN.get(location, frozenset())
    if style not in allowed:
        raise ValidationError(
            f"Parameter '{name}' in '{where}' has invalid style '{style}' for location '{location}'."
        )

    schema = param.get("schema")
    if is_reference(schema):
        schema = _follow_local(spec, schema)
    kind = _schema_kind(schema)
    if style == "deepObject" and kind not in ("object", "unknown"):
        raise ValidationError(
            f"Parameter '{name}' in '{where}' uses 'deepObject' style but schema is not an object."
        )
    if style in ("spaceDelimited", "pipeDelimited"):
        if kind == "primitive":
            raise ValidationError(
                f"Parameter '{name}' in '{where}' uses '{style}' style but schema is not an "
                "array or object."
            )
        if param.get("explode") is True:
            raise ValidationError(
                f"Parameter '{name}' in '{where}' uses '{style}' style with explode=true, "
                "which is not permitted."
            )


def _schema_kind(schema: Any) -> str:
    """Classify a schema as ``object``, ``array``, ``primitive`` or ``unknown``."""
    if not isinstance(schema, dict):
        return "unknown"
    schema_type = schema.get("type")
    types = schema_type if isinstance(schema_type, list) else [schema_type]
    types = [t for t in types if t and t != "null"]
    if not types:
        if "properties" in schema or "additionalProperties" in schema:
            return "object"
        if "items" in schema or "prefixItems" in schema:
            return "array"
        return "unknown"
    if len(types) > 1:
        return "unknown"
    if types[0] in ("object", "array"):
        return types[0]
    return "primitive"


def _follow_local(spec: dict[str, Any], value: Any) -> Any:
    """Follow a chain of local ``#/`` references. ``None`` when it cannot be followed."""
    seen: set[str] = set()
    while is_reference(value):
        ref = value.get("$ref")
        if not isinstance(ref, str) or not ref.startswith("#/") or ref in seen:
            return None
        seen.add(ref)
        value = evaluate_json_pointer(spec, ref)
    return value


# ---------------------------------------------------------------------------
# Components, tags, schema objects
# ---------------------------------------------------------------------------


def _validate_component_keys(components: dict[str, Any]) -> None:
    for component_type in _COMPONENT_TYPES:
        group = components.get(component_type)
        if not isinstance(group, dict):
            continue
        for key in group:
            if not isinstance(key, str) or not _COMPONENT_KEY.match(key):
                raise ValidationError(
                    f'Invalid component key "{key}" in "components.{component_type}". '
                    "Keys must match regex: ^[a-zA-Z0-9\\.\\-_]+$"
                )


def _validate_tags(tags: Any) -> None:
    if not tags:
        return
    if not isinstance(tags, list):
        raise ValidationError("Field 'tags' must be an array.")

    names: list[str] = [tag["name"] for tag in tags if isinstance(tag, dict) and isinstance(tag.get("name"), str)]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ValidationError(f"Duplicate tag name(s) detected: {', '.join(duplicates)}")

    parents: dict[str, str] = {}
    for tag in tags:
        if not isinstance(tag, dict) or "parent" not in tag:
            continue
        parent = tag["parent"]
        if parent not in names:
            raise ValidationError(
                f'Tag "{tag.get("name")}" has parent "{parent}" which does not exist in tags array.'
            )
        parents[tag.get("name")] = parent

    for name in names:
        seen: set[str] = set()
        current: Optional[str] = name
        while current in parents:
            if current in seen:
                raise ValidationError(f'Circular tag parent reference detected at "{current}".')
            seen.add(current)
            current = parents[current]


def _validate_schema_objects(
    schema: Any, location: str, *, allow_string_discriminator: bool
) -> None:
    """Walk *schema* and check every Discriminator and XML Object found."""
    stack: list[tuple[Any, str]] = [(schema, location)]
    seen: set[int] = set()
    while stack:
        node, where = stack.pop()
        if not isinstance(node, dict) or id(node) in seen:
            continue
        seen.add(id(node))
        _validate_discriminator(node, where, allow_string_discriminator)
        _validate_xml(node, where)

        for key in _SUBSCHEMA_KEYS:
            if isinstance(node.get(key), dict):
                stack.append((node[key], f"{where}.{key}"))
        for key in _SUBSCHEMA_LIST_KEYS:
            if isinstance(node.get(key), list):
                stack.extend((item, f"{where}.{key}[{i}]") for i, item in enumerate(node[key]))
        for key in _SUBSCHEMA_MAP_KEYS:
            if isinstance(node.get(key), dict):
                stack.extend((item, f"{where}.{key}.{name}") for name, item in node[key].items())


def _validate_discriminator(schema: dict[str, Any], location: str, allow_string: bool) -> None:
    discriminator = schema.get("discriminator")
    if discriminator is None:
        return
    if isinstance(discriminator, str) and allow_string:
        return
    if not isinstance(discriminator, dict):
        raise ValidationError(f"Discriminator at '{location}' must be an object.")

    property_name = discriminator.get("propertyName")
    if not isinstance(property_name, str) or not property_name.strip():
        raise ValidationError(
            f"Discriminator at '{location}' must define a non-empty string 'propertyName'."
        )
    mapping = discriminator.get("mapping")
    if mapping is not None:
        if not isinstance(mapping, dict):
            raise ValidationError(f"Discriminator mapping at '{location}' must be an object.")
        for key, value in mapping.items():
            if not isinstance(value, str):
                raise ValidationError(
                    f"Discriminator mapping value for '{key}' at '{location}' must be a string."
                )
    if "defaultMapping" in discriminator and not isinstance(discriminator["defaultMapping"], str):
        raise ValidationError(f"Discriminator defaultMapping at '{location}' must be a string.")


def _validate_xml(schema: dict[str, Any], location: str) -> None:
    xml = schema.get("xml")
    if xml is None:
        return
    if not isinstance(xml, dict):
        raise ValidationError(f"XML Object at '{location}' must be an object.")

    if "nodeType" in xml:
        if xml["nodeType"] not in _XML_NODE_TYPES:
            raise ValidationError(f"XML Object at '{location}' has invalid 'nodeType'.")
        if "attribute" in xml:
            raise ValidationError(
                f"XML Object at '{location}' MUST NOT define 'attribute' when 'nodeType' is present."
            )
        if "wrapped" in xml:
            raise ValidationError(
                f"XML Object at '{location}' MUST NOT define 'wrapped' when 'nodeType' is present."
            )
    for key in ("name", "prefix"):
        if key in xml and not isinstance(xml[key], str):
            raise ValidationError(f"XML Object at '{location}' has non-string '{key}'.")
    for key in ("attribute", "wrapped"):
        if key in xml and not isinstance(xml[key], bool):
            raise ValidationError(f"XML Object at '{location}' has non-boolean '{key}'.")
    if xml.get("wrapped") is True and _schema_kind(schema) not in ("array", "unknown"):
        raise ValidationError(
            f"XML Object at '{location}' defines 'wrapped' but the schema is not an array."
        )
