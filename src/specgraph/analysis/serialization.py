"""Describe how each operation's parameters, body and responses travel on the wire.

:class:`SerializationAnalyzer` reads the typed :class:`~specgraph.models.PathInfo`
records produced by the extractor and turns them into the serialization
descriptors from :mod:`specgraph.models`:

* :class:`~specgraph.models.ParamSerialization` per parameter, with the
  ``style`` / ``explode`` / ``allowReserved`` defaults filled in
* one ``BodyVariant`` per request body, chosen by media type priority
  (json > xml > multipart > urlencoded > raw)
* :class:`~specgraph.models.ResponseVariant` per success media type and
  :class:`~specgraph.models.ErrorResponse` per error status code
* XML naming trees and the content decoding / encoding trees used for
  strings that embed serialized documents

The analyzer only reads. Schemas are resolved through the shared
:class:`~specgraph.parser.resolver.ReferenceResolver` and never copied back
into the document.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Collection, Optional

from specgraph.models import (
    BodyVariant,
    DecodingConfig,
    EncodedFormDataBody,
    EncodingConfig,
    ErrorResponse,
    FormField,
    GeneratorOptions,
    JsonBody,
    JsonLinesBody,
    JsonSeqBody,
    MediaType,
    MultipartBody,
    OperationSerialization,
    Parameter,
    ParameterLocation,
    ParamSerialization,
    PartEncoding,
    PathInfo,
    RawBody,
    ResponseKind,
    ResponseVariant,
    UrlEncodedBody,
    XmlBody,
    XmlConfig,
)
from specgraph.naming import camel_case
from specgraph.parser.resolver import ReferenceResolver
from specgraph.typemap import python_type

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Defaults and media type tables
# ---------------------------------------------------------------------------

# Default ``style`` per parameter location.
_DEFAULT_STYLES: dict[str, str] = {
    ParameterLocation.PATH.value: "simple",
    ParameterLocation.QUERY.value: "form",
    ParameterLocation.QUERYSTRING.value: "form",
    ParameterLocation.HEADER.value: "simple",
    ParameterLocation.COOKIE.value: "form",
}

# Styles whose ``explode`` defaults to true.
_EXPLODING_STYLES = ("form", "cookie")

_MULTIPART_PRIORITY = ("multipart/form-data", "multipart/mixed", "multipart/byteranges")
_URLENCODED = "application/x-www-form-urlencoded"
_JSON_LINES = ("application/jsonl", "application/x-ndjson")
_JSON_SEQ = "application/json-seq"
_TRANSFER_ENCODING = "Content-Transfer-Encoding"

_SUCCESS_CODE = re.compile(r"^2\d\d$")

# Depth used for XML naming trees.
_XML_DEPTH = 5


def _is_json_media_type(media_type: str) -> bool:
    return "json" in media_type.lower()


def _is_xml_media_type(media_type: str) -> bool:
    lowered = media_type.lower()
    return lowered == "application/xml" or lowered == "text/xml" or lowered.endswith("+xml")


def _schema_types(schema: Any) -> set[str]:
    if not isinstance(schema, dict):
        return set()
    declared = schema.get("type")
    if isinstance(declared, str):
        return {declared}
    if isinstance(declared, list):
        return {item for item in declared if isinstance(item, str)}
    return set()


def _media_schema(media: Optional[MediaType]) -> Any:
    if media is None:
        return None
    return media.schema_ if media.schema_ is not None else media.item_schema


class SerializationAnalyzer:
    """Derive wire-format descriptors for operations.

    Args:
        resolver: Resolver bound to the run's document cache.
        options: Generator options; ``content_decoding_depth`` bounds the
            decoding walk and the type options shape ``type_hint`` values.
        known_names: Registered model names, used for type hints.
        ref_namer: Maps a reference object to a model name, used for type
            hints.
    """

    def __init__(
        self,
        resolver: ReferenceResolver,
        options: Optional[GeneratorOptions] = None,
        known_names: Optional[Collection[str]] = None,
        ref_namer: Optional[Callable[[dict[str, Any]], str]] = None,
    ) -> None:
        self.resolver = resolver
        self.options = options or GeneratorOptions()
        self.known_names = known_names
        self.ref_namer = ref_namer

    # ------------------------------------------------------------------ #
    # Operation
    # ------------------------------------------------------------------ #

    def analyze_operation(self, path_info: PathInfo) -> OperationSerialization:
        """Bundle every descriptor for *path_info*, parameters bucketed by location."""
        result = OperationSerialization(
            path=path_info.path,
            method=path_info.method,
            method_name=path_info.method_name,
            security=list(path_info.security or []),
            base_path=self._base_path(path_info),
        )
        for param in path_info.parameters:
            location = param.location
            if location in (ParameterLocation.BODY.value, ParameterLocation.FORM_DATA.value):
                continue
            descriptor = self.analyze_parameter(param)
            if location == ParameterLocation.PATH.value:
                result.path_params.append(descriptor)
            elif location in (ParameterLocation.QUERY.value, ParameterLocation.QUERYSTRING.value):
                result.query_params.append(descriptor)
            elif location == ParameterLocation.HEADER.value:
                result.header_params.append(descriptor)
            elif location == ParameterLocation.COOKIE.value:
                result.cookie_params.append(descriptor)

        result.body = self.analyze_body(path_info)
        result.request_encoding = self._request_encoding(path_info)
        result.responses = self.analyze_responses(path_info)
        result.error_responses = self.analyze_error_responses(path_info)
        logger.debug(
            "Analyzed %s %s: %d param(s), body=%s, %d response variant(s)",
            path_info.method,
            path_info.path,
            len(path_info.parameters),
            result.body.kind if result.body is not None else None,
            len(result.responses),
        )
        return result

    def _base_path(self, path_info: PathInfo) -> Optional[str]:
        if not path_info.servers:
            return None
        server = path_info.servers[0]
        url = server.url
        for name, variable in server.variables.items():
            if variable.default is not None:
                url = url.replace("{" + name + "}", variable.default)
        return url

    def _request_encoding(self, path_info: PathInfo) -> Optional[EncodingConfig]:
        body = path_info.request_body
        if body is None or not body.content:
            return None
        for media_type, media in body.content.items():
            if _is_json_media_type(media_type) or media_type == _URLENCODED:
                config = self.get_encoding_config(media.schema_)
                return None if config.is_empty() else config
        return None

    # ------------------------------------------------------------------ #
    # Parameters
    # ------------------------------------------------------------------ #

    def analyze_parameter(self, parameter: Parameter) -> ParamSerialization:
        """Compute the effective serialization of one parameter.

        Explicit ``style`` / ``explode`` / ``allowReserved`` values win. The
        location defaults apply otherwise, and ``explode`` follows the
        effective style. A ``content``-based parameter is sent as a
        serialized document of its (single) media type.
        """
        style = parameter.style or _DEFAULT_STYLES.get(parameter.location, "simple")
        explode = parameter.explode if parameter.explode is not None else style in _EXPLODING_STYLES
        param_name = camel_case(parameter.name) or parameter.name

        content_type: Optional[str] = None
        link: Optional[str] = None
        if parameter.content:
            content_type = next(iter(parameter.content))
            if any(_is_json_media_type(key) or "*/*" in key for key in parameter.content):
                link = "json"
            if any(_is_xml_media_type(key) for key in parameter.content):
                param_name = f"{param_name}Serialized"
        elif self._has_json_content_media_type(parameter.schema_):
            link = "json"

        return ParamSerialization(
            param_name=param_name,
            original_name=parameter.name,
            location=parameter.location,
            style=style,
            explode=explode,
            allow_reserved=bool(parameter.allow_reserved),
            content_type=content_type,
            serialization_link=link,
        )

    def _has_json_content_media_type(self, schema: Any) -> bool:
        if not isinstance(schema, dict):
            return False
        for candidate in (schema, self.resolver.resolve(schema)):
            media = candidate.get("contentMediaType") if isinstance(candidate, dict) else None
            if isinstance(media, str) and _is_json_media_type(media):
                return True
        return False

    # ------------------------------------------------------------------ #
    # Request body
    # ------------------------------------------------------------------ #

    def analyze_body(self, path_info: PathInfo) -> Optional[BodyVariant]:
        """Pick the single body variant for *path_info*, or ``None`` without a body."""
        form_params = [
            p for p in path_info.parameters if p.location == ParameterLocation.FORM_DATA.value
        ]
        if form_params:
            return self._form_data_body(path_info, form_params)

        body = path_info.request_body
        if body is None:
            return None
        if not body.content:
            return RawBody()

        content = body.content
        json_key = self._pick(content, _is_json_media_type, preferred="application/json")
        if json_key is not None:
            return self._json_body(json_key, content[json_key])

        xml_key = self._pick(content, _is_xml_media_type, preferred="application/xml")
        if xml_key is not None:
            schema = content[xml_key].schema_
            resolved = self.resolver.resolve(schema)
            xml = resolved.get("xml") if isinstance(resolved, dict) else None
            root_name = xml.get("name") if isinstance(xml, dict) else None
            return XmlBody(
                media_type=xml_key,
                root_name=root_name if isinstance(root_name, str) and root_name else "root",
                config=self.get_xml_config(schema, _XML_DEPTH),
            )

        multipart_key = next((key for key in _MULTIPART_PRIORITY if key in content), None)
        if multipart_key is None:
            multipart_key = next((key for key in content if key.startswith("multipart/")), None)
        if multipart_key is not None:
            return self._multipart_body(multipart_key, content[multipart_key])

        if _URLENCODED in content:
            media = content[_URLENCODED]
            encoding_config = self.get_encoding_config(media.schema_)
            return UrlEncodedBody(
                media_type=_URLENCODED,
                encoding={name: _part(value) for name, value in media.encoding.items()},
                encoding_config=None if encoding_config.is_empty() else encoding_config,
            )

        return RawBody(media_type=next(iter(content)))

    @staticmethod
    def _pick(
        content: dict[str, MediaType], matches: Callable[[str], bool], preferred: str
    ) -> Optional[str]:
        if preferred in content:
            return preferred
        return next((key for key in content if matches(key)), None)

    def _json_body(self, media_type: str, media: MediaType) -> BodyVariant:
        schema = _media_schema(media)
        lowered = media_type.lower()
        if lowered == _JSON_SEQ:
            return JsonSeqBody(media_type=media_type, schema=schema)
        if lowered in _JSON_LINES:
            return JsonLinesBody(media_type=media_type, schema=schema)
        encoding_config = self.get_encoding_config(media.schema_)
        return JsonBody(
            media_type=media_type,
            schema=schema,
            encoding_config=None if encoding_config.is_empty() else encoding_config,
        )

    def _form_data_body(self, path_info: PathInfo, params: list[Parameter]) -> EncodedFormDataBody:
        consumes = [media.lower() for media in path_info.consumes]
        multipart = any(media.startswith("multipart/") for media in consumes)
        if not consumes and path_info.request_body is not None:
            multipart = any(key.startswith("multipart/") for key in path_info.request_body.content)
        fields = [
            FormField(
                name=camel_case(param.name) or param.name,
                original_name=param.name,
                required=param.required,
                schema=param.schema_,
                collection_format=param.collection_format,
            )
            for param in params
        ]
        return EncodedFormDataBody(
            param_name="formData" if multipart else "formBody",
            media_type="multipart/form-data" if multipart else _URLENCODED,
            multipart=multipart,
            fields=fields,
        )

    def _multipart_body(self, media_type: str, media: MediaType) -> MultipartBody:
        encoding = {name: _part(value) for name, value in media.encoding.items()}
        prefix_encoding = [_part(value) for value in media.prefix_encoding]
        item_encoding = _part(media.item_encoding) if media.item_encoding is not None else None

        schema = self.resolver.resolve(media.schema_)
        if isinstance(schema, dict):
            properties = schema.get("properties")
            if isinstance(properties, dict):
                for name, prop in properties.items():
                    encoding[name] = self._enrich_part(prop, encoding.get(name))

            is_array = "array" in _schema_types(schema) or "items" in schema or "prefixItems" in schema
            if is_array:
                prefix_items = schema.get("prefixItems")
                if isinstance(prefix_items, list):
                    for index, item in enumerate(prefix_items):
                        existing = prefix_encoding[index] if index < len(prefix_encoding) else None
                        enriched = self._enrich_part(item, existing)
                        if index < len(prefix_encoding):
                            prefix_encoding[index] = enriched
                        else:
                            prefix_encoding.append(enriched)
                items = schema.get("items")
                if isinstance(items, dict):
                    item_encoding = self._enrich_part(items, item_encoding)

        return MultipartBody(
            media_type=media_type,
            encoding=encoding,
            prefix_encoding=prefix_encoding,
            item_encoding=item_encoding,
        )

    def _enrich_part(self, schema: Any, part: Optional[PartEncoding]) -> PartEncoding:
        """Fill in the part encoding implied by the part's schema.

        Object and array parts default to ``application/json``. A
        ``contentEncoding`` adds a ``Content-Transfer-Encoding`` header unless
        one is already declared (compared case-insensitively).
        """
        part = part if part is not None else PartEncoding()
        resolved = self.resolver.resolve(schema)
        if not isinstance(resolved, dict):
            return part
        if part.content_type is None and _schema_types(resolved) & {"object", "array"}:
            part.content_type = "application/json"
        content_encoding = resolved.get("contentEncoding")
        if isinstance(content_encoding, str):
            declared = {name.lower() for name in part.headers}
            if _TRANSFER_ENCODING.lower() not in declared:
                part.headers[_TRANSFER_ENCODING] = content_encoding
        return part

    # ------------------------------------------------------------------ #
    # Responses
    # ------------------------------------------------------------------ #

    def success_code(self, path_info: PathInfo) -> Optional[str]:
        """Status code treated as the success response.

        ``204`` wins, then the first explicit ``2xx`` code, then ``2XX``, then
        ``default``.
        """
        responses = path_info.responses
        if "204" in responses:
            return "204"
        explicit = next((code for code in responses if _SUCCESS_CODE.match(code)), None)
        if explicit is not None:
            return explicit
        if "2XX" in responses:
            return "2XX"
        if "default" in responses:
            return "default"
        return None

    def analyze_responses(self, path_info: PathInfo) -> list[ResponseVariant]:
        """List the ways the success response can be read, exactly one marked default."""
        if not path_info.responses:
            return self._request_schema_fallback(path_info)

        code = self.success_code(path_info)
        if code is None:
            return []
        if code == "204":
            return [ResponseVariant(status_code=code, type_hint="None", is_default=True)]

        response = path_info.responses[code]
        if not response.content:
            return [ResponseVariant(status_code=code, is_default=True)]

        variants: list[ResponseVariant] = []
        for media_type, media in response.content.items():
            variant = self._response_variant(code, media_type, media)
            if variant is not None:
                variants.append(variant)
        if variants and not any(variant.is_default for variant in variants):
            variants[0].is_default = True
        return variants

    def _request_schema_fallback(self, path_info: PathInfo) -> list[ResponseVariant]:
        body = path_info.request_body
        media = body.content.get("application/json") if body is not None else None
        if media is None or media.schema_ is None:
            return []
        return [
            ResponseVariant(
                status_code="default",
                media_type="application/json",
                schema=media.schema_,
                type_hint=self._type_hint(media.schema_),
                is_default=True,
            )
        ]

    def _response_variant(
        self, code: str, media_type: str, media: MediaType
    ) -> Optional[ResponseVariant]:
        schema = _media_schema(media)
        if schema is None:
            return None
        lowered = media_type.lower()

        if _is_json_media_type(lowered) or "*/*" in lowered:
            if lowered == _JSON_SEQ:
                return ResponseVariant(
                    status_code=code,
                    media_type=media_type,
                    kind=ResponseKind.JSON_SEQ,
                    schema=schema,
                    type_hint=f"list[{self._type_hint(schema)}]",
                )
            if lowered in _JSON_LINES:
                return ResponseVariant(
                    status_code=code,
                    media_type=media_type,
                    kind=ResponseKind.JSON_LINES,
                    schema=schema,
                    type_hint=f"list[{self._type_hint(schema)}]",
                )
            decoding = self.get_decoding_config(media.schema_) if media.schema_ is not None else None
            return ResponseVariant(
                status_code=code,
                media_type=media_type,
                kind=ResponseKind.JSON,
                schema=schema,
                type_hint=self._type_hint(media.schema_),
                is_default=lowered == "application/json",
                decoding=decoding if decoding is not None and not decoding.is_empty() else None,
            )

        if lowered == "application/xml" or lowered.endswith("+xml"):
            if media.schema_ is None:
                return None
            return ResponseVariant(
                status_code=code,
                media_type=media_type,
                kind=ResponseKind.XML,
                schema=media.schema_,
                type_hint=self._type_hint(media.schema_),
                xml_config=self.get_xml_config(media.schema_, _XML_DEPTH),
            )

        if lowered == "text/event-stream":
            return ResponseVariant(
                status_code=code,
                media_type=media_type,
                kind=ResponseKind.SSE,
                schema=schema,
                type_hint=self._type_hint(schema),
            )
        if lowered.startswith("text/"):
            return ResponseVariant(
                status_code=code, media_type=media_type, kind=ResponseKind.TEXT, schema=schema, type_hint="str"
            )
        return ResponseVariant(
            status_code=code, media_type=media_type, kind=ResponseKind.BLOB, schema=schema, type_hint="bytes"
        )

    def analyze_error_responses(self, path_info: PathInfo) -> list[ErrorResponse]:
        """List the non-success status codes with their (preferred) schema.

        JSON (or ``*/*``) content wins, then ``application/xml``, then
        ``text/plain``. ``401`` / ``403`` without content carry no body.
        """
        success = self.success_code(path_info)
        errors: list[ErrorResponse] = []
        for code, response in path_info.responses.items():
            if code == success or _SUCCESS_CODE.match(code) or code == "2XX":
                continue

            media_type: Optional[str] = None
            schema: Any = None
            type_hint = "Any"
            content = response.content
            if content:
                for candidate in ("application/json", "*/*", "application/xml"):
                    media = content.get(candidate)
                    if media is not None and media.schema_ is not None:
                        media_type, schema = candidate, media.schema_
                        type_hint = self._type_hint(schema)
                        break
                else:
                    if "text/plain" in content:
                        media_type, type_hint = "text/plain", "str"
            elif code in ("401", "403"):
                type_hint = "None"

            errors.append(
                ErrorResponse(
                    status_code=code,
                    description=response.description,
                    media_type=media_type,
                    schema=schema,
                    type_hint=type_hint,
                )
            )
        return errors

    def _type_hint(self, schema: Any) -> str:
        return python_type(schema, self.options, self.known_names, self.ref_namer)

    # ------------------------------------------------------------------ #
    # Schema trees
    # ------------------------------------------------------------------ #

    def get_xml_config(self, schema: Any, depth: int = _XML_DEPTH) -> XmlConfig:
        """Build the XML naming tree of *schema*, *depth* levels deep.

        ``node_type`` is the declared ``nodeType``, else ``element`` for a
        wrapped array, else ``none`` for references and unwrapped arrays,
        else ``element``. ``allOf`` members contribute their properties.
        """
        if schema is None or depth <= 0:
            return XmlConfig()
        resolved = self.resolver.resolve(schema)
        if not isinstance(resolved, dict):
            return XmlConfig()

        xml = resolved.get("xml") if isinstance(resolved.get("xml"), dict) else {}
        config = XmlConfig(
            name=xml.get("name") or None,
            namespace=xml.get("namespace") or None,
            prefix=xml.get("prefix") or None,
            attribute=xml.get("attribute") is True,
            wrapped=xml.get("wrapped") is True,
        )
        is_array = "array" in _schema_types(resolved)
        if isinstance(xml.get("nodeType"), str):
            config.node_type = xml["nodeType"]
        elif config.wrapped:
            config.node_type = "element"
        elif (isinstance(schema, dict) and ("$ref" in schema or "$dynamicRef" in schema)) or is_array:
            config.node_type = "none"
        else:
            config.node_type = "element"

        if is_array and isinstance(resolved.get("items"), dict):
            config.items = self.get_xml_config(resolved["items"], depth - 1)

        properties = resolved.get("properties")
        if isinstance(properties, dict):
            for name, prop in properties.items():
                config.properties[name] = self.get_xml_config(prop, depth - 1)

        all_of = resolved.get("allOf")
        if isinstance(all_of, list):
            for member in all_of:
                config.properties.update(self.get_xml_config(member, depth - 1).properties)
        return config

    def get_decoding_config(self, schema: Any, depth: Optional[int] = None) -> DecodingConfig:
        """Locate strings that embed encoded content anywhere in *schema*.

        A string with ``contentSchema`` is decoded as XML when its
        ``contentMediaType`` mentions xml, otherwise as JSON. A
        ``contentEncoding`` (``base64`` and friends) is reported as well.
        The walk stops after ``options.content_decoding_depth`` levels.
        """
        if depth is None:
            depth = self.options.content_decoding_depth
        if schema is None or depth <= 0:
            return DecodingConfig()
        resolved = self.resolver.resolve(schema)
        if not isinstance(resolved, dict):
            return DecodingConfig()

        config = DecodingConfig()
        if "string" in _schema_types(resolved):
            content_encoding = resolved.get("contentEncoding")
            if isinstance(content_encoding, str):
                config.content_encoding = content_encoding
            if "contentSchema" in resolved:
                media = resolved.get("contentMediaType")
                if isinstance(media, str) and "xml" in media.lower():
                    config.decode = "xml"
                    config.xml_config = self.get_xml_config(resolved["contentSchema"], _XML_DEPTH)
                else:
                    config.decode = "json"
            if config.decode is not None or config.content_encoding is not None:
                return config

        items = resolved.get("items")
        if "array" in _schema_types(resolved) and isinstance(items, dict):
            item_config = self.get_decoding_config(items, depth - 1)
            if not item_config.is_empty():
                config.items = item_config

        for name, prop in _properties_with_all_of(resolved, self.resolver):
            prop_config = self.get_decoding_config(prop, depth - 1)
            if not prop_config.is_empty():
                config.properties[name] = prop_config
        return config

    def get_encoding_config(self, schema: Any, depth: Optional[int] = None) -> EncodingConfig:
        """Locate strings that must carry a JSON document (``contentMediaType`` JSON)."""
        if depth is None:
            depth = self.options.content_decoding_depth
        if schema is None or depth <= 0:
            return EncodingConfig()
        resolved = self.resolver.resolve(schema)
        if not isinstance(resolved, dict):
            return EncodingConfig()

        media = resolved.get("contentMediaType")
        if "string" in _schema_types(resolved) and isinstance(media, str) and _is_json_media_type(media):
            return EncodingConfig(encode=True)

        config = EncodingConfig()
        items = resolved.get("items")
        if "array" in _schema_types(resolved) and isinstance(items, dict):
            item_config = self.get_encoding_config(items, depth - 1)
            if not item_config.is_empty():
                config.items = item_config

        for name, prop in _properties_with_all_of(resolved, self.resolver):
            prop_config = self.get_encoding_config(prop, depth - 1)
            if not prop_config.is_empty():
                config.properties[name] = prop_config
        return config


def _properties_with_all_of(schema: dict[str, Any], resolver: ReferenceResolver) -> list[tuple[str, Any]]:
    """Own properties followed by those of each ``allOf`` member (one level)."""
    found: list[tuple[str, Any]] = []
    properties = schema.get("properties")
    if isinstance(properties, dict):
        found.extend(properties.items())
    all_of = schema.get("allOf")
    if isinstance(all_of, list):
        for member in all_of:
            resolved = resolver.resolve(member)
            if isinstance(resolved, dict) and isinstance(resolved.get("properties"), dict):
                found.extend(resolved["properties"].items())
    return found


def _part(raw: Any) -> PartEncoding:
    if isinstance(raw, PartEncoding):
        return raw.model_copy(deep=True)
    return PartEncoding.model_validate(raw if isinstance(raw, dict) else {})
