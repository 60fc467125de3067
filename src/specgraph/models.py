"""Canonical Pydantic models shared across all specgraph modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into four groups:

**Configuration models** -- loaded from ``./specgraph.json``, the environment
and CLI flags:
    :class:`DateType`, :class:`Int64Type`, :class:`EnumStyle`,
    :class:`GeneratorOptions` and :class:`GeneratorConfig`.

**Document node models** -- typed views over the raw OpenAPI grammar built by
the extractor. Each node keeps its ``x-*`` keys in an ``extensions`` bag:
    :class:`MediaType`, :class:`Header`, :class:`Response`,
    :class:`RequestBody`, :class:`Parameter`, :class:`ServerVariable`,
    :class:`Server`, :class:`SecurityScheme` and :class:`PathInfo`.

**Normalized model** -- produced by the normalizer and the facade:
    :class:`SpecVersion`, :class:`SchemaEntry`, :class:`PolymorphicOption`,
    :class:`DiscriminatorEntry`, :class:`FormProperty`,
    :class:`ResourceOperation` and :class:`Resource`.

**Serialization descriptors** -- produced by the analyzers:
    :class:`ParamSerialization`, :class:`PartEncoding`, :class:`XmlConfig`,
    :class:`DecodingConfig`, :class:`EncodingConfig`, the ``BodyVariant``
    union, :class:`ResponseVariant`, :class:`ErrorResponse`,
    :class:`OperationSerialization`, :class:`RuleKind` and
    :class:`ValidationRule`.

JSON Schema values stay plain ``dict`` (or ``bool``) objects. The vocabulary
is open-ended and emitters walk it directly.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class DateType(str, enum.Enum):
    """Python type used for ``format: date`` / ``date-time`` strings."""

    STRING = "string"
    DATETIME = "datetime"


class Int64Type(str, enum.Enum):
    """Python type used for ``integer`` values with ``format: int64``."""

    INT = "int"
    STR = "str"


class EnumStyle(str, enum.Enum):
    """How ``enum`` schemas are rendered: a named ``Enum`` or a ``Literal`` union."""

    ENUM = "enum"
    UNION = "union"


class GeneratorOptions(BaseModel):
    """Options that steer type mapping and analysis.

    None of these change how references are resolved. They only affect the
    descriptors handed to emitters.
    """

    date_type: DateType = DateType.STRING
    int64_type: Int64Type = Int64Type.INT
    enum_style: EnumStyle = EnumStyle.ENUM
    customize_method_name: Optional[Callable[[str], str]] = Field(
        default=None,
        exclude=True,
        description="Callback mapping an operationId to a method name",
    )
    content_decoding_depth: int = Field(
        default=6,
        ge=1,
        description="Maximum schema depth searched for contentSchema/contentEncoding",
    )


class GeneratorConfig(BaseModel):
    """Top-level configuration for one run.

    See :func:`~specgraph.config.resolve_config` for how the values are
    assembled from flags, environment variables and the project file.
    """

    input: Optional[str] = Field(
        default=None, description="Local path, file:// URI or http(s) URL of the entry document"
    )
    output: Optional[str] = None
    options: GeneratorOptions = Field(default_factory=GeneratorOptions)


# --- Document nodes ---


class HTTPMethod(str, enum.Enum):
    """Fixed HTTP methods of a path item, including the OAS 3.2 ``query`` method."""

    GET = "get"
    PUT = "put"
    POST = "post"
    DELETE = "delete"
    OPTIONS = "options"
    HEAD = "head"
    PATCH = "patch"
    TRACE = "trace"
    QUERY = "query"


class ParameterLocation(str, enum.Enum):
    """Values of a parameter's ``in`` field.

    ``BODY`` and ``FORM_DATA`` only occur in Swagger 2.0 documents.
    """

    QUERY = "query"
    QUERYSTRING = "querystring"
    HEADER = "header"
    PATH = "path"
    COOKIE = "cookie"
    BODY = "body"
    FORM_DATA = "formData"


class _Node(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    extensions: dict[str, Any] = Field(default_factory=dict)


class MediaType(_Node):
    """An OpenAPI *Media Type Object*."""

    schema_: Any = Field(default=None, alias="schema")
    item_schema: Any = Field(default=None, alias="itemSchema")
    encoding: dict[str, dict[str, Any]] = Field(default_factory=dict)
    prefix_encoding: list[dict[str, Any]] = Field(default_factory=list, alias="prefixEncoding")
    item_encoding: Optional[dict[str, Any]] = Field(default=None, alias="itemEncoding")
    example: Any = None
    examples: dict[str, Any] = Field(default_factory=dict)


class Header(_Node):
    description: Optional[str] = None
    required: bool = False
    deprecated: bool = False
    schema_: Any = Field(default=None, alias="schema")
    content: dict[str, MediaType] = Field(default_factory=dict)
    style: Optional[str] = None
    explode: Optional[bool] = None
    example: Any = None


class Response(_Node):
    """An OpenAPI *Response Object*. Swagger 2.0 responses are lifted into ``content``."""

    description: Optional[str] = None
    headers: dict[str, Header] = Field(default_factory=dict)
    content: dict[str, MediaType] = Field(default_factory=dict)
    links: dict[str, Any] = Field(default_factory=dict)


class RequestBody(_Node):
    description: Optional[str] = None
    required: bool = False
    content: dict[str, MediaType] = Field(default_factory=dict)


class Parameter(_Node):
    """An OpenAPI *Parameter Object* after ``$ref`` resolution.

    ``style``, ``explode`` and ``allow_reserved`` hold only what the document
    declares. The computed defaults live on
    :class:`ParamSerialization`.
    """

    name: str
    location: str = Field(alias="in")
    required: bool = False
    description: Optional[str] = None
    deprecated: bool = False
    schema_: Any = Field(default=None, alias="schema")
    content: Optional[dict[str, MediaType]] = None
    style: Optional[str] = None
    explode: Optional[bool] = None
    allow_reserved: Optional[bool] = Field(default=None, alias="allowReserved")
    allow_empty_value: Optional[bool] = Field(default=None, alias="allowEmptyValue")
    collection_format: Optional[str] = Field(default=None, alias="collectionFormat")
    example: Any = None
    examples: dict[str, Any] = Field(default_factory=dict)


class ServerVariable(_Node):
    default: Optional[str] = None
    enum: Optional[list[str]] = None
    description: Optional[str] = None


class Server(_Node):
    """An OpenAPI *Server Object*. ``name`` is new in OAS 3.2."""

    url: str
    description: Optional[str] = None
    name: Optional[str] = None
    variables: dict[str, ServerVariable] = Field(default_factory=dict)


class SecurityScheme(_Node):
    """An OpenAPI *Security Scheme Object* (or a Swagger 2.0 *Security Definition*).

    The ``type`` field discriminates between ``apiKey``, ``http``, ``oauth2``,
    ``openIdConnect``, ``mutualTLS`` and the Swagger 2.0 ``basic``. Only the
    fields relevant to the active type are populated.
    """

    type: str
    description: Optional[str] = None
    deprecated: bool = False
    # apiKey
    name: Optional[str] = None
    location: Optional[str] = Field(default=None, alias="in")
    # http
    scheme: Optional[str] = None
    bearer_format: Optional[str] = Field(default=None, alias="bearerFormat")
    # oauth2
    flows: Optional[dict[str, Any]] = None
    oauth2_metadata_url: Optional[str] = Field(default=None, alias="oauth2MetadataUrl")
    # Swagger 2.0 oauth2
    flow: Optional[str] = None
    authorization_url: Optional[str] = Field(default=None, alias="authorizationUrl")
    token_url: Optional[str] = Field(default=None, alias="tokenUrl")
    scopes: Optional[dict[str, str]] = None
    # openIdConnect
    open_id_connect_url: Optional[str] = Field(default=None, alias="openIdConnectUrl")


class PathInfo(BaseModel):
    """One HTTP operation, fully denormalized.

    Created once by :func:`~specgraph.parser.extractor.extract_paths`.
    ``method_name`` is the only field filled in afterwards.
    """

    model_config = ConfigDict(populate_by_name=True)

    path: str
    method: str = Field(description="Upper-case HTTP method, e.g. 'GET' or 'COPY'")
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    parameters: list[Parameter] = Field(default_factory=list)
    request_body: Optional[RequestBody] = None
    responses: dict[str, Response] = Field(default_factory=dict)
    security: Optional[list[dict[str, list[str]]]] = Field(
        default=None,
        description="Security requirements, or None when neither the operation nor the document declares any",
    )
    deprecated: bool = False
    servers: list[Server] = Field(default_factory=list)
    callbacks: dict[str, list[PathInfo]] = Field(default_factory=dict)
    external_docs: Optional[dict[str, Any]] = None
    consumes: list[str] = Field(default_factory=list)
    produces: list[str] = Field(default_factory=list)
    extensions: dict[str, Any] = Field(default_factory=dict)
    method_name: Optional[str] = None


# --- Normalized model ---


class SpecVersion(BaseModel):
    type: Literal["openapi", "swagger"]
    version: str


class SchemaEntry(BaseModel):
    """A named entry of the schema registry."""

    name: str
    definition: Any


class PolymorphicOption(BaseModel):
    """One concrete branch of a discriminated ``oneOf``/``anyOf``.

    ``name`` is the discriminator value that selects this branch.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_: Any = Field(alias="schema")


class DiscriminatorEntry(BaseModel):
    """Registry value for a polymorphic parent schema.

    ``mapping`` maps discriminator values to registered schema names.
    """

    property_name: str
    mapping: dict[str, str] = Field(default_factory=dict)
    default_mapping: Optional[str] = None


class FormProperty(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_: Any = Field(alias="schema")
    required: bool = False


class ResourceOperation(BaseModel):
    """A :class:`PathInfo` placed inside a :class:`Resource` with an action label.

    ``action`` is one of ``list``, ``create``, ``getById``, ``update`` and
    ``delete``, or a camelCase custom action name.
    """

    action: str
    path: str
    method: str
    method_name: Optional[str] = None
    operation_id: Optional[str] = None
    parameters: list[Parameter] = Field(default_factory=list)
    is_custom_item_action: bool = False
    is_custom_collection_action: bool = False


class Resource(BaseModel):
    """Operations grouped by tag (or first path segment) into one logical resource.

    ``model_name`` is a weak reference into the schema registry.
    """

    model_config = ConfigDict(protected_namespaces=())

    name: str
    model_name: str
    operations: list[ResourceOperation] = Field(default_factory=list)
    is_editable: bool = False
    form_properties: list[FormProperty] = Field(default_factory=list)
    list_properties: list[FormProperty] = Field(default_factory=list)


# --- Serialization descriptors ---


class ParamSerialization(BaseModel):
    """How a single parameter is written onto the wire.

    ``style``, ``explode`` and ``allow_reserved`` are always concrete here.
    When the document is silent they follow the defaults for ``location``.
    """

    param_name: str
    original_name: str
    location: str
    style: str
    explode: bool
    allow_reserved: bool = False
    content_type: Optional[str] = None
    serialization_link: Optional[Literal["json"]] = None


class PartEncoding(BaseModel):
    """Encoding of one multipart part or url-encoded field."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    content_type: Optional[str] = Field(default=None, alias="contentType")
    headers: dict[str, Any] = Field(default_factory=dict)
    style: Optional[str] = None
    explode: Optional[bool] = None
    allow_reserved: Optional[bool] = Field(default=None, alias="allowReserved")


class XmlConfig(BaseModel):
    """Tree of XML naming rules derived from a schema's ``xml`` annotations."""

    name: Optional[str] = None
    namespace: Optional[str] = None
    prefix: Optional[str] = None
    attribute: bool = False
    wrapped: bool = False
    node_type: Optional[str] = None
    items: Optional[XmlConfig] = None
    properties: dict[str, XmlConfig] = Field(default_factory=dict)


class DecodingConfig(BaseModel):
    """Where a response value carries embedded, encoded content.

    ``decode`` is ``"json"`` or ``"xml"`` when a string holds a serialized
    document described by ``contentSchema``. ``content_encoding`` names a
    transfer encoding such as ``base64``.
    """

    decode: Optional[str] = None
    content_encoding: Optional[str] = None
    xml_config: Optional[XmlConfig] = None
    items: Optional[DecodingConfig] = None
    properties: dict[str, DecodingConfig] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return (
            self.decode is None
            and self.content_encoding is None
            and self.items is None
            and not self.properties
        )


class EncodingConfig(BaseModel):
    """Where a request value must be serialized to a JSON string before sending."""

    encode: bool = False
    items: Optional[EncodingConfig] = None
    properties: dict[str, EncodingConfig] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.encode and self.items is None and not self.properties


class _BodyBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    param_name: str = "body"
    media_type: Optional[str] = None


class JsonBody(_BodyBase):
    kind: Literal["json"] = "json"
    schema_: Any = Field(default=None, alias="schema")
    encoding_config: Optional[EncodingConfig] = None


class JsonSeqBody(_BodyBase):
    kind: Literal["json-seq"] = "json-seq"
    schema_: Any = Field(default=None, alias="schema")


class JsonLinesBody(_BodyBase):
    kind: Literal["json-lines"] = "json-lines"
    schema_: Any = Field(default=None, alias="schema")


class XmlBody(_BodyBase):
    kind: Literal["xml"] = "xml"
    root_name: str = "root"
    config: XmlConfig = Field(default_factory=XmlConfig)


class MultipartBody(_BodyBase):
    kind: Literal["multipart"] = "multipart"
    encoding: dict[str, PartEncoding] = Field(default_factory=dict)
    prefix_encoding: list[PartEncoding] = Field(default_factory=list)
    item_encoding: Optional[PartEncoding] = None


class UrlEncodedBody(_BodyBase):
    kind: Literal["urlencoded"] = "urlencoded"
    encoding: dict[str, PartEncoding] = Field(default_factory=dict)
    encoding_config: Optional[EncodingConfig] = None


class RawBody(_BodyBase):
    kind: Literal["raw"] = "raw"


class FormField(BaseModel):
    """A Swagger 2.0 ``formData`` parameter flattened into a form field."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    original_name: str
    required: bool = False
    schema_: Any = Field(default=None, alias="schema")
    collection_format: Optional[str] = None


class EncodedFormDataBody(_BodyBase):
    kind: Literal["encoded-form-data"] = "encoded-form-data"
    multipart: bool = False
    fields: list[FormField] = Field(default_factory=list)


BodyVariant = Annotated[
    Union[
        JsonBody,
        JsonSeqBody,
        JsonLinesBody,
        XmlBody,
        MultipartBody,
        UrlEncodedBody,
        RawBody,
        EncodedFormDataBody,
    ],
    Field(discriminator="kind"),
]


class ResponseKind(str, enum.Enum):
    JSON = "json"
    JSON_SEQ = "json-seq"
    JSON_LINES = "json-lines"
    XML = "xml"
    SSE = "sse"
    TEXT = "text"
    BLOB = "blob"


class ResponseVariant(BaseModel):
    """One way a success response can be read back."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: str
    media_type: str = ""
    kind: ResponseKind = ResponseKind.JSON
    schema_: Any = Field(default=None, alias="schema")
    type_hint: str = "Any"
    is_default: bool = False
    decoding: Optional[DecodingConfig] = None
    xml_config: Optional[XmlConfig] = None


class ErrorResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status_code: str
    description: Optional[str] = None
    media_type: Optional[str] = None
    schema_: Any = Field(default=None, alias="schema")
    type_hint: str = "Any"


class OperationSerialization(BaseModel):
    """Everything an emitter needs to issue one operation's request."""

    path: str
    method: str
    method_name: Optional[str] = None
    path_params: list[ParamSerialization] = Field(default_factory=list)
    query_params: list[ParamSerialization] = Field(default_factory=list)
    header_params: list[ParamSerialization] = Field(default_factory=list)
    cookie_params: list[ParamSerialization] = Field(default_factory=list)
    body: Optional[BodyVariant] = None
    request_encoding: Optional[EncodingConfig] = None
    responses: list[ResponseVariant] = Field(default_factory=list)
    error_responses: list[ErrorResponse] = Field(default_factory=list)
    security: list[dict[str, list[str]]] = Field(default_factory=list)
    base_path: Optional[str] = None


class RuleKind(str, enum.Enum):
    """Closed set of constraint kinds emitted by the validation-rule analyzer."""

    REQUIRED = "required"
    CONST = "const"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    PATTERN = "pattern"
    EMAIL = "email"
    EXCLUSIVE_MINIMUM = "exclusiveMinimum"
    EXCLUSIVE_MAXIMUM = "exclusiveMaximum"
    MIN = "min"
    MAX = "max"
    MULTIPLE_OF = "multipleOf"
    UNIQUE_ITEMS = "uniqueItems"
    MIN_ITEMS = "minItems"
    MAX_ITEMS = "maxItems"
    MIN_PROPERTIES = "minProperties"
    MAX_PROPERTIES = "maxProperties"
    CONTAINS = "contains"
    NOT = "not"


class ValidationRule(BaseModel):
    """A single framework-agnostic constraint.

    ``value`` carries the numeric/string/const operand. ``contains`` uses
    ``schema_``, ``min_count`` and ``max_count``; ``not`` nests ``rules``.
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: RuleKind
    value: Any = None
    schema_: Any = Field(default=None, alias="schema")
    min_count: Optional[int] = None
    max_count: Optional[int] = None
    rules: list[ValidationRule] = Field(default_factory=list)
