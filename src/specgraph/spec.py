"""Read-only facade over one loaded OpenAPI / Swagger document graph.

:class:`ApiSpec` ties the pipeline together: it takes the
:class:`~specgraph.parser.loader.LoadedSpec` produced by the loader, binds a
:class:`~specgraph.parser.resolver.ReferenceResolver` and a
:class:`~specgraph.normalizer.SchemaNormalizer` to its cache, and exposes the
semantic model (operations, webhooks, schemas, servers, security schemes,
links, discriminators, resources) through lazily computed properties.

Typical usage::

    from specgraph.spec import parse_spec

    spec = parse_spec("petstore.yaml")
    for op in spec.operations:
        print(op.method, op.path, op.method_name)
    print(spec.get_spec_version())

Each :class:`ApiSpec` owns its cache; nothing is shared between instances.
"""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urljoin, urlsplit

from specgraph.analysis.resources import discover_resources
from specgraph.analysis.serialization import SerializationAnalyzer
from specgraph.diagnostics import DiagnosticKind, Diagnostics
from specgraph.models import (
    DiscriminatorEntry,
    GeneratorConfig,
    PathInfo,
    PolymorphicOption,
    Resource,
    SchemaEntry,
    SecurityScheme,
    Server,
    SpecVersion,
)
from specgraph.naming import normalize_security_key
from specgraph.normalizer import SchemaNormalizer
from specgraph.parser.extractor import (
    assign_method_names,
    extract_paths,
    extract_servers,
    extract_webhooks,
)
from specgraph.parser.loader import LoadedSpec, SpecLoader
from specgraph.parser.resolver import ReferenceResolver

logger = logging.getLogger(__name__)

OAS_3_1_DIALECT = "https://spec.openapis.org/oas/3.1/dialect/base"
JSON_SCHEMA_2020_12_DIALECT = "https://json-schema.org/draft/2020-12/schema"
_KNOWN_DIALECTS = (OAS_3_1_DIALECT, JSON_SCHEMA_2020_12_DIALECT)


def parse_spec(source: str, config: Optional[GeneratorConfig] = None) -> ApiSpec:
    """Load *source* (and everything it references) and wrap it in an :class:`ApiSpec`.

    Args:
        source: Local path, ``file://`` URI or ``http(s)://`` URL.
        config: Run configuration. Defaults apply when omitted.

    Raises:
        SpecLoadError: If the entry document cannot be fetched or parsed.
        ValidationError: If a loaded document violates a structural rule.
    """
    loaded = SpecLoader().load(source)
    return ApiSpec(loaded, config)


class ApiSpec:
    """Query surface for one resolved API description.

    Args:
        loaded: Output of :meth:`~specgraph.parser.loader.SpecLoader.load`.
        config: Run configuration; ``config.options`` drives method naming,
            type hints and the content decoding depth.
    """

    def __init__(self, loaded: LoadedSpec, config: Optional[GeneratorConfig] = None) -> None:
        self.config = config or GeneratorConfig()
        self.options = self.config.options
        self.document_uri = loaded.document_uri
        self.cache = loaded.cache
        self.diagnostics: Diagnostics = loaded.diagnostics
        # The cache holds the entry document itself; LoadedSpec.entry_spec is a copy.
        self.spec: dict[str, Any] = self.cache.get(self.document_uri, loaded.entry_spec)

        self.resolver = ReferenceResolver(self.cache, self.diagnostics, self.document_uri)
        self.normalizer = SchemaNormalizer(
            self.cache, self.resolver, self.diagnostics, documents=loaded.documents or None
        )

        self._operations: Optional[list[PathInfo]] = None
        self._webhooks: Optional[list[PathInfo]] = None
        self._resources: Optional[list[Resource]] = None
        self._serialization: Optional[SerializationAnalyzer] = None

        self._check_dialect()

    # ------------------------------------------------------------------ #
    # Version and dialect
    # ------------------------------------------------------------------ #

    @property
    def is_swagger2(self) -> bool:
        return isinstance(self.spec.get("swagger"), str)

    def get_spec_version(self) -> Optional[SpecVersion]:
        """``SpecVersion(type="swagger"|"openapi", version=...)``, or ``None``."""
        if isinstance(self.spec.get("swagger"), str):
            return SpecVersion(type="swagger", version=self.spec["swagger"])
        if isinstance(self.spec.get("openapi"), str):
            return SpecVersion(type="openapi", version=self.spec["openapi"])
        return None

    def get_json_schema_dialect(self) -> Optional[str]:
        dialect = self.spec.get("jsonSchemaDialect")
        return dialect if isinstance(dialect, str) else None

    def _check_dialect(self) -> None:
        dialect = self.get_json_schema_dialect()
        if dialect is not None and dialect not in _KNOWN_DIALECTS:
            self.diagnostics.warn(
                DiagnosticKind.UNSUPPORTED_CONSTRUCT,
                f'The specification defines a custom jsonSchemaDialect: "{dialect}". '
                f"Schemas are interpreted with the default OpenAPI 3.1 dialect ({OAS_3_1_DIALECT}).",
                document_uri=self.document_uri,
            )

    # ------------------------------------------------------------------ #
    # References
    # ------------------------------------------------------------------ #

    def resolve_reference(self, ref: str, current_document_uri: Optional[str] = None) -> Any:
        return self.resolver.resolve_reference(ref, current_document_uri)

    def resolve(self, value: Any) -> Any:
        return self.resolver.resolve(value)

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def _extraction_kwargs(self) -> dict[str, Any]:
        return {
            "consumes": self.spec.get("consumes"),
            "produces": self.spec.get("produces"),
            "global_security": self.spec.get("security"),
            "swagger2": self.is_swagger2,
        }

    def _components(self) -> dict[str, Any]:
        components = dict(self.spec.get("components") or {})
        definitions = self.spec.get("securityDefinitions")
        if isinstance(definitions, dict):
            components["securitySchemes"] = {**definitions, **(components.get("securitySchemes") or {})}
        return components

    @property
    def operations(self) -> list[PathInfo]:
        """Every operation under ``paths``, with unique ``method_name`` values."""
        if self._operations is None:
            operations = extract_paths(
                self.spec.get("paths"),
                self.resolver.resolve_reference,
                self._components(),
                **self._extraction_kwargs(),
            )
            assign_method_names(operations, self.options.customize_method_name)
            logger.debug("Extracted %d operation(s) from %s", len(operations), self.document_uri)
            self._operations = operations
        return self._operations

    @property
    def webhooks(self) -> list[PathInfo]:
        """Operations under ``webhooks``; ``path`` holds the webhook name."""
        if self._webhooks is None:
            self._webhooks = extract_webhooks(
                self.spec.get("webhooks"),
                self.resolver.resolve_reference,
                self._components(),
                **self._extraction_kwargs(),
            )
        return self._webhooks

    # ------------------------------------------------------------------ #
    # Schemas and polymorphism
    # ------------------------------------------------------------------ #

    @property
    def schemas(self) -> list[SchemaEntry]:
        return self.normalizer.schemas

    @property
    def discriminators(self) -> dict[str, DiscriminatorEntry]:
        return self.normalizer.discriminators

    def get_polymorphic_schema_options(self, schema: Any) -> list[PolymorphicOption]:
        return self.normalizer.get_polymorphic_schema_options(schema)

    # ------------------------------------------------------------------ #
    # Servers, security, links
    # ------------------------------------------------------------------ #

    @property
    def servers(self) -> list[Server]:
        """Effective servers.

        OpenAPI 3 documents without servers get a single ``/`` server, and
        relative URLs are resolved against an ``http(s)`` document URI.
        Swagger 2 servers are synthesized from ``schemes``, ``host`` and
        ``basePath``.
        """
        if self.is_swagger2:
            return self._swagger2_servers()
        servers = extract_servers(self.spec.get("servers"))
        if not servers:
            return [Server(url="/")]
        if urlsplit(self.document_uri).scheme in ("http", "https"):
            for server in servers:
                if not _is_absolute_url(server.url) and not server.url.startswith("{"):
                    server.url = urljoin(self.document_uri, server.url)
        return servers

    def _swagger2_servers(self) -> list[Server]:
        base_path = self.spec.get("basePath") if isinstance(self.spec.get("basePath"), str) else ""
        host = self.spec.get("host") if isinstance(self.spec.get("host"), str) else None
        document = urlsplit(self.document_uri)
        if host is None and document.scheme in ("http", "https"):
            host = document.netloc
        if host is None:
            return [Server(url=base_path or "/")]

        schemes = [s for s in self.spec.get("schemes") or [] if isinstance(s, str)]
        if not schemes:
            schemes = [document.scheme if document.scheme in ("http", "https") else "https"]
        return [Server(url=f"{scheme}://{host}{base_path}") for scheme in schemes]

    def get_security_schemes(self) -> dict[str, SecurityScheme]:
        """``components.securitySchemes`` merged with Swagger 2 ``securityDefinitions``.

        Pointer-form requirement keys that resolve to a declared scheme are
        added under their normalized name as well.
        """
        raw_schemes = self._components().get("securitySchemes") or {}
        schemes: dict[str, SecurityScheme] = {}
        for name, raw in raw_schemes.items():
            scheme = _security_scheme(self.resolver.resolve(raw))
            if scheme is not None:
                schemes[name] = scheme

        for requirement in self._security_requirements():
            for key in requirement:
                if key in schemes or "#" not in key:
                    continue
                target = self.resolver.resolve_reference(key)
                scheme = _security_scheme(target)
                if scheme is not None:
                    schemes.setdefault(normalize_security_key(key), scheme)
        return schemes

    def _security_requirements(self) -> list[dict[str, Any]]:
        found: list[dict[str, Any]] = []
        for requirement in self.spec.get("security") or []:
            if isinstance(requirement, dict):
                found.append(requirement)
        for path_item in (self.spec.get("paths") or {}).values():
            if not isinstance(path_item, dict):
                continue
            for operation in path_item.values():
                if isinstance(operation, dict):
                    for requirement in operation.get("security") or []:
                        if isinstance(requirement, dict):
                            found.append(requirement)
        return found

    @property
    def links(self) -> dict[str, dict[str, Any]]:
        """``components.links`` with ``$ref`` entries resolved; broken ones are left out."""
        raw_links = (self.spec.get("components") or {}).get("links") or {}
        links: dict[str, dict[str, Any]] = {}
        for name, link in raw_links.items():
            resolved = self.resolver.resolve(link)
            if isinstance(resolved, dict):
                links[name] = resolved
        return links

    # ------------------------------------------------------------------ #
    # Analysis
    # ------------------------------------------------------------------ #

    @property
    def resources(self) -> list[Resource]:
        if self._resources is None:
            self._resources = discover_resources(self.operations, self.resolver)
        return self._resources

    @property
    def serialization(self) -> SerializationAnalyzer:
        if self._serialization is None:
            self._serialization = SerializationAnalyzer(
                self.resolver,
                self.options,
                known_names=self.normalizer.schema_names(),
                ref_namer=self.normalizer.model_name_for_reference,
            )
        return self._serialization


def _is_absolute_url(url: str) -> bool:
    return "://" in url


def _security_scheme(raw: Any) -> Optional[SecurityScheme]:
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        return None
    extensions = {key: value for key, value in raw.items() if key.startswith("x-")}
    return SecurityScheme.model_validate({**raw, "extensions": extensions})
