"""Schema registry, polymorphism and discriminator normalization.

:class:`SchemaNormalizer` turns the schemas scattered across every loaded
document into one flat, PascalCase-named registry and answers the two
polymorphism questions emitters ask:

* which concrete branches can a discriminated ``oneOf`` / ``anyOf`` take,
  and which discriminator value selects each one
  (:meth:`SchemaNormalizer.get_polymorphic_schema_options`)
* for every polymorphic parent, which property discriminates and which
  registered model each value maps to (:attr:`SchemaNormalizer.discriminators`)

Branches and mapping targets that cannot be resolved are dropped and
recorded as :attr:`~specgraph.diagnostics.DiagnosticKind.DROPPED_BRANCH`
diagnostics; the registry never contains a dangling model name.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from specgraph.diagnostics import DiagnosticKind, Diagnostics
from specgraph.models import DiscriminatorEntry, PolymorphicOption, SchemaEntry
from specgraph.naming import model_name_from_uri, pascal_case
from specgraph.parser.loader import is_openapi_document
from specgraph.parser.resolver import DocumentCache, ReferenceResolver, is_reference

logger = logging.getLogger(__name__)

# Top-level keywords that mark a standalone document as a JSON Schema.
_SCHEMA_MARKERS = (
    "$schema",
    "type",
    "properties",
    "allOf",
    "oneOf",
    "anyOf",
    "enum",
    "const",
    "items",
)

# How deep allOf chains are followed when looking for a discriminator value.
_MAX_ALLOF_DEPTH = 8


class SchemaNormalizer:
    """Build the schema registry and discriminator maps for one run.

    Args:
        cache: The document cache produced by the loader.
        resolver: Resolver bound to the same cache.
        diagnostics: Collector for dropped branches and duplicate names.
            Defaults to the resolver's collector.
        documents: Retrieval URIs of the loaded documents, entry first. When
            omitted, every cache key without a fragment is treated as a
            document.
    """

    def __init__(
        self,
        cache: DocumentCache,
        resolver: ReferenceResolver,
        diagnostics: Optional[Diagnostics] = None,
        documents: Optional[list[str]] = None,
    ) -> None:
        self.cache = cache
        self.resolver = resolver
        self.diagnostics = diagnostics if diagnostics is not None else resolver.diagnostics
        if documents is None:
            documents = [uri for uri in cache if "#" not in uri]
            entry = resolver.entry_document_uri
            if entry in documents:
                documents.remove(entry)
                documents.insert(0, entry)
        self.documents = documents
        self._schemas: Optional[list[SchemaEntry]] = None
        self._names_by_id: dict[int, str] = {}
        self._origins: dict[str, str] = {}
        self._discriminators: Optional[dict[str, DiscriminatorEntry]] = None

    # --- Registry ---

    @property
    def schemas(self) -> list[SchemaEntry]:
        """Every named schema, entry document first.

        ``components.schemas`` (OpenAPI 3) and ``definitions`` (Swagger 2) of
        every loaded OpenAPI document contribute, as do standalone JSON Schema
        documents pulled in by an external ``$ref`` (named after their file).
        When two schemas map to the same PascalCase name the first one wins.
        """
        return self._ensure_registry()

    def _ensure_registry(self) -> list[SchemaEntry]:
        if self._schemas is None:
            self._schemas = self._build_registry()
        return self._schemas

    def schema_names(self) -> set[str]:
        return {entry.name for entry in self.schemas}

    def get_schema(self, name: str) -> Any:
        """Return the registered definition called *name*, or ``None``."""
        for entry in self.schemas:
            if entry.name == name:
                return entry.definition
        return None

    def name_of(self, schema: Any) -> Optional[str]:
        """Registered name of *schema* (by identity), or ``None`` for anonymous schemas."""
        self._ensure_registry()
        return self._names_by_id.get(id(schema))

    def origin_of(self, name: str) -> Optional[str]:
        """URI of the document a registered schema was declared in."""
        self._ensure_registry()
        return self._origins.get(name)

    def model_name_for_ref(self, ref: str, current_document_uri: Optional[str] = None) -> str:
        """Map a reference to the name of the model it points at.

        Full reference resolution is tried first. When the target is not a
        registered schema the name is derived from the reference text itself
        (last pointer segment, or file stem for whole-document references).
        """
        target = self.resolver.resolve_reference(ref, current_document_uri)
        if target is not None:
            name = self.name_of(target)
            if name:
                return name
        return model_name_from_uri(ref)

    def model_name_for_reference(self, reference: dict[str, Any]) -> str:
        """Like :meth:`model_name_for_ref`, resolving relative to where *reference* was written."""
        ref = reference.get("$ref", reference.get("$dynamicRef"))
        if not isinstance(ref, str):
            return ""
        return self.model_name_for_ref(ref, self.resolver.origin_of(reference))

    def _build_registry(self) -> list[SchemaEntry]:
        entries: list[SchemaEntry] = []
        seen_documents: set[int] = set()

        def register(name: str, definition: Any, uri: str) -> None:
            if any(entry.name == name for entry in entries):
                self.diagnostics.warn(
                    DiagnosticKind.DUPLICATE_SCHEMA,
                    f'Duplicate schema name "{name}" in {uri}; keeping the first definition.',
                    document_uri=uri,
                )
                return
            entries.append(SchemaEntry(name=name, definition=definition))
            self._names_by_id.setdefault(id(definition), name)
            self._origins[name] = uri

        for uri in self.documents:
            document = self.cache.get(uri)
            if not isinstance(document, dict) or id(document) in seen_documents:
                continue
            seen_documents.add(id(document))

            if is_openapi_document(document):
                components = document.get("components")
                groups = [
                    components.get("schemas") if isinstance(components, dict) else None,
                    document.get("definitions"),
                ]
                for group in groups:
                    if not isinstance(group, dict):
                        continue
                    for raw_name, definition in group.items():
                        register(pascal_case(raw_name), definition, uri)
            elif any(marker in document for marker in _SCHEMA_MARKERS):
                register(model_name_from_uri(uri), document, uri)

        logger.debug("Registered %d schema(s)", len(entries))
        return entries

    # --- Polymorphism ---

    def get_polymorphic_schema_options(
        self, schema: Any, current_document_uri: Optional[str] = None
    ) -> list[PolymorphicOption]:
        """List the concrete branches of a discriminated ``oneOf`` / ``anyOf``.

        With an explicit ``discriminator.mapping`` each entry becomes an
        option named after its key. Otherwise every branch is resolved and
        named after the single value its discriminator property allows
        (``enum`` with one member, or ``const``).

        Args:
            schema: A schema dict (a reference to one is followed).
            current_document_uri: Document *schema* was taken from.

        Returns:
            The options, in declaration order. Empty when *schema* has no
            ``oneOf`` / ``anyOf`` or no ``discriminator.propertyName``.
            Branches that cannot be resolved or named are dropped.
        """
        schema, origin = self.resolver.resolve_with_origin(schema, current_document_uri)
        if not isinstance(schema, dict):
            return []
        branches = schema.get("oneOf") or schema.get("anyOf")
        discriminator = schema.get("discriminator")
        if not isinstance(branches, list) or not isinstance(discriminator, dict):
            return []
        property_name = discriminator.get("propertyName")
        if not isinstance(property_name, str) or not property_name:
            return []

        mapping = discriminator.get("mapping")
        if isinstance(mapping, dict) and mapping:
            return self._options_from_mapping(mapping, origin)
        return self._options_from_branches(branches, property_name, origin)

    def _options_from_mapping(
        self, mapping: dict[str, Any], origin: Optional[str]
    ) -> list[PolymorphicOption]:
        options: list[PolymorphicOption] = []
        for value, target in mapping.items():
            resolved = self._resolve_mapping_target(target, origin)
            if resolved is None:
                self.diagnostics.warn(
                    DiagnosticKind.DROPPED_BRANCH,
                    f'Dropping discriminator mapping "{value}": target {target!r} could not be resolved.',
                    ref=target if isinstance(target, str) else None,
                    document_uri=origin,
                )
                continue
            options.append(PolymorphicOption(name=str(value), schema=resolved))
        return options

    def _options_from_branches(
        self, branches: list[Any], property_name: str, origin: Optional[str]
    ) -> list[PolymorphicOption]:
        return [option for option, _ in self._branch_options(branches, property_name, origin)]

    def _branch_options(
        self, branches: list[Any], property_name: str, origin: Optional[str]
    ) -> list[tuple[PolymorphicOption, Any]]:
        """Resolved options paired with the branch each one was declared as."""
        options: list[tuple[PolymorphicOption, Any]] = []
        for index, branch in enumerate(branches):
            resolved, branch_origin = self.resolver.resolve_with_origin(branch, origin)
            if not isinstance(resolved, dict):
                self.diagnostics.warn(
                    DiagnosticKind.DROPPED_BRANCH,
                    f"Dropping polymorphic branch #{index}: it could not be resolved.",
                    ref=branch.get("$ref") if isinstance(branch, dict) else None,
                    document_uri=origin,
                )
                continue
            value = self._discriminator_value(resolved, property_name, branch_origin, 0)
            if value is None:
                self.diagnostics.warn(
                    DiagnosticKind.DROPPED_BRANCH,
                    f'Dropping polymorphic branch #{index}: property "{property_name}" '
                    "does not declare a single enum or const value.",
                    ref=branch.get("$ref") if isinstance(branch, dict) else None,
                    document_uri=branch_origin,
                )
                continue
            options.append((PolymorphicOption(name=str(value), schema=resolved), branch))
        return options

    def _resolve_mapping_target(self, target: Any, origin: Optional[str]) -> Any:
        if not isinstance(target, str) or not target:
            return None
        # A bare schema name rather than a reference.
        if "#" not in target and "/" not in target and "." not in target:
            found = self.get_schema(pascal_case(target)) or self.get_schema(target)
            if found is not None:
                return found
        return self.resolver.resolve_reference(target, origin)

    def _discriminator_value(
        self, schema: dict[str, Any], property_name: str, origin: Optional[str], depth: int
    ) -> Any:
        properties = schema.get("properties")
        if isinstance(properties, dict) and property_name in properties:
            prop = self.resolver.resolve(properties[property_name], origin)
            if isinstance(prop, dict):
                if "const" in prop:
                    return prop["const"]
                enum = prop.get("enum")
                if isinstance(enum, list) and len(enum) == 1:
                    return enum[0]
        if depth >= _MAX_ALLOF_DEPTH:
            return None
        for part in schema.get("allOf") or []:
            resolved, part_origin = self.resolver.resolve_with_origin(part, origin)
            if isinstance(resolved, dict):
                value = self._discriminator_value(resolved, property_name, part_origin, depth + 1)
                if value is not None:
                    return value
        return None

    # --- Discriminator registry ---

    @property
    def discriminators(self) -> dict[str, DiscriminatorEntry]:
        """Parent model name -> :class:`~specgraph.models.DiscriminatorEntry`.

        Mapping values are registered model names. Explicit mappings are
        translated through :meth:`model_name_for_ref`; without one the
        mapping is inferred from the parent's branches. Targets that are not
        in the registry are dropped and reported as ``DROPPED_BRANCH``.
        """
        if self._discriminators is None:
            self._discriminators = self._build_discriminators()
        return self._discriminators

    def _build_discriminators(self) -> dict[str, DiscriminatorEntry]:
        registry: dict[str, DiscriminatorEntry] = {}
        known = self.schema_names()

        for entry in self.schemas:
            schema = entry.definition
            if not isinstance(schema, dict) or is_reference(schema):
                continue
            raw = schema.get("discriminator")
            origin = self._origins.get(entry.name)

            if isinstance(raw, str) and raw:
                registry[entry.name] = DiscriminatorEntry(property_name=raw)
                continue
            if not isinstance(raw, dict) or not isinstance(raw.get("propertyName"), str):
                continue

            mapping: dict[str, str] = {}
            raw_mapping = raw.get("mapping")
            if isinstance(raw_mapping, dict) and raw_mapping:
                for value, target in raw_mapping.items():
                    if not isinstance(target, str):
                        continue
                    name = self._mapping_target_name(target, origin)
                    if name in known:
                        mapping[str(value)] = name
                    else:
                        self._drop_dangling(entry.name, str(value), target, origin)
            else:
                branches = schema.get("oneOf") or schema.get("anyOf")
                if raw["propertyName"] and isinstance(branches, list):
                    for option, branch in self._branch_options(branches, raw["propertyName"], origin):
                        name = self.name_of(option.schema_)
                        # Sibling overrides make the resolved branch a copy; name it by its $ref.
                        if not name and is_reference(branch):
                            name = self.model_name_for_reference(branch)
                        if name in known:
                            mapping[option.name] = name
                        else:
                            self.diagnostics.warn(
                                DiagnosticKind.DROPPED_BRANCH,
                                f'Dropping discriminator value "{option.name}" of {entry.name}: '
                                "its branch is not a registered schema.",
                                ref=branch.get("$ref") if isinstance(branch, dict) else None,
                                document_uri=origin,
                            )

            default_mapping = None
            if isinstance(raw.get("defaultMapping"), str):
                name = self._mapping_target_name(raw["defaultMapping"], origin)
                if name in known:
                    default_mapping = name
                else:
                    self._drop_dangling(entry.name, "<default>", raw["defaultMapping"], origin)

            registry[entry.name] = DiscriminatorEntry(
                property_name=raw["propertyName"],
                mapping=mapping,
                default_mapping=default_mapping,
            )
        return registry

    def _mapping_target_name(self, target: str, origin: Optional[str]) -> str:
        if "#" not in target and "/" not in target and "." not in target:
            if pascal_case(target) in self.schema_names():
                return pascal_case(target)
        return self.model_name_for_ref(target, origin)

    def _drop_dangling(self, parent: str, value: str, target: str, origin: Optional[str]) -> None:
        self.diagnostics.warn(
            DiagnosticKind.DROPPED_BRANCH,
            f'Dropping discriminator mapping "{value}" of {parent}: '
            f"{target} is not a registered schema.",
            ref=target,
            document_uri=origin,
        )
