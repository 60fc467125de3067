"""Load OpenAPI documents from a URL or local file, following external references.

This module handles all I/O for fetching raw documents and converting them
into Python dictionaries. It supports both JSON and YAML with automatic
format detection.

:class:`SpecLoader` loads the entry document, validates it, then walks every
``$ref`` / ``$dynamicRef`` (and link ``operationRef``) it contains and loads
each referenced document into a shared cache keyed by canonical URI. Loading
is sequential; the visited set is updated before recursing so circular
document graphs terminate and each document is fetched exactly once.

Failures on the entry document raise :class:`~specgraph.exceptions.SpecLoadError`
(or :class:`~specgraph.exceptions.ValidationError`). Failures on referenced
documents are logged, recorded as diagnostics and skipped.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote, urldefrag, urljoin, urlsplit

import httpx
import yaml
from pydantic import BaseModel, ConfigDict, Field

from specgraph.diagnostics import DiagnosticKind, Diagnostics
from specgraph.exceptions import SpecLoadError, ValidationError
from specgraph.models import HTTPMethod
from specgraph.parser.resolver import DocumentCache, ReferenceResolver, document_base_uri
from specgraph.parser.validator import validate_spec

logger = logging.getLogger(__name__)


class LoadedSpec(BaseModel):
    """Result of :meth:`SpecLoader.load`.

    ``cache`` holds every loaded document (plus ``$self`` aliases and indexed
    ``$id`` / anchor fragments) and is owned by this run only. ``documents``
    lists the retrieval URI of each document actually fetched.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    entry_spec: dict[str, Any]
    document_uri: str
    cache: DocumentCache = Field(default_factory=dict)
    documents: list[str] = Field(
        default_factory=list, description="Retrieval URIs of every loaded document, entry first"
    )
    diagnostics: Diagnostics = Field(default_factory=Diagnostics, exclude=True)


def to_document_uri(source: str) -> str:
    """Turn a user-supplied source into a canonical document URI.

    ``http(s)://`` and ``file://`` URIs are kept (fragment stripped); anything
    else is treated as a filesystem path and converted to the ``file://`` URI
    of its absolute path.
    """
    if source.startswith(("http://", "https://", "file://")):
        return urldefrag(source)[0]
    return Path(source).expanduser().resolve().as_uri()


def is_openapi_document(document: Any) -> bool:
    return isinstance(document, dict) and ("openapi" in document or "swagger" in document)


class SpecLoader:
    """Fetch and parse an entry document plus everything it references.

    Args:
        diagnostics: Collector for soft failures during the recursive walk.
        timeout: Per-request timeout in seconds for remote documents.
        validate: Run :func:`~specgraph.parser.validator.validate_spec` on
            the entry document (and on every other OpenAPI document loaded).
    """

    def __init__(
        self,
        diagnostics: Optional[Diagnostics] = None,
        timeout: float = 30.0,
        validate: bool = True,
    ) -> None:
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.timeout = timeout
        self.validate = validate

    def load(self, source: str) -> LoadedSpec:
        """Load *source* and every document it transitively references.

        Args:
            source: A URL (http/https), a ``file://`` URI, or a file path.

        Returns:
            A :class:`LoadedSpec` whose cache is ready for
            :class:`~specgraph.parser.resolver.ReferenceResolver`.

        Raises:
            SpecLoadError: If the entry document cannot be read or parsed.
            ValidationError: If the entry document (or a loaded OpenAPI
                sub-document) violates a structural rule, or operationIds
                collide across documents.
        """
        document_uri = to_document_uri(source)
        entry = self.load_content(document_uri)
        if self.validate:
            validate_spec(entry)

        cache: DocumentCache = {}
        visited: set[str] = set()
        documents: list[str] = []
        self._register(entry, document_uri, cache, visited, documents)
        self._load_references(entry, document_uri, cache, visited, documents)

        if self.validate:
            self._validate_secondary_documents(cache, document_uri)
        _check_operation_ids(cache)

        logger.debug("Loaded %d document(s) starting at %s", len(visited), document_uri)
        return LoadedSpec(
            entry_spec=entry,
            document_uri=document_uri,
            cache=cache,
            documents=documents,
            diagnostics=self.diagnostics,
        )

    def load_content(self, uri: str) -> dict[str, Any]:
        """Fetch *uri* and parse it as JSON or YAML.

        Raises:
            SpecLoadError: Wrapping whatever went wrong, naming *uri*.
        """
        if uri.startswith(("http://", "https://")):
            content, hint = self._load_from_url(uri)
        else:
            content, hint = self._load_from_file(uri)
        try:
            return _parse_content(content, hint=hint)
        except SpecLoadError as exc:
            raise SpecLoadError(f'Failed to parse content from "{uri}": {exc}') from exc

    # ------------------------------------------------------------------ #
    # Recursive walk
    # ------------------------------------------------------------------ #

    def _register(
        self,
        document: Any,
        uri: str,
        cache: DocumentCache,
        visited: set[str],
        documents: list[str],
    ) -> None:
        visited.add(uri)
        documents.append(uri)
        cache[uri] = document
        base = document_base_uri(cache, uri) or uri
        if base != uri:
            cache.setdefault(base, document)
            visited.add(base)
        ReferenceResolver.index_schema_ids(document, base, cache, uri)

    def _load_references(
        self,
        document: Any,
        uri: str,
        cache: DocumentCache,
        visited: set[str],
        documents: list[str],
    ) -> None:
        base = document_base_uri(cache, uri) or uri
        for ref in _collect_references(document):
            file_part = ref.split("#", 1)[0]
            if not file_part:
                continue
            try:
                target = urldefrag(urljoin(base, file_part))[0]
            except ValueError:
                self.diagnostics.warn(
                    DiagnosticKind.UNRESOLVED_DOCUMENT,
                    f"Failed to resolve referenced URI: {file_part}. Skipping.",
                    ref=ref,
                    document_uri=uri,
                )
                continue
            if target in visited or target in cache:
                continue
            visited.add(target)
            try:
                child = self.load_content(target)
            except SpecLoadError as exc:
                self.diagnostics.warn(
                    DiagnosticKind.UNRESOLVED_DOCUMENT,
                    f"Failed to resolve referenced URI: {target}. Skipping. ({exc})",
                    ref=ref,
                    document_uri=uri,
                )
                continue
            logger.debug("Loaded referenced document %s (from %s)", target, uri)
            self._register(child, target, cache, visited, documents)
            self._load_references(child, target, cache, visited, documents)

    def _validate_secondary_documents(self, cache: DocumentCache, entry_uri: str) -> None:
        checked: set[int] = {id(cache.get(entry_uri))}
        for uri, document in cache.items():
            if "#" in uri or id(document) in checked or not is_openapi_document(document):
                continue
            checked.add(id(document))
            try:
                validate_spec(document)
            except ValidationError as exc:
                raise ValidationError(f"{exc} (in {uri})") from exc

    # ------------------------------------------------------------------ #
    # I/O
    # ------------------------------------------------------------------ #

    def _load_from_url(self, url: str) -> tuple[str, str]:
        """Fetch a remote document. Returns ``(content, format_hint)``."""
        try:
            response = httpx.get(url, timeout=self.timeout, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SpecLoadError(
                f"HTTP {exc.response.status_code} fetching spec from {url}"
            ) from exc
        except httpx.RequestError as exc:
            raise SpecLoadError(f"Failed to fetch spec from {url}: {exc}") from exc

        content = response.text
        content_type = response.headers.get("content-type", "")
        hint = _hint_from_name(urlsplit(url).path)
        if "json" in content_type:
            hint = "json"
        elif "yaml" in content_type or "yml" in content_type:
            hint = "yaml"
        return content, hint

    def _load_from_file(self, uri: str) -> tuple[str, str]:
        """Read a local document. Returns ``(content, format_hint)``."""
        path = Path(unquote(urlsplit(uri).path)) if uri.startswith("file://") else Path(uri)
        if not path.is_file():
            raise SpecLoadError(f"Spec file not found: {path}")
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SpecLoadError.wrap(str(path), exc) from exc
        if not content.strip():
            raise SpecLoadError(f"Spec file is empty: {path}")
        return content, _hint_from_name(path.name)


def _hint_from_name(name: str) -> str:
    lowered = name.lower()
    if lowered.endswith(".json"):
        return "json"
    if lowered.endswith((".yaml", ".yml")):
        return "yaml"
    return ""


def _collect_references(document: Any) -> list[str]:
    refs = ReferenceResolver.find_refs(document)
    stack: list[Any] = [document]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            operation_ref = node.get("operationRef")
            if isinstance(operation_ref, str) and operation_ref not in refs:
                refs.append(operation_ref)
            stack.extend(node.values())
        elif isinstance(node, list):
            stack.extend(node)
    return refs


def _parse_content(content: str, hint: str = "") -> dict[str, Any]:
    """Parse content as JSON or YAML.

    Tries JSON first (unless hint is 'yaml'), then falls back to YAML.
    Valid JSON is also valid YAML, but JSON parsing is stricter and faster.

    Raises:
        SpecLoadError: If the content cannot be parsed as either format, or
            does not hold an object at the top level.
    """
    json_error: Exception | None = None
    yaml_error: Exception | None = None

    if hint != "yaml":
        try:
            result = json.loads(content)
        except json.JSONDecodeError as exc:
            json_error = exc
            if hint == "json":
                raise SpecLoadError(f"Invalid JSON: {exc}") from exc
        else:
            if not isinstance(result, dict):
                raise SpecLoadError(
                    f"Spec must be a JSON/YAML object (got {type(result).__name__})"
                )
            return result

    try:
        result = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        yaml_error = exc
    else:
        if not isinstance(result, dict):
            raise SpecLoadError(
                "Spec must be a JSON/YAML object (got "
                f"{type(result).__name__ if result is not None else 'empty document'})"
            )
        return result

    msg = "Failed to parse spec as JSON or YAML"
    if json_error:
        msg += f"\n  JSON error: {json_error}"
    if yaml_error:
        msg += f"\n  YAML error: {yaml_error}"
    raise SpecLoadError(msg)


def _check_operation_ids(cache: DocumentCache) -> None:
    """Enforce operationId uniqueness across every loaded OpenAPI document."""
    owners: dict[str, str] = {}
    checked: set[int] = set()
    for uri, document in cache.items():
        if "#" in uri or id(document) in checked or not is_openapi_document(document):
            continue
        checked.add(id(document))
        for path, path_item in (document.get("paths") or {}).items():
            if not isinstance(path_item, dict):
                continue
            for method, operation in _operations_of(path_item):
                operation_id = operation.get("operationId")
                if not isinstance(operation_id, str):
                    continue
                location = f"{uri} {method.upper()} {path}"
                if operation_id in owners and owners[operation_id].split(" ", 1)[0] != uri:
                    raise ValidationError(
                        f'Duplicate operationId "{operation_id}" found in '
                        f"{owners[operation_id]} and {location}"
                    )
                owners.setdefault(operation_id, location)


def _operations_of(path_item: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    found = [
        (method.value, path_item[method.value])
        for method in HTTPMethod
        if isinstance(path_item.get(method.value), dict)
    ]
    extra = path_item.get("additionalOperations")
    if isinstance(extra, dict):
        found.extend((name, op) for name, op in extra.items() if isinstance(op, dict))
    return found
