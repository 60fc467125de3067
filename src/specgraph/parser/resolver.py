"""Resolve ``$ref`` / ``$dynamicRef`` pointers against a cache of loaded documents.

OpenAPI documents use references (``{"$ref": "#/components/schemas/Pet"}``,
``{"$ref": "common.yaml#/Error"}``) to avoid repetition. This module looks
those references up in a :data:`DocumentCache` populated by
:class:`~specgraph.parser.loader.SpecLoader`. The resolver never performs
I/O: a reference into a document that was not pre-loaded is a soft failure.

Soft failures (missing pointer tokens, unknown documents, unknown anchors,
cycles, malformed input) return ``None`` and record a
:class:`~specgraph.diagnostics.Diagnostic`. One bad pointer never aborts
the run.

The public surface is :class:`ReferenceResolver` plus the pointer helpers
:func:`decode_pointer_token` and :func:`evaluate_json_pointer`.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Optional
from urllib.parse import unquote, urldefrag, urljoin, urlsplit

from specgraph.diagnostics import DiagnosticKind, Diagnostics

logger = logging.getLogger(__name__)

DocumentCache = dict[str, Any]
"""Canonical URI (or ``uri#anchor``) -> parsed document or schema fragment."""

_REF_KEYS = ("$ref", "$dynamicRef")
_OVERRIDE_KEYS = ("summary", "description")

_MISSING = object()


def decode_pointer_token(token: str) -> str:
    """Decode one JSON Pointer reference token.

    Percent-decoding is applied first (pointers usually travel inside URI
    fragments), then the RFC 6901 escapes ``~1`` -> ``/`` and ``~0`` -> ``~``.
    """
    return unquote(token).replace("~1", "/").replace("~0", "~")


def evaluate_json_pointer(data: Any, pointer: str) -> Any:
    """Walk *data* along a JSON Pointer without recording diagnostics.

    Args:
        data: The document to walk.
        pointer: ``""``, ``"#"``, ``"/a/0/b"`` or ``"#/a/0/b"``.

    Returns:
        The value found, or ``None`` when any token is missing.
    """
    value = _walk_pointer(data, pointer)[0]
    return None if value is _MISSING else value


def _walk_pointer(data: Any, pointer: str) -> tuple[Any, Optional[str]]:
    """Return ``(value, failing_token)``. ``value`` is ``_MISSING`` on failure."""
    if pointer.startswith("#"):
        pointer = pointer[1:]
    if pointer == "":
        return data, None
    if not pointer.startswith("/"):
        return _MISSING, pointer

    current = data
    for raw_token in pointer[1:].split("/"):
        token = decode_pointer_token(raw_token)
        if isinstance(current, dict):
            if token not in current:
                return _MISSING, token
            current = current[token]
        elif isinstance(current, list):
            if not token.isdigit() or int(token) >= len(current):
                return _MISSING, token
            current = current[int(token)]
        else:
            return _MISSING, token
    return current, None


def is_reference(value: Any) -> bool:
    """True for a dict carrying a string ``$ref`` or ``$dynamicRef``."""
    return isinstance(value, dict) and any(isinstance(value.get(k), str) for k in _REF_KEYS)


def _ref_of(value: dict[str, Any]) -> str:
    for key in _REF_KEYS:
        ref = value.get(key)
        if isinstance(ref, str):
            return ref
    raise KeyError("no reference key")


def _is_valid_uri(uri: str) -> bool:
    try:
        urlsplit(uri)
    except ValueError:
        return False
    return True


class ReferenceResolver:
    """Look up references in a shared document cache.

    Args:
        cache: Canonical URI -> document mapping. Shared with the loader and
            never mutated by lookups.
        diagnostics: Collector for soft failures. A private one is created
            when omitted.
        entry_document_uri: Document that local (``#/...``) references are
            resolved against when the caller does not name one. Defaults to
            the first document in *cache*.
    """

    def __init__(
        self,
        cache: DocumentCache,
        diagnostics: Optional[Diagnostics] = None,
        entry_document_uri: Optional[str] = None,
    ) -> None:
        self.cache = cache
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        if entry_document_uri is None and cache:
            entry_document_uri = next(iter(cache))
        self.entry_document_uri = entry_document_uri
        self._node_origins: dict[int, str] = {}
        self._indexed_entries = -1

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def resolve_reference(
        self,
        ref: Any,
        current_document_uri: Optional[str] = None,
        dynamic_scope: Iterable[str] = (),
    ) -> Any:
        """Resolve a reference string to the value it points at.

        Args:
            ref: ``"#/a/b"``, ``"other.yaml#/a"``, ``"https://x/s.json#anchor"``
                and so on.
            current_document_uri: URI of the document the reference was
                written in. Relative references resolve against its ``$self``
                (when declared) or against the URI itself.
            dynamic_scope: Resource URIs entered so far, outermost first.
                Consulted for ``$dynamicRef`` plain-name fragments.

        Returns:
            The referenced value (never a bare reference object), or ``None``
            when it cannot be resolved. Failures are recorded on
            :attr:`diagnostics`.
        """
        value, _ = self._lookup(ref, current_document_uri, tuple(dynamic_scope), frozenset())
        return value

    def resolve(self, value: Any, current_document_uri: Optional[str] = None) -> Any:
        """Return *value* itself, or its target when it is a reference object.

        Sibling ``summary`` / ``description`` keys on the reference object are
        shallow-merged over the target, the reference side winning.

        A reference object that lives in the cache resolves against the
        document (or enclosing ``$id`` resource) it was written in, whatever
        *current_document_uri* says. The argument only matters for values
        built outside the cache.

        Args:
            value: Anything. Non-references pass through unchanged.
            current_document_uri: Document *value* was taken from.

        Returns:
            The resolved value, or ``None`` if the reference is broken.
        """
        return self.resolve_with_origin(value, current_document_uri)[0]

    def resolve_with_origin(
        self, value: Any, current_document_uri: Optional[str] = None
    ) -> tuple[Any, Optional[str]]:
        """Like :meth:`resolve`, also returning the URI of the document the result lives in."""
        current = self.origin_of(value) or current_document_uri or self.entry_document_uri
        if not is_reference(value):
            return value, current

        target, origin = self._lookup(_ref_of(value), current, (), frozenset())
        if target is None:
            return None, origin
        overrides = {key: value[key] for key in _OVERRIDE_KEYS if key in value}
        if overrides and isinstance(target, dict):
            return {**target, **overrides}, origin
        return target, origin

    def dereference(self, value: Any, current_document_uri: Optional[str] = None) -> Any:
        """Return a deep copy of *value* with every resolvable reference inlined.

        Circular references are detected via the set of absolute references
        on the current resolution path and left unresolved (the reference
        object is kept as-is at the cycle point). Broken references are kept
        as well, so the output is always a superset of the input's meaning.

        Args:
            value: Any document fragment.
            current_document_uri: Document *value* was taken from.

        Returns:
            A new structure; scalars are returned as-is.
        """
        current = current_document_uri or self.entry_document_uri
        return self._deep_inline(value, current, frozenset())

    def origin_of(self, node: Any) -> Optional[str]:
        """URI that local references written inside *node* resolve against.

        Every object reachable from a cached document maps to that document's
        retrieval URI, or to the nearest enclosing ``$id`` that has a cache
        entry of its own. Objects that do not live in the cache (copies,
        override merges, synthesized schemas) map to ``None``.
        """
        if not isinstance(node, dict):
            return None
        if self._indexed_entries != len(self.cache):
            self._index_origins()
        return self._node_origins.get(id(node))

    def _index_origins(self) -> None:
        origins: dict[int, str] = {}
        for uri, document in list(self.cache.items()):
            if "#" in uri:
                continue
            join_base = self.base_uri_for(uri) or uri
            _record_origins(document, uri, join_base, self.cache, origins)
        self._node_origins = origins
        self._indexed_entries = len(self.cache)
        logger.debug("Indexed origins of %d object(s)", len(origins))

    def base_uri_for(self, document_uri: Optional[str]) -> Optional[str]:
        """Base URI for relative references inside *document_uri*.

        A document that declares ``$self`` uses it (resolved against its
        retrieval URI) as the base; otherwise the retrieval URI is the base.
        """
        return document_base_uri(self.cache, document_uri)

    @staticmethod
    def index_schema_ids(
        spec: Any,
        base_uri: str,
        cache: DocumentCache,
        document_uri: Optional[str] = None,
    ) -> None:
        """Register ``$id`` / ``$anchor`` / ``$dynamicAnchor`` targets in *cache*.

        ``$id`` values (resolved against the enclosing base) become cache keys
        of their own and rebase everything beneath them. Anchors are stored
        under ``<base>#<anchor>``. Until an ``$id`` rebases the walk, anchors
        are also stored under ``<document_uri>#<anchor>`` so they resolve via
        either the retrieval URI or the declared base.

        Existing cache entries are never overwritten. ``$id`` values that do
        not form a valid URI are ignored.

        Args:
            spec: The parsed document.
            base_uri: Base URI of the document (its ``$self`` or retrieval URI).
            cache: The cache to populate.
            document_uri: Retrieval URI of the document, if different.
        """
        alias = document_uri if document_uri and document_uri != base_uri else None
        _index_node(spec, base_uri, alias, cache, seen=set())

    @staticmethod
    def find_refs(value: Any) -> list[str]:
        """Collect every ``$ref`` / ``$dynamicRef`` string reachable from *value*.

        Returns:
            The reference strings in document order, duplicates removed.
        """
        found: dict[str, None] = {}
        stack: list[Any] = [value]
        seen_ids: set[int] = set()
        while stack:
            node = stack.pop()
            if isinstance(node, dict):
                if id(node) in seen_ids:
                    continue
                seen_ids.add(id(node))
                for key in _REF_KEYS:
                    ref = node.get(key)
                    if isinstance(ref, str):
                        found.setdefault(ref)
                stack.extend(reversed(list(node.values())))
            elif isinstance(node, list):
                stack.extend(reversed(node))
        return list(found)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _lookup(
        self,
        ref: Any,
        current_document_uri: Optional[str],
        dynamic_scope: tuple[str, ...],
        seen: frozenset[str],
    ) -> tuple[Any, Optional[str]]:
        current = current_document_uri or self.entry_document_uri
        if not isinstance(ref, str) or not ref.strip():
            self.diagnostics.warn(
                DiagnosticKind.UNRESOLVED_REFERENCE,
                f"Invalid reference input: {ref!r}",
                document_uri=current,
            )
            return None, current

        file_part, _, fragment = ref.partition("#")
        if file_part:
            base = self.base_uri_for(current) or current or ""
            try:
                target_uri = urldefrag(urljoin(base, file_part))[0]
            except ValueError:
                self.diagnostics.warn(
                    DiagnosticKind.UNRESOLVED_REFERENCE,
                    f"Invalid reference URI: {ref}",
                    ref=ref,
                    document_uri=current,
                )
                return None, current
        else:
            target_uri = current or ""

        absolute = f"{target_uri}#{fragment}"
        if absolute in seen:
            self.diagnostics.warn(
                DiagnosticKind.UNRESOLVED_REFERENCE,
                f"Circular reference detected while resolving {ref} within file {target_uri}",
                ref=ref,
                document_uri=target_uri,
            )
            return None, target_uri
        seen = seen | {absolute}

        plain_name = bool(fragment) and not fragment.startswith("/")
        value: Any = _MISSING

        if plain_name:
            anchor = unquote(fragment)
            # Dynamic scope wins for plain-name fragments, outermost resource first.
            for scope_uri in dynamic_scope:
                key = f"{scope_uri}#{anchor}"
                if key in self.cache:
                    value, target_uri = self.cache[key], scope_uri
                    break
            if value is _MISSING and f"{target_uri}#{anchor}" in self.cache:
                value = self.cache[f"{target_uri}#{anchor}"]

        if value is _MISSING:
            if target_uri not in self.cache:
                self.diagnostics.warn(
                    DiagnosticKind.UNRESOLVED_REFERENCE,
                    f"Unresolved external file reference: {target_uri}. File was not pre-loaded.",
                    ref=ref,
                    document_uri=current,
                )
                return None, current
            document = self.cache[target_uri]

            if plain_name:
                self.diagnostics.warn(
                    DiagnosticKind.UNRESOLVED_REFERENCE,
                    f'Unresolved anchor "#{fragment}" in path "{ref}" within file {target_uri}',
                    ref=ref,
                    document_uri=target_uri,
                )
                return None, target_uri

            value, failing = _walk_pointer(document, fragment)
            if value is _MISSING:
                self.diagnostics.warn(
                    DiagnosticKind.UNRESOLVED_REFERENCE,
                    f'Failed to resolve reference part "{failing}" in path "{ref}" '
                    f"within file {target_uri}",
                    ref=ref,
                    document_uri=target_uri,
                )
                return None, target_uri

        if is_reference(value):
            written_in = self.origin_of(value) or target_uri
            nested, origin = self._lookup(_ref_of(value), written_in, dynamic_scope, seen)
            if nested is None:
                return None, origin
            overrides = {key: value[key] for key in _OVERRIDE_KEYS if key in value}
            if overrides and isinstance(nested, dict):
                nested = {**nested, **overrides}
            return nested, origin

        return value, target_uri

    def _deep_inline(self, obj: Any, current: Optional[str], seen: frozenset[str]) -> Any:
        if isinstance(obj, dict):
            current = self.origin_of(obj) or current
            if is_reference(obj):
                ref = _ref_of(obj)
                file_part, _, fragment = ref.partition("#")
                target = current or ""
                if file_part:
                    base = self.base_uri_for(current) or target
                    target = urldefrag(urljoin(base, file_part))[0]
                key = f"{target}#{fragment}"
                if key in seen:
                    return copy.deepcopy(obj)
                resolved, origin = self.resolve_with_origin(obj, current)
                if resolved is None:
                    return copy.deepcopy(obj)
                return self._deep_inline(resolved, origin, seen | {key})
            return {key: self._deep_inline(value, current, seen) for key, value in obj.items()}
        if isinstance(obj, list):
            return [self._deep_inline(item, current, seen) for item in obj]
        return obj


def document_base_uri(cache: DocumentCache, document_uri: Optional[str]) -> Optional[str]:
    """Return the ``$self``-aware base URI of a cached document."""
    if document_uri is None:
        return None
    document = cache.get(document_uri)
    if isinstance(document, dict):
        declared = document.get("$self")
        if isinstance(declared, str) and declared:
            try:
                return urldefrag(urljoin(document_uri, declared))[0]
            except ValueError:
                logger.debug("Ignoring invalid $self %r in %s", declared, document_uri)
    return document_uri


def _record_origins(
    node: Any,
    origin: str,
    join_base: str,
    cache: DocumentCache,
    origins: dict[int, str],
) -> None:
    if isinstance(node, list):
        for item in node:
            _record_origins(item, origin, join_base, cache, origins)
        return
    if not isinstance(node, dict) or id(node) in origins:
        return

    schema_id = node.get("$id")
    if isinstance(schema_id, str) and schema_id:
        try:
            candidate = urldefrag(urljoin(join_base, schema_id))[0]
        except ValueError:
            candidate = None
        # Only rebase onto resources the cache can serve local lookups from.
        if candidate and cache.get(candidate) is node:
            origin = join_base = candidate

    origins[id(node)] = origin
    for value in node.values():
        _record_origins(value, origin, join_base, cache, origins)


def _index_node(
    node: Any,
    base: str,
    alias: Optional[str],
    cache: DocumentCache,
    seen: set[int],
) -> None:
    if isinstance(node, list):
        for item in node:
            _index_node(item, base, alias, cache, seen)
        return
    if not isinstance(node, dict) or id(node) in seen:
        return
    seen.add(id(node))

    schema_id = node.get("$id")
    if isinstance(schema_id, str) and schema_id:
        try:
            candidate = urldefrag(urljoin(base, schema_id))[0]
        except ValueError:
            candidate = None
        if candidate and _is_valid_uri(candidate):
            base = candidate
            alias = None
            cache.setdefault(base, node)
        else:
            logger.debug("Ignoring invalid $id %r under %s", schema_id, base)

    for key in ("$anchor", "$dynamicAnchor"):
        anchor = node.get(key)
        if isinstance(anchor, str) and anchor:
            cache.setdefault(f"{base}#{anchor}", node)
            if alias:
                cache.setdefault(f"{alias}#{anchor}", node)

    for value in node.values():
        _index_node(value, base, alias, cache, seen)
