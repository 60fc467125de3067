"""OpenAPI document parser -- load, validate, resolve references, and extract operations.

This sub-package is the first half of the specgraph pipeline: turning an
OpenAPI / Swagger document (JSON or YAML, local file or remote URL, plus every
document it references) into :class:`~specgraph.models.PathInfo` records.

Typical usage::

    from specgraph.parser import ReferenceResolver, SpecLoader, extract_paths

    loaded = SpecLoader().load("petstore.yaml")
    resolver = ReferenceResolver(loaded.cache, loaded.diagnostics, loaded.document_uri)
    operations = extract_paths(loaded.entry_spec.get("paths"), resolver.resolve_reference)

Sub-modules:

* :mod:`~specgraph.parser.loader` -- I/O layer (URL, file) plus format
  detection and the recursive walk over referenced documents.
* :mod:`~specgraph.parser.validator` -- Structural checks on the raw document.
* :mod:`~specgraph.parser.resolver` -- ``$ref`` / ``$dynamicRef`` lookup in the
  document cache, with cycle detection.
* :mod:`~specgraph.parser.extractor` -- Flattens ``paths`` and ``webhooks``
  into :class:`~specgraph.models.PathInfo` objects.
"""

from specgraph.parser.extractor import (
    assign_method_names,
    extract_paths,
    extract_servers,
    extract_webhooks,
)
from specgraph.parser.loader import LoadedSpec, SpecLoader, to_document_uri
from specgraph.parser.resolver import (
    DocumentCache,
    ReferenceResolver,
    decode_pointer_token,
    evaluate_json_pointer,
)
from specgraph.parser.validator import validate_spec

__all__ = [
    "DocumentCache",
    "LoadedSpec",
    "ReferenceResolver",
    "SpecLoader",
    "assign_method_names",
    "decode_pointer_token",
    "evaluate_json_pointer",
    "extract_paths",
    "extract_servers",
    "extract_webhooks",
    "to_document_uri",
    "validate_spec",
]
