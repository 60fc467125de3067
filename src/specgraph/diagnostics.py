"""Structured collector for soft failures.

The resolver, the recursive loader and the schema normalizer never abort a
run because of one bad pointer. They record a :class:`Diagnostic` on a shared
:class:`Diagnostics` instance and carry on. Every recorded entry is also
logged at ``WARNING`` on the ``specgraph.diagnostics`` logger, tagged with its
kind, so command line users see the same information that programmatic
callers can inspect.

Typical usage::

    diagnostics = Diagnostics()
    resolver = ReferenceResolver(cache, diagnostics)
    resolver.resolve_reference("#/missing")
    for item in diagnostics.of_kind(DiagnosticKind.UNRESOLVED_REFERENCE):
        print(item.message)
"""

from __future__ import annotations

import enum
import logging
from typing import Iterator, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class DiagnosticKind(str, enum.Enum):
    """Categories of soft failure.

    ``UNRESOLVED_REFERENCE`` and ``UNSUPPORTED_CONSTRUCT`` are the warning
    kinds callers most often filter on.
    """

    UNRESOLVED_REFERENCE = "unresolved-reference"
    UNRESOLVED_DOCUMENT = "unresolved-document"
    DROPPED_BRANCH = "dropped-branch"
    DUPLICATE_SCHEMA = "duplicate-schema"
    UNSUPPORTED_CONSTRUCT = "unsupported-construct"


class Diagnostic(BaseModel):
    """A single soft failure."""

    kind: DiagnosticKind
    message: str
    ref: Optional[str] = None
    document_uri: Optional[str] = None


class Diagnostics:
    """Append-only list of :class:`Diagnostic` entries for one run.

    Args:
        log: Logger used to echo each entry. Defaults to this module's logger.
    """

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._items: list[Diagnostic] = []
        self._log = log or logger

    def warn(
        self,
        kind: DiagnosticKind,
        message: str,
        *,
        ref: Optional[str] = None,
        document_uri: Optional[str] = None,
    ) -> Diagnostic:
        """Record and log a soft failure.

        Args:
            kind: The failure category.
            message: Human-readable description naming what failed and why.
            ref: The reference string involved, if any.
            document_uri: The document the failure was observed in, if known.

        Returns:
            The recorded :class:`Diagnostic`.
        """
        item = Diagnostic(kind=kind, message=message, ref=ref, document_uri=document_uri)
        self._items.append(item)
        self._log.warning("[%s] %s", kind.value, message)
        return item

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        """Return every recorded entry of *kind*, in recording order."""
        return [item for item in self._items if item.kind == kind]

    @property
    def messages(self) -> list[str]:
        return [item.message for item in self._items]

    def clear(self) -> None:
        self._items.clear()

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)
