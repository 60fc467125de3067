"""Exception hierarchy for specgraph.

All exceptions inherit from :class:`SpecgraphError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`specgraph.exit_codes`.
The command line entry point in :func:`specgraph.app.main` catches
``SpecgraphError`` and exits with the matching code.

Only fail-fast conditions are raised. Soft failures (a bad ``$ref``, an
unreachable sub-document, a dropped discriminator branch) are recorded on a
:class:`~specgraph.diagnostics.Diagnostics` collector instead.

Subclass hierarchy::

    SpecgraphError              (exit 1)
    +-- ConfigError             (exit 2)
    +-- SpecLoadError           (exit 3)
    +-- ValidationError         (exit 4)
    +-- UnsupportedConstructError (exit 70)
"""

from __future__ import annotations

from typing import Any

from specgraph.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INTERNAL_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_SPEC_LOAD_ERROR,
    EXIT_VALIDATION_ERROR,
)


class SpecgraphError(Exception):
    """Base exception for all specgraph errors.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(SpecgraphError):
    """Raised for configuration problems (invalid project config, bad option values)."""

    exit_code = EXIT_INVALID_USAGE


class SpecLoadError(SpecgraphError):
    """Raised when a document cannot be fetched, read, or parsed.

    The original cause is always chained (``raise ... from exc``). Causes that
    are not exceptions at all are folded into the message via :meth:`wrap`.
    """

    exit_code = EXIT_SPEC_LOAD_ERROR

    @classmethod
    def wrap(cls, source: str, cause: Any) -> SpecLoadError:
        """Build a load error for *source* from an arbitrary *cause*.

        Args:
            source: The URI or path that failed.
            cause: An exception or any other value describing the failure.

        Returns:
            A new :class:`SpecLoadError` whose message names the source and
            carries the cause's text.
        """
        detail = str(cause) if isinstance(cause, BaseException) else repr(cause)
        return cls(f'Failed to read content from "{source}": {detail}')


class ValidationError(SpecgraphError):
    """Raised when a document violates a structural or semantic OpenAPI rule."""

    exit_code = EXIT_VALIDATION_ERROR


class UnsupportedConstructError(SpecgraphError):
    """Raised when a closed dispatch meets a kind it does not know.

    This signals a programming error in specgraph itself rather than a
    mistake in the API document being processed.
    """

    exit_code = EXIT_INTERNAL_ERROR
