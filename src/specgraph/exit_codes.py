"""Numeric process exit codes used by the ``specgraph`` command line.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~specgraph.exceptions.SpecgraphError` subclass, so
CI scripts can branch on the exit status without parsing stderr.

Example::

    $ specgraph validate broken.yaml
    $ echo $?
    4   # EXIT_VALIDATION_ERROR -- the document violates a structural rule
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or configuration."""

EXIT_SPEC_LOAD_ERROR = 3
"""The document could not be fetched, read, or parsed."""

EXIT_VALIDATION_ERROR = 4
"""The document was parsed but violates a structural or semantic rule."""

EXIT_INTERNAL_ERROR = 70
"""An internal invariant was broken (unsupported construct reached a closed dispatch)."""
