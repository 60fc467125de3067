"""``specgraph validate`` -- load a document graph and report problems."""

from __future__ import annotations

from typing import Optional

import typer

from specgraph.commands import load_api_spec
from specgraph.exit_codes import EXIT_GENERIC_FAILURE
from specgraph.output import get_output, success


def validate_command(
    source: Optional[str] = typer.Argument(
        None, help="Path or URL of the entry document."
    ),
    strict: bool = typer.Option(
        False, "--strict", help="Fail when any diagnostic was recorded."
    ),
) -> None:
    """Validate a document and everything it references.

    Structural violations fail immediately with exit code 4. Soft failures
    (unresolved references, unreachable sub-documents, dropped branches)
    are listed on stderr; with ``--strict`` they fail the run as well.

    Example::

        specgraph validate openapi.yaml
        specgraph validate https://example.com/api.json --strict
    """
    spec = load_api_spec(source)
    # Touch the lazily built parts so their diagnostics are collected too.
    operations = spec.operations
    _ = spec.webhooks
    _ = spec.discriminators
    for op in operations:
        spec.serialization.analyze_operation(op)

    output = get_output()
    if spec.diagnostics:
        output.print_diagnostics(spec.diagnostics)
        if strict:
            output.error(f"{len(spec.diagnostics)} diagnostic(s) recorded.")
            raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    version = spec.get_spec_version()
    label = f"{version.type} {version.version}" if version is not None else "unknown version"
    success(
        f"{spec.document_uri} is valid ({label}, {len(operations)} operation(s), "
        f"{len(spec.schemas)} schema(s))."
    )
