"""Inspect commands -- examine the resolved API model.

Provides the ``specgraph inspect`` sub-command group with read-only views
of a loaded document graph: operations, named schemas, security schemes,
general info, discovered resources, per-parameter wire serialization and
the soft-failure diagnostics recorded while resolving.

Every sub-command takes an optional ``SOURCE`` argument. When omitted the
entry document comes from ``SPECGRAPH_INPUT`` or ``./specgraph.json``.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from specgraph.commands import load_api_spec
from specgraph.output import format_response, get_output, info


inspect_app = typer.Typer(no_args_is_help=True)

_SOURCE_HELP = "Path or URL of the entry document."


def _schema_type(schema: Any) -> str:
    if not isinstance(schema, dict):
        return "unknown"
    declared = schema.get("type")
    if isinstance(declared, list):
        return "|".join(str(t) for t in declared)
    if isinstance(declared, str):
        return declared
    for keyword in ("oneOf", "anyOf", "allOf"):
        if keyword in schema:
            return keyword
    return "object" if "properties" in schema else "any"


@inspect_app.command("paths")
def inspect_paths(
    source: Optional[str] = typer.Argument(None, help=_SOURCE_HELP),
) -> None:
    """List every operation.

    Shows the HTTP method, path, generated method name, summary and
    deprecation status.

    Example::

        specgraph inspect paths openapi.yaml
    """
    spec = load_api_spec(source)

    rows: list[list[str]] = []
    for op in sorted(spec.operations, key=lambda o: (o.path, o.method)):
        rows.append([
            op.method,
            op.path,
            op.method_name or "-",
            op.summary or "-",
            "Yes" if op.deprecated else "",
        ])

    get_output().print_table(
        ["Method", "Path", "Method name", "Summary", "Deprecated"],
        rows,
        title=f"Paths ({len(rows)})",
    )


@inspect_app.command("schemas")
def inspect_schemas(
    source: Optional[str] = typer.Argument(None, help=_SOURCE_HELP),
) -> None:
    """List the named schemas of every loaded document.

    Names are unique across documents; a clash gets a numeric suffix.

    Example::

        specgraph inspect schemas
    """
    spec = load_api_spec(source)

    if not spec.schemas:
        info("No schemas defined.")
        return

    rows: list[list[str]] = []
    for entry in spec.schemas:
        definition = entry.definition
        props = list(definition.get("properties", {}).keys()) if isinstance(definition, dict) else []
        shown = ", ".join(props[:5])
        if len(props) > 5:
            shown += "..."
        rows.append([entry.name, _schema_type(definition), shown or "-"])

    get_output().print_table(["Schema", "Type", "Properties"], rows, title=f"Schemas ({len(rows)})")


@inspect_app.command("auth")
def inspect_auth(
    source: Optional[str] = typer.Argument(None, help=_SOURCE_HELP),
) -> None:
    """Show security schemes, including Swagger 2 ``securityDefinitions``.

    Example::

        specgraph inspect auth
    """
    spec = load_api_spec(source)
    schemes = spec.get_security_schemes()

    if not schemes:
        info("No security schemes defined.")
        return

    rows: list[list[str]] = []
    for name, scheme in schemes.items():
        rows.append([
            name,
            scheme.type,
            scheme.scheme or "-",
            scheme.location or "-",
            (scheme.description or "-")[:60],
        ])

    get_output().print_table(
        ["Name", "Type", "Scheme", "Location", "Description"], rows, title="Security Schemes"
    )


@inspect_app.command("info")
def inspect_info(
    source: Optional[str] = typer.Argument(None, help=_SOURCE_HELP),
) -> None:
    """Show API metadata: title, version, document version, servers and counts.

    Example::

        specgraph inspect info https://example.com/openapi.json
    """
    spec = load_api_spec(source)
    api_info = spec.spec.get("info") or {}
    version = spec.get_spec_version()

    data: dict[str, Any] = {
        "title": api_info.get("title"),
        "version": api_info.get("version"),
        "spec_version": f"{version.type} {version.version}" if version is not None else None,
        "servers": [server.url for server in spec.servers],
        "operations": len(spec.operations),
        "webhooks": len(spec.webhooks),
        "schemas": len(spec.schemas),
        "security_schemes": list(spec.get_security_schemes().keys()),
    }
    dialect = spec.get_json_schema_dialect()
    if dialect:
        data["json_schema_dialect"] = dialect
    if api_info.get("description"):
        data["description"] = api_info["description"]

    format_response(data)


@inspect_app.command("resources")
def inspect_resources(
    source: Optional[str] = typer.Argument(None, help=_SOURCE_HELP),
) -> None:
    """Group operations into resources and show their CRUD actions.

    Example::

        specgraph inspect resources
    """
    spec = load_api_spec(source)

    if not spec.resources:
        info("No resources discovered.")
        return

    rows: list[list[str]] = []
    for resource in spec.resources:
        rows.append([
            resource.name,
            resource.model_name,
            ", ".join(op.action for op in resource.operations),
            "Yes" if resource.is_editable else "",
            ", ".join(prop.name for prop in resource.form_properties) or "-",
        ])

    get_output().print_table(
        ["Resource", "Model", "Actions", "Editable", "Form fields"],
        rows,
        title=f"Resources ({len(rows)})",
    )


@inspect_app.command("params")
def inspect_params(
    source: Optional[str] = typer.Argument(None, help=_SOURCE_HELP),
) -> None:
    """Show how each parameter is serialized onto the wire.

    Lists the effective ``style``, ``explode`` and ``allowReserved`` for
    every path, query, header and cookie parameter, plus the request body
    kind of each operation.

    Example::

        specgraph inspect params --json
    """
    spec = load_api_spec(source)

    rows: list[list[str]] = []
    for op in spec.operations:
        wire = spec.serialization.analyze_operation(op)
        label = op.method_name or f"{op.method} {op.path}"
        for bucket in (wire.path_params, wire.query_params, wire.header_params, wire.cookie_params):
            for param in bucket:
                rows.append([
                    label,
                    param.original_name,
                    param.location,
                    param.style,
                    str(param.explode).lower(),
                    str(param.allow_reserved).lower(),
                    param.content_type or "-",
                ])
        if wire.body is not None:
            rows.append([label, wire.body.param_name, "body", wire.body.kind, "-", "-",
                         wire.body.media_type or "-"])

    if not rows:
        info("No parameters.")
        return

    get_output().print_table(
        ["Operation", "Name", "In", "Style", "Explode", "Reserved", "Content type"],
        rows,
        title="Parameter serialization",
    )


@inspect_app.command("diagnostics")
def inspect_diagnostics(
    source: Optional[str] = typer.Argument(None, help=_SOURCE_HELP),
) -> None:
    """List the soft failures recorded while loading and resolving.

    Example::

        specgraph inspect diagnostics
    """
    spec = load_api_spec(source)
    # Build the lazily computed views so their diagnostics are included.
    for op in spec.operations:
        spec.serialization.analyze_operation(op)
    _ = spec.discriminators

    if not spec.diagnostics:
        info("No diagnostics.")
        return
    get_output().print_diagnostics(spec.diagnostics)
