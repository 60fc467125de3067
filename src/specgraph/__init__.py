"""specgraph -- resolve and normalize OpenAPI / Swagger documents (2.0 to 3.2).

This package loads an API description together with every document it
references, validates it, resolves every ``$ref`` / ``$dynamicRef`` and JSON
Pointer, and exposes the result as a read-only semantic model: operations,
schemas, parameters, security schemes, servers, discriminators, links,
callbacks and webhooks, plus the serialization descriptors emitters need.

Typical usage::

    from specgraph import parse_spec

    spec = parse_spec("https://example.com/openapi.yaml")
    for op in spec.operations:
        wire = spec.serialization.analyze_operation(op)

Modules:
    spec: :class:`ApiSpec` facade and :func:`parse_spec`.
    parser: Loading, validation, reference resolution and path extraction.
    normalizer: Schema registry and discriminator maps.
    analysis: Serialization, validation-rule and resource analyzers.
    models: Pydantic models shared across the entire package.
    config: Project config and precedence resolution.
    app: Typer application and CLI entry point.
"""

__version__ = "0.1.0"

from specgraph.spec import ApiSpec, parse_spec  # noqa: E402

__all__ = ["ApiSpec", "__version__", "parse_spec"]
