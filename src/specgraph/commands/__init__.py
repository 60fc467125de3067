"""Built-in CLI sub-commands for specgraph.

* :mod:`~specgraph.commands.validate` -- load and validate a document,
  reporting soft failures.
* :mod:`~specgraph.commands.inspect` -- examine the resolved model: paths,
  schemas, auth, info, resources, parameter serialization and diagnostics.

Both resolve the entry document through :func:`load_api_spec`, which applies
the configuration precedence chain and turns
:class:`~specgraph.exceptions.SpecgraphError` into a clean ``typer.Exit``.
"""

from __future__ import annotations

from typing import Optional

import typer

from specgraph.exceptions import ConfigError, SpecgraphError
from specgraph.output import debug, error
from specgraph.spec import ApiSpec


def load_api_spec(source: Optional[str]) -> ApiSpec:
    """Resolve the configuration and load the entry document.

    Args:
        source: Document given on the command line; falls back to
            ``SPECGRAPH_INPUT`` and then ``./specgraph.json``.

    Raises:
        typer.Exit: With the error's exit code when configuration, loading
            or validation fails.
    """
    from specgraph.config import resolve_config
    from specgraph.parser.loader import SpecLoader

    try:
        config = resolve_config(cli_input=source)
        if not config.input:
            raise ConfigError(
                "No input document. Pass a SOURCE argument, set SPECGRAPH_INPUT "
                "or add \"input\" to ./specgraph.json."
            )
        debug(f"Loading {config.input}")
        loaded = SpecLoader().load(config.input)
        return ApiSpec(loaded, config)
    except SpecgraphError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
