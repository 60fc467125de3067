"""Configuration loading with XDG paths and precedence resolution.

This module handles the run configuration for specgraph:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specgraph/`` on macOS and Windows. Only the data directory (crash
  logs) is used; see :func:`get_data_dir`.
* **Project-local config** -- an optional ``./specgraph.json`` holding
  ``input`` and the :class:`~specgraph.models.GeneratorOptions` fields.
  See :func:`load_project_config`.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the project file and the defaults into one
  :class:`~specgraph.models.GeneratorConfig`.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from specgraph.exceptions import ConfigError
from specgraph.models import GeneratorConfig

_APP_NAME = "specgraph"
_PROJECT_CONFIG_FILENAME = "specgraph.json"

# Environment variable -> GeneratorOptions field.
_ENV_OPTIONS: dict[str, str] = {
    "SPECGRAPH_DATE_TYPE": "date_type",
    "SPECGRAPH_INT64_TYPE": "int64_type",
    "SPECGRAPH_ENUM_STYLE": "enum_style",
    "SPECGRAPH_DECODING_DEPTH": "content_decoding_depth",
}
_ENV_INPUT = "SPECGRAPH_INPUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/specgraph/`` (default
    ``~/.local/share/specgraph/``). On macOS/Windows: ``~/.specgraph/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./specgraph.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a valid JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def resolve_config(cli_input: Optional[str] = None, **cli_options: Any) -> GeneratorConfig:
    """Resolve the run configuration with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_input`` and ``cli_options``; ``None`` values are
           ignored)
        2. Environment variables (``SPECGRAPH_INPUT``,
           ``SPECGRAPH_DATE_TYPE``, ``SPECGRAPH_INT64_TYPE``,
           ``SPECGRAPH_ENUM_STYLE``, ``SPECGRAPH_DECODING_DEPTH``)
        3. Project config (``./specgraph.json``)
        4. Defaults

    Args:
        cli_input: Entry document given on the command line.
        **cli_options: :class:`~specgraph.models.GeneratorOptions` fields.

    Returns:
        The merged :class:`~specgraph.models.GeneratorConfig`.

    Raises:
        ConfigError: If the project file is unreadable or any layer holds
            an invalid value.
    """
    # 4 + 3. Defaults, then the project file
    project = load_project_config() or {}
    resolved_input: Optional[str] = project.get("input")
    options: dict[str, Any] = dict(project.get("options") or {})
    output = project.get("output")

    # 2. Environment variables
    env_input = os.environ.get(_ENV_INPUT)
    if env_input:
        resolved_input = env_input
    for env_var, field in _ENV_OPTIONS.items():
        value = os.environ.get(env_var)
        if value:
            options[field] = value

    # 1. CLI flags
    if cli_input is not None:
        resolved_input = cli_input
    options.update({key: value for key, value in cli_options.items() if value is not None})

    try:
        return GeneratorConfig.model_validate(
            {"input": resolved_input, "output": output, "options": options}
        )
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
