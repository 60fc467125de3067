"""Tests for specgraph.config -- data directory, project file, precedence."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from specgraph.config import get_data_dir, load_project_config, resolve_config
from specgraph.exceptions import ConfigError
from specgraph.models import DateType, EnumStyle, Int64Type


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_project(root: Path, data: Any) -> Path:
    path = root / "specgraph.json"
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Data directory
# ---------------------------------------------------------------------------


class TestDataDir:
    def test_xdg_data_home(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specgraph.config._is_xdg_platform", lambda: True)
        path = get_data_dir()
        assert path == isolated_config / "data" / "specgraph"
        assert path.is_dir()

    def test_non_xdg_platform(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("specgraph.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_data_dir() == tmp_path / ".specgraph" / "logs"


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_missing_file(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_valid_file(self, isolated_config: Path) -> None:
        _write_project(isolated_config, {"input": "api.yaml"})
        assert load_project_config() == {"input": "api.yaml"}

    def test_invalid_json(self, isolated_config: Path) -> None:
        (isolated_config / "specgraph.json").write_text("{broken", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid project config"):
            load_project_config()

    def test_non_object(self, isolated_config: Path) -> None:
        _write_project(isolated_config, ["api.yaml"])
        with pytest.raises(ConfigError, match="expected a JSON object"):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    def test_defaults(self, isolated_config: Path) -> None:
        config = resolve_config()
        assert config.input is None
        assert config.output is None
        assert config.options.date_type == DateType.STRING
        assert config.options.int64_type == Int64Type.INT
        assert config.options.enum_style == EnumStyle.ENUM
        assert config.options.content_decoding_depth == 6

    def test_project_file(self, isolated_config: Path) -> None:
        _write_project(
            isolated_config,
            {"input": "api.yaml", "output": "build", "options": {"enum_style": "union"}},
        )
        config = resolve_config()
        assert config.input == "api.yaml"
        assert config.output == "build"
        assert config.options.enum_style == EnumStyle.UNION

    def test_environment_beats_project(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _write_project(isolated_config, {"input": "api.yaml", "options": {"content_decoding_depth": 2}})
        monkeypatch.setenv("SPECGRAPH_INPUT", "env.yaml")
        monkeypatch.setenv("SPECGRAPH_DECODING_DEPTH", "3")
        monkeypatch.setenv("SPECGRAPH_INT64_TYPE", "str")
        config = resolve_config()
        assert config.input == "env.yaml"
        assert config.options.content_decoding_depth == 3
        assert config.options.int64_type == Int64Type.STR

    def test_cli_beats_environment(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECGRAPH_INPUT", "env.yaml")
        monkeypatch.setenv("SPECGRAPH_DATE_TYPE", "datetime")
        config = resolve_config("cli.yaml", date_type="string", enum_style=None)
        assert config.input == "cli.yaml"
        assert config.options.date_type == DateType.STRING
        assert config.options.enum_style == EnumStyle.ENUM

    def test_invalid_value(self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SPECGRAPH_ENUM_STYLE", "bogus")
        with pytest.raises(ConfigError, match="Invalid configuration"):
            resolve_config()

    def test_depth_must_be_positive(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError):
            resolve_config(content_decoding_depth=0)
