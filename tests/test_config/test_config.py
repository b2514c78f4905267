"""
Tests para la carga de configuración.

Cubre:
- Valores por defecto del schema Pydantic
- Precedencia: archivo < variables de entorno < opciones directas
- Claves camelCase y snake_case
- Extensión de las tablas de mapeo incorporadas
- validate_config y errores de validación
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from crosstrain.config.loader import (
    deep_merge,
    get_resolved_paths,
    get_settings_path,
    load_config,
    load_env_overrides,
    validate_config,
)
from crosstrain.config.mappings import HOOK_EVENT_MAPPING, map_model, map_tool
from crosstrain.config.schema import CrosstrainConfig, LoadersConfig


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Elimina variables CROSSTRAIN_* del entorno real."""
    for name in (
        "CROSSTRAIN_ENABLED",
        "CROSSTRAIN_WATCH",
        "CROSSTRAIN_VERBOSE",
        "CROSSTRAIN_LOAD_USER_ASSETS",
        "CROSSTRAIN_CLAUDE_DIR",
        "CROSSTRAIN_OPENCODE_DIR",
        "CROSSTRAIN_FILE_PREFIX",
        "CROSSTRAIN_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def write_settings(tmp_path: Path):
    """Escribe el archivo de settings del plugin dentro del proyecto."""

    def _write(data) -> Path:
        path = get_settings_path(tmp_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
        return path

    return _write


# ── Tests: defaults ──────────────────────────────────────────────────


class TestDefaults:
    def test_schema_defaults(self):
        config = CrosstrainConfig()
        assert config.enabled
        assert config.claude_dir == ".claude"
        assert config.opencode_dir == ".opencode"
        assert config.file_prefix == "claude_"
        assert config.watch
        assert config.load_user_assets
        assert config.debounce_ms == 500
        assert config.loaders == LoadersConfig()

    def test_load_without_settings(self, tmp_path):
        config = load_config(tmp_path)
        assert config.enabled
        assert config.model_mappings["sonnet"] == "anthropic/claude-sonnet-4-20250514"
        assert config.tool_mappings["WebFetch"] == "webfetch"
        assert config.event_mappings == HOOK_EVENT_MAPPING

    def test_extra_keys_rejected(self):
        with pytest.raises(ValidationError):
            CrosstrainConfig(unknown_key=1)

    def test_camel_case_keys(self):
        config = CrosstrainConfig.model_validate(
            {"claudeDir": "cc", "openCodeDir": "oc", "filePrefix": "x_", "loadUserAssets": False}
        )
        assert (config.claude_dir, config.opencode_dir, config.file_prefix) == ("cc", "oc", "x_")
        assert not config.load_user_assets


# ── Tests: precedencia ───────────────────────────────────────────────


class TestPrecedence:
    def test_settings_file(self, tmp_path, write_settings):
        write_settings({"filePrefix": "cc_", "loaders": {"hooks": False}})
        config = load_config(tmp_path)
        assert config.file_prefix == "cc_"
        assert not config.loaders.hooks
        assert config.loaders.skills

    def test_env_overrides_file(self, tmp_path, write_settings, monkeypatch):
        write_settings({"watch": True, "filePrefix": "file_"})
        monkeypatch.setenv("CROSSTRAIN_WATCH", "false")
        monkeypatch.setenv("CROSSTRAIN_FILE_PREFIX", "env_")
        config = load_config(tmp_path)
        assert not config.watch
        assert config.file_prefix == "env_"

    def test_options_override_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CROSSTRAIN_FILE_PREFIX", "env_")
        config = load_config(tmp_path, {"file_prefix": "opt_"})
        assert config.file_prefix == "opt_"

    def test_nested_sections_merge(self, tmp_path, write_settings):
        write_settings({"loaders": {"hooks": False}})
        config = load_config(tmp_path, {"loaders": {"mcp": False}})
        assert not config.loaders.hooks
        assert not config.loaders.mcp
        assert config.loaders.agents

    def test_config_object_as_options(self, tmp_path, write_settings):
        write_settings({"filePrefix": "file_", "watch": False})
        config = load_config(tmp_path, CrosstrainConfig(file_prefix="obj_"))
        assert config.file_prefix == "obj_"
        assert not config.watch

    def test_explicit_yaml_settings(self, tmp_path):
        path = tmp_path / "crosstrain.yaml"
        path.write_text("filePrefix: yaml_\nloaders:\n  mcp: false\n", encoding="utf-8")
        config = load_config(tmp_path, config_path=path)
        assert config.file_prefix == "yaml_"
        assert not config.loaders.mcp

    def test_malformed_settings_ignored(self, tmp_path, write_settings):
        write_settings("{not: [valid")
        assert load_config(tmp_path).file_prefix == "claude_"

    def test_invalid_value_raises(self, tmp_path):
        with pytest.raises(ValidationError):
            load_config(tmp_path, {"debounce_ms": -1})

    def test_env_flags(self, monkeypatch):
        monkeypatch.setenv("CROSSTRAIN_ENABLED", "0")
        monkeypatch.setenv("CROSSTRAIN_VERBOSE", "yes")
        monkeypatch.setenv("CROSSTRAIN_WATCH", "maybe")
        monkeypatch.setenv("CROSSTRAIN_LOG_LEVEL", "DEBUG")
        assert load_env_overrides() == {
            "enabled": False,
            "verbose": True,
            "logging": {"level": "debug"},
        }


# ── Tests: mapeos ────────────────────────────────────────────────────


class TestMappings:
    def test_user_mappings_extend_defaults(self, tmp_path):
        config = load_config(
            tmp_path,
            {"modelMappings": {"fast": "openai/gpt-4o-mini"}, "eventMappings": {"Stop": ""}},
        )
        assert config.model_mappings["fast"] == "openai/gpt-4o-mini"
        assert config.model_mappings["opus"] == "anthropic/claude-opus-4-20250514"
        assert config.event_mappings["Stop"] == ""
        assert config.event_mappings["SessionEnd"] == "session.idle"

    def test_map_model(self):
        assert map_model("opus") == "anthropic/claude-opus-4-20250514"
        assert map_model("HAIKU") == "anthropic/claude-haiku-4-20250514"
        assert map_model("inherit") is None
        assert map_model("some/custom-model") == "some/custom-model"
        assert map_model("sonnet", {"sonnet": "x/y"}) == "x/y"

    def test_map_tool(self):
        assert map_tool("WebFetch") == "webfetch"
        assert map_tool("TodoWrite") == "todowrite"
        assert map_tool("Task", {"Task": "agent"}) == "agent"


# ── Tests: helpers ───────────────────────────────────────────────────


class TestHelpers:
    def test_deep_merge(self):
        result = deep_merge({"a": {"b": 1, "c": 2}, "d": 1}, {"a": {"c": 3}, "d": None})
        assert result == {"a": {"b": 1, "c": 3}, "d": 1}

    def test_resolved_paths(self, tmp_path):
        claude_dir, opencode_dir = get_resolved_paths(tmp_path, CrosstrainConfig(opencode_dir="out"))
        assert claude_dir == tmp_path / ".claude"
        assert opencode_dir == tmp_path / "out"

    def test_validate_config_clean(self):
        assert validate_config(CrosstrainConfig()) == []

    def test_validate_config_warnings(self):
        config = CrosstrainConfig(
            claude_dir="../elsewhere",
            file_prefix="",
            loaders=LoadersConfig(skills=False, agents=False, commands=False, hooks=False, mcp=False),
        )
        warnings = validate_config(config)
        assert len(warnings) == 3
        assert any("parent directory" in w for w in warnings)
        assert any("file_prefix is empty" in w for w in warnings)
        assert any("All loaders are disabled" in w for w in warnings)
