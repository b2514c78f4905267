"""
Configuration loader with deep merge.

Precedence order (lowest to highest):
1. Defaults (defined in the Pydantic schemas)
2. Settings file: <project>/.opencode/plugin/crosstrain/settings.json
3. Environment variables (CROSSTRAIN_*)
4. Options passed directly to the plugin

The merge is recursive so nested sections (``loaders``, mappings) keep every
key from every level. The settings file is read with PyYAML, which accepts
plain JSON as well as YAML.
"""

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

from .mappings import HOOK_EVENT_MAPPING, MODEL_MAPPING, TOOL_MAPPING
from .schema import CrosstrainConfig

logger = structlog.get_logger()

SETTINGS_RELATIVE_PATH = Path(".opencode") / "plugin" / "crosstrain" / "settings.json"

_FALSE_VALUES = {"false", "0", "no", "off"}
_TRUE_VALUES = {"true", "1", "yes", "on"}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursive dictionary merge.

    Args:
        base: Base dictionary
        override: Dictionary whose values win on conflicts

    Returns:
        New dictionary. Override wins on leaf conflicts; None values in
        override are ignored.

    Example:
        >>> deep_merge({"loaders": {"skills": True, "hooks": True}}, {"loaders": {"hooks": False}})
        {'loaders': {'skills': True, 'hooks': False}}
    """
    result = base.copy()
    for key, value in override.items():
        if value is None:
            continue
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def get_settings_path(directory: Path) -> Path:
    """Location of the plugin's own settings file inside a project."""
    return directory / SETTINGS_RELATIVE_PATH


def load_settings_file(path: Path) -> dict[str, Any]:
    """Load the plugin settings file.

    Args:
        path: Settings file path

    Returns:
        Parsed mapping, or {} when the file is absent, empty or malformed.
        A malformed file is logged, never fatal.
    """
    if not path.is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("config.settings_unreadable", path=str(path), error=str(e))
        return {}
    if not isinstance(data, dict):
        return {}
    return data


def _env_flag(name: str) -> bool | None:
    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _FALSE_VALUES:
        return False
    if value in _TRUE_VALUES:
        return True
    return None


def load_env_overrides() -> dict[str, Any]:
    """Load overrides from environment variables.

    Supported variables:
        CROSSTRAIN_ENABLED, CROSSTRAIN_WATCH, CROSSTRAIN_VERBOSE,
        CROSSTRAIN_LOAD_USER_ASSETS: booleans ("false"/"0" disable)
        CROSSTRAIN_CLAUDE_DIR: overrides claude_dir
        CROSSTRAIN_OPENCODE_DIR: overrides opencode_dir
        CROSSTRAIN_FILE_PREFIX: overrides file_prefix
        CROSSTRAIN_LOG_LEVEL: overrides logging.level

    Returns:
        Dictionary with overrides from env vars
    """
    overrides: dict[str, Any] = {}

    for env_name, key in (
        ("CROSSTRAIN_ENABLED", "enabled"),
        ("CROSSTRAIN_WATCH", "watch"),
        ("CROSSTRAIN_VERBOSE", "verbose"),
        ("CROSSTRAIN_LOAD_USER_ASSETS", "load_user_assets"),
    ):
        flag = _env_flag(env_name)
        if flag is not None:
            overrides[key] = flag

    if claude_dir := os.environ.get("CROSSTRAIN_CLAUDE_DIR"):
        overrides["claude_dir"] = claude_dir

    if opencode_dir := os.environ.get("CROSSTRAIN_OPENCODE_DIR"):
        overrides["opencode_dir"] = opencode_dir

    if (prefix := os.environ.get("CROSSTRAIN_FILE_PREFIX")) is not None:
        overrides["file_prefix"] = prefix

    if log_level := os.environ.get("CROSSTRAIN_LOG_LEVEL"):
        overrides.setdefault("logging", {})["level"] = log_level.lower()

    return overrides


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Validate a partial mapping once so camelCase and snake_case keys
    from different layers merge onto the same field names."""
    return CrosstrainConfig.model_validate(data).model_dump(exclude_unset=True)


def load_config(
    directory: Path,
    options: dict[str, Any] | CrosstrainConfig | None = None,
    config_path: Path | None = None,
) -> CrosstrainConfig:
    """Load and validate the complete configuration.

    Loading process:
    1. Pydantic defaults
    2. Merge settings file (``config_path`` or the default location)
    3. Merge env vars
    4. Merge direct options
    5. Validate, then extend built-in mapping tables with user mappings

    Args:
        directory: Project directory
        options: Direct plugin options (highest priority)
        config_path: Explicit settings file, overriding the default location

    Returns:
        Validated CrosstrainConfig

    Raises:
        ValidationError: If the merged configuration is invalid
    """
    if isinstance(options, CrosstrainConfig):
        options = options.model_dump(exclude_unset=True)

    layers = [
        load_settings_file(config_path or get_settings_path(directory)),
        load_env_overrides(),
        options or {},
    ]

    merged: dict[str, Any] = {}
    for layer in layers:
        if layer:
            merged = deep_merge(merged, _normalize_keys(layer))

    config = CrosstrainConfig.model_validate(merged)
    return config.model_copy(
        update={
            "model_mappings": {**MODEL_MAPPING, **config.model_mappings},
            "tool_mappings": {**TOOL_MAPPING, **config.tool_mappings},
            "event_mappings": {**HOOK_EVENT_MAPPING, **config.event_mappings},
        }
    )


def validate_config(config: CrosstrainConfig) -> list[str]:
    """Return human-readable warnings for a resolved configuration."""
    warnings: list[str] = []

    if ".." in Path(config.claude_dir).parts:
        warnings.append(f'claude_dir "{config.claude_dir}" contains parent directory references')

    if ".." in Path(config.opencode_dir).parts:
        warnings.append(
            f'opencode_dir "{config.opencode_dir}" contains parent directory references'
        )

    if config.file_prefix == "":
        warnings.append("file_prefix is empty, generated files may conflict with existing files")

    if not config.loaders.any_enabled():
        warnings.append("All loaders are disabled, plugin will not load any assets")

    return warnings


def get_resolved_paths(directory: Path, config: CrosstrainConfig) -> tuple[Path, Path]:
    """Absolute (claude_dir, opencode_dir) for a project directory."""
    return directory / config.claude_dir, directory / config.opencode_dir
