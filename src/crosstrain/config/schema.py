"""
Pydantic models for crosstrain configuration.

Defines the configuration schema using Pydantic v2 for validation and
defaults. Keys are accepted both in snake_case and in the camelCase used by
OpenCode's JSON settings files (``claudeDir``, ``filePrefix``...).
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_MODEL_CONFIG = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class LoadersConfig(BaseModel):
    """Enable or disable each converter."""

    skills: bool = True
    agents: bool = True
    commands: bool = True
    hooks: bool = True
    mcp: bool = True

    model_config = _MODEL_CONFIG

    def any_enabled(self) -> bool:
        return self.skills or self.agents or self.commands or self.hooks or self.mcp


class LoggingConfig(BaseModel):
    """Logging system configuration."""

    level: Literal["debug", "info", "warn", "error"] = "info"
    file: Path | None = None
    verbose: int = 0

    model_config = _MODEL_CONFIG


class CrosstrainConfig(BaseModel):
    """Complete plugin configuration.

    This is the single resolved record the plugin works from. Mapping
    tables hold only user overrides until load_config() merges them over
    the built-in tables in ``config.mappings``.
    """

    enabled: bool = True
    claude_dir: str = Field(
        default=".claude",
        description="Project-scoped Claude Code directory, relative to the project.",
    )
    opencode_dir: str = Field(
        default=".opencode",
        alias="openCodeDir",
        description="OpenCode output directory, relative to the project.",
    )
    load_user_assets: bool = Field(
        default=True,
        description="If True, ~/.claude is scanned as the fallback root.",
    )
    watch: bool = Field(
        default=True,
        description="If True, source directories are watched and reloaded on change.",
    )
    file_prefix: str = Field(
        default="claude_",
        description="Prefix for generated agent/command files and MCP server names.",
    )
    verbose: bool = False
    debounce_ms: int = Field(
        default=500,
        ge=0,
        description="Quiet period before a burst of file changes triggers a reload.",
    )
    default_command_agent: str = Field(
        default="build",
        description="OpenCode agent assigned to converted commands.",
    )
    loaders: LoadersConfig = Field(default_factory=LoadersConfig)
    model_mappings: dict[str, str] = Field(default_factory=dict)
    tool_mappings: dict[str, str] = Field(default_factory=dict)
    event_mappings: dict[str, str] = Field(
        default_factory=dict,
        description=(
            "Claude hook event -> OpenCode event. Overrides the built-in lossy "
            "mapping, e.g. {'SubagentStop': ''} disables a collapsed event."
        ),
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = _MODEL_CONFIG
