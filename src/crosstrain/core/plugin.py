"""
Plugin entry point -- what OpenCode calls and what it gets back.

crosstrain_plugin() resolves the configuration, runs every enabled
converter once for the asset kinds that are present, optionally starts the
watcher, and returns a PluginHooks object. The host reads tools from it and
calls its three handlers; each access goes through the current plugin
state, so reloads are visible without re-registering anything.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

import structlog

from ..agents.sync import AgentsConverter
from ..assets.base import AssetConverter
from ..assets.discovery import AssetRoots, get_asset_summary
from ..commands.sync import CommandsConverter
from ..config.loader import get_resolved_paths, load_config, validate_config
from ..config.schema import CrosstrainConfig
from ..mcp.converter import McpConverter
from ..skills.loader import SkillsConverter
from ..tools.base import ToolDefinition
from ..tools.info import INFO_TOOL_NAME, CrosstrainInfoTool
from .hooks import HooksConverter
from .state import PluginState
from .watcher import run_converter, start_watching

logger = structlog.get_logger()

__all__ = [
    "PluginContext",
    "PluginHooks",
    "create_plugin",
    "crosstrain_plugin",
    "default_converters",
    "initialize_state",
]


@dataclass(frozen=True)
class PluginContext:
    """What the host passes to the plugin.

    Attributes:
        directory: Project directory OpenCode was started in.
        home_dir: Home directory for ``~/.claude``; defaults to the user's.
        worktree: Git worktree root, informational.
    """

    directory: Path
    home_dir: Path | None = None
    worktree: Path | None = None


def default_converters() -> list[AssetConverter]:
    """One converter per asset kind, in load order."""
    return [
        SkillsConverter(),
        AgentsConverter(),
        CommandsConverter(),
        HooksConverter(),
        McpConverter(),
    ]


class PluginHooks:
    """Host contract returned by crosstrain_plugin().

    An inactive instance (plugin disabled, or no assets found) exposes no
    tools and handlers that do nothing.
    """

    def __init__(self, state: PluginState | None = None) -> None:
        self.state = state
        self._info_tool = CrosstrainInfoTool(state) if state is not None else None

    @property
    def active(self) -> bool:
        return self.state is not None

    @property
    def tool(self) -> Mapping[str, ToolDefinition]:
        """Current tools: every skill tool plus crosstrain_info."""
        if self.state is None or self._info_tool is None:
            return MappingProxyType({})
        return MappingProxyType({**self.state.tools, INFO_TOOL_NAME: self._info_tool})

    async def tool_execute_before(self, input: dict[str, Any], output: dict[str, Any]) -> None:
        if self.state is not None and self.state.hooks is not None:
            await self.state.hooks.tool_execute_before(input, output)

    async def tool_execute_after(self, input: dict[str, Any], output: dict[str, Any]) -> None:
        if self.state is not None and self.state.hooks is not None:
            await self.state.hooks.tool_execute_after(input, output)

    async def event(self, event: dict[str, Any]) -> None:
        if self.state is not None and self.state.hooks is not None:
            await self.state.hooks.event(event)

    async def _host_event(self, params: dict[str, Any]) -> None:
        await self.event(params.get("event") or {})

    def as_host_dict(self) -> dict[str, Any]:
        """Keys as OpenCode names them. Empty when inactive."""
        if not self.active:
            return {}
        return {
            "tool": self.tool,
            "tool.execute.before": self.tool_execute_before,
            "tool.execute.after": self.tool_execute_after,
            "event": self._host_event,
        }

    async def close(self) -> None:
        """Stop the watcher, if any."""
        if self.state is not None and self.state.watcher is not None:
            await self.state.watcher.close()
            self.state.watcher = None

    def __repr__(self) -> str:
        return f"<PluginHooks(active={self.active}, state={self.state!r})>"


def resolve_roots(ctx: PluginContext, config: CrosstrainConfig) -> tuple[AssetRoots, Path]:
    """Asset roots and the OpenCode output directory for a context."""
    directory = Path(ctx.directory).resolve()
    claude_dir, opencode_dir = get_resolved_paths(directory, config)
    user_dir = None
    if config.load_user_assets:
        user_dir = (ctx.home_dir or Path.home()) / ".claude"
    roots = AssetRoots(project_dir=directory, claude_dir=claude_dir.resolve(), user_dir=user_dir)
    return roots, opencode_dir.resolve()


async def initialize_state(
    config: CrosstrainConfig,
    roots: AssetRoots,
    opencode_dir: Path,
    converters: list[AssetConverter] | None = None,
) -> tuple[PluginState, list[AssetConverter]]:
    """Build the state and run each enabled converter once.

    Converters for kinds with no assets are skipped; a converter that fails
    is logged and leaves its part of the state empty.

    Returns:
        (state, enabled converters)
    """
    summary = get_asset_summary(roots)
    state = PluginState(config=config, roots=roots, opencode_dir=opencode_dir, summary=summary)
    log = state.log

    enabled = [c for c in (converters or default_converters()) if c.enabled(config)]
    for converter in enabled:
        if not summary.has(converter.kind):
            log.debug("converter.skipped", kind=converter.kind.value, reason="no assets")
            continue
        await run_converter(converter, state, log)
    return state, enabled


async def crosstrain_plugin(
    ctx: PluginContext,
    options: CrosstrainConfig | dict[str, Any] | None = None,
    config_path: Path | None = None,
) -> PluginHooks:
    """Initialize the plugin for one project.

    Args:
        ctx: Host context.
        options: Direct configuration, highest precedence.
        config_path: Settings file to read instead of the default location.
    """
    directory = Path(ctx.directory).resolve()
    config = load_config(directory, options, config_path=config_path)
    log = logger.bind(component="crosstrain")

    if not config.enabled:
        log.info("plugin.disabled")
        return PluginHooks()

    for warning in validate_config(config):
        log.warning("config.warning", warning=warning)

    roots, opencode_dir = resolve_roots(ctx, config)
    summary = get_asset_summary(roots)
    if not summary.any():
        log.info("plugin.idle", reason="no Claude Code assets found", claude_dir=str(roots.claude_dir))
        return PluginHooks()

    (opencode_dir / "agent").mkdir(parents=True, exist_ok=True)
    (opencode_dir / "command").mkdir(parents=True, exist_ok=True)
    log.info(
        "plugin.initializing",
        claude_dir=str(roots.claude_dir),
        user_dir=str(roots.user_dir) if roots.user_dir else None,
        skills=summary.has_skills,
        agents=summary.has_agents,
        commands=summary.has_commands,
        hooks=summary.has_hooks,
        mcp=summary.has_mcp,
    )

    state, converters = await initialize_state(config, roots, opencode_dir)

    if config.watch and converters:
        start_watching(state, converters)

    log.info("plugin.initialized", state=repr(state))
    return PluginHooks(state)


def create_plugin(
    options: CrosstrainConfig | dict[str, Any] | None = None,
) -> Callable[[PluginContext], Awaitable[PluginHooks]]:
    """Plugin factory with options bound, for hosts that take a bare callable."""

    async def plugin(ctx: PluginContext) -> PluginHooks:
        return await crosstrain_plugin(ctx, options)

    return plugin
