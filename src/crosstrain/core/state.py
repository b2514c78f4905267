"""
Plugin State -- the single record one plugin instance works from.

Converters publish their results by assigning a whole new value to one
field (a frozen tool map, a new HookDispatcher, a new tuple of names).
Nothing reachable from the state is mutated in place, so a host call that
read a field before a reload keeps a consistent, if stale, value.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import structlog

from ..assets.discovery import AssetRoots, AssetSummary
from ..config.schema import CrosstrainConfig
from ..tools.base import ToolDefinition
from .hooks import HookDispatcher

if TYPE_CHECKING:
    from .watcher import WatchHandle


@dataclass
class PluginState:
    """Resolved state owned by one running plugin instance.

    Attributes:
        config: Resolved configuration record.
        roots: Project and user asset roots.
        opencode_dir: Target directory for synchronized agents and commands.
        summary: Which asset kinds were present at initialization.
        tools: Skill tools by name, read-only.
        hooks: Dispatcher for the current hook table.
        agents: Names written by the last agent synchronization.
        commands: Names written by the last command synchronization.
        mcp_servers: Server names written by the last MCP synchronization.
        watcher: Active watch handle, None when watching is off.
    """

    config: CrosstrainConfig
    roots: AssetRoots
    opencode_dir: Path
    summary: AssetSummary = field(default_factory=AssetSummary)
    tools: Mapping[str, ToolDefinition] = field(default_factory=lambda: MappingProxyType({}))
    hooks: HookDispatcher | None = None
    agents: tuple[str, ...] = ()
    commands: tuple[str, ...] = ()
    mcp_servers: tuple[str, ...] = ()
    watcher: "WatchHandle | None" = None
    log: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.hooks is None:
            self.hooks = HookDispatcher.empty(self.roots.project_dir)
        if self.log is None:
            self.log = structlog.get_logger().bind(component="crosstrain")

    @property
    def project_dir(self) -> Path:
        return self.roots.project_dir

    def __repr__(self) -> str:
        return (
            f"<PluginState("
            f"tools={len(self.tools)}, "
            f"hook_rules={self.hooks.table.rule_count if self.hooks else 0}, "
            f"agents={len(self.agents)}, "
            f"commands={len(self.commands)}, "
            f"watching={self.watcher is not None})>"
        )
