"""
crosstrain_info -- reports which Claude Code assets the plugin loaded.
"""

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from ..assets.discovery import get_asset_summary
from .base import ToolContext, ToolDefinition

if TYPE_CHECKING:
    from ..core.state import PluginState

INFO_TOOL_NAME = "crosstrain_info"


class InfoArgs(BaseModel):
    pass


class CrosstrainInfoTool(ToolDefinition):
    """Status of the loaded assets, read from the live plugin state."""

    name = INFO_TOOL_NAME
    description = (
        "Get information about Claude Code assets loaded by the crosstrain plugin. "
        "Use to see what skills, agents, commands, and hooks are available from Claude Code."
    )
    args_model = InfoArgs

    def __init__(self, state: "PluginState") -> None:
        self.state = state

    async def execute(self, args: dict[str, Any], ctx: ToolContext | None = None) -> str:
        state = self.state
        summary = get_asset_summary(state.roots)
        opencode_dir = state.opencode_dir

        def line(label: str, present: bool, detail: str) -> str:
            return f"- **{label}**: {detail if present else 'not found'}\n"

        info = "# Crosstrain Plugin Status\n\n## Loaded Claude Code Assets\n\n"
        info += line("Skills", summary.has_skills, f"{len(state.tools)} loaded as custom tools")
        info += line("Agents", summary.has_agents, f"{len(state.agents)} synced to {opencode_dir / 'agent'}")
        info += line(
            "Commands", summary.has_commands, f"{len(state.commands)} synced to {opencode_dir / 'command'}"
        )
        info += line(
            "Hooks", summary.has_hooks, f"{state.hooks.table.rule_count} rules loaded as event handlers"
        )
        info += line("MCP servers", summary.has_mcp, f"{len(state.mcp_servers)} merged into opencode.json")

        info += "\n## Source Locations\n\n"
        info += f"- Project: {state.roots.claude_dir}\n"
        if state.roots.user_dir is not None:
            info += f"- User: {state.roots.user_dir}\n"
        return info
