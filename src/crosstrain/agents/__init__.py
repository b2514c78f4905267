"""
Agents - Claude Code subagents synchronized into OpenCode's agent directory.
"""

from .sync import (
    AgentAsset,
    AgentsConverter,
    convert_agent_frontmatter,
    discover_agents,
    generate_opencode_agent,
    sync_agents,
)

__all__ = [
    "AgentAsset",
    "AgentsConverter",
    "convert_agent_frontmatter",
    "discover_agents",
    "generate_opencode_agent",
    "sync_agents",
]
