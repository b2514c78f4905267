"""
MCP module - Claude Code MCP server declarations merged into opencode.json.
"""

from .converter import (
    ClaudeMcpServer,
    McpConverter,
    convert_mcp_server,
    discover_mcp_servers,
    sync_mcp_servers,
)

__all__ = [
    "ClaudeMcpServer",
    "McpConverter",
    "convert_mcp_server",
    "discover_mcp_servers",
    "sync_mcp_servers",
]
