"""
Commands - Claude Code slash commands synchronized into OpenCode.
"""

from .sync import (
    CommandAsset,
    CommandsConverter,
    convert_command_frontmatter,
    discover_commands,
    generate_opencode_command,
    sync_commands,
)

__all__ = [
    "CommandAsset",
    "CommandsConverter",
    "convert_command_frontmatter",
    "discover_commands",
    "generate_opencode_command",
    "sync_commands",
]
