"""
Tools module - Definitions of the tools exposed to the host.
"""

from .base import ToolContext, ToolDefinition
from .registry import DuplicateToolError, ToolRegistry

__all__ = [
    "DuplicateToolError",
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
]
