"""
crosstrain - Loads Claude Code extension assets into OpenCode.

Skills become invocable tools, agents and commands are synchronized into
the OpenCode asset directories, hooks become tool-execution handlers, and a
watcher keeps everything in step with the source files.
"""

from .core.plugin import PluginContext, PluginHooks, create_plugin, crosstrain_plugin

__version__ = "0.3.0"

__all__ = [
    "PluginContext",
    "PluginHooks",
    "create_plugin",
    "crosstrain_plugin",
]
