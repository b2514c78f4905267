"""
Core - hook dispatch, plugin state, the reload coordinator and the plugin
entry point.
"""

from .hooks import (
    HookDecision,
    HookDispatcher,
    HookMatcher,
    HookResult,
    HookRule,
    HooksConverter,
    HookTable,
    InvocationPhase,
    InvocationResult,
    SourceHookEvent,
    build_hook_table,
    load_hooks_config,
)
from .plugin import PluginContext, PluginHooks, create_plugin, crosstrain_plugin
from .state import PluginState
from .watcher import WatchHandle, start_watching

__all__ = [
    "HookDecision",
    "HookDispatcher",
    "HookMatcher",
    "HookResult",
    "HookRule",
    "HookTable",
    "HooksConverter",
    "InvocationPhase",
    "InvocationResult",
    "PluginContext",
    "PluginHooks",
    "PluginState",
    "SourceHookEvent",
    "WatchHandle",
    "build_hook_table",
    "create_plugin",
    "crosstrain_plugin",
    "load_hooks_config",
    "start_watching",
]
