"""
Built-in name mappings between Claude Code and OpenCode.

User-supplied mappings in the configuration extend these tables; they never
replace them wholesale.
"""

# Model alias -> OpenCode model path. Empty string means "inherit": the
# converted agent carries no model key at all.
MODEL_MAPPING: dict[str, str] = {
    "sonnet": "anthropic/claude-sonnet-4-20250514",
    "opus": "anthropic/claude-opus-4-20250514",
    "haiku": "anthropic/claude-haiku-4-20250514",
    "inherit": "",
}

# Claude Code tool name -> OpenCode tool name
TOOL_MAPPING: dict[str, str] = {
    "Read": "read",
    "Write": "write",
    "Edit": "edit",
    "Bash": "bash",
    "Grep": "grep",
    "Glob": "glob",
    "WebFetch": "webfetch",
}

# Every OpenCode built-in tool an agent can be restricted from
KNOWN_TARGET_TOOLS: tuple[str, ...] = (
    "read",
    "write",
    "edit",
    "bash",
    "grep",
    "glob",
    "webfetch",
)

# Claude permissionMode -> OpenCode permission object. Modes mapping to an
# empty object have no OpenCode equivalent.
PERMISSION_MODE_MAPPING: dict[str, dict[str, str]] = {
    "default": {},
    "acceptEdits": {"edit": "allow"},
    "bypassPermissions": {"edit": "allow", "bash": "allow"},
    "plan": {"edit": "deny", "bash": "deny"},
    "ignore": {},
}

# Claude hook event -> OpenCode event. Lossy: several session-end-like
# events collapse onto session.idle.
HOOK_EVENT_MAPPING: dict[str, str] = {
    "PreToolUse": "tool.execute.before",
    "PostToolUse": "tool.execute.after",
    "SessionStart": "session.created",
    "SessionEnd": "session.idle",
    "Stop": "session.idle",
    "SubagentStop": "session.idle",
    "Notification": "tui.toast.show",
}


def map_model(alias: str, overrides: dict[str, str] | None = None) -> str | None:
    """Resolve a Claude model alias.

    Returns:
        The OpenCode model path, None for "inherit" (no model key), or the
        alias unchanged when it is not a known alias.
    """
    table = {key.lower(): value for key, value in {**MODEL_MAPPING, **(overrides or {})}.items()}
    mapped = table.get(alias.lower())
    if mapped is None:
        return alias
    return mapped or None


def map_tool(name: str, overrides: dict[str, str] | None = None) -> str:
    """Claude tool name -> OpenCode tool name; unknown names are lowercased."""
    table = {**TOOL_MAPPING, **(overrides or {})}
    return table.get(name, name.lower())
