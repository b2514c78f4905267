"""
Hook System -- Claude Code lifecycle hooks dispatched from OpenCode.

The ``hooks`` block of a Claude Code settings document binds shell commands
to lifecycle events, grouped by a tool-name matcher:

    {"hooks": {"PreToolUse": [{"matcher": "Edit|Write",
                               "hooks": [{"type": "command", "command": "..."}]}]}}

It is compiled into an immutable HookTable: rules for the two tool phases
OpenCode exposes (before and after a tool runs) plus an event channel for
the remaining events. Several source events only approximately match a
target event and collapse onto it (Stop, SubagentStop and SessionEnd all
become ``session.idle``); the mapping is configurable.

Each matching command runs as a separate shell process in the project
directory and receives one JSON line on stdin.

Exit code protocol:
- Exit 0  = ALLOW  (continue with the next matching command)
- Exit 2  = BLOCK  (pre phase only: abort the tool, stderr = reason)
- Other   = Hook error (logged as WARNING, does not block)

Invariants:
- A broken hook never breaks tool use (spawn errors -> log + ALLOW)
- No timeout is imposed; a hung command stalls its invocation
- The first blocking result short-circuits the remaining pre-phase commands
- Post-phase and event commands are informational, they never block
"""

import asyncio
import json
import os
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from ..assets.base import AssetConverter, WatchTarget
from ..assets.discovery import AssetKind, AssetRoots, settings_candidates
from ..config.mappings import HOOK_EVENT_MAPPING
from ..errors import HookBlockedError, HookConfigError

if TYPE_CHECKING:
    from .state import PluginState

logger = structlog.get_logger()

__all__ = [
    "SourceHookEvent",
    "HookMatcher",
    "HookRule",
    "HookTable",
    "HookDecision",
    "HookResult",
    "InvocationPhase",
    "InvocationResult",
    "HookDispatcher",
    "HooksConverter",
    "build_hook_table",
    "load_hooks_config",
    "resolve_pre_phase",
]

BLOCK_EXIT_CODE = 2
PRE_TOOL_EVENT = "tool.execute.before"
POST_TOOL_EVENT = "tool.execute.after"


class SourceHookEvent(Enum):
    """Claude Code lifecycle events that accept hooks."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    PERMISSION_REQUEST = "PermissionRequest"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    NOTIFICATION = "Notification"
    STOP = "Stop"
    SUBAGENT_STOP = "SubagentStop"
    PRE_COMPACT = "PreCompact"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"


class HookDecision(Enum):
    """Outcome of one hook command."""

    ALLOW = "allow"
    BLOCK = "block"


class InvocationPhase(Enum):
    """Lifecycle of a single tool invocation.

    PENDING -> EVALUATING_PRE -> (BLOCKED | PROCEEDING) -> EXECUTING
    -> EVALUATING_POST -> DONE. BLOCKED and DONE are terminal.
    """

    PENDING = "pending"
    EVALUATING_PRE = "evaluating_pre"
    BLOCKED = "blocked"
    PROCEEDING = "proceeding"
    EXECUTING = "executing"
    EVALUATING_POST = "evaluating_post"
    DONE = "done"

    @property
    def is_terminal(self) -> bool:
        return self in (InvocationPhase.BLOCKED, InvocationPhase.DONE)


@dataclass(frozen=True)
class HookMatcher:
    """Tool-name pattern of a rule.

    ``""`` and ``"*"`` match every tool. Otherwise the pattern is one token
    or several joined by ``|``, each compared exactly (case-sensitive).
    """

    pattern: str = ""

    @property
    def is_wildcard(self) -> bool:
        return self.pattern.strip() in ("", "*")

    @property
    def tokens(self) -> frozenset[str]:
        return frozenset(token.strip() for token in self.pattern.split("|") if token.strip())

    def matches(self, tool_name: str) -> bool:
        if self.is_wildcard:
            return True
        return tool_name in self.tokens


@dataclass(frozen=True)
class HookRule:
    """One matcher group of the settings document."""

    event: SourceHookEvent
    matcher: HookMatcher
    commands: tuple[str, ...]


@dataclass(frozen=True)
class HookTable:
    """Compiled, read-only dispatch table.

    Attributes:
        pre_tool_use: Rules evaluated before a tool runs, declaration order.
        post_tool_use: Rules evaluated after a tool ran, declaration order.
        events: Target event name -> rules collapsed onto it.
        source: Settings document the table was built from, if any.
    """

    pre_tool_use: tuple[HookRule, ...] = ()
    post_tool_use: tuple[HookRule, ...] = ()
    events: Mapping[str, tuple[HookRule, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    source: Path | None = None

    @property
    def rule_count(self) -> int:
        return (
            len(self.pre_tool_use)
            + len(self.post_tool_use)
            + sum(len(rules) for rules in self.events.values())
        )

    def is_empty(self) -> bool:
        return self.rule_count == 0


@dataclass
class HookResult:
    """Result of running one hook command."""

    command: str
    decision: HookDecision = HookDecision.ALLOW
    exit_code: int | None = None
    reason: str | None = None
    duration_ms: float = 0


@dataclass
class InvocationResult:
    """Outcome of a tool invocation driven through the hook phases."""

    tool_name: str
    phase: InvocationPhase = InvocationPhase.PENDING
    output: Any = None
    reason: str | None = None
    pre_results: list[HookResult] = field(default_factory=list)
    post_results: list[HookResult] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return self.phase is InvocationPhase.BLOCKED


# ── Settings document ──────────────────────────────────────────────────


class _CommandHook(BaseModel):
    type: Literal["command"]
    command: str

    # Claude Code also accepts per-hook "timeout"; it is not enforced here
    model_config = ConfigDict(extra="ignore")


class _MatcherGroup(BaseModel):
    matcher: str = ""
    hooks: list[dict[str, Any]]

    model_config = ConfigDict(extra="ignore")


def load_hooks_config(roots: AssetRoots) -> tuple[dict[str, Any], Path] | None:
    """Find the first settings document that declares ``hooks``.

    Candidates, in order: project settings.local.json, project settings.json,
    user settings.local.json, user settings.json.

    Returns:
        (hooks block, document path), or None when no document declares hooks.

    Raises:
        HookConfigError: A candidate exists but cannot be read or decoded.
    """
    for _, path in settings_candidates(roots):
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise HookConfigError(f"Cannot read hooks from {path}: {e}") from e

        if not isinstance(data, dict) or "hooks" not in data:
            continue
        hooks = data["hooks"]
        if not isinstance(hooks, dict):
            raise HookConfigError(f"'hooks' in {path} must be an object")
        return hooks, path
    return None


def _parse_rules(event: SourceHookEvent, groups: Any) -> list[HookRule]:
    if not isinstance(groups, list):
        logger.warning("hook.invalid_event_block", hook_event=event.value)
        return []

    rules: list[HookRule] = []
    for index, raw_group in enumerate(groups):
        try:
            group = _MatcherGroup.model_validate(raw_group)
        except ValidationError as e:
            logger.warning("hook.invalid_rule", hook_event=event.value, index=index, error=str(e))
            continue

        commands: list[str] = []
        for raw_hook in group.hooks:
            try:
                commands.append(_CommandHook.model_validate(raw_hook).command)
            except ValidationError:
                logger.warning(
                    "hook.unsupported_hook",
                    hook_event=event.value,
                    matcher=group.matcher,
                    type=raw_hook.get("type") if isinstance(raw_hook, dict) else None,
                )

        if commands:
            rules.append(HookRule(event=event, matcher=HookMatcher(group.matcher), commands=tuple(commands)))
    return rules


def build_hook_table(
    hooks: Mapping[str, Any],
    event_mappings: Mapping[str, str] | None = None,
    source: Path | None = None,
) -> HookTable:
    """Compile a ``hooks`` block into a HookTable.

    Args:
        hooks: Source event name -> list of matcher groups.
        event_mappings: Source event -> target event, layered over the
            built-in lossy mapping. An empty target disables the event.
        source: Path recorded on the table for diagnostics.
    """
    mappings = {**HOOK_EVENT_MAPPING, **(event_mappings or {})}
    pre: list[HookRule] = []
    post: list[HookRule] = []
    events: dict[str, list[HookRule]] = {}

    for event_name, groups in hooks.items():
        try:
            event = SourceHookEvent(event_name)
        except ValueError:
            logger.warning("hook.unknown_event", hook_event=event_name)
            continue

        rules = _parse_rules(event, groups)
        if not rules:
            continue

        target = mappings.get(event.value, "")
        if target == PRE_TOOL_EVENT:
            pre.extend(rules)
        elif target == POST_TOOL_EVENT:
            post.extend(rules)
        elif target:
            events.setdefault(target, []).extend(rules)
        else:
            logger.warning("hook.event_unsupported", hook_event=event.value, rules=len(rules))

    return HookTable(
        pre_tool_use=tuple(pre),
        post_tool_use=tuple(post),
        events=MappingProxyType({name: tuple(rules) for name, rules in events.items()}),
        source=source,
    )


# ── Dispatch ───────────────────────────────────────────────────────────


def resolve_pre_phase(results: list[HookResult]) -> tuple[InvocationPhase, str | None]:
    """Phase that follows EVALUATING_PRE, and the block reason if any.

    A BLOCK anywhere in the pre-phase results ends the invocation; the last
    blocking result supplies the reason.
    """
    blocking = [r for r in results if r.decision is HookDecision.BLOCK]
    if blocking:
        return InvocationPhase.BLOCKED, blocking[-1].reason
    return InvocationPhase.PROCEEDING, None



class HookDispatcher:
    """Runs the commands of a HookTable for tool calls and host events.

    A dispatcher is bound to one table. Reloading builds a new dispatcher
    and swaps it on the plugin state, so calls already in flight finish
    against the table they started with.
    """

    def __init__(self, table: HookTable, project_dir: Path) -> None:
        self.table = table
        self.project_dir = project_dir
        self.log = logger.bind(component="hooks")

    @classmethod
    def empty(cls, project_dir: Path) -> "HookDispatcher":
        return cls(HookTable(), project_dir)

    def _build_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["CLAUDE_PROJECT_DIR"] = str(self.project_dir)
        return env

    def _payload(
        self, event: SourceHookEvent, session_id: str, **fields: Any
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "session_id": session_id,
            "hook_event_name": event.value,
            "cwd": str(self.project_dir),
        }
        payload.update(fields)
        return payload

    async def run_command(self, command: str, payload: dict[str, Any]) -> HookResult:
        """Run one hook command and classify its exit status.

        Spawn failures (missing cwd, a NUL byte in the command) are logged
        and reported as ALLOW with no exit code.
        Whether a BLOCK is honoured is up to the caller's phase.
        """
        start = time.monotonic()
        stdin_data = (json.dumps(payload, default=str) + "\n").encode("utf-8")

        try:
            proc = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.project_dir),
                env=self._build_env(),
            )
            stdout, stderr = await proc.communicate(stdin_data)
        except (OSError, ValueError) as e:
            self.log.warning("hook.spawn_failed", command=command, error=str(e))
            return HookResult(command=command, duration_ms=(time.monotonic() - start) * 1000)

        duration = (time.monotonic() - start) * 1000
        exit_code = proc.returncode

        if exit_code == 0:
            return HookResult(command=command, exit_code=0, duration_ms=duration)

        err = stderr.decode("utf-8", errors="replace").strip()
        out = stdout.decode("utf-8", errors="replace").strip()
        if exit_code == BLOCK_EXIT_CODE:
            return HookResult(
                command=command,
                decision=HookDecision.BLOCK,
                exit_code=exit_code,
                reason=err or out or f"Hook '{command}' blocked the action",
                duration_ms=duration,
            )

        self.log.warning("hook.error", command=command, exit_code=exit_code, stderr=err[:200])
        return HookResult(command=command, exit_code=exit_code, reason=err or None, duration_ms=duration)

    async def _run_rules(
        self,
        rules: tuple[HookRule, ...],
        tool_name: str | None,
        payload: dict[str, Any],
        can_block: bool,
    ) -> list[HookResult]:
        """Run every matching rule's commands sequentially, in declaration order."""
        results: list[HookResult] = []
        for rule in rules:
            if tool_name is not None and not rule.matcher.matches(tool_name):
                continue
            for command in rule.commands:
                result = await self.run_command(command, payload)
                results.append(result)
                if result.decision is HookDecision.BLOCK:
                    if can_block:
                        return results
                    self.log.info(
                        "hook.block_ignored",
                        hook_event=rule.event.value,
                        command=command,
                        reason=result.reason,
                    )
        return results

    async def run_pre(
        self, tool_name: str, args: dict[str, Any], session_id: str = ""
    ) -> list[HookResult]:
        """Evaluate the pre-phase. The last result is the BLOCK, if any."""
        payload = self._payload(
            SourceHookEvent.PRE_TOOL_USE, session_id, tool_name=tool_name, tool_input=args
        )
        return await self._run_rules(self.table.pre_tool_use, tool_name, payload, can_block=True)

    async def run_post(
        self, tool_name: str, args: dict[str, Any], response: Any, session_id: str = ""
    ) -> list[HookResult]:
        payload = self._payload(
            SourceHookEvent.POST_TOOL_USE,
            session_id,
            tool_name=tool_name,
            tool_input=args,
            tool_response=response,
        )
        return await self._run_rules(self.table.post_tool_use, tool_name, payload, can_block=False)

    async def invoke(
        self,
        tool_name: str,
        args: dict[str, Any],
        execute: Callable[[], Awaitable[Any]],
        session_id: str = "",
    ) -> InvocationResult:
        """Drive one tool call through the full hook lifecycle.

        Pre-phase commands all finish before ``execute`` is awaited, and the
        post-phase only starts once it returned. A block ends the invocation
        in BLOCKED and ``execute`` is never called.
        """
        result = InvocationResult(tool_name=tool_name)

        while not result.phase.is_terminal:
            phase = result.phase
            if phase is InvocationPhase.PENDING:
                result.phase = InvocationPhase.EVALUATING_PRE
            elif phase is InvocationPhase.EVALUATING_PRE:
                result.pre_results = await self.run_pre(tool_name, args, session_id)
                result.phase, result.reason = resolve_pre_phase(result.pre_results)
            elif phase is InvocationPhase.PROCEEDING:
                result.phase = InvocationPhase.EXECUTING
            elif phase is InvocationPhase.EXECUTING:
                result.output = await execute()
                result.phase = InvocationPhase.EVALUATING_POST
            elif phase is InvocationPhase.EVALUATING_POST:
                result.post_results = await self.run_post(tool_name, args, result.output, session_id)
                result.phase = InvocationPhase.DONE

        if result.blocked:
            self.log.info("hook.blocked", tool=tool_name, reason=result.reason)
        return result

    # ── Host-facing handlers ──────────────────────────────────────────

    async def tool_execute_before(self, input: dict[str, Any], output: dict[str, Any]) -> None:
        """Host ``tool.execute.before`` handler.

        Raises:
            HookBlockedError: A matching command exited with status 2.
        """
        tool_name = str(input.get("tool", ""))
        args = output.get("args") or {}
        results = await self.run_pre(tool_name, args, str(input.get("sessionID", "")))
        phase, reason = resolve_pre_phase(results)
        if phase is InvocationPhase.BLOCKED:
            self.log.info("hook.blocked", tool=tool_name, reason=reason)
            raise HookBlockedError(tool_name, reason or "")

    async def tool_execute_after(self, input: dict[str, Any], output: dict[str, Any]) -> None:
        """Host ``tool.execute.after`` handler. Never raises."""
        tool_name = str(input.get("tool", ""))
        args = input.get("args") or output.get("args") or {}
        response = {
            "title": output.get("title"),
            "output": output.get("output"),
            "metadata": output.get("metadata"),
        }
        await self.run_post(tool_name, args, response, str(input.get("sessionID", "")))

    async def event(self, event: dict[str, Any]) -> None:
        """Host generic event handler: runs every rule collapsed onto the event type."""
        event_type = str(event.get("type", ""))
        rules = self.table.events.get(event_type)
        if not rules:
            return

        properties = event.get("properties") or {}
        session_id = str(properties.get("sessionID", "")) if isinstance(properties, dict) else ""
        for rule in rules:
            payload = self._payload(
                rule.event, session_id, event_type=event_type, event_data=properties
            )
            await self._run_rules((rule,), None, payload, can_block=False)


class HooksConverter(AssetConverter):
    """Hooks pipeline: re-parses the settings and swaps the dispatcher.

    A settings document that cannot be decoded raises HookConfigError, which
    the reload coordinator logs while the previous dispatcher stays active.
    """

    kind = AssetKind.HOOKS

    async def reload(self, state: "PluginState") -> int:
        loaded = load_hooks_config(state.roots)
        if loaded is None:
            table = HookTable()
        else:
            hooks, path = loaded
            table = build_hook_table(hooks, state.config.event_mappings, source=path)
            logger.info("hooks.loaded", path=str(path), rules=table.rule_count)
        state.hooks = HookDispatcher(table, state.roots.project_dir)
        return table.rule_count

    def watch_targets(self, roots: AssetRoots) -> list[WatchTarget]:
        return [
            WatchTarget(path=root, recursive=False)
            for _, root in roots.sources()
            if root.is_dir()
        ]

    def owns(self, path: Path, roots: AssetRoots) -> bool:
        resolved = path.resolve()
        return any(resolved == candidate.resolve() for _, candidate in settings_candidates(roots))
