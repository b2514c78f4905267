"""
Asset discovery over the project and user roots.

Two roots are scanned for every asset kind: the project's ``.claude``
directory and the user's ``~/.claude``. The project root is always scanned
first, so when both define an asset with the same name the project version
shadows the user one. Missing directories contribute zero assets.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal, TypeVar

import structlog

logger = structlog.get_logger()

Source = Literal["project", "user", "plugin"]

SKILL_FILE = "SKILL.md"
SETTINGS_FILES = ("settings.local.json", "settings.json")
MCP_FILE = ".mcp.json"

T = TypeVar("T")


class AssetKind(Enum):
    """Closed set of asset kinds handled by the converters."""

    SKILLS = "skills"
    AGENTS = "agents"
    COMMANDS = "commands"
    HOOKS = "hooks"
    MCP = "mcp"

    @property
    def subdir(self) -> str | None:
        """Subtree of a root holding this kind, None for root-level files."""
        if self in (AssetKind.SKILLS, AssetKind.AGENTS, AssetKind.COMMANDS):
            return self.value
        return None


@dataclass(frozen=True)
class AssetRoots:
    """Resolved locations scanned for assets.

    Attributes:
        project_dir: Project directory (holds ``.mcp.json``).
        claude_dir: Project-scoped asset root, usually ``<project>/.claude``.
        user_dir: User-scoped asset root (``~/.claude``) or None when user
            assets are disabled.
    """

    project_dir: Path
    claude_dir: Path
    user_dir: Path | None = None

    def sources(self) -> list[tuple[Source, Path]]:
        """Roots in precedence order, project first."""
        roots: list[tuple[Source, Path]] = [("project", self.claude_dir)]
        if self.user_dir is not None:
            roots.append(("user", self.user_dir))
        return roots


@dataclass(frozen=True)
class AssetEntry:
    """One discovery hit: a skill directory or an asset file."""

    name: str
    path: Path
    source: Source


@dataclass(frozen=True)
class AssetSummary:
    """Which asset kinds are present at all. Used only to skip idle converters."""

    has_skills: bool = False
    has_agents: bool = False
    has_commands: bool = False
    has_hooks: bool = False
    has_mcp: bool = False

    def has(self, kind: AssetKind) -> bool:
        return {
            AssetKind.SKILLS: self.has_skills,
            AssetKind.AGENTS: self.has_agents,
            AssetKind.COMMANDS: self.has_commands,
            AssetKind.HOOKS: self.has_hooks,
            AssetKind.MCP: self.has_mcp,
        }[kind]

    def any(self) -> bool:
        return any(self.has(kind) for kind in AssetKind)


def kind_directories(kind: AssetKind, roots: AssetRoots) -> list[tuple[Source, Path]]:
    """Candidate directories for a subtree kind, existing or not."""
    if kind.subdir is None:
        return []
    return [(source, root / kind.subdir) for source, root in roots.sources()]


def settings_candidates(roots: AssetRoots) -> list[tuple[Source, Path]]:
    """Settings documents that may declare hooks, highest precedence first."""
    candidates: list[tuple[Source, Path]] = []
    for source, root in roots.sources():
        for name in SETTINGS_FILES:
            candidates.append((source, root / name))
    return candidates


def mcp_candidates(roots: AssetRoots) -> list[tuple[Source, Path]]:
    """MCP server declarations, highest precedence first.

    Order: project ``.mcp.json``, ``~/.claude/.mcp.json``, ``~/.mcp.json``,
    then one ``.mcp.json`` per installed plugin under ``.claude/plugins``.
    """
    candidates: list[tuple[Source, Path]] = [("project", roots.project_dir / MCP_FILE)]
    if roots.user_dir is not None:
        candidates.append(("user", roots.user_dir / MCP_FILE))
        candidates.append(("user", roots.user_dir.parent / MCP_FILE))
    plugins_dir = roots.claude_dir / "plugins"
    if plugins_dir.is_dir():
        for plugin_dir in sorted(plugins_dir.iterdir()):
            if plugin_dir.is_dir():
                candidates.append(("plugin", plugin_dir / MCP_FILE))
    return candidates


def discover_entries(kind: AssetKind, roots: AssetRoots) -> list[AssetEntry]:
    """List raw entries for one kind across both roots.

    Skills are immediate subdirectories; agents and commands are immediate
    ``*.md`` files; hooks and MCP are the existing settings documents in
    precedence order. Entries are sorted by name inside each root and the
    project root comes first. Shadowing is not applied here because the
    effective asset name may come from the document preamble; see
    resolve_shadowing().
    """
    if kind is AssetKind.HOOKS or kind is AssetKind.MCP:
        candidates = settings_candidates(roots) if kind is AssetKind.HOOKS else mcp_candidates(roots)
        return [
            AssetEntry(name=path.name, path=path, source=source)
            for source, path in candidates
            if path.is_file()
        ]

    entries: list[AssetEntry] = []
    for source, directory in kind_directories(kind, roots):
        if not directory.is_dir():
            continue
        for path in sorted(directory.iterdir()):
            if kind is AssetKind.SKILLS:
                if path.is_dir():
                    entries.append(AssetEntry(name=path.name, path=path, source=source))
            elif path.is_file() and path.suffix == ".md":
                entries.append(AssetEntry(name=path.stem, path=path, source=source))
    return entries


def resolve_shadowing(items: Iterable[T], key: Callable[[T], str]) -> list[T]:
    """Keep the first item for each name, preserving order.

    Callers feed items in root precedence order, so a project asset
    suppresses a same-named user asset.
    """
    seen: set[str] = set()
    result: list[T] = []
    for item in items:
        name = key(item)
        if name in seen:
            logger.debug("asset.shadowed", name=name)
            continue
        seen.add(name)
        result.append(item)
    return result


def get_asset_summary(roots: AssetRoots) -> AssetSummary:
    """Presence map of every asset kind under both roots."""

    def _any_dir(kind: AssetKind) -> bool:
        return any(path.is_dir() for _, path in kind_directories(kind, roots))

    return AssetSummary(
        has_skills=_any_dir(AssetKind.SKILLS),
        has_agents=_any_dir(AssetKind.AGENTS),
        has_commands=_any_dir(AssetKind.COMMANDS),
        has_hooks=any(path.is_file() for _, path in settings_candidates(roots)),
        has_mcp=any(path.is_file() for _, path in mcp_candidates(roots)),
    )


def has_any_assets(roots: AssetRoots) -> bool:
    return get_asset_summary(roots).any()
