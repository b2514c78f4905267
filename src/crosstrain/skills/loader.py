"""
Skills Loader -- Converts Claude Code skills into invocable tools.

A skill is a directory holding a SKILL.md (YAML preamble + instructions)
and any number of supporting files. Each skill becomes one tool named
``skill_<name>``; invoking it returns the instructions plus the list of
supporting files, which the caller reads on demand. File contents are
never inlined, so the payload stays bounded however large the skill is.

``allowed-tools`` is disclosed in the tool description only. Enforcing it
is the host's job.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field

from ..assets.base import AssetConverter
from ..assets.discovery import (
    SKILL_FILE,
    AssetEntry,
    AssetKind,
    AssetRoots,
    Source,
    discover_entries,
    resolve_shadowing,
)
from ..assets.document import camel_to_kebab, kebab_to_snake, parse_comma_separated, read_document
from ..tools.base import ToolContext, ToolDefinition
from ..tools.registry import DuplicateToolError, ToolRegistry

if TYPE_CHECKING:
    from ..core.state import PluginState

logger = structlog.get_logger()

TOOL_PREFIX = "skill_"


@dataclass(frozen=True)
class SkillAsset:
    """A parsed skill. Rebuilt on every pass, never mutated."""

    name: str
    description: str
    allowed_tools: tuple[str, ...] = ()
    instructions: str = ""
    supporting_files: tuple[str, ...] = ()
    path: Path = field(default_factory=Path)
    source: Source = "project"

    @property
    def directory(self) -> Path:
        return self.path.parent


def skill_tool_name(skill_name: str) -> str:
    """``code-review`` -> ``skill_code_review``."""
    return f"{TOOL_PREFIX}{kebab_to_snake(skill_name)}"


def _directory_to_skill_name(directory_name: str) -> str:
    return re.sub(r"[\s_]+", "-", camel_to_kebab(directory_name))


def list_supporting_files(skill_dir: Path) -> tuple[str, ...]:
    """Every file under the skill directory except its SKILL.md, as sorted
    POSIX paths relative to the directory."""
    primary = skill_dir / SKILL_FILE
    files = [
        path.relative_to(skill_dir).as_posix()
        for path in skill_dir.rglob("*")
        if path.is_file() and path != primary
    ]
    return tuple(sorted(files))


class SkillArgs(BaseModel):
    query: str | None = Field(
        default=None,
        description="Optional specific question or task for this skill",
    )


class SkillTool(ToolDefinition):
    """Tool that hands a skill's instructions to the caller."""

    args_model = SkillArgs

    def __init__(self, skill: SkillAsset) -> None:
        self.skill = skill
        self.name = skill_tool_name(skill.name)
        self.description = build_tool_description(skill)

    async def execute(self, args: dict[str, Any], ctx: ToolContext | None = None) -> str:
        parsed = self.validate_args(args or {})
        return render_skill(self.skill, query=parsed.query)


def build_tool_description(skill: SkillAsset) -> str:
    """Skill description, plus the tool restriction when one is declared."""
    description = skill.description
    if skill.allowed_tools:
        description += f" (Restricted tools: {', '.join(skill.allowed_tools)})"
    return description


def render_skill(skill: SkillAsset, query: str | None = None) -> str:
    """Markdown handed back when a skill tool is invoked."""
    parts = [f"## Skill: {skill.name}\n\n", f"### Instructions\n\n{skill.instructions}\n\n"]

    if query:
        parts.append(f"### Query: {query}\n\n")

    if skill.supporting_files:
        parts.append("### Supporting Files Available\n\n")
        parts.append(f"Base directory: {skill.directory}\n\n")
        parts.extend(f"- {relative}\n" for relative in skill.supporting_files)
        parts.append("\nUse the read tool to access these files if needed.\n")

    return "".join(parts)


class SkillsLoader:
    """Discovers skills under both roots and converts them to tools."""

    def __init__(self, roots: AssetRoots) -> None:
        self.roots = roots

    def discover_skills(self) -> list[SkillAsset]:
        """Parse every skill directory; project skills shadow user skills."""
        skills: list[SkillAsset] = []
        for entry in discover_entries(AssetKind.SKILLS, self.roots):
            skill = self._parse_skill(entry)
            if skill:
                skills.append(skill)
        skills = resolve_shadowing(skills, key=lambda s: s.name)
        logger.info("skills.discovered", count=len(skills), names=[s.name for s in skills])
        return skills

    def _parse_skill(self, entry: AssetEntry) -> SkillAsset | None:
        """Parse one skill directory. Any failure skips just this skill."""
        skill_md = entry.path / SKILL_FILE
        if not skill_md.is_file():
            logger.warning("skill.missing_skill_md", path=str(entry.path))
            return None

        try:
            document = read_document(skill_md)
            supporting_files = list_supporting_files(entry.path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("skill.read_error", path=str(skill_md), error=str(e))
            return None

        meta = document.preamble
        name = str(meta.get("name") or _directory_to_skill_name(entry.name))

        description = meta.get("description")
        if not description:
            logger.warning("skill.missing_description", name=name)
            description = f"Claude Code skill: {name}"

        return SkillAsset(
            name=name,
            description=str(description),
            allowed_tools=tuple(parse_comma_separated(meta.get("allowed-tools"))),
            instructions=document.body,
            supporting_files=supporting_files,
            path=skill_md,
            source=entry.source,
        )

    def build_tools(self) -> Mapping[str, ToolDefinition]:
        """Discover skills and freeze them into a fresh tool map."""
        registry = ToolRegistry()
        for skill in self.discover_skills():
            tool = SkillTool(skill)
            try:
                registry.register(tool)
            except DuplicateToolError:
                logger.warning("skill.tool_name_clash", name=skill.name, tool=tool.name)
                continue
            logger.debug("skill.loaded", name=skill.name, tool=tool.name, source=skill.source)
        return registry.freeze()


def create_tools_from_skills(roots: AssetRoots) -> Mapping[str, ToolDefinition]:
    """Convenience wrapper: discover and convert every skill."""
    return SkillsLoader(roots).build_tools()


class SkillsConverter(AssetConverter):
    """Skills pipeline: rebuilds the tool map and swaps it into the state."""

    kind = AssetKind.SKILLS

    async def reload(self, state: "PluginState") -> int:
        tools = create_tools_from_skills(state.roots)
        state.tools = tools
        return len(tools)
