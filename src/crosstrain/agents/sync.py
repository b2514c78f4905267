"""
Agent synchronization -- Claude Code subagents as OpenCode agents.

Each ``.claude/agents/<name>.md`` is rewritten into OpenCode's agent schema
and written to ``.opencode/agent/<prefix><name>.md``:

- ``description``     -> ``description``
- ``model`` alias     -> ``model`` (full path; "inherit" drops the key)
- ``tools`` list      -> ``tools`` object, unlisted built-ins set to false
- ``permissionMode``  -> ``permission`` object, when OpenCode has one
- ``skills``          -> "Available Skills" section in the prompt
- every agent becomes ``mode: subagent``

Keys without an OpenCode equivalent are dropped with a logged notice.
Output only depends on the source file, so re-syncing an unchanged agent
writes identical bytes.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from ..assets.base import AssetConverter
from ..assets.discovery import AssetEntry, AssetKind, AssetRoots, Source, discover_entries, resolve_shadowing
from ..assets.document import (
    is_safe_file_name,
    parse_comma_separated,
    read_document,
    serialize_document,
    write_text_atomic,
)
from ..config.mappings import KNOWN_TARGET_TOOLS, PERMISSION_MODE_MAPPING, map_model, map_tool
from ..config.schema import CrosstrainConfig
from ..errors import ConversionError
from ..skills.loader import skill_tool_name

if TYPE_CHECKING:
    from ..core.state import PluginState

logger = structlog.get_logger()

AGENT_DIR = "agent"
SOURCE_KEYS = frozenset({"name", "description", "tools", "model", "permissionMode", "skills"})


@dataclass(frozen=True)
class AgentAsset:
    """A parsed Claude Code subagent."""

    name: str
    description: str
    tools: tuple[str, ...] = ()
    model: str | None = None
    permission_mode: str | None = None
    skills: tuple[str, ...] = ()
    system_prompt: str = ""
    frontmatter: dict[str, Any] = field(default_factory=dict, hash=False)
    path: Path = field(default_factory=Path)
    source: Source = "project"


def load_agent(entry: AssetEntry) -> AgentAsset:
    """Parse one agent file.

    Raises:
        OSError, UnicodeDecodeError: The file cannot be read.
    """
    document = read_document(entry.path)
    meta = document.preamble
    name = str(meta.get("name") or entry.name)

    model = meta.get("model")
    permission_mode = meta.get("permissionMode")
    return AgentAsset(
        name=name,
        description=str(meta.get("description") or f"Claude Code agent: {name}"),
        tools=tuple(parse_comma_separated(meta.get("tools"))),
        model=str(model) if model else None,
        permission_mode=str(permission_mode) if permission_mode else None,
        skills=tuple(parse_comma_separated(meta.get("skills"))),
        system_prompt=document.body,
        frontmatter=dict(meta),
        path=entry.path,
        source=entry.source,
    )


def discover_agents(roots: AssetRoots) -> list[AgentAsset]:
    """All agents under both roots; a project agent shadows a same-named user one."""
    agents: list[AgentAsset] = []
    for entry in discover_entries(AssetKind.AGENTS, roots):
        try:
            agents.append(load_agent(entry))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("agent.load_error", path=str(entry.path), error=str(e))
    return resolve_shadowing(agents, key=lambda a: a.name)


def convert_agent_frontmatter(agent: AgentAsset, config: CrosstrainConfig) -> dict[str, Any]:
    """Rewrite the agent preamble into OpenCode's field set."""
    frontmatter: dict[str, Any] = {
        "description": agent.description,
        "mode": "subagent",
    }

    if agent.model:
        frontmatter["model"] = map_model(agent.model, config.model_mappings)

    if agent.tools:
        tools: dict[str, bool] = {}
        for tool in agent.tools:
            tools[map_tool(tool, config.tool_mappings)] = True
        # Listing tools restricts the agent to exactly those
        for tool in KNOWN_TARGET_TOOLS:
            tools.setdefault(tool, False)
        frontmatter["tools"] = tools

    if agent.permission_mode:
        permission = PERMISSION_MODE_MAPPING.get(agent.permission_mode)
        if permission:
            frontmatter["permission"] = dict(permission)
        else:
            logger.info(
                "agent.field_dropped",
                agent=agent.name,
                field="permissionMode",
                value=agent.permission_mode,
                reason="no OpenCode equivalent",
            )

    dropped = [key for key in agent.frontmatter if key not in SOURCE_KEYS]
    if dropped:
        logger.info("agent.field_dropped", agent=agent.name, field=", ".join(dropped))

    return frontmatter


def generate_opencode_agent(agent: AgentAsset, config: CrosstrainConfig) -> str:
    """Full OpenCode agent document for one Claude agent."""
    frontmatter = convert_agent_frontmatter(agent, config)
    prompt = agent.system_prompt

    if agent.skills:
        prompt += "\n\n## Available Skills\n\n"
        prompt += "This agent has access to the following skills (tools):\n"
        for skill in agent.skills:
            prompt += f"- `{skill_tool_name(skill)}`: Use when relevant to invoke the {skill} skill\n"

    prompt += f"\n\n---\n*[Loaded from Claude Code: {agent.path}]*"
    return serialize_document(frontmatter, prompt)


def agent_output_path(opencode_dir: Path, prefix: str, name: str) -> Path:
    return opencode_dir / AGENT_DIR / f"{prefix}{name}.md"


def write_agent(agent: AgentAsset, opencode_dir: Path, config: CrosstrainConfig) -> Path:
    """Write one converted agent, replacing any previous version.

    Raises:
        ConversionError: The document could not be generated or written.
    """
    if not is_safe_file_name(agent.name):
        raise ConversionError(f"Agent name '{agent.name}' is not a valid file name")
    path = agent_output_path(opencode_dir, config.file_prefix, agent.name)
    try:
        write_text_atomic(path, generate_opencode_agent(agent, config))
    except (OSError, ValueError) as e:
        raise ConversionError(f"Cannot write agent '{agent.name}' to {path}: {e}") from e
    return path


def sync_agents(roots: AssetRoots, opencode_dir: Path, config: CrosstrainConfig) -> list[str]:
    """Convert and write every agent.

    Returns:
        Names of the agents written, in discovery order. An agent that
        fails to convert is logged and left out.
    """
    synced: list[str] = []
    for agent in discover_agents(roots):
        try:
            path = write_agent(agent, opencode_dir, config)
        except ConversionError as e:
            logger.warning("agent.sync_error", agent=agent.name, error=str(e))
            continue
        logger.debug("agent.synced", agent=agent.name, path=str(path), source=agent.source)
        synced.append(agent.name)
    logger.info("agents.synced", count=len(synced), names=synced)
    return synced


class AgentsConverter(AssetConverter):
    kind = AssetKind.AGENTS

    async def reload(self, state: "PluginState") -> int:
        names = sync_agents(state.roots, state.opencode_dir, state.config)
        state.agents = tuple(names)
        return len(names)
