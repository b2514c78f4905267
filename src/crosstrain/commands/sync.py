"""
Command synchronization -- Claude Code slash commands as OpenCode commands.

Both hosts use markdown templates with the same placeholders ($ARGUMENTS,
$1..$n, @file, !`shell`), so the template passes through unchanged. Only
the preamble is rewritten: ``description`` is kept, ``model`` is mapped,
``agent`` is set, and source-only keys such as ``argument-hint`` and
``allowed-tools`` are dropped with a logged notice.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from ..assets.base import AssetConverter
from ..assets.discovery import AssetEntry, AssetKind, AssetRoots, Source, discover_entries, resolve_shadowing
from ..assets.document import is_safe_file_name, read_document, serialize_document, write_text_atomic
from ..config.mappings import map_model
from ..config.schema import CrosstrainConfig
from ..errors import ConversionError

if TYPE_CHECKING:
    from ..core.state import PluginState

logger = structlog.get_logger()

COMMAND_DIR = "command"
SOURCE_KEYS = frozenset({"description", "model"})


@dataclass(frozen=True)
class CommandAsset:
    """A parsed Claude Code slash command."""

    name: str
    description: str | None
    template: str = ""
    frontmatter: dict[str, Any] = field(default_factory=dict, hash=False)
    path: Path = field(default_factory=Path)
    source: Source = "project"


def load_command(entry: AssetEntry) -> CommandAsset:
    """Parse one command file. The command name is always the file name."""
    document = read_document(entry.path)
    description = document.preamble.get("description")
    return CommandAsset(
        name=entry.name,
        description=str(description) if description else None,
        template=document.body,
        frontmatter=dict(document.preamble),
        path=entry.path,
        source=entry.source,
    )


def discover_commands(roots: AssetRoots) -> list[CommandAsset]:
    commands: list[CommandAsset] = []
    for entry in discover_entries(AssetKind.COMMANDS, roots):
        try:
            commands.append(load_command(entry))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("command.load_error", path=str(entry.path), error=str(e))
    return resolve_shadowing(commands, key=lambda c: c.name)


def convert_command_frontmatter(command: CommandAsset, config: CrosstrainConfig) -> dict[str, Any]:
    frontmatter: dict[str, Any] = {
        "description": command.description or f"Claude Code command: {command.name}",
        "agent": config.default_command_agent,
    }

    model = command.frontmatter.get("model")
    if model:
        frontmatter["model"] = map_model(str(model), config.model_mappings)

    dropped = [key for key in command.frontmatter if key not in SOURCE_KEYS]
    if dropped:
        logger.info("command.field_dropped", command=command.name, field=", ".join(dropped))

    return frontmatter


def generate_opencode_command(command: CommandAsset, config: CrosstrainConfig) -> str:
    """Full OpenCode command document for one Claude command."""
    frontmatter = convert_command_frontmatter(command, config)
    template = command.template + f"\n\n---\n*[Loaded from Claude Code: {command.path}]*"
    return serialize_document(frontmatter, template)


def command_output_path(opencode_dir: Path, prefix: str, name: str) -> Path:
    return opencode_dir / COMMAND_DIR / f"{prefix}{name}.md"


def write_command(command: CommandAsset, opencode_dir: Path, config: CrosstrainConfig) -> Path:
    """Write one converted command, replacing any previous version.

    Raises:
        ConversionError: The document could not be generated or written.
    """
    if not is_safe_file_name(command.name):
        raise ConversionError(f"Command name '{command.name}' is not a valid file name")
    path = command_output_path(opencode_dir, config.file_prefix, command.name)
    try:
        write_text_atomic(path, generate_opencode_command(command, config))
    except (OSError, ValueError) as e:
        raise ConversionError(f"Cannot write command '{command.name}' to {path}: {e}") from e
    return path


def sync_commands(roots: AssetRoots, opencode_dir: Path, config: CrosstrainConfig) -> list[str]:
    """Convert and write every command; returns the written names in order."""
    synced: list[str] = []
    for command in discover_commands(roots):
        try:
            path = write_command(command, opencode_dir, config)
        except ConversionError as e:
            logger.warning("command.sync_error", command=command.name, error=str(e))
            continue
        logger.debug("command.synced", command=command.name, path=str(path), source=command.source)
        synced.append(command.name)
    logger.info("commands.synced", count=len(synced), names=synced)
    return synced


class CommandsConverter(AssetConverter):
    kind = AssetKind.COMMANDS

    async def reload(self, state: "PluginState") -> int:
        names = sync_commands(state.roots, state.opencode_dir, state.config)
        state.commands = tuple(names)
        return len(names)
