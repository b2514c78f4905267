"""
MCP server synchronization.

Claude Code declares MCP servers in ``.mcp.json`` files:

    {"mcpServers": {"github": {"command": "npx", "args": ["-y", "srv"], "env": {...}}}}

OpenCode reads them from the ``mcp`` key of ``opencode.json``:

    {"mcp": {"claude_github": {"type": "local", "command": ["npx", "-y", "srv"],
                               "enabled": true, "environment": {...}}}}

Servers from every candidate file are merged, first name wins, then written
into the project's opencode.json. Keys of opencode.json other than the
converted server entries are preserved.
"""

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..assets.base import AssetConverter, WatchTarget, is_within
from ..assets.discovery import MCP_FILE, AssetKind, AssetRoots, Source, mcp_candidates
from ..assets.document import write_text_atomic
from ..errors import ConversionError

if TYPE_CHECKING:
    from ..core.state import PluginState

logger = structlog.get_logger()

OPENCODE_CONFIG_FILE = "opencode.json"
OPENCODE_SCHEMA_URL = "https://opencode.ai/config.json"


class ClaudeMcpServer(BaseModel):
    """One entry of ``mcpServers``. Either ``command`` or ``url`` is required."""

    command: str | None = None
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    # "type": "stdio" | "sse" | "http" is implied by command/url
    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _require_transport(self) -> "ClaudeMcpServer":
        if not self.command and not self.url:
            raise ValueError("server needs either 'command' or 'url'")
        return self


class DiscoveredMcpServer(BaseModel):
    name: str
    server: ClaudeMcpServer
    source: Source
    source_path: Path


def parse_mcp_file(path: Path) -> dict[str, Any]:
    """Raw ``mcpServers`` mapping of one file, empty when unusable."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("mcp.parse_error", path=str(path), error=str(e))
        return {}

    servers = data.get("mcpServers") if isinstance(data, dict) else None
    if not isinstance(servers, dict):
        logger.warning("mcp.missing_servers", path=str(path))
        return {}
    return servers


def discover_mcp_servers(roots: AssetRoots) -> list[DiscoveredMcpServer]:
    """Every valid server across all candidate files, first name wins."""
    discovered: list[DiscoveredMcpServer] = []
    seen: set[str] = set()

    for source, path in mcp_candidates(roots):
        if not path.is_file():
            continue
        for name, raw in parse_mcp_file(path).items():
            if name in seen:
                logger.debug("asset.shadowed", name=name, path=str(path))
                continue
            try:
                server = ClaudeMcpServer.model_validate(raw)
            except ValidationError as e:
                logger.warning("mcp.invalid_server", name=name, path=str(path), error=str(e))
                continue
            seen.add(name)
            discovered.append(
                DiscoveredMcpServer(name=name, server=server, source=source, source_path=path)
            )
    return discovered


def convert_mcp_server(server: ClaudeMcpServer, enabled: bool = True) -> dict[str, Any]:
    """One Claude server entry in OpenCode's shape."""
    if server.command:
        converted: dict[str, Any] = {
            "type": "local",
            "command": [server.command, *server.args],
            "enabled": enabled,
        }
        if server.env:
            converted["environment"] = dict(server.env)
        return converted

    converted = {"type": "remote", "url": server.url, "enabled": enabled}
    if server.headers:
        converted["headers"] = dict(server.headers)
    return converted


def convert_mcp_servers(servers: list[DiscoveredMcpServer], prefix: str) -> dict[str, Any]:
    return {f"{prefix}{found.name}": convert_mcp_server(found.server) for found in servers}


def sync_mcp_servers(roots: AssetRoots, prefix: str) -> list[str]:
    """Merge converted servers into ``<project>/opencode.json``.

    Returns:
        Names written, prefix included. Nothing is written when no server
        is declared.

    Raises:
        ConversionError: opencode.json exists but is not a JSON object, or
            cannot be written.
    """
    converted = convert_mcp_servers(discover_mcp_servers(roots), prefix)
    if not converted:
        return []

    config_path = roots.project_dir / OPENCODE_CONFIG_FILE
    existing: dict[str, Any] = {}
    if config_path.is_file():
        try:
            existing = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConversionError(f"Cannot read {config_path}: {e}") from e
        if not isinstance(existing, dict):
            raise ConversionError(f"{config_path} must hold a JSON object")

    mcp = dict(existing.get("mcp") or {})
    mcp.update(converted)
    existing["mcp"] = mcp
    existing.setdefault("$schema", OPENCODE_SCHEMA_URL)

    try:
        write_text_atomic(config_path, json.dumps(existing, indent=2, ensure_ascii=False) + "\n")
    except OSError as e:
        raise ConversionError(f"Cannot write {config_path}: {e}") from e

    names = list(converted)
    logger.info("mcp.synced", count=len(names), path=str(config_path), names=names)
    return names


class McpConverter(AssetConverter):
    kind = AssetKind.MCP

    async def reload(self, state: "PluginState") -> int:
        names = sync_mcp_servers(state.roots, state.config.file_prefix)
        state.mcp_servers = tuple(names)
        return len(names)

    def watch_targets(self, roots: AssetRoots) -> list[WatchTarget]:
        targets = [
            WatchTarget(path=path.parent, recursive=False)
            for _, path in mcp_candidates(roots)
            if path.parent.is_dir()
        ]
        plugins_dir = roots.claude_dir / "plugins"
        if plugins_dir.is_dir():
            targets.append(WatchTarget(path=plugins_dir, recursive=True))
        return targets

    def owns(self, path: Path, roots: AssetRoots) -> bool:
        if path.name != MCP_FILE:
            return False
        resolved = path.resolve()
        if any(resolved == candidate.resolve() for _, candidate in mcp_candidates(roots)):
            return True
        return is_within(path, roots.claude_dir / "plugins")
