"""
Command line interface for crosstrain using Click.

Thin wrapper around the plugin core: one-shot synchronization, listing of
the discovered assets, and a foreground watcher.
"""

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from . import __version__
from .agents.sync import discover_agents
from .assets.discovery import AssetKind, AssetRoots, get_asset_summary
from .commands.sync import discover_commands
from .config.loader import load_config, validate_config
from .config.schema import CrosstrainConfig
from .core.hooks import build_hook_table, load_hooks_config
from .core.plugin import PluginContext, crosstrain_plugin, initialize_state, resolve_roots
from .errors import HookConfigError
from .logging import configure_logging
from .mcp.converter import discover_mcp_servers
from .skills.loader import SkillsLoader, skill_tool_name

# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 3
EXIT_INTERRUPTED = 130


@dataclass
class CliContext:
    directory: Path
    config_path: Path | None
    verbose: int
    home_dir: Path | None
    options: dict[str, Any]

    def load(self) -> CrosstrainConfig:
        """Resolve the configuration and set up logging, or exit."""
        try:
            config = load_config(self.directory, self.options, config_path=self.config_path)
        except ValidationError as e:
            click.echo(f"Invalid configuration: {e}", err=True)
            sys.exit(EXIT_CONFIG_ERROR)

        logging_config = config.logging.model_copy(
            update={"verbose": max(config.logging.verbose, self.verbose, 1 if config.verbose else 0)}
        )
        configure_logging(logging_config)
        for warning in validate_config(config):
            click.echo(f"Warning: {warning}", err=True)
        return config

    def plugin_context(self) -> PluginContext:
        return PluginContext(directory=self.directory, home_dir=self.home_dir)


@click.group()
@click.version_option(version=__version__, prog_name="crosstrain")
@click.option(
    "-d",
    "--directory",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project directory holding the .claude folder",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Settings file (JSON or YAML) instead of .opencode/plugin/crosstrain/settings.json",
)
@click.option("-v", "--verbose", count=True, help="More log output (-v, -vv)")
@click.option(
    "--home-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Home directory whose .claude folder holds user assets",
)
@click.option("--no-user-assets", is_flag=True, help="Ignore ~/.claude entirely")
@click.pass_context
def main(
    ctx: click.Context,
    directory: Path,
    config_path: Path | None,
    verbose: int,
    home_dir: Path | None,
    no_user_assets: bool,
) -> None:
    """crosstrain - Use Claude Code skills, agents, commands and hooks in OpenCode."""
    options: dict[str, Any] = {}
    if no_user_assets:
        options["load_user_assets"] = False
    ctx.obj = CliContext(
        directory=directory.resolve(),
        config_path=config_path,
        verbose=verbose,
        home_dir=home_dir,
        options=options,
    )


@main.command()
@click.pass_obj
def sync(obj: CliContext) -> None:
    """Convert every Claude Code asset once and exit."""
    config = obj.load()
    if not config.enabled:
        click.echo("crosstrain is disabled by configuration")
        return

    roots, opencode_dir = resolve_roots(obj.plugin_context(), config)
    state, _ = asyncio.run(initialize_state(config, roots, opencode_dir))

    click.echo(f"Synced Claude Code assets from {roots.claude_dir}")
    click.echo(f"  Skills:   {len(state.tools)} tools")
    click.echo(f"  Agents:   {len(state.agents)} -> {opencode_dir / 'agent'}")
    click.echo(f"  Commands: {len(state.commands)} -> {opencode_dir / 'command'}")
    click.echo(f"  Hooks:    {state.hooks.table.rule_count if state.hooks else 0} rules")
    click.echo(f"  MCP:      {len(state.mcp_servers)} servers")


def _print_section(title: str, present: bool, lines: list[str]) -> None:
    click.echo(f"\n{title}:")
    if not present or not lines:
        click.echo("  (none)")
        return
    for line in lines:
        click.echo(f"  {line}")


def _hook_lines(roots: AssetRoots, config: CrosstrainConfig) -> list[str]:
    try:
        loaded = load_hooks_config(roots)
    except HookConfigError as e:
        return [f"error: {e}"]
    if loaded is None:
        return []

    hooks, path = loaded
    table = build_hook_table(hooks, config.event_mappings, source=path)
    lines = [f"source: {path}"]
    for rule in table.pre_tool_use:
        lines.append(f"tool.execute.before [{rule.matcher.pattern or '*'}] {len(rule.commands)} command(s)")
    for rule in table.post_tool_use:
        lines.append(f"tool.execute.after  [{rule.matcher.pattern or '*'}] {len(rule.commands)} command(s)")
    for event, rules in table.events.items():
        for rule in rules:
            lines.append(f"{event} <- {rule.event.value} {len(rule.commands)} command(s)")
    return lines


@main.command("list")
@click.pass_obj
def list_assets(obj: CliContext) -> None:
    """List the Claude Code assets that would be converted."""
    config = obj.load()
    roots, _ = resolve_roots(obj.plugin_context(), config)
    summary = get_asset_summary(roots)

    click.echo(f"Project root: {roots.claude_dir}")
    click.echo(f"User root:    {roots.user_dir if roots.user_dir else '(disabled)'}")

    skills = SkillsLoader(roots).discover_skills() if summary.has(AssetKind.SKILLS) else []
    _print_section(
        "Skills",
        summary.has_skills,
        [f"{skill_tool_name(s.name):<30} {s.source:<8} {s.description}" for s in skills],
    )

    agents = discover_agents(roots) if summary.has(AssetKind.AGENTS) else []
    _print_section(
        "Agents",
        summary.has_agents,
        [f"{config.file_prefix}{a.name:<30} {a.source:<8} {a.description}" for a in agents],
    )

    commands = discover_commands(roots) if summary.has(AssetKind.COMMANDS) else []
    _print_section(
        "Commands",
        summary.has_commands,
        [f"/{config.file_prefix}{c.name:<29} {c.source}" for c in commands],
    )

    _print_section("Hooks", summary.has_hooks, _hook_lines(roots, config))

    servers = discover_mcp_servers(roots) if summary.has(AssetKind.MCP) else []
    _print_section(
        "MCP servers",
        summary.has_mcp,
        [f"{config.file_prefix}{s.name:<30} {s.source:<8} {s.source_path}" for s in servers],
    )


async def _watch_forever(obj: CliContext) -> None:
    hooks = await crosstrain_plugin(obj.plugin_context(), {**obj.options, "watch": True}, obj.config_path)
    if not hooks.active:
        click.echo("Nothing to watch: plugin disabled or no Claude Code assets found", err=True)
        return
    click.echo("Watching for changes. Press Ctrl+C to stop.", err=True)
    try:
        await asyncio.Event().wait()
    finally:
        await hooks.close()


@main.command()
@click.pass_obj
def watch(obj: CliContext) -> None:
    """Sync once, then keep converting assets as they change."""
    obj.load()
    try:
        asyncio.run(_watch_forever(obj))
    except KeyboardInterrupt:
        click.echo("\nStopped.", err=True)
        sys.exit(EXIT_INTERRUPTED)


if __name__ == "__main__":
    main()
