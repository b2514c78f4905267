"""
Tests para la sincronización de comandos Claude -> OpenCode.
"""

from dataclasses import replace
from pathlib import Path

import pytest

from crosstrain.assets.discovery import AssetRoots
from crosstrain.assets.document import parse_document
from crosstrain.commands.sync import (
    CommandsConverter,
    discover_commands,
    generate_opencode_command,
    sync_commands,
    write_command,
)
from crosstrain.config.schema import CrosstrainConfig
from crosstrain.core.state import PluginState
from crosstrain.errors import ConversionError


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def roots(tmp_path: Path) -> AssetRoots:
    project = tmp_path / "project"
    project.mkdir()
    return AssetRoots(
        project_dir=project,
        claude_dir=project / ".claude",
        user_dir=tmp_path / "home" / ".claude",
    )


@pytest.fixture
def opencode_dir(roots: AssetRoots) -> Path:
    return roots.project_dir / ".opencode"


@pytest.fixture
def make_command(roots: AssetRoots):
    """Factory para escribir un comando slash."""

    def _make(name: str, content: str, user: bool = False) -> Path:
        directory = (roots.user_dir if user else roots.claude_dir) / "commands"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.md"
        path.write_text(content, encoding="utf-8")
        return path

    return _make


TEMPLATE = "Review $ARGUMENTS in @src/main.py\n\nGit status: !`git status`\n"


# ── Tests ────────────────────────────────────────────────────────────


class TestConvertCommand:
    def test_frontmatter_and_template(self, roots, make_command):
        path = make_command(
            "review",
            "---\ndescription: Review a file\nargument-hint: <file>\nallowed-tools: Read\n"
            "model: haiku\n---\n\n" + TEMPLATE,
        )
        command = discover_commands(roots)[0]
        doc = parse_document(generate_opencode_command(command, CrosstrainConfig()))

        assert doc.preamble == {
            "description": "Review a file",
            "agent": "build",
            "model": "anthropic/claude-haiku-4-20250514",
        }
        assert doc.body == TEMPLATE + f"\n\n---\n*[Loaded from Claude Code: {path}]*"

    def test_name_from_file_name(self, roots, make_command):
        make_command("deploy-prod", "---\nname: ignored\ndescription: d\n---\nGo")
        assert discover_commands(roots)[0].name == "deploy-prod"

    def test_description_fallback(self, roots, make_command):
        make_command("plain", TEMPLATE)
        command = discover_commands(roots)[0]
        doc = parse_document(generate_opencode_command(command, CrosstrainConfig()))
        assert doc.preamble["description"] == "Claude Code command: plain"

    def test_default_agent_configurable(self, roots, make_command):
        make_command("c", "---\ndescription: d\n---\nGo")
        command = discover_commands(roots)[0]
        config = CrosstrainConfig(default_command_agent="plan")
        assert parse_document(generate_opencode_command(command, config)).preamble["agent"] == "plan"


class TestSyncCommands:
    def test_writes_and_returns_names(self, roots, make_command, opencode_dir):
        make_command("b", "B")
        make_command("a", "A")
        make_command("a", "user A", user=True)
        make_command("c", "user C", user=True)

        names = sync_commands(roots, opencode_dir, CrosstrainConfig())

        assert names == ["a", "b", "c"]
        text = (opencode_dir / "command" / "claude_a.md").read_text(encoding="utf-8")
        assert "user A" not in text

    def test_idempotent(self, roots, make_command, opencode_dir):
        make_command("a", "---\ndescription: d\nargument-hint: x\n---\n" + TEMPLATE)
        config = CrosstrainConfig()
        sync_commands(roots, opencode_dir, config)
        first = (opencode_dir / "command" / "claude_a.md").read_bytes()
        sync_commands(roots, opencode_dir, config)
        assert (opencode_dir / "command" / "claude_a.md").read_bytes() == first

    def test_unsafe_name_rejected(self, roots, make_command, opencode_dir):
        path = make_command("ok", "Go")
        command = replace(discover_commands(roots)[0], name="../outside")

        with pytest.raises(ConversionError):
            write_command(command, opencode_dir, CrosstrainConfig())
        assert not (opencode_dir / "outside.md").exists()
        assert path.is_file()

    def test_missing_directory(self, roots, opencode_dir):
        assert sync_commands(roots, opencode_dir, CrosstrainConfig()) == []

    @pytest.mark.asyncio
    async def test_converter_records_names(self, roots, make_command, opencode_dir):
        make_command("a", "A")
        state = PluginState(config=CrosstrainConfig(), roots=roots, opencode_dir=opencode_dir)
        assert await CommandsConverter().reload(state) == 1
        assert state.commands == ("a",)
