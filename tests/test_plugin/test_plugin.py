"""
Tests para el punto de entrada del plugin.

Cubre:
- Plugin deshabilitado o sin assets -> contrato vacío
- Carga inicial: herramientas, agentes, comandos, hooks
- Contrato con el host (as_host_dict, tool, handlers)
- Recargas visibles sin volver a registrar nada
- crosstrain_info
"""

import json
import stat
from pathlib import Path

import pytest

from crosstrain import PluginContext, PluginHooks, create_plugin, crosstrain_plugin
from crosstrain.assets.discovery import AssetKind
from crosstrain.errors import HookBlockedError
from crosstrain.skills.loader import SkillsConverter


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CROSSTRAIN_ENABLED", "CROSSTRAIN_WATCH", "CROSSTRAIN_LOAD_USER_ASSETS"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


@pytest.fixture
def ctx(project: Path, tmp_path: Path) -> PluginContext:
    """Contexto con un home aislado para no leer ~/.claude real."""
    home = tmp_path / "home"
    home.mkdir()
    return PluginContext(directory=project, home_dir=home)


@pytest.fixture
def claude_project(project: Path) -> Path:
    """Proyecto con un skill, un agente, un comando y un hook bloqueante."""
    claude = project / ".claude"
    skill = claude / "skills" / "pdf"
    skill.mkdir(parents=True)
    (skill / "SKILL.md").write_text("---\nname: pdf\ndescription: PDFs\n---\nUse pdftotext.", encoding="utf-8")

    (claude / "agents").mkdir()
    (claude / "agents" / "reviewer.md").write_text("---\ndescription: Reviews\n---\nReview.", encoding="utf-8")
    (claude / "commands").mkdir()
    (claude / "commands" / "deploy.md").write_text("Deploy $ARGUMENTS", encoding="utf-8")

    script = project / "guard.sh"
    script.write_text('#!/bin/bash\necho "no bash" >&2\nexit 2\n')
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    settings = {"hooks": {"PreToolUse": [{"matcher": "bash", "hooks": [{"type": "command", "command": str(script)}]}]}}
    (claude / "settings.json").write_text(json.dumps(settings), encoding="utf-8")
    return project


# ── Tests: contrato vacío ────────────────────────────────────────────


class TestInactive:
    @pytest.mark.asyncio
    async def test_disabled(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"enabled": False})
        assert not hooks.active
        assert hooks.as_host_dict() == {}
        assert dict(hooks.tool) == {}
        assert not (claude_project / ".opencode").exists()

    @pytest.mark.asyncio
    async def test_no_assets(self, ctx, project):
        hooks = await crosstrain_plugin(ctx, {"watch": False})
        assert not hooks.active
        assert hooks.as_host_dict() == {}
        assert not (project / ".opencode").exists()

    @pytest.mark.asyncio
    async def test_inactive_handlers_are_noops(self):
        hooks = PluginHooks()
        await hooks.tool_execute_before({"tool": "bash"}, {"args": {}})
        await hooks.tool_execute_after({"tool": "bash"}, {})
        await hooks.event({"type": "session.idle"})
        await hooks.close()


# ── Tests: carga inicial ─────────────────────────────────────────────


class TestInitialize:
    @pytest.mark.asyncio
    async def test_loads_every_kind(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"watch": False})

        assert hooks.active
        assert hooks.state.watcher is None
        assert set(hooks.tool) == {"skill_pdf", "crosstrain_info"}
        assert hooks.state.agents == ("reviewer",)
        assert hooks.state.commands == ("deploy",)
        assert hooks.state.hooks.table.rule_count == 1
        assert (claude_project / ".opencode" / "agent" / "claude_reviewer.md").is_file()
        assert (claude_project / ".opencode" / "command" / "claude_deploy.md").is_file()

    @pytest.mark.asyncio
    async def test_disabled_loader_skipped(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"watch": False, "loaders": {"agents": False}})
        assert hooks.state.agents == ()
        assert not (claude_project / ".opencode" / "agent" / "claude_reviewer.md").exists()
        assert hooks.state.commands == ("deploy",)

    @pytest.mark.asyncio
    async def test_user_assets(self, ctx, project):
        user_agents = ctx.home_dir / ".claude" / "agents"
        user_agents.mkdir(parents=True)
        (user_agents / "helper.md").write_text("Help.", encoding="utf-8")

        hooks = await crosstrain_plugin(ctx, {"watch": False})
        assert hooks.state.agents == ("helper",)

        ignored = await crosstrain_plugin(ctx, {"watch": False, "load_user_assets": False})
        assert not ignored.active

    @pytest.mark.asyncio
    async def test_watch_starts_and_closes(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"debounce_ms": 10})
        try:
            assert hooks.state.watcher is not None
            assert set(hooks.state.watcher.converters) == set(AssetKind)
        finally:
            await hooks.close()
        assert hooks.state.watcher is None

    @pytest.mark.asyncio
    async def test_create_plugin_binds_options(self, ctx, claude_project):
        plugin = create_plugin({"watch": False, "file_prefix": "cc_"})
        hooks = await plugin(ctx)
        assert (claude_project / ".opencode" / "agent" / "cc_reviewer.md").is_file()
        assert hooks.state.watcher is None


# ── Tests: contrato con el host ──────────────────────────────────────


class TestHostContract:
    @pytest.mark.asyncio
    async def test_host_dict_keys(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"watch": False})
        assert set(hooks.as_host_dict()) == {"tool", "tool.execute.before", "tool.execute.after", "event"}

    @pytest.mark.asyncio
    async def test_before_handler_blocks(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"watch": False})
        before = hooks.as_host_dict()["tool.execute.before"]

        with pytest.raises(HookBlockedError, match="no bash"):
            await before({"tool": "bash", "sessionID": "s", "callID": "c"}, {"args": {"command": "ls"}})
        await before({"tool": "read", "sessionID": "s", "callID": "c"}, {"args": {}})

    @pytest.mark.asyncio
    async def test_event_handler_unwraps(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"watch": False})
        await hooks.as_host_dict()["event"]({"event": {"type": "session.idle", "properties": {}}})

    @pytest.mark.asyncio
    async def test_reload_visible_through_tool(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"watch": False})
        skill = claude_project / ".claude" / "skills" / "lint"
        skill.mkdir()
        (skill / "SKILL.md").write_text("---\nname: lint\ndescription: Lint\n---\nRun it.", encoding="utf-8")

        await SkillsConverter().reload(hooks.state)

        assert set(hooks.tool) == {"skill_pdf", "skill_lint", "crosstrain_info"}

    @pytest.mark.asyncio
    async def test_info_tool(self, ctx, claude_project):
        hooks = await crosstrain_plugin(ctx, {"watch": False})
        output = await hooks.tool["crosstrain_info"].execute({})

        assert output.startswith("# Crosstrain Plugin Status")
        assert "- **Skills**: 1 loaded as custom tools" in output
        assert "- **Hooks**: 1 rules loaded as event handlers" in output
        assert "- **MCP servers**: not found" in output
        assert f"- Project: {claude_project.resolve() / '.claude'}" in output
