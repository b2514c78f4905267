"""
Tests para la sincronización de agentes Claude -> OpenCode.

Cubre:
- Conversión del frontmatter (modelo, tools, permissionMode, campos descartados)
- Sección de skills y pie de atribución
- Escritura idempotente y nombres de archivo con prefijo
- Shadowing proyecto > usuario
"""

from pathlib import Path

import pytest

from crosstrain.agents.sync import (
    AgentAsset,
    AgentsConverter,
    convert_agent_frontmatter,
    discover_agents,
    generate_opencode_agent,
    sync_agents,
)
from crosstrain.assets.discovery import AssetRoots
from crosstrain.assets.document import parse_document
from crosstrain.config.loader import load_config
from crosstrain.config.schema import CrosstrainConfig
from crosstrain.core.state import PluginState


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
def config() -> CrosstrainConfig:
    return CrosstrainConfig()


@pytest.fixture
def make_agent(roots: AssetRoots):
    """Factory para escribir un agente en la raíz de proyecto o de usuario."""

    def _make(name: str, content: str, user: bool = False) -> Path:
        directory = (roots.user_dir if user else roots.claude_dir) / "agents"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{name}.md"
        path.write_text(content, encoding="utf-8")
        return path

    return _make


def _agent(**kwargs) -> AgentAsset:
    defaults = {"name": "a", "description": "An agent", "path": Path("/src/a.md")}
    defaults.update(kwargs)
    return AgentAsset(**defaults)


# ── Tests: frontmatter ───────────────────────────────────────────────


class TestConvertAgentFrontmatter:
    def test_minimal(self, config):
        assert convert_agent_frontmatter(_agent(), config) == {
            "description": "An agent",
            "mode": "subagent",
        }

    def test_model_alias_mapped(self, config):
        fm = convert_agent_frontmatter(_agent(model="Sonnet"), config)
        assert fm["model"] == "anthropic/claude-sonnet-4-20250514"

    def test_inherit_model_omitted(self, config):
        text = generate_opencode_agent(_agent(model="inherit"), config)
        assert "model" not in parse_document(text).preamble

    def test_unknown_model_passthrough(self, config):
        fm = convert_agent_frontmatter(_agent(model="openai/gpt-4o"), config)
        assert fm["model"] == "openai/gpt-4o"

    def test_user_model_mapping(self):
        config = CrosstrainConfig(model_mappings={"fast": "anthropic/claude-haiku-4-20250514"})
        fm = convert_agent_frontmatter(_agent(model="fast"), config)
        assert fm["model"] == "anthropic/claude-haiku-4-20250514"

    def test_tools_restriction(self, config):
        fm = convert_agent_frontmatter(_agent(tools=("Read", "Grep", "CustomTool")), config)
        assert fm["tools"] == {
            "read": True,
            "grep": True,
            "customtool": True,
            "write": False,
            "edit": False,
            "bash": False,
            "glob": False,
            "webfetch": False,
        }

    def test_permission_mode_mapped(self, config):
        fm = convert_agent_frontmatter(_agent(permission_mode="acceptEdits"), config)
        assert fm["permission"] == {"edit": "allow"}

    def test_permission_mode_without_equivalent_dropped(self, config):
        fm = convert_agent_frontmatter(_agent(permission_mode="default"), config)
        assert "permission" not in fm

    def test_unknown_source_keys_dropped(self, config):
        agent = _agent(frontmatter={"name": "a", "color": "blue", "description": "x"})
        fm = convert_agent_frontmatter(agent, config)
        assert "color" not in fm


# ── Tests: documento generado ────────────────────────────────────────


class TestGenerateOpenCodeAgent:
    def test_footer_and_skills_section(self, config):
        agent = _agent(system_prompt="You review code.", skills=("code-review", "pdf"))
        doc = parse_document(generate_opencode_agent(agent, config))
        assert doc.body.startswith("You review code.\n\n## Available Skills\n\n")
        assert "- `skill_code_review`: Use when relevant to invoke the code-review skill\n" in doc.body
        assert "- `skill_pdf`:" in doc.body
        assert doc.body.endswith("\n\n---\n*[Loaded from Claude Code: /src/a.md]*")

    def test_load_from_file(self, roots, make_agent, config):
        make_agent(
            "reviewer",
            "---\nname: code-reviewer\ndescription: Reviews code\ntools: Read, Grep\n"
            "model: opus\npermissionMode: plan\nskills: lint\n---\n\nBe strict.\n",
        )
        agents = discover_agents(roots)
        assert [a.name for a in agents] == ["code-reviewer"]
        agent = agents[0]
        assert agent.tools == ("Read", "Grep")
        assert agent.skills == ("lint",)
        assert agent.permission_mode == "plan"

    def test_description_fallback(self, roots, make_agent):
        make_agent("helper", "No preamble")
        assert discover_agents(roots)[0].description == "Claude Code agent: helper"


# ── Tests: sincronización ────────────────────────────────────────────


class TestSyncAgents:
    def test_writes_prefixed_files(self, roots, make_agent, opencode_dir, config):
        make_agent("b", "---\ndescription: B\n---\nbody b")
        make_agent("a", "---\ndescription: A\n---\nbody a")

        names = sync_agents(roots, opencode_dir, config)

        assert names == ["a", "b"]
        assert (opencode_dir / "agent" / "claude_a.md").is_file()
        assert (opencode_dir / "agent" / "claude_b.md").is_file()

    def test_custom_prefix(self, roots, make_agent, opencode_dir):
        make_agent("a", "---\ndescription: A\n---\nbody")
        sync_agents(roots, opencode_dir, CrosstrainConfig(file_prefix="cc-"))
        assert (opencode_dir / "agent" / "cc-a.md").is_file()

    def test_sync_is_byte_identical(self, roots, make_agent, opencode_dir, config):
        make_agent(
            "a",
            "---\ndescription: A\ntools: Read, Bash\nmodel: haiku\nskills: x, y\n---\n\nPrompt\n",
        )
        sync_agents(roots, opencode_dir, config)
        first = (opencode_dir / "agent" / "claude_a.md").read_bytes()
        sync_agents(roots, opencode_dir, config)
        second = (opencode_dir / "agent" / "claude_a.md").read_bytes()
        assert first == second

    def test_project_shadows_user(self, roots, make_agent, opencode_dir, config):
        make_agent("x", "---\ndescription: project\n---\nP")
        make_agent("x", "---\ndescription: user\n---\nU", user=True)

        assert sync_agents(roots, opencode_dir, config) == ["x"]
        doc = parse_document((opencode_dir / "agent" / "claude_x.md").read_text(encoding="utf-8"))
        assert doc.preamble["description"] == "project"

    def test_unreadable_agent_skipped(self, roots, make_agent, opencode_dir, config):
        make_agent("good", "---\ndescription: ok\n---\nbody")
        bad = roots.claude_dir / "agents" / "bad.md"
        bad.write_bytes(b"\xff\xfe not utf-8")
        assert sync_agents(roots, opencode_dir, config) == ["good"]

    @pytest.mark.parametrize("name", ["team/reviewer", "../escape", "..", "a\\b"])
    def test_unsafe_name_skipped(self, roots, make_agent, opencode_dir, config, name):
        make_agent("good", "---\ndescription: ok\n---\nbody")
        make_agent("bad", f"---\nname: '{name}'\ndescription: x\n---\nbody")

        assert sync_agents(roots, opencode_dir, config) == ["good"]
        written = sorted(p.relative_to(opencode_dir).as_posix() for p in opencode_dir.rglob("*.md"))
        assert written == ["agent/claude_good.md"]
        assert not (roots.project_dir / "escape.md").exists()

    def test_loaded_config_mappings(self, roots, make_agent, opencode_dir, tmp_path):
        make_agent("a", "---\ndescription: A\nmodel: sonnet\n---\nbody")
        config = load_config(tmp_path, {"modelMappings": {"sonnet": "custom/sonnet"}})
        sync_agents(roots, opencode_dir, config)
        doc = parse_document((opencode_dir / "agent" / "claude_a.md").read_text(encoding="utf-8"))
        assert doc.preamble["model"] == "custom/sonnet"

    @pytest.mark.asyncio
    async def test_converter_records_names(self, roots, make_agent, opencode_dir, config):
        make_agent("a", "---\ndescription: A\n---\nbody")
        state = PluginState(config=config, roots=roots, opencode_dir=opencode_dir)
        assert await AgentsConverter().reload(state) == 1
        assert state.agents == ("a",)
