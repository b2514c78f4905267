"""
Skills - Claude Code skills exposed as OpenCode tools.
"""

from .loader import (
    SkillAsset,
    SkillsConverter,
    SkillsLoader,
    SkillTool,
    create_tools_from_skills,
    render_skill,
    skill_tool_name,
)

__all__ = [
    "SkillAsset",
    "SkillTool",
    "SkillsConverter",
    "SkillsLoader",
    "create_tools_from_skills",
    "render_skill",
    "skill_tool_name",
]
