"""Capability framework: typed skills, fixed catalogue, per-tenant loading."""

from erp_analyst.skills.base import (
    CallState,
    OdooSkill,
    Skill,
    SkillCall,
    SkillContext,
    SkillError,
    SkillResult,
)
from erp_analyst.skills.loader import TenantSkills, load_skills_for_tenant
from erp_analyst.skills.registry import SkillRegistry, build_default_registry
from erp_analyst.skills.tool_adapter import build_tool_definitions, result_to_envelope, skill_to_tool

__all__ = [
    "Skill",
    "OdooSkill",
    "SkillCall",
    "CallState",
    "SkillContext",
    "SkillError",
    "SkillResult",
    "SkillRegistry",
    "build_default_registry",
    "TenantSkills",
    "load_skills_for_tenant",
    "build_tool_definitions",
    "skill_to_tool",
    "result_to_envelope",
]
