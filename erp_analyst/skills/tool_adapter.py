"""Adapter from skills to language-model tool definitions.

Each definition carries name, description, input_schema and an async
handler taking the model's argument dict. Handlers return the MCP-style
envelope ``{"isError": bool, "content": [{"type": "text", "text": ...}]}``.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from erp_analyst.skills.base import Skill, SkillContext, SkillResult
from erp_analyst.skills.loader import TenantSkills

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]


def _ok(data: Any) -> dict[str, Any]:
    """Build a successful tool response.

    Args:
        data: Serializable data to return.

    Returns:
        Tool response dict with isError=False.
    """
    return {
        "isError": False,
        "content": [{"type": "text", "text": json.dumps(data, default=str)}],
    }


def _err(message: str) -> dict[str, Any]:
    """Build an error tool response.

    Args:
        message: Error text shown to the model.

    Returns:
        Tool response dict with isError=True.
    """
    return {
        "isError": True,
        "content": [{"type": "text", "text": message}],
    }


def result_to_envelope(result: SkillResult) -> dict[str, Any]:
    """Convert a SkillResult into a tool response."""
    if result.success:
        return _ok(result.data)
    return _err(json.dumps(result.to_envelope()["error"]))


def skill_to_tool(skill: Skill, context: SkillContext) -> dict[str, Any]:
    """Tool definition for one skill bound to one context."""

    async def handler(args: dict[str, Any]) -> dict[str, Any]:
        result = await skill.run(args, context)
        return result_to_envelope(result)

    return {
        "name": skill.name,
        "description": skill.description,
        "input_schema": skill.input_schema(),
        "handler": handler,
    }


def build_tool_definitions(tenant_skills: TenantSkills) -> list[dict[str, Any]]:
    """Tool definitions for every skill available to the tenant."""
    definitions = [skill_to_tool(skill, tenant_skills.context) for skill in tenant_skills.skills]
    logger.debug("Built %d tool definitions for tenant %s", len(definitions), tenant_skills.context.tenant_id)
    return definitions
