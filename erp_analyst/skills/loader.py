"""Per-tenant skill loading.

For each request: read the tenant's active integrations, decrypt their
credentials, bind them into a fresh SkillContext and keep only the skills
whose integration is available. Nothing here is cached across requests.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from erp_analyst.config import DEFAULT_TIMEZONE
from erp_analyst.errors.formatter import AnalystError
from erp_analyst.services.tenant_integrations import TenantIntegrationStore
from erp_analyst.skills.base import CallState, Skill, SkillContext, SkillResult
from erp_analyst.skills.registry import SkillRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TenantSkills:
    """Skills available to one tenant/caller pair, with their context."""

    context: SkillContext
    skills: list[Skill]

    def get(self, name: str) -> Skill | None:
        for skill in self.skills:
            if skill.name == name:
                return skill
        return None

    def names(self) -> list[str]:
        return [skill.name for skill in self.skills]

    async def invoke(self, name: str, raw_input: Mapping[str, Any] | None = None) -> SkillResult:
        """Run a skill by name in this context. Unknown names yield an error result."""
        skill = self.get(name)
        if skill is None:
            logger.warning("Tenant %s requested unavailable skill %s", self.context.tenant_id, name)
            return SkillResult.fail(name, AnalystError.from_code("E-4002", skill=name), CallState.REJECTED)
        return await skill.run(raw_input, self.context)


def load_skills_for_tenant(
    tenant_id: str,
    user_id: str,
    *,
    store: TenantIntegrationStore,
    registry: SkillRegistry,
    timezone: str = DEFAULT_TIMEZONE,
    today: date | None = None,
) -> TenantSkills:
    """Build the tenant's context and filter the catalogue to it.

    Args:
        tenant_id: Tenant to load.
        user_id: Caller identifier recorded in the context.
        store: Tenant configuration store (decrypts credentials).
        registry: Full skill catalogue.
        timezone: IANA timezone for relative periods.
        today: Fixed reference date (tests).

    Returns:
        TenantSkills with a context holding only this tenant's credentials.
    """
    credentials = store.resolve_credentials(tenant_id)
    context = SkillContext(
        tenant_id=tenant_id,
        user_id=user_id,
        credentials=credentials,
        timezone=timezone,
        today=today,
    )
    skills = registry.for_integrations(credentials)
    logger.info(
        "Loaded %d of %d skills for tenant %s (integrations: %s)",
        len(skills), len(registry), tenant_id, ", ".join(sorted(credentials)) or "none",
    )
    return TenantSkills(context=context, skills=skills)
