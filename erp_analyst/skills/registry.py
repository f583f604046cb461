"""Fixed skill catalogue.

The catalogue is assembled once from the classes listed in this package;
there is no runtime registration, so the set of questions the model can ask
is enumerable and auditable.
"""

import logging
from collections.abc import Iterable
from typing import Any

from erp_analyst.documents.client import DocumentSearchClientFactory
from erp_analyst.erp.client import OdooClientFactory
from erp_analyst.skills.base import OdooSkill, Skill
from erp_analyst.skills.documents import SearchDocuments
from erp_analyst.skills.odoo import ODOO_SKILLS

logger = logging.getLogger(__name__)


class SkillRegistry:
    """Read-only catalogue of skill instances keyed by name."""

    def __init__(self, skills: Iterable[Skill]) -> None:
        self._skills: dict[str, Skill] = {}
        for skill in skills:
            if skill.name in self._skills:
                raise ValueError(f"Duplicate skill name: {skill.name}")
            self._skills[skill.name] = skill

    def __len__(self) -> int:
        return len(self._skills)

    def __contains__(self, name: object) -> bool:
        return name in self._skills

    def get(self, name: str) -> Skill | None:
        return self._skills.get(name)

    def list_skills(self) -> list[Skill]:
        """Every skill, highest priority first, then by name."""
        return sorted(self._skills.values(), key=lambda s: (-s.priority, s.name))

    def names(self) -> list[str]:
        return [skill.name for skill in self.list_skills()]

    def by_integration(self, integration: str) -> list[Skill]:
        return [s for s in self.list_skills() if s.integration == integration]

    def by_tag(self, tag: str) -> list[Skill]:
        return [s for s in self.list_skills() if tag in s.tags]

    def for_integrations(self, active: Iterable[str]) -> list[Skill]:
        """Skills whose required integration is in ``active``."""
        enabled = set(active)
        return [s for s in self.list_skills() if s.integration in enabled]

    def catalog(self) -> list[dict[str, Any]]:
        """Metadata of every skill, for admin display."""
        return [skill.metadata() for skill in self.list_skills()]


def build_default_registry(
    odoo_client_factory: OdooClientFactory | None = None,
    document_client_factory: DocumentSearchClientFactory | None = None,
) -> SkillRegistry:
    """Instantiate the full catalogue.

    All ERP skills share one client factory, and through it one session
    cache.

    Args:
        odoo_client_factory: Factory for ERP clients (tests inject one backed
            by httpx.MockTransport).
        document_client_factory: Factory for document search clients.
    """
    odoo_factory = odoo_client_factory or OdooClientFactory()
    skills: list[Skill] = [cls(odoo_factory) for cls in ODOO_SKILLS]
    skills.append(SearchDocuments(document_client_factory))
    registry = SkillRegistry(skills)
    logger.debug(
        "Built skill registry with %d skills (%d ERP)",
        len(registry), sum(isinstance(s, OdooSkill) for s in skills),
    )
    return registry
