"""Service layer for ERP Analyst.

Provides encrypted tenant integration storage.
"""

from erp_analyst.services.integration_types import IntegrationValidationError
from erp_analyst.services.tenant_integrations import TenantIntegrationStore

__all__ = [
    "TenantIntegrationStore",
    "IntegrationValidationError",
]
