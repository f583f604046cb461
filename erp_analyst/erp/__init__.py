"""ERP transport: authenticated JSON-RPC calls against Odoo.

No business semantics live here; see erp_analyst.engine for domain
construction and aggregation.
"""

from erp_analyst.erp.client import OdooClient, OdooClientFactory, decode_envelope
from erp_analyst.erp.models import (
    AGGREGATE_FUNCTIONS,
    GROUP_BY_GRANULARITIES,
    ErpCredentials,
    RpcResult,
)
from erp_analyst.erp.session_cache import DEFAULT_SESSION_TTL_SECONDS, SessionCache

__all__ = [
    "OdooClient",
    "OdooClientFactory",
    "decode_envelope",
    "ErpCredentials",
    "RpcResult",
    "AGGREGATE_FUNCTIONS",
    "GROUP_BY_GRANULARITIES",
    "SessionCache",
    "DEFAULT_SESSION_TTL_SECONDS",
]
