"""Declarative query engine over the ERP transport.

Builds domains (period, free-text filters, final-state injection), runs
aggregations and lists, compares periods and derives insights.
"""

from erp_analyst.engine.domain import build_domain
from erp_analyst.engine.engine import EngineOutcome, QueryEngine
from erp_analyst.engine.models import (
    AggregationResult,
    Comparison,
    DateRange,
    GroupTotal,
    GroupVariation,
    Insight,
    InsightType,
    ListResult,
    QueryEngineError,
    QueryOperation,
    QuerySpec,
    Trend,
    Variation,
)
from erp_analyst.engine.periods import previous_period, resolve_period
from erp_analyst.engine.state_filters import FINAL_STATE_FILTERS

__all__ = [
    "QueryEngine",
    "EngineOutcome",
    "QuerySpec",
    "QueryOperation",
    "QueryEngineError",
    "DateRange",
    "AggregationResult",
    "ListResult",
    "GroupTotal",
    "GroupVariation",
    "Comparison",
    "Variation",
    "Trend",
    "Insight",
    "InsightType",
    "build_domain",
    "resolve_period",
    "previous_period",
    "FINAL_STATE_FILTERS",
]
