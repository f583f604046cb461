"""Pydantic models for the declarative query engine.

A QuerySpec describes one data request; the engine turns it into a domain
and ``read_group`` / ``search_read`` calls and returns an AggregationResult
or ListResult. Results are produced per call and never cached.
"""

from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from erp_analyst.errors.formatter import AnalystError

MAX_LIMIT = 1000


class QueryEngineError(AnalystError):
    """Typed failure raised inside the engine.

    Carries an E-XXXX code and a kind (auth, validation, upstream) so the
    capability layer can surface it without inspecting messages.
    """


class QueryOperation(str, Enum):
    """Supported query operations."""

    AGGREGATE = "aggregate"
    LIST = "list"


class Trend(str, Enum):
    """Direction of a period-over-period change."""

    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class InsightType(str, Enum):
    """Severity tag of an insight."""

    SUCCESS = "success"
    WARNING = "warning"
    INFO = "info"
    ALERT = "alert"


class DateRange(BaseModel):
    """Inclusive date range."""

    start: date
    end: date
    label: str | None = Field(default=None, description="Human label, e.g. 'this month'")

    @model_validator(mode="after")
    def start_before_end(self) -> "DateRange":
        """Reject ranges whose start is after their end."""
        if self.start > self.end:
            raise ValueError(f"start {self.start} is after end {self.end}")
        return self

    @property
    def days(self) -> int:
        """Number of calendar days covered, both ends included."""
        return (self.end - self.start).days + 1

    def describe(self) -> str:
        """Label if set, otherwise 'YYYY-MM-DD to YYYY-MM-DD'."""
        return self.label or f"{self.start.isoformat()} to {self.end.isoformat()}"


class QuerySpec(BaseModel):
    """Abstract description of one data request.

    Either ``date_range`` or ``period`` may be set, not both. A structured
    ``domain`` and a free-text ``filter`` combine with AND.
    """

    model: str = Field(..., min_length=1, description="ERP model or report name, e.g. 'sale.order'")
    operation: QueryOperation = QueryOperation.AGGREGATE
    group_by: list[str] = Field(default_factory=list, description="Group-by fields, e.g. ['partner_id']")
    filter: str | None = Field(default=None, description="Free-text filter phrases")
    domain: list[Any] = Field(default_factory=list, description="Structured domain clauses")
    date_range: DateRange | None = None
    period: str | None = Field(default=None, description="Period token, e.g. 'this month'")
    state: str | list[str] | None = Field(
        default=None, description="Explicit state filter; overrides the final-states default",
    )
    amount_field: str | None = None
    date_field: str | None = None
    limit: int | None = Field(default=None, ge=1, le=MAX_LIMIT, description="Display limit")
    offset: int | None = Field(default=None, ge=0, description="Records to skip (list queries)")
    order: str | None = Field(default=None, description="Explicit ordering, e.g. 'amount_total asc'")
    fields: list[str] | None = Field(default=None, description="Fields to read for list queries")

    @model_validator(mode="after")
    def single_period_source(self) -> "QuerySpec":
        """Reject specs that set both date_range and period."""
        if self.date_range is not None and self.period:
            raise ValueError("set either date_range or period, not both")
        return self


class GroupTotal(BaseModel):
    """Total and record count of one group."""

    total: float
    count: int


class Variation(BaseModel):
    """Change between two values."""

    amount: float
    percent: float
    trend: Trend


class PeriodSummary(BaseModel):
    """Aggregate of one side of a comparison."""

    label: str
    date_range: DateRange
    total: float
    count: int


class Comparison(BaseModel):
    """Current period against the immediately preceding one."""

    current: PeriodSummary
    previous: PeriodSummary
    variation: Variation


class GroupVariation(BaseModel):
    """Per-group change between two periods."""

    label: str
    current: float
    previous: float
    variation: Variation


class Insight(BaseModel):
    """Short labelled observation derived from a result."""

    type: InsightType
    icon: str
    title: str
    description: str
    priority: int = Field(ge=1, description="Lower sorts first")
    actionable: str | None = None


class AggregationResult(BaseModel):
    """Result of an aggregate query.

    ``total`` and ``count`` always cover the full result set; ``grouped`` may
    be truncated to the display limit (see ``group_count``/``truncated``).
    """

    model: str
    total: float
    count: int
    grouped: dict[str, GroupTotal] | None = None
    group_count: int | None = None
    truncated: bool = False
    comparison: Comparison | None = None
    group_variations: list[GroupVariation] | None = None
    insights: list[Insight] | None = None
    date_range: DateRange | None = None
    domain: list[Any] = Field(default_factory=list)


class ListResult(BaseModel):
    """Result of a list query."""

    model: str
    records: list[dict[str, Any]]
    count: int
    date_range: DateRange | None = None
    domain: list[Any] = Field(default_factory=list)
