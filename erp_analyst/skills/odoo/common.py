"""Input fragments and helpers shared by the ERP skills."""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field, model_validator

from erp_analyst.engine.models import AggregationResult, DateRange

DEFAULT_PERIOD = "this month"

PERIOD_DESCRIPTION = (
    "Period token such as 'this month', 'last month', 'this year', 'last 30 days', "
    "'march 2025', '2025-03' or Spanish equivalents ('este mes', 'mes pasado'). "
    "Ignored when start_date/end_date are given."
)


class PeriodInput(BaseModel):
    """Either a period token or an explicit inclusive date range."""

    period: str | None = Field(default=None, description=PERIOD_DESCRIPTION)
    start_date: date | None = Field(default=None, description="Inclusive start date (YYYY-MM-DD)")
    end_date: date | None = Field(default=None, description="Inclusive end date (YYYY-MM-DD)")

    @model_validator(mode="after")
    def check_dates(self) -> "PeriodInput":
        """Dates come in pairs, in order."""
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must be given together")
        if self.start_date is not None and self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self

    def period_kwargs(self, default: str | None = DEFAULT_PERIOD) -> dict[str, Any]:
        """QuerySpec keyword arguments selecting this input's period."""
        if self.start_date is not None:
            return {"date_range": DateRange(start=self.start_date, end=self.end_date)}
        return {"period": self.period or default}


class Ranked(BaseModel):
    """One row of a ranking derived from a grouped result."""

    rank: int
    name: str
    total: float
    count: int
    share_percent: float


def ranking(result: AggregationResult) -> list[Ranked]:
    """Grouped map as a ranked list with each group's share of the total."""
    rows = []
    for position, (label, group) in enumerate((result.grouped or {}).items(), start=1):
        share = group.total / result.total * 100 if result.total else 0.0
        rows.append(Ranked(
            rank=position, name=label, total=round(group.total, 2),
            count=group.count, share_percent=round(share, 1),
        ))
    return rows


class Breakdown(AggregationResult):
    """Grouped aggregation plus its ranking."""

    ranking: list[Ranked] = Field(default_factory=list)


def breakdown(result: AggregationResult) -> Breakdown:
    return Breakdown(**dict(result), ranking=ranking(result))
