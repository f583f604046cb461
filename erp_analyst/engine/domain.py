"""Single domain-construction step for every engine query.

Flat totals, grouped breakdowns, record lists and both sides of a
comparison all call build_domain(), so the state filter they apply can
never diverge.
"""

import logging
from datetime import date
from typing import Any

from erp_analyst.engine.entities import get_profile
from erp_analyst.engine.filter_parser import parse_filter
from erp_analyst.engine.models import DateRange, QueryEngineError
from erp_analyst.engine.state_filters import (
    canonical_state_clause,
    explicit_state_clause,
    has_state_clause,
)

logger = logging.getLogger(__name__)

_DOMAIN_OPERATORS = frozenset({"&", "|", "!"})

# Datetime columns commonly used as an override date_field
_DATETIME_FIELDS = frozenset({
    "create_date", "write_date", "date_order", "order_id.date_order",
    "scheduled_date", "date_done", "date_planned", "date_approve",
})


def _copy_clause(clause: Any, model: str) -> Any:
    if isinstance(clause, str) and clause in _DOMAIN_OPERATORS:
        return clause
    if isinstance(clause, (list, tuple)) and len(clause) == 3 and isinstance(clause[0], str):
        field, operator, value = clause
        return [field, operator, list(value) if isinstance(value, tuple) else value]
    raise QueryEngineError.from_code("E-1005", model=model, detail=f"malformed domain clause {clause!r}")


def date_clauses(date_range: DateRange, field: str, is_datetime: bool) -> list[list[Any]]:
    """Inclusive range clauses; datetime fields cover the whole end day."""
    start = date_range.start.isoformat()
    end = date_range.end.isoformat()
    if is_datetime:
        start, end = f"{start} 00:00:00", f"{end} 23:59:59"
    return [[field, ">=", start], [field, "<=", end]]


def build_domain(
    model: str,
    *,
    base: list[Any] | None = None,
    filter_text: str | None = None,
    date_range: DateRange | None = None,
    date_field: str | None = None,
    state: str | list[str] | None = None,
    today: date | None = None,
) -> list[Any]:
    """Build the domain for one query.

    Clauses appear in this order: structured ``base`` clauses, parsed
    filter phrases, date bounds, then the state clause. The state clause is
    the explicit ``state`` when given; otherwise, for report-class models
    whose domain does not already constrain ``state``, the canonical
    final-states clause.

    Args:
        model: Target ERP model.
        base: Structured domain clauses supplied by the caller.
        filter_text: Free-text filter phrases.
        date_range: Inclusive period.
        date_field: Field the period applies to (defaults to the model's).
        state: Explicit state or list of states.
        today: Reference date for relative filter phrases.

    Returns:
        New domain list; inputs are not mutated.

    Raises:
        QueryEngineError: On malformed clauses or unsupported filter phrases.
    """
    profile = get_profile(model)
    domain: list[Any] = [_copy_clause(clause, model) for clause in (base or [])]

    if filter_text:
        domain.extend(parse_filter(filter_text, model, today=today or date.today()))

    if date_range is not None:
        field = date_field or profile.date_field
        if field == profile.date_field:
            is_datetime = profile.date_is_datetime
        else:
            is_datetime = field in _DATETIME_FIELDS
        domain.extend(date_clauses(date_range, field, is_datetime))

    if state is not None and (not isinstance(state, list) or state):
        domain.append(explicit_state_clause(state, profile.state_field))
    elif not has_state_clause(domain, profile.state_field):
        canonical = canonical_state_clause(model)
        if canonical is not None:
            domain.append(canonical)
            logger.debug("Injected final-state filter %s for %s", canonical, model)

    return domain
