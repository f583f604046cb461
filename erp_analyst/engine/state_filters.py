"""Canonical "final states only" filters for report-class entities.

Sales, purchase and accounting models keep drafts, quotations and
cancelled documents next to confirmed ones. Totals over those models are
only correct once non-final records are excluded, so any query against a
model listed here gets its canonical state clause unless the caller states
a state filter explicitly. An explicit filter replaces the default; the two
are never combined.
"""

from typing import Any

_SALE_FINAL = ("state", "in", ("sale", "done"))
_PURCHASE_FINAL = ("state", "in", ("purchase", "done"))
_POSTED = ("state", "=", "posted")

FINAL_STATE_FILTERS: dict[str, tuple[str, str, Any]] = {
    "sale.order": _SALE_FINAL,
    "sale.order.line": _SALE_FINAL,
    "sale.report": _SALE_FINAL,
    "purchase.order": _PURCHASE_FINAL,
    "purchase.order.line": _PURCHASE_FINAL,
    "purchase.report": _PURCHASE_FINAL,
    "account.move": _POSTED,
    "account.invoice.report": _POSTED,
    "account.payment": _POSTED,
}


def is_report_entity(model: str) -> bool:
    """Whether the model needs the final-states filter."""
    return model in FINAL_STATE_FILTERS


def canonical_state_clause(model: str) -> list[Any] | None:
    """Fresh domain clause selecting final states, or None for other models."""
    clause = FINAL_STATE_FILTERS.get(model)
    if clause is None:
        return None
    field, operator, value = clause
    return [field, operator, list(value) if isinstance(value, tuple) else value]


def has_state_clause(domain: list[Any], state_field: str = "state") -> bool:
    """Whether any clause in the domain already constrains the state field."""
    return any(
        isinstance(clause, (list, tuple)) and len(clause) == 3 and clause[0] == state_field
        for clause in domain
    )


def explicit_state_clause(state: str | list[str], state_field: str = "state") -> list[Any]:
    """Domain clause for a caller-supplied state filter."""
    if isinstance(state, str):
        return [state_field, "=", state]
    return [state_field, "in", list(state)]
