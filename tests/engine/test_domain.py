"""Tests for the single domain-construction step and final-state filters."""

from datetime import date

import pytest

from erp_analyst.engine.domain import build_domain, date_clauses
from erp_analyst.engine.models import DateRange, QueryEngineError
from erp_analyst.engine.state_filters import (
    FINAL_STATE_FILTERS,
    canonical_state_clause,
    has_state_clause,
    is_report_entity,
)

TODAY = date(2026, 10, 18)
OCTOBER = DateRange(start=date(2026, 10, 1), end=date(2026, 10, 31))


class TestStateFilters:
    """Tests for the final-state filter table."""

    @pytest.mark.parametrize("model", ["sale.order", "sale.report", "purchase.order", "account.move"])
    def test_report_entities(self, model):
        assert is_report_entity(model)

    @pytest.mark.parametrize("model", ["res.partner", "product.product", "stock.picking"])
    def test_non_report_entities(self, model):
        assert not is_report_entity(model)
        assert canonical_state_clause(model) is None

    def test_sales_final_states(self):
        assert canonical_state_clause("sale.order") == ["state", "in", ["sale", "done"]]

    def test_canonical_clause_is_a_fresh_list(self):
        clause = canonical_state_clause("sale.order")
        clause[2].append("draft")
        assert canonical_state_clause("sale.order") == ["state", "in", ["sale", "done"]]

    def test_has_state_clause(self):
        assert has_state_clause([["state", "=", "draft"]])
        assert not has_state_clause([["state_id", "=", 3], "|"])

    def test_table_covers_every_accounting_model(self):
        assert {"account.move", "account.invoice.report", "account.payment"} <= set(FINAL_STATE_FILTERS)


class TestBuildDomain:
    """Tests for build_domain()."""

    def test_report_entity_gets_exactly_three_clauses(self):
        """Two date clauses plus the injected final-state clause, nothing else."""
        base = [["date", ">=", "2025-07-01"], ["date", "<=", "2026-01-14"]]
        domain = build_domain("sale.report", base=base)
        assert domain == [
            ["date", ">=", "2025-07-01"],
            ["date", "<=", "2026-01-14"],
            ["state", "in", ["sale", "done"]],
        ]

    def test_explicit_state_replaces_default(self):
        domain = build_domain("sale.order", state="draft")
        assert domain == [["state", "=", "draft"]]

    def test_explicit_state_list(self):
        domain = build_domain("account.move", state=["draft", "posted"])
        assert domain == [["state", "in", ["draft", "posted"]]]

    def test_state_in_base_domain_replaces_default(self):
        domain = build_domain("sale.order", base=[["state", "=", "cancel"]])
        assert domain == [["state", "=", "cancel"]]

    def test_state_from_filter_phrase_replaces_default(self):
        domain = build_domain("sale.order", filter_text="quotations", today=TODAY)
        assert domain == [["state", "in", ["draft", "sent"]]]

    def test_non_report_entity_gets_no_state(self):
        assert build_domain("res.partner", base=[["customer_rank", ">", 0]]) == [["customer_rank", ">", 0]]

    def test_datetime_field_covers_whole_last_day(self):
        domain = build_domain("sale.order", date_range=OCTOBER)
        assert ["date_order", ">=", "2026-10-01 00:00:00"] in domain
        assert ["date_order", "<=", "2026-10-31 23:59:59"] in domain

    def test_date_field_uses_plain_dates(self):
        domain = build_domain("account.move", date_range=OCTOBER)
        assert ["invoice_date", ">=", "2026-10-01"] in domain
        assert ["invoice_date", "<=", "2026-10-31"] in domain

    def test_date_field_override(self):
        domain = build_domain("account.move", date_range=OCTOBER, date_field="invoice_date_due")
        assert ["invoice_date_due", ">=", "2026-10-01"] in domain

    def test_clause_order(self):
        domain = build_domain(
            "sale.order",
            base=[["user_id", "=", 2]],
            filter_text="customer: Acme",
            date_range=OCTOBER,
            today=TODAY,
        )
        assert domain[0] == ["user_id", "=", 2]
        assert domain[1] == ["partner_id", "ilike", "Acme"]
        assert domain[2][0] == domain[3][0] == "date_order"
        assert domain[4] == ["state", "in", ["sale", "done"]]

    def test_inputs_are_not_mutated(self):
        base = [("amount_total", ">", 10)]
        build_domain("sale.order", base=base)
        assert base == [("amount_total", ">", 10)]

    def test_operators_pass_through(self):
        domain = build_domain("res.partner", base=["|", ["name", "ilike", "a"], ["email", "ilike", "a"]])
        assert domain[0] == "|"

    def test_malformed_clause_raises(self):
        with pytest.raises(QueryEngineError) as exc_info:
            build_domain("sale.order", base=[["state", "="]])
        assert exc_info.value.code == "E-1005"

    def test_date_clauses_helper(self):
        assert date_clauses(OCTOBER, "date", False) == [
            ["date", ">=", "2026-10-01"], ["date", "<=", "2026-10-31"],
        ]
