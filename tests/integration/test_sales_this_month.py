"""End-to-end: stored credentials, tenant tools, ERP query and the response gate.

Covers the path an agent takes for "ventas por cliente este mes": the
tenant's tool is built from encrypted configuration, the query hits the
(fake) ERP with calendar-month bounds and the confirmed-state filter, and
the answer is checked against the tool result before it is shown.
"""

import json
from datetime import date
from unittest.mock import AsyncMock

import pytest

from erp_analyst.skills.loader import load_skills_for_tenant
from erp_analyst.skills.registry import build_default_registry
from erp_analyst.skills.tool_adapter import build_tool_definitions
from erp_analyst.validation.gate import ResponseGate
from erp_analyst.validation.models import ValidationAction
from tests.helpers.fake_odoo import group_row, has_clause

TODAY = date(2026, 10, 18)


@pytest.fixture
def sales_tool(tenant_store, odoo_factory, fake_odoo):
    tenant_store.save_integration(
        "acme", "odoo",
        url="https://acme.odoo.test", database="acme", username="bot@acme.test", secret="s3cret-api-key",
    )
    fake_odoo.on("sale.order", "read_group", [
        group_row("partner_id", "Beta SRL", "amount_total", 30000.0, 2, record_id=2),
        group_row("partner_id", "Acme Corp", "amount_total", 128000.0, 5, record_id=1),
        group_row("partner_id", "Gamma SA", "amount_total", 12000.0, 1, record_id=3),
    ])
    tenant_skills = load_skills_for_tenant(
        "acme", "user-1",
        store=tenant_store, registry=build_default_registry(odoo_factory), today=TODAY,
    )
    tools = {tool["name"]: tool for tool in build_tool_definitions(tenant_skills)}
    return tools["get_sales_by_customer"]


@pytest.mark.integration
class TestSalesByCustomerThisMonth:
    """Sales by customer for the current month, from tool call to approved answer."""

    @pytest.mark.asyncio
    async def test_query_uses_calendar_month_and_confirmed_states(self, sales_tool, fake_odoo):
        envelope = await sales_tool["handler"]({"period": "this month"})

        assert envelope["isError"] is False
        domain = fake_odoo.executed("read_group", model="sale.order")[0].domain
        assert has_clause(domain, "date_order", ">=", "2026-10-01 00:00:00")
        assert has_clause(domain, "date_order", "<=", "2026-10-31 23:59:59")
        assert has_clause(domain, "state", "in", ["sale", "done"])

    @pytest.mark.asyncio
    async def test_groups_ranked_descending(self, sales_tool):
        envelope = await sales_tool["handler"]({"period": "this month"})

        data = json.loads(envelope["content"][0]["text"])
        assert list(data["grouped"]) == ["Acme Corp", "Beta SRL", "Gamma SA"]
        assert data["total"] == 170000.0
        assert data["ranking"][0]["name"] == "Acme Corp"
        assert data["date_range"]["start"] == "2026-10-01"
        assert data["date_range"]["end"] == "2026-10-31"

    @pytest.mark.asyncio
    async def test_answer_checked_against_result(self, sales_tool):
        envelope = await sales_tool["handler"]({"period": "this month"})
        data = json.loads(envelope["content"][0]["text"])
        regenerate = AsyncMock(return_value="Acme Corp lidera las ventas del mes con $128.000.")
        gate = ResponseGate(regenerate)

        outcome = await gate.review("Cliente A lidera las ventas del mes con $128.000.", data)

        regenerate.assert_awaited_once()
        assert outcome.regenerations == 1
        assert outcome.prose.startswith("Acme Corp")
        assert outcome.validation.action is ValidationAction.SEND
