"""Purchase skills: purchase orders, spend by supplier and vendor bills."""

import asyncio
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from erp_analyst.engine.models import DateRange, QueryOperation, QuerySpec
from erp_analyst.skills.base import OdooSkill, SkillContext
from erp_analyst.skills.odoo.common import Breakdown, PeriodInput, breakdown


class PurchaseStateFilter(str, Enum):
    CONFIRMED = "confirmed"
    DRAFT = "draft"
    SENT = "sent"
    DONE = "done"
    CANCELLED = "cancel"
    ALL = "all"


# None keeps the engine's confirmed-only default (purchase/done)
_PURCHASE_STATES: dict[PurchaseStateFilter, str | list[str] | None] = {
    PurchaseStateFilter.CONFIRMED: None,
    PurchaseStateFilter.DRAFT: "draft",
    PurchaseStateFilter.SENT: "sent",
    PurchaseStateFilter.DONE: "done",
    PurchaseStateFilter.CANCELLED: "cancel",
    PurchaseStateFilter.ALL: ["draft", "sent", "to approve", "purchase", "done", "cancel"],
}


class PurchaseGrouping(str, Enum):
    NONE = "none"
    VENDOR = "vendor"


class PurchaseOrdersInput(PeriodInput):
    state: PurchaseStateFilter = Field(default=PurchaseStateFilter.CONFIRMED)
    group_by: PurchaseGrouping = Field(
        default=PurchaseGrouping.NONE, description="'none' lists orders, 'vendor' ranks suppliers",
    )
    limit: int = Field(default=20, ge=1, le=100)


class PurchaseOrdersOutput(BaseModel):
    total_amount: float
    order_count: int
    orders: list[dict] | None = None
    by_vendor: Breakdown | None = None
    date_range: DateRange | None = None


class PurchasesBySupplierInput(PeriodInput):
    limit: int = Field(default=10, ge=1, le=100)
    compare: bool = Field(default=False, description="Add per-supplier variation against the previous period")


class VendorBillsInput(PeriodInput):
    unpaid_only: bool = Field(default=False, description="Only bills with an outstanding balance")
    supplier: str | None = Field(default=None, description="Supplier name (partial match)")
    limit: int = Field(default=20, ge=1, le=100)


class VendorBillsOutput(BaseModel):
    bills: list[dict]
    count: int
    total_amount: float
    total_due: float
    date_range: DateRange | None = None


class GetPurchasesBySupplier(OdooSkill):
    name: ClassVar[str] = "get_purchases_by_supplier"
    description: ClassVar[str] = (
        "Confirmed purchases grouped by supplier, ranked by amount. Use for 'who do we buy from', "
        "'purchases by supplier', 'compras por proveedor'."
    )
    input_model = PurchasesBySupplierInput
    tags = ("purchases", "suppliers", "ranking")
    priority = 10

    async def execute(self, params: PurchasesBySupplierInput, context: SkillContext) -> Breakdown:
        spec = QuerySpec(
            model="purchase.order",
            group_by=["partner_id"],
            limit=params.limit,
            **params.period_kwargs(),
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec, compare=params.compare)
        return breakdown(result)


class GetVendorBills(OdooSkill):
    name: ClassVar[str] = "get_vendor_bills"
    description: ClassVar[str] = (
        "Posted vendor bills for a period with totals and outstanding balance. Use for "
        "'supplier invoices', 'bills to pay', 'facturas de proveedores'."
    )
    input_model = VendorBillsInput
    tags = ("purchases", "accounting", "payables")
    priority = 8

    async def execute(self, params: VendorBillsInput, context: SkillContext) -> VendorBillsOutput:
        base: list = [["move_type", "=", "in_invoice"]]
        if params.unpaid_only:
            base.append(["payment_state", "in", ["not_paid", "partial"]])
        if params.supplier:
            base.append(["partner_id", "ilike", params.supplier])
        period = params.period_kwargs()

        listing = QuerySpec(
            model="account.move",
            operation=QueryOperation.LIST,
            domain=base,
            fields=["name", "partner_id", "invoice_date", "invoice_date_due", "amount_total",
                    "amount_residual", "payment_state"],
            order="invoice_date desc",
            limit=params.limit,
            **period,
        )
        totals = QuerySpec(model="account.move", domain=base, **period)
        due = QuerySpec(model="account.move", domain=base, amount_field="amount_residual", **period)

        async with self.engine(context) as engine:
            bills, total, outstanding = await asyncio.gather(
                self.query(engine, listing), self.query(engine, totals), self.query(engine, due),
            )
        return VendorBillsOutput(
            bills=bills.records,
            count=bills.count,
            total_amount=total.total,
            total_due=outstanding.total,
            date_range=bills.date_range,
        )


class GetPurchaseOrders(OdooSkill):
    name: ClassVar[str] = "get_purchase_orders"
    description: ClassVar[str] = (
        "Purchase orders of a period (confirmed by default) with total spend, listed or ranked by "
        "vendor. Use for 'what did we buy this month', 'purchase orders', 'ordenes de compra'."
    )
    input_model = PurchaseOrdersInput
    tags = ("purchases", "orders")
    priority = 9

    async def execute(self, params: PurchaseOrdersInput, context: SkillContext) -> PurchaseOrdersOutput:
        state = _PURCHASE_STATES[params.state]
        period = params.period_kwargs()

        if params.group_by is PurchaseGrouping.VENDOR:
            spec = QuerySpec(
                model="purchase.order", group_by=["partner_id"], state=state, limit=params.limit, **period,
            )
            async with self.engine(context) as engine:
                result = await self.query(engine, spec)
            return PurchaseOrdersOutput(
                total_amount=result.total,
                order_count=result.count,
                by_vendor=breakdown(result),
                date_range=result.date_range,
            )

        listing = QuerySpec(
            model="purchase.order",
            operation=QueryOperation.LIST,
            fields=["name", "partner_id", "date_order", "amount_total", "state"],
            order="date_order desc",
            state=state,
            limit=params.limit,
            **period,
        )
        totals = QuerySpec(model="purchase.order", state=state, **period)
        async with self.engine(context) as engine:
            orders, total = await asyncio.gather(self.query(engine, listing), self.query(engine, totals))
        return PurchaseOrdersOutput(
            total_amount=total.total,
            order_count=total.count,
            orders=orders.records,
            date_range=total.date_range,
        )
