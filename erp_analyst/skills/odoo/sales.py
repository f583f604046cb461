"""Sales skills: totals, breakdowns, comparisons and pending orders.

Totals read confirmed orders only (``sale``/``done``); the query engine
injects that filter, so none of these skills build state clauses
themselves except where a narrower state is the point of the question.
"""

import asyncio
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, Field

from erp_analyst.engine.models import (
    Comparison,
    DateRange,
    GroupTotal,
    GroupVariation,
    Insight,
    QueryOperation,
    QuerySpec,
)
from erp_analyst.skills.base import OdooSkill, SkillContext
from erp_analyst.skills.odoo.common import Breakdown, PeriodInput, breakdown

FILTER_DESCRIPTION = (
    "Optional filter phrases joined by ',' or 'and', e.g. 'customer: Acme, amount > 1000'. "
    "Quote names that contain commas, e.g. 'customer: \"Smith, Jones and Co\"'. "
    "Unknown phrases are rejected with the accepted vocabulary."
)


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class SalesTotalInput(PeriodInput):
    filter: str | None = Field(default=None, description=FILTER_DESCRIPTION)
    compare: bool = Field(default=False, description="Also compare against the previous period")


class SalesBreakdownInput(PeriodInput):
    limit: int = Field(default=10, ge=1, le=100, description="Number of groups to show")
    filter: str | None = Field(default=None, description=FILTER_DESCRIPTION)
    compare: bool = Field(default=False, description="Add per-group variation against the previous period")


class TopCustomersInput(PeriodInput):
    limit: int = Field(default=5, ge=1, le=50)


class ComparisonDimension(str, Enum):
    NONE = "none"
    CUSTOMER = "customer"
    PRODUCT = "product"
    SELLER = "seller"


_DIMENSION_FIELDS = {
    ComparisonDimension.CUSTOMER: "partner_id",
    ComparisonDimension.PRODUCT: "product_id",
    ComparisonDimension.SELLER: "user_id",
}


class CompareSalesInput(PeriodInput):
    group_by: ComparisonDimension = Field(
        default=ComparisonDimension.NONE, description="Optional breakdown of the comparison",
    )
    limit: int = Field(default=10, ge=1, le=100)
    filter: str | None = Field(default=None, description=FILTER_DESCRIPTION)


class ProductMetric(str, Enum):
    REVENUE = "revenue"
    QUANTITY = "quantity"


# sale.report measures: tax-included amount and ordered quantity
_METRIC_FIELDS = {
    ProductMetric.REVENUE: "price_total",
    ProductMetric.QUANTITY: "product_uom_qty",
}


class TopProductsInput(PeriodInput):
    limit: int = Field(default=10, ge=1, le=50)
    order_by: ProductMetric = Field(default=ProductMetric.REVENUE, description="Rank by 'revenue' or 'quantity'")


class HistoryGrouping(str, Enum):
    NONE = "none"
    MONTH = "month"
    CUSTOMER = "customer"


_HISTORY_FIELDS = {
    HistoryGrouping.MONTH: "date:month",
    HistoryGrouping.CUSTOMER: "partner_id",
}


class ProductSalesHistoryInput(PeriodInput):
    product: str = Field(..., min_length=2, max_length=100, description="Product name or internal reference")
    group_by: HistoryGrouping = Field(default=HistoryGrouping.MONTH)
    limit: int = Field(default=24, ge=1, le=100, description="Number of months or customers to show")


class PendingType(str, Enum):
    DELIVERY = "delivery"
    INVOICE = "invoice"
    ALL = "all"


class PendingOrdersInput(BaseModel):
    pending_type: PendingType = Field(
        default=PendingType.DELIVERY,
        description="'delivery' (not fully delivered), 'invoice' (not fully invoiced) or 'all'",
    )
    limit: int = Field(default=20, ge=1, le=100)


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------


class SalesTotalOutput(BaseModel):
    total: float
    order_count: int
    average_order: float
    date_range: DateRange | None = None
    comparison: Comparison | None = None
    insights: list[Insight] | None = None


class SalesComparisonOutput(BaseModel):
    comparison: Comparison | None
    total: float
    count: int
    grouped: dict[str, GroupTotal] | None = None
    group_variations: list[GroupVariation] | None = None
    insights: list[Insight] | None = None


class ProductSales(BaseModel):
    rank: int
    name: str
    revenue: float
    quantity: float


class TopProductsOutput(BaseModel):
    products: list[ProductSales]
    total_revenue: float
    total_quantity: float
    product_count: int
    date_range: DateRange | None = None


class HistoryRow(BaseModel):
    label: str
    revenue: float
    quantity: float
    count: int


class ProductSalesHistoryOutput(BaseModel):
    product: str
    total_revenue: float
    total_quantity: float
    line_count: int
    history: list[HistoryRow] | None = None
    date_range: DateRange | None = None


class PendingOrdersOutput(BaseModel):
    orders: list[dict]
    count: int
    total_amount: float


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


class GetSalesTotal(OdooSkill):
    name: ClassVar[str] = "get_sales_total"
    description: ClassVar[str] = (
        "Total confirmed sales for a period: amount, number of orders and average order value. "
        "Use for 'how much did we sell', 'total sales', 'cuanto vendimos', 'facturacion del mes'."
    )
    input_model = SalesTotalInput
    tags = ("sales", "totals")
    priority = 15

    async def execute(self, params: SalesTotalInput, context: SkillContext) -> SalesTotalOutput:
        spec = QuerySpec(model="sale.order", filter=params.filter, **params.period_kwargs())
        async with self.engine(context) as engine:
            result = await self.query(engine, spec, compare=params.compare)
        return SalesTotalOutput(
            total=result.total,
            order_count=result.count,
            average_order=round(result.total / result.count, 2) if result.count else 0.0,
            date_range=result.date_range,
            comparison=result.comparison,
            insights=result.insights,
        )


class _SalesBreakdown(OdooSkill):
    model: ClassVar[str] = "sale.order"
    group_field: ClassVar[str]
    input_model = SalesBreakdownInput

    async def execute(self, params: SalesBreakdownInput, context: SkillContext) -> Breakdown:
        spec = QuerySpec(
            model=self.model,
            group_by=[self.group_field],
            limit=params.limit,
            filter=params.filter,
            **params.period_kwargs(),
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec, compare=params.compare)
        return breakdown(result)


class GetSalesByCustomer(_SalesBreakdown):
    name: ClassVar[str] = "get_sales_by_customer"
    description: ClassVar[str] = (
        "Confirmed sales grouped by customer, ranked by amount. Use for 'sales by customer', "
        "'best clients', 'ventas por cliente'."
    )
    group_field = "partner_id"
    tags = ("sales", "customers", "ranking")
    priority = 10


class GetSalesByProduct(_SalesBreakdown):
    name: ClassVar[str] = "get_sales_by_product"
    description: ClassVar[str] = (
        "Confirmed sales grouped by product, ranked by amount. Use for 'best selling products', "
        "'sales by product', 'productos mas vendidos'."
    )
    model = "sale.report"
    group_field = "product_id"
    tags = ("sales", "products", "ranking")
    priority = 10


class GetSalesBySeller(_SalesBreakdown):
    name: ClassVar[str] = "get_sales_by_seller"
    description: ClassVar[str] = (
        "Confirmed sales grouped by salesperson. Use for 'sales by seller', 'best salesperson', "
        "'ventas por vendedor'."
    )
    group_field = "user_id"
    tags = ("sales", "team", "ranking")
    priority = 8


class GetTopCustomers(OdooSkill):
    name: ClassVar[str] = "get_top_customers"
    description: ClassVar[str] = (
        "Top N customers by confirmed sales, defaulting to the current year. Use for "
        "'top customers', 'who buys the most', 'mejores clientes del año'."
    )
    input_model = TopCustomersInput
    tags = ("sales", "customers", "ranking")
    priority = 9

    async def execute(self, params: TopCustomersInput, context: SkillContext) -> Breakdown:
        spec = QuerySpec(
            model="sale.order",
            group_by=["partner_id"],
            limit=params.limit,
            **params.period_kwargs(default="this year"),
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)
        return breakdown(result)


class CompareSalesPeriods(OdooSkill):
    name: ClassVar[str] = "compare_sales_periods"
    description: ClassVar[str] = (
        "Compare confirmed sales of a period against the immediately preceding period of equal "
        "length, optionally by customer, product or seller. Use for 'vs last month', "
        "'did we grow', 'comparar ventas'."
    )
    input_model = CompareSalesInput
    tags = ("sales", "comparison", "trends")
    priority = 12

    async def execute(self, params: CompareSalesInput, context: SkillContext) -> SalesComparisonOutput:
        group_field = _DIMENSION_FIELDS.get(params.group_by)
        spec = QuerySpec(
            model="sale.order",
            group_by=[group_field] if group_field else [],
            limit=params.limit if group_field else None,
            filter=params.filter,
            **params.period_kwargs(),
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec, compare=True)
        return SalesComparisonOutput(
            comparison=result.comparison,
            total=result.total,
            count=result.count,
            grouped=result.grouped,
            group_variations=result.group_variations,
            insights=result.insights,
        )


class GetPendingSaleOrders(OdooSkill):
    name: ClassVar[str] = "get_pending_sale_orders"
    description: ClassVar[str] = (
        "Confirmed sale orders still waiting for delivery or invoicing. Use for 'pending orders', "
        "'orders to deliver', 'pedidos pendientes de entrega'."
    )
    input_model = PendingOrdersInput
    tags = ("sales", "orders", "pending")
    priority = 7

    _PENDING_DOMAINS: ClassVar[dict[PendingType, list]] = {
        PendingType.DELIVERY: [["delivery_status", "in", ["pending", "partial"]]],
        PendingType.INVOICE: [["invoice_status", "=", "to invoice"]],
        PendingType.ALL: [
            "|",
            ["delivery_status", "in", ["pending", "partial"]],
            ["invoice_status", "=", "to invoice"],
        ],
    }

    async def execute(self, params: PendingOrdersInput, context: SkillContext) -> PendingOrdersOutput:
        base = self._PENDING_DOMAINS[params.pending_type]
        listing = QuerySpec(
            model="sale.order",
            operation=QueryOperation.LIST,
            domain=base,
            state="sale",
            fields=["name", "partner_id", "date_order", "amount_total", "delivery_status", "invoice_status"],
            order="date_order asc",
            limit=params.limit,
        )
        totals = QuerySpec(model="sale.order", domain=base, state="sale")
        async with self.engine(context) as engine:
            orders, total = await asyncio.gather(self.query(engine, listing), self.query(engine, totals))
        return PendingOrdersOutput(orders=orders.records, count=orders.count, total_amount=total.total)


class GetTopProducts(OdooSkill):
    name: ClassVar[str] = "get_top_products"
    description: ClassVar[str] = (
        "Best-selling products of a period with both revenue and quantity sold, ranked by either. "
        "Use for 'top products', 'what sells most', 'best sellers by units', 'que vendemos mas'."
    )
    input_model = TopProductsInput
    tags = ("sales", "products", "ranking")
    priority = 9

    async def execute(self, params: TopProductsInput, context: SkillContext) -> TopProductsOutput:
        period = params.period_kwargs()
        specs = {
            metric: QuerySpec(model="sale.report", group_by=["product_id"], amount_field=field, **period)
            for metric, field in _METRIC_FIELDS.items()
        }
        async with self.engine(context) as engine:
            revenue, quantity = await asyncio.gather(
                self.query(engine, specs[ProductMetric.REVENUE]),
                self.query(engine, specs[ProductMetric.QUANTITY]),
            )

        ranked = revenue if params.order_by is ProductMetric.REVENUE else quantity
        revenue_by_product = revenue.grouped or {}
        quantity_by_product = quantity.grouped or {}
        products = [
            ProductSales(
                rank=position,
                name=label,
                revenue=round(revenue_by_product[label].total, 2) if label in revenue_by_product else 0.0,
                quantity=quantity_by_product[label].total if label in quantity_by_product else 0.0,
            )
            for position, label in enumerate(list(ranked.grouped or {})[:params.limit], start=1)
        ]
        return TopProductsOutput(
            products=products,
            total_revenue=revenue.total,
            total_quantity=quantity.total,
            product_count=ranked.group_count or 0,
            date_range=revenue.date_range,
        )


class GetProductSalesHistory(OdooSkill):
    name: ClassVar[str] = "get_product_sales_history"
    description: ClassVar[str] = (
        "Sales of one product over a period (default this year): revenue and quantity, by month "
        "or by customer. Use for 'how much of X did we sell', 'sales history of X', "
        "'cuanto vendimos de X por mes'."
    )
    input_model = ProductSalesHistoryInput
    tags = ("sales", "products", "history")
    priority = 7

    async def execute(self, params: ProductSalesHistoryInput, context: SkillContext) -> ProductSalesHistoryOutput:
        group_field = _HISTORY_FIELDS.get(params.group_by)
        period = params.period_kwargs(default="this year")
        specs = [
            QuerySpec(
                model="sale.report",
                domain=[["product_id", "ilike", params.product]],
                group_by=[group_field] if group_field else [],
                amount_field=_METRIC_FIELDS[metric],
                **period,
            )
            for metric in (ProductMetric.REVENUE, ProductMetric.QUANTITY)
        ]
        async with self.engine(context) as engine:
            revenue, quantity = await asyncio.gather(*(self.query(engine, spec) for spec in specs))

        history = None
        if group_field:
            quantities = quantity.grouped or {}
            history = [
                HistoryRow(
                    label=label,
                    revenue=round(group.total, 2),
                    quantity=quantities[label].total if label in quantities else 0.0,
                    count=group.count,
                )
                for label, group in list((revenue.grouped or {}).items())[:params.limit]
            ]
        return ProductSalesHistoryOutput(
            product=params.product,
            total_revenue=revenue.total,
            total_quantity=quantity.total,
            line_count=revenue.count,
            history=history,
            date_range=revenue.date_range,
        )
