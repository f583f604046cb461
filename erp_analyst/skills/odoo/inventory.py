"""Product and stock skills.

Valuation and stock rankings read ``stock.quant`` restricted to internal
locations; low-stock checks read the product's computed ``qty_available``.
"""

import asyncio
from typing import ClassVar

from pydantic import BaseModel, Field

from erp_analyst.engine.models import MAX_LIMIT, QueryOperation, QuerySpec
from erp_analyst.skills.base import OdooSkill, SkillContext
from erp_analyst.skills.odoo.common import Ranked, ranking

_PRODUCT_FIELDS = ["name", "default_code", "list_price", "qty_available", "uom_id"]

_INTERNAL_STOCK = [["location_id.usage", "=", "internal"]]


class SearchProductsInput(BaseModel):
    query: str = Field(..., min_length=2, max_length=100, description="Product name or internal reference")
    limit: int = Field(default=10, ge=1, le=50)


class LowStockInput(BaseModel):
    threshold: float = Field(default=10, ge=0, description="Stock level below which a product counts as low")
    storable_only: bool = Field(default=True, description="Ignore services and consumables")
    limit: int = Field(default=20, ge=1, le=100)


class StockValuationInput(BaseModel):
    category: str | None = Field(default=None, max_length=100, description="Product category (partial match)")
    limit: int = Field(default=10, ge=1, le=50, description="Number of most valuable products to list")


class TopStockInput(BaseModel):
    warehouse: str | None = Field(default=None, max_length=100, description="Warehouse name (partial match)")
    limit: int = Field(default=10, ge=1, le=50)


class StockValuationOutput(BaseModel):
    total_value: float
    total_quantity: float
    product_count: int
    top_products: list[Ranked]


class StockRanking(BaseModel):
    products: list[Ranked]
    total_quantity: float
    product_count: int


class ProductList(BaseModel):
    products: list[dict]
    count: int


class SearchProducts(OdooSkill):
    name: ClassVar[str] = "search_products"
    description: ClassVar[str] = (
        "Find products by name or internal reference with price and stock on hand. Use for "
        "'do we have X', 'price of X', 'buscar producto'."
    )
    input_model = SearchProductsInput
    tags = ("products", "inventory", "lookup")
    priority = 5

    async def execute(self, params: SearchProductsInput, context: SkillContext) -> ProductList:
        spec = QuerySpec(
            model="product.product",
            operation=QueryOperation.LIST,
            domain=["|", ["name", "ilike", params.query], ["default_code", "ilike", params.query]],
            fields=_PRODUCT_FIELDS,
            order="name asc",
            limit=params.limit,
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)
        return ProductList(products=result.records, count=result.count)


class GetLowStockProducts(OdooSkill):
    name: ClassVar[str] = "get_low_stock_products"
    description: ClassVar[str] = (
        "Products whose stock on hand is below a threshold, lowest first. Use for 'what should we "
        "reorder', 'low stock', 'productos con poco stock'."
    )
    input_model = LowStockInput
    tags = ("inventory", "stock", "purchasing")
    priority = 6

    async def execute(self, params: LowStockInput, context: SkillContext) -> ProductList:
        domain: list = [["qty_available", "<", params.threshold]]
        if params.storable_only:
            domain.append(["type", "=", "product"])

        # qty_available is computed, so the server can neither order nor
        # limit by it: read every match, then rank locally
        matches: list[dict] = []
        count = 0
        async with self.engine(context) as engine:
            while True:
                spec = QuerySpec(
                    model="product.product",
                    operation=QueryOperation.LIST,
                    domain=domain,
                    fields=_PRODUCT_FIELDS,
                    order="id asc",
                    limit=MAX_LIMIT,
                    offset=len(matches) or None,
                )
                page = await self.query(engine, spec)
                matches.extend(page.records)
                count = page.count
                if not page.records or len(matches) >= count:
                    break

        products = sorted(matches, key=lambda p: p.get("qty_available") or 0)
        return ProductList(products=products[:params.limit], count=count)


class GetStockValuation(OdooSkill):
    name: ClassVar[str] = "get_stock_valuation"
    description: ClassVar[str] = (
        "Value of the stock on hand in internal locations, with total quantity and the most "
        "valuable products, optionally for one category. Use for 'inventory value', "
        "'how much stock do we have in money', 'valor del inventario'."
    )
    input_model = StockValuationInput
    tags = ("inventory", "stock", "valuation")
    priority = 7

    async def execute(self, params: StockValuationInput, context: SkillContext) -> StockValuationOutput:
        domain = list(_INTERNAL_STOCK)
        if params.category:
            domain.append(["product_id.categ_id", "ilike", params.category])
        by_value = QuerySpec(
            model="stock.quant", domain=domain, group_by=["product_id"], amount_field="value", limit=params.limit,
        )
        quantities = QuerySpec(model="stock.quant", domain=domain)
        async with self.engine(context) as engine:
            valued, counted = await asyncio.gather(self.query(engine, by_value), self.query(engine, quantities))
        return StockValuationOutput(
            total_value=valued.total,
            total_quantity=counted.total,
            product_count=valued.group_count or 0,
            top_products=ranking(valued),
        )


class GetTopStockProducts(OdooSkill):
    name: ClassVar[str] = "get_top_stock_products"
    description: ClassVar[str] = (
        "Products with the most units on hand in internal locations, optionally in one warehouse. "
        "Use for 'what do we have most of', 'top stock', 'productos con mas stock'."
    )
    input_model = TopStockInput
    tags = ("inventory", "stock", "ranking")
    priority = 5

    async def execute(self, params: TopStockInput, context: SkillContext) -> StockRanking:
        domain = list(_INTERNAL_STOCK)
        if params.warehouse:
            domain.append(["location_id.warehouse_id", "ilike", params.warehouse])
        spec = QuerySpec(model="stock.quant", domain=domain, group_by=["product_id"], limit=params.limit)
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)
        return StockRanking(
            products=ranking(result), total_quantity=result.total, product_count=result.group_count or 0,
        )
