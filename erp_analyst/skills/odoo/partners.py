"""Customer skills: new customers and customer lookup."""

from typing import ClassVar

from pydantic import BaseModel, Field

from erp_analyst.engine.models import DateRange, ListResult, QueryOperation, QuerySpec
from erp_analyst.skills.base import OdooSkill, SkillContext
from erp_analyst.skills.odoo.common import PeriodInput

_CUSTOMER_FIELDS = ["name", "email", "phone", "city", "vat"]


class NewCustomersInput(PeriodInput):
    include_details: bool = Field(default=False, description="Include email, phone and city")
    limit: int = Field(default=50, ge=1, le=200)


class SearchCustomersInput(BaseModel):
    query: str = Field(..., min_length=2, max_length=100, description="Name, email or tax id fragment")
    limit: int = Field(default=10, ge=1, le=50)


class CustomerList(BaseModel):
    customers: list[dict]
    count: int
    date_range: DateRange | None = None


def _customer_list(result: ListResult) -> CustomerList:
    return CustomerList(customers=result.records, count=result.count, date_range=result.date_range)


class GetNewCustomers(OdooSkill):
    name: ClassVar[str] = "get_new_customers"
    description: ClassVar[str] = (
        "Customers created in a period, newest first. Use for 'new customers this month', "
        "'how many clients did we gain', 'clientes nuevos'."
    )
    input_model = NewCustomersInput
    tags = ("customers", "growth")
    priority = 6

    async def execute(self, params: NewCustomersInput, context: SkillContext) -> CustomerList:
        fields = ["name", "create_date"]
        if params.include_details:
            fields += ["email", "phone", "city"]
        spec = QuerySpec(
            model="res.partner",
            operation=QueryOperation.LIST,
            domain=[["customer_rank", ">", 0]],
            fields=fields,
            order="create_date desc",
            limit=params.limit,
            **params.period_kwargs(),
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)
        return _customer_list(result)


class SearchCustomers(OdooSkill):
    name: ClassVar[str] = "search_customers"
    description: ClassVar[str] = (
        "Find customers by name, email or tax id. Use to resolve a customer mentioned by the user "
        "before asking for their figures ('buscar cliente')."
    )
    input_model = SearchCustomersInput
    tags = ("customers", "lookup")
    priority = 5

    async def execute(self, params: SearchCustomersInput, context: SkillContext) -> CustomerList:
        spec = QuerySpec(
            model="res.partner",
            operation=QueryOperation.LIST,
            domain=[
                ["customer_rank", ">", 0],
                "|", "|",
                ["name", "ilike", params.query],
                ["email", "ilike", params.query],
                ["vat", "ilike", params.query],
            ],
            fields=_CUSTOMER_FIELDS,
            order="name asc",
            limit=params.limit,
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)
        return _customer_list(result)
