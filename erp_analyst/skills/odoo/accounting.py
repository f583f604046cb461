"""Accounting skills: receivables, aging, invoicing, collections and cash.

Queries on ``account.move`` and ``account.payment`` are restricted to
posted documents by the engine; journal-item queries
(``account.move.line``) filter on ``parent_state`` themselves.
"""

import asyncio
from datetime import date, timedelta
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field, PositiveInt

from erp_analyst.engine.aggregation import group_label
from erp_analyst.engine.models import AggregationResult, DateRange, QueryOperation, QuerySpec
from erp_analyst.skills.base import OdooSkill, SkillContext
from erp_analyst.skills.odoo.common import Breakdown, PeriodInput, breakdown

_OPEN_CUSTOMER_INVOICES = [
    ["move_type", "=", "out_invoice"],
    ["payment_state", "in", ["not_paid", "partial"]],
]

_CUSTOMER_RECEIVABLE = [["move_type", "=", "out_invoice"], ["amount_residual", ">", 0]]

_POSTED_RECEIVABLE_LINES = [
    ["account_id.account_type", "=", "asset_receivable"],
    ["parent_state", "=", "posted"],
]

# (label, min days overdue, max days overdue); None leaves the side open
AGING_BUCKETS: tuple[tuple[str, int | None, int | None], ...] = (
    ("Not yet due", None, 0),
    ("1-30 days", 1, 30),
    ("31-60 days", 31, 60),
    ("61-90 days", 61, 90),
    ("Over 90 days", 91, None),
)


class OverdueInvoicesInput(BaseModel):
    min_days_overdue: int = Field(default=0, ge=0, le=3650, description="Only invoices at least this many days past due")
    group_by_customer: bool = Field(default=False, description="Return totals per customer instead of invoices")
    limit: int = Field(default=20, ge=1, le=100)


class DebtByCustomerInput(BaseModel):
    limit: int = Field(default=20, ge=1, le=100)


class PaymentGrouping(str, Enum):
    NONE = "none"
    CUSTOMER = "customer"
    JOURNAL = "journal"


_PAYMENT_GROUP_FIELDS = {
    PaymentGrouping.CUSTOMER: "partner_id",
    PaymentGrouping.JOURNAL: "journal_id",
}


class PaymentsReceivedInput(PeriodInput):
    group_by: PaymentGrouping = Field(default=PaymentGrouping.NONE)
    limit: int = Field(default=20, ge=1, le=100)


class OverdueInvoicesOutput(BaseModel):
    invoices: list[dict] | None = None
    by_customer: Breakdown | None = None
    count: int
    total_overdue: float


class GetOverdueInvoices(OdooSkill):
    name: ClassVar[str] = "get_overdue_invoices"
    description: ClassVar[str] = (
        "Posted customer invoices past their due date with an open balance. Use for "
        "'overdue invoices', 'who owes us late', 'facturas vencidas'."
    )
    input_model = OverdueInvoicesInput
    tags = ("accounting", "receivables", "collections")
    priority = 10

    async def execute(self, params: OverdueInvoicesInput, context: SkillContext) -> OverdueInvoicesOutput:
        async with self.engine(context) as engine:
            cutoff = engine.today() - timedelta(days=params.min_days_overdue)
            base = [*_OPEN_CUSTOMER_INVOICES, ["invoice_date_due", "<", cutoff.isoformat()]]

            if params.group_by_customer:
                spec = QuerySpec(
                    model="account.move", domain=base, group_by=["partner_id"],
                    amount_field="amount_residual", limit=params.limit,
                )
                result = await self.query(engine, spec)
                return OverdueInvoicesOutput(
                    by_customer=breakdown(result), count=result.count, total_overdue=result.total,
                )

            listing = QuerySpec(
                model="account.move",
                operation=QueryOperation.LIST,
                domain=base,
                fields=["name", "partner_id", "invoice_date", "invoice_date_due", "amount_residual"],
                order="invoice_date_due asc",
                limit=params.limit,
            )
            totals = QuerySpec(model="account.move", domain=base, amount_field="amount_residual")
            invoices, total = await asyncio.gather(self.query(engine, listing), self.query(engine, totals))
        return OverdueInvoicesOutput(invoices=invoices.records, count=invoices.count, total_overdue=total.total)


class GetDebtByCustomer(OdooSkill):
    name: ClassVar[str] = "get_debt_by_customer"
    description: ClassVar[str] = (
        "Outstanding receivable balance per customer, largest first. Use for 'who owes us', "
        "'accounts receivable by customer', 'deuda de clientes'."
    )
    input_model = DebtByCustomerInput
    tags = ("accounting", "receivables", "customers")
    priority = 10

    async def execute(self, params: DebtByCustomerInput, context: SkillContext) -> Breakdown:
        spec = QuerySpec(
            model="account.move",
            domain=_CUSTOMER_RECEIVABLE,
            group_by=["partner_id"],
            amount_field="amount_residual",
            limit=params.limit,
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)
        return breakdown(result)


class GetPaymentsReceived(OdooSkill):
    name: ClassVar[str] = "get_payments_received"
    description: ClassVar[str] = (
        "Posted incoming customer payments for a period, optionally by customer or journal. "
        "Use for 'collections this month', 'payments received', 'cobranzas'."
    )
    input_model = PaymentsReceivedInput
    tags = ("accounting", "collections", "cash")
    priority = 9

    async def execute(self, params: PaymentsReceivedInput, context: SkillContext) -> AggregationResult:
        group_field = _PAYMENT_GROUP_FIELDS.get(params.group_by)
        spec = QuerySpec(
            model="account.payment",
            domain=[["payment_type", "=", "inbound"]],
            group_by=[group_field] if group_field else [],
            limit=params.limit if group_field else None,
            **params.period_kwargs(),
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)
        return breakdown(result) if group_field else result


# ---------------------------------------------------------------------------
# Receivables overview and aging
# ---------------------------------------------------------------------------


class AccountsReceivableInput(PeriodInput):
    """Open customer invoices; the optional period applies to the due date."""

    overdue_only: bool = Field(default=False, description="Only invoices already past their due date")
    group_by_customer: bool = Field(default=False, description="Add the per-customer breakdown")
    limit: int = Field(default=20, ge=1, le=100, description="Customers to show when grouped")


class AccountsReceivableOutput(BaseModel):
    total_receivable: float
    total_overdue: float
    invoice_count: int
    customer_count: int
    by_customer: Breakdown | None = None
    date_range: DateRange | None = None


class ArAgingInput(BaseModel):
    group_by_customer: bool = Field(default=False, description="Add the per-customer breakdown")
    limit: int = Field(default=20, ge=1, le=100)


class AgingBucket(BaseModel):
    label: str
    min_days_overdue: int | None
    max_days_overdue: int | None
    total: float
    count: int


class ArAgingOutput(BaseModel):
    total: float
    count: int
    overdue_total: float
    overdue_percent: float
    buckets: list[AgingBucket]
    by_customer: Breakdown | None = None


def due_date_clauses(today: date, min_days: int | None, max_days: int | None) -> list[list[Any]]:
    """Domain on invoice_date_due selecting a days-overdue window, both ends inclusive."""
    clauses: list[list[Any]] = []
    if min_days is not None:
        clauses.append(["invoice_date_due", "<=", (today - timedelta(days=min_days)).isoformat()])
    if max_days is not None:
        clauses.append(["invoice_date_due", ">=", (today - timedelta(days=max_days)).isoformat()])
    return clauses


class GetAccountsReceivable(OdooSkill):
    name: ClassVar[str] = "get_accounts_receivable"
    description: ClassVar[str] = (
        "What customers owe us: open balance of posted customer invoices, how much of it is "
        "overdue, and how many customers owe. The optional period filters on the due date. Use for "
        "'accounts receivable', 'how much are we owed', 'cuentas por cobrar', 'cuanto nos deben'."
    )
    input_model = AccountsReceivableInput
    tags = ("accounting", "receivables", "collections")
    priority = 11

    async def execute(self, params: AccountsReceivableInput, context: SkillContext) -> AccountsReceivableOutput:
        period = params.period_kwargs(default=None)
        async with self.engine(context) as engine:
            past_due = ["invoice_date_due", "<", engine.today().isoformat()]
            base = [*_CUSTOMER_RECEIVABLE, past_due] if params.overdue_only else _CUSTOMER_RECEIVABLE
            open_by_customer = QuerySpec(
                model="account.move", domain=base, group_by=["partner_id"],
                amount_field="amount_residual", date_field="invoice_date_due",
                limit=params.limit, **period,
            )
            overdue = QuerySpec(
                model="account.move", domain=[*_CUSTOMER_RECEIVABLE, past_due],
                amount_field="amount_residual", date_field="invoice_date_due", **period,
            )
            grouped, late = await asyncio.gather(
                self.query(engine, open_by_customer), self.query(engine, overdue),
            )
        return AccountsReceivableOutput(
            total_receivable=grouped.total,
            total_overdue=late.total,
            invoice_count=grouped.count,
            customer_count=grouped.group_count or 0,
            by_customer=breakdown(grouped) if params.group_by_customer else None,
            date_range=grouped.date_range,
        )


class GetArAging(OdooSkill):
    name: ClassVar[str] = "get_ar_aging"
    description: ClassVar[str] = (
        "Aging of open customer invoices by days past due (not yet due, 1-30, 31-60, 61-90, "
        "over 90). Use for 'receivables aging', 'how late do customers pay', "
        "'antiguedad de cuentas por cobrar'."
    )
    input_model = ArAgingInput
    tags = ("accounting", "receivables", "aging")
    priority = 8

    async def execute(self, params: ArAgingInput, context: SkillContext) -> ArAgingOutput:
        async with self.engine(context) as engine:
            today = engine.today()
            specs = [
                QuerySpec(
                    model="account.move",
                    domain=[*_OPEN_CUSTOMER_INVOICES, *due_date_clauses(today, low, high)],
                    amount_field="amount_residual",
                )
                for _label, low, high in AGING_BUCKETS
            ]
            if params.group_by_customer:
                specs.append(QuerySpec(
                    model="account.move", domain=_OPEN_CUSTOMER_INVOICES, group_by=["partner_id"],
                    amount_field="amount_residual", limit=params.limit,
                ))
            results = await asyncio.gather(*(self.query(engine, spec) for spec in specs))

        buckets = [
            AgingBucket(
                label=label, min_days_overdue=low, max_days_overdue=high,
                total=result.total, count=result.count,
            )
            for (label, low, high), result in zip(AGING_BUCKETS, results)
        ]
        total = round(sum(b.total for b in buckets), 2)
        overdue_total = round(sum(b.total for b in buckets if b.min_days_overdue is not None), 2)
        return ArAgingOutput(
            total=total,
            count=sum(b.count for b in buckets),
            overdue_total=overdue_total,
            overdue_percent=round(overdue_total / total * 100, 1) if total else 0.0,
            buckets=buckets,
            by_customer=breakdown(results[-1]) if params.group_by_customer else None,
        )


# ---------------------------------------------------------------------------
# Customer ledger and invoicing
# ---------------------------------------------------------------------------


class CustomerBalanceInput(BaseModel):
    customer: str | None = Field(
        default=None, max_length=100, description="Customer name (partial match); every customer when omitted",
    )
    only_with_balance: bool = Field(default=True, description="Hide customers whose balance is zero or in their favour")
    limit: int = Field(default=20, ge=1, le=100)


class CustomerBalance(BaseModel):
    name: str
    balance: float


class CustomerBalanceOutput(BaseModel):
    customers: list[CustomerBalance]
    total_balance: float
    customer_count: int


class InvoiceStateFilter(str, Enum):
    POSTED = "posted"
    DRAFT = "draft"
    ALL = "all"


class InvoiceKind(str, Enum):
    CUSTOMER = "out_invoice"
    VENDOR = "in_invoice"
    ALL = "all"


# None keeps the engine's posted-only default; "all" never includes cancelled
_INVOICE_STATES: dict[InvoiceStateFilter, str | list[str] | None] = {
    InvoiceStateFilter.POSTED: None,
    InvoiceStateFilter.DRAFT: "draft",
    InvoiceStateFilter.ALL: ["draft", "posted"],
}


class InvoicesByCustomerInput(PeriodInput):
    limit: int = Field(default=10, ge=1, le=100)
    state: InvoiceStateFilter = Field(default=InvoiceStateFilter.POSTED)
    invoice_type: InvoiceKind = Field(
        default=InvoiceKind.CUSTOMER, description="'out_invoice' (customer), 'in_invoice' (vendor) or 'all'",
    )


class PartnerInvoices(BaseModel):
    name: str
    invoice_count: int
    total: float
    average_invoice: float


class InvoicesByCustomerOutput(BaseModel):
    customers: list[PartnerInvoices]
    grand_total: float
    invoice_count: int
    customer_count: int
    truncated: bool = False
    date_range: DateRange | None = None


class GetCustomerBalance(OdooSkill):
    name: ClassVar[str] = "get_customer_balance"
    description: ClassVar[str] = (
        "Ledger balance of each customer's receivable account (invoices minus payments and "
        "credit notes), largest first, optionally for one customer. Use for 'customer balance', "
        "'saldo de cliente', 'cuanto nos debe X'."
    )
    input_model = CustomerBalanceInput
    tags = ("accounting", "receivables", "customers")
    priority = 8

    async def execute(self, params: CustomerBalanceInput, context: SkillContext) -> CustomerBalanceOutput:
        domain = list(_POSTED_RECEIVABLE_LINES)
        if params.customer:
            domain.append(["partner_id", "ilike", params.customer])
        spec = QuerySpec(
            model="account.move.line", domain=domain, group_by=["partner_id"], amount_field="balance",
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)

        customers = [
            CustomerBalance(name=label, balance=round(group.total, 2))
            for label, group in (result.grouped or {}).items()
        ]
        if params.only_with_balance:
            customers = [c for c in customers if c.balance > 0]
        return CustomerBalanceOutput(
            customers=customers[:params.limit],
            total_balance=round(sum(c.balance for c in customers), 2),
            customer_count=len(customers),
        )


class GetInvoicesByCustomer(OdooSkill):
    name: ClassVar[str] = "get_invoices_by_customer"
    description: ClassVar[str] = (
        "Invoiced amount and number of invoices per customer for a period, largest first. Use for "
        "'invoicing by customer', 'how much did we bill each client', 'facturacion por cliente'."
    )
    input_model = InvoicesByCustomerInput
    tags = ("accounting", "invoices", "customers")
    priority = 8

    async def execute(self, params: InvoicesByCustomerInput, context: SkillContext) -> InvoicesByCustomerOutput:
        if params.invoice_type is InvoiceKind.ALL:
            domain = [["move_type", "in", [InvoiceKind.CUSTOMER.value, InvoiceKind.VENDOR.value]]]
        else:
            domain = [["move_type", "=", params.invoice_type.value]]
        spec = QuerySpec(
            model="account.move",
            domain=domain,
            group_by=["partner_id"],
            state=_INVOICE_STATES[params.state],
            limit=params.limit,
            **params.period_kwargs(),
        )
        async with self.engine(context) as engine:
            result = await self.query(engine, spec)

        customers = [
            PartnerInvoices(
                name=label,
                invoice_count=group.count,
                total=round(group.total, 2),
                average_invoice=round(group.total / group.count, 2) if group.count else 0.0,
            )
            for label, group in (result.grouped or {}).items()
        ]
        return InvoicesByCustomerOutput(
            customers=customers,
            grand_total=result.total,
            invoice_count=result.count,
            customer_count=result.group_count or 0,
            truncated=result.truncated,
            date_range=result.date_range,
        )


# ---------------------------------------------------------------------------
# Cash and banks
# ---------------------------------------------------------------------------


class CashBalanceInput(BaseModel):
    include_banks: bool = Field(default=False, description="Add bank accounts to the cash registers")
    journal_ids: list[PositiveInt] | None = Field(default=None, description="Restrict to these journal ids")


class JournalBalance(BaseModel):
    journal_id: int
    name: str
    type: str
    balance: float
    currency: str | None = Field(default=None, description="Journal currency; None means the company currency")


class CashBalanceOutput(BaseModel):
    total_cash: float
    total_bank: float
    grand_total: float
    journals: list[JournalBalance]


def _many2one_id(value: Any) -> int | None:
    if isinstance(value, (list, tuple)) and value:
        return value[0]
    return value if isinstance(value, int) and not isinstance(value, bool) else None


class GetCashBalance(OdooSkill):
    name: ClassVar[str] = "get_cash_balance"
    description: ClassVar[str] = (
        "Current balance of cash registers, optionally with bank accounts, per journal from posted "
        "journal items. Use for 'cash on hand', 'how much money do we have', 'saldo de caja', "
        "'cuanta plata hay en el banco'."
    )
    input_model = CashBalanceInput
    tags = ("accounting", "cash", "treasury")
    priority = 11

    async def execute(self, params: CashBalanceInput, context: SkillContext) -> CashBalanceOutput:
        domain: list = [["type", "in", ["cash", "bank"] if params.include_banks else ["cash"]]]
        if params.journal_ids:
            domain.append(["id", "in", list(params.journal_ids)])
        journals_spec = QuerySpec(
            model="account.journal",
            operation=QueryOperation.LIST,
            domain=domain,
            fields=["name", "type", "default_account_id", "currency_id"],
            order="sequence asc, id asc",
            limit=100,
        )
        async with self.engine(context) as engine:
            listing = await self.query(engine, journals_spec)
            # A journal without a default account has no balance to read
            journals = [j for j in listing.records if _many2one_id(j.get("default_account_id"))]
            balances = await asyncio.gather(*(
                self.query(engine, QuerySpec(
                    model="account.move.line",
                    domain=[
                        ["account_id", "=", _many2one_id(journal["default_account_id"])],
                        ["parent_state", "=", "posted"],
                    ],
                    amount_field="balance",
                ))
                for journal in journals
            ))

        rows = [
            JournalBalance(
                journal_id=journal["id"],
                name=journal.get("name") or "",
                type=journal.get("type") or "cash",
                balance=balance.total,
                currency=group_label(journal["currency_id"]) if journal.get("currency_id") else None,
            )
            for journal, balance in zip(journals, balances)
        ]
        rows.sort(key=lambda row: row.balance, reverse=True)
        total_cash = round(sum(r.balance for r in rows if r.type == "cash"), 2)
        total_bank = round(sum(r.balance for r in rows if r.type != "cash"), 2)
        return CashBalanceOutput(
            total_cash=total_cash,
            total_bank=total_bank,
            grand_total=round(total_cash + total_bank, 2),
            journals=rows,
        )
