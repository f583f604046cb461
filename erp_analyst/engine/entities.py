"""Per-model defaults for the query engine.

Each profile names the field a period applies to, the field totals sum,
and the partner field used for "by customer/supplier" breakdowns.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class EntityProfile:
    """Defaults for one ERP model.

    Attributes:
        model: ERP model name.
        label: Human label used in insights.
        date_field: Field periods filter on.
        date_is_datetime: Whether date_field stores a datetime, in which case
            the end bound must cover the whole last day.
        amount_field: Field totals sum; None for count-only models.
        partner_field: Partner many2one, if any.
        product_field: Product many2one, if any.
        state_field: Workflow state field.
    """

    model: str
    label: str
    date_field: str
    date_is_datetime: bool
    amount_field: str | None = None
    partner_field: str | None = None
    product_field: str | None = None
    state_field: str = "state"


ENTITY_PROFILES: dict[str, EntityProfile] = {
    profile.model: profile
    for profile in (
        EntityProfile("sale.order", "sales", "date_order", True, "amount_total", "partner_id"),
        EntityProfile(
            "sale.order.line", "sales", "order_id.date_order", True,
            "price_total", "order_partner_id", "product_id",
        ),
        EntityProfile("sale.report", "sales", "date", True, "price_total", "partner_id", "product_id"),
        EntityProfile("purchase.order", "purchases", "date_order", True, "amount_total", "partner_id"),
        EntityProfile(
            "purchase.order.line", "purchases", "order_id.date_order", True,
            "price_total", "partner_id", "product_id",
        ),
        EntityProfile(
            "purchase.report", "purchases", "date_order", True, "price_total", "partner_id", "product_id",
        ),
        EntityProfile("account.move", "invoices", "invoice_date", False, "amount_total", "partner_id"),
        EntityProfile(
            "account.invoice.report", "invoiced amount", "invoice_date", False,
            "price_subtotal", "partner_id", "product_id",
        ),
        EntityProfile("account.payment", "payments", "date", False, "amount", "partner_id"),
        EntityProfile("stock.picking", "transfers", "scheduled_date", True, None, "partner_id"),
        EntityProfile("stock.quant", "stock", "in_date", True, "quantity", None, "product_id"),
        EntityProfile("product.product", "products", "create_date", True, None, None),
        EntityProfile("res.partner", "contacts", "create_date", True, None, None),
    )
}


def get_profile(model: str) -> EntityProfile:
    """Return the profile for a model, or a generic one for unknown models."""
    profile = ENTITY_PROFILES.get(model)
    if profile is not None:
        return profile
    return EntityProfile(model, model, "create_date", True)
