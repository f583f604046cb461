"""Constrained free-text filter translation.

Converts a small, per-model vocabulary of filter phrases into domain
clauses. Phrases are separated by commas, semicolons, "and" or "y"; each
phrase must be either a keyword ("confirmed", "vencidas", "vendor bills")
or a prefixed value ("customer: Acme", "amount > 5000"). A conjunction
inside an unquoted prefixed value ("customer: Pérez y Asociados") stays
part of the value unless the words after it form a phrase of their own.
Anything else is rejected with a descriptive error; nothing is guessed.
"""

import re
from collections.abc import Callable
from datetime import date
from typing import Any

from erp_analyst.engine.entities import get_profile
from erp_analyst.engine.models import QueryEngineError
from erp_analyst.engine.periods import normalize_token

ClauseBuilder = Callable[[date], list[list[Any]]]


def _const(*clauses: tuple[str, str, Any]) -> ClauseBuilder:
    def build(today: date) -> list[list[Any]]:
        return [
            [field, op, list(value) if isinstance(value, tuple) else value]
            for field, op, value in clauses
        ]
    return build


def _overdue_invoices(today: date) -> list[list[Any]]:
    return [
        ["invoice_date_due", "<", today.isoformat()],
        ["payment_state", "in", ["not_paid", "partial"]],
    ]


def _late_pickings(today: date) -> list[list[Any]]:
    return [
        ["scheduled_date", "<", f"{today.isoformat()} 00:00:00"],
        ["state", "not in", ["done", "cancel"]],
    ]


def _keywords(builder: ClauseBuilder, *phrases: str) -> dict[str, ClauseBuilder]:
    return {phrase: builder for phrase in phrases}


# ---------------------------------------------------------------------------
# Keyword vocabularies
# ---------------------------------------------------------------------------

_SALE_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("state", "in", ("sale", "done"))),
                "confirmed", "confirmadas", "confirmados"),
    **_keywords(_const(("state", "in", ("draft", "sent"))),
                "quotations", "quotation", "draft", "presupuestos", "cotizaciones", "borrador"),
    **_keywords(_const(("state", "=", "cancel")),
                "cancelled", "canceled", "canceladas", "cancelados"),
    **_keywords(_const(("state", "=", "done")), "locked", "done", "bloqueadas"),
}

_SALE_INVOICE_STATUS_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("invoice_status", "=", "to invoice")),
                "to invoice", "a facturar", "pendientes de facturar"),
    **_keywords(_const(("invoice_status", "=", "invoiced")),
                "invoiced", "facturadas", "facturados"),
}

_PURCHASE_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("state", "in", ("purchase", "done"))),
                "confirmed", "confirmadas", "confirmados"),
    **_keywords(_const(("state", "in", ("draft", "sent", "to approve"))),
                "rfq", "draft", "borrador", "solicitudes de presupuesto"),
    **_keywords(_const(("state", "=", "to approve")), "to approve", "por aprobar"),
    **_keywords(_const(("state", "=", "cancel")),
                "cancelled", "canceled", "canceladas", "cancelados"),
}

_INVOICE_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("state", "=", "posted")), "posted", "publicadas", "validadas"),
    **_keywords(_const(("state", "=", "draft")), "draft", "borrador"),
    **_keywords(_const(("state", "=", "cancel")), "cancelled", "canceled", "canceladas"),
    **_keywords(_const(("payment_state", "in", ("paid", "in_payment"))),
                "paid", "pagadas", "cobradas"),
    **_keywords(_const(("payment_state", "in", ("not_paid", "partial"))),
                "unpaid", "impagas", "no pagadas", "pendientes de pago"),
    **_keywords(_const(("payment_state", "=", "partial")),
                "partial", "partially paid", "parcial", "parcialmente pagadas"),
    **_keywords(_const(("move_type", "=", "out_invoice")),
                "customer invoices", "facturas de cliente", "facturas de venta"),
    **_keywords(_const(("move_type", "=", "in_invoice")),
                "vendor bills", "supplier invoices", "facturas de proveedor", "facturas de compra"),
    **_keywords(_const(("move_type", "in", ("out_refund", "in_refund"))),
                "credit notes", "refunds", "notas de credito"),
}

_OVERDUE_KEYWORDS: dict[str, ClauseBuilder] = _keywords(
    _overdue_invoices, "overdue", "vencidas", "vencidos", "atrasadas",
)

_PAYMENT_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("payment_type", "=", "inbound")),
                "inbound", "received", "cobros", "recibidos", "cobrados"),
    **_keywords(_const(("payment_type", "=", "outbound")),
                "outbound", "sent", "enviados", "pagos realizados"),
    **_keywords(_const(("partner_type", "=", "customer")), "customer payments", "pagos de clientes"),
    **_keywords(_const(("partner_type", "=", "supplier")),
                "supplier payments", "vendor payments", "pagos a proveedores"),
    **_keywords(_const(("state", "=", "posted")), "posted", "publicados", "validados"),
    **_keywords(_const(("state", "=", "draft")), "draft", "borrador"),
    **_keywords(_const(("state", "=", "cancel")), "cancelled", "canceled", "cancelados"),
}

_PICKING_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("state", "=", "assigned")), "ready", "listos", "preparados"),
    **_keywords(_const(("state", "=", "done")), "done", "validated", "hechos", "entregados"),
    **_keywords(_const(("state", "in", ("waiting", "confirmed"))), "waiting", "en espera"),
    **_keywords(_late_pickings, "late", "atrasados", "demorados"),
    **_keywords(_const(("picking_type_code", "=", "incoming")), "receipts", "recepciones"),
    **_keywords(_const(("picking_type_code", "=", "outgoing")), "deliveries", "entregas"),
}

_PARTNER_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("customer_rank", ">", 0)), "customers", "clientes"),
    **_keywords(_const(("supplier_rank", ">", 0)), "suppliers", "vendors", "proveedores"),
    **_keywords(_const(("is_company", "=", True)), "companies", "empresas"),
    **_keywords(_const(("is_company", "=", False)), "individuals", "personas"),
}

_PRODUCT_KEYWORDS: dict[str, ClauseBuilder] = {
    **_keywords(_const(("type", "=", "product")), "storable", "almacenables"),
    **_keywords(_const(("type", "=", "service")), "services", "servicios"),
    **_keywords(_const(("type", "=", "consu")), "consumables", "consumibles"),
}

MODEL_KEYWORDS: dict[str, dict[str, ClauseBuilder]] = {
    "sale.order": {**_SALE_KEYWORDS, **_SALE_INVOICE_STATUS_KEYWORDS},
    "sale.order.line": {**_SALE_KEYWORDS, **_SALE_INVOICE_STATUS_KEYWORDS},
    "sale.report": _SALE_KEYWORDS,
    "purchase.order": _PURCHASE_KEYWORDS,
    "purchase.order.line": _PURCHASE_KEYWORDS,
    "purchase.report": _PURCHASE_KEYWORDS,
    "account.move": {**_INVOICE_KEYWORDS, **_OVERDUE_KEYWORDS},
    "account.invoice.report": _INVOICE_KEYWORDS,
    "account.payment": _PAYMENT_KEYWORDS,
    "stock.picking": _PICKING_KEYWORDS,
    "res.partner": _PARTNER_KEYWORDS,
    "product.product": _PRODUCT_KEYWORDS,
}

# Models with a salesperson field usable by "seller: <name>"
_SELLER_FIELDS: dict[str, str] = {
    "sale.order": "user_id",
    "sale.report": "user_id",
    "sale.order.line": "salesman_id",
    "account.move": "invoice_user_id",
}

# ---------------------------------------------------------------------------
# Prefixed phrases
# ---------------------------------------------------------------------------

_OUTSIDE_QUOTES = r'(?=(?:[^"]*"[^"]*")*[^"]*$)'
_SEPARATOR = re.compile(r"\s*(?:,(?!\d)|;)\s*" + _OUTSIDE_QUOTES)
_CONJUNCTION = re.compile(r"(\s+(?:and|y)\s+)" + _OUTSIDE_QUOTES, re.IGNORECASE)
_PREFIXED_VALUE = re.compile(r"^\w+\s*:")
_PARTNER_PREFIX = re.compile(
    r'^(?:partner|customer|client|cliente|supplier|vendor|proveedor)\s*:\s*"?(.+?)"?$', re.IGNORECASE,
)
_PRODUCT_PREFIX = re.compile(r'^(?:product|producto)\s*:\s*"?(.+?)"?$', re.IGNORECASE)
_SELLER_PREFIX = re.compile(r'^(?:seller|salesperson|vendedor)\s*:\s*"?(.+?)"?$', re.IGNORECASE)
_AMOUNT_PHRASE = re.compile(r"^(?:amount|monto|total|importe)\s*(>=|<=|>|<|=)\s*\$?\s*([\d.,]+)$", re.IGNORECASE)


def _parse_amount(raw: str) -> float | None:
    """Parse '5000', '5,000.50', '5.000' or '5.000,50'."""
    if re.fullmatch(r"\d{1,3}(?:\.\d{3})+(?:,\d+)?", raw):
        raw = raw.replace(".", "").replace(",", ".")
    elif re.fullmatch(r"\d+,\d{1,2}", raw):
        raw = raw.replace(",", ".")
    else:
        raw = raw.replace(",", "")
    try:
        return float(raw)
    except ValueError:
        return None


def split_phrases(text: str, is_phrase: Callable[[str], bool] | None = None) -> list[str]:
    """Split filter text into phrases, keeping quoted values intact.

    Commas and semicolons always separate phrases. "and"/"y" do too, except
    after a prefixed value when the words that follow are not a phrase of
    their own, so "customer: Pérez y Asociados" stays one phrase.

    Args:
        text: Raw filter text.
        is_phrase: Tells whether a fragment parses on its own. Without it
            every conjunction separates.
    """
    phrases: list[str] = []
    for chunk in _SEPARATOR.split(text.strip()):
        # Pieces alternate with the captured conjunctions
        parts = _CONJUNCTION.split(chunk.strip())
        current = parts[0]
        for conjunction, piece in zip(parts[1::2], parts[2::2]):
            if is_phrase is not None and _PREFIXED_VALUE.match(current) and not is_phrase(piece.strip()):
                current = f"{current}{conjunction}{piece}"
            else:
                phrases.append(current)
                current = piece
        phrases.append(current)
    return [phrase.strip() for phrase in phrases if phrase and phrase.strip()]


def describe_vocabulary(model: str) -> list[str]:
    """Every phrase form accepted for a model, for error messages and docs."""
    profile = get_profile(model)
    accepted = sorted(MODEL_KEYWORDS.get(model, {}))
    if profile.partner_field or model == "res.partner":
        accepted.append("customer: <name>")
    if profile.product_field or model == "product.product":
        accepted.append("product: <name>")
    if model in _SELLER_FIELDS:
        accepted.append("seller: <name>")
    if profile.amount_field:
        accepted.append("amount <op> <number>")
    return accepted


def _parse_phrase(phrase: str, model: str, today: date) -> list[list[Any]] | None:
    profile = get_profile(model)

    keyword = MODEL_KEYWORDS.get(model, {}).get(normalize_token(phrase))
    if keyword is not None:
        return keyword(today)

    match = _PARTNER_PREFIX.match(phrase)
    if match:
        if model == "res.partner":
            return [["name", "ilike", match.group(1).strip()]]
        if profile.partner_field:
            return [[profile.partner_field, "ilike", match.group(1).strip()]]
        return None

    match = _PRODUCT_PREFIX.match(phrase)
    if match:
        if model == "product.product":
            return [["name", "ilike", match.group(1).strip()]]
        if profile.product_field:
            return [[profile.product_field, "ilike", match.group(1).strip()]]
        return None

    match = _SELLER_PREFIX.match(phrase)
    if match and model in _SELLER_FIELDS:
        return [[_SELLER_FIELDS[model], "ilike", match.group(1).strip()]]

    match = _AMOUNT_PHRASE.match(phrase)
    if match and profile.amount_field:
        amount = _parse_amount(match.group(2))
        if amount is not None:
            return [[profile.amount_field, match.group(1), amount]]

    return None


def parse_filter(text: str | None, model: str, *, today: date) -> list[list[Any]]:
    """Translate free-text filter phrases into domain clauses.

    Args:
        text: Filter phrases, e.g. "unpaid, customer: Acme".
        model: Target ERP model; selects the vocabulary.
        today: Reference date for relative phrases such as "overdue".

    Returns:
        Domain clauses (AND-combined). Empty for empty text.

    Raises:
        QueryEngineError: E-1003 naming the first phrase outside the
            vocabulary and listing the accepted phrases.
    """
    if not text or not text.strip():
        return []
    def is_phrase(fragment: str) -> bool:
        return _parse_phrase(fragment, model, today) is not None

    clauses: list[list[Any]] = []
    for phrase in split_phrases(text, is_phrase):
        parsed = _parse_phrase(phrase, model, today)
        if parsed is None:
            raise QueryEngineError.from_code(
                "E-1003",
                phrase=phrase,
                model=model,
                accepted=", ".join(describe_vocabulary(model)) or "none",
            )
        clauses.extend(parsed)
    return clauses
