# Overview: Payment-method-specific sale terms as a tagged variant.

"""
Each payment method carries its own set of meaningful fields:

    order     -> optional bank routing (once goods are confirmed)
    cash      -> delivery_status: "preparing" (pack and ship) | "received" (handed over)
    transfer  -> bank routing
    card      -> bank routing
    credit    -> payment_due_date
    cod       -> nothing extra

parse_payment_terms() rejects fields that belong to a different method instead
of silently storing them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Union

from ..time_utils import parse_iso_date
from ..validation import ValidationError
from .workflow_service import SellingStatus


PAYMENT_METHODS = ("order", "cash", "transfer", "card", "credit", "cod")
DELIVERY_STATUSES = ("preparing", "received")

# Banks a customer may pay into (symbols as printed on the farm's receipts)
BANK_CODES = frozenset({
    "KBNK", "SCBA", "KTBA", "BBLA", "BAYA", "TTB", "UOB", "KKBA", "GSBA",
    "BAAC", "CIMB", "GHBA", "ICBC", "LHBANK", "TISCO", "SCBT", "TrueMoney", "PromptPay",
})

TERM_FIELDS = ("delivery_status", "bank_code", "bank_account", "payment_due_date")


@dataclass(frozen=True)
class BankRouting:
    bank_code: str
    bank_account: str | None = None


@dataclass(frozen=True)
class OrderTerms:
    bank: BankRouting | None = None
    method = "order"


@dataclass(frozen=True)
class CashTerms:
    delivery_status: str = "received"
    method = "cash"


@dataclass(frozen=True)
class TransferTerms:
    bank: BankRouting | None = None
    method = "transfer"


@dataclass(frozen=True)
class CardTerms:
    bank: BankRouting | None = None
    method = "card"


@dataclass(frozen=True)
class CreditTerms:
    payment_due_date: date | None = None
    method = "credit"


@dataclass(frozen=True)
class CodTerms:
    method = "cod"


PaymentTerms = Union[OrderTerms, CashTerms, TransferTerms, CardTerms, CreditTerms, CodTerms]

_BANK_METHODS = {"order": OrderTerms, "transfer": TransferTerms, "card": CardTerms}

# Methods whose payment is proven by a bank transfer slip
PROOF_OF_PAYMENT_METHODS = frozenset(_BANK_METHODS)

_ALLOWED_FIELDS = {
    "order": {"bank_code", "bank_account"},
    "cash": {"delivery_status"},
    "transfer": {"bank_code", "bank_account"},
    "card": {"bank_code", "bank_account"},
    "credit": {"payment_due_date"},
    "cod": set(),
}


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_bank(data: dict) -> BankRouting | None:
    bank_code = _text(data.get("bank_code"))
    bank_account = _text(data.get("bank_account"))
    if bank_code is None:
        if bank_account is not None:
            raise ValidationError("bank_code is required when bank_account is given")
        return None
    if bank_code not in BANK_CODES:
        raise ValidationError(f"Unknown bank_code '{bank_code}'")
    return BankRouting(bank_code=bank_code, bank_account=bank_account)


def parse_payment_terms(payment_method, data: dict | None = None) -> PaymentTerms:
    """
    Build the terms variant for ``payment_method`` from a flat payload.

    Only TERM_FIELDS keys with non-empty values are considered; any of them
    that is not meaningful for the method raises ValidationError.
    """
    method = _text(payment_method)
    if method is None:
        raise ValidationError("payment_method is required")
    method = method.lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment_method '{method}'. Must be one of: {', '.join(PAYMENT_METHODS)}"
        )

    data = data or {}
    supplied = {k for k in TERM_FIELDS if _text(data.get(k)) is not None}
    foreign = sorted(supplied - _ALLOWED_FIELDS[method])
    if foreign:
        raise ValidationError(
            f"Fields not allowed for payment_method '{method}': {', '.join(foreign)}"
        )

    if method in _BANK_METHODS:
        return _BANK_METHODS[method](bank=_parse_bank(data))

    if method == "cash":
        delivery_status = (_text(data.get("delivery_status")) or "received").lower()
        if delivery_status not in DELIVERY_STATUSES:
            raise ValidationError(
                f"Invalid delivery_status '{delivery_status}'. Must be one of: {', '.join(DELIVERY_STATUSES)}"
            )
        return CashTerms(delivery_status=delivery_status)

    if method == "credit":
        raw_due = data.get("payment_due_date")
        if isinstance(raw_due, date):
            return CreditTerms(payment_due_date=raw_due)
        try:
            due = parse_iso_date(_text(raw_due))
        except ValueError:
            raise ValidationError("payment_due_date must be an ISO-8601 date")
        return CreditTerms(payment_due_date=due)

    return CodTerms()


def terms_to_columns(terms: PaymentTerms) -> dict:
    """Flatten terms into Sale column values (fields of other methods are cleared)."""
    bank = getattr(terms, "bank", None)
    return {
        "payment_method": terms.method,
        "delivery_status": getattr(terms, "delivery_status", None),
        "bank_code": bank.bank_code if bank else None,
        "bank_account": bank.bank_account if bank else None,
        "payment_due_date": getattr(terms, "payment_due_date", None),
    }


def has_bank_info(terms: PaymentTerms) -> bool:
    return getattr(terms, "bank", None) is not None


def requires_proof_of_payment(terms: PaymentTerms) -> bool:
    return terms.method in PROOF_OF_PAYMENT_METHODS


def initial_status(terms: PaymentTerms) -> SellingStatus:
    """Status a new sale starts in, derived from how it is paid."""
    if isinstance(terms, OrderTerms):
        return SellingStatus.ORDER
    if isinstance(terms, CashTerms):
        if terms.delivery_status == "received":
            return SellingStatus.RECEIVED
        return SellingStatus.PREPARING
    if isinstance(terms, (CreditTerms, CodTerms)):
        return SellingStatus.PREPARING
    return SellingStatus.WAIT_PAYMENT


def requires_shipping_address(terms: PaymentTerms, has_products: bool) -> bool:
    """
    cash:   only when the goods are packed for delivery
    order:  once products are on the sale
    others: always
    """
    if isinstance(terms, CashTerms):
        return terms.delivery_status == "preparing"
    if isinstance(terms, OrderTerms):
        return has_products
    return True
