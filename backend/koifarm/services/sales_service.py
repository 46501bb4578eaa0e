"""
Sales Service - order entry and status workflow

Every public operation follows the same order:
    load -> gate edits -> validate status -> resolve status -> apply -> side effects -> commit

Nothing is assigned to the sale before all checks pass, and the sale, its stock
movements and the buyer's recalculated CRM fields are committed together. Any
error rolls the session back.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleLine, Product, Member
from ..validation import ValidationError, coerce_cents, coerce_int
from . import member_service
from .payment_terms import (
    parse_payment_terms,
    terms_to_columns,
    has_bank_info,
    requires_proof_of_payment,
    requires_shipping_address,
    initial_status,
)
from .pricing_service import unit_price_for, PricingError
from .workflow_service import (
    SellingStatus,
    OrderSnapshot,
    RequiredFieldsMissing,
    InvalidTransition,
    FIELD_PRODUCTS,
    FIELD_BANK_INFO,
    FIELD_PAYMENT_SLIP,
    FIELD_SHIPPING_SLIP,
    validate_transition,
    missing_fields,
    resolve_status,
    ensure_editable,
    has_reached,
)


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleNotFound(SaleError):
    pass


class StaleSale(SaleError):
    """The client edited an older version of the sale than the one stored."""


# Payload key -> workflow field group it belongs to
GATED_FIELDS = {
    "lines": FIELD_PRODUCTS,
    "discount_cents": FIELD_PRODUCTS,
    "deposit_cents": FIELD_PRODUCTS,
    "delivery_fee_cents": FIELD_PRODUCTS,
    "bank_code": FIELD_BANK_INFO,
    "bank_account": FIELD_BANK_INFO,
}
FREE_FIELDS = {"note", "seller", "shipping_address", "shipping_province", "payment_due_date"}
FIXED_FIELDS = {"payment_method", "delivery_status", "member_id"}
AMOUNT_FIELDS = ("deposit_cents", "discount_cents", "delivery_fee_cents")

SLIP_KINDS = {
    "payment": ("has_payment_slip", FIELD_PAYMENT_SLIP),
    "shipping": ("has_shipping_slip", FIELD_SHIPPING_SLIP),
}


def _run_atomic(op):
    try:
        result = op()
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ================================================================================
# READS
# ================================================================================

def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise SaleNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    *,
    status: str | None = None,
    member_id: int | None = None,
    limit: int = 200,
) -> list[Sale]:
    q = db.session.query(Sale)
    if status is not None:
        q = q.filter(Sale.selling_status == SellingStatus.parse(status).value)
    if member_id is not None:
        q = q.filter(Sale.member_id == member_id)
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def snapshot_for(sale: Sale) -> OrderSnapshot:
    """Reduce a sale to the booleans the workflow validator reads."""
    terms = sale.payment_terms
    has_products = sale.has_products
    return OrderSnapshot(
        has_products=has_products,
        has_bank_info=has_bank_info(terms),
        has_payment_slip=bool(sale.has_payment_slip),
        has_shipping_slip=bool(sale.has_shipping_slip),
        has_shipping_address=sale.has_shipping_address,
        proof_of_payment_required=requires_proof_of_payment(terms),
        shipping_address_required=requires_shipping_address(terms, has_products),
    )


# ================================================================================
# INTERNAL STEPS
# ================================================================================

def _build_lines(raw_lines) -> list[SaleLine]:
    if raw_lines is None:
        return []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    lines = []
    for position, raw in enumerate(raw_lines):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{position}] must be an object")
        if raw.get("product_id") is None:
            raise ValidationError(f"lines[{position}].product_id is required")
        product_id = coerce_int(f"lines[{position}].product_id", raw.get("product_id"))
        quantity = coerce_int(f"lines[{position}].quantity", raw.get("quantity", 1))
        if quantity <= 0:
            raise ValidationError(f"lines[{position}].quantity must be > 0")

        product = db.session.get(Product, product_id)
        if product is None:
            raise SaleError("Product not found", details={"product_id": product_id})
        try:
            unit_price_cents = unit_price_for(product)
        except PricingError as e:
            raise SaleError(str(e), details={"product_id": product_id})

        lines.append(SaleLine(
            product_id=product.id,
            position=position,
            category=product.category,
            quantity=quantity,
            unit_price_cents=unit_price_cents,
        ))
    return lines


def _fixed_value(key: str, value):
    """Normalize a re-sent creation-time field the way create_sale stored it."""
    if key == "member_id":
        return coerce_int(key, value) if value is not None else None
    text = _text(value)
    return text.lower() if text is not None else None


def _line_signature(lines) -> list[tuple[int, int]]:
    return [(line.product_id, line.quantity) for line in lines]


def _raw_line_signature(raw_lines) -> list[tuple[int, int]]:
    if raw_lines is None:
        return []
    if not isinstance(raw_lines, list) or not all(isinstance(raw, dict) for raw in raw_lines):
        raise ValidationError("lines must be a list of objects")
    return [
        (coerce_int("product_id", raw.get("product_id")), coerce_int("quantity", raw.get("quantity", 1)))
        for raw in raw_lines
    ]


def _transition(sale: Sale, requested) -> SellingStatus:
    """
    Validate ``requested`` against the sale's current status, resolve slips and
    assign the resolved status. Returns the resolved status.
    """
    current = sale.status
    requested = SellingStatus.parse(requested)
    snapshot = snapshot_for(sale)

    validate_transition(current, requested, snapshot)

    resolved = resolve_status(requested, snapshot.has_payment_slip, snapshot.has_shipping_slip)
    if resolved != requested:
        errors = missing_fields(resolved, snapshot)
        if errors:
            raise RequiredFieldsMissing(resolved, errors)

    if resolved != current:
        current_app.logger.info(
            "Sale %s status %s -> %s (requested %s)",
            sale.id, current.value, resolved.value, requested.value,
        )
    sale.selling_status = resolved.value
    return resolved


def _deduct_stock(sale: Sale) -> None:
    """Take a committed sale's goods out of stock, once."""
    if sale.stock_deducted:
        return

    for line in sale.lines:
        product = db.session.get(Product, line.product_id)
        if product is None:
            continue
        if product.is_fish:
            product.sold = True
            continue

        balance = product.balance or 0
        if balance >= line.quantity:
            product.balance = balance - line.quantity
            product.sold = product.balance == 0
        else:
            current_app.logger.warning(
                "Insufficient stock for product %s on sale %s (on hand %s, sold %s)",
                product.sku, sale.id, balance, line.quantity,
            )
            product.balance = 0
            product.sold = True

    sale.stock_deducted = True


def _apply_side_effects(sale: Sale) -> None:
    if has_reached(sale.status, member_service.COMMITTED_STATUS):
        _deduct_stock(sale)
    # A reopened sale stays in purchase history, so its buyer is refreshed too
    member_service.recalculate_for_sale(sale)


# ================================================================================
# OPERATIONS
# ================================================================================

def create_sale(data: dict) -> Sale:
    """
    Create a sale in the status its payment method starts in.

    ``data["selling_status"]`` may pick a different starting status; it is
    validated like any transition out of 'none'.
    """
    def _op():
        terms = parse_payment_terms(data.get("payment_method"), data)

        member_id = data.get("member_id")
        if member_id is not None:
            member_id = coerce_int("member_id", member_id)
            if db.session.get(Member, member_id) is None:
                raise ValidationError(f"Member {member_id} not found")

        sale = Sale(
            member_id=member_id,
            seller=_text(data.get("seller")),
            note=_text(data.get("note")),
            shipping_address=_text(data.get("shipping_address")),
            shipping_province=_text(data.get("shipping_province")),
            selling_status=SellingStatus.NONE.value,
            has_payment_slip=False,
            has_shipping_slip=False,
            stock_deducted=False,
            **terms_to_columns(terms),
        )
        for key in AMOUNT_FIELDS:
            setattr(sale, key, coerce_cents(key, data.get(key)))
        sale.lines = _build_lines(data.get("lines"))

        requested = data.get("selling_status")
        requested = SellingStatus.parse(requested) if requested is not None else initial_status(terms)
        if requested is SellingStatus.NONE:
            raise InvalidTransition(SellingStatus.NONE, SellingStatus.NONE)
        _transition(sale, requested)

        db.session.add(sale)
        db.session.flush()
        prefix = current_app.config.get("SALE_DOCUMENT_PREFIX", "SO")
        sale.document_number = f"{prefix}-{sale.id:06d}"

        _apply_side_effects(sale)
        return sale

    return _run_atomic(_op)


def update_sale(sale_id: int, data: dict) -> Sale:
    """
    Edit a sale and optionally move its status (``data["selling_status"]``).

    Each changed field is checked against what the current status allows
    before anything is applied; unchanged values pass through.
    """
    def _op():
        sale = get_sale(sale_id)
        current = sale.status

        allowed = set(GATED_FIELDS) | FREE_FIELDS | FIXED_FIELDS | {"selling_status", "version_id"}
        unknown = sorted(k for k in data if k not in allowed)
        if unknown:
            raise ValidationError(f"Fields not allowed: {', '.join(unknown)}")

        if "version_id" in data and data["version_id"] is not None:
            if coerce_int("version_id", data["version_id"]) != sale.version_id:
                raise StaleSale("Sale was modified by someone else; reload and retry",
                                details={"version_id": sale.version_id})

        for key in FIXED_FIELDS:
            if key in data and _fixed_value(key, data[key]) != getattr(sale, key):
                raise ValidationError(f"{key} cannot be changed after the sale is created")

        # Gate every actual edit before touching the sale
        changes: dict = {}
        if "lines" in data and _raw_line_signature(data["lines"]) != _line_signature(sale.lines):
            ensure_editable(FIELD_PRODUCTS, current, field_name="products")
            changes["lines"] = _build_lines(data["lines"])
        for key in AMOUNT_FIELDS:
            if key in data:
                value = coerce_cents(key, data[key])
                if value != getattr(sale, key):
                    ensure_editable(GATED_FIELDS[key], current, field_name=key)
                    changes[key] = value
        bank_keys = [k for k in ("bank_code", "bank_account") if k in data and _text(data[k]) != getattr(sale, k)]
        if bank_keys:
            ensure_editable(FIELD_BANK_INFO, current, field_name=FIELD_BANK_INFO)
            merged = {
                "delivery_status": sale.delivery_status,
                "bank_code": sale.bank_code,
                "bank_account": sale.bank_account,
                "payment_due_date": sale.payment_due_date,
            }
            merged.update({k: data[k] for k in bank_keys})
            terms = parse_payment_terms(sale.payment_method, merged)
            changes.update({k: v for k, v in terms_to_columns(terms).items() if k in ("bank_code", "bank_account")})
        if "payment_due_date" in data:
            terms = parse_payment_terms(sale.payment_method, {"payment_due_date": data["payment_due_date"]})
            changes["payment_due_date"] = getattr(terms, "payment_due_date", None)
        for key in ("note", "seller", "shipping_address", "shipping_province"):
            if key in data:
                changes[key] = _text(data[key])

        for key, value in changes.items():
            setattr(sale, key, value)

        requested = data.get("selling_status")
        _transition(sale, requested if requested is not None else current)

        _apply_side_effects(sale)
        return sale

    return _run_atomic(_op)


def change_status(sale_id: int, requested) -> Sale:
    """Move a sale to ``requested`` (or further, if its slips say so)."""
    def _op():
        sale = get_sale(sale_id)
        _transition(sale, requested)
        _apply_side_effects(sale)
        return sale

    return _run_atomic(_op)


def record_slip_upload(sale_id: int, kind: str) -> Sale:
    """
    Record that a payment or shipping slip now exists for the sale.

    Called by the upload collaborator once the slip is confirmed downloadable.
    The current status is then re-requested so the resolver can advance it.
    """
    if kind not in SLIP_KINDS:
        raise ValidationError(f"Invalid slip kind '{kind}'. Must be one of: {', '.join(sorted(SLIP_KINDS))}")
    attr, field_group = SLIP_KINDS[kind]

    def _op():
        sale = get_sale(sale_id)
        current = sale.status
        if not getattr(sale, attr):
            ensure_editable(field_group, current)
            setattr(sale, attr, True)
        _transition(sale, current)
        _apply_side_effects(sale)
        return sale

    return _run_atomic(_op)
