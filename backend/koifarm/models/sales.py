from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale (customer order) document.

    STATUS: selling_status holds a SellingStatus value; it only changes through
    sales_service so the workflow rules always apply.

    SLIPS: has_payment_slip / has_shipping_slip are set by the slip upload
    operation only, never by status changes.

    BUYER: member_id is not a foreign key. Members can be deleted
    while their sales stay on the books.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_sales_docnum"),
        # Member history lookups and status dashboards
        db.Index("ix_sales_member_status", "member_id", "selling_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "SO-000123")
    document_number = db.Column(db.String(64), nullable=True)

    selling_status = db.Column(db.String(16), nullable=False, default="order", index=True)

    member_id = db.Column(db.Integer, nullable=True, index=True)
    seller = db.Column(db.String(64), nullable=True)
    note = db.Column(db.Text, nullable=True)

    # Payment terms (see services/payment_terms.py for which fields apply to which method)
    payment_method = db.Column(db.String(16), nullable=False, index=True)
    delivery_status = db.Column(db.String(16), nullable=True)
    bank_code = db.Column(db.String(16), nullable=True)
    bank_account = db.Column(db.String(64), nullable=True)
    payment_due_date = db.Column(db.Date, nullable=True)

    # Adjustments (all amounts in cents)
    deposit_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_fee_cents = db.Column(db.Integer, nullable=False, default=0)

    shipping_address = db.Column(db.Text, nullable=True)
    shipping_province = db.Column(db.String(128), nullable=True)

    has_payment_slip = db.Column(db.Boolean, nullable=False, default=False)
    has_shipping_slip = db.Column(db.Boolean, nullable=False, default=False)

    # Set once the sale's goods have been taken out of stock
    stock_deducted = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        lazy=True,
        order_by="SaleLine.position",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self):
        from ..services.workflow_service import SellingStatus
        return SellingStatus.parse(self.selling_status)

    @property
    def payment_terms(self):
        from ..services.payment_terms import parse_payment_terms
        return parse_payment_terms(self.payment_method, {
            "delivery_status": self.delivery_status,
            "bank_code": self.bank_code,
            "bank_account": self.bank_account,
            "payment_due_date": self.payment_due_date,
        })

    @property
    def has_products(self) -> bool:
        return any(line.product_id and line.quantity > 0 for line in self.lines)

    @property
    def has_shipping_address(self) -> bool:
        return bool((self.shipping_address or "").strip()) and bool((self.shipping_province or "").strip())

    def __repr__(self) -> str:
        return f"<Sale id={self.id} document_number={self.document_number!r} status={self.selling_status!r}>"

    def to_dict(self) -> dict:
        from ..services.pricing_service import order_total
        from ..services.workflow_service import WORKFLOW

        definition = WORKFLOW.definition(self.selling_status)
        return {
            "id": self.id,
            "document_number": self.document_number,
            "selling_status": self.selling_status,
            "status_label": definition.label,
            "step_order": definition.step_order,
            "member_id": self.member_id,
            "seller": self.seller,
            "note": self.note,
            "payment_method": self.payment_method,
            "delivery_status": self.delivery_status,
            "bank_code": self.bank_code,
            "bank_account": self.bank_account,
            "payment_due_date": self.payment_due_date.isoformat() if self.payment_due_date else None,
            "deposit_cents": self.deposit_cents,
            "discount_cents": self.discount_cents,
            "delivery_fee_cents": self.delivery_fee_cents,
            "total_cents": order_total(self),
            "shipping_address": self.shipping_address,
            "shipping_province": self.shipping_province,
            "has_payment_slip": self.has_payment_slip,
            "has_shipping_slip": self.has_shipping_slip,
            "stock_deducted": self.stock_deducted,
            "lines": [line.to_dict() for line in self.lines],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class SaleLine(db.Model):
    """
    Individual line items on a sale document.

    unit_price_cents and category are snapshots taken from the product when the
    line is written, so later catalog edits do not reprice old sales.
    """
    __tablename__ = "sale_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    category = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        from ..services.pricing_service import line_total

        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "position": self.position,
            "category": self.category,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": line_total(self),
            "created_at": to_utc_z(self.created_at),
        }
