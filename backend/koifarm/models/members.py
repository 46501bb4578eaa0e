from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Member(db.Model):
    """
    Farm customer (buyer) with CRM tracking.

    DERIVED FIELDS: purchase_count, total_purchase_cents, last_purchase_at and
    customer_level are recomputed from purchase history by
    member_service.recalculate_member; they are never authoritative on their own.
    """
    __tablename__ = "members"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_members_code"),
        db.Index("ix_members_status_level", "status", "customer_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    display_name = db.Column(db.String(128), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    province = db.Column(db.String(128), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="inquiry", index=True)
    customer_level = db.Column(db.String(8), nullable=False, default="general")

    # Denormalized aggregates (recomputed when a sale is committed)
    purchase_count = db.Column(db.Integer, nullable=False, default=0)
    total_purchase_cents = db.Column(db.Integer, nullable=False, default=0)
    last_purchase_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    purchases = db.relationship(
        "MemberPurchase",
        backref="member",
        lazy=True,
        order_by="MemberPurchase.sale_id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def purchase_history(self) -> list[int]:
        return [p.sale_id for p in self.purchases]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "display_name": self.display_name,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "province": self.province,
            "status": self.status,
            "customer_level": self.customer_level,
            "purchase_history": self.purchase_history,
            "purchase_count": self.purchase_count,
            "total_purchase_cents": self.total_purchase_cents,
            "last_purchase_at": to_utc_z(self.last_purchase_at) if self.last_purchase_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class MemberPurchase(db.Model):
    """
    Append-only purchase history entry linking a member to a committed sale.

    IMMUTABLE: rows are only ever inserted, once per (member, sale).
    """
    __tablename__ = "member_purchases"
    __table_args__ = (
        db.UniqueConstraint("member_id", "sale_id", name="uq_member_purchases_member_sale"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.Integer, db.ForeignKey("members.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    recorded_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "member_id": self.member_id,
            "sale_id": self.sale_id,
            "recorded_at": to_utc_z(self.recorded_at),
        }
