from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


# Product categories carried over from the farm catalog; "fish" is the only
# category sold as an individual animal at a flat price.
PRODUCT_CATEGORIES = (
    "fish",
    "food",
    "water",
    "medicine",
    "equipment",
    "construction",
    "service",
)
FISH_CATEGORY = "fish"


class Product(db.Model):
    """
    Catalog item that can be placed on a sale.

    PRICING:
    - Fish are individual animals: price_cents is the flat price of that fish.
    - Everything else is stock goods: customer_price_cents is charged per unit
      and balance tracks units on hand.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_category_sold", "category", "sold"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=True)
    customer_price_cents = db.Column(db.Integer, nullable=True)

    balance = db.Column(db.Integer, nullable=False, default=0)
    sold = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_fish(self) -> bool:
        return self.category == FISH_CATEGORY

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} category={self.category!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "customer_price_cents": self.customer_price_cents,
            "balance": self.balance,
            "sold": self.sold,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
