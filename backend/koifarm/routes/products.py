# backend/koifarm/routes/products.py
"""
Minimal catalog routes: enough to put products on sales.

Category maintenance, ponds, species and the rest of the catalog live in the
main back office.
"""
from flask import Blueprint, request
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"sku", "name", "category", "price_cents", "customer_price_cents", "balance"}),
    required_on_create=frozenset({"sku", "name", "category"}),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    """
    List products.

    Query params:
    - category: str (optional)
    - available: "1" to hide sold items (optional)
    """
    q = db.session.query(Product)
    category = request.args.get("category")
    if category:
        q = q.filter(Product.category == category)
    if request.args.get("available") == "1":
        q = q.filter(Product.sold.is_(False))
    products = q.order_by(Product.id).all()
    return {"items": [p.to_dict() for p in products]}


@products_bp.get("/<int:product_id>")
def get_product(product_id: int):
    product = db.session.get(Product, product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    return {"product": product.to_dict()}


@products_bp.post("")
def create_product_route():
    """Create a new product."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    product = Product(**patch)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return {"error": f"SKU '{patch['sku']}' already exists"}, 409

    return {"product": product.to_dict()}, 201
