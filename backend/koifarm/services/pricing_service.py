# Overview: Category-aware sale pricing (fish at a flat price, goods per unit).

from __future__ import annotations

from ..models.catalog import FISH_CATEGORY


class PricingError(ValueError):
    """Raised when a product cannot be priced."""


def unit_price_for(product) -> int:
    """
    Price snapshot to store on a sale line.

    Fish use their own flat price; all other goods use the customer price per unit.
    """
    if product.category == FISH_CATEGORY:
        price = product.price_cents
    else:
        price = product.customer_price_cents
    if price is None:
        raise PricingError(f"Product {product.sku or product.id} has no price")
    return price


def line_total(line) -> int:
    """
    Total of one sale line in cents.

    A fish line is one specific animal, so quantity does not multiply its price.
    """
    if line.category == FISH_CATEGORY:
        return line.unit_price_cents
    return line.unit_price_cents * line.quantity


def lines_total(lines) -> int:
    return sum(line_total(line) for line in lines)


def order_total(sale) -> int:
    """Sum of line totals minus the sale discount."""
    return lines_total(sale.lines) - (sale.discount_cents or 0)
