# Overview: Member (customer) CRM state; purchase history and derived spend/tier recalculation.

"""
Member Derived-State Recalculation

A member's purchase_count, total_purchase_cents, last_purchase_at and
customer_level are all derived from purchase history joined against sale
totals. recalculate_member() recomputes them in one pass and assigns them on
the session; the caller commits once, so the member row is written in a single
UPDATE together with the sale that triggered it.

INVARIANTS:
- A sale enters purchase history only once it has reached 'preparing'
- History insertion is idempotent (one row per member/sale)
- A reopened sale stays in history, and edits to it still refresh its buyer
- customer_level follows total spend up and down, with no sticky floor
- status 'inquiry' flips to 'purchased' on the first committed sale and never back
- A sale whose buyer no longer exists is skipped without error
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Member, MemberPurchase, Sale
from ..time_utils import days_since, utcnow
from ..validation import ConflictError
from .pricing_service import order_total
from .workflow_service import SellingStatus, has_reached


# Tier thresholds in cents (10,000 and 30,000 baht)
VIP_THRESHOLD_CENTS = 1_000_000
VVIP_THRESHOLD_CENTS = 3_000_000

# Days since last purchase for each activity tier
HOT_ACTIVE_DAYS = 30
WARM_ACTIVE_DAYS = 60
COLD_ACTIVE_DAYS = 90

COMMITTED_STATUS = SellingStatus.PREPARING


def customer_level_for(total_purchase_cents: int) -> str:
    if total_purchase_cents >= VVIP_THRESHOLD_CENTS:
        return "vvip"
    if total_purchase_cents >= VIP_THRESHOLD_CENTS:
        return "vip"
    return "general"


def find_by_buyer_id(member_id: int | None) -> Member | None:
    if member_id is None:
        return None
    return db.session.get(Member, member_id)


def create_member(patch: dict) -> Member:
    """Create a member from a validated patch. Derived fields always start empty."""
    member = Member(**patch)
    member.status = "inquiry"
    member.customer_level = "general"
    member.purchase_count = 0
    member.total_purchase_cents = 0
    member.last_purchase_at = None
    db.session.add(member)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Member code '{patch.get('code')}' already exists")
    return member


def recalculate_member(member: Member, sale: Sale | None = None) -> Member:
    """
    Recompute a member's derived purchase fields.

    If ``sale`` is given it is added to purchase history first (no-op when it is
    already there). Does not commit.
    """
    if sale is not None:
        if sale.id is None:
            db.session.flush()
        if sale.id not in member.purchase_history:
            member.purchases.append(MemberPurchase(sale_id=sale.id))

    sale_ids = member.purchase_history
    sales = (
        db.session.query(Sale).filter(Sale.id.in_(sale_ids)).all()
        if sale_ids else []
    )

    total_cents = sum(order_total(s) for s in sales)
    dates = [s.created_at for s in sales if s.created_at is not None]

    member.purchase_count = len(sales)
    member.last_purchase_at = max(dates) if dates else None
    member.total_purchase_cents = total_cents
    member.customer_level = customer_level_for(total_cents)
    if sales and member.status == "inquiry":
        member.status = "purchased"

    return member


def recalculate_for_sale(sale: Sale) -> Member | None:
    """
    Side effect of saving a sale.

    A sale at or past 'preparing' is added to its buyer's history. A sale
    that was committed once (stock taken) and later reopened stays in the
    history, so its buyer is still recomputed against the edited total.

    Returns the updated member, or None when the sale never counted as a
    purchase or its buyer cannot be found. Does not commit.
    """
    committed = has_reached(sale.status, COMMITTED_STATUS)
    if not committed and not sale.stock_deducted:
        return None

    member = find_by_buyer_id(sale.member_id)
    if member is None:
        if sale.member_id is not None:
            current_app.logger.warning(
                "Sale %s references missing member %s; skipping recalculation",
                sale.id, sale.member_id,
            )
        return None

    if committed:
        recalculate_member(member, sale)
    elif sale.id in member.purchase_history:
        recalculate_member(member)
    else:
        return None
    current_app.logger.info(
        "Member %s recalculated from sale %s: count=%s total_cents=%s level=%s",
        member.id, sale.id, member.purchase_count,
        member.total_purchase_cents, member.customer_level,
    )
    return member


def recalculate_member_by_id(member_id: int) -> Member | None:
    """Recompute one member from their existing history and commit."""
    member = find_by_buyer_id(member_id)
    if member is None:
        return None
    recalculate_member(member)
    db.session.commit()
    return member


def recalculate_all_members() -> int:
    """Recompute every member's derived fields. Returns the number of members."""
    members = db.session.query(Member).order_by(Member.id).all()
    for member in members:
        recalculate_member(member)
    db.session.commit()
    return len(members)


# ================================================================================
# ACTIVITY (recency) STATUS
# ================================================================================

def activity_status(member: Member, now: datetime | None = None) -> str | None:
    """
    Recency tier from the last purchase date.

    <= 30 days hot_active, <= 60 warm_active, <= 90 cold_active, otherwise None.
    """
    if member.last_purchase_at is None:
        return None
    days = days_since(member.last_purchase_at, now)
    if days <= HOT_ACTIVE_DAYS:
        return "hot_active"
    if days <= WARM_ACTIVE_DAYS:
        return "warm_active"
    if days <= COLD_ACTIVE_DAYS:
        return "cold_active"
    return None


def refresh_activity_statuses(now: datetime | None = None) -> int:
    """
    Re-tier every member who has purchased. Lapsed members fall back to
    'purchased'; 'inquiry' members are left alone. Returns how many changed.
    """
    now = now or utcnow()
    changed = 0
    members = db.session.query(Member).filter(Member.status != "inquiry").all()
    for member in members:
        new_status = activity_status(member, now) or "purchased"
        if member.status != new_status:
            member.status = new_status
            changed += 1
    db.session.commit()
    return changed
