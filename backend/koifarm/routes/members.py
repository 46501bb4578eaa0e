# backend/koifarm/routes/members.py
"""
Member (customer) routes.

Derived CRM fields (purchase_count, total_purchase_cents, last_purchase_at,
customer_level) are not writable here; they are recomputed from sales.
"""

from flask import Blueprint, request, current_app

from ..models import Member
from ..services import member_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    ConflictError,
)

MEMBER_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"code", "display_name", "name", "phone", "address", "province"}),
    required_on_create=frozenset({"code", "display_name"}),
)

members_bp = Blueprint("members", __name__, url_prefix="/api/members")


@members_bp.post("")
def create_member_route():
    """Create a member. New members start as 'inquiry' / 'general'."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Member, payload=payload, policy=MEMBER_POLICY, partial=False)
        member = member_service.create_member(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create member")
        return {"error": "Internal server error"}, 500

    return {"member": member.to_dict()}, 201


@members_bp.get("/<int:member_id>")
def get_member_route(member_id: int):
    member = member_service.find_by_buyer_id(member_id)
    if member is None:
        return {"error": "Member not found"}, 404

    return {
        "member": member.to_dict(),
        "activity_status": member_service.activity_status(member),
    }


@members_bp.post("/<int:member_id>/recalculate")
def recalculate_member_route(member_id: int):
    """
    Recompute a member's derived purchase fields from their history.

    Response:
        {"member": {...}}
    """
    try:
        member = member_service.recalculate_member_by_id(member_id)
    except Exception:
        current_app.logger.exception("Failed to recalculate member")
        return {"error": "Internal server error"}, 500

    if member is None:
        return {"error": "Member not found"}, 404
    return {"member": member.to_dict()}
