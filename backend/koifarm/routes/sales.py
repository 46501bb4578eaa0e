# backend/koifarm/routes/sales.py
"""
Sales order API routes.

- GET   /api/sales/workflow             - Status table (labels, next steps, required/editable fields)
- GET   /api/sales                      - List sales (?status=, ?member_id=)
- POST  /api/sales                      - Create a sale in its payment method's starting status
- GET   /api/sales/:id                  - Sale with lines, totals and offered statuses
- PATCH /api/sales/:id                  - Edit fields, optionally with "selling_status"
- POST  /api/sales/:id/status           - Change status: {"selling_status": "..."}
- POST  /api/sales/:id/slips/:kind      - Record an uploaded slip (kind = payment | shipping)

Workflow errors come back as 400 with structured details so the UI can mark
the exact fields:
    {"error": "...", "code": "missing_required_fields",
     "details": {"status": "preparing", "missing_fields": [{"field": "payment_slip", ...}]}}
"""

from flask import Blueprint, request, current_app
from sqlalchemy.orm.exc import StaleDataError

from ..services import sales_service
from ..services.sales_service import SaleError, SaleNotFound, StaleSale
from ..services.workflow_service import (
    WORKFLOW,
    WorkflowError,
    InvalidStatus,
    InvalidTransition,
    RequiredFieldsMissing,
    FieldLocked,
    available_statuses,
)
from ..validation import ValidationError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")

_ERROR_CODES = (
    (InvalidTransition, "invalid_transition"),
    (RequiredFieldsMissing, "missing_required_fields"),
    (FieldLocked, "field_locked"),
    (InvalidStatus, "invalid_status"),
)


def _workflow_error_response(e: WorkflowError):
    code = next((c for cls, c in _ERROR_CODES if isinstance(e, cls)), "workflow_error")
    return {"error": str(e), "code": code, "details": e.details}, 400


def _sale_response(sale, status_code: int = 200):
    return {
        "sale": sale.to_dict(),
        "available_statuses": [s.value for s in available_statuses(sale.status)],
    }, status_code


def _handle(op, failure_message: str, status_code: int = 200):
    try:
        sale = op()
        return _sale_response(sale, status_code)
    except SaleNotFound as e:
        return {"error": str(e)}, 404
    except StaleSale as e:
        return {"error": str(e), "details": e.details}, 409
    except WorkflowError as e:
        return _workflow_error_response(e)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except SaleError as e:
        return {"error": str(e), "details": e.details}, 400
    except StaleDataError:
        return {"error": "Sale was modified by someone else; reload and retry"}, 409
    except Exception:
        current_app.logger.exception(failure_message)
        return {"error": "Internal server error"}, 500


@sales_bp.get("/workflow")
def workflow_route():
    """Status workflow table, in step order."""
    return {"statuses": WORKFLOW.to_list()}


@sales_bp.get("")
def list_sales_route():
    try:
        sales = sales_service.list_sales(
            status=request.args.get("status"),
            member_id=request.args.get("member_id", type=int),
            limit=max(1, min(request.args.get("limit", 200, type=int), current_app.config["SALES_LIST_MAX_LIMIT"])),
        )
    except WorkflowError as e:
        return _workflow_error_response(e)
    return {"items": [s.to_dict() for s in sales]}


@sales_bp.post("")
def create_sale_route():
    """
    Create a sale.

    Body: payment_method, member_id, lines [{product_id, quantity}], amounts in
    cents, shipping address, and the payment terms fields of the method
    (delivery_status | bank_code/bank_account | payment_due_date).
    """
    data = request.get_json(silent=True) or {}
    return _handle(lambda: sales_service.create_sale(data), "Failed to create sale", 201)


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
    except SaleNotFound as e:
        return {"error": str(e)}, 404
    return _sale_response(sale)


@sales_bp.patch("/<int:sale_id>")
def update_sale_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    return _handle(lambda: sales_service.update_sale(sale_id, data), "Failed to update sale")


@sales_bp.post("/<int:sale_id>/status")
def change_status_route(sale_id: int):
    data = request.get_json(silent=True) or {}
    requested = data.get("selling_status")
    if requested is None:
        return {"error": "selling_status required"}, 400
    return _handle(lambda: sales_service.change_status(sale_id, requested), "Failed to change sale status")


@sales_bp.post("/<int:sale_id>/slips/<kind>")
def record_slip_route(sale_id: int, kind: str):
    """
    Record that a slip has been uploaded and is downloadable.

    The sale may advance on its own (wait_payment -> preparing -> shipping).
    """
    return _handle(lambda: sales_service.record_slip_upload(sale_id, kind), "Failed to record slip upload")
