# Overview: Sales order status workflow; transition graph, field requirements, auto-advance and edit gating.

"""
Koi Farm Sales Order Workflow

================================================================================
PURPOSE: Decide which selling status a sale may move to, what it needs to get
there, and what the operator may still change while it sits in a status
================================================================================

STATE MACHINE (step order in brackets):
    none(0) -> order(1) -> wait_payment(2) -> preparing(3) -> shipping(4) -> received(5)
                                                                   \\-> damaged(6)

    none:          Not yet persisted; any status may be chosen at creation
    order:         Customer order taken, goods being sourced/confirmed
    wait_payment:  Goods and payment account fixed, waiting for the transfer slip
    preparing:     Payment confirmed, packing for delivery
    shipping:      Handed to the carrier, shipping slip on file
    received:      Customer received the goods (terminal)
    damaged:       Goods arrived damaged; may be re-opened as order/wait_payment

RULES:
1. Only edges listed in the workflow table are legal (InvalidTransition otherwise)
2. Every missing requirement of the target status is reported, never just the first
3. Slips fast-forward the requested status (resolve_status); the resolved status is
   what gets persisted
4. While sitting in a status only its editable field groups may change (FieldLocked)

The table is built once at import time (WORKFLOW) and is immutable. Functions
accept an optional ``workflow=`` so callers and tests can pass their own table.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


class SellingStatus(str, Enum):
    """Selling status of a sale. Declaration order is the step order."""

    NONE = "none"
    ORDER = "order"
    WAIT_PAYMENT = "wait_payment"
    PREPARING = "preparing"
    SHIPPING = "shipping"
    RECEIVED = "received"
    DAMAGED = "damaged"

    @property
    def step_order(self) -> int:
        return list(type(self)).index(self)

    @classmethod
    def parse(cls, value) -> "SellingStatus":
        """
        Coerce API/DB input into a SellingStatus.

        Accepts an enum member, its string value, or its step order as int.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            members = list(cls)
            if 0 <= value < len(members):
                return members[value]
        elif isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidStatus(
            f"Invalid selling status {value!r}. Must be one of: {', '.join(s.value for s in cls)}",
            details={"status": value},
        )

    def __str__(self) -> str:
        return self.value


# Field groups the workflow reasons about
FIELD_PRODUCTS = "products"
FIELD_BANK_INFO = "bank_info"
FIELD_PAYMENT_SLIP = "payment_slip"
FIELD_SHIPPING_SLIP = "shipping_slip"
FIELD_SHIPPING_ADDRESS = "shipping_address"

FIELD_ORDER = (
    FIELD_PRODUCTS,
    FIELD_BANK_INFO,
    FIELD_PAYMENT_SLIP,
    FIELD_SHIPPING_SLIP,
    FIELD_SHIPPING_ADDRESS,
)

FIELD_MESSAGES = {
    FIELD_PRODUCTS: "Select at least one product",
    FIELD_BANK_INFO: "Select the bank account receiving the payment",
    FIELD_PAYMENT_SLIP: "Upload the payment slip",
    FIELD_SHIPPING_SLIP: "Upload the shipping slip",
    FIELD_SHIPPING_ADDRESS: "Enter the shipping address and province",
}

# Groups that only make sense when payment is proven through a bank account
PROOF_OF_PAYMENT_FIELDS = frozenset({FIELD_BANK_INFO, FIELD_PAYMENT_SLIP})


# ================================================================================
# ERRORS
# ================================================================================

class WorkflowError(ValueError):
    """
    Raised when a sale edit violates the status workflow.

    Validation-level and recoverable by the caller: fix the input and retry.
    ``details`` carries the structured data the UI needs for field messages.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InvalidStatus(WorkflowError):
    """Raised for a status value outside the SellingStatus enumeration."""


class InvalidTransition(WorkflowError):
    def __init__(self, from_status: SellingStatus, to_status: SellingStatus):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot change status from '{from_status}' to '{to_status}'",
            details={"from_status": from_status.value, "to_status": to_status.value},
        )


class MissingRequiredField(WorkflowError):
    def __init__(self, status: SellingStatus, field_name: str):
        self.status = status
        self.field = field_name
        message = FIELD_MESSAGES.get(field_name, f"{field_name} is required")
        super().__init__(
            f"{message} (required for '{status}')",
            details={"status": status.value, "field": field_name},
        )

    def to_dict(self) -> dict:
        return {"status": self.status.value, "field": self.field, "message": str(self)}


class RequiredFieldsMissing(WorkflowError):
    """All MissingRequiredField errors for one request, raised together."""

    def __init__(self, status: SellingStatus, errors: list[MissingRequiredField]):
        self.status = status
        self.errors = list(errors)
        super().__init__(
            f"Status '{status}' is missing {len(self.errors)} required field(s)",
            details={
                "status": status.value,
                "missing_fields": [e.to_dict() for e in self.errors],
            },
        )

    @property
    def fields(self) -> list[str]:
        return [e.field for e in self.errors]


class FieldLocked(WorkflowError):
    def __init__(self, field_name: str, current_status: SellingStatus):
        self.field = field_name
        self.current_status = current_status
        super().__init__(
            f"Field '{field_name}' cannot be edited while the sale is '{current_status}'",
            details={"field": field_name, "current_status": current_status.value},
        )


# ================================================================================
# WORKFLOW TABLE
# ================================================================================

@dataclass(frozen=True)
class StatusDefinition:
    status: SellingStatus
    label: str
    description: str
    next_statuses: frozenset = field(default_factory=frozenset)
    required_fields: frozenset = field(default_factory=frozenset)
    editable_fields: frozenset = field(default_factory=frozenset)

    @property
    def step_order(self) -> int:
        return self.status.step_order

    @property
    def is_terminal(self) -> bool:
        return not self.next_statuses

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "label": self.label,
            "description": self.description,
            "step_order": self.step_order,
            "next_statuses": [s.value for s in sorted(self.next_statuses, key=lambda s: s.step_order)],
            "required_fields": [f for f in FIELD_ORDER if f in self.required_fields],
            "editable_fields": [f for f in FIELD_ORDER if f in self.editable_fields],
        }


@dataclass(frozen=True)
class StatusWorkflow:
    definitions: Mapping[SellingStatus, StatusDefinition]

    def definition(self, status: SellingStatus) -> StatusDefinition:
        return self.definitions[SellingStatus.parse(status)]

    def statuses(self) -> list[SellingStatus]:
        return sorted(self.definitions, key=lambda s: s.step_order)

    def to_list(self) -> list[dict]:
        return [self.definitions[s].to_dict() for s in self.statuses()]


def build_workflow(definitions: Iterable[StatusDefinition]) -> StatusWorkflow:
    """Freeze a set of status definitions into a StatusWorkflow."""
    table = {d.status: d for d in definitions}
    missing = [s.value for s in SellingStatus if s not in table]
    if missing:
        raise ValueError(f"Workflow is missing definitions for: {', '.join(missing)}")
    for d in table.values():
        unknown = [s for s in d.next_statuses if s not in table]
        if unknown:
            raise ValueError(f"Status '{d.status}' points at undefined statuses: {unknown}")
    return StatusWorkflow(definitions=MappingProxyType(table))


S = SellingStatus

_ALL_GROUPS = frozenset({FIELD_PRODUCTS, FIELD_BANK_INFO, FIELD_PAYMENT_SLIP, FIELD_SHIPPING_SLIP})
_WAIT_PAYMENT_REQUIRED = frozenset({FIELD_PRODUCTS, FIELD_BANK_INFO})
_PREPARING_REQUIRED = _WAIT_PAYMENT_REQUIRED | {FIELD_PAYMENT_SLIP}
_SHIPPING_REQUIRED = _PREPARING_REQUIRED | {FIELD_SHIPPING_SLIP}

WORKFLOW = build_workflow([
    StatusDefinition(
        status=S.NONE,
        label="New",
        description="Sale not yet saved",
        next_statuses=frozenset({S.ORDER, S.WAIT_PAYMENT, S.PREPARING, S.SHIPPING, S.RECEIVED, S.DAMAGED}),
        editable_fields=_ALL_GROUPS,
    ),
    StatusDefinition(
        status=S.ORDER,
        label="Order",
        description="Order taken, goods being sourced or confirmed",
        next_statuses=frozenset({S.WAIT_PAYMENT, S.PREPARING, S.SHIPPING, S.RECEIVED, S.DAMAGED}),
        editable_fields=frozenset({FIELD_PRODUCTS, FIELD_BANK_INFO}),
    ),
    StatusDefinition(
        status=S.WAIT_PAYMENT,
        label="Waiting for payment",
        description="Waiting for the customer's payment slip",
        next_statuses=frozenset({S.PREPARING, S.SHIPPING, S.RECEIVED, S.DAMAGED}),
        required_fields=_WAIT_PAYMENT_REQUIRED,
        editable_fields=frozenset({FIELD_PRODUCTS, FIELD_BANK_INFO, FIELD_PAYMENT_SLIP}),
    ),
    StatusDefinition(
        status=S.PREPARING,
        label="Preparing",
        description="Payment confirmed, packing for delivery",
        next_statuses=frozenset({S.SHIPPING, S.RECEIVED, S.DAMAGED}),
        required_fields=_PREPARING_REQUIRED,
        editable_fields=frozenset({FIELD_SHIPPING_SLIP}),
    ),
    StatusDefinition(
        status=S.SHIPPING,
        label="Shipping",
        description="With the carrier",
        next_statuses=frozenset({S.RECEIVED, S.DAMAGED}),
        required_fields=_SHIPPING_REQUIRED,
    ),
    StatusDefinition(
        status=S.RECEIVED,
        label="Received",
        description="Customer received the goods",
    ),
    StatusDefinition(
        status=S.DAMAGED,
        label="Damaged",
        description="Goods arrived damaged",
        next_statuses=frozenset({S.ORDER, S.WAIT_PAYMENT}),
    ),
])

del S


# ================================================================================
# FIELD REQUIREMENT VALIDATOR
# ================================================================================

@dataclass(frozen=True)
class OrderSnapshot:
    """
    What the validator needs to know about a sale, already reduced to booleans.

    proof_of_payment_required / shipping_address_required come from the sale's
    payment terms; slip flags come from the upload collaborator.
    """
    has_products: bool = False
    has_bank_info: bool = False
    has_payment_slip: bool = False
    has_shipping_slip: bool = False
    has_shipping_address: bool = False
    proof_of_payment_required: bool = True
    shipping_address_required: bool = False

    def has(self, field_name: str) -> bool:
        return {
            FIELD_PRODUCTS: self.has_products,
            FIELD_BANK_INFO: self.has_bank_info,
            FIELD_PAYMENT_SLIP: self.has_payment_slip,
            FIELD_SHIPPING_SLIP: self.has_shipping_slip,
            FIELD_SHIPPING_ADDRESS: self.has_shipping_address,
        }[field_name]


def next_statuses(status, *, workflow: StatusWorkflow = WORKFLOW) -> frozenset:
    return workflow.definition(status).next_statuses


def can_transition(from_status, to_status, *, workflow: StatusWorkflow = WORKFLOW) -> bool:
    """True if ``to_status`` is an edge out of ``from_status``. Self-loops are not edges."""
    return SellingStatus.parse(to_status) in next_statuses(from_status, workflow=workflow)


def required_fields(
    status,
    snapshot: OrderSnapshot | None = None,
    *,
    workflow: StatusWorkflow = WORKFLOW,
) -> frozenset:
    """
    Required field groups for entering ``status``.

    Without a snapshot this is the table default. With one, proof-of-payment
    groups are dropped for methods that do not pay through a bank account, and
    the shipping address is added on the happy path when delivery needs it.
    """
    status = SellingStatus.parse(status)
    fields = workflow.definition(status).required_fields
    if snapshot is None:
        return fields

    if not snapshot.proof_of_payment_required:
        fields = fields - PROOF_OF_PAYMENT_FIELDS
    if snapshot.shipping_address_required and (
        SellingStatus.WAIT_PAYMENT.step_order <= status.step_order <= SellingStatus.SHIPPING.step_order
    ):
        fields = fields | {FIELD_SHIPPING_ADDRESS}
    return frozenset(fields)


def missing_fields(
    target,
    snapshot: OrderSnapshot,
    *,
    workflow: StatusWorkflow = WORKFLOW,
) -> list[MissingRequiredField]:
    """One MissingRequiredField per absent requirement, in a stable order."""
    target = SellingStatus.parse(target)
    needed = required_fields(target, snapshot, workflow=workflow)
    return [
        MissingRequiredField(target, f)
        for f in FIELD_ORDER
        if f in needed and not snapshot.has(f)
    ]


def validate_transition(
    current,
    target,
    snapshot: OrderSnapshot,
    *,
    workflow: StatusWorkflow = WORKFLOW,
) -> None:
    """
    Check a status change before anything is written.

    Raises:
        InvalidTransition: target is not reachable from current
        RequiredFieldsMissing: target's requirements are not met (all listed)

    Requesting the current status is not a transition; only requirements apply.
    """
    current = SellingStatus.parse(current)
    target = SellingStatus.parse(target)

    if target != current and not can_transition(current, target, workflow=workflow):
        raise InvalidTransition(current, target)

    errors = missing_fields(target, snapshot, workflow=workflow)
    if errors:
        raise RequiredFieldsMissing(target, errors)


def available_statuses(current, *, workflow: StatusWorkflow = WORKFLOW) -> list[SellingStatus]:
    """Statuses an edit form may offer: the current one (if saved) then its next steps."""
    current = SellingStatus.parse(current)
    offered = sorted(next_statuses(current, workflow=workflow), key=lambda s: s.step_order)
    if current is SellingStatus.NONE:
        return offered
    return [current] + offered


def has_reached(status, threshold) -> bool:
    """Step-order comparison: has ``status`` progressed at least as far as ``threshold``."""
    return SellingStatus.parse(status).step_order >= SellingStatus.parse(threshold).step_order


# ================================================================================
# AUTO-ADVANCE RESOLVER
# ================================================================================

def resolve_status(requested, has_payment_slip: bool, has_shipping_slip: bool) -> SellingStatus:
    """
    Reconcile the requested status with the slips already on file.

    wait_payment + payment slip            -> preparing
    wait_payment + payment & shipping slip -> shipping
    preparing + shipping slip              -> shipping
    anything else passes through unchanged
    """
    requested = SellingStatus.parse(requested)

    if requested is SellingStatus.WAIT_PAYMENT:
        if has_payment_slip and has_shipping_slip:
            return SellingStatus.SHIPPING
        if has_payment_slip:
            return SellingStatus.PREPARING
        return SellingStatus.WAIT_PAYMENT

    if requested is SellingStatus.PREPARING:
        if has_shipping_slip:
            return SellingStatus.SHIPPING
        return SellingStatus.PREPARING

    return requested


# ================================================================================
# EDITABLE-FIELD GATE
# ================================================================================

def editable_fields(status, *, workflow: StatusWorkflow = WORKFLOW) -> frozenset:
    return workflow.definition(status).editable_fields


def can_edit_field(field_group: str, current_status, *, workflow: StatusWorkflow = WORKFLOW) -> bool:
    return field_group in editable_fields(current_status, workflow=workflow)


def ensure_editable(
    field_group: str,
    current_status,
    *,
    field_name: str | None = None,
    workflow: StatusWorkflow = WORKFLOW,
) -> None:
    """
    Raise FieldLocked unless ``field_group`` may be edited in ``current_status``.

    ``field_name`` is the payload key reported back (e.g. "discount_cents"
    belongs to the products group); defaults to the group name.
    """
    current_status = SellingStatus.parse(current_status)
    if not can_edit_field(field_group, current_status, workflow=workflow):
        raise FieldLocked(field_name or field_group, current_status)
