"""
Sales order workflow through the service layer: creation, edits, slips,
auto-advance, stock deduction and member recalculation.
"""

import logging

import pytest

from koifarm.extensions import db
from koifarm.models import Sale, Member
from koifarm.services import sales_service
from koifarm.services.sales_service import SaleError, SaleNotFound, StaleSale
from koifarm.services.workflow_service import (
    SellingStatus,
    FieldLocked,
    InvalidTransition,
    RequiredFieldsMissing,
)
from koifarm.validation import ValidationError


def _sale_in_shipping(member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))
    sales_service.record_slip_upload(sale.id, "payment")
    return sales_service.record_slip_upload(sale.id, "shipping")


# --- happy path ----------------------------------------------------------

def test_transfer_sale_moves_through_the_workflow(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))

    assert sale.status is SellingStatus.WAIT_PAYMENT
    assert sale.document_number == f"SO-{sale.id:06d}"
    assert sale.to_dict()["total_cents"] == 1_500_000
    assert member.purchase_history == []
    assert koi.sold is False

    sale = sales_service.record_slip_upload(sale.id, "payment")
    assert sale.status is SellingStatus.PREPARING
    assert sale.stock_deducted is True
    assert koi.sold is True

    member = db.session.get(Member, member.id)
    assert member.purchase_history == [sale.id]
    assert member.purchase_count == 1
    assert member.total_purchase_cents == 1_500_000
    assert member.customer_level == "vip"
    assert member.status == "purchased"
    assert member.last_purchase_at is not None

    sale = sales_service.record_slip_upload(sale.id, "shipping")
    assert sale.status is SellingStatus.SHIPPING

    sale = sales_service.change_status(sale.id, "received")
    assert sale.status is SellingStatus.RECEIVED
    assert db.session.get(Member, member.id).purchase_count == 1


def test_both_slips_fast_forward_to_shipping(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id, payment_method="card"))
    sale.has_shipping_slip = True
    db.session.commit()

    sale = sales_service.record_slip_upload(sale.id, "payment")
    assert sale.status is SellingStatus.SHIPPING


def test_cash_sale_handed_over_is_received_at_creation(db_session, member, koi):
    sale = sales_service.create_sale({
        "payment_method": "cash",
        "member_id": member.id,
        "lines": [{"product_id": koi.id}],
    })

    assert sale.status is SellingStatus.RECEIVED
    member = db.session.get(Member, member.id)
    assert member.purchase_history == [sale.id]
    assert member.purchase_count == 1


def test_cash_sale_for_delivery_needs_address(db_session, member, koi):
    with pytest.raises(RequiredFieldsMissing) as exc:
        sales_service.create_sale({
            "payment_method": "cash",
            "delivery_status": "preparing",
            "member_id": member.id,
            "lines": [{"product_id": koi.id}],
        })
    assert exc.value.status is SellingStatus.PREPARING
    assert exc.value.fields == ["shipping_address"]


def test_order_sale_starts_in_order_without_requirements(db_session, member):
    sale = sales_service.create_sale({"payment_method": "order", "member_id": member.id})
    assert sale.status is SellingStatus.ORDER
    assert sale.lines == []


# --- validation ----------------------------------------------------------

def test_all_missing_fields_reported_and_nothing_saved(db_session, member, koi, sale_payload):
    payload = sale_payload(member.id, koi.id, bank_code=None, bank_account=None, shipping_address="")

    with pytest.raises(RequiredFieldsMissing) as exc:
        sales_service.create_sale(payload)

    assert exc.value.status is SellingStatus.WAIT_PAYMENT
    assert exc.value.fields == ["bank_info", "shipping_address"]
    assert db.session.query(Sale).count() == 0


def test_order_to_preparing_lists_every_gap(db_session, member, koi):
    sale = sales_service.create_sale({
        "payment_method": "order",
        "member_id": member.id,
        "lines": [{"product_id": koi.id}],
    })

    with pytest.raises(RequiredFieldsMissing) as exc:
        sales_service.change_status(sale.id, "preparing")
    assert exc.value.fields == ["bank_info", "payment_slip", "shipping_address"]
    assert db.session.get(Sale, sale.id).status is SellingStatus.ORDER


def test_backwards_transition_rejected(db_session, member, koi, sale_payload):
    sale = _sale_in_shipping(member, koi, sale_payload)
    with pytest.raises(InvalidTransition):
        sales_service.change_status(sale.id, "wait_payment")


def test_creating_in_none_rejected(db_session, member, koi, sale_payload):
    with pytest.raises(InvalidTransition):
        sales_service.create_sale(sale_payload(member.id, koi.id, selling_status="none"))


def test_unknown_member_rejected(db_session, koi, sale_payload):
    with pytest.raises(ValidationError):
        sales_service.create_sale(sale_payload(9999, koi.id))


def test_unknown_product_rejected(db_session, member, sale_payload):
    with pytest.raises(SaleError) as exc:
        sales_service.create_sale(sale_payload(member.id, 9999))
    assert exc.value.details == {"product_id": 9999}


def test_missing_sale(db_session):
    with pytest.raises(SaleNotFound):
        sales_service.change_status(12345, "order")


# --- edit gate -----------------------------------------------------------

def test_products_locked_while_shipping(db_session, member, koi, food, sale_payload):
    sale = _sale_in_shipping(member, koi, sale_payload)

    with pytest.raises(FieldLocked) as exc:
        sales_service.update_sale(sale.id, {"lines": [{"product_id": food.id, "quantity": 2}]})
    assert exc.value.field == "products"
    assert exc.value.current_status is SellingStatus.SHIPPING

    sale = db.session.get(Sale, sale.id)
    assert [line.product_id for line in sale.lines] == [koi.id]


def test_unchanged_values_pass_the_gate(db_session, member, koi, sale_payload):
    sale = _sale_in_shipping(member, koi, sale_payload)

    sale = sales_service.update_sale(sale.id, {
        "lines": [{"product_id": koi.id, "quantity": 1}],
        "bank_code": "KBNK",
        "note": "Customer picks up at the gate",
    })
    assert sale.status is SellingStatus.SHIPPING
    assert sale.note == "Customer picks up at the gate"


def test_discount_locked_once_preparing(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))
    sales_service.record_slip_upload(sale.id, "payment")

    with pytest.raises(FieldLocked) as exc:
        sales_service.update_sale(sale.id, {"discount_cents": 50_000})
    assert exc.value.field == "discount_cents"


def test_slip_locked_outside_its_status(db_session, member, koi):
    sale = sales_service.create_sale({"payment_method": "order", "member_id": member.id})
    with pytest.raises(FieldLocked) as exc:
        sales_service.record_slip_upload(sale.id, "payment")
    assert exc.value.field == "payment_slip"


def test_invalid_slip_kind(db_session):
    with pytest.raises(ValidationError):
        sales_service.record_slip_upload(1, "invoice")


def test_failed_status_change_discards_edits(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))

    with pytest.raises(RequiredFieldsMissing):
        sales_service.update_sale(sale.id, {"discount_cents": 10_000, "selling_status": "preparing"})

    assert db.session.get(Sale, sale.id).discount_cents == 0


def test_edit_in_wait_payment(db_session, member, koi, food, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))

    sale = sales_service.update_sale(sale.id, {
        "lines": [{"product_id": koi.id, "quantity": 1}, {"product_id": food.id, "quantity": 2}],
        "discount_cents": 20_000,
        "bank_code": "SCBA",
    })
    assert sale.bank_code == "SCBA"
    assert sale.to_dict()["total_cents"] == 1_500_000 + 70_000 - 20_000


def test_fixed_fields_cannot_change(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))
    with pytest.raises(ValidationError):
        sales_service.update_sale(sale.id, {"payment_method": "cash"})


def test_fixed_fields_compared_after_normalizing(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))

    sale = sales_service.update_sale(sale.id, {
        "member_id": str(member.id),
        "payment_method": " Transfer ",
        "note": "resent from the form",
    })
    assert sale.member_id == member.id
    assert sale.note == "resent from the form"


def test_buyer_cannot_change(db_session, member, koi, sale_payload):
    other = Member(code="M-0002", display_name="Khun Ploy")
    db.session.add(other)
    db.session.commit()
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))

    with pytest.raises(ValidationError):
        sales_service.update_sale(sale.id, {"member_id": other.id})


def test_unknown_update_fields_rejected(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))
    with pytest.raises(ValidationError):
        sales_service.update_sale(sale.id, {"has_payment_slip": True})


def test_stale_version_rejected(db_session, member, koi, sale_payload):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))
    stale = sale.version_id
    sales_service.update_sale(sale.id, {"note": "first edit"})

    with pytest.raises(StaleSale):
        sales_service.update_sale(sale.id, {"note": "second edit", "version_id": stale})
    assert db.session.get(Sale, sale.id).note == "first edit"


# --- damaged -------------------------------------------------------------

def test_damaged_sale_reopened_resolves_from_slips(db_session, member, koi, sale_payload):
    sale = _sale_in_shipping(member, koi, sale_payload)

    sale = sales_service.change_status(sale.id, "damaged")
    assert sale.status is SellingStatus.DAMAGED

    sale = sales_service.change_status(sale.id, "wait_payment")
    assert sale.status is SellingStatus.SHIPPING


def test_damaged_counts_as_purchase(db_session, member, koi):
    sale = sales_service.create_sale({
        "payment_method": "cod",
        "member_id": member.id,
        "lines": [{"product_id": koi.id}],
        "selling_status": "damaged",
    })
    assert sale.status is SellingStatus.DAMAGED
    assert db.session.get(Member, member.id).purchase_history == [sale.id]


def test_reopened_sale_edits_refresh_the_buyer(db_session, member, koi, food, sale_payload):
    sale = _sale_in_shipping(member, koi, sale_payload)
    sales_service.change_status(sale.id, "damaged")
    sale = sales_service.change_status(sale.id, "order")
    assert sale.status is SellingStatus.ORDER

    sales_service.update_sale(sale.id, {
        "lines": [{"product_id": koi.id, "quantity": 1}, {"product_id": food.id, "quantity": 5}],
    })

    buyer = db.session.get(Member, member.id)
    assert buyer.purchase_history == [sale.id]
    assert buyer.total_purchase_cents == 1_500_000 + 5 * 35_000
    assert buyer.customer_level == "vip"


# --- stock ---------------------------------------------------------------

def test_goods_stock_deducted_once(db_session, member, food):
    sale = sales_service.create_sale({
        "payment_method": "cod",
        "member_id": member.id,
        "lines": [{"product_id": food.id, "quantity": 3}],
        "shipping_address": "12 Soi 4",
        "shipping_province": "Chonburi",
    })
    assert sale.status is SellingStatus.PREPARING
    assert food.balance == 7
    assert food.sold is False

    sale = sales_service.record_slip_upload(sale.id, "shipping")
    assert sale.status is SellingStatus.SHIPPING
    assert food.balance == 7


def test_insufficient_stock_clamps_to_zero(db_session, member, food, caplog):
    with caplog.at_level(logging.WARNING):
        sales_service.create_sale({
            "payment_method": "cash",
            "member_id": member.id,
            "lines": [{"product_id": food.id, "quantity": 12}],
        })

    assert food.balance == 0
    assert food.sold is True
    assert "Insufficient stock" in caplog.text


# --- member side effects -------------------------------------------------

def test_orphaned_buyer_does_not_block_the_sale(db_session, member, koi, sale_payload, caplog):
    sale = sales_service.create_sale(sale_payload(member.id, koi.id))
    db.session.delete(member)
    db.session.commit()

    with caplog.at_level(logging.WARNING):
        sale = sales_service.record_slip_upload(sale.id, "payment")

    assert sale.status is SellingStatus.PREPARING
    assert "missing member" in caplog.text


def test_two_fish_make_a_vvip(db_session, member, koi, make_product):
    showa = make_product("fish", price_cents=1_500_000, name="Showa 50cm")
    for product in (koi, showa):
        sales_service.create_sale({
            "payment_method": "cash",
            "member_id": member.id,
            "lines": [{"product_id": product.id}],
        })

    member = db.session.get(Member, member.id)
    assert member.purchase_count == 2
    assert member.total_purchase_cents == 3_000_000
    assert member.customer_level == "vvip"


def test_list_sales_filters(db_session, member, koi, food, sale_payload):
    waiting = sales_service.create_sale(sale_payload(member.id, koi.id))
    sales_service.create_sale({
        "payment_method": "cash",
        "lines": [{"product_id": food.id}],
    })

    assert [s.id for s in sales_service.list_sales(status="wait_payment")] == [waiting.id]
    assert [s.id for s in sales_service.list_sales(member_id=member.id)] == [waiting.id]
    assert len(sales_service.list_sales()) == 2
