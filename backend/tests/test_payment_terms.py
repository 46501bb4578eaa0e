from datetime import date

import pytest

from koifarm.services.payment_terms import (
    BankRouting,
    CardTerms,
    CashTerms,
    CodTerms,
    CreditTerms,
    OrderTerms,
    TransferTerms,
    has_bank_info,
    initial_status,
    parse_payment_terms,
    requires_proof_of_payment,
    requires_shipping_address,
    terms_to_columns,
)
from koifarm.services.workflow_service import SellingStatus
from koifarm.validation import ValidationError


def test_transfer_with_bank():
    terms = parse_payment_terms("transfer", {"bank_code": "KBNK", "bank_account": " 123-4 "})
    assert terms == TransferTerms(bank=BankRouting(bank_code="KBNK", bank_account="123-4"))
    assert has_bank_info(terms)
    assert requires_proof_of_payment(terms)


def test_method_is_case_insensitive():
    assert isinstance(parse_payment_terms(" CARD ", {}), CardTerms)


def test_unknown_method_rejected():
    with pytest.raises(ValidationError):
        parse_payment_terms("barter", {})
    with pytest.raises(ValidationError):
        parse_payment_terms(None, {})


def test_unknown_bank_rejected():
    with pytest.raises(ValidationError):
        parse_payment_terms("transfer", {"bank_code": "NOPE"})


def test_account_without_bank_rejected():
    with pytest.raises(ValidationError):
        parse_payment_terms("transfer", {"bank_account": "123"})


def test_fields_of_other_methods_rejected():
    with pytest.raises(ValidationError) as exc:
        parse_payment_terms("cash", {"bank_code": "KBNK"})
    assert "bank_code" in str(exc.value)

    with pytest.raises(ValidationError):
        parse_payment_terms("cod", {"payment_due_date": "2026-11-01"})


def test_blank_foreign_fields_are_ignored():
    terms = parse_payment_terms("cod", {"bank_code": "", "delivery_status": None})
    assert terms == CodTerms()


def test_cash_defaults_to_received():
    assert parse_payment_terms("cash", {}) == CashTerms(delivery_status="received")
    assert parse_payment_terms("cash", {"delivery_status": "Preparing"}).delivery_status == "preparing"
    with pytest.raises(ValidationError):
        parse_payment_terms("cash", {"delivery_status": "lost"})


def test_credit_due_date():
    assert parse_payment_terms("credit", {"payment_due_date": "2026-11-30"}) == CreditTerms(date(2026, 11, 30))
    assert parse_payment_terms("credit", {"payment_due_date": date(2026, 12, 1)}).payment_due_date == date(2026, 12, 1)
    assert parse_payment_terms("credit", {}).payment_due_date is None
    with pytest.raises(ValidationError):
        parse_payment_terms("credit", {"payment_due_date": "next week"})


def test_terms_to_columns_clears_other_method_fields():
    columns = terms_to_columns(CashTerms(delivery_status="preparing"))
    assert columns == {
        "payment_method": "cash",
        "delivery_status": "preparing",
        "bank_code": None,
        "bank_account": None,
        "payment_due_date": None,
    }


@pytest.mark.parametrize("terms, expected", [
    (OrderTerms(), SellingStatus.ORDER),
    (CashTerms(delivery_status="received"), SellingStatus.RECEIVED),
    (CashTerms(delivery_status="preparing"), SellingStatus.PREPARING),
    (TransferTerms(), SellingStatus.WAIT_PAYMENT),
    (CardTerms(), SellingStatus.WAIT_PAYMENT),
    (CreditTerms(), SellingStatus.PREPARING),
    (CodTerms(), SellingStatus.PREPARING),
])
def test_initial_status(terms, expected):
    assert initial_status(terms) is expected


def test_proof_of_payment_methods():
    assert requires_proof_of_payment(OrderTerms())
    assert requires_proof_of_payment(CardTerms())
    assert not requires_proof_of_payment(CashTerms())
    assert not requires_proof_of_payment(CreditTerms())
    assert not requires_proof_of_payment(CodTerms())


def test_shipping_address_requirement():
    assert requires_shipping_address(CashTerms(delivery_status="preparing"), True)
    assert not requires_shipping_address(CashTerms(delivery_status="received"), True)
    assert not requires_shipping_address(OrderTerms(), False)
    assert requires_shipping_address(OrderTerms(), True)
    assert requires_shipping_address(CodTerms(), False)


def test_credit_due_date_from_timestamp_uses_utc_day():
    terms = parse_payment_terms("credit", {"payment_due_date": "2026-12-01T03:00:00+07:00"})
    assert terms.payment_due_date == date(2026, 11, 30)
