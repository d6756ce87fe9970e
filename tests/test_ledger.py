"""Unit tests for ledger helpers: status rule, invoice numbers and back-payment descriptions."""

from decimal import Decimal

import pytest

from school_billing.core.ledger import (
    apply_amount,
    format_back_payment_description,
    format_invoice_number,
    invoice_sequence,
    ledger_status,
    money,
    next_invoice_number,
    parse_back_payment_description,
)


@pytest.mark.parametrize(
    "paid, due, expected",
    [
        ("500", "500", "paid"),
        ("600", "500", "paid"),
        ("200", "500", "partial"),
        ("0.01", "500", "partial"),
        ("0", "500", "pending"),
        ("0", "0", "paid"),
    ],
)
def test_ledger_status(paid: str, due: str, expected: str) -> None:
    assert ledger_status(Decimal(paid), Decimal(due)) == expected


def test_apply_amount_floors_at_zero() -> None:
    assert apply_amount(Decimal("100"), Decimal("-250")) == Decimal("0")
    assert apply_amount(Decimal("100"), Decimal("-40")) == Decimal("60")
    assert apply_amount(None, Decimal("25.50")) == Decimal("25.50")


def test_money_normalises_to_cents() -> None:
    assert money(300.0) == Decimal("300.00")
    assert money("12.5") == Decimal("12.50")
    assert money(None) == Decimal("0.00")


def test_invoice_number_format() -> None:
    assert format_invoice_number(2024, 1) == "2024-000001"
    assert format_invoice_number(2024, 123456) == "2024-123456"


def test_next_invoice_number() -> None:
    assert next_invoice_number(2025, None) == "2025-000001"
    assert next_invoice_number(2025, "2025-000041") == "2025-000042"


def test_invoice_sequence_malformed() -> None:
    assert invoice_sequence("garbage") == 0
    assert invoice_sequence("2024-abc") == 0
    assert invoice_sequence("") == 0


def test_back_payment_description_parse() -> None:
    desc = format_back_payment_description("Tuition Fee", 2, 3)
    assert desc == "Back Payment: Tuition Fee (Grade 2 → 3)"
    ref = parse_back_payment_description(desc)
    assert ref is not None
    assert ref.charge_name == "Tuition Fee"
    assert ref.original_grade_level == 2
    assert ref.current_grade_level == 3


def test_back_payment_description_ascii_arrow() -> None:
    ref = parse_back_payment_description("Back Payment: Books (Grade 1 -> 2)")
    assert ref is not None
    assert (ref.charge_name, ref.original_grade_level, ref.current_grade_level) == ("Books", 1, 2)


@pytest.mark.parametrize(
    "description",
    [None, "", "Tuition Fee", "Back Payment: Books", "Back Payment: Books (Grade one → two)"],
)
def test_back_payment_description_no_match(description) -> None:
    assert parse_back_payment_description(description) is None
