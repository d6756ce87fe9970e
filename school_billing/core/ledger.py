"""
Ledger helpers shared by the payment, promotion and balance workflows.

Pure functions only: status derivation, money normalisation, invoice number
formatting and the back-payment item description format.
"""

import re
from decimal import Decimal
from typing import NamedTuple, Optional

from school_billing.core.enums import LedgerStatus

CENTS = Decimal("0.01")

INVOICE_SEQUENCE_WIDTH = 6

BACK_PAYMENT_PREFIX = "Back Payment:"
# "Back Payment: Tuition Fee (Grade 2 → 3)"; "->" accepted for keyboards without the arrow
BACK_PAYMENT_RE = re.compile(r"Back Payment: (.+) \(Grade (\d+) (?:→|->) (\d+)\)")


class BackPaymentRef(NamedTuple):
    charge_name: str
    original_grade_level: int
    current_grade_level: int


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def money(val) -> Decimal:
    """Normalise a numeric DB/aggregate value to a 2-place Decimal."""
    return to_decimal(val).quantize(CENTS)


def ledger_status(amount_paid, amount_due) -> str:
    """paid iff paid >= due; partial iff 0 < paid < due; pending otherwise."""
    paid = to_decimal(amount_paid)
    due = to_decimal(amount_due)
    if paid >= due:
        return LedgerStatus.paid.value
    if paid > 0:
        return LedgerStatus.partial.value
    return LedgerStatus.pending.value


def apply_amount(amount_paid, delta) -> Decimal:
    """New amount_paid after adding delta (negative to reverse), floored at zero."""
    return max(Decimal("0"), to_decimal(amount_paid) + to_decimal(delta))


def format_invoice_number(year: int, sequence: int) -> str:
    return f"{year:04d}-{sequence:0{INVOICE_SEQUENCE_WIDTH}d}"


def invoice_sequence(invoice_number: Optional[str]) -> int:
    """Sequence part of YYYY-NNNNNN; 0 when missing or malformed."""
    if not invoice_number or "-" not in invoice_number:
        return 0
    _, _, seq = invoice_number.partition("-")
    return int(seq) if seq.isdigit() else 0


def next_invoice_number(year: int, last_invoice_number: Optional[str]) -> str:
    return format_invoice_number(year, invoice_sequence(last_invoice_number) + 1)


def format_back_payment_description(charge_name: str, original_grade_level: int, current_grade_level: int) -> str:
    return f"{BACK_PAYMENT_PREFIX} {charge_name} (Grade {original_grade_level} → {current_grade_level})"


def parse_back_payment_description(description: Optional[str]) -> Optional[BackPaymentRef]:
    if not description or BACK_PAYMENT_PREFIX not in description:
        return None
    match = BACK_PAYMENT_RE.search(description)
    if not match:
        return None
    return BackPaymentRef(
        charge_name=match.group(1),
        original_grade_level=int(match.group(2)),
        current_grade_level=int(match.group(3)),
    )
