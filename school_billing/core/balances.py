"""Balance computation: charges for the student's grade + outstanding back payments - payments."""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.core.ledger import money
from school_billing.core.models import BackPayment, Charge, Payment, Student


@dataclass
class StudentBalance:
    total_charges: Decimal
    mandatory_charges: Decimal
    back_payments_outstanding: Decimal
    total_payments: Decimal

    @property
    def total_due(self) -> Decimal:
        return self.total_charges + self.back_payments_outstanding

    @property
    def remaining_balance(self) -> Decimal:
        return self.total_due - self.total_payments


def grade_charges_filter(grade_level: int):
    """Active charges billed to a grade. Charges without a grade are not part of any balance."""
    return (Charge.grade_level == grade_level, Charge.is_active.is_(True))


def outstanding_back_payment_expr():
    return func.coalesce(
        func.sum(
            case(
                (BackPayment.amount_paid < BackPayment.amount_due, BackPayment.amount_due - BackPayment.amount_paid),
                else_=0,
            )
        ),
        0,
    )


def paid_total_expr():
    return func.coalesce(func.sum(Payment.total_amount), 0)


async def compute_student_balance(db: AsyncSession, student: Student) -> StudentBalance:
    charges_row = (
        await db.execute(
            select(
                func.coalesce(func.sum(Charge.amount), 0),
                func.coalesce(func.sum(case((Charge.is_mandatory.is_(True), Charge.amount), else_=0)), 0),
            ).where(*grade_charges_filter(student.grade_level))
        )
    ).one()
    outstanding = (
        await db.execute(
            select(outstanding_back_payment_expr()).where(BackPayment.student_id == student.id)
        )
    ).scalar()
    paid = (
        await db.execute(
            select(paid_total_expr()).where(
                Payment.student_id == student.id,
                Payment.reverted.is_(False),
            )
        )
    ).scalar()
    return StudentBalance(
        total_charges=money(charges_row[0]),
        mandatory_charges=money(charges_row[1]),
        back_payments_outstanding=money(outstanding),
        total_payments=money(paid),
    )
