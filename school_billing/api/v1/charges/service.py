"""Charge service: charge definitions plus per-student balance summary and breakdown."""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import status
from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.api.v1.students.schemas import StudentResponse
from school_billing.api.v1.students.service import get_student_or_404, list_back_payments
from school_billing.core.balances import (
    StudentBalance,
    compute_student_balance,
    grade_charges_filter,
    outstanding_back_payment_expr,
    paid_total_expr,
)
from school_billing.core.enums import MAX_GRADE_LEVEL, MIN_GRADE_LEVEL, ChargeType, StudentStatus
from school_billing.core.exceptions import NotFoundError, ServiceError
from school_billing.core.ledger import money
from school_billing.core.models import BackPayment, Charge, Payment, PaymentItem, Student, StudentCharge

from .schemas import (
    BalanceSummary,
    BreakdownPayment,
    ChargeCreate,
    ChargeCreateResponse,
    ChargeResponse,
    ChargeUpdate,
    StudentBreakdownResponse,
    StudentChargeLedgerItem,
    StudentChargeSummaryItem,
)

logger = logging.getLogger(__name__)

# Columns that may be explicitly cleared on update
_NULLABLE_FIELDS = {"description", "grade_level"}


def _check_grade(grade_level: Optional[int]) -> None:
    if grade_level is not None and not (MIN_GRADE_LEVEL <= grade_level <= MAX_GRADE_LEVEL):
        raise ServiceError(
            f"Grade level must be between {MIN_GRADE_LEVEL} and {MAX_GRADE_LEVEL}",
            status.HTTP_400_BAD_REQUEST,
        )


def _to_response(charge: Charge) -> ChargeResponse:
    return ChargeResponse(
        id=charge.id,
        name=charge.name,
        description=charge.description,
        amount=money(charge.amount),
        charge_type=charge.charge_type,
        grade_level=charge.grade_level,
        is_mandatory=bool(charge.is_mandatory),
        is_active=bool(charge.is_active),
        created_at=charge.created_at,
        updated_at=charge.updated_at,
    )


def _summary(balance: StudentBalance) -> BalanceSummary:
    return BalanceSummary(
        total_charges=balance.total_charges,
        mandatory_charges=balance.mandatory_charges,
        back_payments_outstanding=balance.back_payments_outstanding,
        total_payments=balance.total_payments,
        total_due=balance.total_due,
        remaining_balance=balance.remaining_balance,
    )


# --- CRUD ---
async def list_charges(
    db: AsyncSession,
    charge_type: Optional[ChargeType] = None,
    grade_level: Optional[int] = None,
    is_active: bool = True,
) -> List[ChargeResponse]:
    stmt = select(Charge).where(Charge.is_active.is_(is_active))
    if charge_type is not None:
        stmt = stmt.where(Charge.charge_type == charge_type.value)
    if grade_level is not None:
        # Charges without a grade are listed for every grade
        stmt = stmt.where((Charge.grade_level == grade_level) | Charge.grade_level.is_(None))
    stmt = stmt.order_by(Charge.charge_type, Charge.name)
    result = await db.execute(stmt)
    return [_to_response(c) for c in result.scalars().all()]


async def list_charges_for_grade(db: AsyncSession, grade_level: int) -> List[ChargeResponse]:
    _check_grade(grade_level)
    return await list_charges(db, grade_level=grade_level, is_active=True)


async def get_charge(db: AsyncSession, charge_id: int) -> Optional[ChargeResponse]:
    charge = await db.get(Charge, charge_id)
    return _to_response(charge) if charge else None


async def create_charge(db: AsyncSession, payload: ChargeCreate) -> ChargeCreateResponse:
    _check_grade(payload.grade_level)
    try:
        charge = Charge(
            name=payload.name.strip(),
            description=(payload.description or "").strip() or None,
            amount=money(payload.amount),
            charge_type=payload.charge_type.value,
            grade_level=payload.grade_level,
            is_mandatory=payload.is_mandatory,
            is_active=True,
        )
        db.add(charge)
        await db.commit()
        await db.refresh(charge)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError("Invalid charge data", status.HTTP_400_BAD_REQUEST) from e
    return ChargeCreateResponse(success=True, message="Charge created successfully", charge_id=charge.id)


async def update_charge(db: AsyncSession, charge_id: int, payload: ChargeUpdate) -> ChargeResponse:
    charge = await db.get(Charge, charge_id)
    if not charge:
        raise NotFoundError("Charge not found")
    changes = {
        k: v
        for k, v in payload.model_dump(exclude_unset=True).items()
        if v is not None or k in _NULLABLE_FIELDS
    }
    if not changes:
        raise ServiceError("No fields to update", status.HTTP_400_BAD_REQUEST)
    if "grade_level" in changes:
        _check_grade(changes["grade_level"])
    if "charge_type" in changes:
        changes["charge_type"] = ChargeType(changes["charge_type"]).value
    if "amount" in changes:
        changes["amount"] = money(changes["amount"])

    for field, value in changes.items():
        setattr(charge, field, value)
    try:
        await db.commit()
        await db.refresh(charge)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError("Invalid charge data", status.HTTP_400_BAD_REQUEST) from e
    return _to_response(charge)


async def delete_charge(db: AsyncSession, charge_id: int) -> bool:
    charge = await db.get(Charge, charge_id)
    if not charge:
        return False
    used = (
        await db.execute(select(PaymentItem.id).where(PaymentItem.charge_id == charge_id).limit(1))
    ).first()
    if used:
        raise ServiceError("Cannot delete charge that has been used in payments", status.HTTP_400_BAD_REQUEST)
    await db.delete(charge)
    await db.commit()
    logger.info("Deleted charge %s (%s)", charge_id, charge.name)
    return True


# --- Balances ---
async def students_summary(
    db: AsyncSession,
    grade_level: Optional[int] = None,
    student_status: str = StudentStatus.active.value,
) -> List[StudentChargeSummaryItem]:
    """One row per student; each total comes from its own subquery so joins never multiply rows."""
    total_charges = (
        select(func.coalesce(func.sum(Charge.amount), 0))
        .where(Charge.grade_level == Student.grade_level, Charge.is_active.is_(True))
        .scalar_subquery()
    )
    mandatory_charges = (
        select(func.coalesce(func.sum(case((Charge.is_mandatory.is_(True), Charge.amount), else_=0)), 0))
        .where(Charge.grade_level == Student.grade_level, Charge.is_active.is_(True))
        .scalar_subquery()
    )
    outstanding = (
        select(outstanding_back_payment_expr())
        .where(BackPayment.student_id == Student.id)
        .scalar_subquery()
    )
    paid = (
        select(paid_total_expr())
        .where(Payment.student_id == Student.id, Payment.reverted.is_(False))
        .scalar_subquery()
    )
    stmt = (
        select(
            Student,
            total_charges.label("total_charges"),
            mandatory_charges.label("mandatory_charges"),
            outstanding.label("back_payments_outstanding"),
            paid.label("total_payments"),
        )
        .where(Student.status == student_status)
        .order_by(Student.grade_level, Student.last_name, Student.first_name)
    )
    if grade_level is not None:
        stmt = stmt.where(Student.grade_level == grade_level)

    items: List[StudentChargeSummaryItem] = []
    for row in (await db.execute(stmt)).all():
        student = row[0]
        balance = StudentBalance(
            total_charges=money(row.total_charges),
            mandatory_charges=money(row.mandatory_charges),
            back_payments_outstanding=money(row.back_payments_outstanding),
            total_payments=money(row.total_payments),
        )
        items.append(
            StudentChargeSummaryItem(
                student_id=student.id,
                student_number=student.student_number,
                first_name=student.first_name,
                last_name=student.last_name,
                grade_level=student.grade_level,
                status=student.status,
                **_summary(balance).model_dump(),
            )
        )
    return items


async def student_breakdown(db: AsyncSession, student_id: int) -> StudentBreakdownResponse:
    student = await get_student_or_404(db, student_id)

    charges = (
        await db.execute(
            select(Charge)
            .where(*grade_charges_filter(student.grade_level))
            .order_by(Charge.charge_type, Charge.name)
        )
    ).scalars().all()

    ledger_rows = (
        await db.execute(
            select(StudentCharge, Charge.name, Charge.charge_type)
            .join(Charge, StudentCharge.charge_id == Charge.id)
            .where(StudentCharge.student_id == student.id)
            .order_by(Charge.grade_level, Charge.charge_type, Charge.name)
        )
    ).all()
    student_charges = []
    for sc, charge_name, charge_type in ledger_rows:
        due = money(sc.amount_due)
        paid = money(sc.amount_paid)
        student_charges.append(
            StudentChargeLedgerItem(
                id=sc.id,
                charge_id=sc.charge_id,
                charge_name=charge_name,
                charge_type=charge_type,
                amount_due=due,
                amount_paid=paid,
                balance=max(Decimal("0"), due - paid),
                due_date=sc.due_date,
                status=sc.status,
            )
        )

    payments = (
        await db.execute(
            select(Payment)
            .where(Payment.student_id == student.id)
            .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
        )
    ).scalars().all()

    balance = await compute_student_balance(db, student)
    return StudentBreakdownResponse(
        student=StudentResponse.model_validate(student),
        charges=[_to_response(c) for c in charges],
        student_charges=student_charges,
        payments=[
            BreakdownPayment(
                id=p.id,
                invoice_number=p.invoice_number,
                total_amount=money(p.total_amount),
                payment_date=p.payment_date,
                payment_method=p.payment_method,
                notes=p.notes,
                reverted=bool(p.reverted),
                created_at=p.created_at,
            )
            for p in payments
        ],
        back_payments=await list_back_payments(db, student.id),
        summary=_summary(balance),
    )
