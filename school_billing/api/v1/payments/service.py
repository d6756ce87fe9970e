"""
Payment service: create, revert and delete payments together with their ledger effects.

Creating a payment adds each item's amount to the student's student_charges row
(charge-linked items) or to the back payment it settles. Revert and delete apply
the same amounts in reverse, floored at zero. Every mutation is a single
transaction: on any failure the whole unit of work is rolled back.
"""

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_billing.core.exceptions import INTERNAL_ERROR_MESSAGE, ConflictError, NotFoundError, ServiceError
from school_billing.core.ledger import (
    apply_amount,
    ledger_status,
    money,
    next_invoice_number,
    parse_back_payment_description,
    to_decimal,
)
from school_billing.core.models import BackPayment, Charge, Payment, PaymentItem, Student, StudentCharge
from school_billing.core.schemas import ActionResponse

from .schemas import (
    PaymentCreate,
    PaymentCreateResponse,
    PaymentItemCreate,
    PaymentItemResponse,
    PaymentPaginatedResponse,
    PaymentResponse,
    PaymentRevertRequest,
    StudentPaymentHistory,
    StudentPaymentSummary,
)

logger = logging.getLogger(__name__)


def _payment_query():
    return select(Payment).options(
        selectinload(Payment.items).selectinload(PaymentItem.charge),
        selectinload(Payment.student),
        selectinload(Payment.created_by_user),
    )


def _item_to_response(item: PaymentItem) -> PaymentItemResponse:
    return PaymentItemResponse(
        id=item.id,
        charge_id=item.charge_id,
        back_payment_id=item.back_payment_id,
        charge_name=item.charge.name if item.charge else None,
        charge_type=item.charge.charge_type if item.charge else None,
        description=item.description,
        amount=money(item.amount),
        is_manual_charge=bool(item.is_manual_charge),
    )


def _payment_to_response(payment: Payment) -> PaymentResponse:
    student = payment.student
    return PaymentResponse(
        id=payment.id,
        student_id=payment.student_id,
        student_number=student.student_number if student else None,
        student_name=student.full_name if student else None,
        grade_level=student.grade_level if student else None,
        payment_date=payment.payment_date,
        invoice_number=payment.invoice_number,
        total_amount=money(payment.total_amount),
        payment_method=payment.payment_method,
        reference_number=payment.reference_number,
        notes=payment.notes,
        created_by=payment.created_by,
        created_by_username=payment.created_by_user.username if payment.created_by_user else None,
        reverted=bool(payment.reverted),
        reverted_at=payment.reverted_at,
        reverted_by=payment.reverted_by,
        revert_reason=payment.revert_reason,
        created_at=payment.created_at,
        items=[_item_to_response(i) for i in payment.items],
    )


async def _get_payment_or_404(db: AsyncSession, payment_id: int) -> Payment:
    payment = (await db.execute(_payment_query().where(Payment.id == payment_id))).scalar_one_or_none()
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


async def _generate_invoice_number(db: AsyncSession, year: int) -> str:
    """Next YYYY-NNNNNN for the year, from the highest number issued so far."""
    last = (
        await db.execute(
            select(func.max(Payment.invoice_number)).where(Payment.invoice_number.like(f"{year:04d}-%"))
        )
    ).scalar()
    return next_invoice_number(year, last)


def _integrity_message(e: IntegrityError) -> str:
    # Both SQLite and PostgreSQL name the column in a unique violation on it
    if "invoice_number" in str(e.orig):
        return "Invoice number already exists"
    return "Payment conflicts with existing records"


async def _apply_to_student_charge(db: AsyncSession, student_id: int, charge: Charge, amount: Decimal) -> StudentCharge:
    sc = (
        await db.execute(
            select(StudentCharge).where(
                StudentCharge.student_id == student_id,
                StudentCharge.charge_id == charge.id,
            )
        )
    ).scalar_one_or_none()
    if sc is None:
        # First payment against an unbilled charge bills it at the charge amount
        sc = StudentCharge(
            student_id=student_id,
            charge_id=charge.id,
            amount_due=money(charge.amount),
            amount_paid=Decimal("0"),
        )
        db.add(sc)
    sc.amount_paid = apply_amount(sc.amount_paid, amount)
    sc.status = ledger_status(sc.amount_paid, sc.amount_due)
    return sc


async def _resolve_back_payment(
    db: AsyncSession,
    student_id: int,
    item: PaymentItemCreate,
) -> Optional[BackPayment]:
    """Back payment an item settles: the explicit id, else the one named by a 'Back Payment: ...' description."""
    if item.back_payment_id is not None:
        bp = await db.get(BackPayment, item.back_payment_id)
        if not bp or bp.student_id != student_id:
            raise ServiceError("Back payment does not belong to this student", status.HTTP_400_BAD_REQUEST)
        return bp
    if not item.is_manual_charge:
        return None
    ref = parse_back_payment_description(item.description)
    if ref is None:
        return None
    candidates = (
        await db.execute(
            select(BackPayment)
            .where(
                BackPayment.student_id == student_id,
                BackPayment.original_grade_level == ref.original_grade_level,
                BackPayment.current_grade_level == ref.current_grade_level,
                BackPayment.charge_name == ref.charge_name,
            )
            .order_by(BackPayment.id)
        )
    ).scalars().all()
    if not candidates:
        return None
    # Prefer a row that still has something to pay
    for bp in candidates:
        if to_decimal(bp.amount_paid) < to_decimal(bp.amount_due):
            return bp
    return candidates[0]


def _apply_to_back_payment(bp: BackPayment, amount: Decimal) -> None:
    bp.amount_paid = apply_amount(bp.amount_paid, amount)
    bp.status = ledger_status(bp.amount_paid, bp.amount_due)


async def _reverse_ledger(db: AsyncSession, payment: Payment) -> None:
    """Undo the ledger effects of every item of a payment."""
    for item in payment.items:
        amount = -to_decimal(item.amount)
        if item.charge_id is not None:
            sc = (
                await db.execute(
                    select(StudentCharge).where(
                        StudentCharge.student_id == payment.student_id,
                        StudentCharge.charge_id == item.charge_id,
                    )
                )
            ).scalar_one_or_none()
            if sc is not None:
                sc.amount_paid = apply_amount(sc.amount_paid, amount)
                sc.status = ledger_status(sc.amount_paid, sc.amount_due)
        if item.back_payment_id is not None:
            bp = await db.get(BackPayment, item.back_payment_id)
            if bp is not None:
                _apply_to_back_payment(bp, amount)


# --- Create ---
async def create_payment(
    db: AsyncSession,
    payload: PaymentCreate,
    created_by: int,
) -> PaymentCreateResponse:
    student = await db.get(Student, payload.student_id)
    if not student:
        raise NotFoundError("Student not found")
    total = sum((to_decimal(i.amount) for i in payload.items), Decimal("0"))
    if total <= 0:
        raise ServiceError("Total payment amount must be greater than zero", status.HTTP_400_BAD_REQUEST)

    try:
        invoice_number = await _generate_invoice_number(db, datetime.utcnow().year)
        payment = Payment(
            student_id=student.id,
            payment_date=payload.payment_date,
            invoice_number=invoice_number,
            total_amount=money(total),
            payment_method=payload.payment_method.value,
            reference_number=(payload.reference_number or "").strip() or None,
            notes=payload.notes,
            created_by=created_by,
            reverted=False,
        )
        db.add(payment)
        await db.flush()

        for item in payload.items:
            amount = money(item.amount)
            line = PaymentItem(
                payment_id=payment.id,
                charge_id=item.charge_id,
                description=item.description,
                amount=amount,
                is_manual_charge=item.is_manual_charge,
            )
            if item.charge_id is not None:
                charge = await db.get(Charge, item.charge_id)
                if not charge:
                    raise NotFoundError(f"Charge {item.charge_id} not found")
                await _apply_to_student_charge(db, student.id, charge, amount)
            bp = await _resolve_back_payment(db, student.id, item)
            if bp is not None:
                line.back_payment_id = bp.id
                _apply_to_back_payment(bp, amount)
            db.add(line)

        await db.flush()
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError(_integrity_message(e)) from e
    except Exception as e:
        await db.rollback()
        logger.exception("Payment creation for student %s failed", payload.student_id)
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    logger.info(
        "Payment %s (%s) recorded for student %s: %s",
        payment.id, invoice_number, student.id, payment.total_amount,
    )
    return PaymentCreateResponse(
        success=True,
        message="Payment recorded successfully",
        payment_id=payment.id,
        invoice_number=invoice_number,
        total_amount=money(total),
    )


# --- Revert / delete ---
async def revert_payment(
    db: AsyncSession,
    payment_id: int,
    payload: PaymentRevertRequest,
    reverted_by: int,
) -> ActionResponse:
    """Reverse the ledger effects and mark the payment reverted; the rows stay for the audit trail."""
    payment = await _get_payment_or_404(db, payment_id)
    if payment.reverted:
        raise ServiceError("Payment has already been reverted", status.HTTP_400_BAD_REQUEST)
    try:
        await _reverse_ledger(db, payment)
        payment.reverted = True
        payment.reverted_at = datetime.utcnow()
        payment.reverted_by = reverted_by
        payment.revert_reason = (payload.reason or "").strip() or None
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("Revert of payment %s failed", payment_id)
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e
    logger.info("Payment %s (%s) reverted by user %s", payment.id, payment.invoice_number, reverted_by)
    return ActionResponse(success=True, message="Payment reverted successfully")


async def delete_payment(db: AsyncSession, payment_id: int) -> ActionResponse:
    """Reverse the ledger effects (unless already reverted) and delete the payment and its items."""
    payment = await _get_payment_or_404(db, payment_id)
    invoice_number = payment.invoice_number
    try:
        if not payment.reverted:
            await _reverse_ledger(db, payment)
        await db.delete(payment)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("Delete of payment %s failed", payment_id)
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e
    logger.info("Payment %s (%s) deleted", payment_id, invoice_number)
    return ActionResponse(success=True, message="Payment deleted successfully")


# --- Reads ---
async def list_payments(
    db: AsyncSession,
    student_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    include_reverted: bool = True,
    page: int = 1,
    limit: int = 50,
) -> PaymentPaginatedResponse:
    filters = []
    if student_id is not None:
        filters.append(Payment.student_id == student_id)
    if start_date is not None:
        filters.append(Payment.payment_date >= start_date)
    if end_date is not None:
        filters.append(Payment.payment_date <= end_date)
    if not include_reverted:
        filters.append(Payment.reverted.is_(False))

    total = (await db.execute(select(func.count(Payment.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        _payment_query()
        .where(*filters)
        .order_by(Payment.payment_date.desc(), Payment.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return PaymentPaginatedResponse(
        items=[_payment_to_response(p) for p in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


async def get_payment(db: AsyncSession, payment_id: int) -> Optional[PaymentResponse]:
    payment = (await db.execute(_payment_query().where(Payment.id == payment_id))).scalar_one_or_none()
    return _payment_to_response(payment) if payment else None


async def get_student_payments(db: AsyncSession, student_id: int) -> StudentPaymentHistory:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    payments: List[Payment] = (
        await db.execute(
            _payment_query()
            .where(Payment.student_id == student_id)
            .order_by(Payment.payment_date.desc(), Payment.id.desc())
        )
    ).scalars().all()
    active = [p for p in payments if not p.reverted]
    return StudentPaymentHistory(
        student_id=student_id,
        payments=[_payment_to_response(p) for p in payments],
        summary=StudentPaymentSummary(
            total_payments=len(active),
            total_amount_paid=money(sum((to_decimal(p.total_amount) for p in active), Decimal("0"))),
        ),
    )
