"""Student service: CRUD, batch grade moves and promotion with back-payment carry-over."""

import logging
import math
from decimal import Decimal
from typing import List, Optional

from fastapi import status
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.core.enums import (
    MAX_GRADE_LEVEL,
    MIN_GRADE_LEVEL,
    UNPAID_STATUSES,
    LedgerStatus,
    StudentStatus,
)
from school_billing.core.exceptions import INTERNAL_ERROR_MESSAGE, ConflictError, NotFoundError, ServiceError
from school_billing.core.ledger import format_back_payment_description, money, to_decimal
from school_billing.core.models import BackPayment, Charge, Student, StudentCharge

from .schemas import (
    BackPaymentCheckResponse,
    BackPaymentResponse,
    BatchGradeUpgrade,
    BatchGradeUpgradeResult,
    GradeUpgradeRequest,
    GradeUpgradeResponse,
    StudentCreate,
    StudentCreateResponse,
    StudentPaginatedResponse,
    StudentResponse,
    StudentUpdate,
    UnpaidChargeItem,
)

logger = logging.getLogger(__name__)

GRADE_RANGE_MESSAGE = f"Grade level must be between {MIN_GRADE_LEVEL} and {MAX_GRADE_LEVEL}"


def _check_grade(grade_level: int) -> None:
    if grade_level < MIN_GRADE_LEVEL or grade_level > MAX_GRADE_LEVEL:
        raise ServiceError(GRADE_RANGE_MESSAGE, status.HTTP_400_BAD_REQUEST)


async def _student_number_taken(db: AsyncSession, student_number: str, exclude_id: Optional[int] = None) -> bool:
    stmt = select(Student.id).where(Student.student_number == student_number)
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


async def get_student_or_404(db: AsyncSession, student_id: int) -> Student:
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")
    return student


# --- CRUD ---
async def list_students(
    db: AsyncSession,
    grade_level: Optional[int] = None,
    student_status: str = StudentStatus.active.value,
    page: int = 1,
    page_size: int = 50,
) -> StudentPaginatedResponse:
    filters = [Student.status == student_status]
    if grade_level is not None:
        filters.append(Student.grade_level == grade_level)

    total = (await db.execute(select(func.count(Student.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Student)
        .where(*filters)
        .order_by(Student.last_name, Student.first_name)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    return StudentPaginatedResponse(
        items=[StudentResponse.model_validate(s) for s in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


async def get_student(db: AsyncSession, student_id: int) -> Optional[StudentResponse]:
    student = await db.get(Student, student_id)
    return StudentResponse.model_validate(student) if student else None


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentCreateResponse:
    _check_grade(payload.grade_level)
    student_number = payload.student_number.strip()
    if await _student_number_taken(db, student_number):
        raise ConflictError("Student number already exists")
    try:
        student = Student(
            **payload.model_dump(exclude={"student_number"}),
            student_number=student_number,
            status=StudentStatus.active.value,
        )
        db.add(student)
        await db.commit()
        await db.refresh(student)
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Student number already exists") from e
    return StudentCreateResponse(success=True, message="Student created successfully", student_id=student.id)


async def update_student(db: AsyncSession, student_id: int, payload: StudentUpdate) -> StudentResponse:
    student = await get_student_or_404(db, student_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ServiceError("No fields to update", status.HTTP_400_BAD_REQUEST)
    if "grade_level" in changes:
        _check_grade(changes["grade_level"])
    if "student_number" in changes:
        changes["student_number"] = changes["student_number"].strip()
        if await _student_number_taken(db, changes["student_number"], exclude_id=student.id):
            raise ConflictError("Student number already exists")
    if "status" in changes:
        changes["status"] = StudentStatus(changes["status"]).value

    for field, value in changes.items():
        setattr(student, field, value)
    try:
        await db.commit()
        await db.refresh(student)
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Student update conflict") from e
    return StudentResponse.model_validate(student)


async def delete_student(db: AsyncSession, student_id: int) -> bool:
    student = await db.get(Student, student_id)
    if not student:
        return False
    try:
        await db.delete(student)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Student has billing records; set the status to inactive instead") from e
    logger.info("Deleted student %s (%s)", student.id, student.student_number)
    return True


async def batch_upgrade_grades(db: AsyncSession, payload: BatchGradeUpgrade) -> BatchGradeUpgradeResult:
    """Plain grade move for active students; balances are not carried over."""
    if not (MIN_GRADE_LEVEL <= payload.from_grade <= MAX_GRADE_LEVEL) or not (
        MIN_GRADE_LEVEL <= payload.to_grade <= MAX_GRADE_LEVEL
    ):
        raise ServiceError(f"Grade levels must be between {MIN_GRADE_LEVEL} and {MAX_GRADE_LEVEL}", status.HTTP_400_BAD_REQUEST)

    stmt = (
        update(Student)
        .where(
            Student.grade_level == payload.from_grade,
            Student.status == StudentStatus.active.value,
        )
        .values(grade_level=payload.to_grade)
    )
    if payload.student_ids:
        stmt = stmt.where(Student.id.in_(payload.student_ids))
    try:
        result = await db.execute(stmt)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("Batch grade upgrade %s -> %s failed", payload.from_grade, payload.to_grade)
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e
    return BatchGradeUpgradeResult(
        success=True,
        message="Batch grade upgrade completed",
        updated_count=result.rowcount or 0,
    )


# --- Promotion with back payments ---
def _back_payment_to_response(bp: BackPayment) -> BackPaymentResponse:
    amount_due = money(bp.amount_due)
    amount_paid = money(bp.amount_paid)
    return BackPaymentResponse(
        id=bp.id,
        student_id=bp.student_id,
        charge_id=bp.charge_id,
        charge_name=bp.charge_name,
        original_grade_level=bp.original_grade_level,
        current_grade_level=bp.current_grade_level,
        amount_due=amount_due,
        amount_paid=amount_paid,
        balance=max(Decimal("0"), amount_due - amount_paid),
        status=bp.status,
        payment_description=format_back_payment_description(
            bp.charge_name, bp.original_grade_level, bp.current_grade_level
        ),
        created_at=bp.created_at,
    )


async def _collect_unpaid_charges(db: AsyncSession, student: Student) -> List[UnpaidChargeItem]:
    """
    Unpaid amounts at the student's current grade: billed charges still pending/partial/overdue,
    plus mandatory grade charges that were never billed (no student_charges row yet).
    """
    unpaid: List[UnpaidChargeItem] = []

    billed = (
        await db.execute(
            select(StudentCharge, Charge.name)
            .join(Charge, StudentCharge.charge_id == Charge.id)
            .where(
                StudentCharge.student_id == student.id,
                Charge.grade_level == student.grade_level,
                StudentCharge.status.in_(UNPAID_STATUSES),
            )
            .order_by(Charge.charge_type, Charge.name)
        )
    ).all()
    for sc, charge_name in billed:
        due = money(sc.amount_due)
        paid = money(sc.amount_paid)
        if due - paid <= 0:
            continue
        unpaid.append(
            UnpaidChargeItem(
                charge_id=sc.charge_id,
                charge_name=charge_name,
                amount_due=due,
                amount_paid=paid,
                unpaid_amount=due - paid,
                has_student_charge=True,
            )
        )

    billed_ids = select(StudentCharge.charge_id).where(StudentCharge.student_id == student.id)
    unbilled = (
        await db.execute(
            select(Charge)
            .where(
                Charge.grade_level == student.grade_level,
                Charge.is_active.is_(True),
                Charge.is_mandatory.is_(True),
                Charge.id.not_in(billed_ids),
            )
            .order_by(Charge.charge_type, Charge.name)
        )
    ).scalars().all()
    for charge in unbilled:
        amount = money(charge.amount)
        unpaid.append(
            UnpaidChargeItem(
                charge_id=charge.id,
                charge_name=charge.name,
                amount_due=amount,
                amount_paid=Decimal("0.00"),
                unpaid_amount=amount,
                has_student_charge=False,
            )
        )
    return unpaid


async def check_back_payments(db: AsyncSession, student_id: int) -> BackPaymentCheckResponse:
    student = await get_student_or_404(db, student_id)
    unpaid = await _collect_unpaid_charges(db, student)
    total = sum((u.unpaid_amount for u in unpaid), Decimal("0.00"))
    return BackPaymentCheckResponse(
        student_id=student.id,
        current_grade_level=student.grade_level,
        has_unpaid=total > 0,
        total_unpaid=total,
        unpaid_charges=unpaid,
    )


async def upgrade_with_back_payments(
    db: AsyncSession,
    student_id: int,
    payload: GradeUpgradeRequest,
) -> GradeUpgradeResponse:
    """
    Promote a student and carry every unpaid charge of the current grade into back_payments.
    Promotion, student_charges backfill and back-payment rows commit together or not at all.
    """
    student = await get_student_or_404(db, student_id)
    if student.status == StudentStatus.graduated.value:
        raise ServiceError("Student has already graduated", status.HTTP_400_BAD_REQUEST)
    new_grade = payload.new_grade_level
    if new_grade < MIN_GRADE_LEVEL or new_grade > MAX_GRADE_LEVEL + 1:
        raise ServiceError(
            f"New grade level must be between {MIN_GRADE_LEVEL} and {MAX_GRADE_LEVEL + 1}",
            status.HTTP_400_BAD_REQUEST,
        )
    previous_grade = student.grade_level
    if new_grade <= previous_grade:
        raise ServiceError("New grade level must be higher than the current grade", status.HTTP_400_BAD_REQUEST)

    created: List[BackPayment] = []
    try:
        unpaid = await _collect_unpaid_charges(db, student)
        for item in unpaid:
            if not item.has_student_charge:
                db.add(
                    StudentCharge(
                        student_id=student.id,
                        charge_id=item.charge_id,
                        amount_due=item.amount_due,
                        amount_paid=Decimal("0"),
                        status=LedgerStatus.pending.value,
                    )
                )
            bp = BackPayment(
                student_id=student.id,
                charge_id=item.charge_id,
                charge_name=item.charge_name,
                original_grade_level=previous_grade,
                current_grade_level=new_grade,
                amount_due=item.unpaid_amount,
                amount_paid=Decimal("0"),
                status=LedgerStatus.pending.value,
            )
            db.add(bp)
            created.append(bp)

        if new_grade > MAX_GRADE_LEVEL:
            student.status = StudentStatus.graduated.value
        else:
            student.grade_level = new_grade
        await db.flush()
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("Promotion conflicts with existing billing records") from e
    except Exception as e:
        await db.rollback()
        logger.exception("Promotion of student %s to grade %s failed", student_id, new_grade)
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    for bp in created:
        await db.refresh(bp)
    await db.refresh(student)
    total = sum((to_decimal(bp.amount_due) for bp in created), Decimal("0"))
    logger.info(
        "Promoted student %s from grade %s to %s with %d back payment(s) totalling %s",
        student.id, previous_grade, new_grade, len(created), total,
    )
    graduated = student.status == StudentStatus.graduated.value
    return GradeUpgradeResponse(
        success=True,
        message="Student graduated" if graduated else "Student promoted successfully",
        student_id=student.id,
        previous_grade_level=previous_grade,
        new_grade_level=student.grade_level,
        status=student.status,
        total_back_payment=money(total),
        back_payments=[_back_payment_to_response(bp) for bp in created],
    )


async def list_back_payments(
    db: AsyncSession,
    student_id: int,
    outstanding_only: bool = False,
) -> List[BackPaymentResponse]:
    await get_student_or_404(db, student_id)
    stmt = select(BackPayment).where(BackPayment.student_id == student_id)
    if outstanding_only:
        stmt = stmt.where(BackPayment.amount_paid < BackPayment.amount_due)
    stmt = stmt.order_by(BackPayment.created_at, BackPayment.id)
    result = await db.execute(stmt)
    return [_back_payment_to_response(bp) for bp in result.scalars().all()]
