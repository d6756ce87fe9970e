"""
Assessment batches: point-in-time snapshots of each selected student's charges,
payments and amount due. Snapshots are written once and never updated.
"""

import io
import logging
from typing import List

from fastapi import status
from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from school_billing.core.balances import compute_student_balance
from school_billing.core.exceptions import INTERNAL_ERROR_MESSAGE, ConflictError, NotFoundError, ServiceError
from school_billing.core.ledger import money
from school_billing.core.models import Assessment, AssessmentBatch, Student
from school_billing.core.schemas import ActionResponse, CountResponse

from .schemas import (
    AssessmentBatchCreate,
    AssessmentBatchCreateResponse,
    AssessmentBatchDetail,
    AssessmentBatchResponse,
    AssessmentResponse,
)

logger = logging.getLogger(__name__)

EXPORT_HEADERS = (
    "student_number",
    "last_name",
    "first_name",
    "grade_level",
    "total_charges",
    "total_paid",
    "current_due",
    "due_date",
)


def _assessment_to_response(a: Assessment) -> AssessmentResponse:
    s = a.student
    return AssessmentResponse(
        id=a.id,
        batch_id=a.batch_id,
        student_id=a.student_id,
        student_number=s.student_number if s else None,
        first_name=s.first_name if s else None,
        middle_name=s.middle_name if s else None,
        last_name=s.last_name if s else None,
        grade_level=s.grade_level if s else None,
        assessment_date=a.assessment_date,
        due_date=a.due_date,
        total_charges=money(a.total_charges),
        total_paid=money(a.total_paid),
        current_due=money(a.current_due),
        created_at=a.created_at,
    )


async def _get_batch_detail(db: AsyncSession, batch_id: int) -> AssessmentBatch:
    batch = (
        await db.execute(
            select(AssessmentBatch)
            .options(selectinload(AssessmentBatch.assessments).selectinload(Assessment.student))
            .where(AssessmentBatch.id == batch_id)
        )
    ).scalar_one_or_none()
    if not batch:
        raise NotFoundError("Assessment batch not found")
    return batch


def _sorted_assessments(batch: AssessmentBatch) -> List[Assessment]:
    return sorted(
        batch.assessments,
        key=lambda a: (
            a.student.grade_level if a.student else 0,
            a.student.last_name if a.student else "",
            a.student.first_name if a.student else "",
        ),
    )


async def create_batch(
    db: AsyncSession,
    payload: AssessmentBatchCreate,
    created_by: int,
) -> AssessmentBatchCreateResponse:
    student_ids = [a.student_id for a in payload.assessments]
    if len(set(student_ids)) != len(student_ids):
        raise ServiceError("A student can only appear once in a batch", status.HTTP_400_BAD_REQUEST)

    try:
        batch = AssessmentBatch(
            batch_name=payload.batch_name.strip(),
            assessment_date=payload.assessment_date,
            due_date=payload.due_date,
            created_by=created_by,
        )
        db.add(batch)
        await db.flush()

        for entry in payload.assessments:
            student = await db.get(Student, entry.student_id)
            if not student:
                raise NotFoundError(f"Student {entry.student_id} not found")
            balance = await compute_student_balance(db, student)
            current_due = entry.current_due if entry.current_due is not None else balance.remaining_balance
            db.add(
                Assessment(
                    batch_id=batch.id,
                    student_id=student.id,
                    assessment_date=payload.assessment_date,
                    due_date=payload.due_date,
                    total_charges=balance.total_due,
                    total_paid=balance.total_payments,
                    current_due=money(current_due),
                    created_by=created_by,
                )
            )
        await db.flush()
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("A student can only appear once in a batch") from e
    except Exception as e:
        await db.rollback()
        logger.exception("Assessment batch %r creation failed", payload.batch_name)
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e

    logger.info("Assessment batch %s (%s) created with %d student(s)", batch.id, batch.batch_name, len(student_ids))
    return AssessmentBatchCreateResponse(
        success=True,
        message="Assessment batch created successfully",
        batch_id=batch.id,
        assessment_count=len(student_ids),
    )


async def list_batches(db: AsyncSession) -> List[AssessmentBatchResponse]:
    count_subq = (
        select(Assessment.batch_id, func.count(Assessment.id).label("cnt"))
        .group_by(Assessment.batch_id)
        .subquery()
    )
    rows = (
        await db.execute(
            select(AssessmentBatch, func.coalesce(count_subq.c.cnt, 0))
            .outerjoin(count_subq, count_subq.c.batch_id == AssessmentBatch.id)
            .order_by(AssessmentBatch.created_at.desc(), AssessmentBatch.id.desc())
        )
    ).all()
    return [
        AssessmentBatchResponse(
            id=b.id,
            batch_name=b.batch_name,
            assessment_date=b.assessment_date,
            due_date=b.due_date,
            created_by=b.created_by,
            created_at=b.created_at,
            assessment_count=cnt or 0,
        )
        for b, cnt in rows
    ]


async def get_batch(db: AsyncSession, batch_id: int) -> AssessmentBatchDetail:
    batch = await _get_batch_detail(db, batch_id)
    assessments = _sorted_assessments(batch)
    return AssessmentBatchDetail(
        id=batch.id,
        batch_name=batch.batch_name,
        assessment_date=batch.assessment_date,
        due_date=batch.due_date,
        created_by=batch.created_by,
        created_at=batch.created_at,
        assessment_count=len(assessments),
        assessments=[_assessment_to_response(a) for a in assessments],
    )


async def export_batch_xlsx(db: AsyncSession, batch_id: int) -> bytes:
    """Workbook with one row per assessed student, for printing or mail merge."""
    batch = await _get_batch_detail(db, batch_id)
    wb = Workbook()
    ws = wb.active
    ws.title = "Assessments"
    ws.append([batch.batch_name])
    ws["A1"].font = Font(bold=True)
    ws.append(["Assessment date", batch.assessment_date.isoformat(), "Due date", batch.due_date.isoformat()])
    ws.append([])
    ws.append(list(EXPORT_HEADERS))
    for cell in ws[4]:
        cell.font = Font(bold=True)
    for a in _sorted_assessments(batch):
        s = a.student
        ws.append([
            s.student_number if s else "",
            s.last_name if s else "",
            s.first_name if s else "",
            s.grade_level if s else None,
            float(money(a.total_charges)),
            float(money(a.total_paid)),
            float(money(a.current_due)),
            a.due_date.isoformat(),
        ])
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


async def delete_batch(db: AsyncSession, batch_id: int) -> ActionResponse:
    batch = await _get_batch_detail(db, batch_id)
    await db.delete(batch)
    await db.commit()
    logger.info("Assessment batch %s deleted", batch_id)
    return ActionResponse(success=True, message="Assessment batch deleted successfully")


async def clear_all(db: AsyncSession) -> CountResponse:
    """Delete every assessment and batch."""
    try:
        await db.execute(delete(Assessment))
        result = await db.execute(delete(AssessmentBatch))
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception("Clearing assessments failed")
        raise ServiceError(INTERNAL_ERROR_MESSAGE, status.HTTP_500_INTERNAL_SERVER_ERROR) from e
    count = result.rowcount or 0
    logger.info("Cleared %d assessment batch(es)", count)
    return CountResponse(success=True, message="All assessments cleared", count=count)
