"""Assessment flags: which students are selected for the assessment run of a date."""

import logging
from datetime import date
from typing import List

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.core.exceptions import NotFoundError
from school_billing.core.models import AssessmentFlag, Student
from school_billing.core.schemas import CountResponse

from .schemas import AssessmentFlagCreate, AssessmentFlagResponse, AssessmentFlagSetResponse

logger = logging.getLogger(__name__)


async def list_flags(db: AsyncSession, assessment_date: date) -> List[AssessmentFlagResponse]:
    rows = (
        await db.execute(
            select(AssessmentFlag, Student)
            .join(Student, AssessmentFlag.student_id == Student.id)
            .where(AssessmentFlag.assessment_date == assessment_date)
            .order_by(Student.grade_level, Student.last_name, Student.first_name)
        )
    ).all()
    return [
        AssessmentFlagResponse(
            student_id=flag.student_id,
            assessment_date=flag.assessment_date,
            flagged_at=flag.flagged_at,
            student_number=student.student_number,
            first_name=student.first_name,
            middle_name=student.middle_name,
            last_name=student.last_name,
            grade_level=student.grade_level,
        )
        for flag, student in rows
    ]


async def set_flags(
    db: AsyncSession,
    payload: AssessmentFlagCreate,
    created_by: int,
) -> AssessmentFlagSetResponse:
    """Flag students for a date; students already flagged for that date are left as they are."""
    student_ids = list(dict.fromkeys(payload.student_ids))
    known = set(
        (await db.execute(select(Student.id).where(Student.id.in_(student_ids)))).scalars().all()
    )
    missing = [sid for sid in student_ids if sid not in known]
    if missing:
        raise NotFoundError(f"Student(s) not found: {', '.join(map(str, missing))}")

    already = set(
        (
            await db.execute(
                select(AssessmentFlag.student_id).where(
                    AssessmentFlag.assessment_date == payload.assessment_date,
                    AssessmentFlag.student_id.in_(student_ids),
                )
            )
        ).scalars().all()
    )
    new_ids = [sid for sid in student_ids if sid not in already]
    for sid in new_ids:
        db.add(AssessmentFlag(student_id=sid, assessment_date=payload.assessment_date, created_by=created_by))
    await db.commit()
    return AssessmentFlagSetResponse(
        success=True,
        message=f"Assessment flags set for {len(student_ids)} students",
        student_count=len(student_ids),
        added_count=len(new_ids),
        assessment_date=payload.assessment_date,
    )


async def clear_flags_for_date(db: AsyncSession, assessment_date: date) -> CountResponse:
    result = await db.execute(delete(AssessmentFlag).where(AssessmentFlag.assessment_date == assessment_date))
    await db.commit()
    return CountResponse(
        success=True,
        message=f"All assessment flags cleared for {assessment_date.isoformat()}",
        count=result.rowcount or 0,
    )


async def clear_all_flags(db: AsyncSession) -> CountResponse:
    result = await db.execute(delete(AssessmentFlag))
    await db.commit()
    logger.info("Cleared all assessment flags (%s)", result.rowcount)
    return CountResponse(success=True, message="All assessment flags cleared", count=result.rowcount or 0)
