"""Assessment flags router."""

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.dependencies import get_current_user
from school_billing.auth.rbac import require_staff
from school_billing.auth.schemas import CurrentUser
from school_billing.core.exceptions import ServiceError
from school_billing.core.schemas import CountResponse
from school_billing.db.session import get_db

from .schemas import AssessmentFlagCreate, AssessmentFlagResponse, AssessmentFlagSetResponse
from . import service

router = APIRouter(prefix="/api/assessment-flags", tags=["assessment-flags"])


@router.get(
    "/flags/{assessment_date}",
    response_model=List[AssessmentFlagResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_flags(
    assessment_date: date,
    db: AsyncSession = Depends(get_db),
) -> List[AssessmentFlagResponse]:
    return await service.list_flags(db, assessment_date)


@router.post("/flags", response_model=AssessmentFlagSetResponse)
async def set_flags(
    payload: AssessmentFlagCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff),
) -> AssessmentFlagSetResponse:
    try:
        return await service.set_flags(db, payload, created_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/flags/{assessment_date}",
    response_model=CountResponse,
    dependencies=[Depends(require_staff)],
)
async def clear_flags_for_date(
    assessment_date: date,
    db: AsyncSession = Depends(get_db),
) -> CountResponse:
    return await service.clear_flags_for_date(db, assessment_date)


@router.delete(
    "/flags",
    response_model=CountResponse,
    dependencies=[Depends(require_staff)],
)
async def clear_all_flags(
    db: AsyncSession = Depends(get_db),
) -> CountResponse:
    return await service.clear_all_flags(db)
