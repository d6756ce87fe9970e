"""Charges router: charge definitions and student balance views."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.dependencies import get_current_user
from school_billing.auth.rbac import require_admin, require_staff
from school_billing.core.enums import ChargeType, StudentStatus
from school_billing.core.exceptions import ServiceError
from school_billing.core.schemas import ActionResponse
from school_billing.db.session import get_db

from .schemas import (
    ChargeCreate,
    ChargeCreateResponse,
    ChargeResponse,
    ChargeUpdate,
    StudentBreakdownResponse,
    StudentChargeSummaryItem,
)
from . import service

router = APIRouter(prefix="/api/charges", tags=["charges"])


@router.get(
    "",
    response_model=List[ChargeResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_charges(
    charge_type: Optional[ChargeType] = Query(None),
    grade_level: Optional[int] = Query(None, description="Includes charges without a grade"),
    is_active: bool = Query(True),
    db: AsyncSession = Depends(get_db),
) -> List[ChargeResponse]:
    return await service.list_charges(db, charge_type=charge_type, grade_level=grade_level, is_active=is_active)


@router.post(
    "",
    response_model=ChargeCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_staff)],
)
async def create_charge(
    payload: ChargeCreate,
    db: AsyncSession = Depends(get_db),
) -> ChargeCreateResponse:
    try:
        return await service.create_charge(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/grade/{grade_level}",
    response_model=List[ChargeResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_charges_for_grade(
    grade_level: int,
    db: AsyncSession = Depends(get_db),
) -> List[ChargeResponse]:
    try:
        return await service.list_charges_for_grade(db, grade_level)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Balances ---
@router.get(
    "/students/summary",
    response_model=List[StudentChargeSummaryItem],
    dependencies=[Depends(get_current_user)],
)
async def students_summary(
    grade_level: Optional[int] = Query(None),
    student_status: StudentStatus = Query(StudentStatus.active, alias="status"),
    db: AsyncSession = Depends(get_db),
) -> List[StudentChargeSummaryItem]:
    return await service.students_summary(db, grade_level=grade_level, student_status=student_status.value)


@router.get(
    "/students/{student_id}/breakdown",
    response_model=StudentBreakdownResponse,
    dependencies=[Depends(get_current_user)],
)
async def student_breakdown(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> StudentBreakdownResponse:
    try:
        return await service.student_breakdown(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{charge_id}",
    response_model=ChargeResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_charge(
    charge_id: int,
    db: AsyncSession = Depends(get_db),
) -> ChargeResponse:
    charge = await service.get_charge(db, charge_id)
    if not charge:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Charge not found")
    return charge


@router.put(
    "/{charge_id}",
    response_model=ChargeResponse,
    dependencies=[Depends(require_staff)],
)
async def update_charge(
    charge_id: int,
    payload: ChargeUpdate,
    db: AsyncSession = Depends(get_db),
) -> ChargeResponse:
    try:
        return await service.update_charge(db, charge_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{charge_id}",
    response_model=ActionResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_charge(
    charge_id: int,
    db: AsyncSession = Depends(get_db),
) -> ActionResponse:
    try:
        deleted = await service.delete_charge(db, charge_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Charge not found")
    return ActionResponse(success=True, message="Charge deleted successfully")
