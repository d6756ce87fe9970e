"""Students router: CRUD, batch grade upgrade and promotion with back payments."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.dependencies import get_current_user
from school_billing.auth.rbac import require_admin, require_staff
from school_billing.core.enums import StudentStatus
from school_billing.core.exceptions import ServiceError
from school_billing.core.schemas import ActionResponse
from school_billing.db.session import get_db

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
)
from . import service

router = APIRouter(prefix="/api/students", tags=["students"])


@router.get(
    "",
    response_model=StudentPaginatedResponse,
    dependencies=[Depends(get_current_user)],
)
async def list_students(
    grade_level: Optional[int] = Query(None, description="Filter by grade level"),
    student_status: StudentStatus = Query(StudentStatus.active, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> StudentPaginatedResponse:
    return await service.list_students(
        db,
        grade_level=grade_level,
        student_status=student_status.value,
        page=page,
        page_size=page_size,
    )


@router.post(
    "",
    response_model=StudentCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_staff)],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentCreateResponse:
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/batch-upgrade",
    response_model=BatchGradeUpgradeResult,
    dependencies=[Depends(require_admin)],
)
async def batch_upgrade(
    payload: BatchGradeUpgrade,
    db: AsyncSession = Depends(get_db),
) -> BatchGradeUpgradeResult:
    try:
        return await service.batch_upgrade_grades(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    student = await service.get_student(db, student_id)
    if not student:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.put(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(require_staff)],
)
async def update_student(
    student_id: int,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.update_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{student_id}",
    response_model=ActionResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> ActionResponse:
    try:
        deleted = await service.delete_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return ActionResponse(success=True, message="Student deleted successfully")


# --- Promotion ---
@router.post(
    "/{student_id}/check-back-payments",
    response_model=BackPaymentCheckResponse,
    dependencies=[Depends(require_staff)],
)
async def check_back_payments(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> BackPaymentCheckResponse:
    try:
        return await service.check_back_payments(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{student_id}/upgrade-with-back-payments",
    response_model=GradeUpgradeResponse,
    dependencies=[Depends(require_staff)],
)
async def upgrade_with_back_payments(
    student_id: int,
    payload: GradeUpgradeRequest,
    db: AsyncSession = Depends(get_db),
) -> GradeUpgradeResponse:
    try:
        return await service.upgrade_with_back_payments(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}/back-payments",
    response_model=List[BackPaymentResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_back_payments(
    student_id: int,
    outstanding_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[BackPaymentResponse]:
    try:
        return await service.list_back_payments(db, student_id, outstanding_only=outstanding_only)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
