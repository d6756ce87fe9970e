"""Assessments router: batch snapshots, export and cleanup."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.dependencies import get_current_user
from school_billing.auth.rbac import require_admin, require_staff
from school_billing.auth.schemas import CurrentUser
from school_billing.core.exceptions import ServiceError
from school_billing.core.schemas import ActionResponse, CountResponse
from school_billing.db.session import get_db

from .schemas import (
    AssessmentBatchCreate,
    AssessmentBatchCreateResponse,
    AssessmentBatchDetail,
    AssessmentBatchResponse,
)
from . import service

router = APIRouter(prefix="/api/assessments", tags=["assessments"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get(
    "/batches",
    response_model=List[AssessmentBatchResponse],
    dependencies=[Depends(get_current_user)],
)
async def list_batches(
    db: AsyncSession = Depends(get_db),
) -> List[AssessmentBatchResponse]:
    return await service.list_batches(db)


@router.post(
    "/batch",
    response_model=AssessmentBatchCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_batch(
    payload: AssessmentBatchCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff),
) -> AssessmentBatchCreateResponse:
    try:
        return await service.create_batch(db, payload, created_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/clear-all",
    response_model=CountResponse,
    dependencies=[Depends(require_admin)],
)
async def clear_all(
    db: AsyncSession = Depends(get_db),
) -> CountResponse:
    try:
        return await service.clear_all(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/batch/{batch_id}",
    response_model=AssessmentBatchDetail,
    dependencies=[Depends(get_current_user)],
)
async def get_batch(
    batch_id: int,
    db: AsyncSession = Depends(get_db),
) -> AssessmentBatchDetail:
    try:
        return await service.get_batch(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/batch/{batch_id}/export",
    dependencies=[Depends(get_current_user)],
)
async def export_batch(
    batch_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Download the batch as an Excel workbook."""
    try:
        content = await service.export_batch_xlsx(db, batch_id)
        return Response(
            content=content,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f"attachment; filename=assessment_batch_{batch_id}.xlsx"},
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/batch/{batch_id}",
    response_model=ActionResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_batch(
    batch_id: int,
    db: AsyncSession = Depends(get_db),
) -> ActionResponse:
    try:
        return await service.delete_batch(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
