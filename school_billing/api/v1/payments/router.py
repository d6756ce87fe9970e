"""Payments router: record, revert, delete and list payments."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_billing.auth.dependencies import get_current_user
from school_billing.auth.rbac import require_admin, require_staff
from school_billing.auth.schemas import CurrentUser
from school_billing.core.exceptions import ServiceError
from school_billing.core.schemas import ActionResponse
from school_billing.db.session import get_db

from .schemas import (
    PaymentCreate,
    PaymentCreateResponse,
    PaymentPaginatedResponse,
    PaymentResponse,
    PaymentRevertRequest,
    StudentPaymentHistory,
)
from . import service

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff),
) -> PaymentCreateResponse:
    try:
        return await service.create_payment(db, payload, created_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=PaymentPaginatedResponse,
    dependencies=[Depends(get_current_user)],
)
async def list_payments(
    student_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    include_reverted: bool = Query(True),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> PaymentPaginatedResponse:
    return await service.list_payments(
        db,
        student_id=student_id,
        start_date=start_date,
        end_date=end_date,
        include_reverted=include_reverted,
        page=page,
        limit=limit,
    )


@router.get(
    "/student/{student_id}",
    response_model=StudentPaymentHistory,
    dependencies=[Depends(get_current_user)],
)
async def get_student_payments(
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> StudentPaymentHistory:
    try:
        return await service.get_student_payments(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    payment = await service.get_payment(db, payment_id)
    if not payment:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment


@router.post("/{payment_id}/revert", response_model=ActionResponse)
async def revert_payment(
    payment_id: int,
    payload: Optional[PaymentRevertRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_staff),
) -> ActionResponse:
    try:
        return await service.revert_payment(
            db,
            payment_id,
            payload or PaymentRevertRequest(),
            reverted_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{payment_id}",
    response_model=ActionResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
) -> ActionResponse:
    try:
        return await service.delete_payment(db, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
