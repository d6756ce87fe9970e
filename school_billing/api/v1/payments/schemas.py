"""Payment schemas: create, revert, list and per-student history."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from school_billing.core.enums import PaymentMethod


class PaymentItemCreate(BaseModel):
    charge_id: Optional[int] = None
    back_payment_id: Optional[int] = Field(
        None,
        description="Back payment settled by this item; resolved from the description when omitted",
    )
    description: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    is_manual_charge: bool = False

    @field_validator("description")
    @classmethod
    def description_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Description must not be blank")
        return v


class PaymentCreate(BaseModel):
    student_id: int
    payment_date: date
    payment_method: PaymentMethod
    reference_number: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None
    items: List[PaymentItemCreate] = Field(..., min_length=1)


class PaymentCreateResponse(BaseModel):
    success: bool
    message: str
    payment_id: int = Field(..., serialization_alias="paymentId")
    invoice_number: str
    total_amount: Decimal


class PaymentRevertRequest(BaseModel):
    reason: Optional[str] = None


class PaymentItemResponse(BaseModel):
    id: int
    charge_id: Optional[int] = None
    back_payment_id: Optional[int] = None
    charge_name: Optional[str] = None
    charge_type: Optional[str] = None
    description: str
    amount: Decimal
    is_manual_charge: bool


class PaymentResponse(BaseModel):
    id: int
    student_id: int
    student_number: Optional[str] = None
    student_name: Optional[str] = None
    grade_level: Optional[int] = None
    payment_date: date
    invoice_number: str
    total_amount: Decimal
    payment_method: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    created_by: int
    created_by_username: Optional[str] = None
    reverted: bool
    reverted_at: Optional[datetime] = None
    reverted_by: Optional[int] = None
    revert_reason: Optional[str] = None
    created_at: datetime
    items: List[PaymentItemResponse] = Field(default_factory=list)


class PaymentPaginatedResponse(BaseModel):
    items: List[PaymentResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class StudentPaymentSummary(BaseModel):
    """Totals over non-reverted payments."""

    total_payments: int
    total_amount_paid: Decimal


class StudentPaymentHistory(BaseModel):
    student_id: int
    payments: List[PaymentResponse]
    summary: StudentPaymentSummary
