"""Student schemas, including grade promotion and back payments."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from school_billing.core.enums import StudentStatus


class StudentCreate(BaseModel):
    student_number: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=50)
    middle_name: Optional[str] = Field(None, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    grade_level: int
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    parent_name: Optional[str] = Field(None, max_length=100)
    parent_contact: Optional[str] = Field(None, max_length=20)
    parent_email: Optional[str] = Field(None, max_length=100)
    enrollment_date: date


class StudentUpdate(BaseModel):
    student_number: Optional[str] = Field(None, min_length=1, max_length=20)
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    middle_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    grade_level: Optional[int] = None
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    parent_name: Optional[str] = Field(None, max_length=100)
    parent_contact: Optional[str] = Field(None, max_length=20)
    parent_email: Optional[str] = Field(None, max_length=100)
    status: Optional[StudentStatus] = None


class StudentResponse(BaseModel):
    id: int
    student_number: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    grade_level: int
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    parent_name: Optional[str] = None
    parent_contact: Optional[str] = None
    parent_email: Optional[str] = None
    enrollment_date: date
    status: StudentStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StudentCreateResponse(BaseModel):
    success: bool
    message: str
    student_id: int = Field(..., serialization_alias="studentId")


class StudentPaginatedResponse(BaseModel):
    """Paginated student list (GET /api/students)."""

    items: List[StudentResponse]
    total: int = Field(..., ge=0, description="Total count matching the filters")
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


# --- Grade promotion ---
class BatchGradeUpgrade(BaseModel):
    """Move active students from one grade to another without carrying balances."""

    from_grade: int
    to_grade: int
    student_ids: List[int] = Field(default_factory=list, description="Restrict to these students; empty = whole grade")


class BatchGradeUpgradeResult(BaseModel):
    success: bool
    message: str
    updated_count: int = Field(..., serialization_alias="updatedCount")


class GradeUpgradeRequest(BaseModel):
    new_grade_level: int = Field(..., description="Target grade; last grade + 1 graduates the student")


class UnpaidChargeItem(BaseModel):
    """Unpaid charge at the current grade that promotion would carry over."""

    charge_id: int
    charge_name: str
    amount_due: Decimal
    amount_paid: Decimal
    unpaid_amount: Decimal
    has_student_charge: bool = Field(..., description="False for mandatory charges never billed to the student")


class BackPaymentCheckResponse(BaseModel):
    student_id: int
    current_grade_level: int
    has_unpaid: bool
    total_unpaid: Decimal
    unpaid_charges: List[UnpaidChargeItem]


class BackPaymentResponse(BaseModel):
    id: int
    student_id: int
    charge_id: Optional[int] = None
    charge_name: str
    original_grade_level: int
    current_grade_level: int
    amount_due: Decimal
    amount_paid: Decimal
    balance: Decimal
    status: str
    payment_description: str = Field(..., description="Description to use on a payment item settling this row")
    created_at: datetime


class GradeUpgradeResponse(BaseModel):
    success: bool
    message: str
    student_id: int
    previous_grade_level: int
    new_grade_level: int
    status: StudentStatus
    total_back_payment: Decimal
    back_payments: List[BackPaymentResponse]
