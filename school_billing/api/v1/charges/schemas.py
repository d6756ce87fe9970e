from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from school_billing.api.v1.students.schemas import BackPaymentResponse, StudentResponse
from school_billing.core.enums import ChargeType


class ChargeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    charge_type: ChargeType
    grade_level: Optional[int] = Field(None, description="Grade the charge applies to; omit for all grades")
    is_mandatory: bool = True


class ChargeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    charge_type: Optional[ChargeType] = None
    grade_level: Optional[int] = None
    is_mandatory: Optional[bool] = None
    is_active: Optional[bool] = None


class ChargeResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    amount: Decimal
    charge_type: ChargeType
    grade_level: Optional[int] = None
    is_mandatory: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ChargeCreateResponse(BaseModel):
    success: bool
    message: str
    charge_id: int = Field(..., serialization_alias="chargeId")


# --- Balances ---
class BalanceSummary(BaseModel):
    """remaining_balance = total_charges + back_payments_outstanding - total_payments"""

    total_charges: Decimal
    mandatory_charges: Decimal
    back_payments_outstanding: Decimal
    total_payments: Decimal
    total_due: Decimal
    remaining_balance: Decimal


class StudentChargeSummaryItem(BalanceSummary):
    student_id: int
    student_number: str
    first_name: str
    last_name: str
    grade_level: int
    status: str


class StudentChargeLedgerItem(BaseModel):
    id: int
    charge_id: int
    charge_name: Optional[str] = None
    charge_type: Optional[str] = None
    amount_due: Decimal
    amount_paid: Decimal
    balance: Decimal
    due_date: Optional[date] = None
    status: str


class BreakdownPayment(BaseModel):
    id: int
    invoice_number: str
    total_amount: Decimal
    payment_date: date
    payment_method: str
    notes: Optional[str] = None
    reverted: bool
    created_at: datetime


class StudentBreakdownResponse(BaseModel):
    student: StudentResponse
    charges: List[ChargeResponse]
    student_charges: List[StudentChargeLedgerItem]
    payments: List[BreakdownPayment]
    back_payments: List[BackPaymentResponse]
    summary: BalanceSummary
