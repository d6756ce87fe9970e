from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class AssessmentStudentInput(BaseModel):
    student_id: int
    current_due: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2, description="Amount due now; defaults to the remaining balance")


class AssessmentBatchCreate(BaseModel):
    batch_name: str = Field(..., min_length=1, max_length=255)
    assessment_date: date
    due_date: date
    assessments: List[AssessmentStudentInput] = Field(..., min_length=1)


class AssessmentBatchCreateResponse(BaseModel):
    success: bool
    message: str
    batch_id: int = Field(..., serialization_alias="batchId")
    assessment_count: int


class AssessmentResponse(BaseModel):
    id: int
    batch_id: int
    student_id: int
    student_number: Optional[str] = None
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    grade_level: Optional[int] = None
    assessment_date: date
    due_date: date
    total_charges: Decimal
    total_paid: Decimal
    current_due: Decimal
    created_at: datetime


class AssessmentBatchResponse(BaseModel):
    id: int
    batch_name: str
    assessment_date: date
    due_date: date
    created_by: int
    created_at: datetime
    assessment_count: int = 0


class AssessmentBatchDetail(AssessmentBatchResponse):
    assessments: List[AssessmentResponse] = Field(default_factory=list)
