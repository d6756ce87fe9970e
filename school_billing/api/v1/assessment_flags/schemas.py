from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class AssessmentFlagCreate(BaseModel):
    student_ids: List[int] = Field(..., min_length=1)
    assessment_date: date


class AssessmentFlagResponse(BaseModel):
    student_id: int
    assessment_date: date
    flagged_at: datetime
    student_number: str
    first_name: str
    middle_name: Optional[str] = None
    last_name: str
    grade_level: int


class AssessmentFlagSetResponse(BaseModel):
    success: bool
    message: str
    student_count: int
    added_count: int
    assessment_date: date
