from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from school_billing.db.session import Base


class AssessmentFlag(Base):
    """Marks a student as selected for the assessment run of a given date."""

    __tablename__ = "assessment_flags"
    __table_args__ = (
        UniqueConstraint("student_id", "assessment_date", name="uq_assessment_flag_student_date"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    assessment_date = Column(Date, nullable=False, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    flagged_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
