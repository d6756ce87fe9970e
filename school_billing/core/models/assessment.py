"""Assessment batches: immutable per-student balance snapshots taken at a point in time."""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from school_billing.db.session import Base


class AssessmentBatch(Base):
    __tablename__ = "assessment_batches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_name = Column(String(255), nullable=False)
    assessment_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False, index=True)

    assessments = relationship(
        "Assessment",
        back_populates="batch",
        cascade="all, delete-orphan",
    )


class Assessment(Base):
    __tablename__ = "assessments"
    __table_args__ = (
        UniqueConstraint("batch_id", "student_id", name="uq_assessment_batch_student"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(Integer, ForeignKey("assessment_batches.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    assessment_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    total_charges = Column(Numeric(10, 2), nullable=False, default=0)
    total_paid = Column(Numeric(10, 2), nullable=False, default=0)
    current_due = Column(Numeric(10, 2), nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    batch = relationship("AssessmentBatch", back_populates="assessments")
    student = relationship("Student")
