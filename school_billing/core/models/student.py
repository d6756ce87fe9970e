"""Student: enrolled pupil, grade 1-6. Grade and status change through the promotion workflow."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, String, Text

from school_billing.core.enums import StudentStatus
from school_billing.db.session import Base


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint("grade_level >= 1 AND grade_level <= 6", name="chk_student_grade_level"),
        CheckConstraint("status IN ('active','inactive','graduated')", name="chk_student_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_number = Column(String(20), nullable=False, unique=True)
    first_name = Column(String(50), nullable=False)
    middle_name = Column(String(50), nullable=True)
    last_name = Column(String(50), nullable=False)
    grade_level = Column(Integer, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    address = Column(Text, nullable=True)
    parent_name = Column(String(100), nullable=True)
    parent_contact = Column(String(20), nullable=True)
    parent_email = Column(String(100), nullable=True)
    enrollment_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default=StudentStatus.active.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.middle_name, self.last_name]
        return " ".join(p for p in parts if p)
