"""Student charge: per-student ledger row for one charge. status follows amount_paid vs amount_due."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from school_billing.core.enums import LedgerStatus
from school_billing.db.session import Base


class StudentCharge(Base):
    __tablename__ = "student_charges"
    __table_args__ = (
        UniqueConstraint("student_id", "charge_id", name="uq_student_charge"),
        CheckConstraint(
            "status IN ('pending','partial','paid','overdue')",
            name="chk_student_charge_status",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    charge_id = Column(Integer, ForeignKey("charges.id", ondelete="CASCADE"), nullable=False)
    amount_due = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=LedgerStatus.pending.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    charge = relationship("Charge")
