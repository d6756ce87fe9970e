"""Back payment: unpaid charge carried over when a student is promoted to a new grade."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from school_billing.core.enums import LedgerStatus
from school_billing.db.session import Base


class BackPayment(Base):
    """
    Tracks its own amount_due / amount_paid / status, independent of the
    student_charges row it was created from.
    """

    __tablename__ = "back_payments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','partial','paid')",
            name="chk_back_payment_status",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    charge_id = Column(Integer, ForeignKey("charges.id", ondelete="SET NULL"), nullable=True)
    charge_name = Column(String(100), nullable=False)
    original_grade_level = Column(Integer, nullable=False)
    # Grade the student was promoted to; last grade + 1 when the promotion graduated them
    current_grade_level = Column(Integer, nullable=False)
    amount_due = Column(Numeric(10, 2), nullable=False)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=LedgerStatus.pending.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
