"""Payment and its line items. Reverted payments are kept for the audit trail."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from school_billing.db.session import Base


class Payment(Base):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "payment_method IN ('cash','card','bank_transfer','check')",
            name="chk_payment_method",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    payment_date = Column(Date, nullable=False)
    # YYYY-NNNNNN, sequence restarts every year
    invoice_number = Column(String(20), nullable=False, unique=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)
    reference_number = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    reverted = Column(Boolean, nullable=False, default=False)
    reverted_at = Column(DateTime(timezone=True), nullable=True)
    reverted_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    revert_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    created_by_user = relationship("User", foreign_keys=[created_by])
    items = relationship(
        "PaymentItem",
        back_populates="payment",
        cascade="all, delete-orphan",
        order_by="PaymentItem.id",
    )


class PaymentItem(Base):
    """Line of a payment: linked to a charge, or a manual entry (possibly settling a back payment)."""

    __tablename__ = "payment_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(Integer, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, index=True)
    charge_id = Column(Integer, ForeignKey("charges.id", ondelete="SET NULL"), nullable=True)
    back_payment_id = Column(Integer, ForeignKey("back_payments.id", ondelete="SET NULL"), nullable=True)
    description = Column(String(255), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    is_manual_charge = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    payment = relationship("Payment", back_populates="items")
    charge = relationship("Charge")
