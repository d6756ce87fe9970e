"""Charge: billable fee definition, optionally scoped to one grade level."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text

from school_billing.db.session import Base


class Charge(Base):
    __tablename__ = "charges"
    __table_args__ = (
        CheckConstraint(
            "charge_type IN ('tuition','books','uniform','activities','other')",
            name="chk_charge_type",
        ),
        CheckConstraint(
            "grade_level IS NULL OR (grade_level >= 1 AND grade_level <= 6)",
            name="chk_charge_grade_level",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    charge_type = Column(String(20), nullable=False)
    # NULL = not tied to a grade (listed for every grade)
    grade_level = Column(Integer, nullable=True)
    is_mandatory = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
