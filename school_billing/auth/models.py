from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text

from school_billing.core.enums import UserRole
from school_billing.db.session import Base


class User(Base):
    """Back-office user (admin, teacher or staff) that signs in to the billing API."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('admin','teacher','staff')", name="chk_user_role"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True)
    email = Column(String(100), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.staff.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
