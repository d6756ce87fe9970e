from enum import Enum


MIN_GRADE_LEVEL = 1
MAX_GRADE_LEVEL = 6


class UserRole(str, Enum):
    admin = "admin"
    teacher = "teacher"
    staff = "staff"


class StudentStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    graduated = "graduated"


class ChargeType(str, Enum):
    tuition = "tuition"
    books = "books"
    uniform = "uniform"
    activities = "activities"
    other = "other"


class LedgerStatus(str, Enum):
    """Status of a student charge or back payment, derived from amount_paid vs amount_due."""

    pending = "pending"
    partial = "partial"
    paid = "paid"
    overdue = "overdue"


class PaymentMethod(str, Enum):
    cash = "cash"
    card = "card"
    bank_transfer = "bank_transfer"
    check = "check"


# Statuses that still carry an unpaid amount at promotion time
UNPAID_STATUSES = (LedgerStatus.pending.value, LedgerStatus.partial.value, LedgerStatus.overdue.value)
