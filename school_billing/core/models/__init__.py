from school_billing.core.models.student import Student
from school_billing.core.models.charge import Charge
from school_billing.core.models.student_charge import StudentCharge
from school_billing.core.models.back_payment import BackPayment
from school_billing.core.models.payment import Payment, PaymentItem
from school_billing.core.models.assessment import Assessment, AssessmentBatch
from school_billing.core.models.assessment_flag import AssessmentFlag

__all__ = [
    "Student",
    "Charge",
    "StudentCharge",
    "BackPayment",
    "Payment",
    "PaymentItem",
    "Assessment",
    "AssessmentBatch",
    "AssessmentFlag",
]
