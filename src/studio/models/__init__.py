"""SQLAlchemy models for the studio service."""

from .class_event import CLASS_DURATION_MINUTES, AttendanceStatus, AttendanceType, ClassAttendee, ClassEvent
from .credit_ledger import CreditEntryType, RepositionCreditEntry
from .financial_transaction import FinancialTransaction, PaymentStatus, TransactionType
from .organization import AppSetting, Organization, OrganizationMember
from .recurring_template import RecurringClassTemplate
from .student import EnrollmentType, PlanType, Student, StudentStatus

__all__ = [
    "AppSetting",
    "AttendanceStatus",
    "AttendanceType",
    "CLASS_DURATION_MINUTES",
    "ClassAttendee",
    "ClassEvent",
    "CreditEntryType",
    "EnrollmentType",
    "FinancialTransaction",
    "Organization",
    "OrganizationMember",
    "PaymentStatus",
    "PlanType",
    "RecurringClassTemplate",
    "RepositionCreditEntry",
    "Student",
    "StudentStatus",
    "TransactionType",
]
