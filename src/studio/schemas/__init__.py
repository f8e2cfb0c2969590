"""Public schema exports."""

from .class_event import (
	AttendanceStatusUpdate,
	AttendeeAdded,
	AttendeeCreate,
	AttendeeRead,
	AttendeeRemoved,
	ClassBookingCreate,
	ClassDeletionRead,
	ClassRead,
	ClassUpdate,
)
from .organization import OrganizationCreate, OrganizationRead, SettingRead, SettingUpdate
from .student import (
	CreditAdjustment,
	CreditBalanceRead,
	CreditEntryRead,
	StudentCreate,
	StudentRead,
	StudentUpdate,
)
from .template import RecurrenceItem, TemplateCreate, TemplateGeneration, TemplateRead, TemplateUpdate
from .transaction import (
	MonthSummaryRead,
	PaymentAlertRead,
	TransactionCreate,
	TransactionPay,
	TransactionRead,
	TransactionUpdate,
)

__all__ = [
	"AttendanceStatusUpdate",
	"AttendeeAdded",
	"AttendeeCreate",
	"AttendeeRead",
	"AttendeeRemoved",
	"ClassBookingCreate",
	"ClassDeletionRead",
	"ClassRead",
	"ClassUpdate",
	"CreditAdjustment",
	"CreditBalanceRead",
	"CreditEntryRead",
	"MonthSummaryRead",
	"OrganizationCreate",
	"OrganizationRead",
	"PaymentAlertRead",
	"RecurrenceItem",
	"SettingRead",
	"SettingUpdate",
	"StudentCreate",
	"StudentRead",
	"StudentUpdate",
	"TemplateCreate",
	"TemplateGeneration",
	"TemplateRead",
	"TemplateUpdate",
	"TransactionCreate",
	"TransactionPay",
	"TransactionRead",
	"TransactionUpdate",
]
