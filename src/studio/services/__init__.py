"""Service layer exports."""

from . import (
	class_service,
	credit_service,
	financial_service,
	organization_service,
	renewal_service,
	student_service,
	template_service,
)

__all__ = [
	"class_service",
	"credit_service",
	"financial_service",
	"organization_service",
	"renewal_service",
	"student_service",
	"template_service",
]
