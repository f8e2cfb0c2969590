"""Pydantic schemas for student and credit endpoints."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models import CreditEntryType, EnrollmentType, PlanType, StudentStatus


class StudentBase(BaseModel):
    email: Optional[str] = Field(None, max_length=120)
    phone: Optional[str] = Field(None, max_length=32)
    status: Optional[StudentStatus] = None
    enrollment_type: Optional[EnrollmentType] = None
    plan_type: Optional[PlanType] = None
    plan_frequency: Optional[str] = Field(None, max_length=8)
    payment_method: Optional[str] = Field(None, max_length=32)
    monthly_fee: Optional[float] = Field(None, ge=0)
    date_of_birth: Optional[date] = None
    validity_date: Optional[date] = None
    notes: Optional[str] = Field(None, max_length=500)


class StudentCreate(StudentBase):
    """Request body for registering a student."""

    name: str = Field(..., min_length=1, max_length=120)


class StudentUpdate(StudentBase):
    """Partial update; only submitted fields change."""

    name: Optional[str] = Field(None, min_length=1, max_length=120)


class StudentRead(BaseModel):
    """Student response payload."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: Optional[str]
    phone: Optional[str]
    status: StudentStatus
    enrollment_type: EnrollmentType
    plan_type: Optional[PlanType]
    plan_frequency: Optional[str]
    payment_method: Optional[str]
    monthly_fee: Optional[float]
    date_of_birth: Optional[date]
    validity_date: Optional[date]
    notes: Optional[str]
    reposition_credits: int
    last_credit_renewal: Optional[date]
    payment_status: Optional[str] = None
    created_at: datetime


class CreditBalanceRead(BaseModel):
    """Reposition credit balance after the monthly renewal check."""

    model_config = ConfigDict(from_attributes=True)

    credits: int
    last_credit_renewal: Optional[date]
    renewed: bool


class CreditAdjustment(BaseModel):
    """Manual correction (any sign) or a grant with an entry type."""

    amount: int = Field(..., description="Credits to add (positive) or remove (negative).")
    reason: str = Field(..., min_length=1, max_length=255)
    entry_type: CreditEntryType = CreditEntryType.MANUAL_ADJUSTMENT


class CreditEntryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: UUID
    entry_type: CreditEntryType
    amount: int
    reason: Optional[str]
    created_by: Optional[str]
    created_at: datetime
