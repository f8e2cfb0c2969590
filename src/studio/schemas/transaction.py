"""Pydantic schemas for financial endpoints."""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models import PaymentStatus, TransactionType


class TransactionCreate(BaseModel):
    """Request body for a revenue or expense entry."""

    type: TransactionType
    description: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=64)
    amount: float = Field(..., ge=0)
    status: Optional[PaymentStatus] = PaymentStatus.PENDING
    due_date: Optional[date] = None
    student_id: Optional[UUID] = None
    is_recurring: bool = False


class TransactionUpdate(BaseModel):
    type: Optional[TransactionType] = None
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=64)
    amount: Optional[float] = Field(None, ge=0)
    status: Optional[PaymentStatus] = None
    due_date: Optional[date] = None
    student_id: Optional[UUID] = None
    is_recurring: Optional[bool] = None


class TransactionPay(BaseModel):
    validity_days: Optional[int] = Field(
        None, gt=0, description="Extend the student's plan validity by this many days from the payment."
    )


class TransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    type: TransactionType
    description: str
    category: str
    amount: float
    status: Optional[PaymentStatus]
    due_date: Optional[date]
    paid_at: Optional[datetime]
    student_id: Optional[UUID]
    is_recurring: bool
    created_at: datetime


class PaymentAlertRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    student_id: Optional[UUID]
    student_name: Optional[str]
    description: str
    amount: float
    due_date: date
    transaction_id: Optional[UUID]


class MonthSummaryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month: int
    revenue: float
    expense: float
    balance: float
