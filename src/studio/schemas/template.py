"""Pydantic schemas for recurring class templates."""

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class RecurrenceItem(BaseModel):
    day: Weekday
    time: str = Field(..., pattern=r"^\d{2}:00$")


class TemplateCreate(BaseModel):
    """Request body for a recurring template; classes are generated on save."""

    student_id: Optional[UUID] = None
    title: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    recurrence_pattern: List[RecurrenceItem] = Field(..., min_length=1)
    recurrence_start_date: date
    recurrence_end_date: Optional[date] = None


class TemplateUpdate(BaseModel):
    student_id: Optional[UUID] = None
    title: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    recurrence_pattern: Optional[List[RecurrenceItem]] = Field(None, min_length=1)
    recurrence_start_date: Optional[date] = None
    recurrence_end_date: Optional[date] = None


class TemplateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: Optional[UUID]
    title: str
    notes: Optional[str]
    duration_minutes: int
    recurrence_pattern: List[RecurrenceItem]
    recurrence_start_date: date
    recurrence_end_date: Optional[date]
    created_at: datetime


class TemplateGeneration(BaseModel):
    template_id: UUID
    classes_created: int
