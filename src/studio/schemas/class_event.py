"""Pydantic schemas for classes and attendees."""

import datetime as dt
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from ..models import AttendanceStatus, AttendanceType


class ClassBookingCreate(BaseModel):
    """Quick-add booking: one class, or the same slot for four weeks."""

    student_ids: List[UUID] = Field(..., min_length=1, max_length=10)
    date: dt.date
    time: str = Field(..., pattern=r"^\d{2}:00$", description="Local start time on the hour, e.g. 08:00.")
    attendance_type: AttendanceType = AttendanceType.ONE_OFF
    title: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    repeat_weekly: bool = Field(False, description="Book the same slot for four consecutive weeks.")


class ClassUpdate(BaseModel):
    """Edit dialog payload; only submitted fields change."""

    title: Optional[str] = Field(None, max_length=200)
    date: Optional[dt.date] = None
    time: Optional[str] = Field(None, pattern=r"^\d{2}:00$")
    notes: Optional[str] = Field(None, max_length=500)
    student_id: Optional[UUID] = None
    attendance_type: Optional[AttendanceType] = None


class AttendeeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    student_name: Optional[str]
    status: AttendanceStatus
    attendance_type: AttendanceType


class ClassRead(BaseModel):
    """Class response payload with its attendees."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    start_time: dt.datetime
    duration_minutes: int
    notes: Optional[str]
    student_id: Optional[UUID]
    recurring_class_template_id: Optional[UUID]
    attendee_count: int
    attendees: List[AttendeeRead]


class AttendeeCreate(BaseModel):
    student_id: UUID
    attendance_type: AttendanceType = AttendanceType.ONE_OFF
    confirm_displacement: bool = Field(
        False, description="Confirm removing the partner-network student proposed by a previous attempt."
    )


class AttendeeAdded(BaseModel):
    attendee: AttendeeRead
    displaced_student_id: Optional[UUID] = None


class AttendeeRemoved(BaseModel):
    attendee_id: UUID
    student_id: UUID
    credit_returned: bool


class AttendanceStatusUpdate(BaseModel):
    status: AttendanceStatus


class ClassDeletionRead(BaseModel):
    """Outcome of deleting a class, including credit returns that failed."""

    model_config = ConfigDict(from_attributes=True)

    class_id: UUID
    attendees_removed: int
    credits_returned: List[UUID]
    failures: List[Dict[str, str]]
