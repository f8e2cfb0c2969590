"""Scheduled class and attendee models."""

import enum
import uuid

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..core.database import Base, enum_values
from ..utils.datetime import utcnow

CLASS_DURATION_MINUTES = 60


class AttendanceStatus(str, enum.Enum):
    SCHEDULED = "Agendado"
    PRESENT = "Presente"
    ABSENT = "Faltou"


class AttendanceType(str, enum.Enum):
    """Why a student is in a given class occurrence."""

    ONE_OFF = "Pontual"
    TRIAL = "Experimental"
    MAKE_UP = "Reposicao"
    RECURRING = "Recorrente"


class ClassEvent(Base):
    """A scheduled session; ``student_id`` is kept for single-student classes."""

    __tablename__ = "classes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title = Column(String(200), nullable=False)
    start_time = Column(DateTime, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False, default=CLASS_DURATION_MINUTES)
    notes = Column(String(500))
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="SET NULL"))
    recurring_class_template_id = Column(
        UUID(as_uuid=True), ForeignKey("recurring_class_templates.id", ondelete="SET NULL"), index=True
    )
    created_by = Column(String(64))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    student = relationship("Student")
    template = relationship("RecurringClassTemplate", back_populates="classes")
    attendees = relationship("ClassAttendee", back_populates="class_event", cascade="all, delete-orphan")

    @property
    def attendee_count(self) -> int:
        return len(self.attendees)


class ClassAttendee(Base):
    """Join row between a class and a student; the unit the credit rules key off."""

    __tablename__ = "class_attendees"
    __table_args__ = (
        UniqueConstraint("class_id", "student_id", name="class_attendees_unique_student"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        SAEnum(AttendanceStatus, name="attendance_status", values_callable=enum_values),
        nullable=False,
        default=AttendanceStatus.SCHEDULED,
    )
    attendance_type = Column(
        SAEnum(AttendanceType, name="attendance_type", values_callable=enum_values),
        nullable=False,
        default=AttendanceType.ONE_OFF,
    )
    created_at = Column(DateTime, default=utcnow, nullable=False)

    class_event = relationship("ClassEvent", back_populates="attendees")
    student = relationship("Student", back_populates="attendances")

    @property
    def student_name(self):
        return self.student.name if self.student is not None else None
