"""Recurring class template model."""

import uuid

from sqlalchemy import JSON, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow
from .class_event import CLASS_DURATION_MINUTES


class RecurringClassTemplate(Base):
    """Weekly pattern expanded into concrete classes.

    ``recurrence_pattern`` is a list of ``{"day": "monday", "time": "08:00"}`` items.
    """

    __tablename__ = "recurring_class_templates"
    __table_args__ = (
        CheckConstraint(
            "recurrence_end_date IS NULL OR recurrence_end_date >= recurrence_start_date",
            name="recurring_class_templates_date_range",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="SET NULL"))
    title = Column(String(200), nullable=False)
    notes = Column(String(500))
    duration_minutes = Column(Integer, nullable=False, default=CLASS_DURATION_MINUTES)
    recurrence_pattern = Column(JSON, nullable=False, default=list)
    recurrence_start_date = Column(Date, nullable=False)
    recurrence_end_date = Column(Date)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    student = relationship("Student")
    classes = relationship("ClassEvent", back_populates="template")
