"""Reposition credit ledger capturing balance movements."""

import enum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..core.database import Base, enum_values
from ..utils.datetime import utcnow


class CreditEntryType(str, enum.Enum):
    """Ledger event classification."""

    ABSENCE = "absence"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    PAYMENT_BONUS = "payment_bonus"
    CONSUMPTION = "consumption"
    RETURN = "return"
    MONTHLY_RESET = "monthly_reset"


class RepositionCreditEntry(Base):
    """Audit trail of every change applied to ``Student.reposition_credits``."""

    __tablename__ = "reposition_credit_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    entry_type = Column(Enum(CreditEntryType, name="credit_entry_type", values_callable=enum_values), nullable=False)
    amount = Column(Integer, nullable=False)
    reason = Column(String(255))
    created_by = Column(String(64))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    student = relationship("Student", back_populates="credit_entries")
