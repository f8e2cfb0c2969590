"""Financial transaction model."""

import enum
import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Numeric,
    String,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..core.database import Base, enum_values
from ..utils.datetime import utcnow


class TransactionType(str, enum.Enum):
    REVENUE = "revenue"
    EXPENSE = "expense"


class PaymentStatus(str, enum.Enum):
    PENDING = "Pendente"
    PAID = "Pago"
    OVERDUE = "Atrasado"


class FinancialTransaction(Base):
    """Revenue or expense entry, optionally tied to a student."""

    __tablename__ = "financial_transactions"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="financial_transactions_amount_positive"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="SET NULL"), index=True)
    description = Column(String(255), nullable=False)
    category = Column(String(64), nullable=False)
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    type = Column(SAEnum(TransactionType, name="transaction_type", values_callable=enum_values), nullable=False)
    status = Column(SAEnum(PaymentStatus, name="payment_status", values_callable=enum_values))
    due_date = Column(Date)
    paid_at = Column(DateTime)
    is_recurring = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(64))
    created_at = Column(DateTime, default=utcnow, nullable=False)

    student = relationship("Student", back_populates="transactions")
