"""Student domain model."""

import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..core.database import Base, enum_values
from ..utils.datetime import utcnow


class StudentStatus(str, enum.Enum):
    ACTIVE = "Ativo"
    INACTIVE = "Inativo"
    TRIAL = "Experimental"
    BLOCKED = "Bloqueado"


class EnrollmentType(str, enum.Enum):
    """How the student pays: directly, or through a partner network."""

    PARTICULAR = "Particular"
    WELLHUB = "Wellhub"
    TOTALPASS = "TotalPass"


class PlanType(str, enum.Enum):
    MONTHLY = "Mensal"
    QUARTERLY = "Trimestral"
    SINGLE = "Avulso"


class Student(Base):
    """Represents a studio client, including the reposition credit balance."""

    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint("reposition_credits >= 0", name="students_reposition_credits_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    organization_id = Column(
        UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name = Column(String(120), nullable=False, index=True)
    email = Column(String(120))
    phone = Column(String(32))
    status = Column(
        SAEnum(StudentStatus, name="student_status", values_callable=enum_values),
        nullable=False,
        default=StudentStatus.ACTIVE,
    )
    enrollment_type = Column(
        SAEnum(EnrollmentType, name="enrollment_type", values_callable=enum_values),
        nullable=False,
        default=EnrollmentType.PARTICULAR,
    )
    plan_type = Column(SAEnum(PlanType, name="plan_type", values_callable=enum_values))
    plan_frequency = Column(String(8))
    payment_method = Column(String(32))
    monthly_fee = Column(Numeric(10, 2, asdecimal=False))
    date_of_birth = Column(Date)
    validity_date = Column(Date)
    notes = Column(String(500))

    reposition_credits = Column(Integer, nullable=False, default=0)
    last_credit_renewal = Column(Date)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    attendances = relationship("ClassAttendee", back_populates="student")
    credit_entries = relationship("RepositionCreditEntry", back_populates="student")
    transactions = relationship("FinancialTransaction", back_populates="student")
