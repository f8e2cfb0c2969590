"""Student records."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import delete, extract, or_, select, update
from sqlalchemy.orm import Session

from ..core.exceptions import InvalidRequest, NotFound
from ..models import (
    ClassAttendee,
    ClassEvent,
    EnrollmentType,
    FinancialTransaction,
    PaymentStatus,
    PlanType,
    RecurringClassTemplate,
    RepositionCreditEntry,
    Student,
    StudentStatus,
    TransactionType,
)
from ..utils.datetime import utcnow

logger = logging.getLogger(__name__)

PAYMENT_UP_TO_DATE = "Em Dia"
PAYMENT_OVERDUE = "Atrasado"

EDITABLE_FIELDS = (
    "name",
    "email",
    "phone",
    "status",
    "enrollment_type",
    "plan_type",
    "plan_frequency",
    "payment_method",
    "monthly_fee",
    "date_of_birth",
    "validity_date",
    "notes",
)


def get_student(session: Session, *, organization_id: UUID, student_id: UUID) -> Student:
    stmt = select(Student).where(Student.id == student_id, Student.organization_id == organization_id)
    student = session.execute(stmt).scalar_one_or_none()
    if student is None:
        raise NotFound(f"Student {student_id} not found")
    return student


def list_students(
    session: Session,
    *,
    organization_id: UUID,
    status: StudentStatus | None = None,
    enrollment_type: EnrollmentType | None = None,
    plan_type: PlanType | None = None,
    search: str | None = None,
    payment_status: str | None = None,
    limit: int = 200,
    offset: int = 0,
) -> Sequence[Student]:
    """Students ordered by name, with optional filters."""

    stmt = select(Student).where(Student.organization_id == organization_id).order_by(Student.name, Student.id)

    if status:
        stmt = stmt.where(Student.status == status)
    if enrollment_type:
        stmt = stmt.where(Student.enrollment_type == enrollment_type)
    if plan_type:
        stmt = stmt.where(Student.plan_type == plan_type)

    term = (search or "").strip().lower()
    if term:
        pattern = f"%{term}%"
        clauses = [Student.name.ilike(pattern), Student.email.ilike(pattern), Student.phone.ilike(pattern)]
        # Wellhub was formerly Gympass; either name finds those students.
        if term in ("wellhub", "gympass"):
            clauses.append(Student.enrollment_type == EnrollmentType.WELLHUB)
        stmt = stmt.where(or_(*clauses))

    if payment_status:
        statuses = payment_status_map(session, organization_id=organization_id)
        overdue_ids = [student_id for student_id, value in statuses.items() if value == PAYMENT_OVERDUE]
        if payment_status == PAYMENT_OVERDUE:
            stmt = stmt.where(Student.id.in_(overdue_ids))
        else:
            stmt = stmt.where(Student.id.not_in(overdue_ids))

    return session.execute(stmt.offset(offset).limit(limit)).scalars().all()


def payment_status_map(
    session: Session,
    *,
    organization_id: UUID,
    today: date | None = None,
) -> dict[UUID, str]:
    """``Em Dia``/``Atrasado`` per student, judged on their latest revenue entry."""

    today = today or utcnow().date()
    stmt = (
        select(FinancialTransaction)
        .where(
            FinancialTransaction.organization_id == organization_id,
            FinancialTransaction.type == TransactionType.REVENUE,
            FinancialTransaction.student_id.is_not(None),
        )
        .order_by(FinancialTransaction.created_at.desc(), FinancialTransaction.id)
    )

    statuses: dict[UUID, str] = {}
    for transaction in session.execute(stmt).scalars():
        if transaction.student_id in statuses:
            continue
        overdue = transaction.status == PaymentStatus.OVERDUE or (
            transaction.status == PaymentStatus.PENDING
            and transaction.due_date is not None
            and transaction.due_date < today
        )
        statuses[transaction.student_id] = PAYMENT_OVERDUE if overdue else PAYMENT_UP_TO_DATE
    return statuses


def create_student(session: Session, *, organization_id: UUID, data: dict[str, Any]) -> Student:
    name = (data.get("name") or "").strip()
    if not name:
        raise InvalidRequest("Student name is required.")

    student = Student(organization_id=organization_id, reposition_credits=0, last_credit_renewal=utcnow().date())
    for key in EDITABLE_FIELDS:
        if key in data and data[key] is not None:
            setattr(student, key, data[key])
    student.name = name
    session.add(student)
    session.flush()
    return student


def update_student(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    changes: dict[str, Any],
) -> Student:
    """Update profile fields. Credits only move through the credit operations."""

    student = get_student(session, organization_id=organization_id, student_id=student_id)
    for key, value in changes.items():
        if key not in EDITABLE_FIELDS:
            continue
        if key == "name":
            value = (value or "").strip()
            if not value:
                raise InvalidRequest("Student name is required.")
        setattr(student, key, value)
    session.flush()
    return student


def delete_student(session: Session, *, organization_id: UUID, student_id: UUID) -> None:
    """Delete a student with their attendance and ledger rows.

    Classes, templates and transactions survive with the reference cleared.
    """

    student = get_student(session, organization_id=organization_id, student_id=student_id)
    scoped = {"synchronize_session": False}

    session.execute(
        delete(ClassAttendee).where(
            ClassAttendee.organization_id == organization_id, ClassAttendee.student_id == student_id
        ),
        execution_options=scoped,
    )
    session.execute(
        delete(RepositionCreditEntry).where(
            RepositionCreditEntry.organization_id == organization_id, RepositionCreditEntry.student_id == student_id
        ),
        execution_options=scoped,
    )
    for model in (ClassEvent, RecurringClassTemplate, FinancialTransaction):
        session.execute(
            update(model)
            .where(model.organization_id == organization_id, model.student_id == student_id)
            .values(student_id=None),
            execution_options=scoped,
        )

    session.expire_all()
    session.delete(student)
    session.flush()
    logger.info(
        "student deleted",
        extra={"organization_id": str(organization_id), "student_id": str(student_id)},
    )


def get_birthday_students_for_month(session: Session, *, organization_id: UUID, month: int) -> Sequence[Student]:
    """Students born in ``month`` (1-12), by day of month."""

    if not 1 <= month <= 12:
        raise InvalidRequest("Month must be between 1 and 12.")
    stmt = (
        select(Student)
        .where(
            Student.organization_id == organization_id,
            Student.date_of_birth.is_not(None),
            extract("month", Student.date_of_birth) == month,
        )
        .order_by(extract("day", Student.date_of_birth), Student.name)
    )
    return session.execute(stmt).scalars().all()
