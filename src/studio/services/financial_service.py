"""Financial transactions, overdue tracking and payment alerts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import InvalidRequest, NotFound
from ..models import (
    EnrollmentType,
    FinancialTransaction,
    PaymentStatus,
    PlanType,
    Student,
    StudentStatus,
    TransactionType,
)
from ..utils.datetime import utcnow

MONTHLY_FEE_CATEGORY = "Mensalidade"
UPCOMING_DAYS = 10

EDITABLE_FIELDS = ("student_id", "description", "category", "amount", "type", "status", "due_date", "is_recurring")


@dataclass
class PaymentAlert:
    kind: str
    student_id: UUID | None
    student_name: str | None
    description: str
    amount: float
    due_date: date
    transaction_id: UUID | None = None


@dataclass
class MonthSummary:
    month: int
    revenue: float
    expense: float

    @property
    def balance(self) -> float:
        return round(self.revenue - self.expense, 2)


def _validate(values: dict[str, Any]) -> None:
    if not (values.get("description") or "").strip():
        raise InvalidRequest("Description is required.")
    if not (values.get("category") or "").strip():
        raise InvalidRequest("Category is required.")
    amount = values.get("amount")
    if amount is None or amount < 0:
        raise InvalidRequest("Amount must be zero or positive.")
    if (
        values.get("type") == TransactionType.REVENUE
        and values.get("category") == MONTHLY_FEE_CATEGORY
        and values.get("due_date") is None
    ):
        raise InvalidRequest("Monthly fees need a due date.")


def _check_student(session: Session, organization_id: UUID, student_id: UUID | None) -> None:
    if student_id is None:
        return
    found = session.execute(
        select(Student.id).where(Student.id == student_id, Student.organization_id == organization_id)
    ).scalar_one_or_none()
    if found is None:
        raise NotFound(f"Student {student_id} not found")


def get_transaction(session: Session, *, organization_id: UUID, transaction_id: UUID) -> FinancialTransaction:
    stmt = select(FinancialTransaction).where(
        FinancialTransaction.id == transaction_id, FinancialTransaction.organization_id == organization_id
    )
    transaction = session.execute(stmt).scalar_one_or_none()
    if transaction is None:
        raise NotFound(f"Transaction {transaction_id} not found")
    return transaction


def list_transactions(
    session: Session,
    *,
    organization_id: UUID,
    transaction_type: TransactionType | None = None,
    status: PaymentStatus | None = None,
    student_id: UUID | None = None,
    limit: int = 100,
    offset: int = 0,
) -> Sequence[FinancialTransaction]:
    stmt = (
        select(FinancialTransaction)
        .where(FinancialTransaction.organization_id == organization_id)
        .order_by(FinancialTransaction.created_at.desc(), FinancialTransaction.id)
        .offset(offset)
        .limit(limit)
    )
    if transaction_type:
        stmt = stmt.where(FinancialTransaction.type == transaction_type)
    if status:
        stmt = stmt.where(FinancialTransaction.status == status)
    if student_id:
        stmt = stmt.where(FinancialTransaction.student_id == student_id)
    return session.execute(stmt).scalars().all()


def create_transaction(
    session: Session,
    *,
    organization_id: UUID,
    data: dict[str, Any],
    created_by: str | None = None,
) -> FinancialTransaction:
    _validate(data)
    _check_student(session, organization_id, data.get("student_id"))

    transaction = FinancialTransaction(organization_id=organization_id, created_by=created_by)
    for key in EDITABLE_FIELDS:
        if key in data:
            setattr(transaction, key, data[key])
    if transaction.status == PaymentStatus.PAID:
        transaction.paid_at = utcnow()
    session.add(transaction)
    session.flush()
    return transaction


def update_transaction(
    session: Session,
    *,
    organization_id: UUID,
    transaction_id: UUID,
    changes: dict[str, Any],
) -> FinancialTransaction:
    transaction = get_transaction(session, organization_id=organization_id, transaction_id=transaction_id)
    merged = {key: getattr(transaction, key) for key in EDITABLE_FIELDS}
    merged.update({key: value for key, value in changes.items() if key in EDITABLE_FIELDS})
    _validate(merged)
    if "student_id" in changes:
        _check_student(session, organization_id, changes["student_id"])

    was_paid = transaction.status == PaymentStatus.PAID
    for key, value in merged.items():
        setattr(transaction, key, value)
    if transaction.status == PaymentStatus.PAID and not was_paid:
        transaction.paid_at = utcnow()
    elif transaction.status != PaymentStatus.PAID:
        transaction.paid_at = None
    session.flush()
    return transaction


def delete_transaction(session: Session, *, organization_id: UUID, transaction_id: UUID) -> None:
    transaction = get_transaction(session, organization_id=organization_id, transaction_id=transaction_id)
    session.delete(transaction)
    session.flush()


def mark_transaction_paid(
    session: Session,
    *,
    organization_id: UUID,
    transaction_id: UUID,
    validity_days: int | None = None,
    paid_at: datetime | None = None,
) -> FinancialTransaction:
    """Settle a transaction; with ``validity_days`` also extend the student's plan."""

    transaction = get_transaction(session, organization_id=organization_id, transaction_id=transaction_id)
    paid_at = paid_at or utcnow()
    transaction.status = PaymentStatus.PAID
    transaction.paid_at = paid_at

    if validity_days:
        if validity_days < 0:
            raise InvalidRequest("Validity days must be positive.")
        if transaction.student_id is None:
            raise InvalidRequest("Only student payments can extend a plan.")
        student = session.get(Student, transaction.student_id)
        student.validity_date = paid_at.date() + timedelta(days=validity_days)
        if student.status not in (StudentStatus.BLOCKED, StudentStatus.TRIAL):
            student.status = StudentStatus.ACTIVE

    session.flush()
    return transaction


def list_overdue(
    session: Session,
    *,
    organization_id: UUID,
    today: date | None = None,
) -> Sequence[FinancialTransaction]:
    """Revenue marked ``Atrasado``, or still ``Pendente`` past its due date."""

    today = today or utcnow().date()
    stmt = (
        select(FinancialTransaction)
        .options(joinedload(FinancialTransaction.student))
        .where(
            FinancialTransaction.organization_id == organization_id,
            FinancialTransaction.type == TransactionType.REVENUE,
            or_(
                FinancialTransaction.status == PaymentStatus.OVERDUE,
                (FinancialTransaction.status == PaymentStatus.PENDING) & (FinancialTransaction.due_date < today),
            ),
        )
        .order_by(FinancialTransaction.due_date, FinancialTransaction.id)
    )
    return session.execute(stmt).scalars().all()


def upcoming_payments(
    session: Session,
    *,
    organization_id: UUID,
    days: int = UPCOMING_DAYS,
    today: date | None = None,
) -> list[PaymentAlert]:
    """Pending revenue due soon plus private plans whose validity runs out soon."""

    today = today or utcnow().date()
    horizon = today + timedelta(days=days)

    students = session.execute(
        select(Student)
        .where(
            Student.organization_id == organization_id,
            Student.enrollment_type == EnrollmentType.PARTICULAR,
            or_(Student.plan_type.is_(None), Student.plan_type != PlanType.SINGLE),
            Student.status == StudentStatus.ACTIVE,
            Student.validity_date >= today,
            Student.validity_date <= horizon,
        )
        .order_by(Student.validity_date, Student.name)
    ).scalars()

    alerts = [
        PaymentAlert(
            kind="validity",
            student_id=student.id,
            student_name=student.name,
            description=" ".join(
                part
                for part in (
                    "Mensalidade -",
                    student.plan_type.value if student.plan_type else None,
                    student.plan_frequency,
                    "(validade vencendo)",
                )
                if part
            ),
            amount=student.monthly_fee or 0.0,
            due_date=student.validity_date,
        )
        for student in students
    ]

    pending = session.execute(
        select(FinancialTransaction)
        .options(joinedload(FinancialTransaction.student))
        .where(
            FinancialTransaction.organization_id == organization_id,
            FinancialTransaction.type == TransactionType.REVENUE,
            FinancialTransaction.status == PaymentStatus.PENDING,
            FinancialTransaction.due_date >= today,
            FinancialTransaction.due_date <= horizon,
        )
        .order_by(FinancialTransaction.due_date, FinancialTransaction.id)
    ).scalars()

    alerts.extend(
        PaymentAlert(
            kind="transaction",
            student_id=transaction.student_id,
            student_name=transaction.student.name if transaction.student else None,
            description=transaction.description,
            amount=transaction.amount,
            due_date=transaction.due_date,
            transaction_id=transaction.id,
        )
        for transaction in pending
    )
    alerts.sort(key=lambda alert: alert.due_date)
    return alerts


def monthly_summary(session: Session, *, organization_id: UUID, year: int) -> list[MonthSummary]:
    """Paid revenue and expenses per calendar month of ``year``.

    Revenue counts when paid; expenses count on payment, or on creation when
    no payment date was recorded.
    """

    months = {month: MonthSummary(month=month, revenue=0.0, expense=0.0) for month in range(1, 13)}
    year_start = datetime(year, 1, 1)
    next_year = datetime(year + 1, 1, 1)

    stmt = select(FinancialTransaction).where(
        FinancialTransaction.organization_id == organization_id,
        or_(
            (FinancialTransaction.paid_at >= year_start) & (FinancialTransaction.paid_at < next_year),
            (FinancialTransaction.paid_at.is_(None))
            & (FinancialTransaction.created_at >= year_start)
            & (FinancialTransaction.created_at < next_year),
        ),
    )
    for transaction in session.execute(stmt).scalars():
        if transaction.type == TransactionType.REVENUE:
            if transaction.status != PaymentStatus.PAID or transaction.paid_at is None:
                continue
            months[transaction.paid_at.month].revenue += transaction.amount
        else:
            when = transaction.paid_at or transaction.created_at
            months[when.month].expense += transaction.amount

    for summary in months.values():
        summary.revenue = round(summary.revenue, 2)
        summary.expense = round(summary.expense, 2)
    return list(months.values())
