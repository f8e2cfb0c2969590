"""Reposition credit balance, consumption and return."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.exceptions import InsufficientCredits, InvalidRequest, NotFound
from ..models import AttendanceType, CreditEntryType, RepositionCreditEntry, Student
from ..utils.datetime import month_start, utcnow

logger = logging.getLogger(__name__)

GRANT_ENTRY_TYPES = (
    CreditEntryType.ABSENCE,
    CreditEntryType.PAYMENT_BONUS,
    CreditEntryType.MANUAL_ADJUSTMENT,
)


@dataclass
class CreditBalance:
    credits: int
    last_credit_renewal: date | None
    renewed: bool


@dataclass(frozen=True)
class AttendeeAssignment:
    """``(student, attendance type)`` of a class's sole attendee."""

    student_id: UUID
    attendance_type: AttendanceType


def _lock_student(session: Session, organization_id: UUID, student_id: UUID) -> Student:
    stmt = (
        select(Student)
        .where(Student.id == student_id, Student.organization_id == organization_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    student = session.execute(stmt).scalar_one_or_none()
    if student is None:
        raise NotFound(f"Student {student_id} not found")
    return student


def needs_renewal(last_credit_renewal: date | None, today: date) -> bool:
    """True when the balance was last reset before the month containing ``today``."""

    return last_credit_renewal is None or last_credit_renewal < month_start(today)


def apply_renewal(session: Session, student: Student, today: date) -> int:
    """Reset a locked student's credits to zero for the month of ``today``.

    Returns the number of credits forfeited.
    """

    forfeited = student.reposition_credits or 0
    student.reposition_credits = 0
    student.last_credit_renewal = today
    if forfeited:
        session.add(
            RepositionCreditEntry(
                organization_id=student.organization_id,
                student_id=student.id,
                entry_type=CreditEntryType.MONTHLY_RESET,
                amount=-forfeited,
                reason="Monthly renewal",
            )
        )
    session.flush()
    return forfeited


def _renew_if_due(session: Session, student: Student, today: date) -> bool:
    if not needs_renewal(student.last_credit_renewal, today):
        return False
    forfeited = apply_renewal(session, student, today)
    logger.info(
        "reposition credits renewed",
        extra={
            "organization_id": str(student.organization_id),
            "student_id": str(student.id),
            "forfeited": forfeited,
        },
    )
    return True


def get_balance(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    today: date | None = None,
) -> CreditBalance:
    """Return the student's balance, applying the monthly reset first when due."""

    today = today or utcnow().date()
    student = _lock_student(session, organization_id, student_id)
    renewed = _renew_if_due(session, student, today)
    return CreditBalance(
        credits=student.reposition_credits,
        last_credit_renewal=student.last_credit_renewal,
        renewed=renewed,
    )


def _relative_update(session: Session, organization_id: UUID, student_id: UUID, amount: int) -> bool:
    stmt = (
        update(Student)
        .where(Student.id == student_id, Student.organization_id == organization_id)
        .values(reposition_credits=Student.reposition_credits + amount, updated_at=utcnow())
        .execution_options(synchronize_session="fetch")
    )
    if amount < 0:
        stmt = stmt.where(Student.reposition_credits >= -amount)
    result = session.execute(stmt)
    return result.rowcount == 1


def _record(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    entry_type: CreditEntryType,
    amount: int,
    reason: str | None,
    created_by: str | None = None,
) -> RepositionCreditEntry:
    entry = RepositionCreditEntry(
        organization_id=organization_id,
        student_id=student_id,
        entry_type=entry_type,
        amount=amount,
        reason=reason,
        created_by=created_by,
    )
    session.add(entry)
    session.flush()
    return entry


def increment_reposition_credit(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    amount: int,
) -> int:
    """Atomically add ``amount`` (possibly negative) to the balance.

    A negative amount only applies when the balance covers it; otherwise
    ``InsufficientCredits`` is raised and nothing changes. Returns the new balance.
    """

    session.flush()
    if not _relative_update(session, organization_id, student_id, amount):
        exists = session.execute(
            select(Student.id).where(Student.id == student_id, Student.organization_id == organization_id)
        ).scalar_one_or_none()
        if exists is None:
            raise NotFound(f"Student {student_id} not found")
        raise InsufficientCredits("Student has no reposition credits available.")

    return session.execute(select(Student.reposition_credits).where(Student.id == student_id)).scalar_one()


def consume_credit(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    reason: str | None = None,
    today: date | None = None,
) -> int:
    """Debit one credit for a make-up booking; raises ``InsufficientCredits`` at zero."""

    get_balance(session, organization_id=organization_id, student_id=student_id, today=today)
    remaining = increment_reposition_credit(
        session, organization_id=organization_id, student_id=student_id, amount=-1
    )
    _record(
        session,
        organization_id=organization_id,
        student_id=student_id,
        entry_type=CreditEntryType.CONSUMPTION,
        amount=-1,
        reason=reason or "Make-up class booked",
    )
    logger.info(
        "reposition credit consumed",
        extra={"organization_id": str(organization_id), "student_id": str(student_id), "remaining": remaining},
    )
    return remaining


def return_credit(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    reason: str | None = None,
) -> int:
    """Give one credit back (class cancelled, attendee removed or retyped)."""

    balance = increment_reposition_credit(session, organization_id=organization_id, student_id=student_id, amount=1)
    _record(
        session,
        organization_id=organization_id,
        student_id=student_id,
        entry_type=CreditEntryType.RETURN,
        amount=1,
        reason=reason or "Make-up class cancelled",
    )
    logger.info(
        "reposition credit returned",
        extra={"organization_id": str(organization_id), "student_id": str(student_id), "balance": balance},
    )
    return balance


def adjust_reposition_credit_manual(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    amount: int,
    reason: str,
    created_by: str | None = None,
) -> int:
    """Admin correction of the balance in either direction."""

    if amount == 0:
        raise InvalidRequest("Adjustment amount must be non-zero.")
    if not reason or not reason.strip():
        raise InvalidRequest("A reason is required for manual adjustments.")

    get_balance(session, organization_id=organization_id, student_id=student_id)
    try:
        balance = increment_reposition_credit(
            session, organization_id=organization_id, student_id=student_id, amount=amount
        )
    except InsufficientCredits as exc:
        raise InsufficientCredits("Adjustment would make the credit balance negative.") from exc

    _record(
        session,
        organization_id=organization_id,
        student_id=student_id,
        entry_type=CreditEntryType.MANUAL_ADJUSTMENT,
        amount=amount,
        reason=reason.strip(),
        created_by=created_by,
    )
    return balance


def add_reposition_credit(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    amount: int,
    reason: str,
    entry_type: CreditEntryType = CreditEntryType.MANUAL_ADJUSTMENT,
    created_by: str | None = None,
) -> int:
    """Grant credits with an audit reason (absence, payment bonus, manual)."""

    if amount <= 0:
        raise InvalidRequest("Granted credits must be positive.")
    if entry_type not in GRANT_ENTRY_TYPES:
        raise InvalidRequest(f"Entry type {entry_type.value} cannot be used for a grant.")

    get_balance(session, organization_id=organization_id, student_id=student_id)
    balance = increment_reposition_credit(session, organization_id=organization_id, student_id=student_id, amount=amount)
    _record(
        session,
        organization_id=organization_id,
        student_id=student_id,
        entry_type=entry_type,
        amount=amount,
        reason=reason,
        created_by=created_by,
    )
    return balance


def revoke_reposition_credit(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    reason: str,
    entry_type: CreditEntryType = CreditEntryType.ABSENCE,
) -> bool:
    """Take back one granted credit if the student still has it.

    Returns False, changing nothing, when the credit was already spent.
    """

    get_balance(session, organization_id=organization_id, student_id=student_id)
    try:
        increment_reposition_credit(session, organization_id=organization_id, student_id=student_id, amount=-1)
    except InsufficientCredits:
        logger.info(
            "granted credit already spent",
            extra={"organization_id": str(organization_id), "student_id": str(student_id)},
        )
        return False

    _record(
        session,
        organization_id=organization_id,
        student_id=student_id,
        entry_type=entry_type,
        amount=-1,
        reason=reason,
    )
    return True


def list_credit_entries(
    session: Session,
    *,
    organization_id: UUID,
    student_id: UUID,
    limit: int = 50,
    offset: int = 0,
) -> Sequence[RepositionCreditEntry]:
    stmt = (
        select(RepositionCreditEntry)
        .where(
            RepositionCreditEntry.organization_id == organization_id,
            RepositionCreditEntry.student_id == student_id,
        )
        .order_by(RepositionCreditEntry.created_at.desc(), RepositionCreditEntry.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return session.execute(stmt).scalars().all()


def reconcile_attendee_change(
    session: Session,
    *,
    organization_id: UUID,
    original: AttendeeAssignment | None,
    new: AttendeeAssignment | None,
) -> None:
    """Settle credits when a class's sole attendee is edited.

    The original make-up student gets a credit back before the new one is
    charged, so a same-student change never fails on a balance of exactly one.
    """

    make_up = AttendanceType.MAKE_UP
    same_student = original is not None and new is not None and original.student_id == new.student_id

    if original is not None and original.attendance_type == make_up:
        if not same_student or new.attendance_type != make_up:
            return_credit(
                session,
                organization_id=organization_id,
                student_id=original.student_id,
                reason="Make-up attendee changed",
            )

    if new is not None and new.attendance_type == make_up:
        if not same_student or original.attendance_type != make_up:
            consume_credit(
                session,
                organization_id=organization_id,
                student_id=new.student_id,
                reason="Make-up attendee assigned",
            )
