"""Unit tests for reposition credit rules"""

import uuid
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from studio.core.exceptions import InsufficientCredits, InvalidRequest, NotFound
from studio.models import AttendanceType, CreditEntryType, RepositionCreditEntry
from studio.services import credit_service
from studio.services.credit_service import AttendeeAssignment


def _entries(db, student_id):
    stmt = (
        select(RepositionCreditEntry)
        .where(RepositionCreditEntry.student_id == student_id)
        .order_by(RepositionCreditEntry.id)
    )
    return db.execute(stmt).scalars().all()


def test_needs_renewal():
    """Balance renewed in an earlier month is due"""
    assert credit_service.needs_renewal(None, date(2025, 3, 10))
    assert credit_service.needs_renewal(date(2025, 2, 28), date(2025, 3, 1))
    assert not credit_service.needs_renewal(date(2025, 3, 1), date(2025, 3, 31))


def test_get_balance_resets_once_per_month(db, organization, make_student):
    """First read in a new month forfeits leftover credits, later reads do not"""
    student = make_student("Ana", credits=3, last_credit_renewal=date(2025, 1, 15))

    balance = credit_service.get_balance(
        db, organization_id=organization.id, student_id=student.id, today=date(2025, 2, 10)
    )
    assert balance.credits == 0
    assert balance.renewed is True
    assert balance.last_credit_renewal == date(2025, 2, 10)

    again = credit_service.get_balance(
        db, organization_id=organization.id, student_id=student.id, today=date(2025, 2, 20)
    )
    assert again.credits == 0
    assert again.renewed is False

    entries = _entries(db, student.id)
    assert [(entry.entry_type, entry.amount) for entry in entries] == [(CreditEntryType.MONTHLY_RESET, -3)]


def test_renewal_without_credits_writes_no_entry(db, organization, make_student):
    """Nothing to forfeit means no ledger row"""
    student = make_student("Ana", credits=0, last_credit_renewal=date(2025, 1, 15))

    balance = credit_service.get_balance(
        db, organization_id=organization.id, student_id=student.id, today=date(2025, 2, 1)
    )

    assert balance.renewed is True
    assert _entries(db, student.id) == []


def test_get_balance_unknown_student(db, organization):
    """Unknown student raises NotFound"""
    with pytest.raises(NotFound):
        credit_service.get_balance(db, organization_id=organization.id, student_id=uuid.uuid4())


def test_get_balance_is_scoped_to_organization(db, organization, other_organization, make_student):
    """A student of another organization is invisible"""
    student = make_student("Ana", credits=1)

    with pytest.raises(NotFound):
        credit_service.get_balance(db, organization_id=other_organization.id, student_id=student.id)


def test_consume_and_return(db, organization, make_student):
    """Consumption stops at zero and a return gives the credit back"""
    student = make_student("Ana", credits=1)

    assert credit_service.consume_credit(db, organization_id=organization.id, student_id=student.id) == 0

    with pytest.raises(InsufficientCredits):
        credit_service.consume_credit(db, organization_id=organization.id, student_id=student.id)
    db.refresh(student)
    assert student.reposition_credits == 0

    assert credit_service.return_credit(db, organization_id=organization.id, student_id=student.id) == 1

    entries = _entries(db, student.id)
    assert [(entry.entry_type, entry.amount) for entry in entries] == [
        (CreditEntryType.CONSUMPTION, -1),
        (CreditEntryType.RETURN, 1),
    ]


def test_balance_cannot_be_stored_negative(db, organization, make_student):
    """The check constraint rejects a negative balance"""
    student = make_student("Ana", credits=0)
    student.reposition_credits = -1

    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_manual_adjustment(db, organization, make_student):
    """Manual adjustments need a reason and never drive the balance negative"""
    student = make_student("Ana", credits=1)

    with pytest.raises(InvalidRequest):
        credit_service.adjust_reposition_credit_manual(
            db, organization_id=organization.id, student_id=student.id, amount=0, reason="noop"
        )
    with pytest.raises(InvalidRequest):
        credit_service.adjust_reposition_credit_manual(
            db, organization_id=organization.id, student_id=student.id, amount=1, reason="   "
        )
    with pytest.raises(InsufficientCredits):
        credit_service.adjust_reposition_credit_manual(
            db, organization_id=organization.id, student_id=student.id, amount=-2, reason="Correction"
        )
    db.refresh(student)
    assert student.reposition_credits == 1

    balance = credit_service.adjust_reposition_credit_manual(
        db, organization_id=organization.id, student_id=student.id, amount=2, reason=" Holiday ", created_by="owner-1"
    )
    assert balance == 3

    entries = _entries(db, student.id)
    assert len(entries) == 1
    assert entries[0].entry_type == CreditEntryType.MANUAL_ADJUSTMENT
    assert entries[0].reason == "Holiday"
    assert entries[0].created_by == "owner-1"


def test_add_credit_rejects_non_grant_types(db, organization, make_student):
    """Only grant entry types may add credits"""
    student = make_student("Ana")

    with pytest.raises(InvalidRequest):
        credit_service.add_reposition_credit(
            db,
            organization_id=organization.id,
            student_id=student.id,
            amount=1,
            reason="Sneaky",
            entry_type=CreditEntryType.RETURN,
        )
    with pytest.raises(InvalidRequest):
        credit_service.add_reposition_credit(
            db, organization_id=organization.id, student_id=student.id, amount=-1, reason="Negative"
        )

    balance = credit_service.add_reposition_credit(
        db,
        organization_id=organization.id,
        student_id=student.id,
        amount=1,
        reason="Paid early",
        entry_type=CreditEntryType.PAYMENT_BONUS,
    )
    assert balance == 1


def test_revoke_only_when_credit_still_available(db, organization, make_student):
    """Revoking a spent credit changes nothing"""
    spent = make_student("Ana", credits=0)
    kept = make_student("Bruno", credits=1)

    assert not credit_service.revoke_reposition_credit(
        db, organization_id=organization.id, student_id=spent.id, reason="Absence reverted"
    )
    assert credit_service.revoke_reposition_credit(
        db, organization_id=organization.id, student_id=kept.id, reason="Absence reverted"
    )

    db.refresh(kept)
    assert kept.reposition_credits == 0
    assert _entries(db, spent.id) == []
    assert [(entry.entry_type, entry.amount) for entry in _entries(db, kept.id)] == [(CreditEntryType.ABSENCE, -1)]


@pytest.mark.parametrize("credits", [0, 1])
def test_same_student_make_up_edit_is_a_no_op(db, organization, make_student, credits):
    """Keeping the same make-up student neither charges nor refunds"""
    student = make_student("Ana", credits=credits)
    assignment = AttendeeAssignment(student.id, AttendanceType.MAKE_UP)

    credit_service.reconcile_attendee_change(db, organization_id=organization.id, original=assignment, new=assignment)

    db.refresh(student)
    assert student.reposition_credits == credits
    assert _entries(db, student.id) == []


def test_make_up_type_change_settles_credits(db, organization, make_student):
    """Leaving make-up refunds, entering make-up charges"""
    student = make_student("Ana", credits=0)

    credit_service.reconcile_attendee_change(
        db,
        organization_id=organization.id,
        original=AttendeeAssignment(student.id, AttendanceType.MAKE_UP),
        new=AttendeeAssignment(student.id, AttendanceType.ONE_OFF),
    )
    db.refresh(student)
    assert student.reposition_credits == 1

    credit_service.reconcile_attendee_change(
        db,
        organization_id=organization.id,
        original=AttendeeAssignment(student.id, AttendanceType.ONE_OFF),
        new=AttendeeAssignment(student.id, AttendanceType.MAKE_UP),
    )
    db.refresh(student)
    assert student.reposition_credits == 0


def test_make_up_student_swap_needs_credit(db, organization, make_student):
    """Swapping to a make-up student without credit fails"""
    first = make_student("Ana", credits=0)
    second = make_student("Bruno", credits=0)

    with pytest.raises(InsufficientCredits):
        credit_service.reconcile_attendee_change(
            db,
            organization_id=organization.id,
            original=AttendeeAssignment(first.id, AttendanceType.MAKE_UP),
            new=AttendeeAssignment(second.id, AttendanceType.MAKE_UP),
        )
