"""Unit tests for the monthly reposition credit renewal"""

from datetime import date, datetime, timezone

from sqlalchemy import select

from studio.jobs import monthly_renewal
from studio.models import CreditEntryType, RepositionCreditEntry, Student
from studio.services.renewal_service import run_monthly_renewal

RUN_AT = datetime(2025, 2, 1, 0, 5, tzinfo=timezone.utc)


def test_run_monthly_renewal_resets_stale_balances(db, organization, make_student):
    """Students from an earlier month are reset and their leftovers forfeited"""
    stale = make_student("Ana", credits=2, last_credit_renewal=date(2025, 1, 1))
    empty = make_student("Bruno", credits=0, last_credit_renewal=None)
    current = make_student("Carla", credits=1, last_credit_renewal=date(2025, 2, 1))

    summary = run_monthly_renewal(db, current_time=RUN_AT)
    db.commit()

    assert summary == {"students_processed": 2, "credits_forfeited": 2}
    for student in (stale, empty):
        db.refresh(student)
        assert student.reposition_credits == 0
        assert student.last_credit_renewal == date(2025, 2, 1)
    db.refresh(current)
    assert current.reposition_credits == 1

    entries = db.execute(select(RepositionCreditEntry)).scalars().all()
    assert [(entry.student_id, entry.entry_type, entry.amount) for entry in entries] == [
        (stale.id, CreditEntryType.MONTHLY_RESET, -2)
    ]


def test_run_monthly_renewal_is_idempotent(db, organization, make_student):
    """A second run in the same month processes nobody"""
    make_student("Ana", credits=2, last_credit_renewal=date(2025, 1, 1))

    run_monthly_renewal(db, current_time=RUN_AT)
    db.commit()
    summary = run_monthly_renewal(db, current_time=datetime(2025, 2, 15, tzinfo=timezone.utc))

    assert summary == {"students_processed": 0, "credits_forfeited": 0}


def test_run_renewal_once_commits(db, organization, make_student, session_factory, monkeypatch):
    """The scheduled entrypoint runs in its own session and commits"""
    student = make_student("Ana", credits=3, last_credit_renewal=date(2025, 1, 1))
    monkeypatch.setattr(monthly_renewal, "SessionLocal", session_factory)

    summary = monthly_renewal.run_renewal_once(RUN_AT)

    assert summary == {"students_processed": 1, "credits_forfeited": 3}
    db.expire_all()
    assert db.get(Student, student.id).reposition_credits == 0
