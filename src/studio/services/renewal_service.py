"""Scheduled reposition credit renewal."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..models import Student
from ..utils.datetime import month_start
from .credit_service import apply_renewal


def run_monthly_renewal(session: Session, *, current_time: datetime | None = None) -> dict[str, int]:
    """Reset every student still carrying last month's balance.

    Rows locked by a concurrent request are skipped; the lazy check in
    ``credit_service.get_balance`` picks them up on their next read. Running it
    twice in the same month processes nobody the second time.
    """

    now_utc = current_time.astimezone(timezone.utc) if current_time else datetime.now(timezone.utc)
    today = now_utc.date()
    current_bucket = month_start(today)

    summary = {
        "students_processed": 0,
        "credits_forfeited": 0,
    }

    stmt = (
        select(Student)
        .where(or_(Student.last_credit_renewal.is_(None), Student.last_credit_renewal < current_bucket))
        .order_by(Student.organization_id, Student.id)
        .with_for_update(skip_locked=True)
    )
    for student in session.execute(stmt).scalars().all():
        summary["credits_forfeited"] += apply_renewal(session, student, today)
        summary["students_processed"] += 1

    return summary
