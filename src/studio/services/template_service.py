"""Recurring class templates and their expansion into classes."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..core.exceptions import InvalidRequest, NotFound
from ..models import (
    CLASS_DURATION_MINUTES,
    AttendanceStatus,
    AttendanceType,
    ClassAttendee,
    ClassEvent,
    RecurringClassTemplate,
    Student,
)
from ..utils.datetime import local_to_utc, parse_full_hour, to_naive_utc, utc_to_local, utcnow
from . import class_service, organization_service

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def normalize_pattern(pattern: Iterable[dict[str, str]]) -> list[dict[str, str]]:
    """Validate ``{day, time}`` items and return them sorted by weekday and hour."""

    items = []
    seen = set()
    for raw in pattern:
        day = str(raw.get("day", "")).lower()
        time = str(raw.get("time", ""))
        if day not in WEEKDAYS:
            raise InvalidRequest(f"Unknown weekday {raw.get('day')!r}.")
        try:
            parse_full_hour(time)
        except ValueError as exc:
            raise InvalidRequest(str(exc)) from exc
        if (day, time) in seen:
            raise InvalidRequest(f"{day} {time} appears more than once.")
        seen.add((day, time))
        items.append({"day": day, "time": time})

    if not items:
        raise InvalidRequest("Select at least one weekday.")
    return sorted(items, key=lambda item: (WEEKDAYS.index(item["day"]), item["time"]))


def _validate_dates(start: date, end: date | None) -> None:
    if end is not None and end < start:
        raise InvalidRequest("The end date cannot be before the start date.")


def _student(session: Session, organization_id: UUID, student_id: UUID | None) -> Student | None:
    if student_id is None:
        return None
    student = session.execute(
        select(Student).where(Student.id == student_id, Student.organization_id == organization_id)
    ).scalar_one_or_none()
    if student is None:
        raise NotFound(f"Student {student_id} not found")
    return student


def _get_template(session: Session, organization_id: UUID, template_id: UUID, *, lock: bool = False) -> RecurringClassTemplate:
    stmt = select(RecurringClassTemplate).where(
        RecurringClassTemplate.id == template_id, RecurringClassTemplate.organization_id == organization_id
    )
    if lock:
        stmt = stmt.with_for_update()
    template = session.execute(stmt).scalar_one_or_none()
    if template is None:
        raise NotFound(f"Template {template_id} not found")
    return template


def list_templates(session: Session, *, organization_id: UUID) -> Sequence[RecurringClassTemplate]:
    stmt = (
        select(RecurringClassTemplate)
        .where(RecurringClassTemplate.organization_id == organization_id)
        .order_by(RecurringClassTemplate.title, RecurringClassTemplate.created_at)
    )
    return session.execute(stmt).scalars().all()


def get_template(session: Session, *, organization_id: UUID, template_id: UUID) -> RecurringClassTemplate:
    return _get_template(session, organization_id, template_id)


def create_template(
    session: Session,
    *,
    organization_id: UUID,
    recurrence_pattern: Iterable[dict[str, str]],
    recurrence_start_date: date,
    recurrence_end_date: date | None = None,
    student_id: UUID | None = None,
    title: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> RecurringClassTemplate:
    """Store a template and generate its upcoming classes."""

    pattern = normalize_pattern(recurrence_pattern)
    _validate_dates(recurrence_start_date, recurrence_end_date)
    student = _student(session, organization_id, student_id)

    title = (title or "").strip() or (student.name if student else "")
    if not title:
        raise InvalidRequest("A title is required when no student is selected.")

    template = RecurringClassTemplate(
        organization_id=organization_id,
        student_id=student_id,
        title=title,
        notes=notes or None,
        duration_minutes=CLASS_DURATION_MINUTES,
        recurrence_pattern=pattern,
        recurrence_start_date=recurrence_start_date,
        recurrence_end_date=recurrence_end_date,
    )
    session.add(template)
    session.flush()

    generate_classes_from_template(session, organization_id=organization_id, template_id=template.id, now=now)
    return template


def update_template(
    session: Session,
    *,
    organization_id: UUID,
    template_id: UUID,
    changes: dict[str, Any],
    now: datetime | None = None,
) -> RecurringClassTemplate:
    """Apply submitted fields and regenerate future occurrences."""

    template = _get_template(session, organization_id, template_id, lock=True)

    if "recurrence_pattern" in changes:
        template.recurrence_pattern = normalize_pattern(changes["recurrence_pattern"])
    if "student_id" in changes:
        _student(session, organization_id, changes["student_id"])
        template.student_id = changes["student_id"]
    if "recurrence_start_date" in changes and changes["recurrence_start_date"] is not None:
        template.recurrence_start_date = changes["recurrence_start_date"]
    if "recurrence_end_date" in changes:
        template.recurrence_end_date = changes["recurrence_end_date"]
    if "notes" in changes:
        template.notes = changes["notes"] or None
    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            student = _student(session, organization_id, template.student_id)
            title = student.name if student else ""
        if not title:
            raise InvalidRequest("A title is required when no student is selected.")
        template.title = title

    _validate_dates(template.recurrence_start_date, template.recurrence_end_date)
    session.flush()

    generate_classes_from_template(session, organization_id=organization_id, template_id=template.id, now=now)
    return template


def delete_template(session: Session, *, organization_id: UUID, template_id: UUID) -> None:
    """Delete only the template; classes it generated stay on the calendar."""

    template = _get_template(session, organization_id, template_id, lock=True)
    session.delete(template)
    session.flush()


def _occurrences(template: RecurringClassTemplate, first_day: date, last_day: date, tz_name: str):
    by_weekday: dict[int, list[int]] = {}
    for item in template.recurrence_pattern:
        by_weekday.setdefault(WEEKDAYS.index(item["day"]), []).append(parse_full_hour(item["time"]))

    day = first_day
    while day <= last_day:
        for hour in sorted(by_weekday.get(day.weekday(), [])):
            yield local_to_utc(day, hour, tz_name)
        day += timedelta(days=1)


def generate_classes_from_template(
    session: Session,
    *,
    organization_id: UUID,
    template_id: UUID,
    now: datetime | None = None,
) -> int:
    """Replace the template's future classes with a fresh expansion.

    Classes that already started are left alone. Without an end date the
    expansion covers the organization's ``template_horizon_weeks``. Returns the
    number of classes created.
    """

    template = _get_template(session, organization_id, template_id, lock=True)
    now = to_naive_utc(now) if now else utcnow()
    settings = organization_service.get_app_settings(session, organization_id=organization_id)
    tz_name = settings["timezone"]

    future_ids = (
        session.execute(
            select(ClassEvent.id).where(
                ClassEvent.organization_id == organization_id,
                ClassEvent.recurring_class_template_id == template_id,
                ClassEvent.start_time >= now,
            )
        )
        .scalars()
        .all()
    )
    refunds = []
    if future_ids:
        refunds = session.execute(
            select(ClassAttendee.class_id, ClassAttendee.student_id).where(
                ClassAttendee.class_id.in_(future_ids), ClassAttendee.attendance_type == AttendanceType.MAKE_UP
            )
        ).all()
        session.execute(delete(ClassAttendee).where(ClassAttendee.class_id.in_(future_ids)))
        session.execute(delete(ClassEvent).where(ClassEvent.id.in_(future_ids)))
        session.flush()
        class_service.return_make_up_credits(
            session,
            organization_id=organization_id,
            refunds=[(row.class_id, row.student_id) for row in refunds],
            reason="Make-up class removed by template update",
        )

    first_day = max(template.recurrence_start_date, utc_to_local(now, tz_name).date())
    last_day = template.recurrence_end_date or first_day + timedelta(weeks=settings["template_horizon_weeks"])

    created = 0
    for start_time in _occurrences(template, first_day, last_day, tz_name):
        if start_time < now:
            continue
        class_event = ClassEvent(
            organization_id=organization_id,
            title=template.title,
            start_time=start_time,
            duration_minutes=template.duration_minutes or CLASS_DURATION_MINUTES,
            notes=template.notes,
            student_id=template.student_id,
            recurring_class_template_id=template.id,
        )
        if template.student_id is not None:
            class_event.attendees = [
                ClassAttendee(
                    organization_id=organization_id,
                    student_id=template.student_id,
                    status=AttendanceStatus.SCHEDULED,
                    attendance_type=AttendanceType.RECURRING,
                )
            ]
        session.add(class_event)
        created += 1

    session.flush()
    logger.info(
        "template classes generated",
        extra={
            "organization_id": str(organization_id),
            "template_id": str(template_id),
            "classes_removed": len(future_ids),
            "classes_created": created,
            "make_up_refunds": len(refunds),
        },
    )
    return created
