"""Unit tests for recurring class templates"""

from datetime import date, datetime

import pytest
from sqlalchemy import select

from studio.core.exceptions import InvalidRequest
from studio.models import AttendanceType, ClassEvent, CreditEntryType
from studio.services import class_service, credit_service, organization_service, template_service

PATTERN = [{"day": "Thursday", "time": "18:00"}, {"day": "monday", "time": "08:00"}]
BEFORE_START = datetime(2030, 1, 1)


def _classes(db):
    return db.execute(select(ClassEvent).order_by(ClassEvent.start_time)).scalars().all()


def _create(db, organization, **kwargs):
    template = template_service.create_template(
        db,
        organization_id=organization.id,
        recurrence_pattern=kwargs.pop("recurrence_pattern", PATTERN),
        recurrence_start_date=kwargs.pop("recurrence_start_date", date(2030, 1, 7)),
        recurrence_end_date=kwargs.pop("recurrence_end_date", date(2030, 1, 20)),
        now=kwargs.pop("now", BEFORE_START),
        **kwargs,
    )
    db.commit()
    return template


def test_normalize_pattern_sorts_and_lowercases():
    """Pattern items come back ordered by weekday"""
    assert template_service.normalize_pattern(PATTERN) == [
        {"day": "monday", "time": "08:00"},
        {"day": "thursday", "time": "18:00"},
    ]


@pytest.mark.parametrize(
    "pattern",
    [
        [],
        [{"day": "someday", "time": "08:00"}],
        [{"day": "monday", "time": "8:00"}],
        [{"day": "monday", "time": "08:30"}],
        [{"day": "monday", "time": "08:00"}, {"day": "Monday", "time": "08:00"}],
    ],
)
def test_normalize_pattern_rejects_invalid_items(pattern):
    """Empty, unknown weekday, partial hour and duplicates are rejected"""
    with pytest.raises(InvalidRequest):
        template_service.normalize_pattern(pattern)


def test_create_template_generates_classes(db, organization, make_student):
    """Every pattern slot between start and end becomes a class"""
    student = make_student("Ana")

    template = _create(db, organization, student_id=student.id)

    classes = _classes(db)
    assert [class_event.start_time for class_event in classes] == [
        datetime(2030, 1, 7, 11, 0),
        datetime(2030, 1, 10, 21, 0),
        datetime(2030, 1, 14, 11, 0),
        datetime(2030, 1, 17, 21, 0),
    ]
    assert template.title == "Ana"
    for class_event in classes:
        assert class_event.recurring_class_template_id == template.id
        assert class_event.student_id == student.id
        assert [row.attendance_type for row in class_event.attendees] == [AttendanceType.RECURRING]


def test_create_template_requires_title_without_student(db, organization):
    """A template with no student needs a title"""
    with pytest.raises(InvalidRequest):
        _create(db, organization)


def test_create_template_rejects_inverted_range(db, organization):
    """The end date cannot precede the start date"""
    with pytest.raises(InvalidRequest):
        _create(db, organization, title="Turma", recurrence_end_date=date(2030, 1, 6))


def test_open_ended_template_uses_horizon(db, organization):
    """Without an end date the organization horizon bounds generation"""
    organization_service.update_app_setting(db, organization_id=organization.id, key="template_horizon_weeks", value=1)

    _create(
        db,
        organization,
        title="Turma",
        recurrence_pattern=[{"day": "monday", "time": "08:00"}],
        recurrence_end_date=None,
    )

    assert [class_event.start_time.date() for class_event in _classes(db)] == [date(2030, 1, 7), date(2030, 1, 14)]


def test_update_template_regenerates_only_future_classes(db, organization):
    """Past occurrences stay, future ones follow the new pattern"""
    template = _create(db, organization, title="Turma")

    template_service.update_template(
        db,
        organization_id=organization.id,
        template_id=template.id,
        changes={"recurrence_pattern": [{"day": "monday", "time": "08:00"}]},
        now=datetime(2030, 1, 12),
    )
    db.commit()

    assert [class_event.start_time for class_event in _classes(db)] == [
        datetime(2030, 1, 7, 11, 0),
        datetime(2030, 1, 10, 21, 0),
        datetime(2030, 1, 14, 11, 0),
    ]


def test_generate_is_repeatable(db, organization):
    """Regenerating replaces future classes instead of duplicating them"""
    template = _create(db, organization, title="Turma")

    created = template_service.generate_classes_from_template(
        db, organization_id=organization.id, template_id=template.id, now=BEFORE_START
    )
    db.commit()

    assert created == 4
    assert len(_classes(db)) == 4


def test_delete_template_keeps_generated_classes(db, organization):
    """Deleting a template leaves its classes on the calendar"""
    template = _create(db, organization, title="Turma")

    template_service.delete_template(db, organization_id=organization.id, template_id=template.id)
    db.commit()

    classes = _classes(db)
    assert len(classes) == 4
    assert all(class_event.recurring_class_template_id is None for class_event in classes)
    assert template_service.list_templates(db, organization_id=organization.id) == []


def test_regenerate_returns_make_up_credits(db, organization, make_student):
    """Make-up seats on replaced classes are refunded"""
    owner = make_student("Ana")
    guest = make_student("Bia", credits=1)
    template = _create(db, organization, student_id=owner.id, recurrence_pattern=[{"day": "monday", "time": "08:00"}])
    first = _classes(db)[0]
    class_service.add_attendee(
        db,
        organization_id=organization.id,
        class_id=first.id,
        student_id=guest.id,
        attendance_type=AttendanceType.MAKE_UP,
    )
    db.commit()

    created = template_service.generate_classes_from_template(
        db, organization_id=organization.id, template_id=template.id, now=BEFORE_START
    )
    db.commit()

    assert created == 2
    db.refresh(guest)
    assert guest.reposition_credits == 1
    entries = credit_service.list_credit_entries(db, organization_id=organization.id, student_id=guest.id)
    assert sorted((entry.amount, entry.entry_type) for entry in entries) == [
        (-1, CreditEntryType.CONSUMPTION),
        (1, CreditEntryType.RETURN),
    ]
