"""Class scheduling, attendance and capacity rules."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from ..core.exceptions import (
    ClassFullAndNoDisplaceable,
    DisplacementConfirmationRequired,
    InsufficientCredits,
    InvalidRequest,
    NotFound,
    StudioRuleViolation,
)
from ..models import (
    CLASS_DURATION_MINUTES,
    AttendanceStatus,
    AttendanceType,
    ClassAttendee,
    ClassEvent,
    CreditEntryType,
    EnrollmentType,
    Student,
)
from ..utils.datetime import add_weeks, local_to_utc, parse_full_hour, to_naive_utc, utc_to_local
from . import credit_service, organization_service
from .credit_service import AttendeeAssignment

logger = logging.getLogger(__name__)

MAX_STUDENTS_PER_BOOKING = 10
REPEAT_WEEKS = 4
DISPLACEABLE_ENROLLMENTS = (EnrollmentType.WELLHUB, EnrollmentType.TOTALPASS)
ABSENCE_GRANT_TYPES = (AttendanceType.ONE_OFF, AttendanceType.RECURRING)


@dataclass
class ClassDeletionReport:
    class_id: UUID
    attendees_removed: int = 0
    credits_returned: list[UUID] = field(default_factory=list)
    failures: list[dict[str, str]] = field(default_factory=list)


@dataclass
class AttendeeAddition:
    attendee: ClassAttendee
    displaced_student_id: UUID | None = None


@dataclass
class AttendeeRemoval:
    attendee_id: UUID
    student_id: UUID
    credit_returned: bool


def _get_student(session: Session, organization_id: UUID, student_id: UUID) -> Student:
    stmt = select(Student).where(Student.id == student_id, Student.organization_id == organization_id)
    student = session.execute(stmt).scalar_one_or_none()
    if student is None:
        raise NotFound(f"Student {student_id} not found")
    return student


def _get_class(session: Session, organization_id: UUID, class_id: UUID, *, lock: bool = False) -> ClassEvent:
    stmt = select(ClassEvent).where(ClassEvent.id == class_id, ClassEvent.organization_id == organization_id)
    if lock:
        stmt = stmt.with_for_update()
    class_event = session.execute(stmt).scalar_one_or_none()
    if class_event is None:
        raise NotFound(f"Class {class_id} not found")
    return class_event


def _hour(value: str) -> int:
    try:
        return parse_full_hour(value)
    except ValueError as exc:
        raise InvalidRequest(str(exc)) from exc


def _timezone(session: Session, organization_id: UUID) -> str:
    return organization_service.get_app_setting(session, organization_id=organization_id, key="timezone")


def _sync_primary_student(session: Session, class_event: ClassEvent) -> None:
    session.flush()
    session.refresh(class_event, ["attendees"])
    attendees = class_event.attendees
    class_event.student_id = attendees[0].student_id if len(attendees) == 1 else None


def schedule_classes(
    session: Session,
    *,
    organization_id: UUID,
    student_ids: Sequence[UUID],
    day: date,
    time: str,
    attendance_type: AttendanceType = AttendanceType.ONE_OFF,
    title: str | None = None,
    notes: str | None = None,
    repeat_weekly: bool = False,
    created_by: str | None = None,
) -> list[ClassEvent]:
    """Book one class, or the same slot for four consecutive weeks.

    Make-up bookings charge one credit per week right before that week's class
    is created. Running out part way raises ``InsufficientCredits`` whose
    ``completed`` list holds the weeks already booked; those stay booked.
    """

    if not 1 <= len(student_ids) <= MAX_STUDENTS_PER_BOOKING:
        raise InvalidRequest(f"A class needs between 1 and {MAX_STUDENTS_PER_BOOKING} students.")
    if len(set(student_ids)) != len(student_ids):
        raise InvalidRequest("The same student was selected more than once.")
    if attendance_type == AttendanceType.TRIAL and len(student_ids) > 1:
        raise InvalidRequest("Trial classes can only be booked for one student.")
    if attendance_type == AttendanceType.MAKE_UP and len(student_ids) != 1:
        raise InvalidRequest("Make-up classes must be booked for exactly one student.")

    hour = _hour(time)
    for student_id in student_ids:
        _get_student(session, organization_id, student_id)

    first_start = local_to_utc(day, hour, _timezone(session, organization_id))
    weeks = REPEAT_WEEKS if repeat_weekly else 1
    class_title = title or f"Aula ({len(student_ids)} alunos)"

    created: list[ClassEvent] = []
    for week in range(weeks):
        start_time = add_weeks(first_start, week)
        if attendance_type == AttendanceType.MAKE_UP:
            try:
                credit_service.consume_credit(
                    session,
                    organization_id=organization_id,
                    student_id=student_ids[0],
                    reason=f"Make-up class on {start_time:%Y-%m-%d %H:%M} UTC",
                )
            except InsufficientCredits as exc:
                logger.warning(
                    "weekly make-up booking stopped early",
                    extra={
                        "organization_id": str(organization_id),
                        "student_id": str(student_ids[0]),
                        "booked_weeks": len(created),
                        "requested_weeks": weeks,
                    },
                )
                raise InsufficientCredits(
                    f"Not enough reposition credits: booked {len(created)} of {weeks} classes.",
                    completed=created,
                ) from exc

        class_event = ClassEvent(
            organization_id=organization_id,
            title=class_title,
            start_time=start_time,
            duration_minutes=CLASS_DURATION_MINUTES,
            notes=notes or None,
            student_id=student_ids[0] if len(student_ids) == 1 else None,
            created_by=created_by,
        )
        class_event.attendees = [
            ClassAttendee(
                organization_id=organization_id,
                student_id=student_id,
                status=AttendanceStatus.SCHEDULED,
                attendance_type=attendance_type,
            )
            for student_id in student_ids
        ]
        session.add(class_event)
        session.flush()
        created.append(class_event)

    return created


def list_classes(
    session: Session,
    *,
    organization_id: UUID,
    start: datetime,
    end: datetime,
) -> Sequence[ClassEvent]:
    """Classes starting in ``[start, end)``, earliest first."""

    stmt = (
        select(ClassEvent)
        .options(selectinload(ClassEvent.attendees).joinedload(ClassAttendee.student))
        .where(
            ClassEvent.organization_id == organization_id,
            ClassEvent.start_time >= to_naive_utc(start),
            ClassEvent.start_time < to_naive_utc(end),
        )
        .order_by(ClassEvent.start_time, ClassEvent.id)
    )
    return session.execute(stmt).scalars().all()


def get_class(session: Session, *, organization_id: UUID, class_id: UUID) -> ClassEvent:
    return _get_class(session, organization_id, class_id)


def list_attendees(session: Session, *, organization_id: UUID, class_id: UUID) -> list[ClassAttendee]:
    """Attendees ordered by student name; displacement picks from this order."""

    stmt = (
        select(ClassAttendee)
        .join(Student, Student.id == ClassAttendee.student_id)
        .options(joinedload(ClassAttendee.student))
        .where(ClassAttendee.organization_id == organization_id, ClassAttendee.class_id == class_id)
        .order_by(Student.name, ClassAttendee.created_at, ClassAttendee.id)
    )
    return list(session.execute(stmt).scalars().all())


def update_class(
    session: Session,
    *,
    organization_id: UUID,
    class_id: UUID,
    changes: dict[str, Any],
) -> ClassEvent:
    """Edit a class and its sole attendee.

    ``changes`` carries only the submitted fields among ``title``, ``date``,
    ``time``, ``notes``, ``student_id`` and ``attendance_type``. Credits are
    settled before anything else is written; when the new student cannot pay,
    ``InsufficientCredits`` propagates and the caller rolls the edit back.
    """

    class_event = _get_class(session, organization_id, class_id, lock=True)
    current = list_attendees(session, organization_id=organization_id, class_id=class_id)
    original_row = current[0] if current else None
    original = (
        AttendeeAssignment(original_row.student_id, original_row.attendance_type) if original_row else None
    )

    touches_attendee = "student_id" in changes or "attendance_type" in changes
    new = original
    if touches_attendee and len(current) > 1:
        raise InvalidRequest(
            "Only classes with a single attendee can change student here; manage the attendee list instead.",
            status_code=409,
        )
    if touches_attendee:
        new_student_id = changes.get("student_id", original.student_id if original else None)
        new_type = changes.get("attendance_type") or (original.attendance_type if original else AttendanceType.ONE_OFF)
        if new_student_id is None:
            if new_type == AttendanceType.MAKE_UP and "attendance_type" in changes:
                raise InvalidRequest("Make-up classes need a student.")
            new = None
        else:
            _get_student(session, organization_id, new_student_id)
            new = AttendeeAssignment(new_student_id, AttendanceType(new_type))

        credit_service.reconcile_attendee_change(
            session, organization_id=organization_id, original=original, new=new
        )

    if "date" in changes or "time" in changes:
        tz_name = _timezone(session, organization_id)
        local_start = utc_to_local(class_event.start_time, tz_name)
        day = changes.get("date") or local_start.date()
        hour = _hour(changes["time"]) if changes.get("time") else local_start.hour
        class_event.start_time = local_to_utc(day, hour, tz_name)

    if "title" in changes:
        title = (changes["title"] or "").strip()
        if not title:
            if new is None:
                raise InvalidRequest("A title is required when the class has no student.")
            title = f"Aula com {_get_student(session, organization_id, new.student_id).name}"
        class_event.title = title
    if "notes" in changes:
        class_event.notes = changes["notes"] or None
    class_event.duration_minutes = CLASS_DURATION_MINUTES

    if touches_attendee and new != original:
        session.execute(
            delete(ClassAttendee).where(
                ClassAttendee.organization_id == organization_id, ClassAttendee.class_id == class_id
            )
        )
        session.expire(class_event, ["attendees"])
        if new is not None:
            session.add(
                ClassAttendee(
                    organization_id=organization_id,
                    class_id=class_id,
                    student_id=new.student_id,
                    status=AttendanceStatus.SCHEDULED,
                    attendance_type=new.attendance_type,
                )
            )
        class_event.student_id = new.student_id if new is not None else None

    session.flush()
    return class_event


def delete_class(session: Session, *, organization_id: UUID, class_id: UUID) -> ClassDeletionReport:
    """Delete a class and give each make-up attendee their credit back.

    Every return runs in its own savepoint: a failing return is logged and
    reported, while the deletion and the other returns still go through.
    """

    class_event = _get_class(session, organization_id, class_id, lock=True)
    attendees = list_attendees(session, organization_id=organization_id, class_id=class_id)
    make_up_students = [row.student_id for row in attendees if row.attendance_type == AttendanceType.MAKE_UP]

    report = ClassDeletionReport(class_id=class_id, attendees_removed=len(attendees))
    session.execute(
        delete(ClassAttendee).where(ClassAttendee.organization_id == organization_id, ClassAttendee.class_id == class_id)
    )
    session.expire(class_event, ["attendees"])
    session.delete(class_event)
    session.flush()

    report.credits_returned, report.failures = return_make_up_credits(
        session,
        organization_id=organization_id,
        refunds=[(class_id, student_id) for student_id in make_up_students],
        reason="Make-up class deleted",
    )
    return report


def return_make_up_credits(
    session: Session,
    *,
    organization_id: UUID,
    refunds: Sequence[tuple[UUID, UUID]],
    reason: str,
) -> tuple[list[UUID], list[dict[str, str]]]:
    """Return one credit per ``(class_id, student_id)`` of deleted make-up seats.

    Each return runs in its own savepoint after the deletion was flushed.
    Returns the refunded student ids and the failures.
    """

    returned: list[UUID] = []
    failures: list[dict[str, str]] = []
    for class_id, student_id in refunds:
        try:
            with session.begin_nested():
                credit_service.return_credit(
                    session,
                    organization_id=organization_id,
                    student_id=student_id,
                    reason=reason,
                )
        except (StudioRuleViolation, SQLAlchemyError) as exc:
            logger.warning(
                "credit return failed after class deletion",
                extra={"organization_id": str(organization_id), "class_id": str(class_id), "student_id": str(student_id)},
                exc_info=True,
            )
            failures.append({"student_id": str(student_id), "error": str(exc)})
        else:
            returned.append(student_id)
    return returned, failures


def _find_displaceable(attendees: Sequence[ClassAttendee]) -> ClassAttendee | None:
    for attendee in attendees:
        if attendee.student.enrollment_type in DISPLACEABLE_ENROLLMENTS:
            return attendee
    return None


def add_attendee(
    session: Session,
    *,
    organization_id: UUID,
    class_id: UUID,
    student_id: UUID,
    attendance_type: AttendanceType = AttendanceType.ONE_OFF,
    confirm_displacement: bool = False,
) -> AttendeeAddition:
    """Add a student to a class, displacing a partner-network student when full.

    At capacity a ``Particular`` student may take the seat of the first
    ``Wellhub``/``TotalPass`` attendee in list order. The first call raises
    ``DisplacementConfirmationRequired`` naming that attendee; repeating it
    with ``confirm_displacement`` performs the swap.
    """

    class_event = _get_class(session, organization_id, class_id, lock=True)
    student = _get_student(session, organization_id, student_id)
    attendees = list_attendees(session, organization_id=organization_id, class_id=class_id)

    if any(row.student_id == student_id for row in attendees):
        raise InvalidRequest(f"{student.name} is already in this class.", status_code=409)

    capacity = organization_service.get_app_setting(session, organization_id=organization_id, key="class_capacity")
    displaced: ClassAttendee | None = None
    if len(attendees) >= capacity:
        if student.enrollment_type == EnrollmentType.PARTICULAR:
            displaced = _find_displaceable(attendees)
        if displaced is None:
            raise ClassFullAndNoDisplaceable(f"Class is full ({capacity} students) and no seat can be freed.")
        if not confirm_displacement:
            raise DisplacementConfirmationRequired(
                f"Class is full. {displaced.student.name} ({displaced.student.enrollment_type.value}) "
                f"would be removed to make room for {student.name}.",
                attendee_id=displaced.id,
                student_id=displaced.student_id,
            )

    if attendance_type == AttendanceType.MAKE_UP:
        credit_service.consume_credit(
            session,
            organization_id=organization_id,
            student_id=student_id,
            reason=f"Make-up class on {class_event.start_time:%Y-%m-%d %H:%M} UTC",
        )

    if displaced is not None:
        remove_attendee(session, organization_id=organization_id, class_id=class_id, attendee_id=displaced.id)
        logger.info(
            "attendee displaced",
            extra={
                "organization_id": str(organization_id),
                "class_id": str(class_id),
                "student_id": str(displaced.student_id),
                "replaced_by": str(student_id),
            },
        )

    attendee = ClassAttendee(
        organization_id=organization_id,
        class_id=class_id,
        student_id=student_id,
        status=AttendanceStatus.SCHEDULED,
        attendance_type=attendance_type,
    )
    session.add(attendee)
    _sync_primary_student(session, class_event)
    session.flush()
    return AttendeeAddition(attendee=attendee, displaced_student_id=displaced.student_id if displaced else None)


def remove_attendee(
    session: Session,
    *,
    organization_id: UUID,
    class_id: UUID,
    attendee_id: UUID,
) -> AttendeeRemoval:
    """Remove an attendee; a still-scheduled make-up attendee gets the credit back."""

    class_event = _get_class(session, organization_id, class_id, lock=True)
    stmt = select(ClassAttendee).where(
        ClassAttendee.id == attendee_id,
        ClassAttendee.class_id == class_id,
        ClassAttendee.organization_id == organization_id,
    )
    attendee = session.execute(stmt).scalar_one_or_none()
    if attendee is None:
        raise NotFound(f"Attendee {attendee_id} not found")

    refund = attendee.attendance_type == AttendanceType.MAKE_UP and attendee.status == AttendanceStatus.SCHEDULED
    student_id = attendee.student_id
    session.delete(attendee)
    _sync_primary_student(session, class_event)

    if refund:
        credit_service.return_credit(
            session, organization_id=organization_id, student_id=student_id, reason="Removed from make-up class"
        )
    return AttendeeRemoval(attendee_id=attendee_id, student_id=student_id, credit_returned=refund)


def update_attendance_status(
    session: Session,
    *,
    organization_id: UUID,
    attendee_id: UUID,
    status: AttendanceStatus,
) -> ClassAttendee:
    """Change an attendee's status, granting or revoking the absence credit."""

    stmt = (
        select(ClassAttendee)
        .options(joinedload(ClassAttendee.class_event))
        .where(ClassAttendee.id == attendee_id, ClassAttendee.organization_id == organization_id)
        .with_for_update(of=ClassAttendee)
    )
    attendee = session.execute(stmt).scalar_one_or_none()
    if attendee is None:
        raise NotFound(f"Attendee {attendee_id} not found")

    previous = attendee.status
    if previous == status:
        return attendee
    attendee.status = status
    session.flush()

    if attendee.attendance_type not in ABSENCE_GRANT_TYPES:
        return attendee
    if not organization_service.get_app_setting(session, organization_id=organization_id, key="absence_credit_enabled"):
        return attendee

    class_day = attendee.class_event.start_time.date()
    if status == AttendanceStatus.ABSENT:
        credit_service.add_reposition_credit(
            session,
            organization_id=organization_id,
            student_id=attendee.student_id,
            amount=1,
            reason=f"Absence on {class_day:%Y-%m-%d}",
            entry_type=CreditEntryType.ABSENCE,
        )
    elif previous == AttendanceStatus.ABSENT:
        credit_service.revoke_reposition_credit(
            session,
            organization_id=organization_id,
            student_id=attendee.student_id,
            reason=f"Absence on {class_day:%Y-%m-%d} reverted",
        )
    return attendee
