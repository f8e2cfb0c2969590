"""Class scheduling and attendance endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import InsufficientCredits, StudioRuleViolation
from ...schemas import (
    AttendanceStatusUpdate,
    AttendeeAdded,
    AttendeeCreate,
    AttendeeRead,
    AttendeeRemoved,
    ClassBookingCreate,
    ClassDeletionRead,
    ClassRead,
    ClassUpdate,
)
from ...services import class_service
from ..deps import TenantContext, as_http_error, get_tenant

router = APIRouter(prefix="/classes", tags=["classes"])
attendees_router = APIRouter(prefix="/attendees", tags=["classes"])


@router.post(
    "",
    response_model=List[ClassRead],
    status_code=status.HTTP_201_CREATED,
    summary="Book classes",
    responses={
        201: {
            "description": "Classes created",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "id": "cccccccc-cccc-cccc-cccc-cccccccccccc",
                            "title": "Aula (1 alunos)",
                            "start_time": "2025-03-10T11:00:00",
                            "duration_minutes": 60,
                            "notes": None,
                            "student_id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
                            "recurring_class_template_id": None,
                            "attendee_count": 1,
                            "attendees": [
                                {
                                    "id": "dddddddd-dddd-dddd-dddd-dddddddddddd",
                                    "student_id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
                                    "student_name": "Ana Souza",
                                    "status": "Agendado",
                                    "attendance_type": "Reposicao",
                                }
                            ],
                        }
                    ]
                }
            },
        },
        409: {
            "description": "Credits ran out; weeks already booked are kept",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "message": "Not enough reposition credits: booked 2 of 4 classes.",
                            "created_class_ids": [
                                "cccccccc-cccc-cccc-cccc-cccccccccccc",
                                "eeeeeeee-eeee-eeee-eeee-eeeeeeeeeeee",
                            ],
                        }
                    }
                }
            },
        },
        422: {"description": "Invalid booking"},
    },
)
def schedule_classes(
    payload: ClassBookingCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[ClassRead]:
    """Book one class, or four weekly classes with ``repeat_weekly``.

    Example request body::

        {
            "student_ids": ["aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"],
            "date": "2025-03-10",
            "time": "08:00",
            "attendance_type": "Reposicao",
            "repeat_weekly": true
        }
    """

    try:
        classes = class_service.schedule_classes(
            db,
            organization_id=tenant.organization_id,
            student_ids=payload.student_ids,
            day=payload.date,
            time=payload.time,
            attendance_type=payload.attendance_type,
            title=payload.title,
            notes=payload.notes,
            repeat_weekly=payload.repeat_weekly,
            created_by=tenant.user_id,
        )
        db.commit()
        return [ClassRead.model_validate(item) for item in classes]
    except InsufficientCredits as exc:
        if exc.completed:
            db.commit()
        else:
            db.rollback()
        raise as_http_error(exc) from exc
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.get("", response_model=List[ClassRead], summary="List classes in a time range")
def list_classes(
    start: datetime = Query(..., description="Range start (inclusive), UTC when no offset is given"),
    end: datetime = Query(..., description="Range end (exclusive)"),
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[ClassRead]:
    classes = class_service.list_classes(db, organization_id=tenant.organization_id, start=start, end=end)
    return [ClassRead.model_validate(item) for item in classes]


@router.get("/{class_id}", response_model=ClassRead, summary="Fetch a class")
def get_class(
    class_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> ClassRead:
    try:
        class_event = class_service.get_class(db, organization_id=tenant.organization_id, class_id=class_id)
    except StudioRuleViolation as exc:
        raise as_http_error(exc) from exc
    return ClassRead.model_validate(class_event)


@router.get("/{class_id}/attendees", response_model=List[AttendeeRead], summary="Attendees by student name")
def list_attendees(
    class_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[AttendeeRead]:
    try:
        class_service.get_class(db, organization_id=tenant.organization_id, class_id=class_id)
    except StudioRuleViolation as exc:
        raise as_http_error(exc) from exc
    attendees = class_service.list_attendees(db, organization_id=tenant.organization_id, class_id=class_id)
    return [AttendeeRead.model_validate(item) for item in attendees]


@router.patch(
    "/{class_id}",
    response_model=ClassRead,
    summary="Edit a class",
    responses={409: {"description": "New make-up student has no credit; nothing was changed"}},
)
def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> ClassRead:
    """Edit title, date, time, notes or the sole attendee, settling credits first."""

    try:
        class_event = class_service.update_class(
            db,
            organization_id=tenant.organization_id,
            class_id=class_id,
            changes=payload.model_dump(exclude_unset=True),
        )
        db.commit()
        db.refresh(class_event)
        return ClassRead.model_validate(class_event)
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.delete(
    "/{class_id}",
    response_model=ClassDeletionRead,
    summary="Delete a class",
    responses={
        200: {
            "description": "Class deleted; failed credit returns are listed",
            "content": {
                "application/json": {
                    "example": {
                        "class_id": "cccccccc-cccc-cccc-cccc-cccccccccccc",
                        "attendees_removed": 2,
                        "credits_returned": ["aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"],
                        "failures": [],
                    }
                }
            },
        }
    },
)
def delete_class(
    class_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> ClassDeletionRead:
    try:
        report = class_service.delete_class(db, organization_id=tenant.organization_id, class_id=class_id)
        db.commit()
        return ClassDeletionRead.model_validate(report)
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.post(
    "/{class_id}/attendees",
    response_model=AttendeeAdded,
    status_code=status.HTTP_201_CREATED,
    summary="Add an attendee",
    responses={
        409: {
            "description": "Class full; either no seat can be freed, or a displacement needs confirmation",
            "content": {
                "application/json": {
                    "example": {
                        "detail": {
                            "message": "Class is full. Bruno Lima (Wellhub) would be removed to make room for Ana Souza.",
                            "attendee_id": "dddddddd-dddd-dddd-dddd-dddddddddddd",
                            "student_id": "bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb",
                        }
                    }
                }
            },
        }
    },
)
def add_attendee(
    class_id: UUID,
    payload: AttendeeCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> AttendeeAdded:
    """Add a student; repeat with ``confirm_displacement`` to accept a proposed swap."""

    try:
        result = class_service.add_attendee(
            db,
            organization_id=tenant.organization_id,
            class_id=class_id,
            student_id=payload.student_id,
            attendance_type=payload.attendance_type,
            confirm_displacement=payload.confirm_displacement,
        )
        db.commit()
        db.refresh(result.attendee)
        return AttendeeAdded(
            attendee=AttendeeRead.model_validate(result.attendee),
            displaced_student_id=result.displaced_student_id,
        )
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.delete("/{class_id}/attendees/{attendee_id}", response_model=AttendeeRemoved, summary="Remove an attendee")
def remove_attendee(
    class_id: UUID,
    attendee_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> AttendeeRemoved:
    try:
        removal = class_service.remove_attendee(
            db, organization_id=tenant.organization_id, class_id=class_id, attendee_id=attendee_id
        )
        db.commit()
        return AttendeeRemoved.model_validate(removal, from_attributes=True)
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@attendees_router.patch("/{attendee_id}/status", response_model=AttendeeRead, summary="Mark attendance")
def update_attendance_status(
    attendee_id: UUID,
    payload: AttendanceStatusUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> AttendeeRead:
    """Set Agendado, Presente or Faltou; absences may grant a reposition credit."""

    try:
        attendee = class_service.update_attendance_status(
            db, organization_id=tenant.organization_id, attendee_id=attendee_id, status=payload.status
        )
        db.commit()
        db.refresh(attendee)
        return AttendeeRead.model_validate(attendee)
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
