"""Student and reposition credit endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import StudioRuleViolation
from ...models import CreditEntryType, EnrollmentType, PlanType, StudentStatus
from ...schemas import (
    CreditAdjustment,
    CreditBalanceRead,
    CreditEntryRead,
    StudentCreate,
    StudentRead,
    StudentUpdate,
)
from ...services import credit_service, student_service
from ...utils.datetime import utcnow
from ..deps import TenantContext, as_http_error, get_tenant

router = APIRouter(prefix="/students", tags=["students"])

_STUDENT_EXAMPLE = {
    "id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
    "name": "Ana Souza",
    "email": "ana@example.com",
    "phone": "+55 11 99999-0000",
    "status": "Ativo",
    "enrollment_type": "Particular",
    "plan_type": "Mensal",
    "plan_frequency": "3x",
    "payment_method": "Pix",
    "monthly_fee": 260.0,
    "date_of_birth": "1990-05-14",
    "validity_date": "2025-04-10",
    "notes": None,
    "reposition_credits": 1,
    "last_credit_renewal": "2025-03-01",
    "payment_status": "Em Dia",
    "created_at": "2025-01-05T14:00:00",
}


@router.get(
    "",
    response_model=List[StudentRead],
    summary="List students",
    responses={200: {"description": "Students by name", "content": {"application/json": {"example": [_STUDENT_EXAMPLE]}}}},
)
def list_students(
    *,
    status_filter: Optional[StudentStatus] = Query(None, alias="status", description="Filter by student status"),
    enrollment_type: Optional[EnrollmentType] = Query(None, description="Filter by enrollment type"),
    plan_type: Optional[PlanType] = Query(None, description="Filter by plan type"),
    payment_status: Optional[str] = Query(None, pattern="^(Em Dia|Atrasado)$", description="Em Dia or Atrasado"),
    search: Optional[str] = Query(None, description="Match name, email or phone"),
    limit: int = Query(200, ge=1, le=500, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[StudentRead]:
    students = student_service.list_students(
        db,
        organization_id=tenant.organization_id,
        status=status_filter,
        enrollment_type=enrollment_type,
        plan_type=plan_type,
        search=search,
        payment_status=payment_status,
        limit=limit,
        offset=offset,
    )
    statuses = student_service.payment_status_map(db, organization_id=tenant.organization_id)
    return [
        StudentRead.model_validate(student).model_copy(
            update={"payment_status": statuses.get(student.id, student_service.PAYMENT_UP_TO_DATE)}
        )
        for student in students
    ]


@router.post("", response_model=StudentRead, status_code=status.HTTP_201_CREATED, summary="Register a student")
def create_student(
    payload: StudentCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> StudentRead:
    try:
        student = student_service.create_student(
            db, organization_id=tenant.organization_id, data=payload.model_dump(exclude_unset=True)
        )
        db.commit()
        db.refresh(student)
        return student
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.get("/birthdays", response_model=List[StudentRead], summary="Students with a birthday in a month")
def birthday_students(
    month: Optional[int] = Query(None, ge=1, le=12, description="Month number; defaults to the current month"),
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[StudentRead]:
    students = student_service.get_birthday_students_for_month(
        db, organization_id=tenant.organization_id, month=month or utcnow().month
    )
    return list(students)


@router.get("/{student_id}", response_model=StudentRead, summary="Fetch a student")
def get_student(
    student_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> StudentRead:
    try:
        student = student_service.get_student(db, organization_id=tenant.organization_id, student_id=student_id)
    except StudioRuleViolation as exc:
        raise as_http_error(exc) from exc
    statuses = student_service.payment_status_map(db, organization_id=tenant.organization_id)
    return StudentRead.model_validate(student).model_copy(
        update={"payment_status": statuses.get(student.id, student_service.PAYMENT_UP_TO_DATE)}
    )


@router.patch("/{student_id}", response_model=StudentRead, summary="Update a student")
def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> StudentRead:
    try:
        student = student_service.update_student(
            db,
            organization_id=tenant.organization_id,
            student_id=student_id,
            changes=payload.model_dump(exclude_unset=True),
        )
        db.commit()
        db.refresh(student)
        return student
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.delete("/{student_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a student")
def delete_student(
    student_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> Response:
    """Remove the student together with their attendance and credit history."""

    try:
        student_service.delete_student(db, organization_id=tenant.organization_id, student_id=student_id)
        db.commit()
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{student_id}/credits",
    response_model=CreditBalanceRead,
    summary="Reposition credit balance",
    responses={
        200: {
            "description": "Balance after the monthly renewal check",
            "content": {
                "application/json": {"example": {"credits": 2, "last_credit_renewal": "2025-03-01", "renewed": False}}
            },
        },
        404: {"description": "Student not found"},
    },
)
def get_credit_balance(
    student_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> CreditBalanceRead:
    """Read the balance; the first read of a new month resets it to zero."""

    try:
        balance = credit_service.get_balance(db, organization_id=tenant.organization_id, student_id=student_id)
        db.commit()
        return CreditBalanceRead.model_validate(balance)
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.post(
    "/{student_id}/credits",
    response_model=CreditBalanceRead,
    summary="Adjust reposition credits",
    responses={
        409: {"description": "Adjustment would make the balance negative"},
        422: {"description": "Invalid amount or entry type"},
    },
)
def adjust_credits(
    student_id: UUID,
    payload: CreditAdjustment,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> CreditBalanceRead:
    """Manual correction, or a grant such as a payment bonus.

    Example request body::

        {"amount": 1, "reason": "Missed class on holiday", "entry_type": "manual_adjustment"}
    """

    try:
        if payload.entry_type == CreditEntryType.MANUAL_ADJUSTMENT:
            credit_service.adjust_reposition_credit_manual(
                db,
                organization_id=tenant.organization_id,
                student_id=student_id,
                amount=payload.amount,
                reason=payload.reason,
                created_by=tenant.user_id,
            )
        else:
            credit_service.add_reposition_credit(
                db,
                organization_id=tenant.organization_id,
                student_id=student_id,
                amount=payload.amount,
                reason=payload.reason,
                entry_type=payload.entry_type,
                created_by=tenant.user_id,
            )
        balance = credit_service.get_balance(db, organization_id=tenant.organization_id, student_id=student_id)
        db.commit()
        return CreditBalanceRead.model_validate(balance)
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.get("/{student_id}/credits/entries", response_model=List[CreditEntryRead], summary="Credit history")
def list_credit_entries(
    student_id: UUID,
    limit: int = Query(50, ge=1, le=200, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[CreditEntryRead]:
    entries = credit_service.list_credit_entries(
        db, organization_id=tenant.organization_id, student_id=student_id, limit=limit, offset=offset
    )
    return list(entries)
