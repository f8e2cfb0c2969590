"""Financial transaction endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import StudioRuleViolation
from ...models import PaymentStatus, TransactionType
from ...schemas import (
    MonthSummaryRead,
    PaymentAlertRead,
    TransactionCreate,
    TransactionPay,
    TransactionRead,
    TransactionUpdate,
)
from ...services import financial_service
from ...utils.datetime import utcnow
from ..deps import TenantContext, as_http_error, get_tenant

router = APIRouter(prefix="/transactions", tags=["financial"])


@router.get("", response_model=List[TransactionRead], summary="List transactions")
def list_transactions(
    *,
    transaction_type: Optional[TransactionType] = Query(None, alias="type", description="revenue or expense"),
    status_filter: Optional[PaymentStatus] = Query(None, alias="status", description="Filter by payment status"),
    student_id: Optional[UUID] = Query(None, description="Filter by student UUID"),
    limit: int = Query(100, ge=1, le=500, description="Maximum items to return"),
    offset: int = Query(0, ge=0, description="Items to skip for pagination"),
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[TransactionRead]:
    transactions = financial_service.list_transactions(
        db,
        organization_id=tenant.organization_id,
        transaction_type=transaction_type,
        status=status_filter,
        student_id=student_id,
        limit=limit,
        offset=offset,
    )
    return list(transactions)


@router.post(
    "",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Record a transaction",
    responses={422: {"description": "Invalid transaction"}},
)
def create_transaction(
    payload: TransactionCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TransactionRead:
    """Record revenue or an expense.

    Example request body::

        {
            "type": "revenue",
            "description": "Mensalidade Março",
            "category": "Mensalidade",
            "amount": 260.0,
            "status": "Pendente",
            "due_date": "2025-03-10",
            "student_id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"
        }
    """

    try:
        transaction = financial_service.create_transaction(
            db, organization_id=tenant.organization_id, data=payload.model_dump(), created_by=tenant.user_id
        )
        db.commit()
        db.refresh(transaction)
        return transaction
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.get("/overdue", response_model=List[TransactionRead], summary="Overdue revenue")
def list_overdue(
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[TransactionRead]:
    return list(financial_service.list_overdue(db, organization_id=tenant.organization_id))


@router.get("/upcoming", response_model=List[PaymentAlertRead], summary="Payments due soon")
def upcoming_payments(
    days: int = Query(financial_service.UPCOMING_DAYS, ge=1, le=90, description="Look-ahead window in days"),
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[PaymentAlertRead]:
    alerts = financial_service.upcoming_payments(db, organization_id=tenant.organization_id, days=days)
    return [PaymentAlertRead.model_validate(alert) for alert in alerts]


@router.get("/summary", response_model=List[MonthSummaryRead], summary="Monthly revenue and expenses")
def monthly_summary(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Calendar year; defaults to the current one"),
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[MonthSummaryRead]:
    months = financial_service.monthly_summary(
        db, organization_id=tenant.organization_id, year=year or utcnow().year
    )
    return [MonthSummaryRead.model_validate(month) for month in months]


@router.get("/{transaction_id}", response_model=TransactionRead, summary="Fetch a transaction")
def get_transaction(
    transaction_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TransactionRead:
    try:
        return financial_service.get_transaction(
            db, organization_id=tenant.organization_id, transaction_id=transaction_id
        )
    except StudioRuleViolation as exc:
        raise as_http_error(exc) from exc


@router.patch("/{transaction_id}", response_model=TransactionRead, summary="Update a transaction")
def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TransactionRead:
    try:
        transaction = financial_service.update_transaction(
            db,
            organization_id=tenant.organization_id,
            transaction_id=transaction_id,
            changes=payload.model_dump(exclude_unset=True),
        )
        db.commit()
        db.refresh(transaction)
        return transaction
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a transaction")
def delete_transaction(
    transaction_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> Response:
    try:
        financial_service.delete_transaction(db, organization_id=tenant.organization_id, transaction_id=transaction_id)
        db.commit()
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{transaction_id}/pay", response_model=TransactionRead, summary="Mark a transaction paid")
def pay_transaction(
    transaction_id: UUID,
    payload: Optional[TransactionPay] = None,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TransactionRead:
    """Settle a transaction, optionally extending the student's plan validity."""

    try:
        transaction = financial_service.mark_transaction_paid(
            db,
            organization_id=tenant.organization_id,
            transaction_id=transaction_id,
            validity_days=payload.validity_days if payload else None,
        )
        db.commit()
        db.refresh(transaction)
        return transaction
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
