"""Recurring class template endpoints."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import StudioRuleViolation
from ...schemas import TemplateCreate, TemplateGeneration, TemplateRead, TemplateUpdate
from ...services import template_service
from ..deps import TenantContext, as_http_error, get_tenant

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=List[TemplateRead], summary="List recurring templates")
def list_templates(
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[TemplateRead]:
    return list(template_service.list_templates(db, organization_id=tenant.organization_id))


@router.post(
    "",
    response_model=TemplateRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a recurring template",
    responses={422: {"description": "Invalid pattern or date range"}},
)
def create_template(
    payload: TemplateCreate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TemplateRead:
    """Save the weekly pattern and generate its upcoming classes.

    Example request body::

        {
            "student_id": "aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa",
            "recurrence_pattern": [{"day": "monday", "time": "08:00"}, {"day": "thursday", "time": "18:00"}],
            "recurrence_start_date": "2025-03-03",
            "recurrence_end_date": "2025-06-30"
        }
    """

    try:
        template = template_service.create_template(
            db,
            organization_id=tenant.organization_id,
            recurrence_pattern=[item.model_dump() for item in payload.recurrence_pattern],
            recurrence_start_date=payload.recurrence_start_date,
            recurrence_end_date=payload.recurrence_end_date,
            student_id=payload.student_id,
            title=payload.title,
            notes=payload.notes,
        )
        db.commit()
        db.refresh(template)
        return template
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.get("/{template_id}", response_model=TemplateRead, summary="Fetch a template")
def get_template(
    template_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TemplateRead:
    try:
        return template_service.get_template(db, organization_id=tenant.organization_id, template_id=template_id)
    except StudioRuleViolation as exc:
        raise as_http_error(exc) from exc


@router.patch("/{template_id}", response_model=TemplateRead, summary="Update a template")
def update_template(
    template_id: UUID,
    payload: TemplateUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TemplateRead:
    """Apply changes and regenerate the template's future classes."""

    try:
        template = template_service.update_template(
            db,
            organization_id=tenant.organization_id,
            template_id=template_id,
            changes=payload.model_dump(exclude_unset=True),
        )
        db.commit()
        db.refresh(template)
        return template
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a template")
def delete_template(
    template_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> Response:
    """Delete the template; classes already generated stay on the calendar."""

    try:
        template_service.delete_template(db, organization_id=tenant.organization_id, template_id=template_id)
        db.commit()
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{template_id}/generate", response_model=TemplateGeneration, summary="Regenerate future classes")
def generate_classes(
    template_id: UUID,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> TemplateGeneration:
    try:
        created = template_service.generate_classes_from_template(
            db, organization_id=tenant.organization_id, template_id=template_id
        )
        db.commit()
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
    return TemplateGeneration(template_id=template_id, classes_created=created)
