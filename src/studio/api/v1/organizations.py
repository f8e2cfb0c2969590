"""Organization and settings endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.exceptions import StudioRuleViolation
from ...schemas import OrganizationCreate, OrganizationRead, SettingRead, SettingUpdate
from ...services import organization_service
from ..deps import TenantContext, as_http_error, get_current_user_id, get_tenant

router = APIRouter(prefix="/organizations", tags=["organizations"])
settings_router = APIRouter(prefix="/settings", tags=["settings"])


@router.post(
    "",
    response_model=OrganizationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create an organization",
    responses={
        201: {
            "description": "Organization created; the caller is its owner",
            "content": {
                "application/json": {
                    "example": {
                        "id": "11111111-1111-1111-1111-111111111111",
                        "name": "Studio Pilates Centro",
                        "slug": "studio-pilates-centro",
                        "created_at": "2025-03-01T12:00:00",
                    }
                }
            },
        },
        401: {"description": "Missing or invalid token"},
    },
)
def create_organization(
    payload: OrganizationCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> OrganizationRead:
    """Create an organization and seed its default settings."""

    try:
        organization = organization_service.create_organization(db, name=payload.name, owner_user_id=user_id)
        db.commit()
        db.refresh(organization)
        return organization
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc


@router.get("", response_model=List[OrganizationRead], summary="List my organizations")
def list_organizations(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> List[OrganizationRead]:
    return list(organization_service.list_user_organizations(db, user_id=user_id))


@settings_router.get("", response_model=List[SettingRead], summary="Read organization settings")
def list_settings(
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> List[SettingRead]:
    """All settings, with defaults for keys never saved."""

    values = organization_service.get_app_settings(db, organization_id=tenant.organization_id)
    return [SettingRead(key=key, value=value) for key, value in sorted(values.items())]


@settings_router.put(
    "/{key}",
    response_model=SettingRead,
    summary="Update one setting",
    responses={
        404: {"description": "Unknown setting key"},
        422: {"description": "Value does not match the setting's type"},
    },
)
def update_setting(
    key: str,
    payload: SettingUpdate,
    tenant: TenantContext = Depends(get_tenant),
    db: Session = Depends(get_db),
) -> SettingRead:
    """Replace a setting value.

    Example request body for ``PUT /settings/class_capacity``::

        {"value": 12}
    """

    try:
        organization_service.update_app_setting(
            db, organization_id=tenant.organization_id, key=key, value=payload.value
        )
        db.commit()
    except StudioRuleViolation as exc:
        db.rollback()
        raise as_http_error(exc) from exc
    return SettingRead(key=key, value=payload.value)
