"""Request dependencies: authenticated user and tenant scope."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.exceptions import (
    DisplacementConfirmationRequired,
    InsufficientCredits,
    NotAuthenticated,
    OrganizationAccessDenied,
    StudioRuleViolation,
)
from ..core.security import decode_access_token
from ..core.tenancy import set_organization_context
from ..services import organization_service

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class TenantContext:
    user_id: str
    organization_id: UUID
    role: str


def as_http_error(exc: StudioRuleViolation) -> HTTPException:
    """Translate a service-level rule violation into an HTTP error."""

    if isinstance(exc, DisplacementConfirmationRequired):
        detail = {"message": exc.detail, "attendee_id": str(exc.attendee_id), "student_id": str(exc.student_id)}
        return HTTPException(status_code=exc.status_code, detail=detail)
    if isinstance(exc, InsufficientCredits) and exc.completed:
        detail = {"message": exc.detail, "created_class_ids": [str(item.id) for item in exc.completed]}
        return HTTPException(status_code=exc.status_code, detail=detail)
    if isinstance(exc, NotAuthenticated):
        return HTTPException(status_code=exc.status_code, detail=exc.detail, headers={"WWW-Authenticate": "Bearer"})
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """Subject of the bearer token; 401 when missing or invalid."""

    try:
        if credentials is None:
            raise NotAuthenticated("Not authenticated.")
        return decode_access_token(credentials.credentials)
    except NotAuthenticated as exc:
        raise as_http_error(exc) from exc


def get_tenant(
    x_organization_id: Optional[UUID] = Header(None, description="Organization to act on; defaults to the first membership."),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> TenantContext:
    """Resolve and activate the organization the request is scoped to."""

    try:
        membership = organization_service.resolve_membership(
            db, user_id=user_id, organization_id=x_organization_id
        )
    except OrganizationAccessDenied as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=exc.detail) from exc

    set_organization_context(db, membership.organization_id)
    return TenantContext(user_id=user_id, organization_id=membership.organization_id, role=membership.role)
