"""Organizations, memberships and per-organization settings."""

from __future__ import annotations

import json
import re
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..core.exceptions import InvalidRequest, NotFound, OrganizationAccessDenied
from ..models import AppSetting, Organization, OrganizationMember

_settings = get_settings()

DEFAULT_PRICE_TABLE = {
    "Mensal": {
        "2x": {"Espécie": 230, "Pix": 230, "Crédito": 245, "Débito": 245},
        "3x": {"Espécie": 260, "Pix": 260, "Crédito": 275, "Débito": 275},
        "4x": {"Espécie": 285, "Pix": 285, "Crédito": 300, "Débito": 300},
        "5x": {"Espécie": 305, "Pix": 305, "Crédito": 320, "Débito": 320},
    },
    "Trimestral": {
        "2x": {"Espécie": 210, "Pix": 210, "Crédito": 225, "Débito": 225},
        "3x": {"Espécie": 240, "Pix": 240, "Crédito": 255, "Débito": 255},
        "4x": {"Espécie": 270, "Pix": 270, "Crédito": 285, "Débito": 285},
        "5x": {"Espécie": 285, "Pix": 285, "Crédito": 300, "Débito": 300},
    },
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "class_capacity": _settings.default_class_capacity,
    "timezone": _settings.default_timezone,
    "absence_credit_enabled": True,
    "template_horizon_weeks": 12,
    "revenue_categories": ["Mensalidade", "Aula Avulsa", "Venda de Produto", "Outras Receitas"],
    "expense_categories": ["Aluguel", "Salários", "Marketing", "Material", "Contas", "Outras Despesas"],
    "plan_types": ["Mensal", "Trimestral", "Avulso"],
    "plan_frequencies": ["2x", "3x", "4x", "5x"],
    "payment_methods": ["Cartão", "Espécie", "Link"],
    "enrollment_types": ["Particular", "Wellhub", "TotalPass"],
    "price_table": DEFAULT_PRICE_TABLE,
}

MEMBER_ROLES = ("owner", "admin", "staff")


def _slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug or "studio"


def _unique_slug(session: Session, name: str) -> str:
    base = _slugify(name)
    slug = base
    suffix = 1
    while session.execute(select(Organization.id).where(Organization.slug == slug)).first() is not None:
        suffix += 1
        slug = f"{base}-{suffix}"
    return slug


def create_organization(session: Session, *, name: str, owner_user_id: str) -> Organization:
    """Create an organization, make the caller its owner and seed default settings."""

    if not name or not name.strip():
        raise InvalidRequest("Organization name is required.")

    organization = Organization(name=name.strip(), slug=_unique_slug(session, name))
    session.add(organization)
    session.flush()

    session.add(OrganizationMember(organization_id=organization.id, user_id=owner_user_id, role="owner"))
    session.add_all(
        [
            AppSetting(organization_id=organization.id, key=key, value=json.dumps(value))
            for key, value in DEFAULT_SETTINGS.items()
        ]
    )
    session.flush()
    return organization


def list_user_organizations(session: Session, *, user_id: str) -> Sequence[Organization]:
    stmt = (
        select(Organization)
        .join(OrganizationMember, OrganizationMember.organization_id == Organization.id)
        .where(OrganizationMember.user_id == user_id)
        .order_by(OrganizationMember.created_at, Organization.name)
    )
    return session.execute(stmt).scalars().all()


def resolve_membership(session: Session, *, user_id: str, organization_id: UUID | None = None) -> OrganizationMember:
    """Pick the membership a request runs under.

    With an explicit organization the user must belong to it; otherwise the
    user's first membership is used.
    """

    stmt = select(OrganizationMember).where(OrganizationMember.user_id == user_id)
    if organization_id is not None:
        stmt = stmt.where(OrganizationMember.organization_id == organization_id)
    stmt = stmt.order_by(OrganizationMember.created_at, OrganizationMember.id).limit(1)

    membership = session.execute(stmt).scalar_one_or_none()
    if membership is None:
        if organization_id is not None:
            raise OrganizationAccessDenied("You are not a member of this organization.")
        raise OrganizationAccessDenied("You do not belong to any organization yet.")
    return membership


def get_app_settings(session: Session, *, organization_id: UUID) -> dict[str, Any]:
    """All settings for the organization, falling back to defaults for missing or unreadable keys."""

    values = dict(DEFAULT_SETTINGS)
    rows = session.execute(select(AppSetting).where(AppSetting.organization_id == organization_id)).scalars()
    for row in rows:
        try:
            parsed = json.loads(row.value)
        except ValueError:
            continue
        default = DEFAULT_SETTINGS.get(row.key)
        if default is None or _same_kind(parsed, default):
            values[row.key] = parsed
    return values


def get_app_setting(session: Session, *, organization_id: UUID, key: str) -> Any:
    return get_app_settings(session, organization_id=organization_id).get(key)


def _same_kind(value: Any, default: Any) -> bool:
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(default, int):
        return isinstance(value, int) and not isinstance(value, bool)
    if isinstance(default, list):
        return isinstance(value, list) and all(isinstance(item, str) for item in value)
    return isinstance(value, type(default))


def update_app_setting(session: Session, *, organization_id: UUID, key: str, value: Any) -> AppSetting:
    if key not in DEFAULT_SETTINGS:
        raise NotFound(f"Unknown setting {key!r}")
    if not _same_kind(value, DEFAULT_SETTINGS[key]):
        raise InvalidRequest(f"Invalid value for setting {key!r}.")
    if key in ("class_capacity", "template_horizon_weeks") and value < 1:
        raise InvalidRequest(f"Setting {key!r} must be at least 1.")

    stmt = select(AppSetting).where(AppSetting.organization_id == organization_id, AppSetting.key == key)
    setting = session.execute(stmt).scalar_one_or_none()
    if setting is None:
        setting = AppSetting(organization_id=organization_id, key=key)
        session.add(setting)
    setting.value = json.dumps(value)
    session.flush()
    return setting
