"""Unit tests for organizations, memberships and settings"""

import pytest
from sqlalchemy import func, select

from studio.core.exceptions import InvalidRequest, NotFound, OrganizationAccessDenied
from studio.models import AppSetting
from studio.services import organization_service


def test_create_organization_seeds_defaults(db, organization):
    """A new organization gets an owner and every default setting"""
    settings = organization_service.get_app_settings(db, organization_id=organization.id)

    assert organization.slug == "studio-centro"
    assert settings["class_capacity"] == 10
    assert settings["timezone"] == "America/Sao_Paulo"
    assert settings["absence_credit_enabled"] is True
    assert "Mensalidade" in settings["revenue_categories"]
    stored = db.execute(
        select(func.count()).select_from(AppSetting).where(AppSetting.organization_id == organization.id)
    ).scalar_one()
    assert stored == len(organization_service.DEFAULT_SETTINGS)


def test_slug_is_unique(db, organization):
    """Same name gets a numbered slug"""
    duplicate = organization_service.create_organization(db, name="Studio Centro", owner_user_id="someone")

    assert duplicate.slug == "studio-centro-2"


def test_create_organization_requires_name(db):
    """Blank names are rejected"""
    with pytest.raises(InvalidRequest):
        organization_service.create_organization(db, name="  ", owner_user_id="owner-1")


def test_resolve_membership(db, organization, other_organization):
    """Users act on their own organizations only"""
    membership = organization_service.resolve_membership(db, user_id="owner-1")
    assert membership.organization_id == organization.id
    assert membership.role == "owner"

    with pytest.raises(OrganizationAccessDenied):
        organization_service.resolve_membership(db, user_id="owner-1", organization_id=other_organization.id)
    with pytest.raises(OrganizationAccessDenied):
        organization_service.resolve_membership(db, user_id="nobody")


def test_list_user_organizations(db, organization, other_organization):
    """Only memberships of the user are listed"""
    organizations = organization_service.list_user_organizations(db, user_id="owner-2")

    assert [org.id for org in organizations] == [other_organization.id]


def test_update_app_setting(db, organization):
    """Settings keep the type of their default"""
    organization_service.update_app_setting(db, organization_id=organization.id, key="class_capacity", value=12)
    assert organization_service.get_app_setting(db, organization_id=organization.id, key="class_capacity") == 12

    with pytest.raises(NotFound):
        organization_service.update_app_setting(db, organization_id=organization.id, key="colour", value="red")
    with pytest.raises(InvalidRequest):
        organization_service.update_app_setting(db, organization_id=organization.id, key="class_capacity", value="12")
    with pytest.raises(InvalidRequest):
        organization_service.update_app_setting(db, organization_id=organization.id, key="class_capacity", value=True)
    with pytest.raises(InvalidRequest):
        organization_service.update_app_setting(db, organization_id=organization.id, key="class_capacity", value=0)
    with pytest.raises(InvalidRequest):
        organization_service.update_app_setting(
            db, organization_id=organization.id, key="payment_methods", value=["Pix", 3]
        )


def test_unreadable_setting_falls_back_to_default(db, organization):
    """A corrupted stored value reads as the default"""
    row = db.execute(
        select(AppSetting).where(AppSetting.organization_id == organization.id, AppSetting.key == "class_capacity")
    ).scalar_one()
    row.value = "not json"
    db.commit()

    assert organization_service.get_app_setting(db, organization_id=organization.id, key="class_capacity") == 10
