"""Tenant models."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..utils.datetime import utcnow


class Organization(Base):
    """A studio account; every tenant-scoped row points at one."""

    __tablename__ = "organizations"
    __table_args__ = (UniqueConstraint("slug", name="organizations_slug_unique"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(120), nullable=False)
    slug = Column(String(120), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    members = relationship("OrganizationMember", back_populates="organization", cascade="all, delete-orphan")
    settings = relationship("AppSetting", back_populates="organization", cascade="all, delete-orphan")


class OrganizationMember(Base):
    """Links an authenticated user to an organization."""

    __tablename__ = "organization_members"
    __table_args__ = (
        UniqueConstraint("organization_id", "user_id", name="organization_members_unique"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(64), nullable=False, index=True)
    role = Column(String(16), nullable=False, default="owner")
    created_at = Column(DateTime, default=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="members")


class AppSetting(Base):
    """Per-organization key/value configuration (JSON encoded for lists)."""

    __tablename__ = "app_settings"
    __table_args__ = (
        UniqueConstraint("organization_id", "key", name="app_settings_key_unique"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(UUID(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    key = Column(String(64), nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    organization = relationship("Organization", back_populates="settings")
