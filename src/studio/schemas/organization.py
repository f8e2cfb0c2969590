"""Pydantic schemas for organizations and settings."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OrganizationCreate(BaseModel):
    """Request body for creating an organization."""

    name: str = Field(..., min_length=1, max_length=120)


class OrganizationRead(BaseModel):
    """Organization response payload."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    created_at: datetime


class SettingUpdate(BaseModel):
    """New value for a single setting; its type must match the default's."""

    value: Any


class SettingRead(BaseModel):
    key: str
    value: Any
