"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from typing import List
from pydantic import BaseModel, ConfigDict, Field


# Feature toggle schemas
class SubFeatureToggle(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    is_enabled: bool = False

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrganizationFeatureToggle(BaseModel):
    """Enable/disable state of one catalog feature and its sub-features."""
    name: str = Field(..., min_length=1, max_length=100)
    is_enabled: bool = False
    sub_features: List[SubFeatureToggle] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrganizationToggles(BaseModel):
    """Snapshot of an organization's toggles, as read by the authorization engine."""
    id: str
    features: List[OrganizationFeatureToggle] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrganizationFeaturesUpdate(BaseModel):
    """Full replacement of an organization's toggles."""
    features: List[OrganizationFeatureToggle]


# Settings schemas
class OrganizationSettings(BaseModel):
    """Declarative settings. Neither field is enforced by access checks."""
    max_users: int = Field(default=100, ge=1)
    allowed_features: List[str] = Field(default_factory=list)


# Organization schemas
class OrganizationBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)


class OrganizationCreate(OrganizationBase):
    features: List[OrganizationFeatureToggle] = Field(default_factory=list)


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=2000)
    is_active: bool | None = None


class OrganizationPublic(BaseModel):
    id: str
    name: str
    slug: str

    model_config = {"from_attributes": True}


class OrganizationResponse(OrganizationBase):
    id: str
    slug: str
    is_active: bool
    settings: OrganizationSettings
    features: List[OrganizationFeatureToggle] = []
    created_by_id: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
