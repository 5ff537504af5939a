"""
Pydantic schemas for the feature catalog.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.features.permissions.roles import FeatureLevel, FeatureStatus, PermissionAction, UserRole


class SubFeatureBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    actions: List[PermissionAction] = Field(default_factory=list)


class SubFeatureResponse(SubFeatureBase):
    model_config = ConfigDict(from_attributes=True)


class FeatureBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    required_role: UserRole = UserRole.USER
    is_system_feature: bool = False
    feature_level: FeatureLevel
    status: FeatureStatus = FeatureStatus.DONE


class FeatureCreate(FeatureBase):
    sub_features: List[SubFeatureBase] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_lowercase_identifier(cls, v: str) -> str:
        """Feature names are lowercase identifiers (e.g. 'user_management')."""
        if not v.replace("_", "").isalnum() or v.lower() != v:
            raise ValueError("Feature name must be lowercase letters, digits and underscores")
        return v

    @field_validator("sub_features")
    @classmethod
    def unique_sub_feature_names(cls, v: List[SubFeatureBase]) -> List[SubFeatureBase]:
        names = [sub.name for sub in v]
        if len(names) != len(set(names)):
            raise ValueError("Sub-feature names must be unique within a feature")
        return v


class FeatureUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    required_role: Optional[UserRole] = None
    is_system_feature: Optional[bool] = None
    feature_level: Optional[FeatureLevel] = None
    status: Optional[FeatureStatus] = None
    sub_features: Optional[List[SubFeatureBase]] = None


class CatalogFeature(BaseModel):
    """The slice of a catalog entry the authorization engine needs."""
    name: str
    feature_level: FeatureLevel
    required_role: UserRole = UserRole.USER

    model_config = ConfigDict(from_attributes=True, frozen=True)


class FeatureResponse(FeatureBase):
    id: str
    sub_features: List[SubFeatureResponse] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
