"""
Pydantic schemas for permission grants and access checks.

``PermissionGrant`` and ``Principal`` are the fixed-shape records the
authorization engine works on; ORM rows are converted with
``model_validate(row)`` at the boundary.
"""
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.roles import PermissionAction, UserRole


# ============================================================================
# Grants and principals
# ============================================================================

class PermissionGrant(BaseModel):
    """
    A principal's explicit (feature, sub-features, actions) tuple.

    Actions are not indexed per sub-feature: every listed action applies to
    every listed sub-feature of the grant.
    """
    feature: str = Field(..., min_length=1, max_length=100, description="Catalog feature name")
    sub_features: List[str] = Field(default_factory=list, description="Granted sub-feature names")
    actions: List[PermissionAction] = Field(default_factory=list, description="Granted actions")

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("sub_features")
    @classmethod
    def strip_blank_sub_features(cls, v: List[str]) -> List[str]:
        return [name for name in v if name]


class Principal(BaseModel):
    """Authenticated actor snapshot, immutable for the duration of a request."""
    id: str
    email: Optional[str] = None
    role: UserRole
    organization_id: Optional[str] = None
    permissions: List[PermissionGrant] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True, frozen=True)

    def find_grant(self, feature: str) -> Optional[PermissionGrant]:
        """First grant for ``feature``; later duplicates are ignored."""
        return next((grant for grant in self.permissions if grant.feature == feature), None)


def dump_grants(grants: List[PermissionGrant]) -> list[dict]:
    """Serialize grants for a JSON column, keeping their order."""
    return [grant.model_dump(mode="json") for grant in grants]


# ============================================================================
# Access check
# ============================================================================

class PermissionCheckRequest(BaseModel):
    feature: str = Field(..., min_length=1, max_length=100)
    action: PermissionAction = PermissionAction.READ
    sub_feature: Optional[str] = Field(None, max_length=100)


class PermissionCheckResponse(BaseModel):
    allowed: bool
    reason: str
    category: Optional[str] = None


class UserPermissionsResponse(BaseModel):
    user_id: str
    role: UserRole
    organization_id: Optional[str] = None
    permissions: List[PermissionGrant] = []


class PermissionsReplace(BaseModel):
    """Full replacement of a user's grants."""
    permissions: List[PermissionGrant] = Field(default_factory=list)
