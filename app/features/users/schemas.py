"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.features.organizations.schemas import OrganizationPublic
from app.features.permissions.roles import UserRole
from app.features.permissions.schemas import PermissionGrant
from app.features.users.auth import check_password_length


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)


class UserCreate(UserBase):
    """Schema for a manager creating a user directly."""
    password: str = Field(..., min_length=6, max_length=72)
    role: UserRole = UserRole.USER
    organization_id: str | None = None
    permissions: List[PermissionGrant] = Field(default_factory=list)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserResponse(UserBase):
    """Schema for user responses. Never carries the password hash."""
    id: str
    role: UserRole
    organization_id: str | None = None
    organization: Optional[OrganizationPublic] = None
    permissions: List[PermissionGrant] = []
    is_active: bool
    created_by_id: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: List[UserResponse]
