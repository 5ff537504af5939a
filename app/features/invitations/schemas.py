"""
Pydantic schemas for invitation requests and responses.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.features.invitations.models import InvitationStatus
from app.features.permissions.roles import UserRole
from app.features.permissions.schemas import PermissionGrant
from app.features.users.auth import check_password_length


class InvitationCreate(BaseModel):
    email: EmailStr
    role: UserRole = UserRole.USER
    organization_id: Optional[str] = Field(None, description="Required unless the role is ADMIN")
    permissions: List[PermissionGrant] = Field(default_factory=list)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class AdminInvitationCreate(BaseModel):
    """SUPERADMIN shortcut for inviting an organization-less ADMIN."""
    email: EmailStr
    permissions: List[PermissionGrant] = Field(default_factory=list)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class InvitationAccept(BaseModel):
    password: str = Field(..., min_length=6, max_length=72)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


class InvitationResponse(BaseModel):
    """Invitation as listed to managers. The token is only ever exposed inside ``invitation_link``."""
    id: str
    email: str
    role: UserRole
    organization_id: Optional[str] = None
    permissions: List[PermissionGrant] = []
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    invited_by_id: str
    status: InvitationStatus
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InvitationCreated(BaseModel):
    message: str
    invitation: InvitationResponse
    invitation_link: str


class InvitationListResponse(BaseModel):
    invitations: List[InvitationResponse]
