"""
Invitation API routes.

Managers send and resend invitations; anyone holding a token can redeem it
once, without authenticating.
"""
from typing import Annotated, Sequence
from fastapi import APIRouter, Depends, Request, status
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.limiter import limiter
from app.features.audit.service import create_audit_log
from app.features.invitations import service
from app.features.invitations.models import Invitation
from app.features.invitations.schemas import (
    AdminInvitationCreate,
    InvitationAccept,
    InvitationCreate,
    InvitationCreated,
    InvitationListResponse,
    InvitationResponse,
)
from app.features.permissions.dependencies import require_role
from app.features.permissions.roles import UserRole, INVITER_ROLES
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import UserResponse
from app.utils import utcnow


router = APIRouter()

require_inviter = require_role(*INVITER_ROLES)


def to_response(invitation: Invitation) -> InvitationResponse:
    """Report lapsed pending invitations as expired."""
    response = InvitationResponse.model_validate(invitation)
    return response.model_copy(update={"status": invitation.effective_status(utcnow())})


def to_list(invitations: Sequence[Invitation]) -> InvitationListResponse:
    return InvitationListResponse(invitations=[to_response(inv) for inv in invitations])


@router.post("/send", response_model=InvitationCreated, status_code=status.HTTP_201_CREATED)
async def send_invitation(
    payload: InvitationCreate,
    request: Request,
    current_user: Annotated[User, Depends(require_inviter)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Invite a user into an organization (or an ADMIN at platform level)."""
    invitation = await service.create_invitation(
        db,
        inviter=current_user,
        email=payload.email,
        role=payload.role,
        organization_id=payload.organization_id,
        permissions=payload.permissions,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )

    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="create",
        resource_type="invitation",
        resource_id=invitation.id,
        organization_id=invitation.organization_id,
        details={"email": invitation.email, "role": invitation.role.value},
        request=request,
    )

    return InvitationCreated(
        message="Invitation sent successfully",
        invitation=to_response(invitation),
        invitation_link=service.build_invitation_link(invitation.token),
    )


@router.post("/send-admin", response_model=InvitationCreated, status_code=status.HTTP_201_CREATED)
async def send_admin_invitation(
    payload: AdminInvitationCreate,
    request: Request,
    current_user: Annotated[User, Depends(require_role(UserRole.SUPERADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Invite a platform ADMIN (SUPERADMIN only)."""
    invitation = await service.create_invitation(
        db,
        inviter=current_user,
        email=payload.email,
        role=UserRole.ADMIN,
        organization_id=None,
        permissions=payload.permissions,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )

    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="create",
        resource_type="invitation",
        resource_id=invitation.id,
        details={"email": invitation.email, "role": invitation.role.value},
        request=request,
    )

    return InvitationCreated(
        message="Admin invitation sent successfully",
        invitation=to_response(invitation),
        invitation_link=service.build_invitation_link(invitation.token),
    )


@router.get("/organization/{organization_id}", response_model=InvitationListResponse)
async def list_organization_invitations(
    organization_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List invitations of an organization, newest first."""
    invitations = await service.list_organization_invitations(db, current_user, organization_id)
    return to_list(invitations)


@router.get("/admin", response_model=InvitationListResponse)
async def list_admin_invitations(
    current_user: Annotated[User, Depends(require_role(UserRole.SUPERADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List platform-level invitations (SUPERADMIN only)."""
    invitations = await service.list_admin_invitations(db, current_user)
    return to_list(invitations)


@router.post("/accept/{token}", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.RATE_LIMIT_SENSITIVE, key_func=get_remote_address)
async def accept_invitation(
    token: str,
    payload: InvitationAccept,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Redeem an invitation and create the account. No authentication required."""
    user = await service.redeem_invitation(
        db,
        token=token,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
    )

    await create_audit_log(
        db=db,
        user_id=user.id,
        action="accept_invitation",
        resource_type="user",
        resource_id=user.id,
        organization_id=user.organization_id,
        details={"email": user.email, "role": user.role.value},
        request=request,
    )

    return user


@router.post("/resend/{invitation_id}", response_model=InvitationResponse)
async def resend_invitation(
    invitation_id: str,
    request: Request,
    current_user: Annotated[User, Depends(require_inviter)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Extend an invitation by another week. The link stays the same."""
    invitation = await service.resend_invitation(db, current_user, invitation_id)

    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="resend",
        resource_type="invitation",
        resource_id=invitation.id,
        organization_id=invitation.organization_id,
        request=request,
    )

    return to_response(invitation)
