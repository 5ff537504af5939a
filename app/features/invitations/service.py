"""
Invitation workflow: create, redeem, resend and list invitations.

States are ``pending -> accepted`` and ``pending -> expired``. Expiry is
detected lazily by comparing ``expires_at`` with ``now``; nothing sweeps
invitations in the background. Every time-dependent operation takes an
optional ``now`` so callers (and tests) can inject the clock.
"""
import secrets
from datetime import datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.errors import AppError, ConflictError, ForbiddenError, NotFoundError
from app.features.invitations.models import Invitation, InvitationStatus
from app.features.organizations.models import Organization
from app.features.permissions.roles import UserRole, can_manage, is_platform_role
from app.features.permissions.schemas import PermissionGrant, dump_grants
from app.features.users.auth import hash_password
from app.features.users.models import User
from app.utils import get_logger, utcnow


log = get_logger(__name__)

INVITATION_TTL = timedelta(days=7)


class InvalidInvitationError(AppError):
    """Single error for every redemption failure; which check failed is never revealed."""
    status_code = 400
    detail = "Invalid or expired invitation"


class UserAlreadyExistsError(ConflictError):
    detail = "User already exists"


class InvitationAlreadySentError(ConflictError):
    detail = "Invitation already sent"


class InvitationAlreadyAcceptedError(AppError):
    status_code = 400
    detail = "Invitation already accepted"


def generate_token() -> str:
    """256 bits from the OS CSPRNG, hex encoded."""
    return secrets.token_hex(32)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def build_invitation_link(token: str) -> str:
    return f"{config.FRONTEND_URL}/accept-invitation/{token}"


async def create_invitation(
    db: AsyncSession,
    inviter: User,
    email: str,
    role: UserRole,
    organization_id: Optional[str],
    permissions: Sequence[PermissionGrant],
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Invitation:
    """
    Create a pending invitation.

    Preconditions are checked in order and reported individually:
    role hierarchy, organization scope, existing user, outstanding invitation.
    Permissions are stored as given; they are not checked against the catalog.

    Raises:
        ForbiddenError: inviter cannot manage ``role`` or targets another organization
        NotFoundError: organization does not exist
        AppError: organization missing for an organization-scoped role
        UserAlreadyExistsError: a user with this email exists
        InvitationAlreadySentError: a pending invitation for the same target exists
    """
    now = now or utcnow()
    role = UserRole(role)

    if not can_manage(inviter.role, role):
        log.warning(f"Invitation denied: role {inviter.role.value} cannot invite {role.value} (user={inviter.id})")
        raise ForbiddenError(f"Role {inviter.role.value} cannot invite role {role.value}")

    if inviter.role == UserRole.ORGADMIN and organization_id != inviter.organization_id:
        log.warning(
            f"Cross-organization invitation denied: user={inviter.id} "
            f"org={inviter.organization_id} target_org={organization_id}"
        )
        raise ForbiddenError("Cannot invite users to another organization")

    if is_platform_role(role):
        organization_id = None
    else:
        if not organization_id:
            raise AppError("organization_id is required for this role")
        organization = await db.get(Organization, organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")

    email = normalize_email(email)

    existing_user = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing_user.scalar_one_or_none() is not None:
        raise UserAlreadyExistsError()

    result = await db.execute(
        select(Invitation).where(
            Invitation.email == email,
            Invitation.role == role,
            Invitation.organization_id.is_(None) if organization_id is None
            else Invitation.organization_id == organization_id,
            Invitation.status == InvitationStatus.PENDING,
        )
    )
    outstanding = result.scalar_one_or_none()
    if outstanding is not None:
        if not outstanding.is_lapsed(now):
            raise InvitationAlreadySentError()
        # Persist the lazy expiry so the pending-target index no longer blocks us
        outstanding.status = InvitationStatus.EXPIRED
        await db.flush()

    invitation = Invitation(
        email=email,
        role=role,
        organization_id=organization_id,
        permissions=dump_grants(list(permissions)),
        first_name=first_name,
        last_name=last_name,
        invited_by_id=inviter.id,
        token=generate_token(),
        status=InvitationStatus.PENDING,
        expires_at=now + INVITATION_TTL,
    )
    db.add(invitation)

    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent invite for the same target
        await db.rollback()
        raise InvitationAlreadySentError()

    await db.refresh(invitation)
    log.info(f"Invitation {invitation.id} created by user={inviter.id} role={role.value} org={organization_id}")
    return invitation


async def redeem_invitation(
    db: AsyncSession,
    token: str,
    password: str,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> User:
    """
    Turn a pending, unexpired invitation into a user account.

    The user insert and the ``pending -> accepted`` transition are committed
    together; the transition is a conditional update so only one of several
    concurrent redeemers can win.

    Raises:
        InvalidInvitationError: for any failure, without saying which
    """
    now = now or utcnow()

    result = await db.execute(
        select(Invitation).where(
            Invitation.token == token,
            Invitation.status == InvitationStatus.PENDING,
            Invitation.expires_at > now,
        )
    )
    invitation = result.scalar_one_or_none()
    if invitation is None:
        log.info("Invitation redemption rejected")
        raise InvalidInvitationError()

    invitation_id = invitation.id
    transition = await db.execute(
        update(Invitation)
        .where(Invitation.id == invitation_id, Invitation.status == InvitationStatus.PENDING)
        .values(status=InvitationStatus.ACCEPTED, accepted_at=now)
    )
    if transition.rowcount != 1:
        await db.rollback()
        log.info(f"Invitation {invitation_id} already redeemed")
        raise InvalidInvitationError()

    user = User(
        email=invitation.email,
        password_hash=hash_password(password),
        first_name=first_name or invitation.first_name,
        last_name=last_name or invitation.last_name,
        role=invitation.role,
        organization_id=None if is_platform_role(invitation.role) else invitation.organization_id,
        permissions=[dict(grant) for grant in invitation.permissions],
        is_active=True,
        created_by_id=invitation.invited_by_id,
    )
    db.add(user)

    try:
        await db.flush()
        await db.commit()
    except IntegrityError:
        await db.rollback()
        log.warning(f"Invitation {invitation_id} could not create user; invitation left pending")
        raise InvalidInvitationError()

    await db.refresh(user)
    log.info(f"Invitation {invitation_id} accepted, created user={user.id} role={user.role.value}")
    return user


async def get_invitation(db: AsyncSession, invitation_id: str) -> Invitation:
    invitation = await db.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFoundError("Invitation not found")
    return invitation


async def resend_invitation(
    db: AsyncSession,
    actor: User,
    invitation_id: str,
    now: Optional[datetime] = None,
) -> Invitation:
    """
    Push ``expires_at`` to ``now + INVITATION_TTL``.

    The token is not rotated, so links already sent keep working. A lapsed
    invitation is brought back to pending; an accepted one is refused.
    """
    now = now or utcnow()
    invitation = await get_invitation(db, invitation_id)

    if not can_manage(actor.role, invitation.role):
        raise ForbiddenError(f"Role {actor.role.value} cannot manage role {invitation.role.value}")

    if actor.role == UserRole.ORGADMIN and invitation.organization_id != actor.organization_id:
        log.warning(f"Cross-organization resend denied: user={actor.id} invitation={invitation.id}")
        raise ForbiddenError("Cannot manage invitations of another organization")

    if invitation.status == InvitationStatus.ACCEPTED:
        raise InvitationAlreadyAcceptedError()

    invitation.status = InvitationStatus.PENDING
    invitation.expires_at = now + INVITATION_TTL

    try:
        await db.commit()
    except IntegrityError:
        # A newer pending invitation already exists for the same target
        await db.rollback()
        raise InvitationAlreadySentError()

    await db.refresh(invitation)
    log.info(f"Invitation {invitation.id} resent by user={actor.id}")
    return invitation


async def list_organization_invitations(
    db: AsyncSession,
    actor: User,
    organization_id: str,
) -> Sequence[Invitation]:
    """Invitations of one organization, newest first. ORGADMINs only see their own."""
    if actor.role == UserRole.USER:
        raise ForbiddenError("Insufficient role to view invitations")
    if actor.role == UserRole.ORGADMIN and actor.organization_id != organization_id:
        raise ForbiddenError("Cannot view invitations of another organization")

    result = await db.execute(
        select(Invitation)
        .where(Invitation.organization_id == organization_id)
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())
    )
    return result.scalars().all()


async def list_admin_invitations(db: AsyncSession, actor: User) -> Sequence[Invitation]:
    """Platform-level (organization-less) invitations. SUPERADMIN only."""
    if actor.role != UserRole.SUPERADMIN:
        raise ForbiddenError("Only SUPERADMIN can view admin invitations")

    result = await db.execute(
        select(Invitation)
        .where(Invitation.organization_id.is_(None))
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())
    )
    return result.scalars().all()
