"""
Tests for the invitation workflow service.

Time is injected through ``now`` rather than slept through.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import func, select

from app.core.errors import AppError, ForbiddenError
from app.features.invitations.models import Invitation, InvitationStatus
from app.features.invitations.service import (
    INVITATION_TTL,
    InvalidInvitationError,
    InvitationAlreadyAcceptedError,
    InvitationAlreadySentError,
    UserAlreadyExistsError,
    build_invitation_link,
    create_invitation,
    list_admin_invitations,
    list_organization_invitations,
    redeem_invitation,
    resend_invitation,
)
from app.features.permissions.roles import UserRole
from app.features.permissions.schemas import PermissionGrant
from app.features.users.auth import verify_password
from app.features.users.models import User

from helpers import grant


NOW = datetime(2026, 1, 1, 12, 0, 0)
PROMOTION_GRANTS = [PermissionGrant(**grant("promotion", ["email"], ["read"]))]


@pytest.fixture
def setup(make_org, make_user):
    async def _setup():
        org = await make_org("Org One")
        other_org = await make_org("Org Two")
        superadmin = await make_user("root@example.com", UserRole.SUPERADMIN)
        orgadmin = await make_user("boss@example.com", UserRole.ORGADMIN, org)
        return org, other_org, superadmin, orgadmin

    return _setup


async def count_users(db, email):
    result = await db.execute(select(func.count()).select_from(User).where(User.email == email))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_create_invitation(db, setup):
    org, _, _, orgadmin = await setup()

    invitation = await create_invitation(
        db, orgadmin, " New.User@Example.com ", UserRole.USER, org.id, PROMOTION_GRANTS, now=NOW,
    )

    assert invitation.email == "new.user@example.com"
    assert invitation.status == InvitationStatus.PENDING
    assert invitation.expires_at == NOW + timedelta(days=7)
    assert invitation.invited_by_id == orgadmin.id
    assert invitation.permissions == [{"feature": "promotion", "sub_features": ["email"], "actions": ["read"]}]
    assert len(invitation.token) == 64
    assert build_invitation_link(invitation.token) == f"http://frontend.test/accept-invitation/{invitation.token}"


@pytest.mark.asyncio
async def test_tokens_are_unique(db, setup):
    org, _, _, orgadmin = await setup()

    first = await create_invitation(db, orgadmin, "a@example.com", UserRole.USER, org.id, [], now=NOW)
    second = await create_invitation(db, orgadmin, "b@example.com", UserRole.USER, org.id, [], now=NOW)

    assert first.token != second.token


@pytest.mark.asyncio
async def test_permissions_are_not_validated_against_catalog(db, setup):
    org, _, _, orgadmin = await setup()
    grants = [PermissionGrant(**grant("no_such_feature", ["nope"], ["manage"]))]

    invitation = await create_invitation(db, orgadmin, "a@example.com", UserRole.USER, org.id, grants, now=NOW)

    assert invitation.permissions[0]["feature"] == "no_such_feature"


@pytest.mark.asyncio
async def test_orgadmin_cannot_invite_into_other_organization(db, setup):
    _, other_org, _, orgadmin = await setup()

    with pytest.raises(ForbiddenError):
        await create_invitation(db, orgadmin, "x@example.com", UserRole.USER, other_org.id, [], now=NOW)

    result = await db.execute(select(func.count()).select_from(Invitation))
    assert result.scalar_one() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("inviter_role, target_role", [
    (UserRole.ORGADMIN, UserRole.ORGADMIN),
    (UserRole.ORGADMIN, UserRole.ADMIN),
    (UserRole.ADMIN, UserRole.ADMIN),
    (UserRole.SUPERADMIN, UserRole.SUPERADMIN),
])
async def test_role_hierarchy_is_enforced(db, make_org, make_user, inviter_role, target_role):
    org = await make_org()
    inviter = await make_user(
        "inviter@example.com", inviter_role, org if inviter_role == UserRole.ORGADMIN else None,
    )

    with pytest.raises(ForbiddenError):
        await create_invitation(db, inviter, "x@example.com", target_role, org.id, [], now=NOW)


@pytest.mark.asyncio
async def test_existing_user_rejected(db, setup):
    org, _, _, orgadmin = await setup()

    with pytest.raises(UserAlreadyExistsError):
        await create_invitation(db, orgadmin, "BOSS@example.com", UserRole.USER, org.id, [], now=NOW)


@pytest.mark.asyncio
async def test_duplicate_pending_invitation_rejected(db, setup):
    org, other_org, superadmin, orgadmin = await setup()
    await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)

    with pytest.raises(InvitationAlreadySentError):
        await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)

    # Different role or organization for the same email is a different target
    by_role = await create_invitation(db, superadmin, "a@x.com", UserRole.ORGADMIN, org.id, [], now=NOW)
    by_org = await create_invitation(db, superadmin, "a@x.com", UserRole.USER, other_org.id, [], now=NOW)

    assert by_role.status == by_org.status == InvitationStatus.PENDING


@pytest.mark.asyncio
async def test_lapsed_pending_invitation_does_not_block_new_one(db, setup):
    org, _, _, orgadmin = await setup()
    old = await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)

    later = NOW + INVITATION_TTL + timedelta(minutes=1)
    new = await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=later)

    await db.refresh(old)
    assert old.status == InvitationStatus.EXPIRED
    assert new.status == InvitationStatus.PENDING
    assert new.token != old.token


@pytest.mark.asyncio
async def test_non_platform_invitation_requires_organization(db, setup):
    *_, superadmin, _ = await setup()

    with pytest.raises(AppError) as exc_info:
        await create_invitation(db, superadmin, "a@x.com", UserRole.USER, None, [], now=NOW)

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_redeem_creates_user_with_copied_grants(db, setup):
    org, _, _, orgadmin = await setup()
    invitation = await create_invitation(
        db, orgadmin, "new@x.com", UserRole.USER, org.id, PROMOTION_GRANTS,
        first_name="Invited", last_name="Name", now=NOW,
    )

    user = await redeem_invitation(db, invitation.token, "password1", last_name="Chosen", now=NOW + timedelta(days=1))

    assert user.email == "new@x.com"
    assert user.role == UserRole.USER
    assert user.organization_id == org.id
    assert user.created_by_id == orgadmin.id
    assert user.first_name == "Invited"
    assert user.last_name == "Chosen"
    assert user.permissions == invitation.permissions
    assert verify_password("password1", user.password_hash)

    await db.refresh(invitation)
    assert invitation.status == InvitationStatus.ACCEPTED
    assert invitation.accepted_at == NOW + timedelta(days=1)


@pytest.mark.asyncio
async def test_redeem_is_single_use(db, setup):
    org, _, _, orgadmin = await setup()
    invitation = await create_invitation(db, orgadmin, "once@x.com", UserRole.USER, org.id, [], now=NOW)

    await redeem_invitation(db, invitation.token, "password1", now=NOW)
    with pytest.raises(InvalidInvitationError):
        await redeem_invitation(db, invitation.token, "password2", now=NOW)

    assert await count_users(db, "once@x.com") == 1


@pytest.mark.asyncio
async def test_expiry_is_enforced_at_redemption(db, setup):
    org, _, _, orgadmin = await setup()
    invitation = await create_invitation(
        db, orgadmin, "late@x.com", UserRole.USER, org.id, [], now=NOW - timedelta(days=8),
    )

    with pytest.raises(InvalidInvitationError) as exc_info:
        await redeem_invitation(db, invitation.token, "password1", now=NOW)

    assert exc_info.value.detail == "Invalid or expired invitation"
    assert await count_users(db, "late@x.com") == 0


@pytest.mark.asyncio
async def test_unknown_token_gives_same_error(db):
    with pytest.raises(InvalidInvitationError) as exc_info:
        await redeem_invitation(db, "0" * 64, "password1", now=NOW)

    assert exc_info.value.detail == "Invalid or expired invitation"


@pytest.mark.asyncio
async def test_failed_user_insert_leaves_invitation_pending(db, setup, make_user):
    org, _, _, orgadmin = await setup()
    invitation = await create_invitation(db, orgadmin, "race@x.com", UserRole.USER, org.id, [], now=NOW)
    # Account created through another path after the invitation was sent
    await make_user("race@x.com", UserRole.USER, org)

    with pytest.raises(InvalidInvitationError):
        await redeem_invitation(db, invitation.token, "password1", now=NOW)

    await db.refresh(invitation)
    assert invitation.status == InvitationStatus.PENDING


@pytest.mark.asyncio
async def test_admin_invitation_produces_organization_less_user(db, setup):
    org, _, superadmin, _ = await setup()
    invitation = await create_invitation(db, superadmin, "admin@x.com", UserRole.ADMIN, org.id, [], now=NOW)

    assert invitation.organization_id is None

    user = await redeem_invitation(db, invitation.token, "password1", now=NOW)

    assert user.role == UserRole.ADMIN
    assert user.organization_id is None


@pytest.mark.asyncio
async def test_resend_extends_without_rotating_token(db, setup):
    org, _, _, orgadmin = await setup()
    invitation = await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)
    token = invitation.token

    resent_at = NOW + timedelta(days=5)
    resent = await resend_invitation(db, orgadmin, invitation.id, now=resent_at)

    assert resent.token == token
    assert resent.status == InvitationStatus.PENDING
    assert resent.expires_at == resent_at + timedelta(days=7)

    # The first link keeps working past the first window
    user = await redeem_invitation(db, token, "password1", now=NOW + timedelta(days=10))
    assert user.email == "a@x.com"


@pytest.mark.asyncio
async def test_resend_recovers_lapsed_invitation(db, setup):
    org, _, _, orgadmin = await setup()
    invitation = await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)

    later = NOW + timedelta(days=30)
    assert invitation.effective_status(later) == InvitationStatus.EXPIRED

    resent = await resend_invitation(db, orgadmin, invitation.id, now=later)

    assert resent.effective_status(later) == InvitationStatus.PENDING


@pytest.mark.asyncio
async def test_resend_rejects_accepted_invitation(db, setup):
    org, _, _, orgadmin = await setup()
    invitation = await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)
    await redeem_invitation(db, invitation.token, "password1", now=NOW)

    with pytest.raises(InvitationAlreadyAcceptedError):
        await resend_invitation(db, orgadmin, invitation.id, now=NOW)


@pytest.mark.asyncio
async def test_resend_confined_to_own_organization(db, setup, make_user):
    org, other_org, superadmin, _ = await setup()
    invitation = await create_invitation(db, superadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)
    outsider = await make_user("outsider@example.com", UserRole.ORGADMIN, other_org)

    with pytest.raises(ForbiddenError):
        await resend_invitation(db, outsider, invitation.id, now=NOW)


@pytest.mark.asyncio
async def test_listing(db, setup):
    org, other_org, superadmin, orgadmin = await setup()
    await create_invitation(db, orgadmin, "a@x.com", UserRole.USER, org.id, [], now=NOW)
    await create_invitation(db, superadmin, "b@x.com", UserRole.USER, other_org.id, [], now=NOW)
    await create_invitation(db, superadmin, "admin@x.com", UserRole.ADMIN, None, [], now=NOW)

    own = await list_organization_invitations(db, orgadmin, org.id)
    assert [inv.email for inv in own] == ["a@x.com"]

    with pytest.raises(ForbiddenError):
        await list_organization_invitations(db, orgadmin, other_org.id)

    admin_invitations = await list_admin_invitations(db, superadmin)
    assert [inv.email for inv in admin_invitations] == ["admin@x.com"]

    with pytest.raises(ForbiddenError):
        await list_admin_invitations(db, orgadmin)
