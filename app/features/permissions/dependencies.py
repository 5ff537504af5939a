"""
Permission checking utilities and dependencies for route protection.

Implements:
- Loading the snapshots the authorization engine works on
- FastAPI dependencies for feature/action and role guards
- The shared "may this actor manage that user" rule
"""
from typing import Optional
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import AccessDeniedError, ForbiddenError
from app.features.catalog.models import Feature
from app.features.catalog.schemas import CatalogFeature
from app.features.organizations.schemas import OrganizationToggles
from app.features.permissions.engine import (
    AccessDecision,
    DecisionReason,
    DenialCategory,
    authorize,
    check_minimum_role,
)
from app.features.permissions.roles import PermissionAction, UserRole, can_manage
from app.features.permissions.schemas import Principal
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Snapshot loading
# ============================================================================

async def load_catalog_feature(db: AsyncSession, feature_name: str) -> Optional[CatalogFeature]:
    result = await db.execute(select(Feature).where(Feature.name == feature_name))
    feature = result.scalar_one_or_none()
    return CatalogFeature.model_validate(feature) if feature is not None else None


def organization_toggles(user: User) -> Optional[OrganizationToggles]:
    if user.organization is None:
        return None
    return OrganizationToggles.model_validate(user.organization)


async def evaluate_access(
    db: AsyncSession,
    user: Optional[User],
    feature: str,
    action: PermissionAction,
    sub_feature: Optional[str] = None,
) -> AccessDecision:
    """
    Run the authorization engine for ``user`` against current database state.

    Args:
        db: Database session
        user: Authenticated user, or None
        feature: Catalog feature name
        action: Requested action
        sub_feature: Optional sub-feature name

    Returns:
        AccessDecision
    """
    if user is None:
        return authorize(None, feature, action, sub_feature)

    principal = Principal.model_validate(user)
    if principal.role == UserRole.SUPERADMIN:
        return authorize(principal, feature, action, sub_feature)

    return authorize(
        principal,
        feature,
        action,
        sub_feature,
        organization=organization_toggles(user),
        catalog_feature=await load_catalog_feature(db, feature),
    )


def raise_for_decision(decision: AccessDecision) -> None:
    """Translate a denial into AccessDeniedError: 401 when unauthenticated, 403 otherwise."""
    if decision.allowed:
        return
    raise AccessDeniedError(decision.reason.value, decision.category.value)


# ============================================================================
# FastAPI Dependencies
# ============================================================================

def require_access(
    feature: str,
    action: PermissionAction,
    sub_feature: Optional[str] = None,
    minimum_role: Optional[UserRole] = None,
):
    """
    FastAPI dependency to require access to a feature.

    Usage:
        @router.get("/promotions")
        async def list_promotions(
            user: User = Depends(require_access("promotion", PermissionAction.READ))
        ):
            pass

    Args:
        feature: Catalog feature name
        action: Required action
        sub_feature: Optional sub-feature name
        minimum_role: Optional role the user must rank at least

    Returns:
        Dependency function that returns the current user if access is granted

    Raises:
        AccessDeniedError: 401 if unauthenticated, 403 with reason/category otherwise
    """
    async def access_dependency(
        db: AsyncSession = Depends(get_db),
        current_user: User = Depends(get_current_user)
    ) -> User:
        if minimum_role is not None:
            raise_for_decision(check_minimum_role(Principal.model_validate(current_user), minimum_role))

        decision = await evaluate_access(db, current_user, feature, action, sub_feature)
        if not decision.allowed:
            log.warning(
                f"Access denied: user={current_user.id} feature={feature} "
                f"sub_feature={sub_feature} action={action.value} reason={decision.reason.value}"
            )
        raise_for_decision(decision)
        return current_user

    return access_dependency


def require_role(*roles: UserRole):
    """
    FastAPI dependency to require one of the listed roles.

    Usage:
        @router.get("/organizations")
        async def list_organizations(
            user: User = Depends(require_role(UserRole.ADMIN, UserRole.SUPERADMIN))
        ):
            pass
    """
    allowed = frozenset(roles)

    async def role_dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            log.warning(f"Role denied: user={current_user.id} role={current_user.role.value}")
            raise AccessDeniedError(DecisionReason.INSUFFICIENT_ROLE.value, DenialCategory.INSUFFICIENT_ROLE.value)
        return current_user

    return role_dependency


# ============================================================================
# Management scope
# ============================================================================

def can_access_organization(actor: User, organization_id: Optional[str]) -> bool:
    """Platform roles reach every organization; everyone else only their own."""
    if actor.role in (UserRole.ADMIN, UserRole.SUPERADMIN):
        return True
    return organization_id is not None and actor.organization_id == organization_id


def ensure_can_manage(actor: User, target_role: UserRole, target_organization_id: Optional[str]) -> None:
    """
    Raise ForbiddenError unless ``actor`` may manage a user with
    ``target_role`` in ``target_organization_id``.

    ORGADMINs are additionally confined to their own organization.
    """
    if not can_manage(actor.role, target_role):
        log.warning(
            f"Role hierarchy violation: user={actor.id} role={actor.role.value} "
            f"target_role={UserRole(target_role).value}"
        )
        raise ForbiddenError(f"Role {actor.role.value} cannot manage role {UserRole(target_role).value}")

    if actor.role == UserRole.ORGADMIN and target_organization_id != actor.organization_id:
        log.warning(
            f"Cross-organization attempt: user={actor.id} org={actor.organization_id} "
            f"target_org={target_organization_id}"
        )
        raise ForbiddenError("Cannot manage users outside your organization")
