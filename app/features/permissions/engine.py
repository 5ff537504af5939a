"""
Authorization decision engine.

Combines a principal's role, its explicit permission grants and the
organization's feature toggles into a single allow/deny decision:

1. No principal -> deny ("unauthenticated")
2. SUPERADMIN -> allow, bypassing every other check
3. Grant for the feature must exist, list the action and, when one is
   requested, list the sub-feature
4. ORGANIZATION level features (and unknown ones) must also be enabled in
   the principal's organization; USER_ROLE and SYSTEM features are gated by
   role alone

Decisions are return values, never exceptions; the HTTP layer turns a
denial into 401/403 in ``require_access``.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.features.catalog.schemas import CatalogFeature
from app.features.organizations.schemas import OrganizationToggles
from app.features.organizations.toggles import is_enabled
from app.features.permissions.roles import (
    FeatureLevel,
    PermissionAction,
    UserRole,
    has_minimum_role,
)
from app.features.permissions.schemas import Principal
from app.utils import get_logger


log = get_logger(__name__)


class DecisionReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    SUPERADMIN = "superadmin"
    GRANTED = "granted"
    NO_PERMISSION_RECORD = "no permission record for feature"
    ACTION_NOT_GRANTED = "action not granted"
    SUB_FEATURE_NOT_GRANTED = "sub-feature not granted"
    ORGANIZATION_FEATURE_DISABLED = "organization has disabled this feature"
    INSUFFICIENT_ROLE = "insufficient role"


class DenialCategory(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INSUFFICIENT_PERMISSION = "insufficient_permission"
    ORGANIZATION_FEATURE_DISABLED = "organization_feature_disabled"
    INSUFFICIENT_ROLE = "insufficient_role"


_CATEGORIES = {
    DecisionReason.UNAUTHENTICATED: DenialCategory.UNAUTHENTICATED,
    DecisionReason.NO_PERMISSION_RECORD: DenialCategory.INSUFFICIENT_PERMISSION,
    DecisionReason.ACTION_NOT_GRANTED: DenialCategory.INSUFFICIENT_PERMISSION,
    DecisionReason.SUB_FEATURE_NOT_GRANTED: DenialCategory.INSUFFICIENT_PERMISSION,
    DecisionReason.ORGANIZATION_FEATURE_DISABLED: DenialCategory.ORGANIZATION_FEATURE_DISABLED,
    DecisionReason.INSUFFICIENT_ROLE: DenialCategory.INSUFFICIENT_ROLE,
}

# Levels gated by role alone; organization toggles don't apply to them
ROLE_GATED_LEVELS = frozenset({FeatureLevel.SYSTEM, FeatureLevel.USER_ROLE})


class AccessDecision(BaseModel):
    allowed: bool
    reason: DecisionReason

    model_config = ConfigDict(frozen=True)

    @property
    def category(self) -> Optional[DenialCategory]:
        """Machine-checkable denial category; None when allowed."""
        if self.allowed:
            return None
        return _CATEGORIES[self.reason]

    @classmethod
    def allow(cls, reason: DecisionReason = DecisionReason.GRANTED) -> "AccessDecision":
        return cls(allowed=True, reason=reason)

    @classmethod
    def deny(cls, reason: DecisionReason) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


def check_permission(
    principal: Principal,
    feature: str,
    action: PermissionAction,
    sub_feature: Optional[str] = None,
) -> AccessDecision:
    """
    Evaluate the principal's own grants, ignoring organization toggles.

    Actions are not indexed per sub-feature: any action on the grant applies
    to every sub-feature listed on it.
    """
    grant = principal.find_grant(feature)
    if grant is None:
        return AccessDecision.deny(DecisionReason.NO_PERMISSION_RECORD)

    if action not in grant.actions:
        return AccessDecision.deny(DecisionReason.ACTION_NOT_GRANTED)

    if sub_feature is not None and sub_feature not in grant.sub_features:
        return AccessDecision.deny(DecisionReason.SUB_FEATURE_NOT_GRANTED)

    return AccessDecision.allow()


def organization_gate_applies(catalog_feature: Optional[CatalogFeature]) -> bool:
    # Unknown features are treated as organization scoped
    if catalog_feature is None:
        return True
    return catalog_feature.feature_level not in ROLE_GATED_LEVELS


def authorize(
    principal: Optional[Principal],
    feature: str,
    action: PermissionAction,
    sub_feature: Optional[str] = None,
    *,
    organization: Optional[OrganizationToggles] = None,
    catalog_feature: Optional[CatalogFeature] = None,
) -> AccessDecision:
    """
    Decide whether ``principal`` may perform ``action`` on ``feature``.

    Args:
        principal: Authenticated actor, or None
        feature: Catalog feature name
        action: Requested action
        sub_feature: Optional sub-feature name
        organization: Toggle snapshot of the principal's organization
        catalog_feature: Catalog entry for ``feature``, if it exists

    Returns:
        AccessDecision with the reason of the first failing check
    """
    if principal is None:
        log.debug(f"Denied {action.value} on {feature}: unauthenticated")
        return AccessDecision.deny(DecisionReason.UNAUTHENTICATED)

    if principal.role == UserRole.SUPERADMIN:
        return AccessDecision.allow(DecisionReason.SUPERADMIN)

    decision = check_permission(principal, feature, action, sub_feature)
    if not decision.allowed:
        log.debug(
            f"Denied user={principal.id} action={action.value} feature={feature} "
            f"sub_feature={sub_feature}: {decision.reason.value}"
        )
        return decision

    if organization_gate_applies(catalog_feature):
        if organization is not None and organization.id != principal.organization_id:
            log.warning(
                f"Toggle snapshot for org {organization.id} does not belong to "
                f"user={principal.id} (org {principal.organization_id})"
            )
            organization = None

        if not is_enabled(organization, feature, sub_feature):
            log.debug(
                f"Denied user={principal.id} action={action.value} feature={feature} "
                f"sub_feature={sub_feature}: disabled for org {principal.organization_id}"
            )
            return AccessDecision.deny(DecisionReason.ORGANIZATION_FEATURE_DISABLED)

    return decision


def check_minimum_role(principal: Optional[Principal], minimum: UserRole) -> AccessDecision:
    """Route-guard helper: does the principal rank at least ``minimum``?"""
    if principal is None:
        return AccessDecision.deny(DecisionReason.UNAUTHENTICATED)

    if principal.role == UserRole.SUPERADMIN:
        return AccessDecision.allow(DecisionReason.SUPERADMIN)

    if not has_minimum_role(principal.role, minimum):
        log.warning(
            f"Denied user={principal.id}: role {principal.role.value} below {minimum.value}"
        )
        return AccessDecision.deny(DecisionReason.INSUFFICIENT_ROLE)

    return AccessDecision.allow()
