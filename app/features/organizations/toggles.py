"""
Organization feature toggle evaluation.

A feature is disabled until an organization explicitly enables it, and a
sub-feature is enabled only when both it and its parent feature are.
"""
from typing import Optional

from app.features.organizations.schemas import OrganizationFeatureToggle, OrganizationToggles


def find_toggle(organization: OrganizationToggles, feature_name: str) -> Optional[OrganizationFeatureToggle]:
    return next((toggle for toggle in organization.features if toggle.name == feature_name), None)


def is_enabled(
    organization: Optional[OrganizationToggles],
    feature_name: str,
    sub_feature_name: Optional[str] = None,
) -> bool:
    """
    Whether ``feature_name`` (and ``sub_feature_name`` if given) is enabled.

    Missing organization, missing feature toggle and missing sub-feature
    toggle all count as disabled.
    """
    if organization is None:
        return False

    toggle = find_toggle(organization, feature_name)
    if toggle is None or not toggle.is_enabled:
        return False

    if sub_feature_name is None:
        return True

    sub_toggle = next((sub for sub in toggle.sub_features if sub.name == sub_feature_name), None)
    return sub_toggle is not None and sub_toggle.is_enabled
