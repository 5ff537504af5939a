"""
Builders for authorization engine inputs and persisted grant/toggle payloads.
"""
from typing import Optional

from app.features.catalog.schemas import CatalogFeature
from app.features.organizations.schemas import OrganizationToggles
from app.features.permissions.roles import FeatureLevel, UserRole
from app.features.permissions.schemas import Principal
from app.features.users.auth import create_access_token


TEST_PASSWORD = "s3cret-pass"


def grant(feature: str, sub_features=(), actions=("read",)) -> dict:
    return {"feature": feature, "sub_features": list(sub_features), "actions": list(actions)}


def toggle(name: str, enabled: bool = True, **sub_features: bool) -> dict:
    return {
        "name": name,
        "is_enabled": enabled,
        "sub_features": [{"name": sub, "is_enabled": on} for sub, on in sub_features.items()],
    }


def make_principal(role=UserRole.USER, permissions=(), organization_id: Optional[str] = "org-1", user_id="user-1"):
    return Principal(
        id=user_id,
        email=f"{user_id}@example.com",
        role=role,
        organization_id=organization_id,
        permissions=list(permissions),
    )


def make_toggles(*features: dict, organization_id: str = "org-1") -> OrganizationToggles:
    return OrganizationToggles(id=organization_id, features=list(features))


def catalog(name: str, level: FeatureLevel = FeatureLevel.ORGANIZATION, required_role=UserRole.USER) -> CatalogFeature:
    return CatalogFeature(name=name, feature_level=level, required_role=required_role)


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
