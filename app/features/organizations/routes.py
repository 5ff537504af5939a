"""
Organization feature routes.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.service import create_audit_log
from app.features.organizations.dependencies import (
    get_managed_organization,
    get_organization_by_id,
    get_visible_organization,
)
from app.features.organizations.models import Organization, OrganizationFeature, default_settings, slugify
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationFeatureToggle,
    OrganizationFeaturesUpdate,
    OrganizationResponse,
    OrganizationSettings,
    OrganizationUpdate,
)
from app.features.permissions.dependencies import require_role
from app.features.permissions.roles import UserRole
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["organizations"])

require_platform_admin = require_role(UserRole.ADMIN, UserRole.SUPERADMIN)


def build_feature_rows(features: List[OrganizationFeatureToggle]) -> List[OrganizationFeature]:
    return [
        OrganizationFeature(
            name=toggle.name,
            is_enabled=toggle.is_enabled,
            sub_features=[sub.model_dump() for sub in toggle.sub_features],
            position=position,
        )
        for position, toggle in enumerate(features)
    ]


@router.get("/", response_model=List[OrganizationResponse])
async def list_organizations(
    admin: Annotated[User, Depends(require_platform_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100
):
    """List organizations (ADMIN and SUPERADMIN)."""
    result = await db.execute(
        select(Organization).order_by(Organization.name).offset(skip).limit(limit)
    )
    return result.scalars().all()


@router.post("/", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    request: Request,
    admin: Annotated[User, Depends(require_platform_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a new organization (ADMIN and SUPERADMIN). The slug is derived from the name."""
    slug = slugify(org_data.name)
    if not slug:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Organization name must contain letters or digits"
        )

    result = await db.execute(select(Organization.id).where(Organization.slug == slug))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Organization with this name already exists"
        )

    new_org = Organization(
        name=org_data.name,
        slug=slug,
        description=org_data.description,
        settings=default_settings(),
        created_by_id=admin.id,
        features=build_feature_rows(org_data.features),
    )
    db.add(new_org)
    await db.commit()
    await db.refresh(new_org)

    await create_audit_log(
        db=db,
        user_id=admin.id,
        action="create",
        resource_type="organization",
        resource_id=new_org.id,
        organization_id=new_org.id,
        details={"name": new_org.name},
        request=request,
    )
    return new_org


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization: Annotated[Organization, Depends(get_visible_organization)]
):
    """Get organization details. Members see their own; platform roles see any."""
    return organization


@router.put("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    update: OrganizationUpdate,
    request: Request,
    organization: Annotated[Organization, Depends(get_organization_by_id)],
    admin: Annotated[User, Depends(require_platform_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update name, description or active flag (ADMIN and SUPERADMIN). Renaming re-derives the slug."""
    changes = update.model_dump(exclude_unset=True, exclude_none=True)

    if "name" in changes and changes["name"] != organization.name:
        slug = slugify(changes["name"])
        if not slug:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Organization name must contain letters or digits"
            )
        result = await db.execute(
            select(Organization.id).where(Organization.slug == slug, Organization.id != organization.id)
        )
        if result.scalar_one_or_none() is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Organization with this name already exists"
            )
        organization.slug = slug

    for field, value in changes.items():
        setattr(organization, field, value)

    await db.commit()
    await db.refresh(organization)

    await create_audit_log(
        db=db,
        user_id=admin.id,
        action="update",
        resource_type="organization",
        resource_id=organization.id,
        organization_id=organization.id,
        details={"fields": sorted(changes)},
        request=request,
    )
    return organization


@router.put("/{organization_id}/features", response_model=OrganizationResponse)
async def update_organization_features(
    update: OrganizationFeaturesUpdate,
    request: Request,
    organization: Annotated[Organization, Depends(get_managed_organization)],
    current_user: Annotated[User, Depends(require_role(UserRole.ORGADMIN, UserRole.ADMIN, UserRole.SUPERADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace the organization's feature toggles."""
    organization.features = build_feature_rows(update.features)
    await db.commit()
    await db.refresh(organization)

    log.info(f"Org {organization.id} toggles replaced by user={current_user.id}")
    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="update_features",
        resource_type="organization",
        resource_id=organization.id,
        organization_id=organization.id,
        details={"enabled": [toggle.name for toggle in update.features if toggle.is_enabled]},
        request=request,
    )
    return organization


@router.get("/{organization_id}/settings", response_model=OrganizationSettings)
async def get_organization_settings(
    organization: Annotated[Organization, Depends(get_managed_organization)]
):
    """Get organization settings."""
    return OrganizationSettings.model_validate(organization.settings or default_settings())


@router.put("/{organization_id}/settings", response_model=OrganizationSettings)
async def update_organization_settings(
    settings: OrganizationSettings,
    request: Request,
    organization: Annotated[Organization, Depends(get_managed_organization)],
    current_user: Annotated[User, Depends(require_role(UserRole.ORGADMIN, UserRole.ADMIN, UserRole.SUPERADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Replace organization settings. Stored only; access checks do not read them."""
    organization.settings = settings.model_dump()
    await db.commit()

    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="update_settings",
        resource_type="organization",
        resource_id=organization.id,
        organization_id=organization.id,
        details=settings.model_dump(),
        request=request,
    )
    return settings
