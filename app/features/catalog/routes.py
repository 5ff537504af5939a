"""
Feature catalog routes.

Everyone authenticated can read the catalog; only SUPERADMIN edits it.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.service import create_audit_log
from app.features.catalog.models import Feature, SubFeature
from app.features.catalog.schemas import FeatureCreate, FeatureResponse, FeatureUpdate, SubFeatureBase
from app.features.permissions.dependencies import require_access
from app.features.permissions.roles import PermissionAction, UserRole, has_minimum_role
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter(tags=["features"])

# Catalog edits are a system_management.feature_management write, reserved to SUPERADMIN
require_catalog_admin = require_access(
    "system_management",
    PermissionAction.WRITE,
    "feature_management",
    minimum_role=UserRole.SUPERADMIN,
)


def build_sub_features(sub_features: List[SubFeatureBase]) -> List[SubFeature]:
    return [
        SubFeature(
            name=sub.name,
            display_name=sub.display_name,
            description=sub.description,
            actions=[action.value for action in sub.actions],
            position=position,
        )
        for position, sub in enumerate(sub_features)
    ]


async def get_feature_or_404(db: AsyncSession, feature_id: str) -> Feature:
    result = await db.execute(select(Feature).where(Feature.id == feature_id))
    feature = result.scalar_one_or_none()
    if feature is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Feature not found"
        )
    return feature


@router.get("/", response_model=List[FeatureResponse])
async def list_features(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List the whole catalog."""
    result = await db.execute(select(Feature).order_by(Feature.name))
    return result.scalars().all()


@router.get("/available", response_model=List[FeatureResponse])
async def list_available_features(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Catalog features whose required role the current user meets."""
    result = await db.execute(select(Feature).order_by(Feature.name))
    return [feature for feature in result.scalars().all() if has_minimum_role(user.role, feature.required_role)]


@router.post("/", response_model=FeatureResponse, status_code=status.HTTP_201_CREATED)
async def create_feature(
    feature_data: FeatureCreate,
    request: Request,
    admin: Annotated[User, Depends(require_catalog_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add a feature to the catalog (SUPERADMIN only)."""
    existing = await db.execute(select(Feature.id).where(Feature.name == feature_data.name))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Feature with this name already exists"
        )

    feature = Feature(
        **feature_data.model_dump(exclude={"sub_features"}),
        sub_features=build_sub_features(feature_data.sub_features),
    )
    db.add(feature)
    await db.commit()
    await db.refresh(feature)

    await create_audit_log(
        db=db,
        user_id=admin.id,
        action="create",
        resource_type="feature",
        resource_id=feature.id,
        details={"name": feature.name},
        request=request,
    )
    return feature


@router.put("/{feature_id}", response_model=FeatureResponse)
async def update_feature(
    feature_id: str,
    update: FeatureUpdate,
    request: Request,
    admin: Annotated[User, Depends(require_catalog_admin)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update a catalog feature (SUPERADMIN only). The name is immutable."""
    feature = await get_feature_or_404(db, feature_id)

    changes = update.model_dump(exclude_unset=True, exclude={"sub_features"})
    for field, value in changes.items():
        setattr(feature, field, value)
    if update.sub_features is not None:
        # Flush deletions first; sub-feature names are unique per feature
        feature.sub_features.clear()
        await db.flush()
        feature.sub_features.extend(build_sub_features(update.sub_features))

    await db.commit()
    await db.refresh(feature)

    await create_audit_log(
        db=db,
        user_id=admin.id,
        action="update",
        resource_type="feature",
        resource_id=feature.id,
        details={"fields": sorted(changes) + (["sub_features"] if update.sub_features is not None else [])},
        request=request,
    )
    return feature
