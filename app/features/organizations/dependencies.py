"""
Organization-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.organizations.models import Organization
from app.features.permissions.dependencies import can_access_organization
from app.features.permissions.roles import UserRole


async def get_organization_by_id(
    organization_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Organization:
    """
    Get organization by ID or raise 404.

    Args:
        organization_id: Organization ULID
        db: Database session

    Returns:
        Organization model

    Raises:
        HTTPException: 404 if organization not found
    """
    result = await db.execute(
        select(Organization).where(Organization.id == organization_id)
    )
    organization = result.scalar_one_or_none()

    if organization is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Organization not found"
        )

    return organization


async def get_visible_organization(
    organization: Annotated[Organization, Depends(get_organization_by_id)],
    user: Annotated[User, Depends(get_current_user)]
) -> Organization:
    """
    Organization the current user may read.

    Raises:
        HTTPException: 403 unless the user belongs to it or has a platform role
    """
    if not can_access_organization(user, organization.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )
    return organization


async def get_managed_organization(
    organization: Annotated[Organization, Depends(get_visible_organization)],
    user: Annotated[User, Depends(get_current_user)]
) -> Organization:
    """
    Organization the current user may reconfigure: ORGADMIN of it, ADMIN or SUPERADMIN.

    Raises:
        HTTPException: 403 for plain users
    """
    if user.role == UserRole.USER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied"
        )
    return organization
