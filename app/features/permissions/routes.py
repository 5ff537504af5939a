"""
Permission API routes.

Exposes a user's grants and a dry-run of the authorization engine for UIs
that need to decide what to show.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.dependencies import evaluate_access, ensure_can_manage
from app.features.permissions.roles import UserRole
from app.features.permissions.schemas import (
    PermissionCheckRequest,
    PermissionCheckResponse,
    UserPermissionsResponse,
)
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter(tags=["permissions"])


@router.get("/user/{user_id}", response_model=UserPermissionsResponse)
async def get_user_permissions(
    user_id: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get a user's grants. Visible to the user, SUPERADMIN, and managers of the user's role in scope."""
    if user_id == current_user.id:
        target = current_user
    else:
        result = await db.execute(select(User).where(User.id == user_id))
        target = result.scalar_one_or_none()
        if target is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        if current_user.role != UserRole.SUPERADMIN:
            ensure_can_manage(current_user, target.role, target.organization_id)

    return UserPermissionsResponse(
        user_id=target.id,
        role=target.role,
        organization_id=target.organization_id,
        permissions=target.permissions,
    )


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    check_request: PermissionCheckRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Check whether the current user may perform an action, and why not."""
    decision = await evaluate_access(
        db,
        current_user,
        check_request.feature,
        check_request.action,
        check_request.sub_feature,
    )

    return PermissionCheckResponse(
        allowed=decision.allowed,
        reason=decision.reason.value,
        category=decision.category.value if decision.category else None,
    )
