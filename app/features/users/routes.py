"""
User management routes.

Managers act on users whose role is strictly below their own; ORGADMINs
are confined to their organization. Users are deactivated, never deleted.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.service import create_audit_log
from app.features.organizations.models import Organization
from app.features.permissions.dependencies import (
    can_access_organization,
    ensure_can_manage,
    require_role,
)
from app.features.permissions.roles import PLATFORM_ROLES, UserRole, is_platform_role
from app.features.permissions.schemas import PermissionsReplace, dump_grants
from app.features.users.auth import hash_password
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import (
    UserCreate,
    UserListResponse,
    UserResponse,
    UserStatusUpdate,
)
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["users"])


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    return user


@router.get("/", response_model=UserListResponse)
async def list_users(
    admin: Annotated[User, Depends(require_role(UserRole.SUPERADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 100
):
    """List every user (SUPERADMIN only)."""
    result = await db.execute(
        select(User).order_by(User.created_at.desc()).offset(skip).limit(limit)
    )
    return UserListResponse(users=result.scalars().all())


@router.get("/platform", response_model=UserListResponse)
async def list_platform_users(
    admin: Annotated[User, Depends(require_role(UserRole.SUPERADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List organization-less ADMIN and SUPERADMIN accounts (SUPERADMIN only)."""
    result = await db.execute(
        select(User)
        .where(User.role.in_(PLATFORM_ROLES), User.organization_id.is_(None))
        .order_by(User.created_at.desc())
    )
    return UserListResponse(users=result.scalars().all())


@router.get("/organization/{organization_id}", response_model=UserListResponse)
async def list_organization_users(
    organization_id: str,
    current_user: Annotated[User, Depends(require_role(UserRole.ORGADMIN, UserRole.ADMIN, UserRole.SUPERADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """List members of an organization. ORGADMINs only see their own."""
    if not can_access_organization(current_user, organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this organization"
        )

    result = await db.execute(
        select(User)
        .where(User.organization_id == organization_id)
        .order_by(User.created_at.desc())
    )
    return UserListResponse(users=result.scalars().all())


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: UserCreate,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a user directly, without an invitation."""
    organization_id = payload.organization_id
    if is_platform_role(payload.role):
        organization_id = None
    elif organization_id is None and current_user.role == UserRole.ORGADMIN:
        organization_id = current_user.organization_id

    ensure_can_manage(current_user, payload.role, organization_id)

    if organization_id is None and not is_platform_role(payload.role):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="organization_id is required for this role"
        )
    if organization_id is not None and await db.get(Organization, organization_id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid organization"
        )

    email = payload.email.strip().lower()
    existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )

    new_user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        organization_id=organization_id,
        permissions=dump_grants(payload.permissions),
        is_active=True,
        created_by_id=current_user.id,
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists"
        )
    await db.refresh(new_user)

    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="create",
        resource_type="user",
        resource_id=new_user.id,
        organization_id=organization_id,
        details={"email": new_user.email, "role": new_user.role.value},
        request=request,
    )
    return new_user


@router.put("/{user_id}/permissions", response_model=UserResponse)
async def replace_user_permissions(
    user_id: str,
    payload: PermissionsReplace,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Replace a user's grants wholesale.

    Concurrent replacements are last-write-wins; grants are never merged.
    """
    target = await get_user_or_404(db, user_id)
    ensure_can_manage(current_user, target.role, target.organization_id)

    target.permissions = dump_grants(payload.permissions)
    target.updated_by_id = current_user.id
    await db.commit()
    await db.refresh(target)

    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="replace_permissions",
        resource_type="user",
        resource_id=target.id,
        organization_id=target.organization_id,
        details={"features": [grant.feature for grant in payload.permissions]},
        request=request,
    )
    return target


@router.put("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    payload: UserStatusUpdate,
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Activate or deactivate a user."""
    target = await get_user_or_404(db, user_id)
    ensure_can_manage(current_user, target.role, target.organization_id)

    target.is_active = payload.is_active
    target.updated_by_id = current_user.id
    await db.commit()
    await db.refresh(target)

    log.info(f"User {target.id} is_active={target.is_active} set by user={current_user.id}")
    await create_audit_log(
        db=db,
        user_id=current_user.id,
        action="update_status",
        resource_type="user",
        resource_id=target.id,
        organization_id=target.organization_id,
        details={"is_active": target.is_active},
        request=request,
    )
    return target
