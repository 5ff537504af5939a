"""
Authentication routes: self-registration, login and the current user.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi.util import get_remote_address
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.limiter import limiter
from app.features.auth.schemas import LoginRequest, RegisterRequest, TokenResponse
from app.features.organizations.models import Organization
from app.features.permissions.roles import UserRole
from app.features.users.auth import create_access_token, hash_password, verify_password
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.users.schemas import UserResponse
from app.utils import get_logger, utcnow


log = get_logger(__name__)
router = APIRouter()


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.RATE_LIMIT_SENSITIVE, key_func=get_remote_address)
async def register(
    payload: RegisterRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Self-register as a USER of an existing organization.

    The role is always USER; elevated roles are only reachable through an
    invitation or a manager.
    """
    email = payload.email.strip().lower()

    existing = await db.execute(select(User.id).where(func.lower(User.email) == email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists"
        )

    organization = await db.get(Organization, payload.organization_id)
    if organization is None or not organization.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid organization"
        )

    user = User(
        email=email,
        password_hash=hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=UserRole.USER,
        organization_id=organization.id,
        permissions=[],
        is_active=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists"
        )
    await db.refresh(user)

    log.info(f"User {user.id} registered in org {organization.id}")
    return TokenResponse(access_token=create_access_token(user.id), user=user)


@router.post("/login", response_model=TokenResponse)
@limiter.limit(config.RATE_LIMIT_SENSITIVE, key_func=get_remote_address)
async def login(
    payload: LoginRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Exchange email and password for a bearer token."""
    result = await db.execute(
        select(User).where(func.lower(User.email) == payload.email.strip().lower())
    )
    user = result.scalar_one_or_none()

    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is deactivated"
        )

    user.last_login_at = utcnow()
    await db.commit()
    await db.refresh(user)

    return TokenResponse(access_token=create_access_token(user.id), user=user)


@router.get("/me", response_model=UserResponse)
async def me(user: Annotated[User, Depends(get_current_user)]):
    """Get current authenticated user."""
    return user
