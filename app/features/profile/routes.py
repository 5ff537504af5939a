"""
Self-service profile routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.auth import check_password_length, hash_password, verify_password
from app.features.users.dependencies import CurrentUser
from app.features.users.models import User
from app.features.users.schemas import UserResponse


router = APIRouter(tags=["profile"])


class ProfileUpdate(BaseModel):
    email: EmailStr | None = None
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)


class PasswordChange(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=6, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


@router.get("/", response_model=UserResponse)
async def get_profile(
    user: CurrentUser
):
    """Get current authenticated user's profile."""
    return user


@router.put("/", response_model=UserResponse)
async def update_profile(
    update_data: ProfileUpdate,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update current user's profile."""
    if update_data.email is not None:
        email = update_data.email.strip().lower()
        if email != user.email:
            result = await db.execute(
                select(User.id).where(func.lower(User.email) == email, User.id != user.id)
            )
            if result.scalar_one_or_none() is not None:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Email already in use"
                )
            user.email = email

    # Update only provided fields
    if update_data.first_name is not None:
        user.first_name = update_data.first_name
    if update_data.last_name is not None:
        user.last_name = update_data.last_name

    await db.commit()
    await db.refresh(user)
    return user


@router.put("/change-password")
async def change_password(
    payload: PasswordChange,
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Change password after verifying the current one."""
    if not verify_password(payload.current_password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect"
        )

    user.password_hash = hash_password(payload.new_password)
    await db.commit()

    return {"message": "Password updated successfully"}
