"""
Pydantic schemas for registration and login.
"""
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.features.users.auth import check_password_length
from app.features.users.schemas import UserResponse


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    organization_id: str = Field(..., description="Existing, active organization to join")

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
