"""
Pydantic models for user-related requests and responses.
"""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, validator


class Role(str, Enum):
    """Roles an identity can hold."""
    ADMIN = "ADMIN"
    PRIMARY = "PRIMARY"
    GUARDIAN = "GUARDIAN"
    SECURITY = "SECURITY"


class UserRegister(BaseModel):
    """Request model for self-registration (admins are seeded, never registered)."""
    email: EmailStr = Field(..., description="Login email")
    password: str = Field(..., min_length=8, description="Password (minimum 8 characters)")
    role: str = Field(..., description="PRIMARY, GUARDIAN or SECURITY")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=20, description="Phone number")

    @validator('email')
    def email_lowercase(cls, v):
        return v.lower()

    @validator('role')
    def role_registrable(cls, v):
        """Accept any casing, but only the self-service roles."""
        role = v.strip().upper()
        if role not in (Role.PRIMARY.value, Role.GUARDIAN.value, Role.SECURITY.value):
            raise ValueError('Invalid role specified')
        return role

    @validator('phone')
    def blank_phone_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class UserLogin(BaseModel):
    """Request model for email/password login."""
    email: EmailStr = Field(..., description="Login email")
    password: str = Field(..., min_length=1, description="Password")

    @validator('email')
    def email_lowercase(cls, v):
        return v.lower()


class UserResponse(BaseModel):
    """Response model for user data."""
    id: str
    email: str
    role: str
    first_name: str
    last_name: str
    phone: Optional[str]
    photo_url: Optional[str]
    is_approved: bool
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    """Response model for authentication tokens."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    user: UserResponse = Field(..., description="User information")
    message: str


class ApproveUserResponse(BaseModel):
    """Response model for an admin approval."""
    message: str
    user: UserResponse


def user_response_from_row(row) -> UserResponse:
    """Build a UserResponse from a users row (asyncpg Record or dict)."""
    return UserResponse(
        id=str(row["id"]),
        email=row["email"],
        role=row["role"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
        photo_url=row["photo_url"],
        is_approved=row["is_approved"],
        created_at=row["created_at"]
    )
