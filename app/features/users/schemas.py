"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.organizations.schemas import MembershipResponse


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)


class RegisterRequest(UserBase):
    """Schema for registering with email and password."""
    password: str = Field(..., min_length=8, max_length=128)


class LoginRequest(BaseModel):
    """Schema for email/password login."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class AppwriteLoginRequest(BaseModel):
    """Schema for login with an Appwrite session JWT."""
    jwt: str = Field(..., min_length=1, description="JWT issued by Appwrite for the signed-in user")


class UserUpdate(BaseModel):
    """Schema for updating user information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    avatar: str | None = Field(None, max_length=500)


class UserResponse(UserBase):
    """Schema for user responses."""
    id: int
    avatar: str | None = None
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProfileResponse(UserResponse):
    """Current user with the organizations and roles they hold."""
    memberships: list[MembershipResponse] = []


class LoginResponse(BaseModel):
    """Bearer token plus the signed-in user's profile."""
    access_token: str
    token_type: str = "bearer"
    user: ProfileResponse
