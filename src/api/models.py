"""Pydantic models for API request/response.

JSON bodies use camelCase keys (``firstName``, ``accessToken``); the
Python attributes stay snake_case.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from domain.model.user import AuthResult, PublicUser, User, UserStats, to_public_user


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Users ────────────────────────────────────────────────────


class UserResponse(CamelModel):
    """Sanitized user; never carries the password hash or refresh token."""
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    provider: str
    is_active: bool
    is_email_verified: bool
    created_at: datetime
    updated_at: datetime
    avatar: Optional[str] = None
    bio: Optional[str] = None
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserResponse":
        return cls(**asdict(user))

    @classmethod
    def from_domain(cls, user: User) -> "UserResponse":
        return cls.from_public(to_public_user(user))


class UpdateProfileRequest(CamelModel):
    """Fields a user may change on their own profile."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    avatar: Optional[str] = Field(None, max_length=2048)
    bio: Optional[str] = Field(None, max_length=2000)


class AdminUpdateUserRequest(UpdateProfileRequest):
    email: Optional[EmailStr] = None
    role: Optional[Literal["user", "admin"]] = None
    is_active: Optional[bool] = None
    is_email_verified: Optional[bool] = None


class UserStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    verified: int
    unverified: int

    @classmethod
    def from_domain(cls, stats: UserStats) -> "UserStatsResponse":
        return cls(**asdict(stats))


# ── Auth ─────────────────────────────────────────────────────


class RegisterRequest(CamelModel):
    """Request model for user registration."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    avatar: Optional[str] = Field(None, max_length=2048)
    bio: Optional[str] = Field(None, max_length=2000)


class LoginRequest(CamelModel):
    """Request model for user login."""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class AuthResponse(CamelModel):
    """Response model for authentication."""
    user: UserResponse
    access_token: str
    refresh_token: str

    @classmethod
    def from_result(cls, result: AuthResult) -> "AuthResponse":
        return cls(
            user=UserResponse.from_public(result.user),
            access_token=result.access_token,
            refresh_token=result.refresh_token,
        )


class MessageResponse(BaseModel):
    message: str
