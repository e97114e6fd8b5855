# domain/model/user.py

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    USER = 'user'
    ADMIN = 'admin'


LOCAL_PROVIDER = 'local'
GITHUB_PROVIDER = 'github'


@dataclass
class User:
    """Domain model representing a user."""
    id: str
    email: str
    first_name: str
    last_name: str
    created_at: datetime
    updated_at: datetime

    password_hash: str | None = None
    provider: str = LOCAL_PROVIDER
    provider_id: str | None = None
    avatar: str | None = None
    bio: str | None = None
    role: str = Role.USER.value
    is_active: bool = True
    is_email_verified: bool = False
    last_login_at: datetime | None = None
    refresh_token: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


# ── Value Objects ────────────────────────────────────────


@dataclass(frozen=True)
class PublicUser:
    """User fields that are safe to hand back to a caller."""
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
    avatar: str | None = None
    bio: str | None = None
    last_login_at: datetime | None = None


def to_public_user(user: User) -> PublicUser:
    """Project a User onto its public fields.

    The only place a User leaves the service layer; password_hash and
    refresh_token never appear in the result.
    """
    return PublicUser(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        provider=user.provider,
        is_active=user.is_active,
        is_email_verified=user.is_email_verified,
        created_at=user.created_at,
        updated_at=user.updated_at,
        avatar=user.avatar,
        bio=user.bio,
        last_login_at=user.last_login_at,
    )


@dataclass(frozen=True)
class ExternalIdentity:
    """Normalized identity returned by an OAuth provider."""
    provider: str
    provider_id: str
    email: str
    first_name: str = ''
    last_name: str = ''
    avatar: str | None = None


@dataclass(frozen=True)
class AuthResult:
    """Outcome of every successful authentication event."""
    user: PublicUser
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class UserStats:
    total: int
    active: int
    inactive: int
    verified: int
    unverified: int
