from typing import Any, Protocol

from domain.model.user import User, UserStats


class UserRepository(Protocol):
    """Protocol defining the interface for user data access.

    Email uniqueness is enforced by the store itself: create() raises
    DuplicateError when the email (or provider identity) is already taken,
    even if a prior get_by_email() returned None.
    """
    def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str | None = None,
        provider: str = 'local',
        provider_id: str | None = None,
        avatar: str | None = None,
        bio: str | None = None,
        is_email_verified: bool = False,
    ) -> User | None:
        """Create a new user. Return User or None if creation failed."""
        ...

    def get_by_id(self, user_id: str) -> User | None:
        """Find a user by ID. Return User or None if not found."""
        ...

    def get_by_email(self, email: str) -> User | None:
        """Find a user by email. Return User or None if not found."""
        ...

    def get_by_provider(self, provider: str, provider_id: str) -> User | None:
        """Find a user by external provider identity."""
        ...

    def update(self, user_id: str, fields: dict[str, Any]) -> User | None:
        """Set arbitrary fields on a user. Return the updated User or None if not found."""
        ...

    def update_refresh_token(self, user_id: str, refresh_token: str | None) -> bool:
        """Overwrite (or clear, with None) the stored refresh token."""
        ...

    def rotate_refresh_token(self, user_id: str, expected: str, refresh_token: str) -> bool:
        """Replace the stored refresh token only if it still equals `expected`."""
        ...

    def update_last_login(self, user_id: str) -> bool:
        """Update the last login timestamp for a user. Return True if successful."""
        ...

    def delete(self, user_id: str) -> bool:
        """Delete a user. Return True if a user was removed."""
        ...

    def get_stats(self) -> UserStats | None:
        """Aggregate account counts."""
        ...
