"""User profile service: lookups and updates outside the auth flow."""

import logging
from typing import Any

from domain.model.errors import DomainError, NotFoundError, ValidationError
from domain.model.user import Role, User, UserStats
from port.user_repository import UserRepository

logger = logging.getLogger(__name__)

# Fields a user may change on their own profile
PROFILE_FIELDS = {'first_name', 'last_name', 'avatar', 'bio'}
# Admins may additionally change these
ADMIN_FIELDS = PROFILE_FIELDS | {'email', 'role', 'is_active', 'is_email_verified'}


def get_user(repo: UserRepository, user_id: str) -> User:
    """Raises NotFoundError if no user has this ID."""
    user = repo.get_by_id(user_id)
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")
    return user


def _apply(repo: UserRepository, user_id: str, changes: dict[str, Any], allowed: set[str]) -> User:
    fields = {k: v for k, v in changes.items() if k in allowed}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Fields not updatable: {', '.join(sorted(unknown))}")

    if 'role' in fields and fields['role'] not in {r.value for r in Role}:
        raise ValidationError(f"Unknown role: {fields['role']}")

    if not fields:
        return get_user(repo, user_id)

    user = repo.update(user_id, fields)
    if not user:
        raise NotFoundError(f"User with ID {user_id} not found")

    logger.info("User updated", extra={"userId": user_id, "fields": sorted(fields)})
    return user


def update_profile(repo: UserRepository, user_id: str, changes: dict[str, Any]) -> User:
    """Update the caller's own profile.

    Raises:
        ValidationError: a non-profile field was supplied
        NotFoundError: user no longer exists
    """
    return _apply(repo, user_id, changes, PROFILE_FIELDS)


def admin_update_user(repo: UserRepository, user_id: str, changes: dict[str, Any]) -> User:
    """Administrative update; may change email, role and account flags.

    Raises:
        DuplicateError: new email already in use
        ValidationError: unknown field or role
        NotFoundError: user does not exist
    """
    user = _apply(repo, user_id, changes, ADMIN_FIELDS)
    if changes.get('is_active') is False:
        # A deactivated account must not keep a usable refresh token
        repo.update_refresh_token(user_id, None)
    return user


def delete_user(repo: UserRepository, user_id: str) -> None:
    if not repo.delete(user_id):
        raise NotFoundError(f"User with ID {user_id} not found")
    logger.info("User deleted", extra={"userId": user_id})


def get_stats(repo: UserRepository) -> UserStats:
    stats = repo.get_stats()
    if stats is None:
        raise DomainError("Failed to compute user statistics")
    return stats
