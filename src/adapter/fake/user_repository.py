"""In-memory implementation of UserRepository for testing."""

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from domain.model.errors import DuplicateError
from domain.model.user import LOCAL_PROVIDER, User, UserStats

_IMMUTABLE_FIELDS = {'id', 'created_at', 'updated_at'}


class FakeUserRepository:
    def __init__(self):
        self.store: dict[str, User] = {}
        self._lock = threading.Lock()

    # ── write operations ─────────────────────────────────────

    def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str | None = None,
        provider: str = LOCAL_PROVIDER,
        provider_id: str | None = None,
        avatar: str | None = None,
        bio: str | None = None,
        is_email_verified: bool = False,
    ) -> User | None:
        with self._lock:
            if any(u.email == email for u in self.store.values()):
                raise DuplicateError("User with this email already exists")
            if provider_id is not None and any(
                u.provider == provider and u.provider_id == provider_id
                for u in self.store.values()
            ):
                raise DuplicateError("User with this provider identity already exists")

            user_id = uuid.uuid4().hex
            now = datetime.now(timezone.utc)

            user = User(
                id=user_id,
                email=email,
                first_name=first_name,
                last_name=last_name,
                created_at=now,
                updated_at=now,
                password_hash=password_hash,
                provider=provider,
                provider_id=provider_id,
                avatar=avatar,
                bio=bio,
                is_email_verified=is_email_verified,
            )
            self.store[user_id] = user
            return replace(user)

    def update(self, user_id: str, fields: dict[str, Any]) -> User | None:
        with self._lock:
            user = self.store.get(user_id)
            if not user:
                return None
            if 'email' in fields and any(
                u.email == fields['email'] and u.id != user_id for u in self.store.values()
            ):
                raise DuplicateError("User with this email already exists")

            changes = {k: v for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
            updated = replace(user, **changes, updated_at=datetime.now(timezone.utc))
            self.store[user_id] = updated
            return replace(updated)

    def update_refresh_token(self, user_id: str, refresh_token: str | None) -> bool:
        with self._lock:
            user = self.store.get(user_id)
            if not user:
                return False
            user.refresh_token = refresh_token
            return True

    def rotate_refresh_token(self, user_id: str, expected: str, refresh_token: str) -> bool:
        with self._lock:
            user = self.store.get(user_id)
            if not user or user.refresh_token != expected:
                return False
            user.refresh_token = refresh_token
            return True

    def update_last_login(self, user_id: str) -> bool:
        with self._lock:
            user = self.store.get(user_id)
            if not user:
                return False

            now = datetime.now(timezone.utc)
            user.last_login_at = now
            user.updated_at = now
            return True

    def delete(self, user_id: str) -> bool:
        with self._lock:
            return self.store.pop(user_id, None) is not None

    # ── read operations ──────────────────────────────────────

    def get_by_email(self, email: str) -> User | None:
        for user in list(self.store.values()):
            if user.email == email:
                return replace(user)
        return None

    def get_by_id(self, user_id: str) -> User | None:
        user = self.store.get(user_id)
        return replace(user) if user else None

    def get_by_provider(self, provider: str, provider_id: str) -> User | None:
        for user in list(self.store.values()):
            if user.provider == provider and user.provider_id == provider_id:
                return replace(user)
        return None

    def get_stats(self) -> UserStats | None:
        users = list(self.store.values())
        total = len(users)
        active = sum(1 for u in users if u.is_active)
        verified = sum(1 for u in users if u.is_email_verified)
        return UserStats(
            total=total,
            active=active,
            inactive=total - active,
            verified=verified,
            unverified=total - verified,
        )
