"""MongoDB implementation of UserRepository."""

import uuid
from datetime import datetime, timezone
from logging import getLogger
from typing import Any

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from adapter.mongodb.connection import USERS_COLLECTION_NAME
from domain.model.errors import DuplicateError
from domain.model.user import LOCAL_PROVIDER, Role, User, UserStats

logger = getLogger(__name__)

_IMMUTABLE_FIELDS = {'_id', 'id', 'created_at'}

EMAIL_TAKEN = "User with this email already exists"
PROVIDER_IDENTITY_TAKEN = "User with this provider identity already exists"


def _duplicate_message(e: DuplicateKeyError) -> str:
    """Name the unique index that collided (email or provider identity)."""
    key_pattern = (e.details or {}).get('keyPattern') or {}
    if 'provider_id' in key_pattern:
        return PROVIDER_IDENTITY_TAKEN
    return EMAIL_TAKEN


class MongoUserRepository:
    def __init__(self, db: Database):
        self.collection = db[USERS_COLLECTION_NAME]

    def ensure_indexes(self) -> bool:
        """Create indexes for users collection."""
        from adapter.mongodb.indexes import create_index_safe

        try:
            create_index_safe(self.collection, [('email', 1)], 'idx_users_email', unique=True)
            create_index_safe(
                self.collection,
                [('provider', 1), ('provider_id', 1)],
                'idx_users_provider_identity',
                unique=True,
                partialFilterExpression={'provider_id': {'$type': 'string'}},
            )
            create_index_safe(self.collection, [('created_at', -1)], 'idx_users_created_at')
            return True
        except Exception as e:
            logger.error("Failed to create users indexes", extra={"error": str(e)})
            return False

    def _to_domain(self, doc: dict) -> User:
        """Convert MongoDB document to User domain model."""
        return User(
            id=doc['_id'],
            email=doc['email'],
            first_name=doc.get('first_name', ''),
            last_name=doc.get('last_name', ''),
            created_at=doc['created_at'],
            updated_at=doc['updated_at'],
            password_hash=doc.get('password_hash'),
            provider=doc.get('provider', LOCAL_PROVIDER),
            provider_id=doc.get('provider_id'),
            avatar=doc.get('avatar'),
            bio=doc.get('bio'),
            role=doc.get('role', Role.USER.value),
            is_active=doc.get('is_active', True),
            is_email_verified=doc.get('is_email_verified', False),
            last_login_at=doc.get('last_login_at'),
            refresh_token=doc.get('refresh_token'),
            metadata=doc.get('metadata') or {},
        )

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
        """Create a new user and return the User object.

        Raises:
            DuplicateError: the unique email or provider index rejected the insert
        """
        user_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        user_doc = {
            '_id': user_id,
            'email': email,
            'first_name': first_name,
            'last_name': last_name,
            'provider': provider,
            'role': Role.USER.value,
            'is_active': True,
            'is_email_verified': is_email_verified,
            'created_at': now,
            'updated_at': now,
        }
        # Omit unset optionals so the partial provider index ignores local accounts
        optional = {
            'password_hash': password_hash,
            'provider_id': provider_id,
            'avatar': avatar,
            'bio': bio,
        }
        user_doc.update({k: v for k, v in optional.items() if v is not None})

        try:
            self.collection.insert_one(user_doc)
        except DuplicateKeyError as e:
            message = _duplicate_message(e)
            logger.warning(f"User creation failed: {message}", extra={"email": email, "provider": provider})
            raise DuplicateError(message)
        except PyMongoError as e:
            logger.error("Failed to create user", extra={"email": email, "error": str(e)})
            return None

        logger.info("User created", extra={"userId": user_id, "email": email, "provider": provider})
        return self._to_domain(user_doc)

    def update(self, user_id: str, fields: dict[str, Any]) -> User | None:
        """Set fields on a user and return the updated User, or None if not found."""
        changes = {k: v for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
        changes['updated_at'] = datetime.now(timezone.utc)
        try:
            doc = self.collection.find_one_and_update(
                {'_id': user_id},
                {'$set': changes},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as e:
            raise DuplicateError(_duplicate_message(e))
        except PyMongoError as e:
            logger.error("Failed to update user", extra={"userId": user_id, "error": str(e)})
            return None
        return self._to_domain(doc) if doc else None

    def update_refresh_token(self, user_id: str, refresh_token: str | None) -> bool:
        try:
            if refresh_token is None:
                update = {'$unset': {'refresh_token': ''}}
            else:
                update = {'$set': {'refresh_token': refresh_token}}
            result = self.collection.update_one({'_id': user_id}, update)
            return result.matched_count > 0
        except PyMongoError as e:
            logger.error("Failed to update refresh token", extra={"userId": user_id, "error": str(e)})
            return False

    def rotate_refresh_token(self, user_id: str, expected: str, refresh_token: str) -> bool:
        """Compare-and-set on the stored refresh token in a single update_one."""
        try:
            result = self.collection.update_one(
                {'_id': user_id, 'refresh_token': expected},
                {'$set': {'refresh_token': refresh_token}},
            )
            return result.modified_count > 0
        except PyMongoError as e:
            logger.error("Failed to rotate refresh token", extra={"userId": user_id, "error": str(e)})
            return False

    def update_last_login(self, user_id: str) -> bool:
        """Update the last login timestamp for a user. Return True if successful."""
        try:
            now = datetime.now(timezone.utc)
            result = self.collection.update_one(
                {'_id': user_id},
                {'$set': {'last_login_at': now, 'updated_at': now}}
            )
            if result.modified_count > 0:
                logger.debug("Updated last_login_at", extra={"userId": user_id})
                return True
            return False
        except PyMongoError as e:
            logger.error("Failed to update last_login_at", extra={"userId": user_id, "error": str(e)})
            return False

    def delete(self, user_id: str) -> bool:
        try:
            result = self.collection.delete_one({'_id': user_id})
            return result.deleted_count > 0
        except PyMongoError as e:
            logger.error("Failed to delete user", extra={"userId": user_id, "error": str(e)})
            return False

    # ── read operations ──────────────────────────────────────

    def get_by_email(self, email: str) -> User | None:
        """Find a user by email. Return User or None if not found."""
        try:
            doc = self.collection.find_one({'email': email})
            return self._to_domain(doc) if doc else None
        except PyMongoError as e:
            logger.error("Failed to get user by email", extra={"email": email, "error": str(e)})
            return None

    def get_by_id(self, user_id: str) -> User | None:
        """Find a user by ID. Return User or None if not found."""
        try:
            doc = self.collection.find_one({'_id': user_id})
            return self._to_domain(doc) if doc else None
        except PyMongoError as e:
            logger.error("Failed to get user by ID", extra={"userId": user_id, "error": str(e)})
            return None

    def get_by_provider(self, provider: str, provider_id: str) -> User | None:
        try:
            doc = self.collection.find_one({'provider': provider, 'provider_id': provider_id})
            return self._to_domain(doc) if doc else None
        except PyMongoError as e:
            logger.error(
                "Failed to get user by provider",
                extra={"provider": provider, "providerId": provider_id, "error": str(e)},
            )
            return None

    def get_stats(self) -> UserStats | None:
        try:
            total = self.collection.count_documents({})
            active = self.collection.count_documents({'is_active': True})
            verified = self.collection.count_documents({'is_email_verified': True})
        except PyMongoError as e:
            logger.error("Failed to count users", extra={"error": str(e)})
            return None
        return UserStats(
            total=total,
            active=active,
            inactive=total - active,
            verified=verified,
            unverified=total - verified,
        )
