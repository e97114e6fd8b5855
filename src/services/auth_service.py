"""Auth service: registration, login, OAuth login and token rotation.

Pure business logic with no HTTP dependencies.
Raises domain errors that route handlers map to HTTP status codes.
"""

import logging

from domain.model.errors import AuthenticationError, DomainError, DuplicateError, OAuthError
from domain.model.user import (
    GITHUB_PROVIDER,
    LOCAL_PROVIDER,
    AuthResult,
    ExternalIdentity,
    User,
    to_public_user,
)
from port.user_repository import UserRepository
from services.passwords import hash_password, validate_password, verify_password
from services.token_service import TokenService
from utils.config import Settings

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_DEACTIVATED = "Account is deactivated"
INVALID_REFRESH_TOKEN = "Invalid refresh token"
EMAIL_TAKEN = "User with this email already exists"
EMAIL_TAKEN_OAUTH = (
    "User with this email already exists. Please login with your existing account."
)


class AuthService:
    def __init__(self, repo: UserRepository, tokens: TokenService, settings: Settings):
        self.repo = repo
        self.tokens = tokens
        self.settings = settings

    # ── local accounts ───────────────────────────────────────

    def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        avatar: str | None = None,
        bio: str | None = None,
    ) -> AuthResult:
        """Register a local account and sign it in.

        Raises:
            DuplicateError: email already registered (including a lost insert race)
            ValidationError: password empty or longer than bcrypt accepts
        """
        if self.repo.get_by_email(email):
            raise DuplicateError(EMAIL_TAKEN)

        validate_password(password)
        password_hash = hash_password(password, rounds=self.settings.bcrypt_rounds)

        user = self.repo.create(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            provider=LOCAL_PROVIDER,
            avatar=avatar,
            bio=bio,
        )
        if not user:
            raise DomainError("Failed to create user")

        logger.info("User registered", extra={"userId": user.id, "email": email})
        return self._start_session(user)

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate with email and password.

        Unknown email, OAuth-only account and wrong password all fail with the
        same message so callers cannot probe which emails exist.

        Raises:
            AuthenticationError: invalid credentials or deactivated account
        """
        user = self.repo.get_by_email(email)
        if not user or not user.password_hash:
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not verify_password(password, user.password_hash):
            logger.info("Login rejected: wrong password", extra={"userId": user.id})
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not user.is_active:
            logger.info("Login rejected: account deactivated", extra={"userId": user.id})
            raise AuthenticationError(ACCOUNT_DEACTIVATED)

        logger.info("User logged in", extra={"userId": user.id, "email": email})
        return self._start_session(user)

    def validate_credentials(self, email: str, password: str) -> User | None:
        """Return the user for a valid email/password pair, else None. Issues no tokens."""
        user = self.repo.get_by_email(email)
        if not user or not user.is_active:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    # ── OAuth ────────────────────────────────────────────────

    def oauth_login(self, identity: ExternalIdentity) -> AuthResult:
        """Sign in (or sign up) with an external provider identity.

        An email already owned by another account is never linked
        automatically; the caller must sign in with that account instead.

        Raises:
            DuplicateError: the identity's email belongs to an existing account
            AuthenticationError: the linked account is deactivated
        """
        user = self.repo.get_by_provider(identity.provider, identity.provider_id)

        if user:
            if not user.is_active:
                logger.info("OAuth login rejected: account deactivated", extra={"userId": user.id})
                raise AuthenticationError(ACCOUNT_DEACTIVATED)
            logger.info(
                "User logged in via OAuth",
                extra={"userId": user.id, "provider": identity.provider},
            )
            return self._start_session(user)

        if self.repo.get_by_email(identity.email):
            logger.warning(
                "OAuth login rejected: email belongs to another account",
                extra={"email": identity.email, "provider": identity.provider},
            )
            raise DuplicateError(EMAIL_TAKEN_OAUTH)

        user = self.repo.create(
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            provider=identity.provider,
            provider_id=identity.provider_id,
            avatar=identity.avatar,
            is_email_verified=True,
        )
        if not user:
            raise DomainError("Failed to create user")

        logger.info(
            "User registered via OAuth",
            extra={"userId": user.id, "email": identity.email, "provider": identity.provider},
        )
        return self._start_session(user)

    def github_login(self, identity: ExternalIdentity) -> AuthResult:
        if identity.provider != GITHUB_PROVIDER:
            raise OAuthError(f"Expected a github identity, got {identity.provider!r}")
        return self.oauth_login(identity)

    # ── sessions ─────────────────────────────────────────────

    def refresh_tokens(self, refresh_token: str) -> AuthResult:
        """Exchange a refresh token for a new token pair.

        The presented token must be the one currently stored for the user.
        On success it is replaced, so it can never be used again.

        Raises:
            AuthenticationError: bad signature, expired, unknown/inactive user,
                or a token that was already rotated or revoked
        """
        try:
            claims = self.tokens.verify_refresh(refresh_token)
        except AuthenticationError:
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        user = self.repo.get_by_id(claims.sub)
        if not user or not user.is_active:
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        if user.refresh_token != refresh_token:
            logger.warning("Refresh token reuse or revoked token", extra={"userId": user.id})
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        pair = self.tokens.issue_pair(user)
        if not self.repo.rotate_refresh_token(user.id, refresh_token, pair.refresh_token):
            # Another request rotated the token first
            logger.warning("Refresh token rotated concurrently", extra={"userId": user.id})
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        logger.info("Tokens refreshed", extra={"userId": user.id})
        return AuthResult(
            user=to_public_user(user),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    def logout(self, user_id: str) -> None:
        self.repo.update_refresh_token(user_id, None)
        logger.info("User logged out", extra={"userId": user_id})

    def authenticate_access_token(self, access_token: str) -> User:
        """Resolve a bearer access token to an active user.

        Raises:
            AuthenticationError: token invalid, user missing or deactivated
        """
        claims = self.tokens.verify_access(access_token)
        user = self.repo.get_by_id(claims.sub)
        if not user:
            raise AuthenticationError("User not found")
        if not user.is_active:
            raise AuthenticationError(ACCOUNT_DEACTIVATED)
        return user

    def _start_session(self, user: User) -> AuthResult:
        """Record the login, issue a token pair and persist the refresh token."""
        self.repo.update_last_login(user.id)

        pair = self.tokens.issue_pair(user)
        if not self.repo.update_refresh_token(user.id, pair.refresh_token):
            raise DomainError("Failed to persist session")

        # Re-read so last_login_at reflects this session
        current = self.repo.get_by_id(user.id) or user
        return AuthResult(
            user=to_public_user(current),
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )
