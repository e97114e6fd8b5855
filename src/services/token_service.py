"""Token service: signs and verifies access/refresh JWTs.

Access and refresh tokens are signed with two different secrets so a
leaked access secret cannot be used to mint refresh tokens (and vice
versa). Every token carries a random ``jti``; two tokens issued for the
same user in the same second still differ.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from domain.model.errors import AuthenticationError
from domain.model.token import TokenClaims, TokenPair, TokenType
from domain.model.user import User
from utils.config import Settings

logger = logging.getLogger(__name__)


class TokenService:
    def __init__(self, settings: Settings):
        self._settings = settings

    def _secret(self, token_type: TokenType) -> str:
        if token_type is TokenType.ACCESS:
            return self._settings.jwt_secret
        return self._settings.jwt_refresh_secret

    def _ttl(self, token_type: TokenType) -> int:
        if token_type is TokenType.ACCESS:
            return self._settings.access_token_ttl
        return self._settings.refresh_token_ttl

    def _sign(self, user: User, token_type: TokenType) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "email": user.email,
            "role": user.role,
            "type": token_type.value,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + timedelta(seconds=self._ttl(token_type)),
        }
        return jwt.encode(payload, self._secret(token_type), algorithm=self._settings.jwt_algorithm)

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self._sign(user, TokenType.ACCESS),
            refresh_token=self._sign(user, TokenType.REFRESH),
        )

    def _verify(self, token: str, token_type: TokenType) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret(token_type),
                algorithms=[self._settings.jwt_algorithm],
            )
        except JWTError as e:
            logger.debug(f"JWT verification failed: {e}")
            raise AuthenticationError(f"Invalid {token_type.value} token")

        sub = payload.get("sub")
        if not sub or payload.get("type") != token_type.value:
            raise AuthenticationError(f"Invalid {token_type.value} token")

        return TokenClaims(
            sub=sub,
            email=payload.get("email", ""),
            role=payload.get("role", ""),
            type=token_type,
        )

    def verify_access(self, token: str) -> TokenClaims:
        return self._verify(token, TokenType.ACCESS)

    def verify_refresh(self, token: str) -> TokenClaims:
        return self._verify(token, TokenType.REFRESH)
