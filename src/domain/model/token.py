from dataclasses import dataclass
from enum import Enum


class TokenType(str, Enum):
    ACCESS = 'access'
    REFRESH = 'refresh'


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims carried by an access or refresh token."""
    sub: str
    email: str
    role: str
    type: TokenType


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str
