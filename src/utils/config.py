"""Application settings loaded from environment variables.

Settings are built once per process by ``get_settings()`` (see
api.dependencies) and injected into services, so tests can hand in
their own ``Settings`` instance instead of patching the environment.
"""

import os
import re
from dataclasses import dataclass

DEFAULT_JWT_SECRET = "dev-jwt-secret-change-me"
DEFAULT_JWT_REFRESH_SECRET = "dev-jwt-refresh-secret-change-me"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str | int) -> int:
    """Parse a lifetime like ``15m``, ``1h``, ``7d`` or ``3600`` into seconds."""
    if isinstance(value, int):
        if value <= 0:
            raise ValueError(f"Duration must be positive: {value}")
        return value

    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    seconds = int(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the API and auth services."""
    mongo_url: str | None = None
    database_name: str = "spak_communication"
    redis_url: str = ""

    jwt_secret: str = DEFAULT_JWT_SECRET
    jwt_refresh_secret: str = DEFAULT_JWT_REFRESH_SECRET
    jwt_algorithm: str = "HS256"
    access_token_ttl: int = 3600
    refresh_token_ttl: int = 7 * 86400
    bcrypt_rounds: int = 12

    github_client_id: str = ""
    github_client_secret: str = ""
    github_callback_url: str = "http://localhost:3001/auth/github/callback"

    frontend_url: str = "http://localhost:3000"
    throttle_limit: str = "100/minute"
    cors_origins: str = "*"
    log_level: str = "INFO"

    def __post_init__(self):
        if self.jwt_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must be different")

    @property
    def github_enabled(self) -> bool:
        return bool(self.github_client_id and self.github_client_secret)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            mongo_url=os.getenv("MONGO_URL") or None,
            database_name=os.getenv("MONGODB_DATABASE", "spak_communication"),
            redis_url=os.getenv("REDIS_URL", ""),
            jwt_secret=os.getenv("JWT_SECRET", DEFAULT_JWT_SECRET),
            jwt_refresh_secret=os.getenv("JWT_REFRESH_SECRET", DEFAULT_JWT_REFRESH_SECRET),
            access_token_ttl=parse_duration(os.getenv("JWT_EXPIRES_IN", "1h")),
            refresh_token_ttl=parse_duration(os.getenv("JWT_REFRESH_EXPIRES_IN", "7d")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
            github_client_id=os.getenv("GITHUB_CLIENT_ID", ""),
            github_client_secret=os.getenv("GITHUB_CLIENT_SECRET", ""),
            github_callback_url=os.getenv(
                "GITHUB_CALLBACK_URL", "http://localhost:3001/auth/github/callback"
            ),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
            throttle_limit=os.getenv("THROTTLE_LIMIT", "100/minute"),
            cors_origins=os.getenv("CORS_ORIGINS", "*"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
