"""Password hashing and input limits."""

import bcrypt

from domain.model.errors import ValidationError

BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes; bcrypt>=5 raises ValueError beyond that
MAX_PASSWORD_BYTES = 72


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str | None) -> bool:
    """Check a password against a bcrypt hash. A missing hash never matches."""
    if not hashed:
        return False
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        return False
    try:
        return bcrypt.checkpw(encoded, hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in storage
        return False


def validate_password(password: str) -> None:
    """Reject passwords bcrypt cannot hash. No composition rules are imposed."""
    if not password:
        raise ValidationError("Password is required")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
