"""Rate limiting for the auth endpoints (slowapi).

Counters live in Redis when REDIS_URL is set so every API worker shares
them; otherwise (and whenever Redis is unreachable) they fall back to
process memory.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from api.dependencies import get_settings

# Read once at import: the decorators in api.routes.auth bind the limit
# string when that module loads. THROTTLE_LIMIT and REDIS_URL therefore
# come from the process environment, and app.dependency_overrides[get_settings]
# does not reach them. Tests call limiter.reset() between cases instead.
_settings = get_settings()

AUTH_RATE_LIMIT = _settings.throttle_limit

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=_settings.redis_url or "memory://",
    in_memory_fallback_enabled=bool(_settings.redis_url),
)
