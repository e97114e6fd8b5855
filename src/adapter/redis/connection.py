"""Redis connection management.

Redis backs the shared rate-limit counters (via slowapi's storage URI)
and is reported by the health endpoints.
"""

import logging
from typing import Optional

import redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

_client_cache: dict[str, redis.Redis] = {}
_failed_urls: set[str] = set()


def reset_client():
    _client_cache.clear()
    _failed_urls.clear()


def get_redis_client(redis_url: str) -> Optional[redis.Redis]:
    """Get Redis client connection with caching and reconnection logic.

    Connection strategy:
    1. Return cached client if healthy (ping succeeds)
    2. If cached client fails, attempt reconnection
    3. If initial connection failed (config issue), don't retry

    Returns:
        Redis client or None if not configured or connection fails
    """
    if not redis_url:
        return None

    cached = _client_cache.get(redis_url)
    if cached:
        try:
            cached.ping()
            return cached
        except Exception:
            _client_cache.pop(redis_url, None)
            logger.debug("[REDIS] Cached client failed ping, attempting reconnection...")

    if redis_url in _failed_urls:
        return None

    try:
        client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
        )
        client.ping()
        _client_cache[redis_url] = client
        logger.info("[REDIS] Connected successfully")
        return client
    except (RedisError, ValueError, OSError) as e:
        logger.error(f"[REDIS] Initial connection failed: {str(e)[:200]}")
        _failed_urls.add(redis_url)
        return None
