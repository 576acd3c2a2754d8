from functools import lru_cache

from redis.asyncio import Redis

from app.core.settings import settings

# Readiness checks must not hang on an unreachable redis
REDIS_CONNECT_TIMEOUT_SECONDS = 2.0


@lru_cache(maxsize=1)
def get_redis_client() -> Redis:
    """Shared client for readiness checks; closed on application shutdown."""
    return Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=REDIS_CONNECT_TIMEOUT_SECONDS,
    )
