"""Redis connection pool.

Redis backs rate limiting and the short-lived caches only, so it is
optional: with an empty URL nothing is initialised and callers of
``get_redis_optional`` run uncached and unthrottled.
"""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool; an empty URL leaves Redis disabled."""
    global _pool  # noqa: PLW0603
    if not url:
        return
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis_optional() -> redis.Redis | None:
    """The Redis client, or None when Redis is disabled (FastAPI dependency)."""
    return _pool
