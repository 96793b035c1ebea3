"""Redis connection pool and the fixed-window counter used for rate limiting."""

import redis.asyncio as redis

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )


async def close_redis() -> None:
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client. Raises RuntimeError before init_redis()."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def incr_window(key: str, ttl_seconds: int) -> int:
    """Increment a window counter and (re)arm its expiry. Returns the new count."""
    pipe = get_redis().pipeline()
    pipe.incr(key)
    pipe.expire(key, ttl_seconds)
    count, _ = await pipe.execute()
    return int(count)


async def ping_redis() -> str:
    """Readiness check result: "ok" or an error description."""
    try:
        await get_redis().ping()
    except (RuntimeError, redis.RedisError) as exc:
        return f"error: {exc}"
    return "ok"
