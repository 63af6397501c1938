"""Shared Redis client for rate-limit counters.

Redis is optional. With an empty ``FMBN_REDIS_URL`` nothing connects and
:func:`get_redis` raises ``RuntimeError``, which the rate limiter reads as
"no limiting".
"""

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 20) -> bool:
    """Create the client for ``url``. Returns False, connecting nothing, for an empty url."""
    global _client  # noqa: PLW0603
    if not url:
        return False
    _client = redis.from_url(url, decode_responses=True, max_connections=max_connections)  # type: ignore[no-untyped-call]
    logger.info("redis_configured", max_connections=max_connections)
    return True


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    if _client is None:
        raise RuntimeError("Redis is not configured")
    return _client
