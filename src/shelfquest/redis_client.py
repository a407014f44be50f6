"""Redis client used for gamification event fan-out."""

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _client  # noqa: PLW0603
    if _client:
        await _client.aclose()
        _client = None


def get_optional_redis() -> redis.Redis | None:
    """FastAPI dependency: the Redis client, or None when it is not configured.

    Event publishing is best-effort, so routes keep working without Redis.
    """
    return _client
