"""Shared Redis client factory for the access token blocklist."""

import redis
from django.conf import settings

_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a process-wide Redis client built lazily from settings.REDIS_URL."""

    global _client
    if _client is None:
        _client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
    return _client


__all__ = ["get_redis_client"]
