"""
Redis client for chart caching.

Provides helpers for creating Redis connections, reading and writing cached
JSON payloads, and invalidating a device's chart entries after a mutation.
Every operation is best-effort: connection failures are logged but do not
propagate exceptions, and an empty REDIS_URL disables caching entirely.

CHANGELOG:
- 2026-10-11: Initial creation (STORY-110)

TODO:
- None
"""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

__all__ = [
    "chart_cache_key",
    "get_cached_json",
    "get_redis",
    "invalidate_device_cache",
    "set_cached_json",
]


def chart_cache_key(device_id: str, resolution: str, metric: str) -> str:
    return f"chart:{device_id}:{resolution}:{metric}"


async def get_redis(url: str) -> redis.Redis:
    """Create and return an async Redis client for *url*.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(url)


async def get_cached_json(url: str, key: str) -> Any | None:
    """Return the decoded payload cached under *key*, or None on miss or failure."""
    if not url:
        return None
    try:
        client = await get_redis(url)
        try:
            cached = await client.get(key)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis read failed for key %s", key, exc_info=True)
        return None

    if cached is None:
        return None
    try:
        return json.loads(cached)
    except ValueError:
        logger.warning("Discarding undecodable cache entry %s", key)
        return None


async def set_cached_json(url: str, key: str, value: Any, ttl_s: int) -> None:
    """Cache *value* as JSON under *key* for *ttl_s* seconds."""
    if not url:
        return
    try:
        client = await get_redis(url)
        try:
            await client.set(key, json.dumps(value), ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", key, exc_info=True)


async def invalidate_device_cache(url: str, device_id: str) -> None:
    """Delete every cached chart of a device.

    Args:
        url: Redis URL; empty means caching is disabled.
        device_id: The device whose entries should be cleared.
    """
    if not url:
        return
    try:
        client = await get_redis(url)
        try:
            keys = [key async for key in client.scan_iter(match=f"chart:{device_id}:*")]
            if keys:
                await client.delete(*keys)
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache for device %s",
            device_id,
            exc_info=True,
        )
