"""
Redis caching layer for GIS lookups.

TTLs:
  - Plot records by plot number: 7 days (land base changes rarely)
  - Area / range search results: 1 hour

The cache is best-effort: Redis missing or failing reads as a miss.
"""

from __future__ import annotations

import hashlib
import json
from typing import Optional

import redis.asyncio as redis

from hyperplot.config import settings

_redis_client: Optional[redis.Redis] = None

# TTLs in seconds
TTL_PLOT = 604800      # 7 days
TTL_SEARCH = 3600      # 1 hour


async def get_redis() -> Optional[redis.Redis]:
    """Get or create Redis client. Returns None if Redis is not configured."""
    global _redis_client
    if _redis_client is not None:
        return _redis_client

    if not settings.redis_url:
        return None

    try:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
        )
        await _redis_client.ping()
        return _redis_client
    except (redis.RedisError, OSError):
        _redis_client = None
        return None


def _make_key(prefix: str, identifier: str) -> str:
    return f"hyperplot:{prefix}:{identifier}"


def _hash_query(query: str) -> str:
    return hashlib.md5(query.encode()).hexdigest()


async def cache_get(prefix: str, identifier: str) -> Optional[dict | list]:
    """Get a cached value. Returns None on miss or Redis unavailable."""
    r = await get_redis()
    if not r:
        return None
    try:
        val = await r.get(_make_key(prefix, identifier))
    except (redis.RedisError, OSError):
        return None
    if val:
        return json.loads(val)
    return None


async def cache_set(prefix: str, identifier: str, data: dict | list, ttl: int = TTL_SEARCH) -> bool:
    """Set a cached value. Returns True on success."""
    r = await get_redis()
    if not r:
        return False
    try:
        await r.setex(_make_key(prefix, identifier), ttl, json.dumps(data, default=str))
        return True
    except (redis.RedisError, OSError):
        return False


# ──────────────────────────────────────────────────────────────────
# CONVENIENCE FUNCTIONS
# ──────────────────────────────────────────────────────────────────

async def get_cached_plot(plot_number: str) -> Optional[dict]:
    return await cache_get("plot", plot_number)


async def set_cached_plot(plot_number: str, data: dict):
    await cache_set("plot", plot_number, data, TTL_PLOT)


async def get_cached_search(query: str) -> Optional[list]:
    return await cache_get("search", _hash_query(query))


async def set_cached_search(query: str, data: list):
    await cache_set("search", _hash_query(query), data, TTL_SEARCH)
