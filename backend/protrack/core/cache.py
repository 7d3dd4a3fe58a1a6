"""Redis caching utilities with in-memory fallback.

Only derived read models (the execution monitor board) are cached. They are
recomputable from the production log table at any time, so losing Redis
costs latency, never correctness.
"""

from __future__ import annotations

import asyncio
import fnmatch
import hashlib
import json
import time
from typing import Any, Dict, Optional, Tuple

import redis.asyncio as redis
from loguru import logger

from protrack.core.config import settings

_redis_client: Optional[redis.Redis] = None
_redis_checked: bool = False

# Structure: {key: (value, expiry_timestamp)}
_memory_cache: Dict[str, Tuple[Any, float]] = {}
_MEMORY_CACHE_MAX_SIZE = 1000


async def get_redis_client() -> Optional[redis.Redis]:
    """Return a connected client, or ``None`` when Redis is disabled or unreachable.

    The connection is attempted once per process; an unreachable server is
    not retried on every request.
    """

    global _redis_client, _redis_checked

    if not settings.REDIS_ENABLED:
        return None
    if _redis_checked:
        return _redis_client

    _redis_checked = True
    client = redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        password=settings.REDIS_PASSWORD,
        decode_responses=True,
        socket_connect_timeout=0.5,
        socket_timeout=0.5,
    )
    try:
        await asyncio.wait_for(client.ping(), timeout=0.5)
    except (redis.RedisError, OSError, asyncio.TimeoutError) as exc:
        logger.bind(host=settings.REDIS_HOST, error=str(exc)).warning("cache_unavailable")
        await client.aclose()
        return None
    _redis_client = client
    logger.bind(host=settings.REDIS_HOST).info("cache_connected")
    return _redis_client


async def close_redis_client() -> None:
    global _redis_client, _redis_checked
    if _redis_client is not None:
        await _redis_client.aclose()
    _redis_client = None
    _redis_checked = False


def generate_cache_key(prefix: str, **kwargs: Any) -> str:
    """Generate a cache key from prefix and keyword arguments."""

    key_str = f"{prefix}:{json.dumps(sorted(kwargs.items()), sort_keys=True, default=str)}"
    if len(key_str) > 200:
        key_str = f"{prefix}:{hashlib.sha256(key_str.encode()).hexdigest()}"
    return key_str


def _get_memory_cache(key: str) -> Optional[Any]:
    entry = _memory_cache.get(key)
    if entry is None:
        return None
    value, expiry = entry
    if expiry and time.time() > expiry:
        del _memory_cache[key]
        return None
    return value


def _set_memory_cache(key: str, value: Any, ttl: int) -> None:
    if len(_memory_cache) >= _MEMORY_CACHE_MAX_SIZE:
        # Drop the oldest 10% (dicts keep insertion order).
        for stale in list(_memory_cache)[: _MEMORY_CACHE_MAX_SIZE // 10]:
            del _memory_cache[stale]
    _memory_cache[key] = (value, time.time() + ttl if ttl > 0 else 0)


async def get_cache(key: str) -> Optional[Any]:
    """Get value from cache (Redis or in-memory fallback)."""

    client = await get_redis_client()
    if client is not None:
        try:
            value = await asyncio.wait_for(client.get(key), timeout=0.1)
            if value:
                return json.loads(value)
        except (redis.RedisError, asyncio.TimeoutError):
            pass
    return _get_memory_cache(key)


async def set_cache(key: str, value: Any, ttl: int) -> None:
    """Store a JSON-serialisable value in Redis (if available) and in memory."""

    client = await get_redis_client()
    if client is not None:
        try:
            await client.setex(key, ttl, json.dumps(value, default=str))
        except redis.RedisError as exc:
            logger.bind(key=key, error=str(exc)).warning("cache_write_failed")
    _set_memory_cache(key, value, ttl)


async def clear_cache_pattern(pattern: str) -> int:
    """Clear all cache keys matching a glob pattern (Redis and in-memory)."""

    deleted_count = 0
    client = await get_redis_client()
    if client is not None:
        try:
            keys = [key async for key in client.scan_iter(match=pattern)]
            if keys:
                deleted_count += await client.delete(*keys)
        except redis.RedisError as exc:
            logger.bind(pattern=pattern, error=str(exc)).warning("cache_clear_failed")

    for key in [k for k in _memory_cache if fnmatch.fnmatch(k, pattern)]:
        del _memory_cache[key]
        deleted_count += 1
    return deleted_count
