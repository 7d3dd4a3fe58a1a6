"""Realtime notification of production log changes over Redis pub/sub.

Subscribers (dashboards, operator HUDs) use these messages as a hint to
re-read; the message carries identifiers only, never ledger values. When
Redis is not available nothing is published and clients fall back to
polling, which returns the same data.
"""

from __future__ import annotations

import json
from typing import Literal

import redis.asyncio as redis
from loguru import logger

from protrack.core.cache import clear_cache_pattern, get_redis_client
from protrack.core.config import settings

LogEvent = Literal["production_log.created", "production_log.updated"]

MONITOR_CACHE_PATTERN = "execution_board:*"


async def publish_log_event(
    event: LogEvent, *, log_id: str, file_number: str | None, platform: str
) -> bool:
    """Invalidate derived caches and notify subscribers. Returns True if published."""

    await clear_cache_pattern(MONITOR_CACHE_PATTERN)

    client = await get_redis_client()
    if client is None:
        return False
    message = json.dumps(
        {"event": event, "id": log_id, "file_number": file_number, "platform": platform}
    )
    try:
        await client.publish(settings.EVENTS_CHANNEL, message)
    except redis.RedisError as exc:
        logger.bind(event=event, log_id=log_id, error=str(exc)).warning("event_publish_failed")
        return False
    return True
