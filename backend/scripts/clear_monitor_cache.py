"""Script to clear the cached execution monitor boards."""

import asyncio
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from protrack.core.cache import clear_cache_pattern, close_redis_client
from protrack.core.events import MONITOR_CACHE_PATTERN


async def clear_cache():
    print("Clearing execution monitor cache...")
    count = await clear_cache_pattern(MONITOR_CACHE_PATTERN)
    print(f"Cleared {count} cache entries")
    await close_redis_client()


if __name__ == "__main__":
    asyncio.run(clear_cache())
