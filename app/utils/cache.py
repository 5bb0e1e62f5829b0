import json
import logging
from typing import Any, Optional
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

# Caches are an optimisation only: a missing client or a Redis error reads as a miss.

async def cache_get(redis: Optional[Redis], key: str) -> Any:
    if redis is None:
        return None
    try:
        if val := await redis.get(key):
            return json.loads(val)
    except Exception as e:
        logger.warning("cache get error key=%s err=%s", key, e)
    return None

async def cache_set(redis: Optional[Redis], key: str, value: Any, ex: int = 60) -> None:
    if redis is None:
        return
    try:
        await redis.set(key, json.dumps(value, default=str, separators=(",", ":")), ex=ex)
    except Exception as e:
        logger.warning("cache set error key=%s err=%s", key, e)
