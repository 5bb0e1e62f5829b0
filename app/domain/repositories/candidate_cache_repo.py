from typing import Optional, Iterable, List
from redis.asyncio import Redis
from app.domain.models.product import Product
import logging
import json

logger = logging.getLogger(__name__)

class CandidateCacheRepo:
    """
    Adapter for caching non-personalized candidate lists (e.g. trending) in Redis.
    Stores and retrieves lists of Product snapshots; a missing client disables it.
    """
    def __init__(self, redis: Optional[Redis], key_prefix: str):
        """
        Args:
            redis: Redis client instance (or None when Redis is not configured)
            key_prefix: Prefix for cache keys (e.g., 'trending')
        """
        self.cache = redis
        self.prefix = key_prefix

    def key(self, limit: int) -> str:
        return f"cand:{self.prefix}:{limit}"

    async def get(self, key: str) -> Optional[List[Product]]:
        """
        Retrieve a list of Product from cache by key.
        Returns None if not found, not configured or unreadable.
        """
        if self.cache is None:
            return None
        try:
            raw = await self.cache.get(key)
            if not raw:
                return None
            return [Product.model_validate(x) for x in json.loads(raw)]
        except Exception as e:
            logger.warning("candidate cache get error key=%s err=%s", key, e)
            return None

    async def set(self, key: str, items: Iterable[Product], ttl: int) -> None:
        """
        Store a list of Product in cache under the given key with a TTL.
        """
        if self.cache is None:
            return
        payload = [i.model_dump(mode="json") for i in items]
        try:
            await self.cache.set(key, json.dumps(payload), ex=ttl)
        except Exception as e:
            logger.warning("candidate cache set error key=%s err=%s", key, e)
