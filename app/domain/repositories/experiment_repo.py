# app/domain/repositories/experiment_repo.py

from __future__ import annotations
import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis
from app.domain.models.experiment import ExperimentConfig
from app.utils.cache import cache_get, cache_set

logger = logging.getLogger(__name__)

class ExperimentRepo:
    """
    Experiment configurations from the 'experiments' collection, cached briefly in Redis.
    An allocation change becomes visible once the cache entry expires.
    """

    def __init__(self, db: AsyncIOMotorDatabase, redis: Optional[Redis] = None, *, ttl: int = 60,
                 collection_name: str = "experiments"):
        self.col = db[collection_name]
        self.redis = redis
        self.ttl = ttl

    @staticmethod
    def key(name: str) -> str:
        return f"experiment:{name}"

    async def get(self, name: str) -> Optional[ExperimentConfig]:
        cached = await cache_get(self.redis, self.key(name))
        if cached:
            return ExperimentConfig.model_validate(cached)

        doc = await self.col.find_one(
            {"name": name},
            {"_id": 0, "name": 1, "is_active": 1, "traffic_allocation": 1},
        )
        if not doc:
            logger.info("experiment not found name=%s", name)
            return None
        config = ExperimentConfig.model_validate(doc)
        await cache_set(self.redis, self.key(name), config.model_dump(), ex=self.ttl)
        return config
