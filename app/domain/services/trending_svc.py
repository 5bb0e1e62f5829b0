import logging
import time
from typing import Optional

from app.domain.models.product import CandidateList, Product
from app.domain.models.user import UserProfile
from app.domain.repositories.candidate_cache_repo import CandidateCacheRepo
from app.domain.services.constants import SOURCE_TRENDING
from app.domain.services.generators import CandidateGenerator

logger = logging.getLogger(__name__)


class TrendingGenerator(CandidateGenerator):
    """
    Recently created active products, newest first. Recency stands in for
    order-volume trending and makes this the guaranteed fallback source: it only
    comes back empty when the catalog is empty.

    The list is the same for every user, so it is cached in Redis for a few minutes.
    """

    source = SOURCE_TRENDING

    def __init__(self, *, product_repo, cache: Optional[CandidateCacheRepo] = None, cache_ttl: int = 300):
        self.product_repo = product_repo
        self.cache = cache
        self.cache_ttl = cache_ttl

    async def generate(
        self,
        user: UserProfile,
        viewed_product: Optional[Product],
        max_candidates: int,
    ) -> CandidateList:
        cache_key = self.cache.key(max_candidates) if self.cache else None
        if cache_key:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                logger.debug("trending cache_hit key=%s items=%s", cache_key, len(cached))
                return CandidateList(source=self.source, items=cached[:max_candidates])

        db_t0 = time.perf_counter()
        items = await self.product_repo.get_recent_active_products(limit=max_candidates)
        logger.debug("trending db_ok items=%s db_time=%.3fs", len(items), time.perf_counter() - db_t0)

        if cache_key and items:
            await self.cache.set(cache_key, items, ttl=self.cache_ttl)
        return CandidateList(source=self.source, items=items[:max_candidates])
