import logging
import time
from collections import Counter
from typing import Optional

from app.domain.models.product import CandidateList, Product
from app.domain.models.user import UserProfile
from app.domain.services.constants import SOURCE_COLLABORATIVE
from app.domain.services.generators import CandidateGenerator

logger = logging.getLogger(__name__)


class CollaborativeGenerator(CandidateGenerator):
    """
    "Users like you bought": products from the completed orders of similar users,
    ranked by how many of those users bought them.
    """

    source = SOURCE_COLLABORATIVE

    def __init__(self, *, similarity_repo, order_repo, product_repo, similar_users_k: int = 20):
        self.similarity_repo = similarity_repo
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.similar_users_k = similar_users_k

    async def generate(
        self,
        user: UserProfile,
        viewed_product: Optional[Product],
        max_candidates: int,
    ) -> CandidateList:
        t0 = time.perf_counter()
        similar = await self.similarity_repo.get_similar_users(user.user_id, self.similar_users_k)
        logger.debug("collaborative similar_users user_id=%s n=%s", user.user_id, len(similar))
        if not similar:
            return self.empty()

        by_user = await self.order_repo.get_completed_product_ids_for_users(similar)

        # One vote per similar user per product
        freq: Counter = Counter()
        for product_ids in by_user.values():
            freq.update(set(product_ids))
        if not freq:
            return self.empty()

        ranked_ids = [pid for pid, _ in sorted(freq.items(), key=lambda kv: (-kv[1], kv[0]))]

        # Hydrate beyond the cap: inactive products are dropped here
        # and owned ones later in the merge.
        prelimit = 2 * max_candidates + len(user.owned_product_ids)
        products = await self.product_repo.get_many_by_product_ids(ranked_ids[:prelimit])
        items = products[:max_candidates]

        logger.debug(
            "collaborative ranked user_id=%s distinct=%s kept=%s db_time=%.3fs",
            user.user_id, len(ranked_ids), len(items), time.perf_counter() - t0,
        )
        return CandidateList(source=self.source, items=items)
