# app/domain/services/cross_sell_svc.py
import logging
from typing import Optional

from app.domain.models.product import CandidateList, Product
from app.domain.models.user import UserProfile
from app.domain.services.constants import SOURCE_CROSS_SELL
from app.domain.services.generators import CandidateGenerator

logger = logging.getLogger(__name__)


class CrossSellGenerator(CandidateGenerator):
    """
    Products complementary to the one being viewed: best-rated active products
    of the same category, the viewed product itself excluded.
    """

    source = SOURCE_CROSS_SELL

    def __init__(self, *, product_repo):
        self.product_repo = product_repo

    async def generate(
        self,
        user: UserProfile,
        viewed_product: Optional[Product],
        max_candidates: int,
    ) -> CandidateList:
        if viewed_product is None:
            logger.debug("cross_sell skipped user_id=%s (no viewed product)", user.user_id)
            return self.empty()
        if not viewed_product.category_id:
            logger.debug("cross_sell skipped product_id=%s (no category)", viewed_product.product_id)
            return self.empty()

        items = await self.product_repo.get_active_products_by_category(
            viewed_product.category_id,
            exclude_product_id=viewed_product.product_id,
            limit=max_candidates,
        )
        # Repo implementations may not honour the exclusion/cap exactly
        items = [p for p in items if p.product_id != viewed_product.product_id][:max_candidates]
        return CandidateList(source=self.source, items=items)
