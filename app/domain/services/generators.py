import logging
import time
from typing import Optional

from app.domain.models.product import CandidateList, Product
from app.domain.models.user import UserProfile

logger = logging.getLogger(__name__)


class CandidateGenerator:
    """
    One signal source producing a ranked candidate list.

    Subclasses implement `generate`; callers go through `safe_generate`, which
    never raises: a failing source contributes an empty list for this request.
    Cancellation (shared deadline elapsed) is not swallowed so the orchestrator
    can stop waiting.
    """

    source: str = ""

    async def generate(
        self,
        user: UserProfile,
        viewed_product: Optional[Product],
        max_candidates: int,
    ) -> CandidateList:
        raise NotImplementedError

    def empty(self) -> CandidateList:
        return CandidateList(source=self.source, items=[])

    async def safe_generate(
        self,
        user: UserProfile,
        viewed_product: Optional[Product],
        max_candidates: int,
    ) -> CandidateList:
        t0 = time.perf_counter()
        try:
            result = await self.generate(user, viewed_product, max_candidates)
        except Exception as e:
            logger.warning(
                "generator failed source=%s user_id=%s err=%s: %s",
                self.source, user.user_id, type(e).__name__, e,
            )
            return self.empty()
        logger.info(
            "generator done source=%s user_id=%s items=%s time=%.3fs",
            self.source, user.user_id, len(result.items), time.perf_counter() - t0,
        )
        return result
