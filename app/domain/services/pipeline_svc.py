import asyncio
import logging
import time
from collections import Counter
from enum import Enum
from typing import Dict, List, Mapping, Optional, Set, Tuple

from app.core.config import Settings
from app.core.errors import DependencyUnavailableError, InvalidRequestError, UserNotFoundError
from app.domain.models.event import RecommendationEvent
from app.domain.models.product import CandidateList, Product, RankedItem, ServedRecommendation
from app.domain.models.user import UserProfile
from app.domain.services.constants import ALL_SOURCES, SOURCES_BY_TYPE, TYPE_GENERAL
from app.domain.services.event_log_svc import EventLogger
from app.domain.services.experiment_svc import assign_variant
from app.domain.services.generators import CandidateGenerator
from app.domain.services.merge_svc import build_pool, merge
from app.domain.services.rerank_svc import Reranker

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    INIT = "init"
    ALLOCATING = "allocating"
    GENERATING = "generating"
    RERANKING = "reranking"
    MERGING = "merging"
    LOGGING = "logging"
    DONE = "done"
    ERRORED = "errored"


class RecommendationEngine:
    """
    Request lifecycle for multi-source recommendations.

    High-level flow:
      1) Init: validate input, load the user snapshot (ownership, views) and the viewed product.
      2) Allocating: resolve the experiment variant (bounded lookup, falls back to control).
      3) Generating: one task per generator under a shared deadline; late or failed
         sources count as empty, results are keyed by source.
      4) Reranking: only for variants listed in `rerank_variants`, bounded by its own timeout.
      5) Merging: dedup, ownership filter, variant priority (or re-rank order), truncate.
      6) Logging: schedule the event write without waiting for it.

    Only input errors (and an unreadable ownership snapshot) raise; every source
    failure degrades toward a trending-only or empty result.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        user_repo,
        order_repo,
        product_repo,
        experiment_repo,
        generators: Mapping[str, CandidateGenerator],
        reranker: Reranker,
        event_logger: EventLogger,
    ):
        self.settings = settings
        self.user_repo = user_repo
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.experiment_repo = experiment_repo
        self.generators = dict(generators)
        self.reranker = reranker
        self.event_logger = event_logger

    # ------------------------------------------------------------------ helpers

    @staticmethod
    def _enter(state: PipelineState, user_id: Optional[str]) -> PipelineState:
        logger.debug("pipeline state=%s user_id=%s", state.value, user_id)
        return state

    def _resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return min(self.settings.default_limit, self.settings.max_limit)
        if limit <= 0:
            raise InvalidRequestError("limit must be a positive integer", {"limit": limit})
        return min(limit, self.settings.max_limit)

    async def _load_profile(self, user_id: str) -> UserProfile:
        owned_res, views_res = await asyncio.gather(
            self.order_repo.get_completed_product_ids(user_id),
            self.user_repo.get_view_history(user_id),
            return_exceptions=True,
        )
        # Without ownership we cannot keep purchased items out of the result
        if isinstance(owned_res, BaseException):
            raise DependencyUnavailableError("order history", owned_res)
        if isinstance(views_res, BaseException):
            logger.warning("view history unavailable user_id=%s err=%s", user_id, views_res)
            views_res = {}
        return UserProfile(user_id=user_id, owned_product_ids=frozenset(owned_res), views=views_res)

    async def _load_viewed_product(self, product_id: Optional[str]) -> Optional[Product]:
        if not product_id:
            return None
        try:
            product = await self.product_repo.get_by_product_id(product_id)
        except Exception as e:
            logger.warning("viewed product lookup failed product_id=%s err=%s", product_id, e)
            return None
        if product is None or not product.is_active:
            logger.info("viewed product missing or inactive product_id=%s", product_id)
            return None
        return product

    async def _resolve_variant(self, user_id: str) -> str:
        name = self.settings.experiment_name
        try:
            experiment = await asyncio.wait_for(
                self.experiment_repo.get(name),
                timeout=self.settings.experiment_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "experiment lookup timed out name=%s timeout_ms=%s -> control",
                name, self.settings.experiment_timeout_ms,
            )
            experiment = None
        except Exception as e:
            logger.warning("experiment lookup failed name=%s err=%s -> control", name, e)
            experiment = None
        return assign_variant(experiment, user_id)

    async def _generate(
        self,
        sources: List[str],
        user: UserProfile,
        viewed: Optional[Product],
        max_candidates: int,
    ) -> List[CandidateList]:
        tasks: Dict[str, asyncio.Task] = {
            src: asyncio.create_task(self.generators[src].safe_generate(user, viewed, max_candidates))
            for src in sources
            if src in self.generators
        }
        done: Set[asyncio.Task] = set()
        if tasks:
            done, pending = await asyncio.wait(
                tasks.values(), timeout=self.settings.generator_timeout_ms / 1000
            )
            for task in pending:
                task.cancel()

        # Fixed, source-keyed collection: completion order never matters
        lists: List[CandidateList] = []
        for src in ALL_SOURCES:
            task = tasks.get(src)
            if task is None:
                continue
            if task in done and not task.cancelled() and task.exception() is None:
                lists.append(task.result())
            else:
                logger.warning(
                    "generator timed out or failed source=%s user_id=%s deadline_ms=%s",
                    src, user.user_id, self.settings.generator_timeout_ms,
                )
                lists.append(CandidateList(source=src, items=[]))
        return lists

    async def _rerank(self, user: UserProfile, pool: List[RankedItem], variant: str) -> Tuple[List[str], bool]:
        # Profile enrichment shares the re-rank deadline
        profile = await self._with_owned_categories(user)
        return await self.reranker.rerank(profile, pool, variant)

    async def _with_owned_categories(self, user: UserProfile) -> UserProfile:
        if not user.owned_product_ids:
            return user
        try:
            owned = await self.product_repo.get_many_by_product_ids(sorted(user.owned_product_ids), active_only=False)
        except Exception as e:
            logger.debug("owned categories unavailable user_id=%s err=%s", user.user_id, e)
            return user
        counts = Counter(p.category_id for p in owned if p.category_id)
        categories = [c for c, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))]
        return user.model_copy(update={"owned_categories": categories})

    # ------------------------------------------------------------------ public API

    async def recommend(
        self,
        *,
        user_id: str,
        viewed_product_id: Optional[str] = None,
        recommendation_type: str = TYPE_GENERAL,
        limit: Optional[int] = None,
    ) -> ServedRecommendation:
        t0 = time.perf_counter()
        self._enter(PipelineState.INIT, user_id)
        try:
            if not user_id or not user_id.strip():
                raise InvalidRequestError("user_id is required")
            if recommendation_type not in SOURCES_BY_TYPE:
                raise InvalidRequestError(
                    f"Unknown recommendation_type '{recommendation_type}'",
                    {"allowed": sorted(SOURCES_BY_TYPE)},
                )
            limit = self._resolve_limit(limit)
            try:
                known = await self.user_repo.exists(user_id)
            except Exception as e:
                raise DependencyUnavailableError("user store", e) from e
            if not known:
                raise UserNotFoundError(user_id)

            user, viewed = await asyncio.gather(
                self._load_profile(user_id),
                self._load_viewed_product(viewed_product_id),
            )
        except Exception:
            self._enter(PipelineState.ERRORED, user_id)
            raise

        self._enter(PipelineState.ALLOCATING, user_id)
        variant = await self._resolve_variant(user_id)

        self._enter(PipelineState.GENERATING, user_id)
        sources = list(SOURCES_BY_TYPE[recommendation_type])
        max_candidates = limit * max(self.settings.candidate_multiplier, 1)
        lists = await self._generate(sources, user, viewed, max_candidates)

        ranked_ids = None
        if self.settings.rerank_enabled and variant in self.settings.rerank_variants:
            pool = build_pool(lists, user.owned_product_ids, variant)
            if pool:
                self._enter(PipelineState.RERANKING, user_id)
                try:
                    ordered, applied = await asyncio.wait_for(
                        self._rerank(user, pool, variant),
                        timeout=self.settings.rerank_timeout_ms / 1000,
                    )
                except asyncio.TimeoutError:
                    logger.warning("rerank timed out user_id=%s timeout_ms=%s", user_id, self.settings.rerank_timeout_ms)
                    ordered, applied = None, False
                except Exception as e:
                    logger.warning("rerank failed user_id=%s err=%s", user_id, e)
                    ordered, applied = None, False
                if applied:
                    ranked_ids = ordered

        self._enter(PipelineState.MERGING, user_id)
        result = merge(lists, user.owned_product_ids, limit, variant, ranked_ids=ranked_ids)

        self._enter(PipelineState.LOGGING, user_id)
        event = RecommendationEvent(
            user_id=user_id,
            experiment=self.settings.experiment_name,
            variant=variant,
            recommendation_type=recommendation_type,
            product_ids=result.product_ids,
            context={
                "source_counts": result.source_counts,
                "rerank_applied": result.rerank_applied,
                "total_considered": result.total_considered,
                "viewed_product_id": viewed_product_id,
            },
        )
        self.event_logger.log_served(event)

        state = self._enter(PipelineState.DONE, user_id)
        logger.info(
            "recommend done user_id=%s type=%s variant=%s items=%s counts=%s rerank=%s state=%s total_time=%.3fs",
            user_id, recommendation_type, variant, len(result.items), result.source_counts,
            result.rerank_applied, state.value, time.perf_counter() - t0,
        )
        return ServedRecommendation(
            result=result,
            event_id=event.event_id,
            experiment=self.settings.experiment_name,
            recommendation_type=recommendation_type,
        )
