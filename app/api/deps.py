# app/api/deps.py
from functools import lru_cache
from fastapi import Depends, Request
from app.core.config import Settings, get_settings
from app.db.mongo import get_db
from app.db.redis import get_redis
from app.domain.repositories.candidate_cache_repo import CandidateCacheRepo
from app.domain.repositories.experiment_repo import ExperimentRepo
from app.domain.repositories.order_repo import OrderRepo
from app.domain.repositories.product_repo import ProductRepo
from app.domain.repositories.similarity_repo import SimilarityRepo
from app.domain.repositories.user_repo import UserRepo
from app.domain.services.collaborative_svc import CollaborativeGenerator
from app.domain.services.constants import SOURCE_COLLABORATIVE, SOURCE_CROSS_SELL, SOURCE_TRENDING
from app.domain.services.cross_sell_svc import CrossSellGenerator
from app.domain.services.event_log_svc import EventLogger
from app.domain.services.pipeline_svc import RecommendationEngine
from app.domain.services.rerank_svc import LLMReranker, NoopReranker, Reranker
from app.domain.services.trending_svc import TrendingGenerator

# Dependency for injecting the MongoDB database into endpoints/services
async def mongo_db(db = Depends(get_db)):
    return db

# Dependency for injecting the Redis client (None when not configured)
def redis_dep():
    return get_redis()

def settings_dep() -> Settings:
    return get_settings()

@lru_cache
def _reranker_for(api_key: str, model: str, timeout_ms: int, max_candidates: int) -> Reranker:
    if not api_key:
        return NoopReranker()
    return LLMReranker(
        api_key=api_key,
        model=model,
        timeout_s=timeout_ms / 1000,
        max_candidates=max_candidates,
    )

def reranker_dep(settings: Settings = Depends(settings_dep)) -> Reranker:
    # One client per configuration, shared across requests
    if not settings.rerank_enabled:
        return NoopReranker()
    return _reranker_for(
        settings.OPENAI_API_KEY,
        settings.OPENAI_RERANK_MODEL,
        settings.rerank_timeout_ms,
        settings.rerank_max_candidates,
    )

# The event logger is long-lived (it owns background writes): created in the lifespan
def event_logger_dep(request: Request) -> EventLogger:
    return request.app.state.event_logger

def recommendation_engine(
    db = Depends(mongo_db),
    redis = Depends(redis_dep),
    settings: Settings = Depends(settings_dep),
    reranker: Reranker = Depends(reranker_dep),
    event_logger: EventLogger = Depends(event_logger_dep),
) -> RecommendationEngine:
    product_repo = ProductRepo(db)
    order_repo = OrderRepo(db)
    generators = {
        SOURCE_COLLABORATIVE: CollaborativeGenerator(
            similarity_repo=SimilarityRepo(db),
            order_repo=order_repo,
            product_repo=product_repo,
            similar_users_k=settings.similar_users_k,
        ),
        SOURCE_CROSS_SELL: CrossSellGenerator(product_repo=product_repo),
        SOURCE_TRENDING: TrendingGenerator(
            product_repo=product_repo,
            cache=CandidateCacheRepo(redis, key_prefix=SOURCE_TRENDING),
            cache_ttl=settings.trending_cache_ttl,
        ),
    }
    return RecommendationEngine(
        settings=settings,
        user_repo=UserRepo(db),
        order_repo=order_repo,
        product_repo=product_repo,
        experiment_repo=ExperimentRepo(db, redis, ttl=settings.experiment_cache_ttl),
        generators=generators,
        reranker=reranker,
        event_logger=event_logger,
    )
