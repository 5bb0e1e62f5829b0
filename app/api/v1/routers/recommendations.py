# app/api/v1/routers/recommendations.py
from fastapi import APIRouter, Depends, Query
from typing import Optional
import time
import logging

from app.api.deps import recommendation_engine
from app.api.v1.schemas.reco import RecommendationRequest, RecommendationResponse, RecommendationType
from app.domain.services.pipeline_svc import RecommendationEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommendations"])


async def _serve(engine: RecommendationEngine, req: RecommendationRequest) -> RecommendationResponse:
    start_time = time.perf_counter()
    served = await engine.recommend(
        user_id=req.user_id,
        viewed_product_id=req.viewed_product_id,
        recommendation_type=req.recommendation_type,
        limit=req.limit,
    )
    logger.info(
        "Response: recommendations user_id=%s, count=%s, variant=%s, elapsed_time=%.4fs",
        req.user_id, len(served.result.items), served.result.variant, time.perf_counter() - start_time,
    )
    return RecommendationResponse.from_served(served)


@router.post("/recommendations", response_model=RecommendationResponse)
async def create_recommendations(
    req: RecommendationRequest,
    engine: RecommendationEngine = Depends(recommendation_engine),
):
    """
    Multi-source recommendations for a user (optionally around a viewed product).
    Pipeline: experiment variant → collaborative / cross-sell / trending in parallel
    → optional LLM re-rank → dedup + ownership filter → event log.
    """
    logger.info(
        "Request: recommendations user_id=%s, viewed_product_id=%s, type=%s, limit=%s",
        req.user_id, req.viewed_product_id, req.recommendation_type, req.limit,
    )
    return await _serve(engine, req)


@router.get("/users/{user_id}/recommendations", response_model=RecommendationResponse)
async def get_recommendations(
    user_id: str,
    viewed_product_id: Optional[str] = Query(None),
    recommendation_type: RecommendationType = Query("general"),
    limit: Optional[int] = Query(None, ge=1, description="Defaults to the configured limit, capped at max_limit"),
    engine: RecommendationEngine = Depends(recommendation_engine),
):
    logger.info(
        "Request: recommendations user_id=%s, viewed_product_id=%s, type=%s, limit=%s",
        user_id, viewed_product_id, recommendation_type, limit,
    )
    req = RecommendationRequest(
        user_id=user_id,
        viewed_product_id=viewed_product_id,
        recommendation_type=recommendation_type,
        limit=limit,
    )
    return await _serve(engine, req)
