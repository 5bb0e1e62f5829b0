# app/domain/services/rerank_svc.py

from __future__ import annotations
from typing import List, Tuple, Optional, Dict, Any, Sequence
import json
import re
import logging
from time import monotonic as _now

from openai import AsyncOpenAI
from pydantic import BaseModel, Field, ValidationError

from app.domain.models.product import RankedItem
from app.domain.models.user import UserProfile
from app.domain.services.merge_svc import apply_ranking
from app.domain.services.prompts import system_prompt, user_task

logger = logging.getLogger(__name__)

# Completion token cap: ids + scores only
DEFAULT_MAX_TOKENS = 512

# =============================================================================
#                               VALIDATION SCHEMA
# =============================================================================

class RankItem(BaseModel):
    product_id: str = Field(..., min_length=1)
    score: float = Field(..., ge=0.0, le=1.0)

class RankResponse(BaseModel):
    """
    Full LLM output, matching prompts.py:
      {"user_id": "<USER.user_id>", "results": [RankItem, ...]}
    """
    user_id: str = Field(..., min_length=1)
    results: List[RankItem]

# Regex to strip code fences (``` or ```json) from LLM output
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.MULTILINE)

def _strip_fences(s: str) -> str:
    """Remove ``` or ```json fences the LLM might add."""
    return _CODE_FENCE_RE.sub("", s).strip()

def _parse_and_validate(json_text: str) -> List[str]:
    """
    Parse the LLM JSON, validate with Pydantic, return product ids best first.
    Raises ValueError on any issue.
    """
    try:
        parsed = json.loads(_strip_fences(json_text))
        model = RankResponse.model_validate(parsed)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid LLM JSON: {e}") from e
    # Stable sort: equal scores keep the model's order
    ranked = sorted(model.results, key=lambda it: it.score, reverse=True)
    return [it.product_id for it in ranked]

# =============================================================================
#                               COMPACT HELPERS
# =============================================================================

def _compact_user(user: UserProfile) -> Dict[str, Any]:
    data: Dict[str, Any] = {"user_id": user.user_id}
    if user.owned_categories:
        data["bought_categories"] = user.owned_categories[:8]
    if user.views:
        data["most_viewed"] = [
            {"product_id": pid, "views": user.views[pid].count}
            for pid in user.top_viewed(10)
        ]
    return data

def _compact_candidate(item: RankedItem) -> Dict[str, Any]:
    p = item.product
    data = {
        "product_id": p.product_id,
        "name": p.name,
        "category_id": p.category_id,
        "brand": p.brand,
        "price": p.current_price,
        "rating": p.rating,
        "source": item.source,
        "tags": (p.tags or [])[:6],
    }
    return {k: v for k, v in data.items() if v not in (None, "", [])}

def _json_minify(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=str)

# =============================================================================
#                               RERANKERS
# =============================================================================

class Reranker:
    """
    Pluggable re-ranking capability.
    `rerank` returns (ordered candidate ids, applied). It must never raise;
    when not applied, the returned order is the input order.
    """

    async def rerank(self, user: UserProfile, candidates: Sequence[RankedItem], variant: str) -> Tuple[List[str], bool]:
        raise NotImplementedError

class NoopReranker(Reranker):
    """Used when no scoring service is configured."""

    async def rerank(self, user, candidates, variant):
        return [c.product.product_id for c in candidates], False

class LLMReranker(Reranker):
    """
    Re-ranking through an OpenAI chat model:
    - compact user profile + candidate pool as minified JSON
    - schema validation of the JSON answer, one stricter retry on parse errors
    - fail-open: any error returns the input order with applied=False
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_s: float = 1.5,
        max_candidates: int = 40,
        max_retries: int = 1,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.timeout_s = timeout_s
        self.max_candidates = max_candidates
        self.max_retries = max_retries
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def _call_llm(self, messages: List[dict]) -> str:
        t0 = _now()
        resp = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=DEFAULT_MAX_TOKENS,
            temperature=0.0,
            timeout=self.timeout_s,
            response_format={"type": "json_object"},
        )
        dt = _now() - t0
        u = getattr(resp, "usage", None)
        logger.info(
            "rerank LLM call model=%s duration=%.3fs tokens(total=%s)",
            getattr(resp, "model", self.model), dt, getattr(u, "total_tokens", None),
        )
        return resp.choices[0].message.content or "{}"

    async def _rank_with_schema_retry(self, messages: List[dict]) -> List[str]:
        schema = RankResponse.model_json_schema()
        for attempt in range(self.max_retries + 1):
            content = await self._call_llm(messages)
            try:
                return _parse_and_validate(content)
            except ValueError as e:
                if attempt == self.max_retries:
                    raise
                logger.debug("rerank invalid JSON (attempt %s): %s", attempt + 1, e)
                messages = messages + [
                    {"role": "system",
                     "content": "Your previous response did not match the required JSON Schema. No prose, no code fences."},
                    {"role": "user",
                     "content": f"Validation error was:\n{e}\n\nJSON Schema you MUST follow exactly:\n{schema}"},
                ]
        raise RuntimeError("Unexpected fall-through in _rank_with_schema_retry")

    async def rerank(self, user, candidates, variant):
        ids = [c.product.product_id for c in candidates]
        if not candidates:
            return ids, False

        window = list(candidates)[: self.max_candidates]
        payload = {
            "user": _compact_user(user),
            "candidates": [_compact_candidate(c) for c in window],
            "task": user_task(variant),
        }
        user_json = _json_minify(payload)
        messages = [
            {"role": "system", "content": system_prompt()},
            {"role": "user", "content": user_json},
        ]
        logger.debug("rerank request user_id=%s size=%.1fKB candidates=%s", user.user_id, len(user_json) / 1024, len(window))

        try:
            ranked = await self._rank_with_schema_retry(messages)
        except Exception as e:
            logger.warning("rerank failed user_id=%s err=%s: %s", user.user_id, type(e).__name__, e)
            return ids, False

        ordered = apply_ranking(ids, ranked)
        known = set(ids)
        dropped = sum(1 for pid in ranked if pid not in known)
        if dropped:
            logger.warning("rerank discarded %s unknown product ids user_id=%s", dropped, user.user_id)
        return ordered, True
