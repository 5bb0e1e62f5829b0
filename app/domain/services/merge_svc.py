import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from app.domain.models.product import CandidateList, RankedItem, RecommendationResult
from app.domain.services.constants import ALL_SOURCES, SOURCE_PRIORITY, VARIANT_CONTROL

logger = logging.getLogger(__name__)


def apply_ranking(candidate_ids: Sequence[str], ranked_ids: Iterable[str]) -> List[str]:
    """
    Order `candidate_ids` by an external ranking.
    - ids unknown to the candidate set are dropped
    - duplicates in the ranking are collapsed
    - candidates the ranking left out keep their relative order at the end
    """
    known = set(candidate_ids)
    ordered: List[str] = []
    seen = set()
    for pid in ranked_ids:
        if pid in known and pid not in seen:
            seen.add(pid)
            ordered.append(pid)
    ordered.extend(pid for pid in candidate_ids if pid not in seen)
    return ordered


def _by_source(candidate_lists: Iterable[CandidateList]) -> Dict[str, CandidateList]:
    lists: Dict[str, CandidateList] = {}
    for cl in candidate_lists:
        lists.setdefault(cl.source, cl)
    return lists


def build_pool(
    candidate_lists: Iterable[CandidateList],
    owned_ids: Iterable[str],
    variant: str,
) -> List[RankedItem]:
    """
    Deduplicated, ownership-filtered candidates in the variant's source priority.
    Each product is attributed to the first source (in priority order) that emitted it.
    """
    lists = _by_source(candidate_lists)
    owned = set(owned_ids)
    priority = SOURCE_PRIORITY.get(variant, SOURCE_PRIORITY[VARIANT_CONTROL])
    # Unknown sources, if any, go last in their given order
    order = list(priority) + [s for s in lists if s not in priority]

    seen = set()
    pool: List[RankedItem] = []
    for source in order:
        cl = lists.get(source)
        if cl is None:
            continue
        for product in cl.items:
            pid = product.product_id
            if pid in owned or pid in seen:
                continue
            seen.add(pid)
            pool.append(RankedItem(product=product, source=source))
    return pool


def merge(
    candidate_lists: Iterable[CandidateList],
    owned_ids: Iterable[str],
    limit: int,
    variant: str,
    ranked_ids: Optional[Sequence[str]] = None,
) -> RecommendationResult:
    """
    Combine generator outputs into the final recommendation list.

    When `ranked_ids` is given (the re-ranker ran) its order takes precedence over
    source priority. The result is truncated to `limit` and never padded.
    """
    pool = build_pool(candidate_lists, owned_ids, variant)
    rerank_applied = ranked_ids is not None

    if rerank_applied:
        by_id: Mapping[str, RankedItem] = {i.product.product_id: i for i in pool}
        order = apply_ranking([i.product.product_id for i in pool], ranked_ids)
        pool = [by_id[pid] for pid in order]

    items = pool[:max(limit, 0)]

    source_counts = {s: 0 for s in ALL_SOURCES}
    for item in items:
        source_counts[item.source] = source_counts.get(item.source, 0) + 1

    logger.debug(
        "merge variant=%s pool=%s served=%s counts=%s rerank=%s",
        variant, len(pool), len(items), source_counts, rerank_applied,
    )
    return RecommendationResult(
        items=items,
        source_counts=source_counts,
        variant=variant,
        rerank_applied=rerank_applied,
        total_considered=len(pool),
    )
