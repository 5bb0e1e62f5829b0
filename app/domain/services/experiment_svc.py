import hashlib
import logging
import math
from numbers import Real
from typing import Dict, Optional

from app.domain.models.experiment import ExperimentConfig
from app.domain.services.constants import ALL_VARIANTS, VARIANT_CONTROL

logger = logging.getLogger(__name__)

# Bucket resolution: 10_000 slots -> percentages with two decimals
_SLOTS = 10_000


def bucket_for(experiment_name: str, user_id: str) -> float:
    """
    Stable position of a user in [0, 100) for one experiment.
    Salting with the experiment name keeps assignments independent across experiments.
    """
    digest = hashlib.sha256(f"{experiment_name}:{user_id}".encode("utf-8")).hexdigest()
    return (int(digest[:15], 16) % _SLOTS) / (_SLOTS / 100)


def _validated_allocation(experiment: ExperimentConfig) -> Optional[Dict[str, float]]:
    """Return the allocation as floats, or None if it cannot be trusted."""
    allocation: Dict[str, float] = {}
    for variant, pct in experiment.traffic_allocation.items():
        if variant not in ALL_VARIANTS:
            return None
        if isinstance(pct, bool) or not isinstance(pct, Real):
            return None
        pct = float(pct)
        if math.isnan(pct) or pct < 0:
            return None
        allocation[variant] = pct
    if sum(allocation.values()) > 100:
        return None
    return allocation


def assign_variant(experiment: Optional[ExperimentConfig], user_id: str) -> str:
    """
    Deterministically map a user to a variant of `experiment`.

    Variants are walked in lexicographic order, accumulating their percentages;
    the first cumulative bound above the user's bucket wins. Unallocated traffic
    goes to control, and so does any missing, inactive or misconfigured
    experiment. Never raises.
    """
    if experiment is None or not experiment.is_active:
        return VARIANT_CONTROL

    allocation = _validated_allocation(experiment)
    if allocation is None:
        logger.warning(
            "experiment misconfigured name=%s allocation=%s -> control",
            experiment.name, experiment.traffic_allocation,
        )
        return VARIANT_CONTROL

    bucket = bucket_for(experiment.name, user_id)
    cumulative = 0.0
    for variant in sorted(allocation):
        cumulative += allocation[variant]
        if bucket < cumulative:
            return variant
    return VARIANT_CONTROL
