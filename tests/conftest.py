"""Fixtures wiring the ranking engine to the in-memory fakes in tests/fakes.py."""

from typing import Dict, Iterable, Optional, Set

import pytest

from app.core.config import Settings
from app.domain.models.experiment import ExperimentConfig
from app.domain.models.product import Product
from app.domain.services.constants import SOURCE_COLLABORATIVE, SOURCE_CROSS_SELL, SOURCE_TRENDING
from app.domain.services.event_log_svc import EventLogger
from app.domain.services.generators import CandidateGenerator
from app.domain.services.pipeline_svc import RecommendationEngine
from app.domain.services.rerank_svc import NoopReranker, Reranker
from tests.fakes import (
    FakeEventRepo,
    FakeExperimentRepo,
    FakeOrderRepo,
    FakeProductRepo,
    FakeUserRepo,
    StaticGenerator,
)


@pytest.fixture
def settings():
    return Settings(
        experiment_name="reco_strategy",
        generator_timeout_ms=200,
        rerank_timeout_ms=100,
        default_limit=10,
        max_limit=50,
        candidate_multiplier=3,
    )


@pytest.fixture
def make_engine(settings):
    """Build an engine from fakes; any collaborator can be overridden by keyword."""

    def _make(
        *,
        generators: Optional[Dict[str, CandidateGenerator]] = None,
        users: Iterable[str] = ("u1",),
        owned: Optional[Dict[str, Set[str]]] = None,
        products: Iterable[Product] = (),
        experiment: Optional[ExperimentConfig] = None,
        reranker: Optional[Reranker] = None,
        event_repo: Optional[FakeEventRepo] = None,
        order_repo: Optional[FakeOrderRepo] = None,
        product_repo: Optional[FakeProductRepo] = None,
        experiment_repo: Optional[FakeExperimentRepo] = None,
        settings_override: Optional[Settings] = None,
    ) -> RecommendationEngine:
        gens = generators if generators is not None else {
            SOURCE_COLLABORATIVE: StaticGenerator(SOURCE_COLLABORATIVE),
            SOURCE_CROSS_SELL: StaticGenerator(SOURCE_CROSS_SELL),
            SOURCE_TRENDING: StaticGenerator(SOURCE_TRENDING),
        }
        return RecommendationEngine(
            settings=settings_override or settings,
            user_repo=FakeUserRepo(users),
            order_repo=order_repo or FakeOrderRepo(owned),
            product_repo=product_repo or FakeProductRepo(products),
            experiment_repo=experiment_repo or FakeExperimentRepo(experiment),
            generators=gens,
            reranker=reranker or NoopReranker(),
            event_logger=EventLogger(event_repo=event_repo or FakeEventRepo()),
        )

    return _make
