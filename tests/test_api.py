"""HTTP contract tests: camelCase payloads, error envelope, click endpoint."""

import pytest
from fastapi.testclient import TestClient

from app.api.deps import event_logger_dep, recommendation_engine, settings_dep
from app.domain.models.event import RecommendationEvent
from app.domain.services.constants import SOURCE_COLLABORATIVE, SOURCE_CROSS_SELL, SOURCE_TRENDING
from app.domain.services.event_log_svc import EventLogger
from app.main import app
from tests.fakes import FakeEventRepo, StaticGenerator, make_product


@pytest.fixture
def event_repo():
    return FakeEventRepo()


@pytest.fixture
def client(make_engine, settings, event_repo):
    generators = {
        SOURCE_COLLABORATIVE: StaticGenerator(SOURCE_COLLABORATIVE, [make_product("C1")]),
        SOURCE_CROSS_SELL: StaticGenerator(SOURCE_CROSS_SELL),
        SOURCE_TRENDING: StaticGenerator(SOURCE_TRENDING, [make_product("T1"), make_product("C1")]),
    }
    engine = make_engine(generators=generators, event_repo=event_repo)
    app.dependency_overrides[recommendation_engine] = lambda: engine
    app.dependency_overrides[event_logger_dep] = lambda: EventLogger(event_repo=event_repo)
    app.dependency_overrides[settings_dep] = lambda: settings
    # No `with`: the lifespan (Mongo/Redis connections) is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_post_recommendations_returns_camel_case_payload(client):
    r = client.post("/api/v1/recommendations", json={"userId": "u1", "limit": 5})
    assert r.status_code == 200
    body = r.json()

    assert [p["productId"] for p in body["recommendations"]] == ["C1", "T1"]
    assert body["recommendations"][0]["source"] == "collaborative"
    meta = body["metadata"]
    assert meta["abTestGroup"] == "control"
    assert meta["reRankApplied"] is False
    assert meta["totalConsidered"] == 2
    assert meta["recommendationType"] == "general"
    assert meta["sourceCounts"] == {"collaborative": 1, "cross_sell": 0, "trending": 1}
    assert meta["eventId"]


def test_get_recommendations_for_user(client):
    r = client.get("/api/v1/users/u1/recommendations", params={"recommendation_type": "trending", "limit": 1})
    assert r.status_code == 200
    body = r.json()
    assert [p["productId"] for p in body["recommendations"]] == ["T1"]
    assert body["metadata"]["recommendationType"] == "trending"


def test_unknown_user_returns_error_envelope(client):
    r = client.post("/api/v1/recommendations", json={"userId": "ghost"})
    assert r.status_code == 404
    body = r.json()
    assert body["error"] == "UserNotFoundError"
    assert body["details"] == {"user_id": "ghost"}
    assert "ghost" in body["message"]


@pytest.mark.parametrize(
    "payload",
    [{}, {"userId": ""}, {"userId": "u1", "limit": 0}, {"userId": "u1", "recommendationType": "all"}],
)
def test_invalid_requests_are_rejected(client, payload):
    assert client.post("/api/v1/recommendations", json=payload).status_code == 422


def test_click_is_attributed_to_latest_event(client, event_repo):
    event = RecommendationEvent(
        event_id="e1", user_id="u1", experiment="reco_strategy", variant="control",
        recommendation_type="general", product_ids=["C1", "T1"],
    )
    event_repo.docs["e1"] = event

    r = client.post("/api/v1/recommendations/clicks", json={"userId": "u1", "clickedProductId": "T1"})
    assert r.status_code == 200
    assert r.json() == {"eventId": "e1", "attributed": True, "clickedProductId": "T1"}

    again = client.post("/api/v1/recommendations/clicks", json={"userId": "u1", "clickedProductId": "C1"})
    assert again.json() == {"eventId": "e1", "attributed": False, "clickedProductId": "T1"}


def test_click_without_event_returns_404(client):
    r = client.post("/api/v1/recommendations/clicks", json={"userId": "u1", "clickedProductId": "T1"})
    assert r.status_code == 404
    assert r.json()["error"] == "EventNotFoundError"


def test_health_reports_unreachable_database(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "error"
    assert body["checks"]["redis"] == "skipped"
