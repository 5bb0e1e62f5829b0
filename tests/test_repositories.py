"""Tests for the Mongo repositories and the Redis caching in front of them."""

from datetime import timedelta

from app.domain.models.experiment import ExperimentConfig
from app.domain.repositories.candidate_cache_repo import CandidateCacheRepo
from app.domain.repositories.experiment_repo import ExperimentRepo
from app.domain.repositories.order_repo import OrderRepo
from tests.fakes import BASE_TIME, FakeRedis, make_product


class FakeCollection:
    def __init__(self, docs):
        self.docs = docs
        self.find_calls = 0

    async def find_one(self, query, projection=None):
        self.find_calls += 1
        return next((dict(d) for d in self.docs if d["name"] == query["name"]), None)


def _experiments(*docs):
    col = FakeCollection(list(docs))
    return {"experiments": col}, col


async def test_experiment_is_read_once_then_served_from_cache():
    db, col = _experiments({"name": "reco_strategy", "is_active": True, "traffic_allocation": {"trending": 30}})
    redis = FakeRedis()
    repo = ExperimentRepo(db, redis, ttl=60)

    first = await repo.get("reco_strategy")
    second = await repo.get("reco_strategy")

    assert first == second == ExperimentConfig(name="reco_strategy", traffic_allocation={"trending": 30})
    assert col.find_calls == 1
    assert "experiment:reco_strategy" in redis.kv


async def test_missing_experiment_returns_none_without_redis():
    db, col = _experiments()
    assert await ExperimentRepo(db, None).get("reco_strategy") is None


async def test_candidate_cache_round_trips_products():
    cache = CandidateCacheRepo(FakeRedis(), key_prefix="trending")
    items = [make_product("A", rating=4.5), make_product("B", category=None)]

    await cache.set(cache.key(10), items, ttl=60)
    assert await cache.get(cache.key(10)) == items
    assert await cache.get(cache.key(20)) is None


async def test_candidate_cache_disabled_without_client():
    cache = CandidateCacheRepo(None, key_prefix="trending")
    await cache.set(cache.key(5), [make_product("A")], ttl=60)
    assert await cache.get(cache.key(5)) is None


class FakeOrderCursor:
    def __init__(self, docs):
        self.docs = docs

    def sort(self, field, direction):
        self.docs = sorted(self.docs, key=lambda d: d[field], reverse=direction == -1)
        return self

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for d in self.docs:
            yield d


class FakeOrders:
    def __init__(self, docs):
        self.docs = docs

    def find(self, query, projection=None):
        return FakeOrderCursor([
            dict(d) for d in self.docs
            if d["user_id"] == query["user_id"] and d["status"] == query["status"]
        ])


def _order(order_id, user_id, product_id, status="completed", days=0):
    return {
        "order_id": order_id, "user_id": user_id, "product_id": product_id,
        "status": status, "created_at": BASE_TIME + timedelta(days=days),
    }


async def test_ownership_comes_from_completed_orders_only():
    repo = OrderRepo({"orders": FakeOrders([
        _order("o1", "u1", "A", days=1),
        _order("o2", "u1", "B", days=3),
        _order("o3", "u1", "A", days=5),
        _order("o4", "u1", "C", status="cancelled"),
        _order("o5", "u2", "D"),
    ])})

    orders = await repo.get_completed_orders("u1")
    assert [o.order_id for o in orders] == ["o3", "o2", "o1"]
    assert await repo.get_completed_product_ids("u1") == {"A", "B"}
    assert await repo.get_completed_product_ids("nobody") == set()
