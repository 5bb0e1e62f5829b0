"""In-memory stand-ins for the Mongo/Redis collaborators.

The ranking engine only depends on the repository methods it calls, so the
fakes below implement exactly those contracts over plain Python structures.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Set

from app.domain.models.event import RecommendationEvent
from app.domain.models.experiment import ExperimentConfig
from app.domain.models.product import CandidateList, Product
from app.domain.models.user import ViewStat
from app.domain.services.generators import CandidateGenerator
from app.domain.services.rerank_svc import Reranker

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)

def make_product(pid: str, category: str = "shoes", rating: float = 4.0, status: str = "active",
                 age_days: int = 0) -> Product:
    return Product(
        product_id=pid,
        name=f"Product {pid}",
        category_id=category,
        current_price=10.0,
        currency="EUR",
        rating=rating,
        status=status,
        created_at=BASE_TIME - timedelta(days=age_days),
    )

class FakeProductRepo:
    def __init__(self, products: Iterable[Product] = (), delay: float = 0.0):
        self.products: Dict[str, Product] = {p.product_id: p for p in products}
        self.delay = delay

    async def get_by_product_id(self, product_id):
        return self.products.get(product_id)

    async def get_active_products_by_category(self, category_id, *, exclude_product_id=None, limit=20):
        items = [
            p for p in self.products.values()
            if p.is_active and p.category_id == category_id and p.product_id != exclude_product_id
        ]
        items.sort(key=lambda p: (-(p.rating or 0), p.product_id))
        return items[:limit]

    async def get_recent_active_products(self, limit=20):
        items = [p for p in self.products.values() if p.is_active]
        items.sort(key=lambda p: (-p.created_at.timestamp(), p.product_id))
        return items[:limit]

    async def get_many_by_product_ids(self, ids, *, active_only=True):
        if self.delay:
            await asyncio.sleep(self.delay)
        out = []
        for pid in ids:
            p = self.products.get(pid)
            if p is None or (active_only and not p.is_active):
                continue
            out.append(p)
        return out

class FakeOrderRepo:
    def __init__(self, owned: Optional[Dict[str, Set[str]]] = None, fail: bool = False):
        self.owned = owned or {}
        self.fail = fail

    async def get_completed_product_ids(self, user_id):
        if self.fail:
            raise ConnectionError("orders store down")
        return set(self.owned.get(user_id, set()))

    async def get_completed_product_ids_for_users(self, user_ids):
        return {u: set(self.owned[u]) for u in user_ids if u in self.owned}

class FakeUserRepo:
    def __init__(self, users: Iterable[str] = (), views: Optional[Dict[str, Dict[str, ViewStat]]] = None):
        self.users = set(users)
        self.views = views or {}

    async def exists(self, user_id):
        return user_id in self.users

    async def get_view_history(self, user_id, limit=50):
        return dict(self.views.get(user_id, {}))

class FakeSimilarityRepo:
    def __init__(self, similar: Optional[Dict[str, List[str]]] = None):
        self.similar = similar or {}

    async def get_similar_users(self, user_id, n=20):
        return list(self.similar.get(user_id, []))[:n]

class FakeExperimentRepo:
    def __init__(self, config: Optional[ExperimentConfig] = None, fail: bool = False, delay: float = 0.0):
        self.config = config
        self.fail = fail
        self.delay = delay

    async def get(self, name):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise ConnectionError("experiments store down")
        if self.config is not None and self.config.name == name:
            return self.config
        return None

class FakeEventRepo:
    def __init__(self, fail_inserts: int = 0):
        self.docs: Dict[str, RecommendationEvent] = {}
        self.fail_inserts = fail_inserts
        self.insert_calls = 0

    async def insert(self, event):
        self.insert_calls += 1
        if self.fail_inserts > 0:
            self.fail_inserts -= 1
            raise ConnectionError("event store down")
        if event.event_id in self.docs:
            return False
        self.docs[event.event_id] = event
        return True

    async def get(self, event_id):
        return self.docs.get(event_id)

    async def find_latest(self, user_id, experiment):
        matches = [e for e in self.docs.values() if e.user_id == user_id and e.experiment == experiment]
        if not matches:
            return None
        return max(matches, key=lambda e: (e.created_at, e.event_id))

    async def attach_click(self, event_id, product_id, clicked_at):
        event = self.docs.get(event_id)
        if event is None or event.clicked_product_id is not None:
            return None
        updated = event.model_copy(update={"clicked_product_id": product_id, "clicked_at": clicked_at})
        self.docs[event_id] = updated
        return updated

class FakeRedis:
    """The handful of redis.asyncio commands the service uses."""

    def __init__(self):
        self.kv: Dict[str, str] = {}
        self.lists: Dict[str, List[str]] = {}

    async def get(self, key):
        return self.kv.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.kv:
            return None
        self.kv[key] = value
        return True

    async def eval(self, script, numkeys, key, token):
        if self.kv.get(key) == token:
            del self.kv[key]
            return 1
        return 0

    async def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    async def lpush(self, key, value):
        self.lists.setdefault(key, []).insert(0, value)
        return len(self.lists[key])

    async def lpop(self, key):
        items = self.lists.get(key)
        return items.pop(0) if items else None

class StaticGenerator(CandidateGenerator):
    """Generator returning a fixed list, optionally slow or failing."""

    def __init__(self, source: str, items: Iterable[Product] = (), delay: float = 0.0,
                 error: Optional[Exception] = None):
        self.source = source
        self.items = list(items)
        self.delay = delay
        self.error = error
        self.calls = 0

    async def generate(self, user, viewed_product, max_candidates):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return CandidateList(source=self.source, items=self.items[:max_candidates])

class StubReranker(Reranker):
    def __init__(self, order: Optional[List[str]] = None, delay: float = 0.0, error: Optional[Exception] = None):
        self.order = order
        self.delay = delay
        self.error = error
        self.calls = 0
        self.seen_ids: List[str] = []

    async def rerank(self, user, candidates, variant):
        self.calls += 1
        self.seen_ids = [c.product.product_id for c in candidates]
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return list(self.order if self.order is not None else self.seen_ids), True

