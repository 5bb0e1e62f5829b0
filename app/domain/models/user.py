from pydantic import BaseModel
from typing import Optional, List, Dict, FrozenSet
from datetime import datetime

class Order(BaseModel):
    order_id: str
    user_id: str
    product_id: str
    status: str
    created_at: Optional[datetime] = None
    model_config = {"frozen": True}

class ViewStat(BaseModel):
    count: int = 0
    last_viewed_at: Optional[datetime] = None
    model_config = {"frozen": True}

class UserProfile(BaseModel):
    """
    Point-in-time snapshot of a user as the ranking engine sees it.
    - owned_product_ids: products from completed orders (ownership filter + collaborative seed)
    - owned_categories: categories of those products, most frequent first (re-ranker context)
    - views: product_id -> {count, last_viewed_at}
    """
    user_id: str
    owned_product_ids: FrozenSet[str] = frozenset()
    owned_categories: List[str] = []
    views: Dict[str, ViewStat] = {}
    model_config = {"frozen": True}

    def top_viewed(self, n: int = 10) -> List[str]:
        ranked = sorted(
            self.views.items(),
            key=lambda kv: (-kv[1].count, kv[0]),
        )
        return [pid for pid, _ in ranked[:n]]
