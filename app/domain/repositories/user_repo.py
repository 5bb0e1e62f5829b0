# app/domain/repositories/user_repo.py

from __future__ import annotations
from typing import Dict
from motor.motor_asyncio import AsyncIOMotorDatabase
from app.domain.models.user import ViewStat
from app.domain.services.constants import EVENT_VIEW

class UserRepo:
    """
    Identity + view history lookups.
    - 'users' holds one document per known user ({user_id, ...}); the engine only checks existence.
    - 'events' holds raw tracking events; views are aggregated per product.
    """

    def __init__(self, db: AsyncIOMotorDatabase, users_collection: str = "users", events_collection: str = "events"):
        self.users = db[users_collection]
        self.events = db[events_collection]

    async def exists(self, user_id: str) -> bool:
        doc = await self.users.find_one({"user_id": user_id}, {"_id": 1})
        return doc is not None

    async def get_view_history(self, user_id: str, limit: int = 50) -> Dict[str, ViewStat]:
        """Return product_id -> {count, last_viewed_at}, most recently viewed first."""
        pipeline = [
            {"$match": {"event_type": EVENT_VIEW, "user_id": user_id}},
            {"$addFields": {"ts": {"$toDate": "$timestamp"}}},
            {"$group": {"_id": "$product_id", "count": {"$sum": 1}, "last_viewed_at": {"$max": "$ts"}}},
            {"$sort": {"last_viewed_at": -1}},
            {"$limit": limit},
        ]
        docs = await self.events.aggregate(pipeline).to_list(length=limit)
        return {
            d["_id"]: ViewStat(count=d.get("count", 0), last_viewed_at=d.get("last_viewed_at"))
            for d in docs
            if d.get("_id")
        }
