# app/domain/repositories/similarity_repo.py

from __future__ import annotations
from typing import List
from motor.motor_asyncio import AsyncIOMotorDatabase
from app.domain.services.constants import ORDER_COMPLETED

class SimilarityRepo:
    """
    Similar-user lookup. The ranking engine treats it as opaque; this default
    implementation ranks other users by how many distinct products they share
    with the requester in completed orders (co-purchase overlap).
    Swap it for a model-backed lookup without touching the generators.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "orders"):
        self.col = db[collection_name]

    async def get_similar_users(self, user_id: str, n: int = 20) -> List[str]:
        own = await self.col.distinct("product_id", {"user_id": user_id, "status": ORDER_COMPLETED})
        if not own:
            return []
        pipeline = [
            {"$match": {
                "status": ORDER_COMPLETED,
                "product_id": {"$in": own},
                "user_id": {"$ne": user_id},
            }},
            {"$group": {"_id": {"u": "$user_id", "p": "$product_id"}}},
            {"$group": {"_id": "$_id.u", "overlap": {"$sum": 1}}},
            {"$sort": {"overlap": -1, "_id": 1}},
            {"$limit": n},
        ]
        docs = await self.col.aggregate(pipeline).to_list(length=n)
        return [d["_id"] for d in docs if d.get("_id")]
