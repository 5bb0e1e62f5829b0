# app/domain/repositories/order_repo.py

from __future__ import annotations
from typing import Dict, List, Iterable, Set
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING
from app.domain.models.user import Order
from app.domain.services.constants import ORDER_COMPLETED

class OrderRepo:
    """
    Purchase history backed by the 'orders' collection.
    One document per purchased line: { order_id, user_id, product_id, status, created_at }.
    Only completed orders count as ownership.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "orders"):
        self.col = db[collection_name]

    async def get_completed_orders(self, user_id: str) -> List[Order]:
        cursor = self.col.find(
            {"user_id": user_id, "status": ORDER_COMPLETED},
            {"_id": 0, "order_id": 1, "user_id": 1, "product_id": 1, "status": 1, "created_at": 1},
        ).sort("created_at", DESCENDING)
        return [Order.model_validate(doc) async for doc in cursor]

    async def get_completed_product_ids(self, user_id: str) -> Set[str]:
        return {o.product_id for o in await self.get_completed_orders(user_id)}

    async def get_completed_product_ids_for_users(self, user_ids: Iterable[str]) -> Dict[str, Set[str]]:
        """Map each user to the distinct products of their completed orders."""
        user_ids = list(user_ids)
        if not user_ids:
            return {}
        pipeline = [
            {"$match": {"user_id": {"$in": user_ids}, "status": ORDER_COMPLETED}},
            {"$group": {"_id": "$user_id", "prods": {"$addToSet": "$product_id"}}},
        ]
        docs = await self.col.aggregate(pipeline).to_list(length=None)
        return {d["_id"]: set(d.get("prods") or []) for d in docs}
