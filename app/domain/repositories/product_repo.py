# app/domain/repositories/product_repo.py

from __future__ import annotations
from typing import Optional, List, Iterable
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from app.domain.models.product import Product
from app.domain.services.constants import STATUS_ACTIVE

# Fields needed for ranking and for the ProductSummary payload
_PROJECTION = {
    "_id": 0,
    "product_id": 1,
    "name": 1,
    "category_id": 1,
    "brand": 1,
    "current_price": 1,
    "currency": 1,
    "rating": 1,
    "status": 1,
    "image_url": 1,
    "tags": 1,
    "created_at": 1,
}

class ProductRepo:
    """
    Catalog lookups backed by the 'products' collection.
    Read-only: the catalog is owned by another service.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "products"):
        self.col = db[collection_name]

    async def get_by_product_id(self, product_id: str) -> Optional[Product]:
        doc = await self.col.find_one({"product_id": product_id}, _PROJECTION)
        return Product.model_validate(doc) if doc else None

    async def get_active_products_by_category(
        self,
        category_id: str,
        *,
        exclude_product_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[Product]:
        """Active products of one category, best rated first."""
        query = {"category_id": category_id, "status": STATUS_ACTIVE}
        if exclude_product_id:
            query["product_id"] = {"$ne": exclude_product_id}
        cursor = (
            self.col.find(query, _PROJECTION)
            .sort([("rating", DESCENDING), ("product_id", ASCENDING)])
            .limit(limit)
        )
        return [Product.model_validate(doc) async for doc in cursor]

    async def get_recent_active_products(self, limit: int = 20) -> List[Product]:
        """Active products, most recently created first."""
        cursor = (
            self.col.find({"status": STATUS_ACTIVE}, _PROJECTION)
            .sort([("created_at", DESCENDING), ("product_id", ASCENDING)])
            .limit(limit)
        )
        return [Product.model_validate(doc) async for doc in cursor]

    async def get_many_by_product_ids(self, ids: Iterable[str], *, active_only: bool = True) -> List[Product]:
        """
        Batch fetch preserving the order of `ids` (Mongo $in does not).
        Unknown ids are dropped silently.
        """
        ids = list(ids)
        if not ids:
            return []
        query = {"product_id": {"$in": ids}}
        if active_only:
            query["status"] = STATUS_ACTIVE
        cursor = self.col.find(query, _PROJECTION)
        by_id = {doc["product_id"]: doc async for doc in cursor}
        return [Product.model_validate(by_id[i]) for i in ids if i in by_id]
