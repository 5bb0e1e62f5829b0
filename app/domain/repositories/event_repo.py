# app/domain/repositories/event_repo.py

from __future__ import annotations
from datetime import datetime
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError
from app.domain.models.event import RecommendationEvent

class EventRepo:
    """
    Append-only store of served recommendations ('recommendation_events').
    The only in-place mutation is the single conditional click attachment.
    """

    def __init__(self, db: AsyncIOMotorDatabase, collection_name: str = "recommendation_events"):
        self.col = db[collection_name]

    async def insert(self, event: RecommendationEvent) -> bool:
        """
        Insert keyed on event_id. Returns False if the event was already stored
        (a retried write), which callers treat as success.
        """
        try:
            await self.col.insert_one(event.to_document())
            return True
        except DuplicateKeyError:
            return False

    async def get(self, event_id: str) -> Optional[RecommendationEvent]:
        doc = await self.col.find_one({"_id": event_id})
        return RecommendationEvent.from_document(doc) if doc else None

    async def find_latest(self, user_id: str, experiment: str) -> Optional[RecommendationEvent]:
        doc = await self.col.find_one(
            {"user_id": user_id, "experiment": experiment},
            sort=[("created_at", DESCENDING), ("_id", DESCENDING)],
        )
        return RecommendationEvent.from_document(doc) if doc else None

    async def attach_click(self, event_id: str, product_id: str, clicked_at: datetime) -> Optional[RecommendationEvent]:
        """
        Atomic update-if-still-unclicked. Returns the updated event, or None when
        another click got there first (or the event does not exist).
        """
        doc = await self.col.find_one_and_update(
            {"_id": event_id, "clicked_product_id": None},
            {"$set": {"clicked_product_id": product_id, "clicked_at": clicked_at}},
            return_document=ReturnDocument.AFTER,
        )
        return RecommendationEvent.from_document(doc) if doc else None
