from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
import uuid

def _new_event_id() -> str:
    return uuid.uuid4().hex

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

class RecommendationEvent(BaseModel):
    """
    Immutable record of one served recommendation set.
    Stored with `_id = event_id` so re-inserting the same event is a no-op.
    `clicked_product_id` / `clicked_at` are attached at most once by the click tracker.
    """
    event_id: str = Field(default_factory=_new_event_id)
    user_id: str
    experiment: str
    variant: str
    recommendation_type: str
    product_ids: List[str]
    context: Dict[str, Any] = {}
    created_at: datetime = Field(default_factory=_utcnow)
    clicked_product_id: Optional[str] = None
    clicked_at: Optional[datetime] = None
    model_config = {"frozen": True}

    def to_document(self) -> Dict[str, Any]:
        doc = self.model_dump()
        doc["_id"] = doc["event_id"]
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "RecommendationEvent":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data.setdefault("event_id", doc.get("_id"))
        return cls.model_validate(data)

class ClickAttribution(BaseModel):
    event_id: str
    attributed: bool
    clicked_product_id: Optional[str] = None
    model_config = {"frozen": True}
