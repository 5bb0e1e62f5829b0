from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from app.domain.services.constants import STATUS_ACTIVE

class Product(BaseModel):
    product_id: str
    name: str
    category_id: Optional[str] = None
    brand: Optional[str] = None
    current_price: Optional[float] = None
    currency: Optional[str] = None
    rating: Optional[float] = None
    status: str = STATUS_ACTIVE
    image_url: Optional[str] = None
    tags: List[str] = []
    created_at: Optional[datetime] = None

    model_config = {"frozen": True}  # immuable = safe

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

class CandidateList(BaseModel):
    """Ordered products produced by one generator, tagged with its source."""
    source: str
    items: List[Product] = []
    model_config = {"frozen": True}

    @property
    def product_ids(self) -> List[str]:
        return [p.product_id for p in self.items]

class RankedItem(BaseModel):
    product: Product
    source: str
    model_config = {"frozen": True}

class RecommendationResult(BaseModel):
    items: List[RankedItem]
    source_counts: Dict[str, int]
    variant: str
    rerank_applied: bool = False
    total_considered: int = Field(default=0, ge=0)
    model_config = {"frozen": True}

    @property
    def product_ids(self) -> List[str]:
        return [i.product.product_id for i in self.items]

class ServedRecommendation(BaseModel):
    """What the orchestrator hands back to the API layer."""
    result: RecommendationResult
    event_id: str
    experiment: str
    recommendation_type: str
    model_config = {"frozen": True}
