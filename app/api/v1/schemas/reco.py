# api/v1/schemas/reco.py
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Literal, Optional

from app.domain.models.product import RankedItem, ServedRecommendation

RecommendationType = Literal["general", "cross_sell", "trending", "similar_users"]

class _CamelModel(BaseModel):
    # Wire format is camelCase; python side stays snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecommendationRequest(_CamelModel):
    user_id: str = Field(..., min_length=1)
    viewed_product_id: Optional[str] = None
    recommendation_type: RecommendationType = "general"
    limit: Optional[int] = Field(default=None, ge=1)


class ProductSummary(_CamelModel):
    product_id: str
    name: str
    category_id: Optional[str] = None
    current_price: Optional[float] = None
    currency: Optional[str] = None
    rating: Optional[float] = None
    image_url: Optional[str] = None
    source: str

    @classmethod
    def from_item(cls, item: RankedItem) -> "ProductSummary":
        p = item.product
        return cls(
            product_id=p.product_id,
            name=p.name,
            category_id=p.category_id,
            current_price=p.current_price,
            currency=p.currency,
            rating=p.rating,
            image_url=p.image_url,
            source=item.source,
        )


class SourceCounts(BaseModel):
    collaborative: int = 0
    cross_sell: int = 0
    trending: int = 0


class RecommendationMetadata(_CamelModel):
    total_considered: int
    source_counts: SourceCounts
    ab_test_group: str
    re_rank_applied: bool
    recommendation_type: str
    event_id: str


class RecommendationResponse(_CamelModel):
    recommendations: List[ProductSummary]
    metadata: RecommendationMetadata

    @classmethod
    def from_served(cls, served: ServedRecommendation) -> "RecommendationResponse":
        result = served.result
        return cls(
            recommendations=[ProductSummary.from_item(i) for i in result.items],
            metadata=RecommendationMetadata(
                total_considered=result.total_considered,
                source_counts=SourceCounts(**result.source_counts),
                ab_test_group=result.variant,
                re_rank_applied=result.rerank_applied,
                recommendation_type=served.recommendation_type,
                event_id=served.event_id,
            ),
        )


class ClickRequest(_CamelModel):
    user_id: str = Field(..., min_length=1)
    clicked_product_id: str = Field(..., min_length=1)
    event_id: Optional[str] = None


class ClickResponse(_CamelModel):
    event_id: str
    attributed: bool
    clicked_product_id: Optional[str] = None
