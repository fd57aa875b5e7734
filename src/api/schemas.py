"""
Request/response schemas for the marketplace API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from marketplace.models import AggregateMetrics, UserProfile


class CreateSessionRequest(BaseModel):
    """Open a ranking session, optionally seeded with profile and catalog."""
    client_id: Optional[str] = Field(
        default=None,
        description="Stable client identifier; persisted signals are shared per client",
    )
    profile: Optional[UserProfile] = None
    catalog: List[Dict[str, Any]] = Field(default_factory=list)


class CatalogRequest(BaseModel):
    items: List[Dict[str, Any]] = Field(default_factory=list)


class DwellRequest(BaseModel):
    item_id: str
    delta_ms: float = Field(..., description="Dwell duration in milliseconds")


class DwellResponse(BaseModel):
    accepted: bool


class ExposureRequest(BaseModel):
    """Either explicit descriptors or a catalog item id to expand."""
    descriptors: List[str] = Field(default_factory=list)
    item_id: Optional[str] = None


class NeedRequest(BaseModel):
    need: Optional[str] = None


class SearchRecordRequest(BaseModel):
    query: str


class TopCategoryResponse(BaseModel):
    category: str
    count: int
    roi_average: float


class ComboResponse(BaseModel):
    id: str
    name: str
    overlap: List[str]
    roi: float
    score: float


class MetricsResponse(BaseModel):
    average_roi: Optional[float] = None
    top_category: Optional[TopCategoryResponse] = None
    combo: List[ComboResponse] = Field(default_factory=list)

    @classmethod
    def from_metrics(cls, metrics: AggregateMetrics) -> "MetricsResponse":
        top = metrics.top_category
        return cls(
            average_roi=metrics.average_roi,
            top_category=TopCategoryResponse(
                category=top.category, count=top.count, roi_average=top.roi_average,
            ) if top else None,
            combo=[
                ComboResponse(
                    id=c.id, name=c.name, overlap=list(c.overlap), roi=c.roi, score=c.score,
                )
                for c in metrics.combo
            ],
        )


class RecommendationResponse(BaseModel):
    item_id: str
    name: str
    rank: int
    confidence: int


class ClusterResponse(BaseModel):
    id: str
    label: str
    description: str
    item_ids: List[str]


class CombinationResponse(BaseModel):
    title: str
    description: str
    items: List[str]
    roi: Optional[float] = None


class InsightsResponse(BaseModel):
    metrics: MetricsResponse
    recommended: List[RecommendationResponse]
    clusters: List[ClusterResponse]
    combination: Optional[CombinationResponse] = None
    suggestions: List[str]
