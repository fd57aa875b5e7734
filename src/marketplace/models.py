"""
Data models for the marketplace ranking engine.

Models cover:
- Catalog items and user profiles (pydantic, externally owned input)
- Persisted behavioural state (attention entries, browsing buckets)
- Ranking output (scored entries, recommendations, clusters)
- Aggregate request/response messages for the background worker
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.utils import to_finite_float, to_non_negative_int


# =============================================================================
# External Input (catalog + profile)
# =============================================================================

class CatalogItem(BaseModel):
    """A catalog entry ("automation"). Immutable snapshot per ranking pass."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    description: str = ""
    category: Optional[str] = None
    vertical: Optional[str] = None
    tags: Tuple[str, ...] = ()
    roi: Optional[float] = None
    popularity: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        if v is None:
            raise ValueError("catalog item id is required")
        return str(v)

    @field_validator("name", "description", mode="before")
    @classmethod
    def coerce_text(cls, v):
        return "" if v is None else str(v)

    @field_validator("tags", mode="before")
    @classmethod
    def coerce_tags(cls, v):
        if not isinstance(v, (list, tuple)):
            return ()
        return tuple(str(tag) for tag in v if tag)

    @field_validator("roi", "popularity", mode="before")
    @classmethod
    def coerce_number(cls, v):
        return to_finite_float(v)

    @property
    def effective_category(self) -> Optional[str]:
        """Category, falling back to vertical."""
        return self.category or self.vertical

    def descriptors(self) -> List[str]:
        """Category, vertical and tags: the values browsing exposure records."""
        return [d for d in (self.category, self.vertical, *self.tags) if d]


class UserProfile(BaseModel):
    """Declared user attributes. Read-only."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    industry: Optional[str] = None
    email: Optional[str] = None
    business_email: Optional[str] = None
    department: Optional[str] = None
    role: Optional[str] = None
    team_size: Optional[float] = None
    pain_points: Tuple[str, ...] = Field(default=())

    @field_validator("team_size", mode="before")
    @classmethod
    def coerce_team_size(cls, v):
        return to_finite_float(v)

    @field_validator("pain_points", mode="before")
    @classmethod
    def split_pain_points(cls, v):
        if isinstance(v, str):
            parts = v.replace(";", ",").split(",")
            return tuple(p for p in parts if p)
        if isinstance(v, (list, tuple)):
            return tuple(str(p) for p in v if p)
        return ()

    @property
    def contact_email(self) -> str:
        return self.business_email or self.email or ""


# =============================================================================
# Persisted Behavioural State
# =============================================================================

@dataclass
class AttentionEntry:
    """Decay-weighted dwell attention for one catalog item."""
    item_id: str
    score: float = 0.0
    interactions: int = 0
    last_viewed: float = 0.0   # epoch seconds, 0 = never

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "interactions": self.interactions,
            "last_viewed": self.last_viewed,
        }

    @classmethod
    def from_dict(cls, item_id: str, data: Dict[str, Any]) -> "AttentionEntry":
        return cls(
            item_id=item_id,
            score=to_finite_float(data.get("score")) or 0.0,
            interactions=to_non_negative_int(data.get("interactions")),
            last_viewed=to_finite_float(data.get("last_viewed")) or 0.0,
        )


@dataclass
class BrowsingSignal:
    """Recency-weighted exposure bucket for a category/tag descriptor."""
    key: str
    label: str
    count: int = 0
    last_seen: float = 0.0
    weight: float = 0.0   # derived from rank, never persisted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "count": self.count,
            "last_seen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, key: str, data: Dict[str, Any]) -> "BrowsingSignal":
        return cls(
            key=key,
            label=str(data.get("label") or ""),
            count=to_non_negative_int(data.get("count")),
            last_seen=to_finite_float(data.get("last_seen")) or 0.0,
        )


@dataclass(frozen=True)
class SearchHistoryEntry:
    query: str
    ts: float

    def to_dict(self) -> Dict[str, Any]:
        return {"query": self.query, "ts": self.ts}


# =============================================================================
# Ranking Output
# =============================================================================

@dataclass
class ScoredEntry:
    """One ranked catalog item. Rebuilt on every ranking pass."""
    item: CatalogItem
    base_score: float
    attention_bonus: float
    attention_score: float
    score: float
    match_strength: float = 0.0
    industry_match: bool = False
    browsing_match: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item.model_dump(),
            "base_score": self.base_score,
            "attention_bonus": self.attention_bonus,
            "attention_score": self.attention_score,
            "score": self.score,
            "match_strength": self.match_strength,
            "industry_match": self.industry_match,
            "browsing_match": self.browsing_match,
        }


@dataclass
class RecommendedEntry:
    entry: ScoredEntry
    rank: int
    confidence: int   # match strength as a percentage


@dataclass
class EntryCluster:
    id: str
    label: str
    description: str
    entries: List[ScoredEntry] = field(default_factory=list)


@dataclass
class CombinationHighlight:
    """The stack shown beside the ranking: worker combo first, else top picks."""
    title: str
    description: str
    items: List[str] = field(default_factory=list)
    roi: Optional[float] = None


# =============================================================================
# Aggregate Messages
# =============================================================================

@dataclass(frozen=True)
class AggregateRequest:
    """Snapshot sent to the aggregate worker. Carries no mutable state."""
    catalog: Tuple[CatalogItem, ...] = ()
    signals: Tuple[str, ...] = ()
    focus: Optional[str] = None

    @classmethod
    def build(
        cls,
        catalog: Union[List[CatalogItem], Tuple[CatalogItem, ...]],
        signals: Union[List[str], Tuple[str, ...]],
        focus: Optional[str] = None,
    ) -> "AggregateRequest":
        return cls(catalog=tuple(catalog), signals=tuple(signals), focus=focus)


@dataclass(frozen=True)
class TopCategory:
    category: str
    count: int
    roi_average: float


@dataclass(frozen=True)
class ComboEntry:
    id: str
    name: str
    overlap: Tuple[str, ...]
    roi: float
    score: float


@dataclass(frozen=True)
class AggregateMetrics:
    average_roi: Optional[float] = None
    top_category: Optional[TopCategory] = None
    combo: Tuple[ComboEntry, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


EMPTY_METRICS = AggregateMetrics()
