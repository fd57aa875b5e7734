"""
Application constants and algorithm configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase.
"""

from dataclasses import dataclass
from typing import Tuple


# =============================================================================
# Attention (dwell) Configuration
# =============================================================================

@dataclass(frozen=True)
class AttentionConfig:
    """Decay and retention parameters for dwell attention."""

    MAX_ENTRIES: int = 32

    # Lazy decay applied when persisted state is loaded:
    #   multiplier = DECAY_FACTOR ** (age_minutes / DECAY_INTERVAL_MINUTES)
    DECAY_FACTOR: float = 0.94
    DECAY_INTERVAL_MINUTES: float = 18.0

    # Multiplicative decay applied to the old score on every flush.
    FLUSH_DECAY: float = 0.985

    # Entries below this decayed score with no interactions are dropped.
    MIN_SCORE: float = 0.01


DEFAULT_ATTENTION_CONFIG = AttentionConfig()


# =============================================================================
# Browsing Signal Configuration
# =============================================================================

@dataclass(frozen=True)
class BrowsingConfig:
    """Ranking parameters for browsing exposure buckets."""

    MAX_SIGNALS: int = 6
    RANK_WEIGHT_CEILING: int = 5   # weight = max(1, 5 - rank) + ...
    COUNT_CAP: int = 5
    COUNT_WEIGHT: float = 0.3


DEFAULT_BROWSING_CONFIG = BrowsingConfig()


# =============================================================================
# Relevance Scoring Configuration
# =============================================================================

@dataclass(frozen=True)
class RelevanceConfig:
    """Weights for the additive relevance formula."""

    BASE_SCORE: float = 1.0

    # Active need (explicit focus)
    ACTIVE_TAG: float = 7.0
    ACTIVE_CATEGORY: float = 5.0
    ACTIVE_DESCRIPTION: float = 4.0

    # Detected needs, multiplied by (N - rank)
    NEED_TAG: float = 1.5
    NEED_DESCRIPTION: float = 1.0

    # Catalog metadata
    POPULARITY_WEIGHT: float = 0.5
    INDUSTRY_BONUS: float = 6.0

    # Browsing signals, multiplied by the signal weight
    BROWSING_TAG: float = 1.4
    BROWSING_DESCRIPTION: float = 1.0
    BROWSING_CATEGORY: float = 1.1
    BROWSING_FALLBACK_STEP: float = 0.9

    # Attention bonus
    ATTENTION_SCORE_CAP: float = 12.0
    ATTENTION_SCORE_WEIGHT: float = 1.6
    INTERACTION_CAP: int = 6
    INTERACTION_WEIGHT: float = 0.3
    RECENCY_BOOST: float = 1.35
    RECENCY_WINDOW_MINUTES: float = 8.0

    RECOMMENDED_LIMIT: int = 3


DEFAULT_RELEVANCE_CONFIG = RelevanceConfig()


# =============================================================================
# Aggregate Metrics Configuration
# =============================================================================

@dataclass(frozen=True)
class AggregateConfig:
    """Parameters for the combo ("stack") highlight."""

    MIN_OVERLAP: int = 2
    OVERLAP_WEIGHT: float = 1.75
    FOCUS_BONUS: float = 2.5
    COMBO_LIMIT: int = 3
    DEFAULT_CATEGORY: str = "General"


DEFAULT_AGGREGATE_CONFIG = AggregateConfig()


# =============================================================================
# Need Detection
# =============================================================================

MAX_DETECTED_NEEDS = 4

# (exclusive lower bound, label), checked in order
TEAM_SIZE_BUCKETS: Tuple[Tuple[int, str], ...] = (
    (500, "Enterprise scale"),
    (120, "Team productivity"),
)
DEFAULT_TEAM_SIZE_LABEL = "Startup velocity"

# Email domain keyword -> industry. First match wins.
DOMAIN_INDUSTRY_MAP: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("health", "med", "pharma", "clinic"), "Healthcare"),
    (("fin", "bank", "capital", "credit"), "Financial Services"),
    (("retail", "commerce", "shop", "store"), "Ecommerce"),
    (("edu", "school", "academy", "college"), "Education"),
    (("logistics", "supply", "shipping", "freight"), "Logistics"),
    (("manufact", "factory", "industrial"), "Manufacturing"),
    (("travel", "hospitality", "hotel"), "Hospitality"),
    (("media", "marketing", "agency"), "Media & Marketing"),
    (("gov", "public", "civic"), "Public Sector"),
    (("tech", "cloud", "software", "saas"), "Software"),
)


# =============================================================================
# Search
# =============================================================================

MAX_SEARCH_HISTORY = 8
MAX_SEARCH_SUGGESTIONS = 5
