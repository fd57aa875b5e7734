"""
Marketplace Relevance Ranking.

Adaptive ranking for the catalog view: declared profile signals,
browsing exposure and dwell attention combined into one normalized
ranking, plus aggregate metrics computed off the ranking path.

Quick start::

    from marketplace import MarketplaceSession, InMemoryStorage

    session = MarketplaceSession(InMemoryStorage())
    session.set_profile({"industry": "healthcare", "email": "ops@medline.com"})
    session.set_catalog(items)
    session.register_dwell("a", 1500)

    for entry in session.visible():
        print(entry.item.name, round(entry.match_strength, 2))
"""

from marketplace.aggregates import AggregateMetricsEngine, build_signals, compute_aggregates
from marketplace.attention import AttentionStore, DwellQueue
from marketplace.browsing import BrowsingSignalStore
from marketplace.models import (
    AggregateMetrics,
    AggregateRequest,
    AttentionEntry,
    BrowsingSignal,
    CatalogItem,
    ComboEntry,
    ScoredEntry,
    TopCategory,
    UserProfile,
)
from marketplace.needs import detect_industry, detect_needs, resolve_industry
from marketplace.relevance import score_catalog
from marketplace.search import SearchFilter, filter_ranked
from marketplace.session import MarketplaceSession
from marketplace.storage import FileStorage, InMemoryStorage, RedisStorage, create_storage

__all__ = [
    "AggregateMetricsEngine",
    "build_signals",
    "compute_aggregates",
    "AttentionStore",
    "DwellQueue",
    "BrowsingSignalStore",
    "AggregateMetrics",
    "AggregateRequest",
    "AttentionEntry",
    "BrowsingSignal",
    "CatalogItem",
    "ComboEntry",
    "ScoredEntry",
    "TopCategory",
    "UserProfile",
    "detect_industry",
    "detect_needs",
    "resolve_industry",
    "score_catalog",
    "SearchFilter",
    "filter_ranked",
    "MarketplaceSession",
    "FileStorage",
    "InMemoryStorage",
    "RedisStorage",
    "create_storage",
]
