"""
MarketplaceSession -- one user's live ranking state.

Owns the browsing and attention stores, the search filter and the
aggregate engine, and re-ranks synchronously whenever one of the
ranking inputs changes:

    catalog, profile  -> needs + industry recomputed -> re-rank
    active need       -> re-rank
    exposure event    -> browsing signals updated    -> re-rank
    dwell flush       -> attention map updated       -> re-rank

Aggregate metrics are requested after every change except a dwell
flush (attention does not feed the aggregates). Only search is
debounced. The UI-facing methods never raise; bad input degrades to
fewer signals.
"""

from __future__ import annotations

import uuid
from concurrent.futures import CancelledError, Future, TimeoutError as FutureTimeoutError
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from config.constants import DEFAULT_RELEVANCE_CONFIG, RelevanceConfig
from config.settings import Settings
from core.logging import LoggerMixin
from core.runtime import Clock, CycleScheduler, SystemClock
from marketplace.aggregates import AggregateMetricsEngine, build_signals
from marketplace.attention import AttentionStore
from marketplace.browsing import BrowsingSignalStore
from marketplace.models import (
    AggregateMetrics,
    AggregateRequest,
    AttentionEntry,
    BrowsingSignal,
    CatalogItem,
    CombinationHighlight,
    EntryCluster,
    RecommendedEntry,
    ScoredEntry,
    UserProfile,
)
from marketplace.needs import detect_needs, resolve_active_need, resolve_industry
from marketplace.relevance import (
    cluster_entries,
    combination_highlight,
    recommend,
    score_catalog,
)
from marketplace.search import SearchFilter, SearchHistory, build_suggestions
from marketplace.storage import Storage


CatalogInput = Union[CatalogItem, Mapping[str, Any]]


def generate_session_id() -> str:
    """Generate a new unique session ID."""
    return f"mp-{uuid.uuid4().hex[:12]}"


class MarketplaceSession(LoggerMixin):
    """
    Ranking session for one user.

    Usage:
        session = MarketplaceSession(storage, settings=settings)
        session.set_profile(profile)
        session.set_catalog(items)
        session.register_dwell("a", 1500)
        session.ranked           # List[ScoredEntry]
        session.visible()        # ranked, with the search filter applied
        session.metrics          # latest AggregateMetrics
        session.close()
    """

    def __init__(
        self,
        storage: Storage,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[CycleScheduler] = None,
        aggregate_engine: Optional[AggregateMetricsEngine] = None,
        relevance_config: RelevanceConfig = DEFAULT_RELEVANCE_CONFIG,
        session_id: Optional[str] = None,
    ):
        settings = settings or Settings(_env_file=None)
        self.session_id = session_id or generate_session_id()
        self._clock = clock or SystemClock()
        self._scheduler = scheduler
        self.relevance_config = relevance_config

        self.browsing = BrowsingSignalStore(
            storage, clock=self._clock, storage_key=settings.browsing_storage_key,
        )
        self.attention = AttentionStore(
            storage,
            clock=self._clock,
            scheduler=scheduler,
            storage_key=settings.attention_storage_key,
            on_change=self._on_attention_change,
        )
        self.search = SearchFilter(self._clock, settings.search_debounce_seconds)
        self.history = SearchHistory(
            storage, clock=self._clock, storage_key=settings.search_history_key,
        )
        self.aggregates = aggregate_engine or AggregateMetricsEngine(
            use_background=settings.aggregate_worker_enabled,
        )

        self._catalog: List[CatalogItem] = []
        self._profile: Optional[UserProfile] = None
        self._needs: List[str] = []
        self._active_need: Optional[str] = None
        self._industry: Optional[str] = None
        self._ranked: List[ScoredEntry] = []
        self._closed = False
        self._pending_metrics: Optional[Future] = None

        self.browsing.load()
        self.attention.load()
        self.history.load()

    # =========================================================
    # Read Side
    # =========================================================

    @property
    def catalog(self) -> List[CatalogItem]:
        return list(self._catalog)

    @property
    def profile(self) -> Optional[UserProfile]:
        return self._profile

    @property
    def detected_needs(self) -> List[str]:
        return list(self._needs)

    @property
    def active_need(self) -> Optional[str]:
        return self._active_need

    @property
    def industry(self) -> Optional[str]:
        return self._industry

    @property
    def browsing_signals(self) -> List[BrowsingSignal]:
        return self.browsing.signals

    @property
    def attention_entries(self) -> Dict[str, AttentionEntry]:
        return self.attention.entries

    @property
    def ranked(self) -> List[ScoredEntry]:
        return list(self._ranked)

    @property
    def metrics(self) -> AggregateMetrics:
        return self.aggregates.latest

    def wait_for_metrics(self, timeout: Optional[float] = None) -> AggregateMetrics:
        """
        Block until the most recent aggregate request has resolved.

        Falls back to the latest published metrics on timeout or after
        close().
        """
        pending = self._pending_metrics
        if pending is None:
            return self.aggregates.latest
        try:
            return pending.result(timeout=timeout)
        except (CancelledError, FutureTimeoutError):
            return self.aggregates.latest

    def visible(self) -> List[ScoredEntry]:
        """Ranked entries narrowed by the (debounced) search query."""
        return self.search.apply(self._ranked)

    def recommended(self) -> List[RecommendedEntry]:
        return recommend(self._ranked, self.relevance_config.RECOMMENDED_LIMIT)

    def clusters(self) -> List[EntryCluster]:
        return cluster_entries(self._ranked, self._active_need)

    def combination(self, metrics: Optional[AggregateMetrics] = None) -> Optional[CombinationHighlight]:
        """Featured stack, from ``metrics`` or the latest published aggregates."""
        if metrics is None:
            metrics = self.metrics
        return combination_highlight(
            self._ranked, metrics, self._active_need, self.relevance_config.RECOMMENDED_LIMIT,
        )

    def suggestions(self) -> List[str]:
        return build_suggestions(self._active_need, self._industry, self.history.queries())

    # =========================================================
    # Inputs
    # =========================================================

    def set_catalog(self, items: Iterable[CatalogInput]) -> List[ScoredEntry]:
        """Replace the catalog snapshot. Invalid items are skipped."""
        catalog = []
        for raw in items or ():
            if isinstance(raw, CatalogItem):
                catalog.append(raw)
                continue
            try:
                catalog.append(CatalogItem.model_validate(raw))
            except ValidationError as e:
                self.logger.warning("Skipping invalid catalog item", error=str(e))
        self._catalog = catalog
        self._refresh_needs()
        return self._on_inputs_changed()

    def set_profile(self, profile: Union[UserProfile, Mapping[str, Any], None]) -> List[ScoredEntry]:
        if profile is not None and not isinstance(profile, UserProfile):
            try:
                profile = UserProfile.model_validate(profile)
            except ValidationError as e:
                self.logger.warning("Ignoring invalid profile", error=str(e))
                profile = None
        self._profile = profile
        self._industry = resolve_industry(profile)
        self._refresh_needs()
        return self._on_inputs_changed()

    def select_need(self, need: Optional[str]) -> List[ScoredEntry]:
        """Set (or clear, with None) the focus need."""
        self._active_need = need or None
        return self._on_inputs_changed()

    def record_exposure(self, descriptors: Sequence[Optional[str]]) -> List[BrowsingSignal]:
        signals = self.browsing.record_exposure(descriptors)
        self._on_inputs_changed()
        return signals

    def record_item_view(self, item_id: str) -> List[BrowsingSignal]:
        """Exposure for a catalog item's category, vertical and tags."""
        item = next((i for i in self._catalog if i.id == item_id), None)
        if item is None:
            return self.browsing.signals
        return self.record_exposure(item.descriptors())

    def register_dwell(self, item_id: str, delta_ms) -> bool:
        """Queue dwell time; re-ranking happens when the queue flushes."""
        return self.attention.register_dwell(item_id, delta_ms)

    def set_query(self, text: Optional[str]) -> None:
        self.search.set_query(text)

    def record_search(self, query: Optional[str]) -> None:
        self.history.record(query)

    # =========================================================
    # Recompute
    # =========================================================

    def _refresh_needs(self) -> None:
        self._needs = detect_needs(self._profile, self._catalog)
        self._active_need = resolve_active_need(self._active_need, self._needs, self._industry)

    def _rerank(self) -> List[ScoredEntry]:
        self._ranked = score_catalog(
            self._catalog,
            self._needs,
            self._active_need,
            self.browsing.signals,
            self._industry,
            self.attention.entries,
            now=self._clock.now(),
            config=self.relevance_config,
        )
        return self.ranked

    def _request_aggregates(self) -> None:
        if self._closed:
            return
        request = AggregateRequest.build(
            self._catalog,
            build_signals(self._needs, self.browsing.signals),
            self._active_need,
        )
        self._pending_metrics = self.aggregates.submit(request)

    def _on_inputs_changed(self) -> List[ScoredEntry]:
        ranked = self._rerank()
        self._request_aggregates()
        return ranked

    def _on_attention_change(self, _entries: Dict[str, AttentionEntry]) -> None:
        self._rerank()

    def refresh(self) -> List[ScoredEntry]:
        """Re-rank against the current clock (recency boosts fade over time)."""
        return self._rerank()

    # =========================================================
    # Teardown
    # =========================================================

    def close(self) -> None:
        """Flush queued dwell, stop the aggregate worker, drop pending results."""
        if self._closed:
            return
        self._closed = True
        self.search.cancel()
        self.attention.flush()
        self.aggregates.close()

    def __enter__(self) -> "MarketplaceSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe summary of the session's current outputs."""
        return {
            "session_id": self.session_id,
            "detected_needs": self.detected_needs,
            "active_need": self._active_need,
            "industry": self._industry,
            "browsing_signals": [
                {**signal.to_dict(), "key": signal.key, "weight": signal.weight}
                for signal in self.browsing.signals
            ],
            "query": self.search.query,
            "results": [entry.to_dict() for entry in self.visible()],
            "total_results": len(self._ranked),
        }
