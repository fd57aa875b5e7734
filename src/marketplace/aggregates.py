"""
AggregateMetricsEngine -- catalog-wide statistics off the ranking path.

compute_aggregates() is the only implementation of the metrics:

- average_roi: mean of numeric roi values (None if there are none)
- top_category: highest roi-sum / count, ties broken by count
- combo: up to 3 items whose category/tags overlap at least two of the
  combined need + browsing signals, scored
  roi + 1.75 * overlap + (2.5 if a focus need is set)

The engine runs it on a one-thread background executor. If that
executor cannot be built, rejects the request, or the computation
fails there, the same function runs synchronously instead. Only the
immutable AggregateRequest snapshot crosses the thread boundary.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence

from config.constants import DEFAULT_AGGREGATE_CONFIG, AggregateConfig
from core.logging import LoggerMixin
from core.utils import normalize
from marketplace.models import (
    EMPTY_METRICS,
    AggregateMetrics,
    AggregateRequest,
    BrowsingSignal,
    ComboEntry,
    TopCategory,
)


def build_signals(
    detected_needs: Sequence[str],
    browsing_signals: Sequence[BrowsingSignal],
) -> List[str]:
    """Detected needs followed by browsing labels."""
    return [*detected_needs, *(s.label for s in browsing_signals if s.label)]


def compute_aggregates(
    request: AggregateRequest,
    config: AggregateConfig = DEFAULT_AGGREGATE_CONFIG,
) -> AggregateMetrics:
    """Pure aggregate computation shared by the worker and the fallback."""
    if not request.catalog:
        return EMPTY_METRICS

    roi_values: List[float] = []
    categories: Dict[str, List[float]] = {}   # category -> [count, roi_sum]
    candidates: List[ComboEntry] = []
    signals = [(signal, normalize(signal)) for signal in request.signals]
    focus_bonus = config.FOCUS_BONUS if request.focus else 0.0

    for item in request.catalog:
        roi = item.roi
        if roi is not None:
            roi_values.append(roi)

        category = item.effective_category or config.DEFAULT_CATEGORY
        bucket = categories.setdefault(category, [0, 0.0])
        bucket[0] += 1
        if roi is not None:
            bucket[1] += roi

        category_key = normalize(category)
        tags = [normalize(tag) for tag in item.tags]
        overlap = tuple(
            signal for signal, key in signals
            if key and (key in category_key or any(key in tag for tag in tags))
        )
        if len(overlap) >= config.MIN_OVERLAP:
            item_roi = roi if roi is not None else 0.0
            candidates.append(ComboEntry(
                id=item.id,
                name=item.name,
                overlap=overlap,
                roi=item_roi,
                score=item_roi + len(overlap) * config.OVERLAP_WEIGHT + focus_bonus,
            ))

    average_roi = sum(roi_values) / len(roi_values) if roi_values else None

    ranked_categories = sorted(
        (
            TopCategory(category=name, count=int(count), roi_average=roi_sum / count if count else 0.0)
            for name, (count, roi_sum) in categories.items()
        ),
        key=lambda c: (-c.roi_average, -c.count),
    )
    top_category = ranked_categories[0] if ranked_categories else None

    combo = tuple(sorted(candidates, key=lambda c: -c.score)[:config.COMBO_LIMIT])

    return AggregateMetrics(average_roi=average_roi, top_category=top_category, combo=combo)


def _default_executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=1, thread_name_prefix="aggregate-worker")


class AggregateMetricsEngine(LoggerMixin):
    """
    Computes aggregate metrics on a background thread with a
    synchronous fallback.

    Each completed response replaces ``latest`` (last write wins). After
    close(), late responses are discarded.

    Usage:
        engine = AggregateMetricsEngine(on_metrics=session.set_metrics)
        future = engine.submit(AggregateRequest.build(catalog, signals, focus))
        metrics = future.result()
        engine.close()
    """

    def __init__(
        self,
        use_background: bool = True,
        executor_factory: Optional[Callable[[], object]] = None,
        on_metrics: Optional[Callable[[AggregateMetrics], None]] = None,
        config: AggregateConfig = DEFAULT_AGGREGATE_CONFIG,
    ):
        self.config = config
        self._on_metrics = on_metrics
        self._lock = threading.Lock()
        self._latest: AggregateMetrics = EMPTY_METRICS
        self._closed = False
        self._executor = None
        if use_background:
            self._start_worker(executor_factory or _default_executor)

    def _start_worker(self, factory: Callable[[], object]) -> None:
        try:
            self._executor = factory()
        except Exception as e:
            self.logger.warning("Aggregate worker unavailable, computing synchronously",
                                error=str(e))
            self._executor = None

    @property
    def background_available(self) -> bool:
        return self._executor is not None and not self._closed

    @property
    def latest(self) -> AggregateMetrics:
        return self._latest

    # =========================================================
    # Requests
    # =========================================================

    def submit(self, request: AggregateRequest) -> "Future[AggregateMetrics]":
        """
        Dispatch a request. The returned future always resolves to metrics;
        worker failures are absorbed by the synchronous fallback.
        """
        outer: Future = Future()

        if not self.background_available:
            return self._resolve_sync(request, outer)

        try:
            inner = self._executor.submit(compute_aggregates, request, self.config)
        except Exception as e:
            self.logger.warning("Aggregate worker rejected request, computing synchronously",
                                error=str(e))
            return self._resolve_sync(request, outer)

        inner.add_done_callback(lambda done: self._on_worker_done(request, done, outer))
        return outer

    def compute(self, request: AggregateRequest, timeout: Optional[float] = None) -> AggregateMetrics:
        """Submit and wait."""
        return self.submit(request).result(timeout=timeout)

    def _resolve_sync(self, request: AggregateRequest, outer: Future) -> Future:
        metrics = compute_aggregates(request, self.config)
        try:
            self._publish(metrics)
        finally:
            outer.set_result(metrics)
        return outer

    def _on_worker_done(self, request: AggregateRequest, inner: Future, outer: Future) -> None:
        if inner.cancelled():
            outer.cancel()
            return

        error = inner.exception()
        if error is not None:
            self.logger.warning("Aggregate worker failed, computing synchronously",
                                error=str(error), error_type=type(error).__name__)
            metrics = compute_aggregates(request, self.config)
        else:
            metrics = inner.result()

        try:
            self._publish(metrics)
        finally:
            outer.set_result(metrics)

    def _publish(self, metrics: AggregateMetrics) -> None:
        with self._lock:
            if self._closed:
                return
            self._latest = metrics
            callback = self._on_metrics
        if callback is not None:
            callback(metrics)

    # =========================================================
    # Teardown
    # =========================================================

    def close(self) -> None:
        """Stop the worker; pending work is cancelled, late results dropped."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)
