"""
BrowsingSignalStore -- persisted record of category/tag exposure.

Every time the user views or interacts with a catalog item its
descriptors (category, vertical, tags) are counted into buckets keyed by
the lowercase descriptor. The full bucket map is persisted; the ranked
view handed to the scorer is the top 6 by (count desc, last_seen desc)
with a weight that falls with rank:

    weight = max(1, 5 - rank) + min(count, 5) * 0.3

Malformed persisted data is treated as empty.
"""

from __future__ import annotations

import json
from typing import Dict, Iterable, List, Optional

from config.constants import DEFAULT_BROWSING_CONFIG, BrowsingConfig
from core.logging import LoggerMixin
from core.runtime import Clock, SystemClock
from core.utils import normalize, title_case
from marketplace.models import BrowsingSignal, CatalogItem
from marketplace.storage import Storage


DEFAULT_BROWSING_KEY = "automation-browsing-signals"


def rank_signals(
    buckets: Iterable[BrowsingSignal],
    config: BrowsingConfig = DEFAULT_BROWSING_CONFIG,
) -> List[BrowsingSignal]:
    """Top buckets by (count desc, last_seen desc), with rank weights."""
    ordered = sorted(
        (b for b in buckets if b.label),
        key=lambda b: (-b.count, -b.last_seen),
    )[:config.MAX_SIGNALS]

    ranked = []
    for index, bucket in enumerate(ordered):
        weight = (
            max(1, config.RANK_WEIGHT_CEILING - index)
            + min(bucket.count, config.COUNT_CAP) * config.COUNT_WEIGHT
        )
        ranked.append(BrowsingSignal(
            key=bucket.key,
            label=bucket.label,
            count=bucket.count,
            last_seen=bucket.last_seen,
            weight=weight,
        ))
    return ranked


def parse_buckets(raw: Optional[str]) -> Dict[str, BrowsingSignal]:
    """Decode a persisted bucket map. Anything unexpected yields {}."""
    if not raw:
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        return {}
    buckets = {}
    for key, value in data.items():
        if not key or not isinstance(value, dict):
            continue
        bucket = BrowsingSignal.from_dict(str(key), value)
        if bucket.label:
            buckets[bucket.key] = bucket
    return buckets


class BrowsingSignalStore(LoggerMixin):
    """
    Exposure counter with a bounded, ranked view.

    Written only from the session owner's thread.

    Usage:
        store = BrowsingSignalStore(storage, clock=clock)
        store.load()
        store.record_item(item)
        store.signals   # top 6 BrowsingSignal, weights set
    """

    def __init__(
        self,
        storage: Storage,
        clock: Optional[Clock] = None,
        storage_key: str = DEFAULT_BROWSING_KEY,
        config: BrowsingConfig = DEFAULT_BROWSING_CONFIG,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._key = storage_key
        self.config = config
        self._buckets: Dict[str, BrowsingSignal] = {}
        self._signals: List[BrowsingSignal] = []

    @property
    def signals(self) -> List[BrowsingSignal]:
        return list(self._signals)

    def labels(self) -> List[str]:
        return [signal.label for signal in self._signals]

    def _read_buckets(self) -> Dict[str, BrowsingSignal]:
        try:
            return parse_buckets(self._storage.get(self._key))
        except Exception as e:
            self.logger.warning("Failed to load browsing signals", error=str(e))
            return {}

    def load(self) -> List[BrowsingSignal]:
        """Read persisted buckets and rebuild the ranked view."""
        self._buckets = self._read_buckets()
        self._signals = rank_signals(self._buckets.values(), self.config)
        return self.signals

    def record_exposure(self, descriptors: Iterable[Optional[str]]) -> List[BrowsingSignal]:
        """
        Count one exposure for each distinct descriptor.

        Descriptors that normalize to the same key count once per call,
        so an item whose category equals its vertical is not counted
        twice.
        """
        now = self._clock.now()
        buckets = dict(self._buckets)
        touched = set()

        for descriptor in descriptors or ():
            if not descriptor:
                continue
            key = normalize(descriptor).strip()
            if not key or key in touched:
                continue
            touched.add(key)
            existing = buckets.get(key)
            buckets[key] = BrowsingSignal(
                key=key,
                label=title_case(descriptor),
                count=(existing.count if existing else 0) + 1,
                last_seen=now,
            )

        if not touched:
            return self.signals

        self._buckets = buckets
        self._persist()
        self._signals = rank_signals(self._buckets.values(), self.config)
        return self.signals

    def record_item(self, item: CatalogItem) -> List[BrowsingSignal]:
        return self.record_exposure(item.descriptors())

    def clear(self) -> None:
        self._buckets = {}
        self._signals = []
        try:
            self._storage.remove(self._key)
        except Exception as e:
            self.logger.warning("Failed to clear browsing signals", error=str(e))

    def _persist(self) -> None:
        payload = {key: bucket.to_dict() for key, bucket in self._buckets.items()}
        try:
            self._storage.set(self._key, json.dumps(payload))
        except Exception as e:
            self.logger.warning("Failed to persist browsing signals", error=str(e))
