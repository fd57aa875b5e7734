"""
AttentionStore -- persisted, decay-weighted dwell attention per item.

The UI reports how long the user dwelt on an item. Reports are
coalesced per update cycle in a DwellQueue and applied in one flush:

    score = max(0, old_score * 0.985 + queued_seconds)
    interactions += 1
    last_viewed = now

A second, independent decay runs lazily whenever persisted state is
loaded:

    score = raw_score * 0.94 ** (age_minutes / 18)

The two stack. Only the 32 highest-scoring entries are kept.
"""

from __future__ import annotations

import json
import math
import threading
from typing import Callable, Dict, List, Optional

from config.constants import DEFAULT_ATTENTION_CONFIG, AttentionConfig
from core.logging import LoggerMixin
from core.runtime import Clock, CycleScheduler, SystemClock
from marketplace.models import AttentionEntry
from marketplace.storage import Storage


DEFAULT_ATTENTION_KEY = "automation-attention-scores"


def decay_multiplier(
    last_viewed: float,
    now: float,
    config: AttentionConfig = DEFAULT_ATTENTION_CONFIG,
) -> float:
    """Load-time decay factor for an entry last viewed at ``last_viewed``."""
    if not last_viewed:
        return 1.0
    age_minutes = max(0.0, (now - last_viewed) / 60.0)
    if not age_minutes:
        return 1.0
    return config.DECAY_FACTOR ** (age_minutes / config.DECAY_INTERVAL_MINUTES)


def top_entries(
    entries: Dict[str, AttentionEntry],
    limit: int,
) -> Dict[str, AttentionEntry]:
    """The ``limit`` highest-scoring entries (stable on insertion order)."""
    ordered = sorted(entries.values(), key=lambda e: -e.score)[:limit]
    return {entry.item_id: entry for entry in ordered}


def parse_entries(
    raw: Optional[str],
    now: float,
    config: AttentionConfig = DEFAULT_ATTENTION_CONFIG,
) -> Dict[str, AttentionEntry]:
    """
    Decode persisted attention and apply load-time decay.

    Entries with neither score nor interactions are skipped, as are
    entries whose decayed score falls to MIN_SCORE without interactions.
    """
    if not raw:
        return {}
    data = json.loads(raw)
    if not isinstance(data, dict):
        return {}

    entries: Dict[str, AttentionEntry] = {}
    for item_id, value in data.items():
        if not item_id or not isinstance(value, dict):
            continue
        entry = AttentionEntry.from_dict(str(item_id), value)
        if entry.score <= 0 and entry.interactions <= 0:
            continue
        entry.score = max(0.0, entry.score * decay_multiplier(entry.last_viewed, now, config))
        if entry.score <= config.MIN_SCORE and entry.interactions <= 0:
            continue
        entries[entry.item_id] = entry

    return top_entries(entries, config.MAX_ENTRIES)


class DwellQueue:
    """
    Per-cycle write buffer for dwell reports.

    Reports for the same item within one cycle are summed, so a burst of
    hover events turns into a single store update.
    """

    def __init__(self):
        self._pending: Dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._pending)

    def add(self, item_id: str, seconds: float) -> None:
        with self._lock:
            self._pending[item_id] = self._pending.get(item_id, 0.0) + seconds

    def peek(self, item_id: str) -> float:
        return self._pending.get(item_id, 0.0)

    def drain(self) -> Dict[str, float]:
        """Take everything queued so far and reset."""
        with self._lock:
            pending, self._pending = self._pending, {}
        return pending

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()


def is_valid_dwell(delta_ms) -> bool:
    """Finite, positive, real number of milliseconds."""
    if isinstance(delta_ms, bool) or not isinstance(delta_ms, (int, float)):
        return False
    return math.isfinite(delta_ms) and delta_ms > 0


class AttentionStore(LoggerMixin):
    """
    Dwell attention map with bounded persistence.

    Written only from the session owner's thread. With a cycle
    scheduler, at most one flush runs per cycle; without one, every
    report is applied immediately.

    Usage:
        store = AttentionStore(storage, clock=clock, scheduler=scheduler)
        store.load()
        store.register_dwell("a", 1200)
        scheduler.tick()          # flush once for this cycle
        store.get("a").score
    """

    def __init__(
        self,
        storage: Storage,
        clock: Optional[Clock] = None,
        scheduler: Optional[CycleScheduler] = None,
        storage_key: str = DEFAULT_ATTENTION_KEY,
        config: AttentionConfig = DEFAULT_ATTENTION_CONFIG,
        on_change: Optional[Callable[[Dict[str, AttentionEntry]], None]] = None,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._scheduler = scheduler
        self._key = storage_key
        self.config = config
        self._on_change = on_change
        self._queue = DwellQueue()
        self._flush_scheduled = False
        self._entries: Dict[str, AttentionEntry] = {}

    @property
    def entries(self) -> Dict[str, AttentionEntry]:
        return dict(self._entries)

    @property
    def queue(self) -> DwellQueue:
        return self._queue

    def get(self, item_id: str) -> Optional[AttentionEntry]:
        return self._entries.get(item_id)

    # =========================================================
    # Load / Persist
    # =========================================================

    def load(self) -> Dict[str, AttentionEntry]:
        """Read persisted attention, decayed to now. Never raises."""
        try:
            self._entries = parse_entries(
                self._storage.get(self._key), self._clock.now(), self.config,
            )
        except Exception as e:
            self.logger.warning("Failed to parse attention scores", error=str(e))
            self._entries = {}
        return self.entries

    def persist(self) -> None:
        """
        Write the top entries, or drop the key once nothing is left.

        Best-effort: failures are logged and swallowed.
        """
        try:
            if not self._entries:
                self._storage.remove(self._key)
                return
            trimmed = top_entries(self._entries, self.config.MAX_ENTRIES)
            now = self._clock.now()
            payload = {}
            for item_id, entry in trimmed.items():
                data = entry.to_dict()
                data["last_viewed"] = entry.last_viewed or now
                payload[item_id] = data
            self._storage.set(self._key, json.dumps(payload))
        except Exception as e:
            self.logger.warning("Failed to persist attention scores", error=str(e))

    # =========================================================
    # Dwell Input
    # =========================================================

    def register_dwell(self, item_id: str, delta_ms) -> bool:
        """
        Queue ``delta_ms`` of dwell for ``item_id``.

        Returns False (and does nothing) for a missing id or a delta that
        is not a finite positive number.
        """
        if not item_id or not is_valid_dwell(delta_ms):
            return False

        self._queue.add(str(item_id), delta_ms / 1000.0)

        if self._scheduler is None:
            self.flush()
        elif not self._flush_scheduled:
            self._flush_scheduled = True
            self._scheduler.schedule(self.flush)
        return True

    def flush(self) -> List[str]:
        """Apply every queued dwell report. Returns the updated item ids."""
        self._flush_scheduled = False
        updates = self._queue.drain()
        if not updates:
            return []

        now = self._clock.now()
        cfg = self.config
        for item_id, seconds in updates.items():
            existing = self._entries.get(item_id) or AttentionEntry(item_id=item_id)
            self._entries[item_id] = AttentionEntry(
                item_id=item_id,
                score=max(0.0, existing.score * cfg.FLUSH_DECAY + seconds),
                interactions=existing.interactions + 1,
                last_viewed=now,
            )

        self._entries = top_entries(self._entries, cfg.MAX_ENTRIES)
        self.persist()
        if self._on_change is not None:
            self._on_change(self.entries)
        return list(updates)

    def clear(self) -> None:
        self._queue.clear()
        self._entries = {}
        self.persist()
        if self._on_change is not None:
            self._on_change(self.entries)
