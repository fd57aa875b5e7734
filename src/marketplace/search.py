"""
SearchFilter -- debounced substring filter over the ranked list.

The filter runs strictly after ranking and never re-sorts. A query is
matched case-insensitively against the item's name, description,
category, vertical and tags joined by spaces. Blank queries pass the
ranked list through unchanged.

Query changes are debounced on the trailing edge (~300ms): only the
last value typed within the window takes effect.

Also here: a small persisted history of recent queries, and the
suggestion list shown before the user types.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence

from config.constants import MAX_SEARCH_HISTORY, MAX_SEARCH_SUGGESTIONS
from core.logging import LoggerMixin
from core.runtime import Clock, SystemClock
from core.utils import normalize, title_case, to_finite_float
from marketplace.models import CatalogItem, ScoredEntry, SearchHistoryEntry
from marketplace.storage import Storage


DEFAULT_SEARCH_HISTORY_KEY = "automation-search-history"


def searchable_text(item: CatalogItem) -> str:
    fields = [item.name, item.description, item.category, item.vertical, *item.tags]
    return " ".join(f for f in fields if f).lower()


def filter_ranked(ranked: Sequence[ScoredEntry], query: Optional[str]) -> List[ScoredEntry]:
    """Entries whose searchable text contains ``query``, in ranked order."""
    needle = normalize(query).strip()
    if not needle:
        return list(ranked)
    return [entry for entry in ranked if needle in searchable_text(entry.item)]


class Debouncer:
    """
    Trailing-edge debounce against an injected clock.

    call() records a pending value and pushes the deadline out by
    ``wait`` seconds. ``value`` commits the pending value once the clock
    has passed the deadline. Nothing fires on the leading edge.
    """

    _NOTHING = object()

    def __init__(self, clock: Clock, wait: float = 0.3, initial=None):
        self._clock = clock
        self.wait = wait
        self._value = initial
        self._pending = self._NOTHING
        self._deadline = 0.0

    @property
    def is_pending(self) -> bool:
        return self._pending is not self._NOTHING

    def call(self, value) -> None:
        self._pending = value
        self._deadline = self._clock.now() + self.wait

    @property
    def value(self):
        if self.is_pending and self._clock.now() >= self._deadline:
            self._value = self._pending
            self._pending = self._NOTHING
        return self._value

    def flush(self):
        """Commit the pending value immediately."""
        if self.is_pending:
            self._value = self._pending
            self._pending = self._NOTHING
        return self._value

    def cancel(self) -> None:
        self._pending = self._NOTHING


class SearchFilter:
    """
    Debounced free-text filter.

    Usage:
        search = SearchFilter(clock)
        search.set_query("crm")
        search.apply(ranked)    # unchanged until 300ms have passed
    """

    def __init__(self, clock: Optional[Clock] = None, debounce_seconds: float = 0.3):
        self._debouncer = Debouncer(clock or SystemClock(), debounce_seconds, initial="")
        self._raw = ""

    @property
    def raw_query(self) -> str:
        """What the user has typed, before debouncing."""
        return self._raw

    @property
    def query(self) -> str:
        """The query currently applied."""
        return self._debouncer.value

    @property
    def is_active(self) -> bool:
        return bool(self.query)

    def set_query(self, text: Optional[str]) -> None:
        self._raw = text or ""
        self._debouncer.call(self._raw.strip().lower())

    def flush(self) -> str:
        return self._debouncer.flush()

    def cancel(self) -> None:
        self._debouncer.cancel()

    def apply(self, ranked: Sequence[ScoredEntry]) -> List[ScoredEntry]:
        return filter_ranked(ranked, self.query)


# =============================================================================
# Search History
# =============================================================================

class SearchHistory(LoggerMixin):
    """Most-recent-first list of selected queries, persisted, at most 8."""

    def __init__(
        self,
        storage: Storage,
        clock: Optional[Clock] = None,
        storage_key: str = DEFAULT_SEARCH_HISTORY_KEY,
        limit: int = MAX_SEARCH_HISTORY,
    ):
        self._storage = storage
        self._clock = clock or SystemClock()
        self._key = storage_key
        self.limit = limit
        self._entries: List[SearchHistoryEntry] = []

    @property
    def entries(self) -> List[SearchHistoryEntry]:
        return list(self._entries)

    def queries(self) -> List[str]:
        return [entry.query for entry in self._entries]

    def load(self) -> List[SearchHistoryEntry]:
        try:
            raw = self._storage.get(self._key)
            data = json.loads(raw) if raw else []
        except Exception as e:
            self.logger.warning("Failed to parse search history", error=str(e))
            data = []

        entries = []
        if isinstance(data, list):
            for value in data:
                if isinstance(value, dict) and isinstance(value.get("query"), str):
                    entries.append(SearchHistoryEntry(
                        query=value["query"],
                        ts=to_finite_float(value.get("ts")) or 0.0,
                    ))
        self._entries = entries[:self.limit]
        return self.entries

    def record(self, query: Optional[str]) -> List[SearchHistoryEntry]:
        text = (query or "").strip()
        if not text:
            return self.entries
        remaining = [entry for entry in self._entries if entry.query != text]
        self._entries = [SearchHistoryEntry(query=text, ts=self._clock.now()), *remaining][:self.limit]
        self._persist()
        return self.entries

    def _persist(self) -> None:
        try:
            self._storage.set(self._key, json.dumps([e.to_dict() for e in self._entries]))
        except Exception as e:
            self.logger.warning("Failed to persist search history", error=str(e))


def build_suggestions(
    active_need: Optional[str],
    industry: Optional[str],
    history: Sequence[str],
    limit: int = MAX_SEARCH_SUGGESTIONS,
) -> List[str]:
    """Focus need, industry, then recent queries; unique, at most ``limit``."""
    suggestions = []
    if active_need:
        suggestions.append(title_case(active_need))
    if industry:
        suggestions.append(f"{title_case(industry)} automations")
    suggestions.extend(q for q in history if q)
    return list(dict.fromkeys(suggestions))[:limit]
