"""
Tests for dwell attention: queueing, flush decay, load-time decay and
bounded persistence.
"""

import json
import math

import pytest


ATTENTION_KEY = "automation-attention-scores"


@pytest.fixture
def store(storage, clock):
    from marketplace.attention import AttentionStore
    store = AttentionStore(storage, clock=clock)
    store.load()
    return store


def _reload(storage, clock):
    from marketplace.attention import AttentionStore
    store = AttentionStore(storage, clock=clock)
    store.load()
    return store


class TestDecayMultiplier:

    def test_no_age_no_decay(self):
        from marketplace.attention import decay_multiplier

        assert decay_multiplier(1000.0, 1000.0) == 1.0
        assert decay_multiplier(0.0, 1000.0) == 1.0

    def test_one_interval(self):
        from marketplace.attention import decay_multiplier

        assert decay_multiplier(0.001, 0.001 + 18 * 60) == pytest.approx(0.94)

    def test_future_timestamp_does_not_grow(self):
        from marketplace.attention import decay_multiplier

        assert decay_multiplier(5000.0, 1000.0) == 1.0


class TestRegisterDwell:

    def test_dwell_then_reload(self, store, storage, clock):
        assert store.register_dwell("a", 2000) is True

        entry = _reload(storage, clock).get("a")

        assert entry.interactions == 1
        assert entry.score == pytest.approx(2.0)
        assert entry.last_viewed == clock.now()

    def test_flush_decays_previous_score(self, store):
        store.register_dwell("a", 10_000)
        store.register_dwell("a", 1000)

        entry = store.get("a")

        assert entry.score == pytest.approx(10 * 0.985 + 1)
        assert entry.interactions == 2

    @pytest.mark.parametrize("delta", [0, -5, float("nan"), float("inf"), None, "1000", True])
    def test_invalid_dwell_ignored(self, store, storage, delta):
        assert store.register_dwell("a", delta) is False
        assert store.entries == {}
        assert storage.get(ATTENTION_KEY) is None

    def test_missing_item_id_ignored(self, store):
        assert store.register_dwell("", 1000) is False

    def test_on_change_receives_entries(self, storage, clock):
        from marketplace.attention import AttentionStore

        seen = []
        store = AttentionStore(storage, clock=clock, on_change=seen.append)
        store.register_dwell("a", 1500)

        assert len(seen) == 1
        assert seen[0]["a"].score == pytest.approx(1.5)


class TestCycleCoalescing:

    def test_one_flush_per_cycle(self, storage, clock, scheduler):
        from marketplace.attention import AttentionStore

        store = AttentionStore(storage, clock=clock, scheduler=scheduler)
        store.register_dwell("a", 500)
        store.register_dwell("a", 700)
        store.register_dwell("b", 100)

        assert scheduler.pending == 1
        assert store.get("a") is None
        assert store.queue.peek("a") == pytest.approx(1.2)

        assert scheduler.tick() == 1
        assert store.get("a").interactions == 1
        assert store.get("b").interactions == 1
        assert len(store.queue) == 0

    def test_split_events_match_single_event(self, clock, scheduler):
        from marketplace.attention import AttentionStore
        from marketplace.storage import InMemoryStorage

        split = AttentionStore(InMemoryStorage(), clock=clock, scheduler=scheduler)
        split.register_dwell("a", 500)
        split.register_dwell("a", 700)
        scheduler.tick()

        single = AttentionStore(InMemoryStorage(), clock=clock, scheduler=scheduler)
        single.register_dwell("a", 1200)
        scheduler.tick()

        assert split.get("a").score == pytest.approx(single.get("a").score)
        assert split.get("a").interactions == single.get("a").interactions

    def test_next_cycle_schedules_again(self, storage, clock, scheduler):
        from marketplace.attention import AttentionStore

        store = AttentionStore(storage, clock=clock, scheduler=scheduler)
        store.register_dwell("a", 500)
        scheduler.tick()
        store.register_dwell("a", 500)

        assert scheduler.pending == 1


class TestLoad:

    def test_load_returns_at_most_32_non_negative(self, clock):
        from marketplace.storage import InMemoryStorage

        raw = {
            f"item-{i}": {"score": float(i - 5), "interactions": 1, "last_viewed": clock.now() - i * 60}
            for i in range(50)
        }
        storage = InMemoryStorage({ATTENTION_KEY: json.dumps(raw)})

        entries = _reload(storage, clock).entries

        assert len(entries) <= 32
        assert all(entry.score >= 0 for entry in entries.values())

    def test_keeps_highest_scores(self, clock):
        from marketplace.storage import InMemoryStorage

        raw = {f"item-{i}": {"score": float(i), "interactions": 1} for i in range(40)}
        storage = InMemoryStorage({ATTENTION_KEY: json.dumps(raw)})

        entries = _reload(storage, clock).entries

        assert "item-39" in entries
        assert "item-7" not in entries
        assert len(entries) == 32

    def test_decay_is_monotonic(self, storage, clock, store):
        store.register_dwell("a", 5000)

        scores = []
        for _ in range(5):
            clock.advance_minutes(7)
            scores.append(_reload(storage, clock).get("a").score)

        assert scores == sorted(scores, reverse=True)
        assert scores[-1] < 5.0

    def test_load_time_decay(self, clock):
        from marketplace.storage import InMemoryStorage

        raw = {"a": {"score": 10.0, "interactions": 2, "last_viewed": clock.now() - 36 * 60}}
        storage = InMemoryStorage({ATTENTION_KEY: json.dumps(raw)})

        entry = _reload(storage, clock).get("a")

        assert entry.score == pytest.approx(10 * 0.94 ** 2)

    def test_stale_entries_without_interactions_dropped(self, clock):
        from marketplace.storage import InMemoryStorage

        raw = {
            "faded": {"score": 1.0, "interactions": 0, "last_viewed": clock.now() - 100 * 3600},
            "tiny": {"score": 0.005, "interactions": 0, "last_viewed": clock.now()},
            "kept": {"score": 0.005, "interactions": 3, "last_viewed": clock.now()},
            "empty": {"score": 0, "interactions": 0},
        }
        storage = InMemoryStorage({ATTENTION_KEY: json.dumps(raw)})

        assert set(_reload(storage, clock).entries) == {"kept"}

    @pytest.mark.parametrize("raw", [
        "{broken",
        "[]",
        "42",
        json.dumps({"a": "not-a-dict"}),
        json.dumps({"a": {"score": "NaN", "interactions": "x"}}),
    ])
    def test_malformed_state_is_empty(self, clock, raw):
        from marketplace.storage import InMemoryStorage

        storage = InMemoryStorage({ATTENTION_KEY: raw})

        assert _reload(storage, clock).entries == {}


class TestPersist:

    def test_persists_at_most_32(self, store, storage):
        for i in range(40):
            store.register_dwell(f"item-{i}", 1000 + i)

        persisted = json.loads(storage.get(ATTENTION_KEY))

        assert len(persisted) == 32
        assert len(store.entries) == 32
        assert "item-39" in persisted
        assert set(persisted["item-39"]) == {"score", "interactions", "last_viewed"}

    def test_clear_removes_key(self, store, storage):
        store.register_dwell("a", 1000)
        store.clear()

        assert storage.get(ATTENTION_KEY) is None
        assert store.entries == {}

    def test_write_failure_is_swallowed(self, clock):
        from unittest.mock import MagicMock

        from core.errors import StorageError
        from marketplace.attention import AttentionStore

        storage = MagicMock()
        storage.get.return_value = None
        storage.set.side_effect = StorageError("quota exceeded")
        store = AttentionStore(storage, clock=clock)

        assert store.register_dwell("a", 1000) is True
        assert store.get("a").score == pytest.approx(1.0)
        assert math.isfinite(store.get("a").score)
