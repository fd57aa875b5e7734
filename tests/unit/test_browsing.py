"""
Tests for browsing exposure buckets.
"""

import json

import pytest


@pytest.fixture
def store(storage, clock):
    from marketplace.browsing import BrowsingSignalStore
    store = BrowsingSignalStore(storage, clock=clock)
    store.load()
    return store


class TestRankSignals:

    def test_weight_falls_with_rank(self):
        from marketplace.browsing import rank_signals
        from marketplace.models import BrowsingSignal

        buckets = [
            BrowsingSignal(key=f"k{i}", label=f"K{i}", count=1, last_seen=float(i))
            for i in range(8)
        ]
        ranked = rank_signals(buckets)

        assert len(ranked) == 6
        # Most recent first on equal counts
        assert [s.key for s in ranked] == ["k7", "k6", "k5", "k4", "k3", "k2"]
        assert [s.weight for s in ranked] == pytest.approx([5.3, 4.3, 3.3, 2.3, 1.3, 1.3])

    def test_count_bonus_is_capped(self):
        from marketplace.browsing import rank_signals
        from marketplace.models import BrowsingSignal

        ranked = rank_signals([BrowsingSignal(key="a", label="A", count=40, last_seen=1.0)])

        assert ranked[0].weight == pytest.approx(5 + 5 * 0.3)

    def test_count_beats_recency(self):
        from marketplace.browsing import rank_signals
        from marketplace.models import BrowsingSignal

        ranked = rank_signals([
            BrowsingSignal(key="new", label="New", count=1, last_seen=100.0),
            BrowsingSignal(key="old", label="Old", count=3, last_seen=1.0),
        ])

        assert [s.key for s in ranked] == ["old", "new"]


class TestRecordExposure:

    def test_repeated_exposure(self, store):
        store.record_exposure(["Finance", "Finance"])
        signals = store.record_exposure(["Finance", "Finance"])

        assert len(signals) == 1
        assert signals[0].label == "Finance"
        assert signals[0].count == 2
        assert signals[0].weight == pytest.approx(5.6)

    def test_labels_are_title_cased(self, store):
        signals = store.record_exposure(["supply-chain_ops"])

        assert signals[0].key == "supply-chain_ops"
        assert signals[0].label == "Supply Chain Ops"

    def test_blank_descriptors_ignored(self, store, storage):
        signals = store.record_exposure([None, "", "   "])

        assert signals == []
        assert storage.get("automation-browsing-signals") is None

    def test_never_more_than_six(self, store):
        for i in range(10):
            store.record_exposure([f"tag{i}"])

        assert len(store.signals) == 6

    def test_persists_full_bucket_map(self, store, storage):
        for i in range(10):
            store.record_exposure([f"tag{i}"])

        persisted = json.loads(storage.get("automation-browsing-signals"))

        assert len(persisted) == 10
        assert set(persisted["tag0"]) == {"label", "count", "last_seen"}

    def test_record_item_uses_descriptors(self, store, sample_catalog):
        signals = store.record_item(sample_catalog[0])

        assert {s.label for s in signals} == {"Healthcare", "Health", "Claims", "Intake"}

    def test_last_seen_follows_clock(self, store, clock):
        store.record_exposure(["crm"])
        clock.advance(30)
        store.record_exposure(["crm"])

        assert store.signals[0].last_seen == clock.now()

    def test_clear_removes_persisted_state(self, store, storage):
        store.record_exposure(["crm"])
        store.clear()

        assert store.signals == []
        assert storage.get("automation-browsing-signals") is None


class TestLoad:

    def test_reload_round_trip(self, storage, clock, store):
        from marketplace.browsing import BrowsingSignalStore

        store.record_exposure(["crm", "sales"])
        store.record_exposure(["crm"])

        reloaded = BrowsingSignalStore(storage, clock=clock)
        reloaded.load()

        assert [(s.label, s.count) for s in reloaded.signals] == [("Crm", 2), ("Sales", 1)]

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", "null", json.dumps({"x": 5})])
    def test_malformed_state_is_empty(self, clock, raw):
        from marketplace.browsing import BrowsingSignalStore
        from marketplace.storage import InMemoryStorage

        storage = InMemoryStorage({"automation-browsing-signals": raw})
        store = BrowsingSignalStore(storage, clock=clock)

        assert store.load() == []

    def test_storage_failure_does_not_raise(self, clock):
        from unittest.mock import MagicMock

        from core.errors import StorageError
        from marketplace.browsing import BrowsingSignalStore

        storage = MagicMock()
        storage.get.side_effect = StorageError("down")
        storage.set.side_effect = StorageError("down")
        store = BrowsingSignalStore(storage, clock=clock)

        assert store.load() == []
        signals = store.record_exposure(["crm"])

        assert [s.label for s in signals] == ["Crm"]
