"""Tests for eviction sweeps, summarization and victim selection."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from structlog.testing import capture_logs

from decaymem import DecayScorer, DecayStore, Entry
from decaymem.lifecycle import maybe_summarize, select_victim, summarize_all, sweep
from tests.fake_clock import BASE_TIME, FakeClock

StoreFactory = Callable[..., DecayStore]


class CountingSummarizer:
    """summarize_fn double that records which keys it was called for."""

    def __init__(self, prefix: str = "sum:") -> None:
        self.prefix = prefix
        self.keys: list[object] = []

    def __call__(self, entry: Entry) -> str:
        self.keys.append(entry.key)
        return f"{self.prefix}{entry.value}"


def _entry(key: str, **overrides: object) -> Entry:
    fields: dict[str, object] = {"key": key, "value": key, "inserted_at": BASE_TIME, "last_accessed_at": BASE_TIME}
    fields.update(overrides)
    return Entry(**fields)


# ---------------------------------------------------------------------------
# evict()
# ---------------------------------------------------------------------------


class TestEvict:
    def test_summarized_on_the_way_out(self, make_store: StoreFactory, clock: FakeClock) -> None:
        summarizer = CountingSummarizer()
        store = make_store(
            half_life=1_000_000,
            summarize_fn=summarizer,
            summarize_threshold=0.3,
            eviction_threshold=0.01,
        ).put("old", "old")
        clock.set(7200)

        store, evicted = store.evict()

        assert len(evicted) == 1
        assert evicted[0].value == "old"
        assert evicted[0].summary == "sum:old"
        assert store.size() == 0

    def test_summarized_and_kept_above_eviction_threshold(self, make_store: StoreFactory, clock: FakeClock) -> None:
        # One-hour half-life: score 0.25 at 7200s sits between the two thresholds.
        summarizer = CountingSummarizer()
        store = make_store(summarize_fn=summarizer, summarize_threshold=0.3, eviction_threshold=0.01).put("old", "old")
        clock.set(7200)

        store, evicted = store.evict()

        assert evicted == []
        kept = store.peek("old")
        assert kept is not None
        assert kept.summary == "sum:old"
        assert kept.value == "old"

    def test_without_summarize_fn(self, make_store: StoreFactory, clock: FakeClock) -> None:
        store = make_store().put("k", "value")
        clock.set(86_400)

        store, evicted = store.evict()

        assert len(evicted) == 1
        assert evicted[0].summary is None
        assert store.size() == 0

    def test_keeps_fresh_entries(self, make_store: StoreFactory, clock: FakeClock) -> None:
        store = make_store().put("old", "1")
        clock.set(86_400)
        store = store.put("fresh", "2")

        store, evicted = store.evict()

        assert [e.key for e in evicted] == ["old"]
        assert store.keys() == ["fresh"]

    def test_pinned_never_evicted_or_summarized(self, make_store: StoreFactory, clock: FakeClock) -> None:
        summarizer = CountingSummarizer()
        store = make_store(summarize_fn=summarizer, summarize_threshold=0.3).put("p", "important", pinned=True)
        clock.set(86_400 * 30)

        store, evicted = store.evict()

        assert evicted == []
        entry = store.peek("p")
        assert entry is not None
        assert entry.summary is None
        assert summarizer.keys == []

    def test_existing_summary_not_recomputed(self, make_store: StoreFactory, clock: FakeClock) -> None:
        summarizer = CountingSummarizer()
        store = make_store(summarize_fn=summarizer, summarize_threshold=0.3, eviction_threshold=0.01).put("k", "v")
        clock.set(7200)

        store, _ = store.evict()
        store, _ = store.evict()
        clock.set(86_400)
        _store, evicted = store.evict()

        assert summarizer.keys == ["k"]
        assert evicted[0].summary == "sum:v"

    def test_above_summarize_threshold_not_summarized(self, make_store: StoreFactory, clock: FakeClock) -> None:
        summarizer = CountingSummarizer()
        store = make_store(summarize_fn=summarizer, summarize_threshold=0.3).put("k", "v")
        clock.set(1800)

        store, evicted = store.evict()

        assert evicted == []
        assert summarizer.keys == []

    def test_logs_sweep(self, make_store: StoreFactory, clock: FakeClock) -> None:
        store = make_store().put("old", "1")
        clock.set(86_400)

        with capture_logs() as logs:
            store.evict()

        sweeps = [log for log in logs if log["event"] == "eviction sweep"]
        assert len(sweeps) == 1
        assert sweeps[0]["evicted"] == 1
        assert sweeps[0]["log_level"] == "info"


# ---------------------------------------------------------------------------
# summarize()
# ---------------------------------------------------------------------------


class TestSummarize:
    def test_value_preserved_summary_populated(self, make_store: StoreFactory, clock: FakeClock) -> None:
        store = make_store(
            summarize_fn=lambda e: f"summarized: {e.value}",
            summarize_threshold=0.3,
            eviction_threshold=0.01,
        ).put("old", "original value")
        clock.set(7200)

        store = store.summarize()

        entry = store.peek("old")
        assert entry is not None
        assert entry.value == "original value"
        assert entry.summary == "summarized: original value"
        assert entry.is_summarized

    def test_called_once_per_entry(self, make_store: StoreFactory, clock: FakeClock) -> None:
        summarizer = CountingSummarizer()
        store = make_store(summarize_fn=summarizer, summarize_threshold=0.3).put("k", "value")
        clock.set(7200)

        store = store.summarize().summarize()

        assert summarizer.keys == ["k"]

    def test_only_eligible_entries(self, make_store: StoreFactory, clock: FakeClock) -> None:
        store = make_store(summarize_fn=lambda e: f"short: {e.value}", summarize_threshold=0.3).put("stale", "stale")
        clock.set(7200)
        store = store.put("fresh", "fresh")

        store = store.summarize()

        stale = store.peek("stale")
        fresh = store.peek("fresh")
        assert stale is not None
        assert fresh is not None
        assert stale.summary == "short: stale"
        assert fresh.summary is None
        assert store.size() == 2

    def test_noop_without_summarize_fn(self, make_store: StoreFactory, clock: FakeClock) -> None:
        store = make_store().put("k", "value")
        clock.set(86_400)
        reads = clock.calls

        assert store.summarize() is store
        assert clock.calls == reads

    def test_pinned_never_summarized(self, make_store: StoreFactory, clock: FakeClock) -> None:
        store = make_store(summarize_fn=lambda _e: "summary", summarize_threshold=0.3).put("p", "v", pinned=True)
        clock.set(86_400)

        entry = store.summarize().peek("p")

        assert entry is not None
        assert entry.summary is None

    def test_update_keeps_summary(self, make_store: StoreFactory, clock: FakeClock) -> None:
        summarizer = CountingSummarizer()
        store = make_store(summarize_fn=summarizer, summarize_threshold=0.3).put("k", "v1")
        clock.set(7200)
        store = store.summarize().update("k", "v2")

        entry = store.peek("k")
        assert entry is not None
        assert entry.value == "v2"
        assert entry.summary == "sum:v1"

    def test_put_replacement_resets_summary(self, make_store: StoreFactory, clock: FakeClock) -> None:
        summarizer = CountingSummarizer()
        store = make_store(summarize_fn=summarizer, summarize_threshold=0.3).put("k", "v1")
        clock.set(7200)
        store = store.summarize().put("k", "v2")
        clock.set(14_400)
        store = store.summarize()

        entry = store.peek("k")
        assert entry is not None
        assert entry.summary == "sum:v2"
        assert summarizer.keys == ["k", "k"]


# ---------------------------------------------------------------------------
# Capacity eviction does not summarize
# ---------------------------------------------------------------------------


def test_capacity_eviction_skips_summarize_fn(make_store: StoreFactory, clock: FakeClock) -> None:
    summarizer = CountingSummarizer()
    store = make_store(max_entries=2, summarize_fn=summarizer, summarize_threshold=0.3).put("a", "1")
    clock.set(7200)
    store = store.put("b", "2")
    clock.set(7201)

    store = store.put("c", "3")

    assert summarizer.keys == []
    assert set(store.keys()) == {"b", "c"}


def test_capacity_eviction_logged(make_store: StoreFactory, clock: FakeClock) -> None:
    store = make_store(max_entries=1).put("a", "1")
    clock.set(60)

    with capture_logs() as logs:
        store.put("b", "2")

    assert {"event": "capacity eviction", "victim": "a", "key": "b", "log_level": "debug"} in logs


# ---------------------------------------------------------------------------
# Lifecycle functions
# ---------------------------------------------------------------------------


class TestSelectVictim:
    scorer = DecayScorer("exponential", 3_600_000)

    def test_lowest_score(self) -> None:
        entries = {
            "old": _entry("old"),
            "new": _entry("new", last_accessed_at=BASE_TIME.replace(hour=1)),
        }
        assert select_victim(entries, self.scorer, BASE_TIME.replace(hour=2)) == "old"

    def test_all_pinned(self) -> None:
        entries = {"a": _entry("a", pinned=True)}
        assert select_victim(entries, self.scorer, BASE_TIME) is None

    def test_empty(self) -> None:
        assert select_victim({}, self.scorer, BASE_TIME) is None

    def test_tie_broken_by_inserted_at(self) -> None:
        now = BASE_TIME.replace(hour=3)
        entries = {
            "later": _entry("later", inserted_at=BASE_TIME.replace(hour=1)),
            "earlier": _entry("earlier"),
        }
        assert select_victim(entries, self.scorer, now) == "earlier"


def test_maybe_summarize_returns_same_entry_when_ineligible() -> None:
    entry = _entry("k", summary="existing")
    assert maybe_summarize(entry, 0.0, lambda _e: "new", 0.5) is entry


def test_sweep_counts() -> None:
    scorer = DecayScorer("exponential", 3_600_000)
    entries = {"a": _entry("a"), "b": _entry("b", pinned=True)}
    result = sweep(
        entries,
        scorer,
        BASE_TIME.replace(hour=10),
        eviction_threshold=0.01,
        summarize_threshold=0.3,
        summarize_fn=lambda e: f"s:{e.key}",
    )
    assert list(result.kept) == ["b"]
    assert [e.summary for e in result.evicted] == ["s:a"]
    assert result.summarized == 1


def test_summarize_all_does_not_mutate_input() -> None:
    scorer = DecayScorer("exponential", 3_600_000)
    entries = {"a": _entry("a")}
    updated, count = summarize_all(
        entries,
        scorer,
        BASE_TIME.replace(hour=5),
        summarize_threshold=0.3,
        summarize_fn=lambda _e: "s",
    )
    assert count == 1
    assert updated["a"].summary == "s"
    assert entries["a"].summary is None


@pytest.mark.parametrize("hours", [0, 1, 2, 5, 24])
def test_sweep_never_keeps_entries_below_eviction_threshold(hours: int) -> None:
    scorer = DecayScorer("combined", 3_600_000)
    now = BASE_TIME.replace(hour=hours % 24, day=1 + hours // 24)
    entries = {f"k{i}": _entry(f"k{i}", access_count=i) for i in range(5)}
    result = sweep(entries, scorer, now, eviction_threshold=0.2, summarize_threshold=0.4, summarize_fn=None)
    assert all(scorer.score(e, now) >= 0.2 for e in result.kept.values())
    assert all(scorer.score(e, now) < 0.2 for e in result.evicted)
