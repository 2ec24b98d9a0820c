"""DecayStore: capacity-bounded, relevance-aware in-memory store.

Every operation returns a new ``DecayStore``; existing values are never
mutated. Operations that depend on the current time read the configured clock
once and reuse that instant for every score computed during the call.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any

import numpy as np
import structlog
from pydantic import ValidationError

from decaymem.config import PutOptions, StoreConfig, StoreSettings, TouchOptions
from decaymem.constants import INITIAL_NEXT_KEY
from decaymem.decay import DecayScorer
from decaymem.errors import ConfigurationError
from decaymem.lifecycle import select_victim, summarize_all, sweep
from decaymem.models import Entry, StoreStats

logger = structlog.get_logger()


@dataclass(frozen=True, repr=False)
class DecayStore:
    """Keyed entries whose relevance decays unless reinforced.

    Writes never exceed ``max_entries``: inserting a new key at capacity first
    evicts the lowest-scored unpinned entry, and is dropped silently when every
    entry is pinned. Absent keys are a normal outcome (``None`` or the same
    store), never an error.
    """

    config: StoreConfig = field(default_factory=StoreConfig)
    entries: Mapping[Hashable, Entry] = field(default_factory=dict)
    next_key: int = INITIAL_NEXT_KEY

    def __post_init__(self) -> None:
        if not isinstance(self.entries, MappingProxyType):
            object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def new(cls, **options: Any) -> DecayStore:
        """Create an empty store, validating *options* eagerly."""
        return cls(config=StoreConfig.from_options(**options))

    @classmethod
    def from_settings(cls, settings: StoreSettings | None = None, **overrides: Any) -> DecayStore:
        """Create an empty store from environment settings plus *overrides*."""
        settings = settings or StoreSettings()
        return cls(config=settings.to_config(**overrides))

    # ------------------------------------------------------------------
    # Configuration accessors
    # ------------------------------------------------------------------

    @property
    def max_entries(self) -> int:
        return self.config.max_entries

    @property
    def half_life(self) -> int:
        return self.config.half_life

    @property
    def eviction_threshold(self) -> float:
        return self.config.eviction_threshold

    @property
    def summarize_threshold(self) -> float:
        return self.config.summarize_threshold

    @property
    def scorer(self) -> DecayScorer:
        return DecayScorer(self.config.decay_fn, self.config.half_life)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def put(self, key: Hashable, value: Any, **options: Any) -> DecayStore:
        """Insert or replace *key*.

        Options: ``importance`` (> 0, default 1.0), ``pinned`` (default False),
        ``metadata`` (default ``{}``). Unknown options raise ConfigurationError.
        Replacing an existing key never triggers eviction.
        """
        opts = PutOptions.from_options(**options)
        now = self._now()
        entry = Entry(
            key=key,
            value=value,
            inserted_at=now,
            last_accessed_at=now,
            pinned=opts.pinned,
            importance=opts.importance,
            metadata=opts.metadata,
        )

        if key in self.entries or len(self.entries) < self.config.max_entries:
            return self._insert(key, entry)

        victim = select_victim(self.entries, self.scorer, now)
        if victim is None:
            logger.debug("insert dropped, all entries pinned", key=key, size=len(self.entries))
            return self

        logger.debug("capacity eviction", victim=victim, key=key)
        entries = dict(self.entries)
        del entries[victim]
        return replace(self, entries=entries)._insert(key, entry)

    def add(self, value: Any, **options: Any) -> DecayStore:
        """Insert *value* under the next auto-generated integer key."""
        return self.put(self.next_key, value, **options)

    def put_many(self, items: Iterable[tuple[Any, ...]]) -> DecayStore:
        """Fold ``(key, value)`` or ``(key, value, options)`` tuples through ``put``."""
        store = self
        for item in items:
            if len(item) == 2:
                key, value = item
                store = store.put(key, value)
            elif len(item) == 3:
                key, value, options = item
                store = store.put(key, value, **options)
            else:
                raise ValueError(f"expected (key, value) or (key, value, options), got {len(item)} items")
        return store

    def get(self, key: Hashable) -> tuple[Entry | None, DecayStore]:
        """Fetch *key* as a rehearsal: refresh last access and bump the access count."""
        entry = self.entries.get(key)
        if entry is None:
            return None, self
        updated = entry.model_copy(
            update={"last_accessed_at": self._now(), "access_count": entry.access_count + 1},
        )
        return updated, self._replace_entry(key, updated)

    def peek(self, key: Hashable) -> Entry | None:
        """Fetch *key* without touching its access metadata."""
        return self.entries.get(key)

    def delete(self, key: Hashable) -> DecayStore:
        if key not in self.entries:
            return self
        entries = dict(self.entries)
        del entries[key]
        return replace(self, entries=entries)

    def update(self, key: Hashable, value: Any) -> DecayStore:
        """Replace the value of *key* and count it as an access.

        Pin state, importance, metadata and any existing summary are kept.
        """
        entry = self.entries.get(key)
        if entry is None:
            return self
        updated = entry.model_copy(
            update={"value": value, "last_accessed_at": self._now(), "access_count": entry.access_count + 1},
        )
        return self._replace_entry(key, updated)

    def touch(self, key: Hashable, **options: Any) -> DecayStore:
        """Refresh access metadata of *key*; ``importance=`` optionally overrides importance."""
        opts = TouchOptions.from_options(**options)
        entry = self.entries.get(key)
        if entry is None:
            return self
        changes: dict[str, Any] = {"last_accessed_at": self._now(), "access_count": entry.access_count + 1}
        if opts.importance is not None:
            changes["importance"] = opts.importance
        return self._replace_entry(key, entry.model_copy(update=changes))

    def pin(self, key: Hashable) -> DecayStore:
        return self._set_pinned(key, True)

    def unpin(self, key: Hashable) -> DecayStore:
        return self._set_pinned(key, False)

    def clear(self) -> DecayStore:
        """Drop all entries and reset key generation; configuration is kept."""
        return replace(self, entries={}, next_key=INITIAL_NEXT_KEY)

    # ------------------------------------------------------------------
    # Eviction & summarization
    # ------------------------------------------------------------------

    def evict(self) -> tuple[DecayStore, list[Entry]]:
        """Remove every unpinned entry scoring below the eviction threshold.

        Entries below the summarize threshold are summarized first (once), so
        evicted entries may come back with ``summary`` populated. Kept entries
        that crossed the summarize threshold are summarized in place.
        """
        result = sweep(
            self.entries,
            self.scorer,
            self._now(),
            eviction_threshold=self.config.eviction_threshold,
            summarize_threshold=self.config.summarize_threshold,
            summarize_fn=self.config.summarize_fn,
        )
        if result.evicted or result.summarized:
            logger.info(
                "eviction sweep",
                evicted=len(result.evicted),
                summarized=result.summarized,
                remaining=len(result.kept),
            )
        return replace(self, entries=result.kept), result.evicted

    def summarize(self) -> DecayStore:
        """Summarize eligible entries without evicting. No-op without a summarize_fn."""
        summarize_fn = self.config.summarize_fn
        if summarize_fn is None:
            return self
        entries, count = summarize_all(
            self.entries,
            self.scorer,
            self._now(),
            summarize_threshold=self.config.summarize_threshold,
            summarize_fn=summarize_fn,
        )
        logger.debug("summarization pass", summarized=count)
        return replace(self, entries=entries)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def score(self, key: Hashable) -> float | None:
        entry = self.entries.get(key)
        if entry is None:
            return None
        return self.scorer.score(entry, self._now())

    def scored(self) -> list[tuple[Entry, float]]:
        """All entries with their scores, highest first."""
        return self._scored_at(self._now())

    def score_map(self) -> dict[Hashable, float]:
        now = self._now()
        scorer = self.scorer
        return {key: scorer.score(entry, now) for key, entry in self.entries.items()}

    def above(self, threshold: float) -> list[Entry]:
        """Entries scoring at least *threshold*, highest first."""
        return [entry for entry, score in self._scored_at(self._now()) if score >= threshold]

    def active(self) -> list[Entry]:
        return self.above(self.config.eviction_threshold)

    def top(self, n: int) -> list[Entry]:
        """The *n* highest-scored entries."""
        if n < 0:
            raise ValueError(f"n must be non-negative, got: {n}")
        return [entry for entry, _score in self.scored()[:n]]

    def active_count(self) -> int:
        now = self._now()
        scorer = self.scorer
        threshold = self.config.eviction_threshold
        return sum(1 for entry in self.entries.values() if scorer.score(entry, now) >= threshold)

    def pinned_count(self) -> int:
        return sum(1 for entry in self.entries.values() if entry.pinned)

    def size(self) -> int:
        return len(self.entries)

    def keys(self) -> list[Hashable]:
        return list(self.entries)

    def filter(self, predicate: Callable[[Entry], bool]) -> list[Entry]:
        return [entry for entry in self.entries.values() if predicate(entry)]

    def stats(self) -> StoreStats:
        """Size, counts, insertion range and score distribution at one instant."""
        if not self.entries:
            return StoreStats()

        now = self._now()
        scorer = self.scorer
        entries = list(self.entries.values())
        scores = np.array([scorer.score(entry, now) for entry in entries], dtype=np.float64)
        inserted = [entry.inserted_at for entry in entries]

        return StoreStats(
            size=len(entries),
            active=int(np.count_nonzero(scores >= self.config.eviction_threshold)),
            pinned=sum(1 for entry in entries if entry.pinned),
            oldest_entry=min(inserted),
            newest_entry=max(inserted),
            mean_score=float(np.mean(scores)),
            median_score=float(np.median(scores)),
        )

    # ------------------------------------------------------------------
    # Plain-value state
    # ------------------------------------------------------------------

    def to_state(self) -> dict[str, Any]:
        """Plain-value snapshot of entries and configuration.

        Callables are dropped; a custom decay_fn is recorded as None and must be
        supplied again to ``from_state``. Scores are never included.
        """
        builtin = self.config.builtin_decay_fn
        return {
            "config": {
                "max_entries": self.config.max_entries,
                "decay_fn": builtin.value if builtin is not None else None,
                "half_life": self.config.half_life,
                "eviction_threshold": self.config.eviction_threshold,
                "summarize_threshold": self.config.summarize_threshold,
            },
            "next_key": self.next_key,
            "entries": [entry.model_dump() for entry in self.entries.values()],
        }

    @classmethod
    def from_state(
        cls,
        state: Mapping[str, Any],
        *,
        decay_fn: Any = None,
        summarize_fn: Callable[[Entry], Any] | None = None,
        clock_fn: Callable[[], datetime] | None = None,
    ) -> DecayStore:
        """Rebuild a store from ``to_state`` output, re-attaching live callables."""
        options = dict(state.get("config", {}))
        if decay_fn is not None:
            options["decay_fn"] = decay_fn
        elif options.get("decay_fn") is None:
            raise ConfigurationError(
                "state was saved with a custom decay_fn; pass decay_fn= to restore it",
                [("decay_fn", "missing")],
            )
        options.update(summarize_fn=summarize_fn, clock_fn=clock_fn)
        config = StoreConfig.from_options(**options)

        entries: dict[Hashable, Entry] = {}
        for raw in state.get("entries", []):
            try:
                entry = Entry.model_validate(raw)
            except ValidationError as exc:
                raise ConfigurationError.from_validation_error("entry state", exc) from exc
            entries[entry.key] = entry

        return cls(config=config, entries=entries, next_key=state.get("next_key", INITIAL_NEXT_KEY))

    # ------------------------------------------------------------------
    # Collection protocol
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: object) -> bool:
        return key in self.entries

    def __iter__(self) -> Iterator[Entry]:
        """Iterate entries by score, highest first, as of the moment iteration starts."""
        return iter([entry for entry, _score in self._scored_at(self._now())])

    def __repr__(self) -> str:
        decay_fn = self.config.decay_fn
        name = decay_fn.value if self.config.builtin_decay_fn is not None else getattr(decay_fn, "__name__", "custom")
        return f"DecayStore(size={len(self.entries)}, max_entries={self.config.max_entries}, decay_fn={name})"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        now = self.config.clock()
        if not isinstance(now, datetime):
            raise ConfigurationError(
                f"clock_fn must return a datetime, got: {type(now).__name__}",
                [("clock_fn", "not a datetime")],
            )
        return now

    def _scored_at(self, now: datetime) -> list[tuple[Entry, float]]:
        scorer = self.scorer
        pairs = [(entry, scorer.score(entry, now)) for entry in self.entries.values()]
        pairs.sort(key=lambda pair: pair[1], reverse=True)
        return pairs

    def _insert(self, key: Hashable, entry: Entry) -> DecayStore:
        entries = dict(self.entries)
        entries[key] = entry
        next_key = self.next_key + 1 if key == self.next_key else self.next_key
        return replace(self, entries=entries, next_key=next_key)

    def _replace_entry(self, key: Hashable, entry: Entry) -> DecayStore:
        entries = dict(self.entries)
        entries[key] = entry
        return replace(self, entries=entries)

    def _set_pinned(self, key: Hashable, pinned: bool) -> DecayStore:
        entry = self.entries.get(key)
        if entry is None:
            return self
        return self._replace_entry(key, entry.model_copy(update={"pinned": pinned}))
