"""Eviction and summarization policy.

Per entry the lifecycle is ``active -> summarized -> evicted``; pinned entries
never leave ``active``. Every function here takes the snapshot instant from
its caller and returns new mappings instead of mutating the ones it is given.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from decaymem.decay import DecayScorer
    from decaymem.models import Entry

    SummarizeFn = Callable[[Entry], Any]


@dataclass
class SweepResult:
    """Outcome of a full eviction sweep."""

    kept: dict[Hashable, Entry] = field(default_factory=dict)
    evicted: list[Entry] = field(default_factory=list)
    summarized: int = 0


def select_victim(entries: Mapping[Hashable, Entry], scorer: DecayScorer, now: datetime) -> Hashable | None:
    """Key of the lowest-scored unpinned entry, or None when every entry is pinned.

    Ties go to the earliest ``inserted_at``, then to the earliest key in the
    mapping's iteration order.
    """
    victim: Hashable | None = None
    best: tuple[float, datetime] | None = None
    for key, entry in entries.items():
        if entry.pinned:
            continue
        rank = (scorer.score(entry, now), entry.inserted_at)
        if best is None or rank < best:
            victim, best = key, rank
    return victim


def maybe_summarize(
    entry: Entry,
    score: float,
    summarize_fn: SummarizeFn | None,
    summarize_threshold: float,
) -> Entry:
    """Attach a summary if *entry* is unpinned, unsummarized and below threshold.

    Returns the entry unchanged when it is not eligible, so the hook runs at
    most once per entry until its value is replaced.
    """
    if summarize_fn is None or entry.pinned or entry.summary is not None:
        return entry
    if score >= summarize_threshold:
        return entry
    return entry.model_copy(update={"summary": summarize_fn(entry)})


def sweep(
    entries: Mapping[Hashable, Entry],
    scorer: DecayScorer,
    now: datetime,
    *,
    eviction_threshold: float,
    summarize_threshold: float,
    summarize_fn: SummarizeFn | None,
) -> SweepResult:
    """Summarize then evict every unpinned entry that has decayed past the thresholds."""
    result = SweepResult()
    for key, entry in entries.items():
        if entry.pinned:
            result.kept[key] = entry
            continue

        score = scorer.score(entry, now)
        updated = maybe_summarize(entry, score, summarize_fn, summarize_threshold)
        if updated is not entry:
            result.summarized += 1

        if score >= eviction_threshold:
            result.kept[key] = updated
        else:
            result.evicted.append(updated)
    return result


def summarize_all(
    entries: Mapping[Hashable, Entry],
    scorer: DecayScorer,
    now: datetime,
    *,
    summarize_threshold: float,
    summarize_fn: SummarizeFn,
) -> tuple[dict[Hashable, Entry], int]:
    """Summarize every eligible entry in place of eviction.

    Returns the new mapping and the number of entries summarized.
    """
    updated_entries: dict[Hashable, Entry] = {}
    count = 0
    for key, entry in entries.items():
        if entry.pinned or entry.summary is not None:
            updated_entries[key] = entry
            continue
        updated = maybe_summarize(entry, scorer.score(entry, now), summarize_fn, summarize_threshold)
        if updated is not entry:
            count += 1
        updated_entries[key] = updated
    return updated_entries, count
