"""Decay scoring: recency, access frequency and importance folded into 0.0..1.0.

All built-in algorithms share the half-life parameterization

    lambda = ln(2) / half_life_seconds

so an untouched entry's exponential component halves once per half-life.
The engine multiplies each raw score by the entry's importance and clamps the
result into range; pinned entries short-circuit to exactly 1.0.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from decaymem.clock import elapsed_seconds
from decaymem.constants import (
    COMBINED_SIGMOID_OFFSET,
    COMBINED_SIGMOID_SCALE,
    MAX_SCORE,
    MIN_SCORE,
    MS_PER_SECOND,
    PINNED_SCORE,
)
from decaymem.models import DecayAlgorithm, Entry

# Custom decay hook: (entry, now, {"half_life": ms}) -> raw score.
CustomDecayFn = Callable[[Entry, datetime, Mapping[str, Any]], float]
DecayFn = DecayAlgorithm | CustomDecayFn


def decay_lambda(half_life_ms: float) -> float:
    """Decay constant for a half-life given in milliseconds."""
    return math.log(2) / (half_life_ms / MS_PER_SECOND)


def exponential(entry: Entry, now: datetime, half_life_ms: float) -> float:
    """Pure time-based decay from the last access."""
    seconds = elapsed_seconds(entry.last_accessed_at, now)
    return math.exp(-decay_lambda(half_life_ms) * seconds)


def access_weighted(entry: Entry, now: datetime, half_life_ms: float) -> float:
    """Exponential decay boosted by access frequency, capped at 1.0."""
    frequency_boost = math.log10(entry.access_count + 1) + 1.0
    return min(exponential(entry, now, half_life_ms) * frequency_boost, 1.0)


def combined(entry: Entry, now: datetime, half_life_ms: float) -> float:
    """Recency plus age-damped frequency, squashed through an offset sigmoid."""
    seconds_since_access = elapsed_seconds(entry.last_accessed_at, now)
    seconds_since_insert = elapsed_seconds(entry.inserted_at, now)

    recency = math.exp(-decay_lambda(half_life_ms) * seconds_since_access)

    # Frequency counts for less the older the entry is.
    age_factor = 1.0 / math.sqrt(seconds_since_insert + 1) if seconds_since_insert > 0 else 1.0
    frequency = math.log(entry.access_count + 1) * age_factor

    activation = recency + frequency
    return _sigmoid(activation * COMBINED_SIGMOID_SCALE - COMBINED_SIGMOID_OFFSET)


BUILTIN_DECAY_FNS: dict[DecayAlgorithm, Callable[[Entry, datetime, float], float]] = {
    DecayAlgorithm.EXPONENTIAL: exponential,
    DecayAlgorithm.ACCESS_WEIGHTED: access_weighted,
    DecayAlgorithm.COMBINED: combined,
}


def compute_score(entry: Entry, now: datetime, decay_fn: DecayFn, half_life: int) -> float:
    """Score *entry* at *now* with the given algorithm and half-life (ms)."""
    if entry.pinned:
        return PINNED_SCORE

    if isinstance(decay_fn, str):
        raw = BUILTIN_DECAY_FNS[DecayAlgorithm(decay_fn)](entry, now, half_life)
    else:
        raw = decay_fn(entry, now, {"half_life": half_life})

    return _clamp(float(raw) * entry.importance)


class DecayScorer:
    """Binds a decay algorithm and half-life for repeated scoring."""

    def __init__(self, decay_fn: DecayFn, half_life: int) -> None:
        self.decay_fn = decay_fn
        self.half_life = half_life

    def score(self, entry: Entry, now: datetime) -> float:
        """Compute the clamped score for a single entry."""
        return compute_score(entry, now, self.decay_fn, self.half_life)


def _sigmoid(x: float) -> float:
    return 1.0 / (1.0 + math.exp(-x))


def _clamp(value: float) -> float:
    if math.isnan(value):
        return MIN_SCORE
    return max(MIN_SCORE, min(value, MAX_SCORE))
