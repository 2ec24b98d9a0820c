"""Centralized defaults and numeric constants for decaymem.

Every tunable that the store, the decay engine and the settings loader share
is collected here so the defaults stay consistent across entry points.
"""

from __future__ import annotations

# -- Store defaults ----------------------------------------------------------
DEFAULT_MAX_ENTRIES = 100
DEFAULT_DECAY_FN = "combined"
DEFAULT_HALF_LIFE_MS = 3_600_000  # 1 hour.
DEFAULT_EVICTION_THRESHOLD = 0.05
DEFAULT_SUMMARIZE_THRESHOLD = 0.15

# First auto-generated key; also the value clear() resets to.
INITIAL_NEXT_KEY = 1

# -- Entry defaults ----------------------------------------------------------
DEFAULT_IMPORTANCE = 1.0

# -- Decay engine ------------------------------------------------------------
MS_PER_SECOND = 1000.0
PINNED_SCORE = 1.0
MIN_SCORE = 0.0
MAX_SCORE = 1.0

# combined: sigmoid(activation * SCALE - OFFSET). Fixed so that a fresh,
# never-accessed entry (activation = 1.0) scores above 0.95.
COMBINED_SIGMOID_SCALE = 8.0
COMBINED_SIGMOID_OFFSET = 4.0

# -- Logging -----------------------------------------------------------------
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_SERVICE = "decaymem"
