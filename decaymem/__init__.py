"""Bounded, relevance-aware in-memory storage with time- and access-based decay."""

from decaymem.config import PutOptions, StoreConfig, StoreSettings
from decaymem.decay import DecayScorer, compute_score
from decaymem.errors import ConfigurationError
from decaymem.models import DecayAlgorithm, Entry, StoreStats
from decaymem.store import DecayStore

__all__ = [
    "ConfigurationError",
    "DecayAlgorithm",
    "DecayScorer",
    "DecayStore",
    "Entry",
    "PutOptions",
    "StoreConfig",
    "StoreSettings",
    "StoreStats",
    "compute_score",
]
