"""Pydantic models for the decay store."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from decaymem.constants import DEFAULT_IMPORTANCE


class DecayAlgorithm(StrEnum):
    """Built-in decay algorithms."""

    EXPONENTIAL = "exponential"
    ACCESS_WEIGHTED = "access_weighted"
    COMBINED = "combined"


class Entry(BaseModel):
    """A single stored value plus the metadata its decay score is computed from.

    Entries are immutable; the store replaces them via ``model_copy`` whenever
    access metadata, pin state, value or summary change. ``metadata`` is a
    read-only view of a private copy, so one snapshot cannot alter another.
    """

    model_config = ConfigDict(frozen=True)

    key: Any
    value: Any
    inserted_at: datetime
    last_accessed_at: datetime
    access_count: int = Field(default=0, ge=0)
    pinned: bool = False
    importance: float = Field(default=DEFAULT_IMPORTANCE, gt=0.0)
    metadata: Mapping[Any, Any] = Field(default_factory=dict, validate_default=True)
    summary: Any = None

    @field_validator("metadata", mode="after")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[Any, Any]) -> Mapping[Any, Any]:
        return MappingProxyType(dict(value))

    @field_serializer("metadata")
    def _dump_metadata(self, value: Mapping[Any, Any]) -> dict[Any, Any]:
        return dict(value)

    @property
    def is_summarized(self) -> bool:
        return self.summary is not None


class StoreStats(BaseModel):
    """Aggregate view of a store at one instant.

    Aggregates are None for an empty store.
    """

    size: int = 0
    active: int = 0
    pinned: int = 0
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
    mean_score: float | None = None
    median_score: float | None = None
