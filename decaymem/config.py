"""Store configuration: validated option models and environment defaults."""

from __future__ import annotations

import inspect
import os
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError, field_validator, model_validator

from decaymem.clock import Clock, resolve_clock
from decaymem.constants import (
    DEFAULT_DECAY_FN,
    DEFAULT_EVICTION_THRESHOLD,
    DEFAULT_HALF_LIFE_MS,
    DEFAULT_IMPORTANCE,
    DEFAULT_LOG_LEVEL,
    DEFAULT_LOG_SERVICE,
    DEFAULT_MAX_ENTRIES,
    DEFAULT_SUMMARIZE_THRESHOLD,
)
from decaymem.errors import ConfigurationError
from decaymem.models import DecayAlgorithm


def _check_arity(fn: Callable[..., Any], arity: int, name: str) -> None:
    """Reject callables that cannot be called with *arity* positional arguments."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        # Some builtins expose no signature; nothing to check.
        return
    try:
        signature.bind(*range(arity))
    except TypeError:
        raise ValueError(f"{name} must accept exactly {arity} positional argument(s)") from None


class StoreConfig(BaseModel):
    """Validated construction options for a DecayStore.

    Unknown options, non-positive sizes, thresholds outside 0.0..1.0 or out of
    order, and callables of the wrong arity are rejected eagerly with
    ConfigurationError, whether the model is built directly or through
    ``from_options``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_entries: int = Field(default=DEFAULT_MAX_ENTRIES, gt=0, strict=True)
    decay_fn: DecayAlgorithm | Callable[..., Any] = DecayAlgorithm(DEFAULT_DECAY_FN)
    half_life: int = Field(default=DEFAULT_HALF_LIFE_MS, gt=0, strict=True)
    eviction_threshold: float = Field(default=DEFAULT_EVICTION_THRESHOLD, ge=0.0, le=1.0, strict=True)
    summarize_threshold: float = Field(default=DEFAULT_SUMMARIZE_THRESHOLD, ge=0.0, le=1.0, strict=True)
    summarize_fn: Callable[..., Any] | None = None
    clock_fn: Callable[..., Any] | None = None

    def __init__(self, /, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError.from_validation_error("store options", exc) from exc

    @field_validator("decay_fn")
    @classmethod
    def _validate_decay_fn(cls, value: DecayAlgorithm | Callable[..., Any]) -> DecayAlgorithm | Callable[..., Any]:
        if not isinstance(value, DecayAlgorithm):
            _check_arity(value, 3, "decay_fn")
        return value

    @field_validator("summarize_fn")
    @classmethod
    def _validate_summarize_fn(cls, value: Callable[..., Any] | None) -> Callable[..., Any] | None:
        if value is not None:
            _check_arity(value, 1, "summarize_fn")
        return value

    @field_validator("clock_fn")
    @classmethod
    def _validate_clock_fn(cls, value: Callable[..., Any] | None) -> Callable[..., Any] | None:
        if value is not None:
            _check_arity(value, 0, "clock_fn")
        return value

    @model_validator(mode="after")
    def _validate_threshold_order(self) -> StoreConfig:
        if self.summarize_threshold < self.eviction_threshold:
            raise ValueError(
                f"summarize_threshold ({self.summarize_threshold}) must be >= "
                f"eviction_threshold ({self.eviction_threshold})"
            )
        return self

    @classmethod
    def from_options(cls, **options: Any) -> StoreConfig:
        """Build a config, raising ConfigurationError on any invalid option."""
        return cls(**options)

    @property
    def clock(self) -> Clock:
        return resolve_clock(self.clock_fn)

    @property
    def builtin_decay_fn(self) -> DecayAlgorithm | None:
        """The built-in algorithm in use, or None for a custom function."""
        return self.decay_fn if isinstance(self.decay_fn, DecayAlgorithm) else None


class PutOptions(BaseModel):
    """Per-entry options accepted by ``DecayStore.put``."""

    model_config = ConfigDict(extra="forbid")

    importance: float = Field(default=DEFAULT_IMPORTANCE, gt=0.0, allow_inf_nan=False, strict=True)
    pinned: StrictBool = False
    metadata: dict[Any, Any] = Field(default_factory=dict)

    @classmethod
    def from_options(cls, **options: Any) -> PutOptions:
        try:
            return cls(**options)
        except ValidationError as exc:
            raise ConfigurationError.from_validation_error("put options", exc) from exc


class TouchOptions(BaseModel):
    """Options accepted by ``DecayStore.touch``."""

    model_config = ConfigDict(extra="forbid")

    importance: float | None = Field(default=None, gt=0.0, allow_inf_nan=False, strict=True)

    @classmethod
    def from_options(cls, **options: Any) -> TouchOptions:
        try:
            return cls(**options)
        except ValidationError as exc:
            raise ConfigurationError.from_validation_error("touch options", exc) from exc


def _env_number[T](name: str, default: T, cast: Callable[[str], T]) -> T:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got: {raw!r}", [(name, "not a number")]) from None


class StoreSettings:
    """Store defaults loaded from environment variables.

    Prefix: DECAYMEM_. Callables (custom decay, summarize, clock) cannot come
    from the environment and are attached in ``to_config``.
    """

    max_entries: int
    decay_fn: str
    half_life: int
    eviction_threshold: float
    summarize_threshold: float
    log_level: str
    log_service: str

    def __init__(self) -> None:
        self.max_entries = _env_number("DECAYMEM_MAX_ENTRIES", DEFAULT_MAX_ENTRIES, int)
        self.decay_fn = os.environ.get("DECAYMEM_DECAY_FN", DEFAULT_DECAY_FN)
        self.half_life = _env_number("DECAYMEM_HALF_LIFE_MS", DEFAULT_HALF_LIFE_MS, int)
        self.eviction_threshold = _env_number("DECAYMEM_EVICTION_THRESHOLD", DEFAULT_EVICTION_THRESHOLD, float)
        self.summarize_threshold = _env_number("DECAYMEM_SUMMARIZE_THRESHOLD", DEFAULT_SUMMARIZE_THRESHOLD, float)
        self.log_level = os.environ.get("DECAYMEM_LOG_LEVEL", DEFAULT_LOG_LEVEL)
        self.log_service = os.environ.get("DECAYMEM_LOG_SERVICE", DEFAULT_LOG_SERVICE)

    def to_config(self, **overrides: Any) -> StoreConfig:
        """Validated StoreConfig from these settings; *overrides* win."""
        options: dict[str, Any] = {
            "max_entries": self.max_entries,
            "decay_fn": self.decay_fn,
            "half_life": self.half_life,
            "eviction_threshold": self.eviction_threshold,
            "summarize_threshold": self.summarize_threshold,
        }
        options.update(overrides)
        return StoreConfig.from_options(**options)
