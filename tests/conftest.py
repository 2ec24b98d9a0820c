"""Shared fixtures for the decaymem test suite."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
import structlog

from decaymem import DecayStore
from tests.fake_clock import FakeClock

ONE_HOUR_MS = 3_600_000


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_store(clock: FakeClock) -> Callable[..., DecayStore]:
    """Factory for stores on the fake clock, exponential decay, one-hour half-life."""

    def _make(**options: Any) -> DecayStore:
        params: dict[str, Any] = {"clock_fn": clock, "decay_fn": "exponential", "half_life": ONE_HOUR_MS}
        params.update(options)
        return DecayStore.new(**params)

    return _make


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()
