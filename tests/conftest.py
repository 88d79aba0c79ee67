"""Shared fixtures: deterministic clock, settings and an in-memory learning core."""

from datetime import datetime, timedelta

import pytest

from kana_tutor.config import Settings
from kana_tutor.core import LearningCore
from kana_tutor.storage.kv_store import InMemoryKeyValueStore


class FixedClock:
    """Manually advanced clock.

    Args:
        start: Initial wall-clock time.
    """

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2025, 1, 1, 9, 0, 0)
        self._monotonic = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, **kwargs: float) -> None:
        """Move both clocks forward by a timedelta given as keyword args."""
        delta = timedelta(**kwargs)
        self._now += delta
        self._monotonic += delta.total_seconds()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path)


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def core(settings, kv, clock):
    return LearningCore(settings, kv_store=kv, clock=clock)
