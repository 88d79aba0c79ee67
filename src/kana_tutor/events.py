"""Outbound events from the learning core to the UI layer."""

from collections import deque
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger()

STORAGE_ADVISORY = "storage_advisory"
STORAGE_PRUNED = "storage_pruned"
RECOMMENDATIONS_UPDATED = "recommendations_updated"
PROFILE_UPDATED = "profile_updated"
ANALYSIS_FAILED = "analysis_failed"
ACHIEVEMENT_UNLOCKED = "achievement_unlocked"


class CoreEvent(BaseModel):
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


class EventQueue:
    """Bounded queue of pending events plus optional push subscribers.

    Args:
        maxlen: Oldest events are dropped once this many are pending.
    """

    def __init__(self, maxlen: int = 200):
        self._pending: deque[CoreEvent] = deque(maxlen=maxlen)
        self._subscribers: list[Callable[[CoreEvent], None]] = []

    def __len__(self) -> int:
        return len(self._pending)

    def subscribe(self, callback: Callable[[CoreEvent], None]) -> None:
        self._subscribers.append(callback)

    def emit(self, event_type: str, **payload: Any) -> CoreEvent:
        event = CoreEvent(type=event_type, payload=payload)
        self._pending.append(event)
        for callback in self._subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("event_subscriber_failed", event_type=event_type)
        return event

    def drain(self) -> list[CoreEvent]:
        """Return and clear all pending events, oldest first."""
        events = list(self._pending)
        self._pending.clear()
        return events
