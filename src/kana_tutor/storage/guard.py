"""Size-bounded persistence of the whole learning state.

Every store mutation is written through ``PersistenceGuard.persist``, which
measures the serialized snapshot against three thresholds:

* above the quota boundary (4.5MB) the write is refused, the snapshot is
  pruned and the write retried once; if it is still too large it is dropped
  and an advisory is raised,
* above the proactive threshold (4MB) the write goes through with pruned
  history to restore headroom,
* above the advisory threshold (3MB) an advisory is raised and data is left
  alone.

Independently of size, the bounded history collections never exceed their
retention caps in a written document.
"""

import asyncio
import json
from collections.abc import Callable

import structlog
from pydantic import BaseModel, ValidationError

from kana_tutor.config import BYTES_PER_MB, Settings
from kana_tutor.events import STORAGE_ADVISORY, STORAGE_PRUNED, EventQueue
from kana_tutor.models.snapshot import StorageSnapshot, repair_document
from kana_tutor.storage.kv_store import KeyValueStore, QuotaExceededError

logger = structlog.get_logger()


class ImportParseError(Exception):
    """An import document could not be parsed into a snapshot."""


class PersistOutcome(BaseModel):
    written: bool
    size_bytes: int
    quota_exceeded: bool = False
    pruned: bool = False
    advisory: bool = False
    snapshot: StorageSnapshot


class StorageInfo(BaseModel):
    size: int
    size_in_mb: float
    is_quota_exceeded: bool
    can_store: bool


def format_bytes(size: int) -> str:
    """Human-readable byte count (``1.5 KB``)."""
    if size == 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


class PersistenceGuard:
    """Serializes snapshots into a key-value store within size limits.

    Args:
        store: Backing key-value store.
        settings: Thresholds, retention caps and storage key.
        events: Queue receiving storage advisories.
    """

    def __init__(
        self,
        store: KeyValueStore,
        settings: Settings,
        events: EventQueue | None = None,
    ):
        self.store = store
        self.settings = settings
        self.events = events or EventQueue()
        self.key = settings.storage_key

    @property
    def retention_caps(self) -> dict[str, int]:
        return {
            "quiz_results": self.settings.max_quiz_results,
            "practice_sessions": self.settings.max_practice_sessions,
            "daily_stats": self.settings.max_daily_stats,
            "recommendations": self.settings.max_recommendations,
            "achievements": self.settings.max_achievements,
        }

    @staticmethod
    def serialize(snapshot: StorageSnapshot) -> str:
        return snapshot.model_dump_json()

    @staticmethod
    def byte_size(document: str) -> int:
        return len(document.encode("utf-8"))

    def estimate_size(self, snapshot: StorageSnapshot) -> int:
        return self.byte_size(self.serialize(snapshot))

    def _collections(self, snapshot: StorageSnapshot) -> dict[str, list]:
        return {
            "quiz_results": snapshot.quiz_results,
            "practice_sessions": snapshot.progress.practice_sessions,
            "daily_stats": snapshot.progress.daily_stats,
            "recommendations": snapshot.recommendations,
            "achievements": snapshot.achievements,
        }

    def exceeds_caps(self, snapshot: StorageSnapshot) -> bool:
        caps = self.retention_caps
        return any(
            len(entries) > caps[name]
            for name, entries in self._collections(snapshot).items()
        )

    def prune(self, snapshot: StorageSnapshot) -> tuple[StorageSnapshot, dict[str, int]]:
        """Keep only the most recent entries of each bounded collection.

        Returns:
            A pruned copy and the number of entries removed per collection.
        """
        pruned = snapshot.model_copy(deep=True)
        caps = self.retention_caps
        removed: dict[str, int] = {}
        for name, entries in self._collections(pruned).items():
            excess = len(entries) - caps[name]
            if excess > 0:
                del entries[:excess]
                removed[name] = excess
        return pruned, removed

    def _advise(self, level: str, size: int, message: str) -> None:
        self.events.emit(
            STORAGE_ADVISORY,
            level=level,
            size_bytes=size,
            size_in_mb=round(size / BYTES_PER_MB, 2),
            message=message,
        )

    def _write(self, document: str) -> bool:
        try:
            self.store.set(self.key, document)
        except QuotaExceededError as e:
            logger.warning("storage_write_refused", size=e.size, capacity=e.capacity)
            return False
        return True

    def persist(self, snapshot: StorageSnapshot) -> PersistOutcome:
        """Write a snapshot, pruning history as needed. Never raises on quota."""
        document = self.serialize(snapshot)
        size = self.byte_size(document)

        if size > self.settings.quota_threshold_bytes:
            logger.warning("storage_quota_exceeded", size=size)
            return self._persist_pruned(snapshot, size, quota_exceeded=True)

        advisory = False
        if size > self.settings.proactive_prune_threshold_bytes:
            logger.info("storage_proactive_prune", size=size)
        elif size > self.settings.advisory_threshold_bytes:
            advisory = True
            self._advise("warning", size, "Storage is getting full; old history will be pruned soon.")

        if size > self.settings.proactive_prune_threshold_bytes or self.exceeds_caps(snapshot):
            outcome = self._persist_pruned(snapshot, size, quota_exceeded=False)
            outcome.advisory = outcome.advisory or advisory
            return outcome

        if self._write(document):
            return PersistOutcome(written=True, size_bytes=size, advisory=advisory, snapshot=snapshot)
        # The backing store has its own, smaller capacity
        return self._persist_pruned(snapshot, size, quota_exceeded=True)

    def _persist_pruned(
        self, snapshot: StorageSnapshot, original_size: int, quota_exceeded: bool
    ) -> PersistOutcome:
        pruned, removed = self.prune(snapshot)
        document = self.serialize(pruned)
        size = self.byte_size(document)
        if removed:
            logger.info("storage_pruned", before=original_size, after=size, removed=removed)
            self.events.emit(STORAGE_PRUNED, removed=removed, size_bytes=size)

        if size > self.settings.quota_threshold_bytes or not self._write(document):
            logger.error("storage_write_dropped", size=size)
            self._advise("critical", size, "Progress could not be saved: storage is full.")
            return PersistOutcome(
                written=False,
                size_bytes=size,
                quota_exceeded=True,
                pruned=bool(removed),
                advisory=True,
                snapshot=pruned,
            )
        return PersistOutcome(
            written=True,
            size_bytes=size,
            quota_exceeded=quota_exceeded,
            pruned=bool(removed),
            snapshot=pruned,
        )

    def load(self) -> StorageSnapshot | None:
        """Read the persisted snapshot, or None when absent or unreadable."""
        try:
            document = self.store.get(self.key)
        except UnicodeDecodeError:
            logger.exception("storage_load_failed", key=self.key)
            return None
        if document is None:
            return None
        try:
            return self.parse_document(document)
        except ImportParseError:
            logger.exception("storage_load_failed", key=self.key)
            return None

    def export_document(self, snapshot: StorageSnapshot) -> str:
        return snapshot.model_dump_json(indent=2)

    def parse_document(self, document: str | bytes) -> StorageSnapshot:
        """Parse an exported document.

        Raises:
            ImportParseError: Bytes that are not UTF-8, malformed JSON, or a
                document that does not validate as a snapshot.
        """
        if isinstance(document, bytes):
            try:
                document = document.decode("utf-8")
            except UnicodeDecodeError as e:
                raise ImportParseError(f"Document is not valid UTF-8: {e}") from e
        try:
            data = json.loads(document)
        except (json.JSONDecodeError, TypeError) as e:
            raise ImportParseError(f"Invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ImportParseError("Snapshot document must be a JSON object")
        try:
            return StorageSnapshot.model_validate(repair_document(data))
        except ValidationError as e:
            raise ImportParseError(f"Invalid snapshot: {e.error_count()} validation errors") from e

    def storage_info(self) -> StorageInfo:
        size = self.store.estimate_size(self.key)
        return StorageInfo(
            size=size,
            size_in_mb=size / BYTES_PER_MB,
            is_quota_exceeded=size > self.settings.quota_threshold_bytes,
            can_store=size < self.settings.proactive_prune_threshold_bytes,
        )

    def check_size(self) -> StorageInfo:
        """Re-measure the stored document and react to growth from any source."""
        info = self.storage_info()
        if info.size > self.settings.proactive_prune_threshold_bytes:
            stored = self.load()
            if stored is not None:
                self._persist_pruned(stored, info.size, quota_exceeded=info.is_quota_exceeded)
                info = self.storage_info()
        elif info.size > self.settings.advisory_threshold_bytes:
            self._advise("warning", info.size, "Storage is getting full; old history will be pruned soon.")
        logger.debug("storage_size_checked", size=info.size)
        return info

    def clear(self) -> None:
        self.store.remove(self.key)

    async def run_size_monitor(
        self,
        interval_seconds: float | None = None,
        on_check: Callable[[StorageInfo], None] | None = None,
    ) -> None:
        """Periodically re-check the stored size until cancelled."""
        interval = interval_seconds or self.settings.size_check_interval_seconds
        try:
            while True:
                await asyncio.sleep(interval)
                info = self.check_size()
                if on_check is not None:
                    on_check(info)
        except asyncio.CancelledError:
            logger.info("storage_size_monitor_stopped")
            raise
