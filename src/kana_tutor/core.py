"""Service container wiring the learning core together.

One ``LearningCore`` is built per process and handed to the API layer; tests
build their own with an in-memory store and a manually advanced clock.
"""

import structlog

from kana_tutor.clock import Clock, SystemClock
from kana_tutor.config import Settings, get_settings
from kana_tutor.events import EventQueue
from kana_tutor.learning.profile_analyzer import ProfileAnalyzer
from kana_tutor.learning.recommender import RecommendationGenerator
from kana_tutor.learning.scheduler import SpacedRepetitionScheduler
from kana_tutor.storage.guard import PersistenceGuard
from kana_tutor.storage.kv_store import FileKeyValueStore, KeyValueStore
from kana_tutor.storage.progress_store import ProgressStore

logger = structlog.get_logger()


class LearningCore:
    """Holds the progress store, persistence guard and recommendation generator.

    Args:
        settings: Defaults to the cached application settings.
        kv_store: Backing store; defaults to JSON files under ``settings.data_dir``.
        clock: Defaults to the system clock.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        kv_store: KeyValueStore | None = None,
        clock: Clock | None = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.events = EventQueue()
        self.kv_store = kv_store or FileKeyValueStore(self.settings.data_dir)
        self.guard = PersistenceGuard(self.kv_store, self.settings, self.events)
        self.scheduler = SpacedRepetitionScheduler()

        snapshot = self.guard.load()
        self.store = ProgressStore(
            self.guard,
            self.settings,
            clock=self.clock,
            events=self.events,
            scheduler=self.scheduler,
            snapshot=snapshot,
        )
        self.recommender = RecommendationGenerator(
            self.store,
            self.settings,
            clock=self.clock,
            events=self.events,
            scheduler=self.scheduler,
            analyzer=ProfileAnalyzer(window_size=self.settings.performance_window),
        )
        logger.info(
            "learning_core_ready",
            restored=snapshot is not None,
            items=len(self.store.state.progress.all_items()),
        )
