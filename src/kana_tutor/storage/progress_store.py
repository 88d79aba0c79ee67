"""Progress store: the single owner of learning state.

All mutations go through this class and each one ends with a persistence
attempt via the ``PersistenceGuard``. Learning items are never removed here;
only the guard prunes, and only bounded history collections.
"""

import uuid
from datetime import date, timedelta

import structlog

from kana_tutor.clock import Clock, SystemClock
from kana_tutor.config import Settings
from kana_tutor.events import ACHIEVEMENT_UNLOCKED, EventQueue
from kana_tutor.learning.scheduler import SpacedRepetitionScheduler
from kana_tutor.models.profile import BehaviorCounters, LearnerProfile, PerformanceSample
from kana_tutor.models.progress import (
    Achievement,
    Category,
    DailyAggregate,
    LearningItem,
    PracticeSession,
    QuizResult,
)
from kana_tutor.models.recommendation import Recommendation
from kana_tutor.models.snapshot import StorageSnapshot
from kana_tutor.storage.guard import ImportParseError, PersistenceGuard, PersistOutcome

logger = structlog.get_logger()

XP_PER_CORRECT_ANSWER = 10

# id -> (name, description, xp reward)
MILESTONES: dict[str, tuple[str, str, int]] = {
    "first_mastery": ("First Mastery", "Master your first item", 20),
    "ten_mastered": ("Ten Mastered", "Master ten items", 50),
    "week_streak": ("Week Streak", "Practice seven days in a row", 100),
}


class NoActiveSessionError(Exception):
    """A session operation was requested while no session is open."""


class ProgressStore:
    """Keyed learning records, practice sessions and daily aggregates.

    Args:
        guard: Persistence guard every mutation is written through.
        settings: Mastery thresholds and performance window.
        clock: Time source.
        events: Queue receiving achievement events.
        snapshot: Initial state (e.g. loaded at process start).
    """

    def __init__(
        self,
        guard: PersistenceGuard,
        settings: Settings,
        clock: Clock | None = None,
        events: EventQueue | None = None,
        scheduler: SpacedRepetitionScheduler | None = None,
        snapshot: StorageSnapshot | None = None,
    ):
        self.guard = guard
        self.settings = settings
        self.clock = clock or SystemClock()
        self.events = events or guard.events
        self.scheduler = scheduler or SpacedRepetitionScheduler()
        self._state = snapshot or StorageSnapshot()
        self._active_session: PracticeSession | None = None
        self.last_persist: PersistOutcome | None = None

    # Reads

    @property
    def state(self) -> StorageSnapshot:
        return self._state

    @property
    def active_session(self) -> PracticeSession | None:
        return self._active_session

    @property
    def behavior(self) -> BehaviorCounters:
        return self._state.behavior

    @property
    def recent_performance(self) -> list[PerformanceSample]:
        return self._state.recent_performance

    @property
    def learner_profile(self) -> LearnerProfile:
        return self._state.learner_profile

    def get_all(self, category: Category | str) -> list[LearningItem]:
        return [item.model_copy(deep=True) for item in self._items(Category(category))]

    def get_item(self, category: Category | str, key: str) -> LearningItem | None:
        item = self._find(Category(category), key)
        return item.model_copy(deep=True) if item else None

    def all_items(self) -> list[LearningItem]:
        return [item.model_copy(deep=True) for item in self._state.progress.all_items()]

    def daily_stats(self) -> list[DailyAggregate]:
        return list(self._state.progress.daily_stats)

    def practice_sessions(self) -> list[PracticeSession]:
        return list(self._state.progress.practice_sessions)

    def _items(self, category: Category) -> list[LearningItem]:
        return self._state.progress.items(category)

    def _find(self, category: Category, key: str) -> LearningItem | None:
        for item in self._items(category):
            if item.key == key:
                return item
        return None

    # Persistence

    def _persist(self) -> PersistOutcome:
        outcome = self.guard.persist(self._state)
        if outcome.written and outcome.pruned:
            self._state = outcome.snapshot
        self.last_persist = outcome
        return outcome

    # Item updates

    def upsert_item(
        self,
        category: Category | str,
        key: str,
        correct: bool,
        time_spent_seconds: int = 0,
        difficulty: int | None = None,
        mastered: bool | None = None,
    ) -> LearningItem:
        """Record one practice attempt for an item, creating it on first sight.

        Args:
            category: Content category.
            key: Item key (character or grammar topic id).
            correct: Whether the answer was correct.
            time_spent_seconds: Time spent on this attempt.
            difficulty: Self-reported difficulty 1-5; keeps the previous value if None.
            mastered: Explicit mastery flag; derived from accuracy if None.

        Returns:
            A copy of the updated item.
        """
        item = self._apply_attempt(Category(category), key, correct, time_spent_seconds, difficulty, mastered)
        self._check_milestones()
        self._persist()
        return item.model_copy(deep=True)

    def _apply_attempt(
        self,
        category: Category,
        key: str,
        correct: bool,
        time_spent_seconds: int,
        difficulty: int | None,
        mastered: bool | None,
    ) -> LearningItem:
        now = self.clock.now()
        item = self._find(category, key)
        if item is None:
            item = LearningItem(key=key, category=category, last_practiced=now)
            self._items(category).append(item)
            logger.debug("item_created", category=category.value, key=key)
        if difficulty is not None:
            item.difficulty = max(1, min(5, difficulty))

        item.record_attempt(correct, now, time_spent_seconds)
        if mastered is None:
            mastered = (
                item.total_attempts >= self.settings.mastery_min_attempts
                and item.accuracy >= self.settings.mastery_accuracy
            )
        item.mastered = mastered
        self.scheduler.review(item, now)
        self._update_overall_accuracy()
        return item

    def _update_overall_accuracy(self) -> None:
        items = self._state.progress.all_items()
        attempts = sum(item.total_attempts for item in items)
        correct = sum(item.correct_answers for item in items)
        self._state.progress.overall_accuracy = 100 * correct / attempts if attempts else 0.0

    # Sessions

    def start_session(self, category: Category | str) -> PracticeSession:
        """Open a practice session; an already open one is closed first."""
        if self._active_session is not None:
            self.end_session()
        self._active_session = PracticeSession(
            id=str(uuid.uuid4()),
            category=Category(category),
            start_time=self.clock.now(),
        )
        logger.info("session_started", session_id=self._active_session.id)
        return self._active_session.model_copy(deep=True)

    def record_answer(
        self,
        key: str,
        correct: bool,
        time_spent_seconds: int = 0,
        difficulty: int | None = None,
    ) -> LearningItem:
        """Record an answer inside the open session."""
        session = self._active_session
        if session is None:
            raise NoActiveSessionError("No practice session is open")
        session.total_questions += 1
        if correct:
            session.correct_answers += 1
        else:
            session.mistakes.append(key)
        if key not in session.items_practiced:
            session.items_practiced.append(key)
        return self.upsert_item(session.category, key, correct, time_spent_seconds, difficulty)

    def end_session(self) -> PracticeSession:
        """Close the open session, store it and fold it into today's aggregate."""
        session = self._active_session
        if session is None:
            raise NoActiveSessionError("No practice session is open")
        session.close(self.clock.now())
        self._active_session = None
        self._append_session(session)
        self._aggregate_daily(session)
        self._check_milestones()
        self._persist()
        logger.info(
            "session_ended",
            session_id=session.id,
            duration_seconds=session.duration_seconds,
            accuracy=round(session.accuracy, 1),
        )
        return session.model_copy(deep=True)

    def append_session(self, session: PracticeSession) -> None:
        """Store a session; an open one is closed at the current time."""
        self._append_session(session)
        self._persist()

    def _append_session(self, session: PracticeSession) -> None:
        if not session.is_closed:
            session.close(self.clock.now())
        progress = self._state.progress
        progress.practice_sessions.append(session)
        progress.total_practice_time += session.duration_seconds / 60
        progress.total_items_practiced += len(session.items_practiced)
        self._state.game_state.lessons_completed += 1

    def aggregate_daily(self, session: PracticeSession) -> DailyAggregate:
        """Upsert the aggregate for the day the session ended."""
        aggregate = self._aggregate_daily(session)
        self._check_milestones()
        self._persist()
        return aggregate

    def _aggregate_daily(self, session: PracticeSession) -> DailyAggregate:
        day = (session.end_time or self.clock.now()).date()
        key = day.isoformat()
        progress = self._state.progress

        aggregate = next((d for d in progress.daily_stats if d.date == key), None)
        if aggregate is None:
            aggregate = DailyAggregate(date=key, streak=self._streak_for(day))
            progress.daily_stats.append(aggregate)

        xp = session.correct_answers * XP_PER_CORRECT_ANSWER
        aggregate.total_practice_time_minutes += session.duration_seconds / 60
        aggregate.items_practiced += len(session.items_practiced)
        aggregate.xp_gained += xp
        aggregate.sessions.append(session.model_copy(deep=True))
        questions = sum(s.total_questions for s in aggregate.sessions)
        correct = sum(s.correct_answers for s in aggregate.sessions)
        aggregate.accuracy = 100 * correct / questions if questions else 0.0

        progress.current_streak = aggregate.streak
        progress.longest_streak = max(progress.longest_streak, aggregate.streak)
        progress.last_practice_date = key

        user = self._state.user
        user.add_xp(xp)
        user.streak = aggregate.streak
        game = self._state.game_state
        game.current_xp = user.xp
        game.current_level = user.level
        game.streak = aggregate.streak
        return aggregate

    def _streak_for(self, day: date) -> int:
        previous = (day - timedelta(days=1)).isoformat()
        for aggregate in self._state.progress.daily_stats:
            if aggregate.date == previous:
                return aggregate.streak + 1
        return 1

    # Quiz results and achievements

    def add_quiz_result(self, result: QuizResult) -> None:
        self._state.quiz_results.append(result)
        self._persist()

    def add_achievement(self, achievement: Achievement) -> bool:
        """Unlock an achievement once. Returns False if it was already unlocked."""
        unlocked = self._unlock(achievement)
        if unlocked:
            self._persist()
        return unlocked

    def _unlock(self, achievement: Achievement) -> bool:
        game = self._state.game_state
        if achievement.id in game.achievements_unlocked:
            return False
        game.achievements_unlocked.append(achievement.id)
        self._state.achievements.append(achievement)
        self._state.user.add_xp(achievement.xp_reward)
        game.current_xp = self._state.user.xp
        game.current_level = self._state.user.level
        self.events.emit(ACHIEVEMENT_UNLOCKED, id=achievement.id, name=achievement.name)
        logger.info("achievement_unlocked", achievement_id=achievement.id)
        return True

    def _check_milestones(self) -> None:
        mastered = sum(1 for item in self._state.progress.all_items() if item.mastered)
        reached = {
            "first_mastery": mastered >= 1,
            "ten_mastered": mastered >= 10,
            "week_streak": self._state.progress.current_streak >= 7,
        }
        for achievement_id, hit in reached.items():
            if hit:
                name, description, xp = MILESTONES[achievement_id]
                self._unlock(Achievement(
                    id=achievement_id,
                    name=name,
                    description=description,
                    xp_reward=xp,
                    unlocked_at=self.clock.now(),
                ))

    # Behavioral input

    def record_behavior(self, **increments: int) -> BehaviorCounters:
        """Add to behavioral counters; results never go below zero."""
        counters = self._state.behavior
        for name, amount in increments.items():
            if name not in BehaviorCounters.model_fields:
                raise ValueError(f"Unknown behavior counter: {name}")
            setattr(counters, name, max(0, getattr(counters, name) + amount))
        self._persist()
        return counters.model_copy()

    def set_behavior(self, **values: int) -> BehaviorCounters:
        """Overwrite counters that are gauges rather than tallies (e.g. session_length)."""
        updated = self._state.behavior.model_copy(update=values)
        self._state.behavior = BehaviorCounters.model_validate(updated.model_dump())
        self._persist()
        return self._state.behavior.model_copy()

    def record_performance(self, accuracy: float, speed: float) -> None:
        samples = self._state.recent_performance
        samples.append(PerformanceSample(accuracy=accuracy, speed=speed))
        window = self.settings.performance_window
        if len(samples) > window:
            del samples[: len(samples) - window]
        self._persist()

    # Analysis results

    def record_analysis(
        self, recommendations: list[Recommendation], profile: LearnerProfile
    ) -> None:
        """Append a pass's recommendations to the audit history and store the profile."""
        self._state.recommendations.extend(recommendations)
        self._state.learner_profile = profile
        self._persist()

    # Export / import

    def export(self) -> str:
        return self.guard.export_document(self._state)

    def import_state(self, document: str | bytes) -> bool:
        """Replace the whole state from an exported document.

        Returns:
            False (state untouched) if the document cannot be parsed.
        """
        try:
            snapshot = self.guard.parse_document(document)
        except ImportParseError as e:
            logger.warning("import_failed", error=str(e))
            return False
        self._state = snapshot
        self._active_session = None
        self._persist()
        logger.info("import_completed", items=len(snapshot.progress.all_items()))
        return True

    def reset(self) -> None:
        """Forget everything, including the persisted document."""
        self.guard.clear()
        self._state = StorageSnapshot()
        self._active_session = None
        logger.info("progress_reset")
