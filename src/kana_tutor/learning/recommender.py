"""Recommendation generation: one analysis pass over the learner's progress."""

import asyncio
import math
from datetime import datetime, timedelta

import structlog

from kana_tutor.clock import Clock, SystemClock
from kana_tutor.config import Settings
from kana_tutor.events import (
    ANALYSIS_FAILED,
    PROFILE_UPDATED,
    RECOMMENDATIONS_UPDATED,
    EventQueue,
)
from kana_tutor.learning.profile_analyzer import ProfileAnalyzer
from kana_tutor.learning.scheduler import ScheduleResult, SpacedRepetitionScheduler
from kana_tutor.models.profile import LearnerProfile, LearningStyle
from kana_tutor.models.progress import Category, LearningItem
from kana_tutor.models.recommendation import (
    AnalysisResult,
    CompletionPrediction,
    LearningStage,
    Priority,
    Recommendation,
    RecommendationType,
    StageStatus,
    StudySlot,
)
from kana_tutor.storage.progress_store import ProgressStore

logger = structlog.get_logger()

MAX_REVIEW_ITEMS = 5
MAX_PRACTICE_ITEMS = 3
WEAK_ACCURACY = 70
MIN_MASTERED_FOR_NEW = 2
NEW_CONTENT_MINUTES = 15
ITEMS_PER_DAY_AT_FULL_ACCURACY = 5

# (title, mastered items required to complete; None = open-ended)
LEARNING_STAGES: list[tuple[str, int | None]] = [
    ("Hiragana foundations", 5),
    ("Katakana foundations", 15),
    ("Kanji and grammar", None),
]

# style -> (main session minutes, main session focus)
STYLE_SESSIONS: dict[LearningStyle, tuple[int, str]] = {
    LearningStyle.VISUAL: (25, "flashcards and stroke-order diagrams"),
    LearningStyle.AUDITORY: (20, "listening and pronunciation drills"),
    LearningStyle.KINESTHETIC: (30, "handwriting practice"),
    LearningStyle.MIXED: (25, "mixed exercises"),
}

METHOD_ADVICE: dict[LearningStyle, tuple[str, str]] = {
    LearningStyle.VISUAL: (
        "Study with flashcards and stroke-order diagrams",
        "Most of your interactions are visual",
    ),
    LearningStyle.AUDITORY: (
        "Practice with audio pronunciation drills",
        "Most of your interactions are auditory",
    ),
}


class AnalysisTimeout(Exception):
    """The analysis pass ran past its time budget."""


def build_study_schedule(style: LearningStyle) -> list[StudySlot]:
    """Three fixed daily slots tuned to the learning style."""
    minutes, focus = STYLE_SESSIONS[style]
    return [
        StudySlot(time_of_day="09:00", duration_minutes=minutes, focus=focus),
        StudySlot(time_of_day="14:00", duration_minutes=minutes // 2, focus="spaced-repetition review"),
        StudySlot(time_of_day="20:00", duration_minutes=max(10, minutes // 3), focus="quick recap"),
    ]


def build_learning_path(mastered_count: int) -> list[LearningStage]:
    """Stage list: completed stages, then one in progress, the rest locked."""
    stages = []
    in_progress_assigned = False
    for order, (title, required) in enumerate(LEARNING_STAGES, start=1):
        if required is not None and mastered_count >= required:
            status = StageStatus.COMPLETED
        elif not in_progress_assigned:
            status = StageStatus.IN_PROGRESS
            in_progress_assigned = True
        else:
            status = StageStatus.LOCKED
        stages.append(
            LearningStage(order=order, title=title, mastered_required=required, status=status)
        )
    return stages


def predict_completion(
    items: list[LearningItem], total_catalog_size: int, now: datetime
) -> CompletionPrediction:
    learning_rate = sum(item.accuracy for item in items) / len(items) / 100 if items else 0.0
    mastered = sum(1 for item in items if item.mastered)
    daily_progress = max(1, math.floor(learning_rate * ITEMS_PER_DAY_AT_FULL_ACCURACY))
    days = math.ceil(max(0, total_catalog_size - mastered) / daily_progress)
    return CompletionPrediction(
        learning_rate=learning_rate,
        daily_progress=daily_progress,
        days_to_complete=days,
        predicted_completion=now + timedelta(days=days),
        confidence=min(0.95, 0.7 + learning_rate * 0.25),
    )


def next_category(items: list[LearningItem]) -> Category:
    """Category after the furthest one with mastered items."""
    mastered_categories = [item.category for item in items if item.mastered]
    if not mastered_categories:
        return Category.HIRAGANA
    order = list(Category)
    furthest = max(mastered_categories, key=order.index)
    return furthest.next


class RecommendationGenerator:
    """Runs analysis passes and owns the UI-facing recommendation list.

    Args:
        store: Progress store providing items, counters and samples.
        settings: Timeout, window size and catalog size.
        clock: Time source for scheduling and the pass deadline.
        events: Queue receiving recommendation and profile updates.
    """

    def __init__(
        self,
        store: ProgressStore,
        settings: Settings,
        clock: Clock | None = None,
        events: EventQueue | None = None,
        scheduler: SpacedRepetitionScheduler | None = None,
        analyzer: ProfileAnalyzer | None = None,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock or SystemClock()
        self.events = events or EventQueue()
        self.scheduler = scheduler or SpacedRepetitionScheduler()
        self.analyzer = analyzer or ProfileAnalyzer(window_size=settings.performance_window)
        self._current: list[Recommendation] = []
        self._deadline: float = math.inf

    @property
    def current(self) -> list[Recommendation]:
        """Recommendations from the last successful pass."""
        return list(self._current)

    def _check_deadline(self, step: str) -> None:
        if self.clock.monotonic() > self._deadline:
            raise AnalysisTimeout(
                f"Analysis exceeded {self.settings.analysis_timeout_seconds}s during {step}"
            )

    def analyze(self) -> AnalysisResult:
        """Run one pass and commit its recommendations and profile on success."""
        items = self.store.all_items()
        now = self.clock.now()
        if not items:
            logger.info("analysis_skipped_no_data")
            return AnalysisResult(no_data=True, analyzed_at=now)

        self._deadline = self.clock.monotonic() + self.settings.analysis_timeout_seconds
        try:
            result = self._run_pass(items, now)
        except AnalysisTimeout as e:
            logger.warning("analysis_timed_out", error=str(e))
            self.events.emit(ANALYSIS_FAILED, reason="timeout")
            return AnalysisResult(timed_out=True, error=str(e), analyzed_at=now)
        except Exception as e:
            logger.exception("analysis_failed")
            self.events.emit(ANALYSIS_FAILED, reason=str(e))
            return AnalysisResult(error=str(e), analyzed_at=now)
        finally:
            self._deadline = math.inf

        self._current = list(result.recommendations)
        self.store.record_analysis(result.recommendations, result.profile)
        self.events.emit(
            RECOMMENDATIONS_UPDATED,
            recommendations=[r.model_dump(mode="json") for r in result.recommendations],
        )
        self.events.emit(PROFILE_UPDATED, profile=result.profile.model_dump(mode="json"))
        logger.info(
            "analysis_completed",
            items=len(items),
            recommendations=len(result.recommendations),
            style=result.profile.style.value,
        )
        return result

    def _run_pass(self, items: list[LearningItem], now: datetime) -> AnalysisResult:
        profile = self.analyzer.analyze(
            self.store.behavior,
            self.store.recent_performance,
            previous=self.store.learner_profile,
            now=now,
        )
        self._check_deadline("profile analysis")

        schedule = build_study_schedule(profile.style)
        mastered_count = sum(1 for item in items if item.mastered)
        learning_path = build_learning_path(mastered_count)

        recommendations: list[Recommendation] = []

        due = self._collect_due(items, now)
        if due:
            keys = [item.key for item, _ in due]
            recommendations.append(Recommendation(
                type=RecommendationType.REVIEW,
                priority=Priority.HIGH,
                content=f"Review {', '.join(keys)}",
                reason="These items are due for review based on spaced repetition",
                estimated_time_minutes=len(keys) * 2,
                estimated_impact=0.8,
                confidence=0.9,
                timestamp=now,
            ))

        weak = [item for item in items if item.accuracy < WEAK_ACCURACY][:MAX_PRACTICE_ITEMS]
        if weak:
            recommendations.append(Recommendation(
                type=RecommendationType.PRACTICE,
                priority=Priority.MEDIUM,
                content=f"Focus on {', '.join(item.key for item in weak)}",
                reason="These items have low accuracy and need more practice",
                estimated_time_minutes=len(weak) * 3,
                estimated_impact=0.7,
                confidence=0.8,
                timestamp=now,
            ))
        self._check_deadline("weakness analysis")

        if mastered_count >= MIN_MASTERED_FOR_NEW:
            category = next_category(items)
            recommendations.append(Recommendation(
                type=RecommendationType.NEW,
                priority=Priority.LOW,
                content=f"Learn new {category.value} items",
                reason=f"You have mastered {mastered_count} items and can move on to {category.value}",
                estimated_time_minutes=NEW_CONTENT_MINUTES,
                estimated_impact=0.6,
                confidence=0.7,
                timestamp=now,
            ))

        if profile.style in METHOD_ADVICE:
            content, reason = METHOD_ADVICE[profile.style]
            recommendations.append(Recommendation(
                type=RecommendationType.METHOD,
                priority=Priority.LOW,
                content=content,
                reason=reason,
                estimated_time_minutes=10,
                estimated_impact=0.5,
                confidence=0.6,
                timestamp=now,
            ))

        main_slot = schedule[0]
        recommendations.append(Recommendation(
            type=RecommendationType.SCHEDULE,
            priority=Priority.MEDIUM,
            content=f"Study daily at {main_slot.time_of_day} for {main_slot.duration_minutes} minutes",
            reason=f"Session plan tuned to your {profile.style.value} learning style",
            estimated_time_minutes=main_slot.duration_minutes,
            estimated_impact=0.4,
            confidence=0.7,
            timestamp=now,
        ))

        prediction = predict_completion(items, self.settings.total_catalog_size, now)
        self._check_deadline("completion prediction")

        return AnalysisResult(
            recommendations=recommendations,
            profile=profile,
            study_schedule=schedule,
            learning_path=learning_path,
            prediction=prediction,
            analyzed_at=now,
        )

    def _collect_due(
        self, items: list[LearningItem], now: datetime
    ) -> list[tuple[LearningItem, ScheduleResult]]:
        """Due items, most overdue first, capped."""
        due = []
        for item in items:
            self._check_deadline("review scheduling")
            result = self.scheduler.project(item)
            if result.next_review <= now:
                due.append((item, result))
        due.sort(key=lambda pair: pair[1].next_review)
        return due[:MAX_REVIEW_ITEMS]

    async def run_periodic(self, interval_seconds: float | None = None) -> None:
        """Re-run the analysis on a fixed interval until cancelled."""
        interval = interval_seconds or self.settings.analysis_interval_seconds
        try:
            while True:
                await asyncio.sleep(interval)
                self.analyze()
        except asyncio.CancelledError:
            logger.info("periodic_analysis_stopped")
            raise
