"""Spaced-repetition scheduling (SM-2 style)."""

from datetime import datetime, timedelta

import structlog
from pydantic import BaseModel

from kana_tutor.models.progress import DEFAULT_EASE_FACTOR, MIN_EASE_FACTOR, LearningItem
from kana_tutor.models.recommendation import Priority

logger = structlog.get_logger()

# Recall quality below this resets the interval to one day
PASSING_QUALITY = 0.6
MAX_INTERVAL_HISTORY = 10


class ScheduleResult(BaseModel):
    next_review: datetime
    retention_rate: float
    priority: Priority
    ease_factor: float
    interval_days: float
    earned_interval_days: float = 0.0


def recall_quality(difficulty: int) -> float:
    """Map a 1-5 difficulty to a 0-1 recall quality."""
    return max(0, 100 - difficulty * 10) / 100


def adjust_ease_factor(ease_factor: float, quality: float) -> float:
    """SM-2 ease adjustment, floored at 1.3."""
    delta = 0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02)
    return max(MIN_EASE_FACTOR, ease_factor + delta)


def priority_for_interval(interval_days: float) -> Priority:
    if interval_days < 1:
        return Priority.HIGH
    elif interval_days < 3:
        return Priority.MEDIUM
    else:
        return Priority.LOW


class SpacedRepetitionScheduler:
    """Computes review timing and retention estimates from an item's history."""

    def schedule(
        self,
        difficulty: int,
        reviewed_at: datetime,
        previous_intervals: list[float],
        ease_factor: float = DEFAULT_EASE_FACTOR,
    ) -> ScheduleResult:
        """Schedule the next review after a review at ``reviewed_at``.

        Priority reflects the interval the item earned from its history: an
        item with no usable history (first review, or a reset after weak
        recall) has earned nothing and is high priority, even though its next
        review is still placed one day out.

        Args:
            difficulty: Self-reported difficulty, 1 (easy) to 5 (hard).
            reviewed_at: Time of this review.
            previous_intervals: Intervals (days) scheduled by earlier reviews.
            ease_factor: Current ease factor of the item.

        Returns:
            ScheduleResult for the next review.
        """
        quality = recall_quality(difficulty)
        if previous_intervals:
            ease_factor = adjust_ease_factor(ease_factor, quality)
        ease_factor = max(MIN_EASE_FACTOR, ease_factor)

        earned = 0.0
        if quality >= PASSING_QUALITY and previous_intervals:
            earned = float(round(previous_intervals[-1] * ease_factor))
        interval_days = earned if earned >= 1 else 1.0

        return ScheduleResult(
            next_review=reviewed_at + timedelta(days=interval_days),
            retention_rate=max(0, 100 - difficulty * 10),
            priority=priority_for_interval(earned),
            ease_factor=ease_factor,
            interval_days=interval_days,
            earned_interval_days=earned,
        )

    def review(self, item: LearningItem, reviewed_at: datetime) -> ScheduleResult:
        """Apply a review to an item in place."""
        result = self.schedule(
            item.difficulty,
            reviewed_at,
            item.previous_intervals,
            item.ease_factor,
        )
        item.ease_factor = result.ease_factor
        item.interval_days = result.interval_days
        item.earned_interval_days = result.earned_interval_days
        item.previous_intervals = (item.previous_intervals + [result.interval_days])[-MAX_INTERVAL_HISTORY:]
        item.next_review = result.next_review
        logger.debug(
            "item_reviewed",
            key=item.key,
            interval_days=result.interval_days,
            ease_factor=round(result.ease_factor, 3),
        )
        return result

    def project(self, item: LearningItem) -> ScheduleResult:
        """Current schedule of an item without changing it.

        Items never reviewed through the scheduler (e.g. imported) are due at
        their last practice time.
        """
        next_review = item.next_review or item.last_practiced + timedelta(days=item.interval_days)
        return ScheduleResult(
            next_review=next_review,
            retention_rate=max(0, 100 - item.difficulty * 10),
            priority=priority_for_interval(item.earned_interval_days),
            ease_factor=item.ease_factor,
            interval_days=item.interval_days,
            earned_interval_days=item.earned_interval_days,
        )
