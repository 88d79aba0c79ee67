"""Tests for spaced-repetition scheduling."""

from datetime import datetime, timedelta

import pytest

from kana_tutor.learning.scheduler import (
    MAX_INTERVAL_HISTORY,
    SpacedRepetitionScheduler,
    adjust_ease_factor,
    priority_for_interval,
    recall_quality,
)
from kana_tutor.models.progress import Category, LearningItem
from kana_tutor.models.recommendation import Priority

T0 = datetime(2025, 1, 1, 9, 0, 0)


@pytest.fixture
def scheduler():
    return SpacedRepetitionScheduler()


class TestHelpers:
    def test_recall_quality(self):
        assert recall_quality(1) == 0.9
        assert recall_quality(4) == 0.6
        assert recall_quality(5) == 0.5

    def test_ease_factor_floor(self):
        ef = 2.5
        for _ in range(20):
            ef = adjust_ease_factor(ef, 0.0)
        assert ef == 1.3

    def test_priority_bands(self):
        assert priority_for_interval(0) == Priority.HIGH
        assert priority_for_interval(0.5) == Priority.HIGH
        assert priority_for_interval(1) == Priority.MEDIUM
        assert priority_for_interval(2.9) == Priority.MEDIUM
        assert priority_for_interval(3) == Priority.LOW


class TestSchedule:
    def test_first_review(self, scheduler):
        result = scheduler.schedule(1, T0, [])
        assert result.interval_days == 1
        assert result.next_review == T0 + timedelta(days=1)
        assert result.priority == Priority.HIGH
        assert result.ease_factor == 2.5
        assert result.retention_rate == 90

    def test_second_review_grows_interval(self, scheduler):
        result = scheduler.schedule(1, T0, [1.0], ease_factor=2.5)
        # ease 2.5 - 0.5642 -> 1.9358; round(1 * 1.9358) = 2
        assert result.ease_factor == pytest.approx(1.9358)
        assert result.interval_days == 2
        assert result.priority == Priority.MEDIUM

    def test_long_interval_is_low_priority(self, scheduler):
        result = scheduler.schedule(1, T0, [10.0], ease_factor=2.5)
        assert result.interval_days == 19
        assert result.priority == Priority.LOW

    def test_weak_recall_resets_interval(self, scheduler):
        result = scheduler.schedule(5, T0, [10.0], ease_factor=2.5)
        assert result.interval_days == 1
        assert result.next_review == T0 + timedelta(days=1)
        assert result.priority == Priority.HIGH

    def test_passing_boundary(self, scheduler):
        result = scheduler.schedule(4, T0, [4.0], ease_factor=2.5)
        assert result.interval_days > 1

    def test_ease_factor_never_below_floor(self, scheduler):
        result = scheduler.schedule(5, T0, [1.0], ease_factor=1.3)
        assert result.ease_factor >= 1.3


class TestReview:
    def test_review_updates_item(self, scheduler):
        item = LearningItem(key="あ", category=Category.HIRAGANA, last_practiced=T0)
        scheduler.review(item, T0)
        assert item.interval_days == 1
        assert item.previous_intervals == [1.0]
        assert item.next_review == T0 + timedelta(days=1)

        scheduler.review(item, T0 + timedelta(days=1))
        assert item.previous_intervals == [1.0, 2.0]
        assert item.next_review == T0 + timedelta(days=3)

    def test_interval_history_capped(self, scheduler):
        item = LearningItem(key="あ", category=Category.HIRAGANA, difficulty=5)
        for day in range(MAX_INTERVAL_HISTORY + 5):
            scheduler.review(item, T0 + timedelta(days=day))
        assert len(item.previous_intervals) == MAX_INTERVAL_HISTORY


class TestProject:
    def test_project_does_not_mutate(self, scheduler):
        item = LearningItem(key="あ", category=Category.HIRAGANA, last_practiced=T0)
        scheduler.review(item, T0)
        before = item.model_dump()
        result = scheduler.project(item)
        assert result.next_review == T0 + timedelta(days=1)
        assert item.model_dump() == before

    def test_unscheduled_item_due_at_last_practice(self, scheduler):
        item = LearningItem(key="ア", category=Category.KATAKANA, last_practiced=T0)
        result = scheduler.project(item)
        assert result.next_review == T0
        assert result.priority == Priority.HIGH

    def test_projected_priority_matches_review(self, scheduler):
        item = LearningItem(key="い", category=Category.HIRAGANA, last_practiced=T0, difficulty=2)
        first = scheduler.review(item, T0)
        assert first.priority == Priority.HIGH
        assert scheduler.project(item).priority == first.priority

        second = scheduler.review(item, T0 + timedelta(days=1))
        assert second.earned_interval_days >= 1
        assert second.priority != Priority.HIGH
        assert scheduler.project(item).priority == second.priority
        assert item.earned_interval_days == second.earned_interval_days
