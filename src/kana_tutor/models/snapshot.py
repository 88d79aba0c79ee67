"""Whole-state document written to the key-value store and used for export/import."""

from pydantic import BaseModel, Field

from kana_tutor.models.profile import BehaviorCounters, LearnerProfile, PerformanceSample
from kana_tutor.models.progress import (
    Achievement,
    GameState,
    ProgressState,
    QuizResult,
    User,
)
from kana_tutor.models.recommendation import Recommendation

SNAPSHOT_VERSION = 1


class StorageSnapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    user: User = Field(default_factory=User)
    progress: ProgressState = Field(default_factory=ProgressState)
    quiz_results: list[QuizResult] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    learner_profile: LearnerProfile = Field(default_factory=LearnerProfile)
    achievements: list[Achievement] = Field(default_factory=list)
    game_state: GameState = Field(default_factory=GameState)
    behavior: BehaviorCounters = Field(default_factory=BehaviorCounters)
    recent_performance: list[PerformanceSample] = Field(default_factory=list)


_LIST_FIELDS = ("quiz_results", "recommendations", "achievements", "recent_performance")
_PROGRESS_LIST_FIELDS = (
    "hiragana",
    "katakana",
    "kanji",
    "grammar",
    "practice_sessions",
    "daily_stats",
)


def repair_document(data: dict) -> dict:
    """Replace collections that are not lists with empty lists.

    Older or hand-edited documents sometimes carry ``null`` or an object where
    a list is expected; those collections are reset rather than rejected.
    """
    repaired = dict(data)
    for name in _LIST_FIELDS:
        if name in repaired and not isinstance(repaired[name], list):
            repaired[name] = []
    progress = repaired.get("progress")
    if isinstance(progress, dict):
        progress = dict(progress)
        for name in _PROGRESS_LIST_FIELDS:
            if name in progress and not isinstance(progress[name], list):
                progress[name] = []
        repaired["progress"] = progress
    return repaired
