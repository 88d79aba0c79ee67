"""Learning progress data models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


class Category(StrEnum):
    """Content categories, in curriculum order."""

    HIRAGANA = "hiragana"
    KATAKANA = "katakana"
    KANJI = "kanji"
    GRAMMAR = "grammar"

    @property
    def next(self) -> "Category":
        """Following category in curriculum order (grammar is last)."""
        members = list(Category)
        index = members.index(self)
        return members[min(index + 1, len(members) - 1)]


class LearningItem(BaseModel):
    """Per-item learning state for one character, kanji or grammar topic."""

    key: str
    category: Category
    mastered: bool = False
    practice_count: int = 0
    last_practiced: datetime = Field(default_factory=datetime.now)
    correct_answers: int = 0
    total_attempts: int = 0
    accuracy: float = 0.0
    time_spent_seconds: int = 0
    difficulty: int = Field(default=1, ge=1, le=5)  # self-reported, 1 (easy) - 5 (hard)
    ease_factor: float = Field(default=DEFAULT_EASE_FACTOR, ge=MIN_EASE_FACTOR)
    interval_days: float = Field(default=0.0, ge=0.0)
    earned_interval_days: float = Field(default=0.0, ge=0.0)  # interval earned from history; drives priority
    previous_intervals: list[float] = Field(default_factory=list)
    next_review: datetime | None = None

    def record_attempt(self, correct: bool, at: datetime, time_spent_seconds: int = 0) -> None:
        """Count one answer and keep accuracy consistent with the counters."""
        self.practice_count += 1
        self.total_attempts += 1
        if correct:
            self.correct_answers += 1
        self.accuracy = 100 * self.correct_answers / self.total_attempts
        self.time_spent_seconds += time_spent_seconds
        self.last_practiced = at


class PracticeSession(BaseModel):
    """One practice session; immutable once closed."""

    id: str
    category: Category
    start_time: datetime
    end_time: datetime | None = None
    duration_seconds: int = 0
    total_questions: int = 0
    correct_answers: int = 0
    accuracy: float = 0.0
    items_practiced: list[str] = Field(default_factory=list)
    mistakes: list[str] = Field(default_factory=list)

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    def close(self, at: datetime) -> None:
        """Set end time and derive duration and accuracy."""
        self.end_time = at
        self.duration_seconds = max(0, round((at - self.start_time).total_seconds()))
        if self.total_questions:
            self.accuracy = 100 * self.correct_answers / self.total_questions


class DailyAggregate(BaseModel):
    """Per-calendar-day rollup of closed sessions."""

    date: str  # YYYY-MM-DD
    total_practice_time_minutes: float = 0.0
    items_practiced: int = 0
    accuracy: float = 0.0
    streak: int = 0
    xp_gained: int = 0
    sessions: list[PracticeSession] = Field(default_factory=list)


class QuizResult(BaseModel):
    quiz_id: str
    score: float
    total_questions: int
    correct_answers: int
    time_taken_seconds: int = 0
    mistakes: list[str] = Field(default_factory=list)
    completed_at: datetime = Field(default_factory=datetime.now)


class Achievement(BaseModel):
    id: str
    name: str
    description: str = ""
    xp_reward: int = 0
    unlocked_at: datetime = Field(default_factory=datetime.now)


class User(BaseModel):
    id: str = "default"
    username: str = "Learner"
    level: int = 1
    xp: int = 0
    streak: int = 0

    def add_xp(self, amount: int) -> None:
        self.xp += amount
        self.level = self.xp // 100 + 1


class GameState(BaseModel):
    current_level: int = 1
    current_xp: int = 0
    streak: int = 0
    achievements_unlocked: list[str] = Field(default_factory=list)
    lessons_completed: int = 0


class ProgressState(BaseModel):
    """All progress collections owned by the progress store."""

    hiragana: list[LearningItem] = Field(default_factory=list)
    katakana: list[LearningItem] = Field(default_factory=list)
    kanji: list[LearningItem] = Field(default_factory=list)
    grammar: list[LearningItem] = Field(default_factory=list)
    practice_sessions: list[PracticeSession] = Field(default_factory=list)
    daily_stats: list[DailyAggregate] = Field(default_factory=list)
    total_practice_time: float = 0.0  # minutes
    total_items_practiced: int = 0
    overall_accuracy: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    last_practice_date: str = ""

    def items(self, category: Category) -> list[LearningItem]:
        return getattr(self, category.value)

    def all_items(self) -> list[LearningItem]:
        return [item for category in Category for item in self.items(category)]
