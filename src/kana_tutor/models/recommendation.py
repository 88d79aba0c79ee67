"""Recommendation and analysis-pass result models."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from kana_tutor.models.profile import LearnerProfile


class RecommendationType(StrEnum):
    REVIEW = "review"
    PRACTICE = "practice"
    NEW = "new"
    METHOD = "method"
    SCHEDULE = "schedule"


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Recommendation(BaseModel):
    type: RecommendationType
    priority: Priority
    content: str
    reason: str
    estimated_time_minutes: int
    estimated_impact: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=datetime.now)


class StudySlot(BaseModel):
    time_of_day: str  # HH:MM
    duration_minutes: int
    focus: str


class StageStatus(StrEnum):
    LOCKED = "locked"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class LearningStage(BaseModel):
    order: int
    title: str
    mastered_required: int | None  # None: open-ended stage
    status: StageStatus = StageStatus.LOCKED


class CompletionPrediction(BaseModel):
    learning_rate: float
    daily_progress: int
    days_to_complete: int
    predicted_completion: datetime
    confidence: float


class AnalysisResult(BaseModel):
    """Outcome of one analysis pass.

    Exactly one of the following holds: the pass succeeded, ``no_data`` is
    set, or ``error`` is set (``timed_out`` additionally marks a deadline
    abort). Failed passes carry no recommendations.
    """

    recommendations: list[Recommendation] = Field(default_factory=list)
    profile: LearnerProfile | None = None
    study_schedule: list[StudySlot] = Field(default_factory=list)
    learning_path: list[LearningStage] = Field(default_factory=list)
    prediction: CompletionPrediction | None = None
    no_data: bool = False
    timed_out: bool = False
    error: str | None = None
    analyzed_at: datetime = Field(default_factory=datetime.now)

    @property
    def ok(self) -> bool:
        return self.error is None and not self.no_data
