"""Learner profile models: style, difficulty tier, emotional state."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class LearningStyle(StrEnum):
    VISUAL = "visual"
    AUDITORY = "auditory"
    KINESTHETIC = "kinesthetic"
    MIXED = "mixed"


class DifficultyTier(StrEnum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class EmotionalState(BaseModel):
    mood: str = "neutral"  # neutral / excited / frustrated
    energy: str = "medium"  # medium / high
    focus: str = "focused"  # focused / distracted
    stress: str = "low"  # low / high
    confidence: float = 50.0
    motivation: float = 50.0
    engagement: float = 50.0
    last_updated: datetime = Field(default_factory=datetime.now)


class LearnerProfile(BaseModel):
    """Latest style / difficulty / emotional snapshot. Not history-tracked."""

    style: LearningStyle = LearningStyle.MIXED
    difficulty_tier: DifficultyTier = DifficultyTier.MEDIUM
    emotional: EmotionalState = Field(default_factory=EmotionalState)


class BehaviorCounters(BaseModel):
    """Non-negative counters accumulated from UI interaction events."""

    visual_interactions: int = Field(default=0, ge=0)
    audio_interactions: int = Field(default=0, ge=0)
    handwriting_interactions: int = Field(default=0, ge=0)
    reading_interactions: int = Field(default=0, ge=0)
    writing_interactions: int = Field(default=0, ge=0)
    rapid_errors: int = Field(default=0, ge=0)
    consistent_practice: int = Field(default=0, ge=0)
    session_length: int = Field(default=0, ge=0)
    interaction_rate: int = Field(default=0, ge=0)


class PerformanceSample(BaseModel):
    accuracy: float = Field(ge=0.0, le=100.0)
    speed: float = Field(ge=0.0, le=100.0)
