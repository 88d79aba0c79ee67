"""Heuristic learner-profile analysis over behavioral counters and recent performance."""

from collections.abc import Sequence
from datetime import datetime

import structlog

from kana_tutor.models.profile import (
    BehaviorCounters,
    DifficultyTier,
    EmotionalState,
    LearnerProfile,
    LearningStyle,
    PerformanceSample,
)

logger = structlog.get_logger()

# Applied to both performance means before tiering; other styles use 1.0
STYLE_MULTIPLIERS: dict[LearningStyle, float] = {
    LearningStyle.VISUAL: 1.10,
    LearningStyle.AUDITORY: 0.90,
    LearningStyle.KINESTHETIC: 1.05,
}


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def detect_learning_style(counters: BehaviorCounters) -> LearningStyle:
    """Classify the dominant interaction modality.

    Visual counts visual and reading interactions, auditory counts audio,
    kinesthetic counts handwriting and writing. A modality wins only with a
    strict majority; otherwise (or with no interactions) the style is mixed.
    """
    visual = counters.visual_interactions + counters.reading_interactions
    auditory = counters.audio_interactions
    kinesthetic = counters.handwriting_interactions + counters.writing_interactions
    total = visual + auditory + kinesthetic
    if total == 0:
        return LearningStyle.MIXED

    percentages = [
        (LearningStyle.VISUAL, visual / total * 100),
        (LearningStyle.AUDITORY, auditory / total * 100),
        (LearningStyle.KINESTHETIC, kinesthetic / total * 100),
    ]
    for style, pct in percentages:
        if pct > 50:
            return style
    return LearningStyle.MIXED


def calculate_adaptive_difficulty(
    samples: Sequence[PerformanceSample],
    style: LearningStyle = LearningStyle.MIXED,
) -> DifficultyTier:
    """Pick the difficulty tier from a window of recent performance.

    Args:
        samples: Recent samples, oldest first.
        style: Learner style; scales both means before tiering.

    Returns:
        HARD only for high, fast and consistent performance.
    """
    if not samples:
        return DifficultyTier.MEDIUM

    mean_accuracy = sum(s.accuracy for s in samples) / len(samples)
    mean_speed = sum(s.speed for s in samples) / len(samples)
    consistent = len(samples) >= 3 and all(
        abs(s.accuracy - mean_accuracy) <= 10 for s in samples[-3:]
    )

    multiplier = STYLE_MULTIPLIERS.get(style, 1.0)
    adj_accuracy = mean_accuracy * multiplier
    adj_speed = mean_speed * multiplier

    if adj_accuracy > 90 and adj_speed > 80 and consistent:
        return DifficultyTier.HARD
    if adj_accuracy < 70 or adj_speed < 50:
        return DifficultyTier.EASY
    return DifficultyTier.MEDIUM


def analyze_emotional_state(
    counters: BehaviorCounters,
    previous: EmotionalState | None = None,
    now: datetime | None = None,
) -> EmotionalState:
    """Derive mood, stress, energy and focus plus 0-100 gauges.

    Focus keeps its previous value for mid-length sessions (10-30).
    """
    previous = previous or EmotionalState()

    if counters.rapid_errors > 5:
        mood = "frustrated"
    elif counters.consistent_practice > 10:
        mood = "excited"
    else:
        mood = "neutral"

    if counters.session_length > 30:
        focus = "focused"
    elif counters.session_length < 10:
        focus = "distracted"
    else:
        focus = previous.focus

    return EmotionalState(
        mood=mood,
        energy="high" if counters.consistent_practice > 10 else "medium",
        focus=focus,
        stress="high" if counters.rapid_errors > 5 else "low",
        confidence=_clamp(100 - counters.rapid_errors * 10),
        motivation=_clamp(counters.consistent_practice * 10),
        engagement=_clamp(counters.interaction_rate * 20),
        last_updated=now or datetime.now(),
    )


class ProfileAnalyzer:
    """Builds the learner profile from counters and a sliding performance window.

    Args:
        window_size: Number of most recent performance samples considered.
    """

    def __init__(self, window_size: int = 10):
        self.window_size = window_size

    def analyze(
        self,
        counters: BehaviorCounters,
        samples: Sequence[PerformanceSample],
        previous: LearnerProfile | None = None,
        now: datetime | None = None,
    ) -> LearnerProfile:
        window = list(samples)[-self.window_size:] if self.window_size > 0 else []
        style = detect_learning_style(counters)
        tier = calculate_adaptive_difficulty(window, style)
        emotional = analyze_emotional_state(
            counters,
            previous.emotional if previous else None,
            now,
        )
        logger.debug(
            "profile_analyzed",
            style=style.value,
            difficulty=tier.value,
            mood=emotional.mood,
        )
        return LearnerProfile(style=style, difficulty_tier=tier, emotional=emotional)
