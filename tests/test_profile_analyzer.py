"""Tests for learner profile heuristics."""

from datetime import datetime

from kana_tutor.learning.profile_analyzer import (
    ProfileAnalyzer,
    analyze_emotional_state,
    calculate_adaptive_difficulty,
    detect_learning_style,
)
from kana_tutor.models.profile import (
    BehaviorCounters,
    DifficultyTier,
    EmotionalState,
    LearnerProfile,
    LearningStyle,
    PerformanceSample,
)


def _samples(*pairs):
    return [PerformanceSample(accuracy=a, speed=s) for a, s in pairs]


class TestLearningStyle:
    def test_visual_majority(self):
        counters = BehaviorCounters(
            visual_interactions=8, audio_interactions=1, handwriting_interactions=1
        )
        assert detect_learning_style(counters) == LearningStyle.VISUAL

    def test_reading_counts_as_visual(self):
        counters = BehaviorCounters(reading_interactions=6, audio_interactions=4)
        assert detect_learning_style(counters) == LearningStyle.VISUAL

    def test_writing_counts_as_kinesthetic(self):
        counters = BehaviorCounters(
            writing_interactions=3, handwriting_interactions=3, audio_interactions=2
        )
        assert detect_learning_style(counters) == LearningStyle.KINESTHETIC

    def test_auditory_majority(self):
        counters = BehaviorCounters(audio_interactions=7, visual_interactions=3)
        assert detect_learning_style(counters) == LearningStyle.AUDITORY

    def test_no_interactions_is_mixed(self):
        assert detect_learning_style(BehaviorCounters()) == LearningStyle.MIXED

    def test_even_split_is_mixed(self):
        counters = BehaviorCounters(visual_interactions=5, audio_interactions=5)
        assert detect_learning_style(counters) == LearningStyle.MIXED


class TestAdaptiveDifficulty:
    def test_empty_window_is_medium(self):
        assert calculate_adaptive_difficulty([]) == DifficultyTier.MEDIUM

    def test_visual_multiplier_reaches_hard(self):
        samples = _samples((85, 80), (85, 80), (85, 80))
        # 85 * 1.1 = 93.5 and 80 * 1.1 = 88
        assert calculate_adaptive_difficulty(samples, LearningStyle.VISUAL) == DifficultyTier.HARD
        assert calculate_adaptive_difficulty(samples, LearningStyle.MIXED) == DifficultyTier.MEDIUM

    def test_low_accuracy_is_easy(self):
        samples = _samples((60, 90), (65, 90), (60, 90))
        assert calculate_adaptive_difficulty(samples) == DifficultyTier.EASY

    def test_slow_is_easy(self):
        samples = _samples((95, 40), (95, 40), (95, 40))
        assert calculate_adaptive_difficulty(samples) == DifficultyTier.EASY

    def test_inconsistent_performance_is_not_hard(self):
        samples = _samples((100, 90), (100, 90), (80, 90), (100, 90), (100, 90))
        assert calculate_adaptive_difficulty(samples) == DifficultyTier.MEDIUM

    def test_too_few_samples_is_not_hard(self):
        samples = _samples((100, 100), (100, 100))
        assert calculate_adaptive_difficulty(samples) == DifficultyTier.MEDIUM

    def test_auditory_multiplier_lowers_tier(self):
        samples = _samples((75, 90), (75, 90), (75, 90))
        # 75 * 0.9 = 67.5 < 70
        assert calculate_adaptive_difficulty(samples, LearningStyle.AUDITORY) == DifficultyTier.EASY


class TestEmotionalState:
    def test_frustrated(self):
        state = analyze_emotional_state(BehaviorCounters(rapid_errors=6, session_length=40))
        assert state.mood == "frustrated"
        assert state.stress == "high"
        assert state.confidence == 40
        assert state.focus == "focused"

    def test_excited(self):
        state = analyze_emotional_state(
            BehaviorCounters(consistent_practice=11, interaction_rate=3)
        )
        assert state.mood == "excited"
        assert state.energy == "high"
        assert state.motivation == 100
        assert state.engagement == 60

    def test_gauges_clamped(self):
        state = analyze_emotional_state(BehaviorCounters(rapid_errors=20, interaction_rate=50))
        assert state.confidence == 0
        assert state.engagement == 100

    def test_short_session_is_distracted(self):
        state = analyze_emotional_state(BehaviorCounters(session_length=5))
        assert state.focus == "distracted"

    def test_mid_session_keeps_previous_focus(self):
        previous = EmotionalState(focus="distracted")
        state = analyze_emotional_state(BehaviorCounters(session_length=20), previous)
        assert state.focus == "distracted"

    def test_neutral_defaults(self):
        now = datetime(2025, 1, 1, 9, 0)
        state = analyze_emotional_state(BehaviorCounters(session_length=20), now=now)
        assert state.mood == "neutral"
        assert state.energy == "medium"
        assert state.stress == "low"
        assert state.last_updated == now


class TestProfileAnalyzer:
    def test_window_limits_samples(self):
        analyzer = ProfileAnalyzer(window_size=3)
        # Old slow samples fall outside the window
        samples = _samples(*([(10, 10)] * 5 + [(100, 100)] * 3))
        profile = analyzer.analyze(BehaviorCounters(), samples)
        assert profile.difficulty_tier == DifficultyTier.HARD

    def test_analyze_combines_parts(self):
        analyzer = ProfileAnalyzer()
        counters = BehaviorCounters(visual_interactions=9, audio_interactions=1)
        profile = analyzer.analyze(counters, [], previous=LearnerProfile())
        assert profile.style == LearningStyle.VISUAL
        assert profile.difficulty_tier == DifficultyTier.MEDIUM
        assert profile.emotional.focus == "distracted"
