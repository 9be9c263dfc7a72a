"""User state classification from profile, session and behavioral signals."""

import math
from collections.abc import Sequence

import structlog

from adaptive_puzzle_engine.config import Settings, get_settings
from adaptive_puzzle_engine.models.profile import UserProfile
from adaptive_puzzle_engine.models.session import BehavioralPattern, SessionContext
from adaptive_puzzle_engine.models.state import BaseState, StateModifier, UserState

logger = structlog.get_logger()

NEW_USER_MAX_PUZZLES = 5
MOMENTUM_FULL_CONFIDENCE_SAMPLES = 5
MOMENTUM_MAX_RECENT = 5

PERSONA_PATTERN_MIN_ATTEMPTS = 5
PERSONA_PATTERN_MIN_ACCURACY = 0.75
PERSONA_MATH_MIN_ATTEMPTS = 3
PERSONA_MATH_MIN_TYPES = 2
PERSONA_MATH_WEAK_ACCURACY = 0.4


def compute_skill_momentum(
    patterns: Sequence[BehavioralPattern],
    fallback: float = 0.0,
) -> float:
    """Damped recent-vs-older accuracy trend.

    Args:
        patterns: Behavioral patterns, oldest first.
        fallback: Momentum to report when there are no patterns at all.

    Returns:
        Momentum in [-1, 1].
    """
    n = len(patterns)
    if n == 0:
        return max(-1.0, min(1.0, fallback))
    if n == 1:
        momentum = (patterns[0].accuracy_trend - 0.5) * 0.3
    elif n == 2:
        momentum = (patterns[1].accuracy_trend - patterns[0].accuracy_trend) * 0.6
    else:
        recent_count = min(math.ceil(n / 2), MOMENTUM_MAX_RECENT)
        recent = patterns[-recent_count:]
        older = patterns[:-recent_count]
        recent_avg = sum(p.accuracy_trend for p in recent) / len(recent)
        older_avg = sum(p.accuracy_trend for p in older) / len(older)
        # Small samples must not produce large swings
        momentum = (recent_avg - older_avg) * min(1.0, n / MOMENTUM_FULL_CONFIDENCE_SAMPLES)
    return max(-1.0, min(1.0, momentum))


def classify_base_state(profile: UserProfile, momentum: float) -> BaseState:
    """First matching rule wins."""
    accuracy = profile.overall_accuracy
    if profile.total_puzzles_solved <= NEW_USER_MAX_PUZZLES:
        return BaseState.NEW_USER
    if accuracy < 0.3 and momentum < -0.2:
        return BaseState.SEVERELY_STRUGGLING
    if accuracy < 0.5 and momentum < -0.1:
        return BaseState.STRUGGLING
    if momentum < -0.05:
        return BaseState.FALLING_BACK
    if accuracy > 0.9 and profile.preferred_difficulty > 0.8:
        return BaseState.EXPERT_DEMANDING
    if accuracy > 0.8 and momentum > 0.1:
        return BaseState.EXCELLING
    if momentum > 0.05 and accuracy >= 0.6:
        return BaseState.PROGRESSING
    return BaseState.STABLE


def is_fatigued(samples: Sequence[float], min_samples: int = 3) -> bool:
    """The last ``min_samples`` session performance samples strictly decrease."""
    if len(samples) < min_samples:
        return False
    tail = samples[-min_samples:]
    return all(later < earlier for earlier, later in zip(tail, tail[1:]))


def is_session_declining(samples: Sequence[float], threshold: float = 0.1) -> bool:
    """The later half of the session performs ``threshold`` worse than the earlier half."""
    if len(samples) < 4:
        return False
    half = len(samples) // 2
    earlier = samples[:half]
    later = samples[half:]
    earlier_avg = sum(earlier) / len(earlier)
    later_avg = sum(later) / len(later)
    return earlier_avg - later_avg >= threshold


def is_pattern_strong_math_weak(
    profile: UserProfile,
    pattern_like_types: Sequence[str] = ("pattern",),
    math_like_types: Sequence[str] = (
        "number-series",
        "number-analogy",
        "algebraic-reasoning",
        "number-grid",
    ),
) -> bool:
    """Heuristic sub-persona: strong on pattern puzzles, weak across math puzzles.

    Sparse histories can make this under- or over-fire; it only feeds a
    distribution boost, never a hard rule.
    """
    stats = profile.puzzle_type_stats
    pattern_strong = any(
        name in stats
        and stats[name].total_attempts >= PERSONA_PATTERN_MIN_ATTEMPTS
        and stats[name].accuracy > PERSONA_PATTERN_MIN_ACCURACY
        for name in pattern_like_types
    )
    if not pattern_strong:
        return False

    qualifying = [
        stats[name]
        for name in math_like_types
        if name in stats and stats[name].total_attempts >= PERSONA_MATH_MIN_ATTEMPTS
    ]
    if len(qualifying) < PERSONA_MATH_MIN_TYPES:
        return False

    weak = sum(1 for s in qualifying if s.accuracy < PERSONA_MATH_WEAK_ACCURACY)
    return weak * 2 >= len(qualifying)


class UserStateClassifier:
    """Maps a profile snapshot and session signals to a ``UserState``.

    Pure: identical inputs always give identical results, and nothing is
    retained between calls.

    Args:
        settings: Threshold configuration (defaults to the global settings).
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def detect_modifiers(self, session: SessionContext) -> frozenset[StateModifier]:
        s = self.settings
        modifiers: set[StateModifier] = set()
        if session.consecutive_failures >= s.confidence_crisis_failures:
            modifiers.add(StateModifier.CONFIDENCE_CRISIS)
        if session.engagement_level < s.disengaged_threshold:
            modifiers.add(StateModifier.DISENGAGED)
        if session.power_up_usage_ratio > s.power_dependency_threshold:
            modifiers.add(StateModifier.POWER_DEPENDENT)
        if is_fatigued(session.performance_samples, s.fatigue_min_samples):
            modifiers.add(StateModifier.FATIGUED)
        if is_session_declining(session.performance_samples, s.session_decline_threshold):
            modifiers.add(StateModifier.SESSION_DECLINE)
        return frozenset(modifiers)

    def classify(
        self,
        profile: UserProfile,
        session: SessionContext,
        patterns: Sequence[BehavioralPattern] = (),
    ) -> UserState:
        """Classify the learner for this request.

        Args:
            profile: Profile snapshot.
            session: Current session counters.
            patterns: Behavioral patterns, oldest first.

        Returns:
            Base state, modifier set and the signals behind them.
        """
        momentum = compute_skill_momentum(patterns, fallback=profile.skill_momentum)
        base = classify_base_state(profile, momentum)
        modifiers = self.detect_modifiers(session)
        persona = is_pattern_strong_math_weak(
            profile,
            pattern_like_types=self.settings.pattern_like_types,
            math_like_types=self.settings.math_like_types,
        )
        state = UserState(
            base=base,
            modifiers=modifiers,
            skill_momentum=momentum,
            pattern_strong_math_weak=persona,
        )
        logger.debug(
            "user_state_classified",
            state=state.describe(),
            momentum=round(momentum, 3),
            accuracy=profile.overall_accuracy,
            pattern_strong_math_weak=persona,
        )
        return state
