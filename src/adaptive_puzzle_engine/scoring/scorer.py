"""Multi-criteria candidate scoring."""

from collections.abc import Callable, Sequence

import structlog

from adaptive_puzzle_engine.models.pools import PoolDistribution
from adaptive_puzzle_engine.models.profile import CognitiveProfile, UserProfile
from adaptive_puzzle_engine.models.puzzle import Candidate, PuzzleDNA, ScoreBreakdown, ScoredCandidate
from adaptive_puzzle_engine.models.state import BaseState, StateModifier, UserState

logger = structlog.get_logger()

NEUTRAL = 0.5
TYPE_HISTORY_MIN_ATTEMPTS = 3
STRENGTH_LEVEL_THRESHOLD = 15
STRENGTH_BONUS = 0.1
ENGAGEMENT_BONUS = 0.1
CONFIDENCE_BONUS = 0.1

# Skill target -> cognitive profile dimension
SKILL_COGNITIVE_DIMENSIONS: dict[str, str] = {
    "processing_speed": "processing_speed",
    "working_memory": "working_memory_capacity",
    "attention_control": "attention_control",
    "error_recovery": "error_recovery",
    "pattern_recognition": "attention_control",
    "spatial_visualization": "working_memory_capacity",
}

# Difficulty stretch above current skill that best serves growth, per base state
STRATEGIC_STRETCH: dict[BaseState, float] = {
    BaseState.NEW_USER: -0.1,
    BaseState.SEVERELY_STRUGGLING: -0.15,
    BaseState.STRUGGLING: -0.1,
    BaseState.FALLING_BACK: -0.05,
    BaseState.STABLE: 0.05,
    BaseState.PROGRESSING: 0.1,
    BaseState.EXCELLING: 0.15,
    BaseState.EXPERT_DEMANDING: 0.2,
}


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def skill_match(skill_targets: Sequence[str], cognitive: CognitiveProfile) -> float:
    """Confidence-weighted fit between a puzzle's skill targets and the learner.

    Unmapped targets and an empty target list count as neutral.
    """
    if not skill_targets:
        return NEUTRAL
    values = []
    for target in skill_targets:
        dimension = SKILL_COGNITIVE_DIMENSIONS.get(target)
        if dimension is None:
            values.append(NEUTRAL)
        else:
            values.append(getattr(cognitive, dimension).weighted)
    return sum(values) / len(values)


def predict_success(
    dna: PuzzleDNA,
    profile: UserProfile,
    match: float | None = None,
) -> float:
    """Estimated probability the learner solves the puzzle.

    Args:
        dna: Candidate descriptor.
        profile: Profile snapshot.
        match: Precomputed skill match; computed from the profile when None.

    Returns:
        Probability in [0, 1].
    """
    if match is None:
        match = skill_match(dna.skill_targets, profile.cognitive_profile)
    closeness = 1.0 - abs(dna.discovered_difficulty - profile.current_skill_level)
    history = profile.type_accuracy(dna.puzzle_type, TYPE_HISTORY_MIN_ATTEMPTS)
    return clamp01(
        0.5
        + 0.4 * clamp01(closeness)
        + 0.3 * clamp01(match)
        + (0.2 * history if history is not None else 0.0)
        + 0.1 * dna.engagement_potential
    )


def predict_engagement(dna: PuzzleDNA, profile: UserProfile) -> float:
    preference_fit = 1.0 - abs(dna.discovered_difficulty - profile.preferred_difficulty)
    return clamp01(0.6 * dna.engagement_potential + 0.4 * preference_fit)


def strategic_value(dna: PuzzleDNA, profile: UserProfile, state: UserState) -> float:
    """How well the candidate serves growth: stretch fit plus weak-type focus."""
    stretch_target = profile.current_skill_level + STRATEGIC_STRETCH[state.base]
    growth_fit = clamp01(1.0 - abs(dna.discovered_difficulty - stretch_target))
    history = profile.type_accuracy(dna.puzzle_type, TYPE_HISTORY_MIN_ATTEMPTS)
    weakness_focus = NEUTRAL if history is None else 1.0 - history
    return clamp01(0.5 * growth_fit + 0.5 * weakness_focus)


def variety_bonus(dna: PuzzleDNA, recent_patterns: Sequence[str], last_type: str | None) -> float:
    if last_type is not None and dna.puzzle_type == last_type:
        return 0.0
    if dna.puzzle_type in recent_patterns:
        return 0.5
    return 1.0


class CandidateScorer:
    """Scores candidates for one learner.

    Args:
        profile: Profile snapshot.
        state: Classified user state.
        recent_patterns: Recently shown types, newest last.
        last_type: Type served on the previous request, from the rotation cursor.
        strength_level_threshold: Level below which the strength bonus applies.
        points_per_level: High-score points per game level.
    """

    def __init__(
        self,
        profile: UserProfile,
        state: UserState,
        recent_patterns: Sequence[str] = (),
        last_type: str | None = None,
        strength_level_threshold: int = STRENGTH_LEVEL_THRESHOLD,
        points_per_level: int = 30,
    ):
        self.profile = profile
        self.state = state
        self.recent_patterns = list(recent_patterns)
        self.last_type = last_type
        self.strength_level_threshold = strength_level_threshold
        self.level = profile.level(points_per_level)
        self.top_type = profile.top_accuracy_type()

    def _safe(self, name: str, dna: PuzzleDNA, fn: Callable[[], float]) -> float:
        """Evaluate one score term, substituting neutral on failure."""
        try:
            return clamp01(fn())
        except (ArithmeticError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(
                "score_term_failed",
                term=name,
                puzzle_type=dna.puzzle_type,
                error=str(e),
            )
            return NEUTRAL

    def breakdown(self, dna: PuzzleDNA) -> ScoreBreakdown:
        match = self._safe(
            "skill_match",
            dna,
            lambda: skill_match(dna.skill_targets, self.profile.cognitive_profile),
        )
        result = ScoreBreakdown(
            predicted_success=self._safe(
                "predicted_success", dna, lambda: predict_success(dna, self.profile, match)
            ),
            predicted_engagement=self._safe(
                "predicted_engagement", dna, lambda: predict_engagement(dna, self.profile)
            ),
            strategic_value=self._safe(
                "strategic_value", dna, lambda: strategic_value(dna, self.profile, self.state)
            ),
            variety_bonus=self._safe(
                "variety_bonus",
                dna,
                lambda: variety_bonus(dna, self.recent_patterns, self.last_type),
            ),
        )
        result.bonuses.update(self.bonuses(dna))
        return result

    def bonuses(self, dna: PuzzleDNA) -> dict[str, float]:
        """User-specific additive bonuses applied after the weighted score."""
        applied: dict[str, float] = {}
        if (
            self.level < self.strength_level_threshold
            and self.top_type is not None
            and dna.puzzle_type == self.top_type
        ):
            applied["strength"] = STRENGTH_BONUS
        if self.state.has(StateModifier.DISENGAGED):
            applied["engagement"] = ENGAGEMENT_BONUS * dna.engagement_potential
        if self.state.base.needs_support:
            applied["confidence"] = CONFIDENCE_BONUS * (1.0 - dna.discovered_difficulty)
        return applied

    def score(self, candidate: Candidate) -> ScoredCandidate:
        return ScoredCandidate(candidate=candidate, breakdown=self.breakdown(candidate.dna))

    def score_all(
        self,
        candidates: Sequence[Candidate],
        distribution: PoolDistribution | None = None,
    ) -> list[ScoredCandidate]:
        scored = [self.score(c) for c in candidates]
        logger.debug(
            "candidates_scored",
            count=len(scored),
            best=max((round(s.score, 3) for s in scored), default=None),
            distribution=list(distribution.as_slots()) if distribution else None,
        )
        return scored
