"""Candidate descriptors, score trails and the engine's recommendation."""

import random
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from adaptive_puzzle_engine.models.pools import Pool, PoolDistribution
from adaptive_puzzle_engine.models.state import UserState


class PuzzleDNA(BaseModel):
    """Structured descriptor of a produced puzzle, used only for scoring."""

    model_config = ConfigDict(frozen=True)

    puzzle_type: str
    puzzle_subtype: str = "standard"
    discovered_difficulty: float = Field(ge=0.0, le=1.0)
    skill_targets: list[str] = Field(default_factory=list)
    engagement_potential: float = Field(default=0.5, ge=0.0, le=1.0)
    puzzle_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class RotationCursor(BaseModel):
    """Caller-owned rotation and random-draw state carried between requests.

    The same cursor always yields the same draws; ``seed`` is chosen by the
    caller (e.g. once per learner session).
    """

    model_config = ConfigDict(frozen=True)

    position: int = Field(default=0, ge=0)
    last_type: str | None = None
    seed: int = 0

    def rng(self, salt: str = "") -> random.Random:
        """Random source for the request this cursor starts."""
        return random.Random(f"{self.seed}:{self.position}:{salt}")


class FallbackLevel(StrEnum):
    """Which request in a slot's fallback chain produced the candidate."""

    PRIMARY = "primary"
    ANY_TYPE = "any_type"
    RANDOM_TYPE = "random_type"


class RelaxationTier(StrEnum):
    """How far safety constraints were relaxed to find a candidate."""

    NONE = "none"
    EASY_SUBTYPE_DROPPED = "easy_subtype_dropped"
    DIFFICULTY_CAP_DROPPED = "difficulty_cap_dropped"


class SlotAttempt(BaseModel):
    """One producer request, kept for diagnostics."""

    model_config = ConfigDict(frozen=True)

    pool: Pool
    puzzle_type: str
    target_difficulty: float | None
    produced: bool


class Candidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    dna: PuzzleDNA
    pool: Pool
    order: int
    requested_type: str
    target_difficulty: float | None
    fallback_level: FallbackLevel = FallbackLevel.PRIMARY


# Weights for each score component
SCORE_WEIGHTS: dict[str, float] = {
    "predicted_success": 0.4,
    "predicted_engagement": 0.3,
    "strategic_value": 0.2,
    "variety_bonus": 0.1,
}


class ScoreBreakdown(BaseModel):
    """Component scores (0-1 each) plus post-score bonuses."""

    predicted_success: float = 0.5
    predicted_engagement: float = 0.5
    strategic_value: float = 0.5
    variety_bonus: float = 0.5
    bonuses: dict[str, float] = Field(default_factory=dict)

    def weighted_components(self) -> dict[str, float]:
        scores = self.model_dump()
        return {key: scores[key] * weight for key, weight in SCORE_WEIGHTS.items()}

    @property
    def base_score(self) -> float:
        return sum(self.weighted_components().values())

    @property
    def final_score(self) -> float:
        return self.base_score + sum(self.bonuses.values())

    def top_components(self, count: int = 2) -> list[tuple[str, float]]:
        """Highest weighted contributions (ties keep weight order)."""
        ranked = sorted(self.weighted_components().items(), key=lambda item: -item[1])
        return ranked[:count]


class ScoredCandidate(BaseModel):
    candidate: Candidate
    breakdown: ScoreBreakdown

    @property
    def score(self) -> float:
        return self.breakdown.final_score


class PredictedOutcomes(BaseModel):
    success_probability: float = Field(ge=0.0, le=1.0)
    engagement_score: float = Field(ge=0.0, le=1.0)


class PuzzleRecommendation(BaseModel):
    """The engine's output for one request."""

    puzzle: PuzzleDNA
    pool: Pool
    selection_reasoning: str
    predicted_outcomes: PredictedOutcomes
    distribution: PoolDistribution
    user_state: UserState
    score: float
    relaxation: RelaxationTier = RelaxationTier.NONE
    next_cursor: RotationCursor = Field(default_factory=RotationCursor)
