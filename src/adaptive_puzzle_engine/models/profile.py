"""Learner profile snapshot consumed by the selection engine."""

from pydantic import BaseModel, ConfigDict, Field

POINTS_PER_LEVEL = 30


class PuzzleTypeStats(BaseModel):
    """Per-type performance history."""

    model_config = ConfigDict(frozen=True)

    accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    total_attempts: int = Field(default=0, ge=0)
    average_response_time_ms: float = Field(default=0.0, ge=0.0)
    average_engagement: float | None = Field(default=None, ge=0.0, le=1.0)


class CognitiveMetric(BaseModel):
    """A cognitive estimate paired with how much data backs it."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(default=0.5, ge=0.0, le=1.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @property
    def weighted(self) -> float:
        """Value pulled toward neutral (0.5) in proportion to missing confidence."""
        return self.value * self.confidence + 0.5 * (1.0 - self.confidence)


class CognitiveProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    processing_speed: CognitiveMetric = Field(default_factory=CognitiveMetric)
    working_memory_capacity: CognitiveMetric = Field(default_factory=CognitiveMetric)
    attention_control: CognitiveMetric = Field(default_factory=CognitiveMetric)
    error_recovery: CognitiveMetric = Field(default_factory=CognitiveMetric)


class UserProfile(BaseModel):
    """Immutable per-request snapshot of a learner's accumulated performance.

    The session/storage layer owns and updates profiles; the engine only reads
    the snapshot it was handed at request start.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = "anonymous"
    total_puzzles_solved: int = Field(default=0, ge=0)
    overall_accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    current_skill_level: float = Field(default=0.5, ge=0.0, le=1.0)
    skill_momentum: float = Field(default=0.0, ge=-1.0, le=1.0)
    learning_velocity: float = Field(default=0.0, ge=-1.0, le=1.0)
    preferred_difficulty: float = Field(default=0.5, ge=0.0, le=1.0)
    power_up_inventory: int = Field(default=0, ge=0)
    high_score: int = Field(default=0, ge=0)
    puzzle_type_stats: dict[str, PuzzleTypeStats] = Field(default_factory=dict)
    cognitive_profile: CognitiveProfile = Field(default_factory=CognitiveProfile)

    @classmethod
    def conservative_default(cls, user_id: str = "anonymous") -> "UserProfile":
        """Fallback profile for a missing or unreadable stored profile."""
        return cls(
            user_id=user_id,
            total_puzzles_solved=0,
            overall_accuracy=0.0,
            current_skill_level=0.5,
        )

    def level(self, points_per_level: int = POINTS_PER_LEVEL) -> int:
        """Game level derived from the high score (1-based)."""
        return self.high_score // points_per_level + 1

    def type_accuracy(self, puzzle_type: str, min_attempts: int = 3) -> float | None:
        """Accuracy for a type, or None when it has too few attempts to trust."""
        stats = self.puzzle_type_stats.get(puzzle_type)
        if stats is None or stats.total_attempts < min_attempts:
            return None
        return stats.accuracy

    def top_accuracy_type(self, min_attempts: int = 1) -> str | None:
        """The attempted type with the highest accuracy (ties: most attempts)."""
        attempted = [
            (name, stats)
            for name, stats in self.puzzle_type_stats.items()
            if stats.total_attempts >= min_attempts
        ]
        if not attempted:
            return None
        name, _ = max(attempted, key=lambda item: (item[1].accuracy, item[1].total_attempts))
        return name
