"""Session-scoped counters and the rolling behavioral pattern window."""

from collections import deque
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

RECENT_WINDOW = 5


class PuzzleOutcome(BaseModel):
    """Result of one puzzle within the current session."""

    model_config = ConfigDict(frozen=True)

    success: bool
    used_power_up: bool = False
    engagement_score: float = Field(default=0.7, ge=0.0, le=1.0)


class SessionContext(BaseModel):
    """Ephemeral per-session counters; discarded when the session ends."""

    session_id: str = "session"
    consecutive_failures: int = Field(default=0, ge=0)
    recent_outcomes: list[PuzzleOutcome] = Field(default_factory=list)
    engagement_level: float = Field(default=0.7, ge=0.0, le=1.0)
    performance_samples: list[float] = Field(default_factory=list)
    outcomes_limit: int = Field(default=10, ge=1)
    samples_limit: int = Field(default=50, ge=4)

    def record_outcome(
        self,
        success: bool,
        used_power_up: bool = False,
        engagement_score: float = 0.7,
    ) -> PuzzleOutcome:
        """Fold a completed puzzle into the session counters."""
        outcome = PuzzleOutcome(
            success=success,
            used_power_up=used_power_up,
            engagement_score=engagement_score,
        )
        self.recent_outcomes.append(outcome)
        if len(self.recent_outcomes) > self.outcomes_limit:
            self.recent_outcomes = self.recent_outcomes[-self.outcomes_limit:]

        self.consecutive_failures = 0 if success else self.consecutive_failures + 1
        self.engagement_level = self.engagement_level * 0.8 + engagement_score * 0.2
        self.performance_samples.append(self.recent_accuracy)
        if len(self.performance_samples) > self.samples_limit:
            self.performance_samples = self.performance_samples[-self.samples_limit:]
        return outcome

    @property
    def recent_success_count(self) -> int:
        """Successes among the last five outcomes."""
        return sum(1 for o in self.recent_outcomes[-RECENT_WINDOW:] if o.success)

    @property
    def recent_accuracy(self) -> float:
        window = self.recent_outcomes[-RECENT_WINDOW:]
        if not window:
            return 0.0
        return self.recent_success_count / len(window)

    @property
    def power_up_usage_ratio(self) -> float:
        if not self.recent_outcomes:
            return 0.0
        used = sum(1 for o in self.recent_outcomes if o.used_power_up)
        return used / len(self.recent_outcomes)


class BehavioralPattern(BaseModel):
    """Signals derived from one completed puzzle; never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    created_at: datetime = Field(default_factory=datetime.now)
    avg_time_to_first_selection_ms: float = Field(default=5000.0, ge=0.0)
    hesitation_tendency: float = Field(default=0.3, ge=0.0, le=1.0)
    powerup_dependency: float = Field(default=0.2, ge=0.0, le=1.0)
    accuracy_trend: float = Field(default=0.5, ge=0.0, le=1.0)
    engagement_score: float = Field(default=0.7, ge=0.0, le=1.0)


class BehavioralWindow:
    """Bounded, append-only window of behavioral patterns, oldest first.

    Patterns are evicted when the window exceeds ``max_size`` or when they are
    older than ``max_age`` relative to the newest appended pattern.

    Args:
        max_size: Maximum number of retained patterns.
        max_age: Maximum age of a retained pattern, or None for no age limit.
        patterns: Initial patterns, oldest first.
    """

    def __init__(
        self,
        max_size: int = 20,
        max_age: timedelta | None = None,
        patterns: Iterable[BehavioralPattern] = (),
    ):
        self.max_size = max_size
        self.max_age = max_age
        self._patterns: deque[BehavioralPattern] = deque(maxlen=max_size)
        for pattern in patterns:
            self.append(pattern)

    def append(self, pattern: BehavioralPattern) -> None:
        self._patterns.append(pattern)
        if self.max_age is not None:
            cutoff = pattern.created_at - self.max_age
            while self._patterns and self._patterns[0].created_at < cutoff:
                self._patterns.popleft()

    def snapshot(self) -> list[BehavioralPattern]:
        """Copy of the current window, oldest first."""
        return list(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    def __iter__(self) -> Iterator[BehavioralPattern]:
        return iter(self.snapshot())
