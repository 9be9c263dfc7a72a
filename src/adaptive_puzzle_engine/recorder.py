"""Auditable decision records and best-effort telemetry emission."""

import uuid
from datetime import datetime
from typing import Protocol, runtime_checkable

import structlog
from pydantic import BaseModel, Field

from adaptive_puzzle_engine.distribution.resolver import ResolvedDistribution
from adaptive_puzzle_engine.generation.candidates import GenerationResult
from adaptive_puzzle_engine.models.puzzle import (
    PuzzleRecommendation,
    RelaxationTier,
    ScoredCandidate,
    SlotAttempt,
)
from adaptive_puzzle_engine.models.state import UserState

logger = structlog.get_logger()


class AdaptiveContext(BaseModel):
    """Everything that went into one selection decision."""

    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    created_at: datetime = Field(default_factory=datetime.now)
    user_state: UserState
    distribution: ResolvedDistribution
    scored_candidates: list[ScoredCandidate]
    attempts: list[SlotAttempt]
    relaxation: RelaxationTier
    recommendation: PuzzleRecommendation

    def summary(self) -> dict:
        """Flat view for logs and analytics."""
        return {
            "request_id": self.request_id,
            "user_id": self.user_id,
            "state": self.user_state.describe(),
            "level": self.distribution.level,
            "distribution": list(self.distribution.final.as_slots()),
            "candidates": len(self.scored_candidates),
            "producer_calls": len(self.attempts),
            "relaxation": self.relaxation.value,
            "puzzle_type": self.recommendation.puzzle.puzzle_type,
            "pool": self.recommendation.pool.value,
            "score": round(self.recommendation.score, 4),
        }


@runtime_checkable
class TelemetrySink(Protocol):
    """Receives decision records; may be slow or fail without affecting selection."""

    def emit(self, context: AdaptiveContext) -> None: ...


class AdaptiveContextRecorder:
    """Assembles the decision record and forwards it to an optional sink.

    Args:
        sink: Telemetry sink, or None to only log.
    """

    def __init__(self, sink: TelemetrySink | None = None):
        self.sink = sink

    def build(
        self,
        user_id: str,
        state: UserState,
        distribution: ResolvedDistribution,
        scored: list[ScoredCandidate],
        generation: GenerationResult,
        recommendation: PuzzleRecommendation,
        request_id: str | None = None,
    ) -> AdaptiveContext:
        fields = {}
        if request_id is not None:
            fields["request_id"] = request_id
        return AdaptiveContext(
            user_id=user_id,
            user_state=state,
            distribution=distribution,
            scored_candidates=scored,
            attempts=generation.attempts,
            relaxation=generation.relaxation,
            recommendation=recommendation,
            **fields,
        )

    def record(self, context: AdaptiveContext) -> None:
        """Log the decision and hand it to the sink; sink errors are logged only."""
        logger.info("adaptive_context_recorded", **context.summary())
        if self.sink is None:
            return
        try:
            self.sink.emit(context)
        except Exception as e:
            logger.error(
                "telemetry_emit_failed",
                request_id=context.request_id,
                error=str(e),
            )
