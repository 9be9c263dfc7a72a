"""Best-candidate selection and recommendation assembly."""

from collections.abc import Sequence

import structlog

from adaptive_puzzle_engine.models.pools import PoolDistribution
from adaptive_puzzle_engine.models.puzzle import (
    PredictedOutcomes,
    PuzzleRecommendation,
    RelaxationTier,
    RotationCursor,
    ScoredCandidate,
)
from adaptive_puzzle_engine.models.state import UserState

logger = structlog.get_logger()

# Final scores closer than this are treated as equal
SCORE_PRECISION = 9


def pick_best(scored: Sequence[ScoredCandidate], distribution: PoolDistribution) -> ScoredCandidate:
    """Argmax over final scores.

    Ties go to the candidate whose pool holds the larger distribution share,
    then to the earliest generated candidate.

    Raises:
        ValueError: No candidates.
    """
    if not scored:
        raise ValueError("No candidates to select from")
    ranked = sorted(
        enumerate(scored),
        key=lambda item: (
            -round(item[1].score, SCORE_PRECISION),
            -distribution.share(item[1].candidate.pool),
            item[1].candidate.order,
            item[0],
        ),
    )
    return ranked[0][1]


def build_reasoning(
    winner: ScoredCandidate,
    state: UserState,
    relaxation: RelaxationTier,
) -> str:
    """Human-readable explanation of why the winner was chosen."""
    top = ", ".join(
        f"{name}={value:.2f}" for name, value in winner.breakdown.top_components(2)
    )
    parts = [
        f"Selected {winner.candidate.dna.puzzle_type} from {winner.candidate.pool.value}",
        f"base state {state.base.value}",
        f"top components: {top}",
    ]
    modifiers = state.ordered_modifiers()
    if modifiers:
        parts.append("modifiers: " + ", ".join(m.value for m in modifiers))
    if winner.breakdown.bonuses:
        parts.append(
            "bonuses: "
            + ", ".join(f"{k}=+{v:.2f}" for k, v in winner.breakdown.bonuses.items())
        )
    if relaxation != RelaxationTier.NONE:
        parts.append(f"safety relaxed: {relaxation.value}")
    return "; ".join(parts)


class CandidateSelector:
    """Picks the winning candidate and wraps it as a recommendation."""

    def select(
        self,
        scored: Sequence[ScoredCandidate],
        distribution: PoolDistribution,
        state: UserState,
        relaxation: RelaxationTier = RelaxationTier.NONE,
        cursor: RotationCursor | None = None,
    ) -> PuzzleRecommendation:
        """Select the best candidate.

        Args:
            scored: Scored candidates in generation order.
            distribution: Distribution the candidates were generated for.
            state: Classified user state.
            relaxation: Safety relaxation tier reached during generation.
            cursor: Rotation cursor from the generation plan.

        Returns:
            The recommendation, carrying the cursor for the next request.
        """
        winner = pick_best(scored, distribution)
        dna = winner.candidate.dna
        cursor = cursor or RotationCursor()
        recommendation = PuzzleRecommendation(
            puzzle=dna,
            pool=winner.candidate.pool,
            selection_reasoning=build_reasoning(winner, state, relaxation),
            predicted_outcomes=PredictedOutcomes(
                success_probability=winner.breakdown.predicted_success,
                engagement_score=winner.breakdown.predicted_engagement,
            ),
            distribution=distribution,
            user_state=state,
            score=winner.score,
            relaxation=relaxation,
            next_cursor=cursor.model_copy(update={"last_type": dna.puzzle_type}),
        )
        logger.info(
            "puzzle_selected",
            puzzle_type=dna.puzzle_type,
            pool=winner.candidate.pool.value,
            score=round(winner.score, 3),
            candidates=len(scored),
            relaxation=relaxation.value,
        )
        return recommendation
