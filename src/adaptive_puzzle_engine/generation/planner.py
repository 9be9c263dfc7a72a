"""Slot planning: which type and difficulty each candidate slot requests.

All random draws happen here, before any producer call, so the plan (and
therefore the selection) is reproducible for a seeded ``random.Random``
regardless of how producer calls interleave.
"""

import random
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from adaptive_puzzle_engine.config import PuzzleTypeConfig, Settings
from adaptive_puzzle_engine.models.pools import POOL_ORDER, Pool, PoolDistribution
from adaptive_puzzle_engine.models.profile import UserProfile
from adaptive_puzzle_engine.models.puzzle import RotationCursor
from adaptive_puzzle_engine.models.state import BaseState, UserState

MIN_TARGET_DIFFICULTY = 0.05
MAX_TARGET_DIFFICULTY = 0.95
RELIABLE_ATTEMPTS = 3
WEAK_TYPE_ACCURACY = 0.6

# Target difficulty relative to current skill, per pool intent
POOL_DIFFICULTY_OFFSETS: dict[Pool, float] = {
    Pool.CONFIDENCE_BUILDERS: -0.2,
    Pool.SKILL_DEVELOPMENT: 0.0,
    Pool.PROGRESSIVE_CHALLENGE: 0.1,
    Pool.ENGAGEMENT_RECOVERY: -0.1,
    Pool.EXPLORATORY_NEW: 0.0,
}


class SlotPlan(BaseModel):
    """Producer requests for one candidate slot, in fallback order."""

    model_config = ConfigDict(frozen=True)

    pool: Pool
    order: int
    primary_type: str
    target_difficulty: float
    any_type: str | None
    random_type: str


class GenerationPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    slots: list[SlotPlan]
    difficulty_cap: float | None
    prefer_easy: bool
    next_cursor: RotationCursor

    def for_pool(self, pool: Pool) -> list[SlotPlan]:
        return [slot for slot in self.slots if slot.pool == pool]


def state_difficulty_cap(state: UserState, settings: Settings) -> float | None:
    """Hard difficulty ceiling for protected states, or None."""
    if state.base == BaseState.NEW_USER:
        return settings.new_user_max_difficulty
    if state.base.needs_support:
        return settings.struggling_max_difficulty
    return None


def difficulty_cap_for(state: UserState, settings: Settings) -> float | None:
    """Effective ceiling: the tighter of the state cap and the global cap."""
    caps = [
        cap
        for cap in (state_difficulty_cap(state, settings), settings.global_max_difficulty)
        if cap is not None
    ]
    return min(caps) if caps else None


def target_difficulty_for(pool: Pool, skill: float, cap: float | None) -> float:
    target = skill + POOL_DIFFICULTY_OFFSETS[pool]
    target = max(MIN_TARGET_DIFFICULTY, min(MAX_TARGET_DIFFICULTY, target))
    if cap is not None:
        target = min(target, cap)
    return round(target, 4)


def rank_pool_types(
    pool: Pool,
    profile: UserProfile,
    enabled: Sequence[str],
    catalog: Sequence[PuzzleTypeConfig],
) -> list[str]:
    """Enabled types ordered by how well they fit the pool's intent."""
    stats = profile.puzzle_type_stats
    attempted = [t for t in enabled if t in stats and stats[t].total_attempts > 0]

    if pool == Pool.CONFIDENCE_BUILDERS:
        if attempted:
            return sorted(
                attempted, key=lambda t: (-stats[t].accuracy, -stats[t].total_attempts)
            )
        friendly = {entry.name for entry in catalog if entry.beginner_friendly}
        beginner = [t for t in enabled if t in friendly]
        return beginner or list(enabled)

    if pool == Pool.SKILL_DEVELOPMENT:
        weak = [
            t
            for t in attempted
            if stats[t].total_attempts >= RELIABLE_ATTEMPTS
            and stats[t].accuracy < WEAK_TYPE_ACCURACY
        ]
        ranked = weak or attempted
        if ranked:
            return sorted(ranked, key=lambda t: stats[t].accuracy)
        return list(enabled)

    if pool == Pool.ENGAGEMENT_RECOVERY:
        engaging = [t for t in attempted if stats[t].average_engagement is not None]
        if engaging:
            return sorted(engaging, key=lambda t: -(stats[t].average_engagement or 0.0))
        if attempted:
            return sorted(attempted, key=lambda t: -stats[t].total_attempts)
        return list(enabled)

    if pool == Pool.EXPLORATORY_NEW:
        unattempted = [t for t in enabled if t not in attempted]
        rare = sorted(
            (t for t in attempted if stats[t].total_attempts < RELIABLE_ATTEMPTS),
            key=lambda t: stats[t].total_attempts,
        )
        return (unattempted + rare) or list(enabled)

    # Progressive challenge draws by weight; ranking is only a fallback order
    weights = _type_weights(enabled, catalog)
    return sorted(enabled, key=lambda t: -weights[t])


def _type_weights(enabled: Sequence[str], catalog: Sequence[PuzzleTypeConfig]) -> dict[str, float]:
    configured = {entry.name: entry.weight for entry in catalog}
    weights = {t: configured.get(t, 1.0) for t in enabled}
    if not any(weights.values()):
        return {t: 1.0 for t in enabled}
    return weights


def build_plan(
    distribution: PoolDistribution,
    state: UserState,
    profile: UserProfile,
    enabled: Sequence[str],
    catalog: Sequence[PuzzleTypeConfig],
    settings: Settings,
    cursor: RotationCursor,
    rng: random.Random,
) -> GenerationPlan:
    """Plan every slot of the distribution.

    Args:
        distribution: Slots per pool.
        state: Classified user state (decides the safety cap).
        profile: Profile snapshot.
        enabled: Whitelisted type names; must not be empty.
        catalog: Puzzle type catalog (weights, beginner-friendly flags).
        settings: Safety configuration.
        cursor: Caller-owned rotation cursor.
        rng: Random source for weighted and fallback draws.

    Returns:
        The full plan and the cursor to hand back to the caller.
    """
    cap = difficulty_cap_for(state, settings)
    weights = _type_weights(enabled, catalog)
    weighted_types = list(weights)
    weight_values = [weights[t] for t in weighted_types]

    slots: list[SlotPlan] = []
    order = 0
    for pool in POOL_ORDER:
        count = distribution[pool]
        if count == 0:
            continue
        ranked = rank_pool_types(pool, profile, enabled, catalog)
        target = target_difficulty_for(pool, profile.current_skill_level, cap)
        for slot in range(count):
            if pool == Pool.PROGRESSIVE_CHALLENGE:
                primary = rng.choices(weighted_types, weights=weight_values, k=1)[0]
            else:
                primary = ranked[(cursor.position + slot) % len(ranked)]
            alternatives = [t for t in enabled if t != primary]
            slots.append(
                SlotPlan(
                    pool=pool,
                    order=order,
                    primary_type=primary,
                    target_difficulty=target,
                    any_type=rng.choice(alternatives) if alternatives else None,
                    random_type=rng.choice(list(enabled)),
                )
            )
            order += 1

    return GenerationPlan(
        slots=slots,
        difficulty_cap=cap,
        prefer_easy=state_difficulty_cap(state, settings) is not None,
        next_cursor=cursor.model_copy(update={"position": cursor.position + 1}),
    )
