"""Pool distribution resolution: base table, level boost, modifiers, normalization."""

from collections.abc import Iterable

import structlog
from pydantic import BaseModel

from adaptive_puzzle_engine.config import Settings, get_settings
from adaptive_puzzle_engine.distribution.tables import (
    BASE_DISTRIBUTIONS,
    LEVEL_BOOST,
    MODIFIER_DELTAS,
    PERSONA_BOOST,
)
from adaptive_puzzle_engine.models.pools import POOL_ORDER, TOTAL_SLOTS, Pool, PoolDistribution
from adaptive_puzzle_engine.models.profile import UserProfile
from adaptive_puzzle_engine.models.state import BaseState, StateModifier, UserState

logger = structlog.get_logger()

_CB = POOL_ORDER.index(Pool.CONFIDENCE_BUILDERS)
_SD = POOL_ORDER.index(Pool.SKILL_DEVELOPMENT)
_PC = POOL_ORDER.index(Pool.PROGRESSIVE_CHALLENGE)


def base_slots(base: BaseState) -> list[int]:
    return list(BASE_DISTRIBUTIONS[base])


def apply_level_boost(slots: list[int], level: int, persona: bool, threshold: int = 15) -> list[int]:
    """Strength boost for users below ``threshold``.

    The sub-persona boost only applies on top of the level boost.
    """
    slots = list(slots)
    if level >= threshold:
        return slots
    slots[_CB] = min(LEVEL_BOOST["confidence_cap"], slots[_CB] + LEVEL_BOOST["confidence_boost"])
    slots[_PC] = max(0, slots[_PC] - LEVEL_BOOST["challenge_reduction"])
    if persona:
        slots[_CB] = min(
            PERSONA_BOOST["confidence_cap"], slots[_CB] + PERSONA_BOOST["confidence_boost"]
        )
        slots[_SD] = max(PERSONA_BOOST["skill_floor"], slots[_SD] - PERSONA_BOOST["skill_reduction"])
    return slots


def apply_modifiers(slots: list[int], modifiers: Iterable[StateModifier]) -> list[int]:
    """Apply modifier deltas in ``StateModifier`` declaration order."""
    slots = list(slots)
    active = set(modifiers)
    for modifier in StateModifier:
        if modifier not in active:
            continue
        for pool, delta in MODIFIER_DELTAS[modifier].items():
            index = POOL_ORDER.index(pool)
            slots[index] = delta.apply(slots[index])
    return slots


def normalize_slots(slots: Iterable[int], protected: Iterable[int] = ()) -> list[int]:
    """Force slots to non-negative integers summing to ``TOTAL_SLOTS``.

    Surplus is trimmed one unit at a time from the smallest non-zero slot
    (ties trim the later pool), skipping ``protected`` slot indexes while any
    other slot can still give; a deficit is added to the largest slot (ties
    favor the earlier pool).
    """
    values = [max(0, int(v)) for v in slots]
    keep = set(protected)
    total = sum(values)
    while total > TOTAL_SLOTS:
        nonzero = [i for i, v in enumerate(values) if v > 0]
        trimmable = [i for i in nonzero if i not in keep] or nonzero
        index = min(trimmable, key=lambda i: (values[i], -i))
        values[index] -= 1
        total -= 1
    while total < TOTAL_SLOTS:
        index = max(range(len(values)), key=lambda i: (values[i], -i))
        values[index] += 1
        total += 1
    return values


def raised_slots(before: list[int], after: list[int]) -> list[int]:
    """Indexes of slots that a modifier step increased."""
    return [i for i, (old, new) in enumerate(zip(before, after)) if new > old]


class ResolvedDistribution(BaseModel):
    """Distribution plus the intermediate values that produced it."""

    base: PoolDistribution
    final: PoolDistribution
    level: int
    boosted_slots: list[int]
    modified_slots: list[int]
    fell_back: bool = False


class PoolDistributionResolver:
    """Maps a classified user to a 10-slot pool distribution.

    Args:
        settings: Level configuration (defaults to the global settings).
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def resolve(
        self,
        user_state: UserState,
        modifiers: Iterable[StateModifier] | None,
        profile: UserProfile,
    ) -> PoolDistribution:
        return self.resolve_trace(user_state, modifiers, profile).final

    def resolve_trace(
        self,
        user_state: UserState,
        modifiers: Iterable[StateModifier] | None,
        profile: UserProfile,
    ) -> ResolvedDistribution:
        """Resolve the distribution, keeping each intermediate step.

        Falls back to the new-user base distribution if any step fails.
        """
        if modifiers is None:
            modifiers = user_state.modifiers
        level = profile.level(self.settings.points_per_level)
        try:
            base = base_slots(user_state.base)
            boosted = apply_level_boost(
                base,
                level,
                user_state.pattern_strong_math_weak,
                threshold=self.settings.strength_level_threshold,
            )
            modified = apply_modifiers(boosted, modifiers)
            final = PoolDistribution.from_slots(
                normalize_slots(modified, protected=raised_slots(boosted, modified))
            )
            resolved = ResolvedDistribution(
                base=PoolDistribution.from_slots(base),
                final=final,
                level=level,
                boosted_slots=boosted,
                modified_slots=modified,
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(
                "pool_distribution_fallback",
                state=str(user_state.base),
                error=str(e),
            )
            fallback = PoolDistribution.from_slots(BASE_DISTRIBUTIONS[BaseState.NEW_USER])
            return ResolvedDistribution(
                base=fallback,
                final=fallback,
                level=level,
                boosted_slots=list(fallback.as_slots()),
                modified_slots=list(fallback.as_slots()),
                fell_back=True,
            )

        logger.debug(
            "pool_distribution_resolved",
            state=user_state.describe(),
            level=level,
            base=list(resolved.base.as_slots()),
            modified=modified,
            final=list(final.as_slots()),
        )
        return resolved
