"""Declarative pool-distribution data.

Slot tuples follow ``POOL_ORDER``: confidence builders, skill development,
progressive challenge, engagement recovery, exploratory new.
"""

from typing import NamedTuple

from adaptive_puzzle_engine.models.pools import Pool
from adaptive_puzzle_engine.models.state import BaseState, StateModifier

BASE_DISTRIBUTIONS: dict[BaseState, tuple[int, int, int, int, int]] = {
    BaseState.NEW_USER: (7, 2, 1, 0, 0),
    BaseState.SEVERELY_STRUGGLING: (6, 2, 0, 0, 2),
    BaseState.STRUGGLING: (4, 3, 1, 0, 2),
    BaseState.FALLING_BACK: (5, 2, 1, 2, 0),
    BaseState.STABLE: (2, 4, 3, 0, 1),
    BaseState.PROGRESSING: (2, 3, 4, 0, 1),
    BaseState.EXCELLING: (1, 2, 4, 3, 0),
    BaseState.EXPERT_DEMANDING: (0, 1, 7, 2, 0),
}

# Pre-level-15 strength boost
LEVEL_BOOST = {
    "confidence_boost": 3,
    "confidence_cap": 8,
    "challenge_reduction": 2,
}

# Extra boost for the pattern-strong/math-weak sub-persona
PERSONA_BOOST = {
    "confidence_boost": 2,
    "confidence_cap": 9,
    "skill_reduction": 1,
    "skill_floor": 1,
}


class Delta(NamedTuple):
    """A slot adjustment: ``add`` units, floored at ``floor``."""

    add: int
    floor: int = 0

    def apply(self, value: int) -> int:
        return max(self.floor, value + self.add)


MODIFIER_DELTAS: dict[StateModifier, dict[Pool, Delta]] = {
    StateModifier.CONFIDENCE_CRISIS: {
        Pool.CONFIDENCE_BUILDERS: Delta(+2),
        Pool.PROGRESSIVE_CHALLENGE: Delta(-2),
    },
    StateModifier.DISENGAGED: {
        Pool.ENGAGEMENT_RECOVERY: Delta(+2),
        Pool.SKILL_DEVELOPMENT: Delta(-1),
    },
    StateModifier.POWER_DEPENDENT: {
        Pool.CONFIDENCE_BUILDERS: Delta(+1),
    },
    StateModifier.FATIGUED: {
        Pool.ENGAGEMENT_RECOVERY: Delta(+1),
        Pool.CONFIDENCE_BUILDERS: Delta(+1),
        Pool.PROGRESSIVE_CHALLENGE: Delta(-2),
    },
    StateModifier.SESSION_DECLINE: {
        Pool.ENGAGEMENT_RECOVERY: Delta(+1),
        Pool.SKILL_DEVELOPMENT: Delta(-1),
    },
}
