"""User state: a base classification plus orthogonal modifiers."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class BaseState(StrEnum):
    """Mutually exclusive learning-trajectory classification."""

    NEW_USER = "new_user"
    SEVERELY_STRUGGLING = "severely_struggling"
    STRUGGLING = "struggling"
    FALLING_BACK = "falling_back"
    STABLE = "stable"
    PROGRESSING = "progressing"
    EXCELLING = "excelling"
    EXPERT_DEMANDING = "expert_demanding"

    @property
    def needs_support(self) -> bool:
        return self in (BaseState.SEVERELY_STRUGGLING, BaseState.STRUGGLING)


class StateModifier(StrEnum):
    """Independently triggered flags layered over a base state.

    Declaration order is the order in which pool-distribution deltas apply.
    """

    CONFIDENCE_CRISIS = "confidence_crisis"
    DISENGAGED = "disengaged"
    POWER_DEPENDENT = "power_dependent"
    FATIGUED = "fatigued"
    SESSION_DECLINE = "session_decline"


class UserState(BaseModel):
    """Classification result for one request; never persisted."""

    model_config = ConfigDict(frozen=True)

    base: BaseState
    modifiers: frozenset[StateModifier] = Field(default_factory=frozenset)
    skill_momentum: float = 0.0
    pattern_strong_math_weak: bool = False

    def has(self, modifier: StateModifier) -> bool:
        return modifier in self.modifiers

    def ordered_modifiers(self) -> list[StateModifier]:
        """Active modifiers in declaration order."""
        return [m for m in StateModifier if m in self.modifiers]

    def describe(self) -> str:
        if not self.modifiers:
            return self.base.value
        return f"{self.base.value}+{'+'.join(m.value for m in self.ordered_modifiers())}"
