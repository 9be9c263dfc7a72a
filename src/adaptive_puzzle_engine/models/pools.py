"""Candidate-generation pools and the 10-slot distribution across them."""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

TOTAL_SLOTS = 10


class Pool(StrEnum):
    """Generation intents, in distribution schema order."""

    CONFIDENCE_BUILDERS = "confidence_builders"
    SKILL_DEVELOPMENT = "skill_development"
    PROGRESSIVE_CHALLENGE = "progressive_challenge"
    ENGAGEMENT_RECOVERY = "engagement_recovery"
    EXPLORATORY_NEW = "exploratory_new"


POOL_ORDER: tuple[Pool, ...] = tuple(Pool)


class PoolDistribution(BaseModel):
    """Non-negative integer slot counts summing to exactly ``TOTAL_SLOTS``."""

    model_config = ConfigDict(frozen=True)

    confidence_builders: int = Field(ge=0)
    skill_development: int = Field(ge=0)
    progressive_challenge: int = Field(ge=0)
    engagement_recovery: int = Field(ge=0)
    exploratory_new: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_total(self) -> "PoolDistribution":
        total = sum(self.as_slots())
        if total != TOTAL_SLOTS:
            raise ValueError(f"Pool distribution must sum to {TOTAL_SLOTS}, got {total}")
        return self

    @classmethod
    def from_slots(cls, slots: list[int] | tuple[int, ...]) -> "PoolDistribution":
        if len(slots) != len(POOL_ORDER):
            raise ValueError(f"Expected {len(POOL_ORDER)} slots, got {len(slots)}")
        return cls(**{pool.value: value for pool, value in zip(POOL_ORDER, slots)})

    def as_slots(self) -> tuple[int, ...]:
        return tuple(getattr(self, pool.value) for pool in POOL_ORDER)

    def __getitem__(self, pool: Pool) -> int:
        return getattr(self, Pool(pool).value)

    def share(self, pool: Pool) -> float:
        return self[pool] / TOTAL_SLOTS
