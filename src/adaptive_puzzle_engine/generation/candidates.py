"""Candidate generation across pools with safety constraints and fallbacks."""

import asyncio
import random
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, Field

from adaptive_puzzle_engine.config import PuzzleTypeConfig, Settings, get_settings
from adaptive_puzzle_engine.errors import ProducerExhaustedError
from adaptive_puzzle_engine.generation.planner import GenerationPlan, SlotPlan, build_plan
from adaptive_puzzle_engine.generation.producer import PuzzleProducer, produce_with_timeout
from adaptive_puzzle_engine.models.pools import POOL_ORDER, PoolDistribution
from adaptive_puzzle_engine.models.profile import UserProfile
from adaptive_puzzle_engine.models.puzzle import (
    Candidate,
    FallbackLevel,
    PuzzleDNA,
    RelaxationTier,
    RotationCursor,
    SlotAttempt,
)
from adaptive_puzzle_engine.models.state import UserState

logger = structlog.get_logger()


class SlotResult(BaseModel):
    accepted: Candidate | None = None
    reserve: list[Candidate] = Field(default_factory=list)
    attempts: list[SlotAttempt] = Field(default_factory=list)


class GenerationResult(BaseModel):
    """Surviving candidates plus everything needed to audit how they were found."""

    candidates: list[Candidate]
    relaxation: RelaxationTier
    attempts: list[SlotAttempt]
    plan: GenerationPlan


class CandidateGenerator:
    """Requests candidates from the producer for every planned slot.

    Pools are generated concurrently; slots within a pool run in order.
    Every producer call is individually bounded by the configured timeout.

    Args:
        producer: Puzzle producer.
        settings: Safety and producer configuration.
        catalog: Puzzle type catalog.
    """

    def __init__(
        self,
        producer: PuzzleProducer,
        settings: Settings | None = None,
        catalog: Sequence[PuzzleTypeConfig] = (),
    ):
        self.producer = producer
        self.settings = settings or get_settings()
        self.catalog = list(catalog)

    def is_easy(self, dna: PuzzleDNA) -> bool:
        return self.settings.easy_subtype_marker.lower() in dna.puzzle_subtype.lower()

    def passes_constraints(
        self,
        dna: PuzzleDNA,
        cap: float | None,
        prefer_easy: bool,
    ) -> bool:
        if cap is not None and dna.discovered_difficulty > cap:
            return False
        if prefer_easy and not self.is_easy(dna):
            return False
        return True

    async def generate(
        self,
        distribution: PoolDistribution,
        state: UserState,
        profile: UserProfile,
        enabled_types: Sequence[str],
        recent_patterns: Sequence[str] = (),
        cursor: RotationCursor | None = None,
        rng: random.Random | None = None,
    ) -> GenerationResult:
        """Generate and filter candidates for one request.

        Args:
            distribution: Slots per pool.
            state: Classified user state.
            profile: Profile snapshot.
            enabled_types: Caller-supplied type whitelist.
            recent_patterns: Recently shown types, newest last.
            cursor: Caller-owned rotation cursor.
            rng: Random source for planning draws (defaults to the cursor's).

        Returns:
            Candidates that satisfy the (possibly relaxed) constraints.

        Raises:
            ProducerExhaustedError: Nothing could be produced at all.
        """
        cursor = cursor or RotationCursor()
        if rng is None:
            rng = cursor.rng(profile.user_id)
        enabled = list(dict.fromkeys(enabled_types))
        if not enabled:
            raise ProducerExhaustedError([])

        plan = build_plan(
            distribution, state, profile, enabled, self.catalog, self.settings, cursor, rng
        )
        whitelist = set(enabled)
        recent = list(recent_patterns)

        pool_results = await asyncio.gather(
            *(
                self._fill_pool(plan.for_pool(pool), plan, whitelist, recent)
                for pool in POOL_ORDER
            )
        )
        slot_results = sorted(
            (item for pool_slots in pool_results for item in pool_slots),
            key=lambda item: item[0].order,
        )

        accepted: list[Candidate] = []
        reserve: list[Candidate] = []
        attempts: list[SlotAttempt] = []
        for _, result in slot_results:
            if result.accepted is not None:
                accepted.append(result.accepted)
            reserve.extend(result.reserve)
            attempts.extend(result.attempts)

        candidates, relaxation = self._relax(accepted, reserve, plan)
        if not candidates:
            logger.error("producer_exhausted", attempts=len(attempts))
            raise ProducerExhaustedError(
                [(a.pool.value, a.puzzle_type, a.target_difficulty) for a in attempts]
            )

        if relaxation != RelaxationTier.NONE:
            logger.warning(
                "safety_constraints_relaxed",
                tier=relaxation.value,
                cap=plan.difficulty_cap,
                candidates=len(candidates),
            )
        logger.debug(
            "candidates_generated",
            requested=len(plan.slots),
            accepted=len(candidates),
            producer_calls=len(attempts),
        )
        return GenerationResult(
            candidates=candidates,
            relaxation=relaxation,
            attempts=attempts,
            plan=plan,
        )

    def _relax(
        self,
        accepted: list[Candidate],
        reserve: list[Candidate],
        plan: GenerationPlan,
    ) -> tuple[list[Candidate], RelaxationTier]:
        if accepted:
            return accepted, RelaxationTier.NONE
        within_cap = [
            c for c in reserve if self.passes_constraints(c.dna, plan.difficulty_cap, False)
        ]
        if within_cap:
            return within_cap, RelaxationTier.EASY_SUBTYPE_DROPPED
        if reserve:
            return reserve, RelaxationTier.DIFFICULTY_CAP_DROPPED
        return [], RelaxationTier.NONE

    async def _fill_pool(
        self,
        slots: list[SlotPlan],
        plan: GenerationPlan,
        whitelist: set[str],
        recent: list[str],
    ) -> list[tuple[SlotPlan, SlotResult]]:
        results = []
        for slot in slots:
            results.append((slot, await self._fill_slot(slot, plan, whitelist, recent)))
        return results

    def _request_chain(self, slot: SlotPlan) -> list[tuple[FallbackLevel, str, float | None]]:
        chain: list[tuple[FallbackLevel, str, float | None]] = [
            (FallbackLevel.PRIMARY, slot.primary_type, slot.target_difficulty)
        ] * self.settings.max_attempts_per_slot
        if slot.any_type is not None:
            chain.append((FallbackLevel.ANY_TYPE, slot.any_type, slot.target_difficulty))
        chain.append((FallbackLevel.RANDOM_TYPE, slot.random_type, None))
        return chain

    async def _fill_slot(
        self,
        slot: SlotPlan,
        plan: GenerationPlan,
        whitelist: set[str],
        recent: list[str],
    ) -> SlotResult:
        """Walk the slot's fallback chain until a candidate passes the constraints.

        Candidates that fail only the safety constraints are kept in reserve
        for relaxation; candidates of non-whitelisted types are dropped.
        """
        result = SlotResult()
        for level, puzzle_type, target in self._request_chain(slot):
            dna = await produce_with_timeout(
                self.producer,
                puzzle_type,
                target,
                recent,
                timeout=self.settings.producer_timeout_seconds,
            )
            result.attempts.append(
                SlotAttempt(
                    pool=slot.pool,
                    puzzle_type=puzzle_type,
                    target_difficulty=target,
                    produced=dna is not None,
                )
            )
            if dna is None:
                continue
            if dna.puzzle_type not in whitelist:
                logger.info(
                    "candidate_rejected_type",
                    pool=slot.pool.value,
                    puzzle_type=dna.puzzle_type,
                )
                continue

            candidate = Candidate(
                dna=dna,
                pool=slot.pool,
                order=slot.order,
                requested_type=puzzle_type,
                target_difficulty=target,
                fallback_level=level,
            )
            if self.passes_constraints(dna, plan.difficulty_cap, plan.prefer_easy):
                result.accepted = candidate
                return result
            result.reserve.append(candidate)

        if not result.reserve:
            logger.info("slot_skipped", pool=slot.pool.value, order=slot.order)
        return result
