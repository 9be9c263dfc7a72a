"""Tests for slot planning, producer calls and candidate generation."""

import random

import pytest
from conftest import FakeProducer

from adaptive_puzzle_engine.config import Settings, enabled_type_names
from adaptive_puzzle_engine.errors import ProducerExhaustedError
from adaptive_puzzle_engine.generation.candidates import CandidateGenerator
from adaptive_puzzle_engine.generation.planner import (
    build_plan,
    difficulty_cap_for,
    rank_pool_types,
    target_difficulty_for,
)
from adaptive_puzzle_engine.generation.producer import (
    PuzzleProducer,
    SyncProducerAdapter,
    produce_with_timeout,
)
from adaptive_puzzle_engine.models.pools import Pool, PoolDistribution
from adaptive_puzzle_engine.models.puzzle import (
    FallbackLevel,
    PuzzleDNA,
    RelaxationTier,
    RotationCursor,
)
from adaptive_puzzle_engine.models.state import BaseState, UserState

NEW_USER = UserState(base=BaseState.NEW_USER)
STABLE = UserState(base=BaseState.STABLE)
NEW_USER_DIST = PoolDistribution.from_slots([8, 2, 0, 0, 0])
STABLE_DIST = PoolDistribution.from_slots([5, 4, 1, 0, 0])
STRUGGLING = UserState(base=BaseState.STRUGGLING)
STRUGGLING_DIST = PoolDistribution.from_slots([6, 3, 0, 1, 0])


class TestPlanner:
    def test_difficulty_caps(self, settings):
        assert difficulty_cap_for(NEW_USER, settings) == 0.4
        assert difficulty_cap_for(UserState(base=BaseState.STRUGGLING), settings) == 0.6
        assert difficulty_cap_for(UserState(base=BaseState.SEVERELY_STRUGGLING), settings) == 0.6
        assert difficulty_cap_for(STABLE, settings) is None

    def test_global_cap_applies_to_every_state(self):
        settings = Settings(global_max_difficulty=0.5)
        assert difficulty_cap_for(STABLE, settings) == 0.5
        assert difficulty_cap_for(UserState(base=BaseState.EXCELLING), settings) == 0.5
        assert difficulty_cap_for(NEW_USER, settings) == 0.4
        assert difficulty_cap_for(STRUGGLING, Settings(global_max_difficulty=0.3)) == 0.3

    def test_global_cap_limits_stable_targets(self, stable_profile, catalog):
        plan = build_plan(
            STABLE_DIST,
            STABLE,
            stable_profile.model_copy(update={"current_skill_level": 0.9}),
            enabled_type_names(catalog),
            catalog,
            Settings(global_max_difficulty=0.5),
            RotationCursor(),
            random.Random(0),
        )
        assert plan.difficulty_cap == 0.5
        assert plan.prefer_easy is False
        assert all(slot.target_difficulty <= 0.5 for slot in plan.slots)

    def test_target_difficulty(self):
        assert target_difficulty_for(Pool.CONFIDENCE_BUILDERS, 0.5, None) == pytest.approx(0.3)
        assert target_difficulty_for(Pool.PROGRESSIVE_CHALLENGE, 0.9, None) == pytest.approx(0.95)
        assert target_difficulty_for(Pool.PROGRESSIVE_CHALLENGE, 0.5, 0.4) == pytest.approx(0.4)
        assert target_difficulty_for(Pool.CONFIDENCE_BUILDERS, 0.1, None) == pytest.approx(0.05)

    def test_confidence_builders_prefer_strong_types(self, stable_profile, catalog):
        enabled = enabled_type_names(catalog)
        ranked = rank_pool_types(Pool.CONFIDENCE_BUILDERS, stable_profile, enabled, catalog)
        assert ranked == ["pattern", "number-series"]

    def test_confidence_builders_without_history(self, new_user_profile, catalog):
        enabled = enabled_type_names(catalog)
        ranked = rank_pool_types(Pool.CONFIDENCE_BUILDERS, new_user_profile, enabled, catalog)
        assert ranked == ["pattern", "number-analogy", "analogy"]

    def test_skill_development_targets_weak_types(self, stable_profile, catalog):
        enabled = enabled_type_names(catalog)
        ranked = rank_pool_types(Pool.SKILL_DEVELOPMENT, stable_profile, enabled, catalog)
        assert ranked == ["number-series"]

    def test_exploratory_prefers_unattempted(self, stable_profile, catalog):
        enabled = enabled_type_names(catalog)
        ranked = rank_pool_types(Pool.EXPLORATORY_NEW, stable_profile, enabled, catalog)
        assert "pattern" not in ranked
        assert "number-series" not in ranked
        assert "serial-reasoning" in ranked

    def test_plan_is_reproducible(self, settings, stable_profile, catalog):
        enabled = enabled_type_names(catalog)
        plans = [
            build_plan(
                STABLE_DIST,
                STABLE,
                stable_profile,
                enabled,
                catalog,
                settings,
                RotationCursor(),
                random.Random(7),
            )
            for _ in range(2)
        ]
        assert plans[0] == plans[1]
        assert [slot.order for slot in plans[0].slots] == list(range(10))
        assert plans[0].next_cursor.position == 1

    def test_cursor_rotates_primary_type(self, settings, new_user_profile, catalog):
        enabled = enabled_type_names(catalog)

        def first_primary(position):
            plan = build_plan(
                NEW_USER_DIST,
                NEW_USER,
                new_user_profile,
                enabled,
                catalog,
                settings,
                RotationCursor(position=position),
                random.Random(1),
            )
            return plan.slots[0].primary_type

        assert first_primary(0) == "pattern"
        assert first_primary(1) == "number-analogy"

    def test_progressive_challenge_skips_zero_weight_types(self, settings, stable_profile, catalog):
        plan = build_plan(
            PoolDistribution.from_slots([0, 0, 10, 0, 0]),
            STABLE,
            stable_profile,
            ["pattern", "algebraic-reasoning"],
            catalog,
            settings,
            RotationCursor(),
            random.Random(3),
        )
        assert {slot.primary_type for slot in plan.slots} == {"pattern"}

    def test_new_user_targets_respect_cap(self, settings, new_user_profile, catalog):
        plan = build_plan(
            NEW_USER_DIST,
            NEW_USER,
            new_user_profile.model_copy(update={"current_skill_level": 0.9}),
            enabled_type_names(catalog),
            catalog,
            settings,
            RotationCursor(),
            random.Random(0),
        )
        assert plan.prefer_easy is True
        assert all(slot.target_difficulty <= 0.4 for slot in plan.slots)


class TestProducerCalls:
    async def test_fake_producer_satisfies_protocol(self):
        assert isinstance(FakeProducer(), PuzzleProducer)

    async def test_timeout_returns_none(self):
        producer = FakeProducer(slow_types=("pattern",), delay=1.0)
        result = await produce_with_timeout(producer, "pattern", 0.3, [], timeout=0.05)
        assert result is None

    async def test_producer_error_returns_none(self):
        producer = FakeProducer(failing_types=("pattern",))
        result = await produce_with_timeout(producer, "pattern", 0.3, [], timeout=1.0)
        assert result is None

    async def test_sync_adapter(self):
        def build(puzzle_type, target_difficulty, recent_patterns):
            return PuzzleDNA(puzzle_type=puzzle_type, discovered_difficulty=target_difficulty)

        adapter = SyncProducerAdapter(build)
        dna = await adapter.produce("analogy", 0.25, None)
        assert dna.puzzle_type == "analogy"
        assert dna.discovered_difficulty == 0.25


class TestCandidateGenerator:
    async def test_new_user_candidates_within_cap(self, settings, catalog, new_user_profile):
        generator = CandidateGenerator(FakeProducer(), settings, catalog)
        result = await generator.generate(
            NEW_USER_DIST,
            NEW_USER,
            new_user_profile,
            enabled_type_names(catalog),
            rng=random.Random(0),
        )
        assert result.relaxation == RelaxationTier.NONE
        assert len(result.candidates) == 10
        assert all(c.dna.discovered_difficulty <= 0.4 for c in result.candidates)
        assert [c.order for c in result.candidates] == list(range(10))

    async def test_hard_only_producer_drops_cap(self, settings, catalog, new_user_profile):
        generator = CandidateGenerator(FakeProducer(difficulty=0.8), settings, catalog)
        result = await generator.generate(
            NEW_USER_DIST, NEW_USER, new_user_profile, enabled_type_names(catalog)
        )
        assert result.relaxation == RelaxationTier.DIFFICULTY_CAP_DROPPED
        assert result.candidates

    async def test_missing_easy_variant_drops_subtype(self, settings, catalog, new_user_profile):
        generator = CandidateGenerator(FakeProducer(subtype="standard"), settings, catalog)
        result = await generator.generate(
            NEW_USER_DIST, NEW_USER, new_user_profile, enabled_type_names(catalog)
        )
        assert result.relaxation == RelaxationTier.EASY_SUBTYPE_DROPPED
        assert all(c.dna.discovered_difficulty <= 0.4 for c in result.candidates)

    async def test_no_cap_for_stable_users(self, settings, catalog, stable_profile):
        generator = CandidateGenerator(FakeProducer(subtype="standard", difficulty=0.9), settings, catalog)
        result = await generator.generate(
            STABLE_DIST, STABLE, stable_profile, enabled_type_names(catalog)
        )
        assert result.relaxation == RelaxationTier.NONE
        assert len(result.candidates) == 10

    async def test_global_cap_limits_stable_users(self, catalog, stable_profile):
        settings = Settings(producer_timeout_seconds=0.2, global_max_difficulty=0.5)
        generator = CandidateGenerator(FakeProducer(subtype="standard"), settings, catalog)
        result = await generator.generate(
            STABLE_DIST,
            STABLE,
            stable_profile.model_copy(update={"current_skill_level": 0.9}),
            enabled_type_names(catalog),
        )
        assert result.relaxation == RelaxationTier.NONE
        assert len(result.candidates) == 10
        assert all(c.dna.discovered_difficulty <= 0.5 for c in result.candidates)

    async def test_global_cap_rejects_hard_candidates(self, catalog, stable_profile):
        settings = Settings(producer_timeout_seconds=0.2, global_max_difficulty=0.5)
        generator = CandidateGenerator(FakeProducer(difficulty=0.8), settings, catalog)
        result = await generator.generate(
            STABLE_DIST, STABLE, stable_profile, enabled_type_names(catalog)
        )
        assert result.relaxation == RelaxationTier.DIFFICULTY_CAP_DROPPED
        assert result.candidates
        assert result.plan.prefer_easy is False

    async def test_struggling_candidates_within_cap(self, settings, catalog, stable_profile):
        generator = CandidateGenerator(FakeProducer(), settings, catalog)
        result = await generator.generate(
            STRUGGLING_DIST,
            STRUGGLING,
            stable_profile.model_copy(update={"current_skill_level": 0.9}),
            enabled_type_names(catalog),
            rng=random.Random(0),
        )
        assert result.relaxation == RelaxationTier.NONE
        assert len(result.candidates) == 10
        assert all(c.dna.discovered_difficulty <= 0.6 for c in result.candidates)
        assert result.plan.difficulty_cap == 0.6

    async def test_struggling_rejects_candidates_above_cap(self, settings, catalog, stable_profile):
        producer = FakeProducer(difficulty=0.7)
        generator = CandidateGenerator(producer, settings, catalog)
        result = await generator.generate(
            STRUGGLING_DIST,
            UserState(base=BaseState.SEVERELY_STRUGGLING),
            stable_profile,
            enabled_type_names(catalog),
        )
        # every slot walked its whole fallback chain before relaxing
        assert len(producer.calls) == 40
        assert result.relaxation == RelaxationTier.DIFFICULTY_CAP_DROPPED
        assert all(c.dna.discovered_difficulty == 0.7 for c in result.candidates)

    async def test_unavailable_type_falls_back(self, settings, catalog, new_user_profile):
        generator = CandidateGenerator(FakeProducer(unavailable=("pattern",)), settings, catalog)
        result = await generator.generate(
            NEW_USER_DIST, NEW_USER, new_user_profile, ["pattern", "analogy"]
        )
        assert {c.dna.puzzle_type for c in result.candidates} == {"analogy"}
        assert any(c.fallback_level == FallbackLevel.ANY_TYPE for c in result.candidates)

    async def test_slow_type_does_not_block_others(self, catalog, new_user_profile):
        settings = Settings(producer_timeout_seconds=0.05)
        producer = FakeProducer(slow_types=("pattern",), delay=1.0)
        generator = CandidateGenerator(producer, settings, catalog)
        result = await generator.generate(
            NEW_USER_DIST, NEW_USER, new_user_profile, ["pattern", "analogy"]
        )
        assert result.candidates
        assert all(c.dna.puzzle_type == "analogy" for c in result.candidates)

    async def test_non_whitelisted_types_are_dropped(self, settings, catalog, new_user_profile):
        producer = FakeProducer(substitute_type="transformation")
        generator = CandidateGenerator(producer, settings, catalog)
        with pytest.raises(ProducerExhaustedError):
            await generator.generate(
                NEW_USER_DIST, NEW_USER, new_user_profile, ["pattern", "analogy"]
            )

    async def test_exhaustion_lists_attempts(self, settings, catalog, new_user_profile):
        producer = FakeProducer(unavailable=("pattern", "analogy"))
        generator = CandidateGenerator(producer, settings, catalog)
        with pytest.raises(ProducerExhaustedError) as exc_info:
            await generator.generate(
                NEW_USER_DIST, NEW_USER, new_user_profile, ["pattern", "analogy"]
            )
        # two primary tries, one any-type, one random-type per slot
        assert len(exc_info.value.attempts) == 40
        assert len(producer.calls) == 40
        assert "exhausted" in str(exc_info.value)

    async def test_empty_whitelist(self, settings, catalog, new_user_profile):
        generator = CandidateGenerator(FakeProducer(), settings, catalog)
        with pytest.raises(ProducerExhaustedError):
            await generator.generate(NEW_USER_DIST, NEW_USER, new_user_profile, [])
