"""Shared fixtures: settings, catalog and a scriptable puzzle producer."""

import asyncio

import pytest

from adaptive_puzzle_engine.config import DEFAULT_PUZZLE_CATALOG, Settings
from adaptive_puzzle_engine.models.profile import PuzzleTypeStats, UserProfile
from adaptive_puzzle_engine.models.puzzle import PuzzleDNA


class FakeProducer:
    """Returns a puzzle of the requested type at the requested difficulty.

    Args:
        difficulty: Fixed difficulty to report instead of the requested one.
        subtype: Subtype reported on every puzzle.
        unavailable: Types for which the producer returns None.
        slow_types: Types that sleep ``delay`` seconds before answering.
        failing_types: Types that raise instead of answering.
        substitute_type: Report this type regardless of the request.
    """

    def __init__(
        self,
        difficulty: float | None = None,
        subtype: str = "easy",
        unavailable: tuple[str, ...] = (),
        slow_types: tuple[str, ...] = (),
        failing_types: tuple[str, ...] = (),
        substitute_type: str | None = None,
        delay: float = 1.0,
        engagement: float = 0.6,
    ):
        self.difficulty = difficulty
        self.subtype = subtype
        self.unavailable = set(unavailable)
        self.slow_types = set(slow_types)
        self.failing_types = set(failing_types)
        self.substitute_type = substitute_type
        self.delay = delay
        self.engagement = engagement
        self.calls: list[tuple[str, float | None]] = []

    async def produce(self, puzzle_type, target_difficulty, recent_patterns):
        self.calls.append((puzzle_type, target_difficulty))
        if puzzle_type in self.failing_types:
            raise RuntimeError(f"generator for {puzzle_type} crashed")
        if puzzle_type in self.slow_types:
            await asyncio.sleep(self.delay)
        if puzzle_type in self.unavailable:
            return None
        if self.difficulty is not None:
            difficulty = self.difficulty
        elif target_difficulty is not None:
            difficulty = target_difficulty
        else:
            difficulty = 0.5
        return PuzzleDNA(
            puzzle_type=self.substitute_type or puzzle_type,
            puzzle_subtype=self.subtype,
            discovered_difficulty=difficulty,
            skill_targets=["pattern_recognition"],
            engagement_potential=self.engagement,
        )


@pytest.fixture
def settings():
    return Settings(producer_timeout_seconds=0.2)


@pytest.fixture
def catalog():
    return list(DEFAULT_PUZZLE_CATALOG)


@pytest.fixture
def producer():
    return FakeProducer()


@pytest.fixture
def new_user_profile():
    return UserProfile(user_id="kid-1", total_puzzles_solved=2, overall_accuracy=0.5)


@pytest.fixture
def stable_profile():
    """Level 7 learner: strong on pattern, weak on number series."""
    return UserProfile(
        user_id="kid-2",
        total_puzzles_solved=25,
        overall_accuracy=0.65,
        current_skill_level=0.5,
        skill_momentum=0.0,
        high_score=180,
        puzzle_type_stats={
            "pattern": PuzzleTypeStats(accuracy=0.85, total_attempts=15),
            "number-series": PuzzleTypeStats(accuracy=0.25, total_attempts=8),
            "algebraic": PuzzleTypeStats(accuracy=0.1, total_attempts=2),
        },
    )
