"""Puzzle producer contract and call helpers."""

import asyncio
from collections.abc import Callable
from typing import Protocol, runtime_checkable

import structlog

from adaptive_puzzle_engine.models.puzzle import PuzzleDNA

logger = structlog.get_logger()


@runtime_checkable
class PuzzleProducer(Protocol):
    """Builds one puzzle of a requested type, or returns None.

    Implementations must be safe to call repeatedly and must return None
    (not raise) for enabled types they cannot currently produce.
    """

    async def produce(
        self,
        puzzle_type: str,
        target_difficulty: float | None,
        recent_patterns: list[str] | None,
    ) -> PuzzleDNA | None: ...


SyncProduceFn = Callable[[str, float | None, list[str] | None], PuzzleDNA | None]


class SyncProducerAdapter:
    """Runs a blocking producer function in a worker thread.

    Args:
        produce_fn: Blocking ``(puzzle_type, target_difficulty, recent_patterns)``
            callable.
    """

    def __init__(self, produce_fn: SyncProduceFn):
        self._produce_fn = produce_fn

    async def produce(
        self,
        puzzle_type: str,
        target_difficulty: float | None,
        recent_patterns: list[str] | None,
    ) -> PuzzleDNA | None:
        return await asyncio.to_thread(
            self._produce_fn, puzzle_type, target_difficulty, recent_patterns
        )


async def produce_with_timeout(
    producer: PuzzleProducer,
    puzzle_type: str,
    target_difficulty: float | None,
    recent_patterns: list[str] | None,
    timeout: float,
) -> PuzzleDNA | None:
    """Call the producer once; a timeout or producer error counts as no puzzle.

    Args:
        producer: Puzzle producer.
        puzzle_type: Requested type name.
        target_difficulty: Requested difficulty in [0, 1], or None for any.
        recent_patterns: Recently shown types, newest last.
        timeout: Seconds to wait before giving up on this call.

    Returns:
        Produced descriptor, or None.
    """
    try:
        return await asyncio.wait_for(
            producer.produce(puzzle_type, target_difficulty, recent_patterns),
            timeout=timeout,
        )
    except TimeoutError:
        logger.warning("producer_timeout", puzzle_type=puzzle_type, timeout=timeout)
    except Exception as e:
        logger.error("producer_failed", puzzle_type=puzzle_type, error=str(e))
    return None
