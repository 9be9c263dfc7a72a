"""Engine error types.

Only total producer exhaustion is surfaced to callers; every other failure
in the pipeline is recovered from inside the stage that hit it.
"""


class PuzzleEngineError(RuntimeError):
    """Base class for errors raised by the selection engine."""


class ProducerExhaustedError(PuzzleEngineError):
    """No puzzle could be produced for any pool, even after relaxation.

    Args:
        attempts: ``(pool, puzzle_type, target_difficulty)`` combinations that
            were requested from the producer, in request order.
    """

    def __init__(self, attempts: list[tuple[str, str, float | None]]):
        self.attempts = attempts
        tried = ", ".join(
            f"{pool}:{puzzle_type}@{'any' if difficulty is None else f'{difficulty:.2f}'}"
            for pool, puzzle_type, difficulty in attempts
        )
        super().__init__(
            f"Puzzle producer exhausted after {len(attempts)} attempts [{tried or 'none'}]"
        )
