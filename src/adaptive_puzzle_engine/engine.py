"""Adaptive puzzle selection pipeline.

classify -> resolve distribution -> generate candidates -> score -> select.
Each request works on a snapshot of its inputs; the only state carried
between requests is the rotation cursor handed back in the recommendation.
"""

import uuid
from collections.abc import Sequence

import structlog
from pydantic import BaseModel, Field

from adaptive_puzzle_engine.classification.classifier import UserStateClassifier
from adaptive_puzzle_engine.config import (
    PuzzleTypeConfig,
    Settings,
    enabled_type_names,
    get_settings,
    load_puzzle_catalog,
)
from adaptive_puzzle_engine.distribution.resolver import PoolDistributionResolver
from adaptive_puzzle_engine.generation.candidates import CandidateGenerator
from adaptive_puzzle_engine.generation.producer import PuzzleProducer
from adaptive_puzzle_engine.models.profile import UserProfile
from adaptive_puzzle_engine.models.puzzle import PuzzleRecommendation, RotationCursor
from adaptive_puzzle_engine.models.session import BehavioralPattern, SessionContext
from adaptive_puzzle_engine.recorder import AdaptiveContextRecorder, TelemetrySink
from adaptive_puzzle_engine.scoring.scorer import CandidateScorer
from adaptive_puzzle_engine.scoring.selector import CandidateSelector
from adaptive_puzzle_engine.storage.profile_store import ProfileStore

logger = structlog.get_logger()


class SelectionRequest(BaseModel):
    """Inputs for one recommendation.

    ``profile=None`` selects the conservative default profile and
    ``enabled_types=None`` selects every enabled type in the catalog.
    """

    profile: UserProfile | None = None
    session: SessionContext = Field(default_factory=SessionContext)
    behavioral_patterns: list[BehavioralPattern] = Field(default_factory=list)
    enabled_types: list[str] | None = None
    recent_patterns: list[str] = Field(default_factory=list)
    cursor: RotationCursor = Field(default_factory=RotationCursor)


class AdaptivePuzzleEngine:
    """Chooses the next puzzle for a learner.

    Args:
        producer: Puzzle producer used for candidate generation.
        settings: Engine settings (defaults to the global settings).
        catalog: Puzzle type catalog (defaults to ``config/puzzle_types.yaml``).
        sink: Optional telemetry sink for decision records.
    """

    def __init__(
        self,
        producer: PuzzleProducer,
        settings: Settings | None = None,
        catalog: Sequence[PuzzleTypeConfig] | None = None,
        sink: TelemetrySink | None = None,
    ):
        self.settings = settings or get_settings()
        self.catalog = list(catalog) if catalog is not None else load_puzzle_catalog()
        self.classifier = UserStateClassifier(self.settings)
        self.resolver = PoolDistributionResolver(self.settings)
        self.generator = CandidateGenerator(producer, self.settings, self.catalog)
        self.selector = CandidateSelector()
        self.recorder = AdaptiveContextRecorder(sink)

    async def recommend(self, request: SelectionRequest) -> PuzzleRecommendation:
        """Run the full pipeline for one request.

        Raises:
            ProducerExhaustedError: No candidate could be produced for any pool.
        """
        request_id = str(uuid.uuid4())
        profile = request.profile or UserProfile.conservative_default()
        with structlog.contextvars.bound_contextvars(
            request_id=request_id, user_id=profile.user_id
        ):
            return await self._recommend(request, profile, request_id)

    async def _recommend(
        self,
        request: SelectionRequest,
        profile: UserProfile,
        request_id: str,
    ) -> PuzzleRecommendation:
        # Snapshot mutable inputs; the session layer may keep updating them
        session = request.session.model_copy(deep=True)
        patterns = list(request.behavioral_patterns)
        enabled = (
            list(request.enabled_types)
            if request.enabled_types is not None
            else enabled_type_names(self.catalog)
        )

        state = self.classifier.classify(profile, session, patterns)
        resolved = self.resolver.resolve_trace(state, state.modifiers, profile)
        generation = await self.generator.generate(
            resolved.final,
            state,
            profile,
            enabled,
            recent_patterns=request.recent_patterns,
            cursor=request.cursor,
            rng=request.cursor.rng(profile.user_id),
        )

        scorer = CandidateScorer(
            profile,
            state,
            recent_patterns=request.recent_patterns,
            last_type=request.cursor.last_type,
            strength_level_threshold=self.settings.strength_level_threshold,
            points_per_level=self.settings.points_per_level,
        )
        scored = scorer.score_all(generation.candidates, resolved.final)
        recommendation = self.selector.select(
            scored,
            resolved.final,
            state,
            relaxation=generation.relaxation,
            cursor=generation.plan.next_cursor,
        )

        context = self.recorder.build(
            profile.user_id,
            state,
            resolved,
            scored,
            generation,
            recommendation,
            request_id=request_id,
        )
        self.recorder.record(context)
        return recommendation

    async def recommend_for_user(
        self,
        user_id: str,
        store: ProfileStore,
        session: SessionContext | None = None,
        enabled_types: list[str] | None = None,
        recent_patterns: list[str] | None = None,
        cursor: RotationCursor | None = None,
    ) -> PuzzleRecommendation:
        """Load the learner from a store and recommend.

        A store that fails to load the profile or history degrades to the
        conservative default profile and an empty history.
        """
        try:
            profile = store.load(user_id)
        except Exception as e:
            logger.warning("profile_load_failed", user_id=user_id, error=str(e))
            profile = UserProfile.conservative_default(user_id)
        try:
            patterns = store.behavioral_patterns(user_id)
        except Exception as e:
            logger.warning("behavioral_patterns_load_failed", user_id=user_id, error=str(e))
            patterns = []

        request = SelectionRequest(
            profile=profile,
            session=session
            or SessionContext(
                outcomes_limit=self.settings.recent_outcomes_limit,
                samples_limit=self.settings.performance_samples_limit,
            ),
            behavioral_patterns=patterns,
            enabled_types=enabled_types,
            recent_patterns=recent_patterns or [],
            cursor=cursor or RotationCursor(),
        )
        return await self.recommend(request)
