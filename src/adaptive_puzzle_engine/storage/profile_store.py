"""Profile store contract and an in-process implementation."""

from datetime import timedelta
from typing import Protocol, runtime_checkable

import structlog

from adaptive_puzzle_engine.config import Settings, get_settings
from adaptive_puzzle_engine.models.profile import UserProfile
from adaptive_puzzle_engine.models.session import BehavioralPattern, BehavioralWindow

logger = structlog.get_logger()


@runtime_checkable
class ProfileStore(Protocol):
    """Owner of learner profiles and behavioral history between requests."""

    def load(self, user_id: str) -> UserProfile: ...

    def append_behavioral_pattern(self, user_id: str, pattern: BehavioralPattern) -> None: ...

    def behavioral_patterns(self, user_id: str) -> list[BehavioralPattern]: ...


class InMemoryProfileStore:
    """Process-local store; contents are lost when the process exits.

    Args:
        settings: Behavioral window configuration.
        profiles: Initial profiles keyed by user id.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        profiles: dict[str, UserProfile] | None = None,
    ):
        self.settings = settings or get_settings()
        self._profiles: dict[str, UserProfile] = dict(profiles or {})
        self._windows: dict[str, BehavioralWindow] = {}

    def load(self, user_id: str) -> UserProfile:
        """Return the stored profile, or a conservative default for unknown users."""
        profile = self._profiles.get(user_id)
        if profile is None:
            logger.info("profile_not_found", user_id=user_id)
            return UserProfile.conservative_default(user_id)
        return profile

    def save(self, profile: UserProfile) -> None:
        self._profiles[profile.user_id] = profile

    def _window(self, user_id: str) -> BehavioralWindow:
        window = self._windows.get(user_id)
        if window is None:
            window = BehavioralWindow(
                max_size=self.settings.behavioral_window_size,
                max_age=timedelta(hours=self.settings.behavioral_max_age_hours),
            )
            self._windows[user_id] = window
        return window

    def append_behavioral_pattern(self, user_id: str, pattern: BehavioralPattern) -> None:
        self._window(user_id).append(pattern)

    def behavioral_patterns(self, user_id: str) -> list[BehavioralPattern]:
        window = self._windows.get(user_id)
        return window.snapshot() if window is not None else []
