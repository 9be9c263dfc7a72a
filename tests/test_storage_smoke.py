"""Smoke tests for the in-memory profile store."""

from adaptive_puzzle_engine.config import Settings
from adaptive_puzzle_engine.models.profile import UserProfile
from adaptive_puzzle_engine.models.session import BehavioralPattern
from adaptive_puzzle_engine.storage.profile_store import InMemoryProfileStore, ProfileStore


class TestInMemoryProfileStore:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryProfileStore(Settings()), ProfileStore)

    def test_unknown_user_gets_default(self):
        profile = InMemoryProfileStore(Settings()).load("new-kid")
        assert profile.user_id == "new-kid"
        assert profile.total_puzzles_solved == 0

    def test_save_and_load(self):
        store = InMemoryProfileStore(Settings())
        store.save(UserProfile(user_id="kid-4", total_puzzles_solved=12))
        assert store.load("kid-4").total_puzzles_solved == 12

    def test_patterns_are_bounded(self):
        store = InMemoryProfileStore(Settings(behavioral_window_size=3))
        for trend in (0.1, 0.2, 0.3, 0.4, 0.5):
            store.append_behavioral_pattern("kid-5", BehavioralPattern(accuracy_trend=trend))
        assert [p.accuracy_trend for p in store.behavioral_patterns("kid-5")] == [0.3, 0.4, 0.5]

    def test_patterns_are_per_user(self):
        store = InMemoryProfileStore(Settings())
        store.append_behavioral_pattern("kid-6", BehavioralPattern())
        assert store.behavioral_patterns("kid-7") == []
        assert len(store.behavioral_patterns("kid-6")) == 1
