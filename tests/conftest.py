"""
Pytest configuration and fixtures.
"""
import pytest
from fastapi.testclient import TestClient

from recommender.api.dependencies import get_recommendation_service
from recommender.main import app
from recommender.models.schemas import UserPreference, VideoItem
from recommender.repositories.memory import (
    InMemoryCatalogStore,
    InMemoryUserDirectory,
    InMemoryWatchHistoryStore,
)
from recommender.services.feature_flags import ConfigBasedFeatureFlagService
from recommender.services.freshness import FreshnessManager
from recommender.services.recommendations import RecommendationService

NOW = 1_700_000_000.0
DAY = 86400


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = NOW) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog_store(clock):
    """Seeded catalog, timestamps relative to the fake clock."""
    return InMemoryCatalogStore(clock=clock)


@pytest.fixture
def history_store():
    return InMemoryWatchHistoryStore()


@pytest.fixture
def user_directory():
    return InMemoryUserDirectory()


@pytest.fixture
def feature_flags():
    return ConfigBasedFeatureFlagService(rollout_percentage=100.0)


@pytest.fixture
def freshness(catalog_store, history_store, user_directory, clock):
    return FreshnessManager(
        catalog=catalog_store,
        history=history_store,
        directory=user_directory,
        clock=clock,
    )


@pytest.fixture
def service(catalog_store, history_store, freshness, feature_flags):
    """Recommendation service wired to in-memory stores."""
    return RecommendationService(
        catalog=catalog_store,
        history=history_store,
        freshness=freshness,
        feature_flags=feature_flags,
    )


@pytest.fixture
def test_client(service):
    """
    TestClient fixture with dependency overrides.
    Uses in-memory stores and a fake clock for isolation.
    """
    app.dependency_overrides[get_recommendation_service] = lambda: service

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def sample_video():
    """Fixture for a standard catalog item."""
    return VideoItem(
        id="sample",
        title="Test Video",
        category="programming",
        tags=["python", "testing"],
        difficulty="intermediate",
        duration=900,
        view_count=500,
        created_at=NOW - 3 * DAY,
        uploader_id="i_ada",
        uploader_name="Ada Lovelace",
        stream_resolutions=["1080p"],
    )


@pytest.fixture
def sample_preference():
    """Fixture for a user with a python-heavy history."""
    return UserPreference(
        user_id="u_test",
        categories={"programming": 2},
        tags={"python": 2, "backend": 1},
        difficulties={"intermediate": 1, "beginner": 1},
        instructors={"Ada Lovelace": 2},
        avg_watch_time=800,
        completion_rate=1.0,
        preferred_duration=900,
        video_count=2,
        last_computed=NOW,
    )
