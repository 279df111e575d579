"""
Dependency injection container.
Creates and wires all application components.
Uses FastAPI's dependency injection system.
"""
from functools import lru_cache

from recommender.config import get_settings
from recommender.core.circuit_breaker import CircuitBreaker
from recommender.repositories.memory import (
    InMemoryCatalogStore,
    InMemoryUserDirectory,
    InMemoryWatchHistoryStore,
)
from recommender.services.feature_flags import ConfigBasedFeatureFlagService
from recommender.services.features import FeatureExtractor, build_engagement_scorer
from recommender.services.freshness import FreshnessManager
from recommender.services.recommendations import RecommendationService
from recommender.services.strategies import default_strategies


# =============================================================================
# Singleton Instances (Application Lifetime)
# =============================================================================


@lru_cache()
def get_catalog_store() -> InMemoryCatalogStore:
    """Get singleton catalog store."""
    return InMemoryCatalogStore()


@lru_cache()
def get_watch_history_store() -> InMemoryWatchHistoryStore:
    """Get singleton watch history store."""
    return InMemoryWatchHistoryStore()


@lru_cache()
def get_user_directory() -> InMemoryUserDirectory:
    """Get singleton user directory."""
    return InMemoryUserDirectory()


@lru_cache()
def get_feature_flag_service() -> ConfigBasedFeatureFlagService:
    """Get singleton feature flag service (rollout read from settings)."""
    return ConfigBasedFeatureFlagService()


@lru_cache()
def get_freshness_manager() -> FreshnessManager:
    """Get singleton cache owner; its caches live for the application lifetime."""
    settings = get_settings()
    return FreshnessManager(
        catalog=get_catalog_store(),
        history=get_watch_history_store(),
        directory=get_user_directory(),
        extractor=FeatureExtractor(
            build_engagement_scorer(settings.ENGAGEMENT_SCORER, settings.DEFAULT_ENGAGEMENT_SCORE)
        ),
        feature_ttl_sec=settings.FEATURE_CACHE_TTL_SEC,
        preference_ttl_sec=settings.PREFERENCE_CACHE_TTL_SEC,
    )


@lru_cache()
def get_recommendation_service() -> RecommendationService:
    """
    Get recommendation service with all dependencies wired.
    This is the main entry point for the recommendation endpoints.
    """
    settings = get_settings()
    strategies = default_strategies(
        trending_window_days=settings.TRENDING_WINDOW_DAYS,
        collaborative_neighbors=settings.COLLABORATIVE_NEIGHBORS,
        similar_users_candidate_cap=settings.SIMILAR_USERS_CANDIDATE_CAP,
    )
    breakers = {
        strategy.name: CircuitBreaker(
            name=f"strategy.{strategy.name}",
            failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
            recovery_timeout_sec=settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SEC,
        )
        for strategy in strategies
    }
    return RecommendationService(
        catalog=get_catalog_store(),
        history=get_watch_history_store(),
        freshness=get_freshness_manager(),
        feature_flags=get_feature_flag_service(),
        strategies=strategies,
        breakers=breakers,
        strategy_timeout_sec=settings.STRATEGY_TIMEOUT_MS / 1000,
        request_deadline_sec=settings.REQUEST_DEADLINE_MS / 1000,
        max_limit=settings.MAX_RECOMMENDATION_LIMIT,
    )


# =============================================================================
# Cleanup Functions
# =============================================================================


def clear_caches() -> None:
    """Clear all cached singleton instances (for testing)."""
    get_catalog_store.cache_clear()
    get_watch_history_store.cache_clear()
    get_user_directory.cache_clear()
    get_feature_flag_service.cache_clear()
    get_freshness_manager.cache_clear()
    get_recommendation_service.cache_clear()
