"""Models package - domain entities and interfaces."""
from .interfaces import (
    CatalogStore,
    EngagementScorer,
    FeatureFlagService,
    UserDirectory,
    WatchHistoryStore,
)
from .schemas import (
    CombinedRecommendation,
    DiscoverResponse,
    DiscoveryMetadata,
    ErrorResponse,
    Explanation,
    FeatureSnapshot,
    LearningPathMetadata,
    LearningPathResponse,
    ProfileSummary,
    RecommendationMetadata,
    RecommendationResult,
    RecommendationsResponse,
    StrategyType,
    UserPreference,
    VideoFeatures,
    VideoItem,
    WatchEntry,
)

__all__ = [
    # Interfaces
    "CatalogStore",
    "EngagementScorer",
    "FeatureFlagService",
    "UserDirectory",
    "WatchHistoryStore",
    # Schemas
    "CombinedRecommendation",
    "DiscoverResponse",
    "DiscoveryMetadata",
    "ErrorResponse",
    "Explanation",
    "FeatureSnapshot",
    "LearningPathMetadata",
    "LearningPathResponse",
    "ProfileSummary",
    "RecommendationMetadata",
    "RecommendationResult",
    "RecommendationsResponse",
    "StrategyType",
    "UserPreference",
    "VideoFeatures",
    "VideoItem",
    "WatchEntry",
]
