"""Services package - recommendation engine business logic."""
from .feature_flags import ConfigBasedFeatureFlagService
from .features import (
    ConstantEngagementScorer,
    FeatureExtractor,
    InteractionRateEngagementScorer,
    build_engagement_scorer,
)
from .freshness import FreshnessManager
from .profiler import PreferenceProfiler
from .recommendations import RecommendationService
from .strategies import (
    CollaborativeStrategy,
    ContentBasedStrategy,
    LearningPathStrategy,
    RecommendationStrategy,
    SimilarUsersStrategy,
    StrategyContext,
    TrendingStrategy,
    default_strategies,
)

__all__ = [
    "CollaborativeStrategy",
    "ConfigBasedFeatureFlagService",
    "ConstantEngagementScorer",
    "ContentBasedStrategy",
    "FeatureExtractor",
    "FreshnessManager",
    "InteractionRateEngagementScorer",
    "LearningPathStrategy",
    "PreferenceProfiler",
    "RecommendationService",
    "RecommendationStrategy",
    "SimilarUsersStrategy",
    "StrategyContext",
    "TrendingStrategy",
    "build_engagement_scorer",
    "default_strategies",
]
