"""
Domain models using Pydantic.
All data structures for the recommendation engine.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Collaborator Models (Catalog / Watch History)
# =============================================================================


class VideoItem(BaseModel):
    """
    Catalog item as provided by the CatalogStore.
    Only ready + public items are recommendation candidates.
    """

    id: str = Field(..., description="Unique video identifier")
    title: str = Field(default="", description="Video title")
    category: Optional[str] = Field(default=None, description="Catalog category")
    tags: List[str] = Field(default_factory=list, description="Content tags")
    difficulty: Optional[str] = Field(
        default=None,
        description="beginner | intermediate | advanced | expert",
    )
    duration: float = Field(default=0, ge=0, description="Duration in seconds")
    view_count: int = Field(default=0, ge=0)
    like_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    created_at: float = Field(..., description="Unix timestamp of creation")
    uploader_id: Optional[str] = Field(default=None, description="Instructor user id")
    uploader_name: Optional[str] = Field(default=None, description="Instructor display name")
    stream_resolutions: List[str] = Field(
        default_factory=list,
        description="Available stream resolutions, e.g. '1080p'",
    )
    status: str = Field(default="ready")
    is_public: bool = Field(default=True)


class WatchEntry(BaseModel):
    """One (user, video) watch-progress record."""

    user_id: str
    video_id: str
    completed: bool = False
    watch_time: float = Field(default=0, ge=0, description="Accumulated seconds watched")


# =============================================================================
# Derived State (owned by the freshness manager)
# =============================================================================


class UserPreference(BaseModel):
    """
    Frequency-weighted interest profile built from a user's watch history.
    Map values are raw counts of watched items carrying the attribute.
    """

    user_id: str
    categories: Dict[str, int] = Field(default_factory=dict)
    tags: Dict[str, int] = Field(default_factory=dict)
    difficulties: Dict[str, int] = Field(default_factory=dict)
    instructors: Dict[str, int] = Field(default_factory=dict)
    avg_watch_time: float = 0.0
    completion_rate: float = Field(default=0.0, ge=0, le=1)
    preferred_duration: float = 0.0
    video_count: int = 0
    last_computed: float = 0.0

    @property
    def is_cold_start(self) -> bool:
        """Check if user has no history (cold start)."""
        return self.video_count == 0


class VideoFeatures(BaseModel):
    """Numeric feature record for one catalog item."""

    id: str
    category_vector: List[int] = Field(default_factory=list)
    tag_vector: List[int] = Field(default_factory=list)
    difficulty_score: int = Field(..., ge=1, le=4)
    popularity_score: float = Field(..., ge=0, le=1)
    quality_score: float = Field(..., ge=0, le=1)
    engagement_score: float = Field(..., ge=0, le=1)
    freshness_score: float = Field(..., ge=0, le=1)


class FeatureSnapshot(BaseModel):
    """Bulk-computed features for the whole catalog plus the vocabularies used."""

    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    features: Dict[str, VideoFeatures] = Field(default_factory=dict)
    computed_at: float = 0.0


# =============================================================================
# Scoring Models (request scoped)
# =============================================================================


class StrategyType(str, Enum):
    """Scoring strategy identifiers."""

    CONTENT_BASED = "content_based"
    COLLABORATIVE = "collaborative"
    TRENDING = "trending"
    SIMILAR_USERS = "similar_users"
    LEARNING_PATH = "learning_path"


class RecommendationResult(BaseModel):
    """Single strategy's opinion about one candidate."""

    item_id: str
    raw_score: float = Field(..., ge=0, description="Strategy-local score")
    score: float = Field(..., ge=0, description="raw_score scaled by strategy weight")
    reasons: List[str] = Field(default_factory=list)
    strategy: StrategyType


class CombinedRecommendation(BaseModel):
    """Aggregated entry: one per item id across all strategies."""

    item_id: str
    score: float = Field(..., ge=0)
    reasons: List[str] = Field(default_factory=list)
    strategies: List[StrategyType] = Field(default_factory=list)


# =============================================================================
# API Models (External)
# =============================================================================


class ProfileSummary(BaseModel):
    """Condensed view of a user's preference profile."""

    completion_rate: float = 0.0
    avg_watch_time: float = 0.0
    top_categories: List[str] = Field(default_factory=list)
    top_tags: List[str] = Field(default_factory=list)


class Explanation(BaseModel):
    """Why an item was recommended."""

    item_id: str
    score: float
    reasons: List[str] = Field(default_factory=list)
    strategies: List[StrategyType] = Field(default_factory=list)
    features: Optional[VideoFeatures] = None


class RecommendationMetadata(BaseModel):
    """Explanation metadata returned alongside recommendations."""

    total_candidates: int = 0
    personalized: bool = True
    algorithms: Dict[str, int] = Field(
        default_factory=dict,
        description="Result count produced by each strategy",
    )
    failed_strategies: List[str] = Field(
        default_factory=list,
        description="Strategies that timed out or raised and contributed nothing",
    )
    user_profile: ProfileSummary = Field(default_factory=ProfileSummary)
    explanations: List[Explanation] = Field(default_factory=list)


class RecommendationsResponse(BaseModel):
    """Result of get_recommendations_for_user."""

    recommendations: List[VideoItem] = Field(default_factory=list)
    metadata: RecommendationMetadata = Field(default_factory=RecommendationMetadata)


class DiscoveryMetadata(RecommendationMetadata):
    """Recommendation metadata plus diversity statistics."""

    discovery_algorithm: str = "diversified_recommendations"
    category_diversity: int = 0
    instructor_diversity: int = 0


class DiscoverResponse(BaseModel):
    """Result of discover_videos."""

    videos: List[VideoItem] = Field(default_factory=list)
    metadata: DiscoveryMetadata = Field(default_factory=DiscoveryMetadata)


class LearningPathMetadata(BaseModel):
    """Summary of a generated learning path."""

    total_videos: int = 0
    subject: Optional[str] = None
    difficulty: Optional[str] = None
    estimated_duration: float = 0.0
    path_type: str = "adaptive_learning"


class LearningPathResponse(BaseModel):
    """Result of get_learning_path."""

    learning_path: List[VideoItem] = Field(default_factory=list)
    metadata: LearningPathMetadata = Field(default_factory=LearningPathMetadata)


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: Dict[str, object] = Field(..., description="Error details")
