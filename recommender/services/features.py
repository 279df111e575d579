"""
Feature extraction.
Turns catalog items into numeric VideoFeatures records.
"""
from typing import Iterable, List, Optional, Sequence, Tuple

from recommender.models.interfaces import EngagementScorer
from recommender.models.schemas import VideoFeatures, VideoItem

SECONDS_PER_DAY = 86400

DIFFICULTY_LEVELS = {
    "beginner": 1,
    "intermediate": 2,
    "advanced": 3,
    "expert": 4,
}

HD_RESOLUTION_MARKERS = ("720", "1080")


def difficulty_score(difficulty: Optional[str]) -> int:
    """Ordinal difficulty, 1 for unknown or missing levels."""
    if not difficulty:
        return 1
    return DIFFICULTY_LEVELS.get(difficulty.lower(), 1)


def days_since(timestamp: float, now: float) -> float:
    """Age in days, never negative."""
    return max(0.0, (now - timestamp) / SECONDS_PER_DAY)


# =============================================================================
# Engagement Scorers
# =============================================================================


class ConstantEngagementScorer(EngagementScorer):
    """Same score for every item until real interaction telemetry is wired in."""

    def __init__(self, value: float = 0.5) -> None:
        self._value = max(0.0, min(1.0, value))

    def score(self, item: VideoItem) -> float:
        return self._value


class InteractionRateEngagementScorer(EngagementScorer):
    """Likes and comments per view, comments counted double."""

    COMMENT_WEIGHT = 2.0
    SCALE = 10.0  # 10% interaction rate saturates the score

    def score(self, item: VideoItem) -> float:
        if item.view_count <= 0:
            return 0.0
        interactions = item.like_count + self.COMMENT_WEIGHT * item.comment_count
        return min(1.0, interactions / item.view_count * self.SCALE)


def build_engagement_scorer(name: str, default_value: float = 0.5) -> EngagementScorer:
    """Create an engagement scorer from its settings name."""
    if name == "interaction_rate":
        return InteractionRateEngagementScorer()
    if name == "constant":
        return ConstantEngagementScorer(default_value)
    raise ValueError(f"Unknown engagement scorer: {name}")


# =============================================================================
# Feature Extractor
# =============================================================================


class FeatureExtractor:
    """
    Builds VideoFeatures against global category/tag vocabularies.
    Missing optional fields degrade to defaults, extraction never raises.
    """

    def __init__(self, engagement_scorer: Optional[EngagementScorer] = None) -> None:
        self._engagement_scorer = engagement_scorer or ConstantEngagementScorer()

    @staticmethod
    def build_vocabularies(items: Iterable[VideoItem]) -> Tuple[List[str], List[str]]:
        """Distinct categories and tags observed across the catalog, sorted."""
        categories = set()
        tags = set()
        for item in items:
            if item.category:
                categories.add(item.category)
            tags.update(tag for tag in item.tags if tag)
        return sorted(categories), sorted(tags)

    def extract(
        self,
        item: VideoItem,
        categories: Sequence[str],
        tags: Sequence[str],
        now: float,
    ) -> VideoFeatures:
        """Compute the feature record for one item."""
        item_tags = set(item.tags)
        return VideoFeatures(
            id=item.id,
            category_vector=[1 if item.category == c else 0 for c in categories],
            tag_vector=[1 if t in item_tags else 0 for t in tags],
            difficulty_score=difficulty_score(item.difficulty),
            popularity_score=self.popularity_score(item),
            quality_score=self.quality_score(item),
            engagement_score=self._clamp(self._engagement_scorer.score(item)),
            freshness_score=self.freshness_score(item, now),
        )

    def extract_all(self, items: Sequence[VideoItem], now: float) -> Tuple[List[str], List[str], List[VideoFeatures]]:
        """Vocabularies plus features for every item."""
        categories, tags = self.build_vocabularies(items)
        features = [self.extract(item, categories, tags, now) for item in items]
        return categories, tags, features

    @staticmethod
    def popularity_score(item: VideoItem) -> float:
        return min(item.view_count / 1000, 1.0)

    @staticmethod
    def quality_score(item: VideoItem) -> float:
        has_hd = any(
            marker in resolution
            for resolution in item.stream_resolutions
            for marker in HD_RESOLUTION_MARKERS
        )
        return 1.0 if has_hd else 0.7

    @staticmethod
    def freshness_score(item: VideoItem, now: float) -> float:
        # Linear decay to 0 over a year
        return max(0.0, 1 - days_since(item.created_at, now) / 365)

    @staticmethod
    def _clamp(value: float) -> float:
        return max(0.0, min(1.0, value))
