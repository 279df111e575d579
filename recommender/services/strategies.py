"""
Scoring strategies.
Five independent, side-effect-free recommenders. Each one scores a fixed
candidate list against a read-only StrategyContext and returns weighted
RecommendationResult entries for aggregation.
"""
import logging
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import FrozenSet, List, Mapping, Optional, Sequence, Tuple

from recommender.models.schemas import (
    RecommendationResult,
    StrategyType,
    UserPreference,
    VideoItem,
)
from recommender.services.features import days_since, difficulty_score
from recommender.services.profiler import instructor_name

logger = logging.getLogger(__name__)

# (item, raw score, reasons)
ScoredCandidate = Tuple[VideoItem, float, List[str]]


@dataclass(frozen=True)
class StrategyContext:
    """Read-only inputs shared by every strategy for one request."""

    user_id: str
    candidates: Sequence[VideoItem]
    preference: UserPreference
    now: float
    watched_ids: FrozenSet[str] = frozenset()
    # Other users' watched ids, keyed by user id; never includes user_id
    co_watch: Mapping[str, FrozenSet[str]] = field(default_factory=dict)


# =============================================================================
# Scoring helpers
# =============================================================================


def personalization_score(item: VideoItem, preference: UserPreference) -> float:
    """
    Content match between an item and a preference profile, capped at 1.

    Category, tags, difficulty and instructor contribute their raw watch
    counts; duration contributes its closeness to the preferred duration.
    """
    score = 0.0

    if item.category:
        score += preference.categories.get(item.category, 0) * 0.3

    for tag in item.tags:
        score += preference.tags.get(tag, 0) * 0.2

    if item.difficulty:
        score += preference.difficulties.get(item.difficulty, 0) * 0.25

    if preference.preferred_duration > 0:
        duration_diff = abs(item.duration - preference.preferred_duration)
        score += max(0.0, 1 - duration_diff / preference.preferred_duration) * 0.15

    name = instructor_name(item)
    if name:
        score += preference.instructors.get(name, 0) * 0.1

    return min(score, 1.0)


def estimate_user_level(preference: UserPreference) -> float:
    """Skill level on the 1-4 difficulty scale inferred from watch behavior."""
    level = 1.0
    if preference.completion_rate > 0.7:
        level += 1
    if preference.avg_watch_time > 600:  # 10+ minutes average
        level += 0.5
    return min(level, 4.0)


# =============================================================================
# Strategy Base
# =============================================================================


class RecommendationStrategy(ABC):
    """Abstract base class for scoring strategies."""

    strategy_type: StrategyType
    weight: float = 1.0
    # Results with raw score at or below threshold are dropped; None keeps all
    threshold: Optional[float] = None

    @property
    def name(self) -> str:
        return self.strategy_type.value

    def recommend(self, context: StrategyContext) -> List[RecommendationResult]:
        """Score candidates and return weighted results above threshold."""
        results = []
        for item, raw_score, reasons in self.score(context):
            raw_score = max(0.0, raw_score)
            if self.threshold is not None and raw_score <= self.threshold:
                continue
            results.append(
                RecommendationResult(
                    item_id=item.id,
                    raw_score=raw_score,
                    score=raw_score * self.weight,
                    reasons=reasons,
                    strategy=self.strategy_type,
                )
            )
        logger.debug(f"Strategy {self.name} produced {len(results)} results")
        return results

    @abstractmethod
    def score(self, context: StrategyContext) -> List[ScoredCandidate]:
        """
        Compute raw scores.

        Returns:
            List of (item, raw_score, reasons) tuples
        """
        pass


# =============================================================================
# Strategies
# =============================================================================


class ContentBasedStrategy(RecommendationStrategy):
    """Match item attributes against the user's historical interests."""

    strategy_type = StrategyType.CONTENT_BASED
    weight = 0.8

    def score(self, context: StrategyContext) -> List[ScoredCandidate]:
        preference = context.preference
        return [
            (item, personalization_score(item, preference), self._reasons(item, preference))
            for item in context.candidates
        ]

    @staticmethod
    def _reasons(item: VideoItem, preference: UserPreference) -> List[str]:
        reasons = []
        if item.category and preference.categories.get(item.category):
            reasons.append(f"Matches your interest in {item.category}")
        if item.difficulty and preference.difficulties.get(item.difficulty):
            reasons.append(f"{item.difficulty} level matches your progress")
        name = instructor_name(item)
        if name and preference.instructors.get(name):
            reasons.append(f"From {name}, an instructor you have watched before")
        return reasons


class CollaborativeStrategy(RecommendationStrategy):
    """Items watched by the users whose history overlaps most with this user."""

    strategy_type = StrategyType.COLLABORATIVE
    weight = 0.9
    threshold = 0.3

    def __init__(self, neighbors: int = 10) -> None:
        self._neighbors = neighbors

    def find_similar_users(self, context: StrategyContext) -> List[str]:
        """Top users by shared watched-video count, ties broken by user id."""
        if not context.watched_ids:
            return []
        overlaps = {
            other: len(watched & context.watched_ids)
            for other, watched in context.co_watch.items()
            if other != context.user_id
        }
        ranked = sorted(
            ((user, shared) for user, shared in overlaps.items() if shared > 0),
            key=lambda pair: (-pair[1], pair[0]),
        )
        return [user for user, _ in ranked[: self._neighbors]]

    def score(self, context: StrategyContext) -> List[ScoredCandidate]:
        similar_users = self.find_similar_users(context)
        if not similar_users:
            return []

        watch_counts: Counter = Counter()
        for user in similar_users:
            watch_counts.update(context.co_watch[user])

        reasons = ["Recommended by users with similar interests"]
        return [
            (item, watch_counts[item.id] / len(similar_users), list(reasons))
            for item in context.candidates
        ]


class TrendingStrategy(RecommendationStrategy):
    """Recent uploads with strong view counts."""

    strategy_type = StrategyType.TRENDING
    weight = 0.6
    threshold = 0.2

    RECENCY_HORIZON_DAYS = 30
    VIEW_SATURATION = 100

    def __init__(self, window_days: float = 7) -> None:
        self._window_days = window_days

    @property
    def window_days(self) -> float:
        return self._window_days

    def in_window(self, item: VideoItem, now: float) -> bool:
        """True if the item was created within the trending window."""
        age_days = (now - item.created_at) / 86400
        return 0 <= age_days < self._window_days

    def trending_score(self, item: VideoItem, now: float) -> float:
        recency = max(0.0, 1 - days_since(item.created_at, now) / self.RECENCY_HORIZON_DAYS)
        popularity = min(item.view_count / self.VIEW_SATURATION, 1.0)
        return recency * 0.6 + popularity * 0.4

    def score(self, context: StrategyContext) -> List[ScoredCandidate]:
        label = "Trending this week" if self._window_days == 7 else (
            f"Trending in the last {self._window_days:g} days"
        )
        return [
            (item, self.trending_score(item, context.now), [label, f"{item.view_count} views"])
            for item in context.candidates
            if self.in_window(item, context.now)
        ]


class SimilarUsersStrategy(RecommendationStrategy):
    """Items popular among learners who watched a good share of the same videos."""

    strategy_type = StrategyType.SIMILAR_USERS
    weight = 0.7
    threshold = 0.2

    MIN_OVERLAP_FRACTION = 0.2

    def __init__(self, candidate_cap: int = 20) -> None:
        self._candidate_cap = candidate_cap

    def find_similar_viewers(self, context: StrategyContext) -> List[str]:
        """Users who watched at least 20% (minimum one) of this user's videos."""
        if not context.watched_ids:
            return []
        required = max(1.0, len(context.watched_ids) * self.MIN_OVERLAP_FRACTION)
        return sorted(
            other
            for other, watched in context.co_watch.items()
            if other != context.user_id and len(watched & context.watched_ids) >= required
        )

    def score(self, context: StrategyContext) -> List[ScoredCandidate]:
        viewers = self.find_similar_viewers(context)
        if not viewers:
            return []

        results = []
        for item in context.candidates[: self._candidate_cap]:
            watched_target = sum(1 for v in viewers if item.id in context.co_watch[v])
            results.append((item, watched_target / len(viewers), ["Popular among similar learners"]))
        return results


class LearningPathStrategy(RecommendationStrategy):
    """Content at or slightly above the user's estimated level."""

    strategy_type = StrategyType.LEARNING_PATH
    weight = 0.85
    threshold = 0.3

    def __init__(self, skip_cold_start: bool = True) -> None:
        """
        Args:
            skip_cold_start: Score nothing for users without history. A
                standalone learning path starts such users at level 1.
        """
        self._skip_cold_start = skip_cold_start

    def path_score(self, item: VideoItem, user_level: float) -> float:
        level_diff = difficulty_score(item.difficulty) - user_level
        if 0 <= level_diff <= 1:
            return 0.8
        if -0.5 <= level_diff < 0:
            return 0.6  # Review material
        return 0.2

    def score(self, context: StrategyContext) -> List[ScoredCandidate]:
        if self._skip_cold_start and context.preference.is_cold_start:
            return []

        user_level = estimate_user_level(context.preference)
        results = []
        for item in context.candidates:
            reasons = ["Next step in your learning journey"]
            if item.difficulty:
                reasons.append(f"{item.difficulty} level content")
            results.append((item, self.path_score(item, user_level), reasons))
        return results


def default_strategies(
    trending_window_days: float = 7,
    collaborative_neighbors: int = 10,
    similar_users_candidate_cap: int = 20,
) -> List[RecommendationStrategy]:
    """The five strategies in their canonical order."""
    return [
        ContentBasedStrategy(),
        CollaborativeStrategy(neighbors=collaborative_neighbors),
        TrendingStrategy(window_days=trending_window_days),
        SimilarUsersStrategy(candidate_cap=similar_users_candidate_cap),
        LearningPathStrategy(),
    ]

