"""
Aggregation and ranking of strategy outputs, plus explanation metadata.
"""
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from recommender.models.schemas import (
    CombinedRecommendation,
    Explanation,
    ProfileSummary,
    RecommendationResult,
    UserPreference,
    VideoFeatures,
)


def combine_recommendations(results: Iterable[RecommendationResult]) -> List[CombinedRecommendation]:
    """
    Merge per-strategy results into one entry per item.

    Weighted scores are summed and reasons concatenated. The list is sorted by
    combined score descending; ties keep first-seen order.
    """
    combined: Dict[str, CombinedRecommendation] = {}

    for result in results:
        existing = combined.get(result.item_id)
        if existing is None:
            combined[result.item_id] = CombinedRecommendation(
                item_id=result.item_id,
                score=result.score,
                reasons=list(result.reasons),
                strategies=[result.strategy],
            )
            continue

        existing.score += result.score
        existing.reasons.extend(result.reasons)
        if result.strategy not in existing.strategies:
            existing.strategies.append(result.strategy)

    return sorted(combined.values(), key=lambda rec: rec.score, reverse=True)


def top_keys(counts: Mapping[str, int], n: int) -> List[str]:
    """Keys with the highest counts, ties broken alphabetically."""
    return [key for key, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:n]]


def summarize_profile(preference: UserPreference) -> ProfileSummary:
    """Top 3 categories and top 5 tags plus behavioral scalars."""
    return ProfileSummary(
        completion_rate=preference.completion_rate,
        avg_watch_time=preference.avg_watch_time,
        top_categories=top_keys(preference.categories, 3),
        top_tags=top_keys(preference.tags, 5),
    )


def build_explanations(
    ranked: Sequence[CombinedRecommendation],
    features: Optional[Mapping[str, VideoFeatures]] = None,
) -> List[Explanation]:
    """Reasoning breakdown for already-truncated ranked entries."""
    features = features or {}
    return [
        Explanation(
            item_id=rec.item_id,
            score=rec.score,
            reasons=rec.reasons,
            strategies=rec.strategies,
            features=features.get(rec.item_id),
        )
        for rec in ranked
    ]


def count_by_strategy(results_by_strategy: Mapping[str, Sequence[RecommendationResult]]) -> Dict[str, int]:
    """Number of results each strategy produced."""
    return {name: len(results) for name, results in results_by_strategy.items()}
