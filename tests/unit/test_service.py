import time

import pytest
from unittest.mock import AsyncMock

from prometheus_client import REGISTRY

from recommender.core.circuit_breaker import CircuitBreaker
from recommender.core.exceptions import ServiceUnavailableError, ValidationError
from recommender.services.feature_flags import ConfigBasedFeatureFlagService
from recommender.services.recommendations import RecommendationService
from recommender.services.strategies import (
    ContentBasedStrategy,
    TrendingStrategy,
    default_strategies,
)


class ExplodingStrategy(ContentBasedStrategy):
    def score(self, context):
        raise RuntimeError("model crashed")


class SlowStrategy(ContentBasedStrategy):
    def score(self, context):
        time.sleep(0.3)
        return super().score(context)


def build_service(catalog_store, history_store, freshness, **kwargs):
    kwargs.setdefault("feature_flags", ConfigBasedFeatureFlagService(rollout_percentage=100.0))
    return RecommendationService(
        catalog=catalog_store,
        history=history_store,
        freshness=freshness,
        **kwargs,
    )


class TestPersonalizedRecommendations:
    @pytest.mark.asyncio
    async def test_excludes_watched_and_non_public(self, service):
        response = await service.get_recommendations_for_user("u_alice", limit=10)
        ids = [video.id for video in response.recommendations]

        assert "v1" not in ids
        assert "v2" not in ids
        assert "v8" not in ids
        assert len(ids) == len(set(ids))
        assert response.metadata.total_candidates == 5
        assert response.metadata.personalized is True
        assert response.metadata.failed_strategies == []

    @pytest.mark.asyncio
    async def test_limit_respected(self, service):
        response = await service.get_recommendations_for_user("u_bob", limit=2)
        assert len(response.recommendations) == 2
        assert len(response.metadata.explanations) == 2

    @pytest.mark.asyncio
    async def test_scores_sorted_and_non_negative(self, service):
        response = await service.get_recommendations_for_user("u_carol", limit=10)
        scores = [e.score for e in response.metadata.explanations]

        assert scores == sorted(scores, reverse=True)
        assert all(score >= 0 for score in scores)
        assert [e.item_id for e in response.metadata.explanations] == [
            video.id for video in response.recommendations
        ]

    @pytest.mark.asyncio
    async def test_explanations_carry_features(self, service):
        response = await service.get_recommendations_for_user("u_alice", limit=3)
        for explanation in response.metadata.explanations:
            assert explanation.features is not None
            assert explanation.features.id == explanation.item_id
            assert explanation.strategies

    @pytest.mark.asyncio
    async def test_include_watched(self, service):
        response = await service.get_recommendations_for_user("u_alice", limit=10, exclude_watched=False)
        assert response.metadata.total_candidates == 7

    @pytest.mark.asyncio
    async def test_profile_summary(self, service):
        response = await service.get_recommendations_for_user("u_bob")
        profile = response.metadata.user_profile

        assert profile.top_categories == ["programming", "data-science"]
        assert profile.top_tags[0] == "python"

    @pytest.mark.asyncio
    async def test_cold_start_served_by_trending(self, service):
        response = await service.get_recommendations_for_user("brand_new_user", limit=4)

        assert {video.id for video in response.recommendations} == {"v1", "v3", "v4", "v6"}
        assert response.metadata.algorithms["learning_path"] == 0
        assert response.metadata.algorithms["collaborative"] == 0
        assert response.metadata.user_profile.top_categories == []

    @pytest.mark.asyncio
    async def test_removed_item_is_not_returned(self, service, catalog_store):
        await service.freshness.get_feature_snapshot()
        catalog_store.remove_item("v6")

        response = await service.get_recommendations_for_user("u_alice", limit=10)
        assert "v6" not in [video.id for video in response.recommendations]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, 51])
    async def test_invalid_limit(self, service, limit):
        with pytest.raises(ValidationError):
            await service.get_recommendations_for_user("u_alice", limit=limit)


class TestDegradation:
    @pytest.mark.asyncio
    async def test_personalization_disabled_runs_trending_only(
        self, catalog_store, history_store, freshness
    ):
        service = build_service(
            catalog_store, history_store, freshness,
            feature_flags=ConfigBasedFeatureFlagService(rollout_percentage=0.0),
        )
        response = await service.get_recommendations_for_user("u_alice")

        assert response.metadata.personalized is False
        assert list(response.metadata.algorithms) == ["trending"]
        assert {video.id for video in response.recommendations} <= {"v3", "v4", "v6"}

    @pytest.mark.asyncio
    async def test_failing_strategy_is_reported(self, catalog_store, history_store, freshness):
        service = build_service(
            catalog_store, history_store, freshness,
            strategies=[ExplodingStrategy(), TrendingStrategy()],
        )
        response = await service.get_recommendations_for_user("u_alice")

        assert response.metadata.failed_strategies == ["content_based"]
        assert response.metadata.algorithms["content_based"] == 0
        assert len(response.recommendations) > 0
        assert service.breakers["content_based"].failure_count == 1

    @pytest.mark.asyncio
    async def test_slow_strategy_times_out(self, catalog_store, history_store, freshness):
        service = build_service(
            catalog_store, history_store, freshness,
            strategies=[SlowStrategy(), TrendingStrategy()],
            strategy_timeout_sec=0.05,
        )
        response = await service.get_recommendations_for_user("u_alice")

        assert response.metadata.failed_strategies == ["content_based"]
        assert response.metadata.algorithms["trending"] > 0

    @pytest.mark.asyncio
    async def test_open_circuit_skips_strategy(self, catalog_store, history_store, freshness):
        breaker = CircuitBreaker("strategy.content_based", failure_threshold=1)
        with pytest.raises(RuntimeError):
            breaker.call(lambda: ExplodingStrategy().score(None))

        service = build_service(
            catalog_store, history_store, freshness,
            breakers={"content_based": breaker},
        )
        response = await service.get_recommendations_for_user("u_alice")

        assert response.metadata.failed_strategies == ["content_based"]
        assert len(response.metadata.algorithms) == len(default_strategies())

    @pytest.mark.asyncio
    async def test_strategy_missing_deadline_is_counted(self, catalog_store, history_store, freshness):
        service = build_service(
            catalog_store, history_store, freshness,
            strategies=[SlowStrategy(), TrendingStrategy()],
            strategy_timeout_sec=1.0,
            request_deadline_sec=0.1,
        )
        labels = {"strategy": "content_based", "outcome": "deadline"}
        before = REGISTRY.get_sample_value("recommender_strategy_outcomes_total", labels) or 0

        response = await service.get_recommendations_for_user("u_alice")

        assert response.metadata.failed_strategies == ["content_based"]
        assert response.metadata.algorithms["trending"] > 0
        assert REGISTRY.get_sample_value("recommender_strategy_outcomes_total", labels) == before + 1

    @pytest.mark.asyncio
    async def test_no_strategies_yields_empty_response(self, catalog_store, history_store, freshness):
        service = build_service(catalog_store, history_store, freshness, strategies=[])
        response = await service.get_recommendations_for_user("u_alice")

        assert response.recommendations == []
        assert response.metadata.failed_strategies == []
        assert response.metadata.personalized is True

    @pytest.mark.asyncio
    async def test_non_personalized_reason_is_counted(self, catalog_store, history_store, freshness):
        service = build_service(
            catalog_store, history_store, freshness,
            feature_flags=ConfigBasedFeatureFlagService(rollout_percentage=0.0),
        )
        labels = {"reason": "rollout"}
        before = REGISTRY.get_sample_value("recommender_non_personalized_total", labels) or 0

        await service.get_recommendations_for_user("u_alice")

        assert REGISTRY.get_sample_value("recommender_non_personalized_total", labels) == before + 1

    @pytest.mark.asyncio
    async def test_history_store_failure(self, catalog_store, freshness):
        history = AsyncMock()
        history.get_watched_ids.side_effect = ConnectionError("db down")
        service = build_service(catalog_store, history, freshness)

        with pytest.raises(ServiceUnavailableError):
            await service.get_recommendations_for_user("u_alice")


class TestItemLookups:
    @pytest.mark.asyncio
    async def test_similar_videos(self, service):
        similar = await service.get_similar_videos("v1", limit=3)
        ids = [video.id for video in similar]

        assert len(ids) == 3
        assert "v1" not in ids
        # Same category, shared python/backend tags
        assert ids[0] == "v3"

    @pytest.mark.asyncio
    async def test_similar_videos_unknown_target(self, service):
        assert await service.get_similar_videos("missing") == []

    @pytest.mark.asyncio
    async def test_category_most_viewed(self, service):
        videos = await service.get_videos_by_category("programming", limit=2)
        assert [video.id for video in videos] == ["v1", "v2"]

    @pytest.mark.asyncio
    async def test_category_personalized_drops_watched(self, service):
        videos = await service.get_videos_by_category("programming", user_id="u_alice", limit=10)
        ids = [video.id for video in videos]

        assert set(ids) == {"v3", "v7"}

    @pytest.mark.asyncio
    async def test_unknown_category(self, service):
        assert await service.get_videos_by_category("cooking") == []

    @pytest.mark.asyncio
    async def test_trending_week(self, service):
        videos = await service.get_trending_videos(limit=10, timeframe="week")
        assert [video.id for video in videos] == ["v6", "v1", "v4", "v3"]

    @pytest.mark.asyncio
    async def test_trending_month_includes_older(self, service):
        videos = await service.get_trending_videos(limit=10, timeframe="month")
        assert "v2" in [video.id for video in videos]
        assert "v7" not in [video.id for video in videos]

    @pytest.mark.asyncio
    async def test_trending_invalid_timeframe(self, service):
        with pytest.raises(ValidationError):
            await service.get_trending_videos(timeframe="decade")


class TestDiscoveryAndLearningPath:
    @pytest.mark.asyncio
    async def test_discover_is_diverse(self, service):
        response = await service.discover_videos("u_alice", limit=4)
        ids = [video.id for video in response.videos]

        assert len(ids) == len(set(ids)) <= 4
        assert not {"v1", "v2"} & set(ids)
        assert response.metadata.category_diversity >= 2
        assert response.metadata.discovery_algorithm == "diversified_recommendations"

    @pytest.mark.asyncio
    async def test_learning_path_orders_by_fit(self, service):
        response = await service.get_learning_path("u_alice")
        ids = [video.id for video in response.learning_path]

        # Level 2.5: advanced is the next step, intermediate is review
        assert ids[0] == "v5"
        assert set(ids) == {"v2", "v3", "v5", "v6"}
        assert response.metadata.total_videos == 4
        assert response.metadata.estimated_duration == sum(v.duration for v in response.learning_path)

    @pytest.mark.asyncio
    async def test_learning_path_subject_filter(self, service):
        response = await service.get_learning_path("u_alice", subject="Design")
        assert [video.id for video in response.learning_path] == ["v5"]
        assert response.metadata.subject == "Design"

    @pytest.mark.asyncio
    async def test_learning_path_cold_start_starts_at_beginner(self, service):
        response = await service.get_learning_path("brand_new_user")
        path = response.learning_path

        assert {video.id for video in path} == {"v1", "v2", "v3", "v4", "v6"}
        assert {video.difficulty for video in path} == {"beginner", "intermediate"}
        assert response.metadata.total_videos == 5

    @pytest.mark.asyncio
    async def test_learning_path_invalid_difficulty(self, service):
        with pytest.raises(ValidationError):
            await service.get_learning_path("u_alice", difficulty="godlike")
