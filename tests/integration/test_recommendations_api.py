"""
Integration tests for the recommendations API.
"""
from fastapi.testclient import TestClient

from recommender.api.dependencies import get_recommendation_service
from recommender.main import app
from recommender.services.feature_flags import ConfigBasedFeatureFlagService
from recommender.services.recommendations import RecommendationService


class TestRecommendationsAPI:
    def test_get_recommendations_personalized(self, test_client: TestClient):
        response = test_client.get(
            "/v1/videos/recommendations",
            params={"limit": 3},
            headers={"X-User-ID": "u_alice"},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["recommendations"]) == 3
        assert data["metadata"]["personalized"] is True
        assert len(data["metadata"]["explanations"]) == 3
        assert set(data["metadata"]["algorithms"]) == {
            "content_based", "collaborative", "trending", "similar_users", "learning_path",
        }
        ids = [video["id"] for video in data["recommendations"]]
        assert "v1" not in ids and "v2" not in ids

    def test_missing_user_header(self, test_client: TestClient):
        response = test_client.get("/v1/videos/recommendations")
        assert response.status_code == 422

    def test_limit_out_of_range(self, test_client: TestClient):
        response = test_client.get(
            "/v1/videos/recommendations",
            params={"limit": 500},
            headers={"X-User-ID": "u_alice"},
        )
        assert response.status_code == 422

    def test_cold_start_user(self, test_client: TestClient):
        response = test_client.get(
            "/v1/videos/recommendations",
            headers={"X-User-ID": "user_unknown_123"},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["recommendations"]) > 0
        assert data["metadata"]["user_profile"]["top_categories"] == []

    def test_trending(self, test_client: TestClient):
        response = test_client.get("/v1/videos/trending", params={"timeframe": "week"})

        assert response.status_code == 200
        assert [video["id"] for video in response.json()] == ["v6", "v1", "v4", "v3"]

    def test_trending_invalid_timeframe(self, test_client: TestClient):
        response = test_client.get("/v1/videos/trending", params={"timeframe": "decade"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_similar(self, test_client: TestClient):
        response = test_client.get("/v1/videos/v1/similar", params={"limit": 2})

        assert response.status_code == 200
        ids = [video["id"] for video in response.json()]
        assert len(ids) == 2
        assert "v1" not in ids

    def test_similar_unknown_video(self, test_client: TestClient):
        response = test_client.get("/v1/videos/nope/similar")
        assert response.status_code == 200
        assert response.json() == []

    def test_category(self, test_client: TestClient):
        response = test_client.get("/v1/videos/category/design")

        assert response.status_code == 200
        assert [video["id"] for video in response.json()] == ["v4", "v5"]

    def test_discover(self, test_client: TestClient):
        response = test_client.get(
            "/v1/videos/discover",
            params={"limit": 4},
            headers={"X-User-ID": "u_bob"},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data["videos"]) <= 4
        assert data["metadata"]["discovery_algorithm"] == "diversified_recommendations"

    def test_learning_path(self, test_client: TestClient):
        response = test_client.get("/v1/videos/learning-path/u_alice", params={"subject": "python"})

        assert response.status_code == 200
        data = response.json()
        assert data["metadata"]["path_type"] == "adaptive_learning"
        assert data["metadata"]["total_videos"] == len(data["learning_path"])

    def test_learning_path_invalid_difficulty(self, test_client: TestClient):
        response = test_client.get(
            "/v1/videos/learning-path/u_alice",
            params={"difficulty": "godlike"},
        )
        assert response.status_code == 400


class TestRollout:
    def test_rollout_zero_serves_trending(self, catalog_store, history_store, freshness):
        service = RecommendationService(
            catalog=catalog_store,
            history=history_store,
            freshness=freshness,
            feature_flags=ConfigBasedFeatureFlagService(rollout_percentage=0.0),
        )
        app.dependency_overrides[get_recommendation_service] = lambda: service

        try:
            with TestClient(app) as client:
                response = client.get(
                    "/v1/videos/recommendations",
                    headers={"X-User-ID": "u_alice"},
                )
            assert response.status_code == 200
            data = response.json()
            assert data["metadata"]["personalized"] is False
            assert list(data["metadata"]["algorithms"]) == ["trending"]
        finally:
            app.dependency_overrides.clear()


class TestRequestContext:
    def test_request_id_echoed(self, test_client: TestClient):
        response = test_client.get("/health", headers={"X-Request-ID": "req_abc"})
        assert response.headers["X-Request-ID"] == "req_abc"

    def test_request_id_generated(self, test_client: TestClient):
        response = test_client.get("/health")
        assert response.headers["X-Request-ID"].startswith("req_")


class TestHealth:
    def test_health(self, test_client: TestClient):
        response = test_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_readiness_reports_breakers_and_caches(self, test_client: TestClient):
        response = test_client.get("/health/ready")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ready"
        assert {b["name"] for b in data["circuit_breakers"]} == {
            "strategy.content_based",
            "strategy.collaborative",
            "strategy.trending",
            "strategy.similar_users",
            "strategy.learning_path",
        }
        assert all(b["state"] == "closed" for b in data["circuit_breakers"])
        # Warmed on startup
        assert data["caches"]["feature_refreshes"] == 1
        assert "rollout_percentage" in data["feature_flags"]
