"""
Health check router for observability.
"""
from fastapi import APIRouter, Depends

from recommender.api.dependencies import get_recommendation_service
from recommender.config import get_settings
from recommender.services.recommendations import RecommendationService

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health Check")
async def health_check() -> dict:
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/ready", summary="Readiness Check")
async def readiness_check(
    service: RecommendationService = Depends(get_recommendation_service),
) -> dict:
    """
    Readiness check for Kubernetes.
    Returns strategy circuit breaker states, cache counters and feature flags.
    """
    settings = get_settings()

    return {
        "status": "ready",
        "circuit_breakers": [breaker.snapshot() for breaker in service.breakers.values()],
        "caches": service.freshness.stats(),
        "feature_flags": {
            "personalization_enabled": settings.PERSONALIZATION_ENABLED,
            "kill_switch_active": settings.KILL_SWITCH_ACTIVE,
            "rollout_percentage": settings.ROLLOUT_PERCENTAGE,
        },
    }
