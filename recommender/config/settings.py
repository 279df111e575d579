"""
Centralized configuration using Pydantic BaseSettings.
All environment variables are loaded here - no hardcoded values.
"""
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Video Recommendation Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Personalization flags
    PERSONALIZATION_ENABLED: bool = True
    KILL_SWITCH_ACTIVE: bool = False
    ROLLOUT_PERCENTAGE: int = Field(default=100, ge=0, le=100)  # Users receiving personalized strategies

    # Telemetry
    ENABLE_OTEL: bool = False  # Default to False to prevent gRPC errors in dev
    ENABLE_PROMETHEUS: bool = True

    # Latency budgets (milliseconds)
    STRATEGY_TIMEOUT_MS: int = Field(default=200, gt=0)
    REQUEST_DEADLINE_MS: int = Field(default=500, gt=0)

    # Circuit breaker, one per scoring strategy
    CIRCUIT_BREAKER_FAILURE_THRESHOLD: int = Field(default=5, ge=1)
    CIRCUIT_BREAKER_RECOVERY_TIMEOUT_SEC: int = Field(default=30, ge=0)

    # Derived-state TTLs (seconds), independent of each other
    FEATURE_CACHE_TTL_SEC: int = Field(default=1800, gt=0)
    PREFERENCE_CACHE_TTL_SEC: int = Field(default=1800, gt=0)

    # Feature extraction
    ENGAGEMENT_SCORER: Literal["constant", "interaction_rate"] = "constant"
    DEFAULT_ENGAGEMENT_SCORE: float = Field(default=0.5, ge=0, le=1)

    # Strategy tuning
    TRENDING_WINDOW_DAYS: int = Field(default=7, ge=1)
    COLLABORATIVE_NEIGHBORS: int = Field(default=10, ge=1)
    SIMILAR_USERS_CANDIDATE_CAP: int = Field(default=20, ge=1)

    # Result sizes
    DEFAULT_RECOMMENDATION_LIMIT: int = 10
    MAX_RECOMMENDATION_LIMIT: int = 50

    class Config:
        env_file = ".env"
        case_sensitive = True

    @model_validator(mode="after")
    def check_latency_budgets(self) -> "Settings":
        if self.REQUEST_DEADLINE_MS < self.STRATEGY_TIMEOUT_MS:
            raise ValueError("REQUEST_DEADLINE_MS must be at least STRATEGY_TIMEOUT_MS")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance - singleton pattern."""
    return Settings()
