"""
Video recommendation API router.
Thin HTTP adapter over RecommendationService; all scoring lives in the engine.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Path, Query

from recommender.api.dependencies import get_recommendation_service
from recommender.config import get_settings
from recommender.models.schemas import (
    DiscoverResponse,
    ErrorResponse,
    LearningPathResponse,
    RecommendationsResponse,
    VideoItem,
)
from recommender.services.recommendations import RecommendationService

settings = get_settings()
DEFAULT_LIMIT = settings.DEFAULT_RECOMMENDATION_LIMIT
MAX_LIMIT = settings.MAX_RECOMMENDATION_LIMIT

router = APIRouter(
    prefix="/v1/videos",
    tags=["recommendations"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid parameters"},
        503: {"model": ErrorResponse, "description": "Collaborator store unavailable"},
    },
)


@router.get(
    "/recommendations",
    response_model=RecommendationsResponse,
    summary="Get Personalized Recommendations",
    description="""
    Ranked recommendations for the calling user.

    Five strategies run concurrently (content-based, collaborative,
    trending, similar users, learning path); their weighted scores are
    summed per video. Metadata explains every returned item.
    """,
)
async def get_recommendations(
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Number of recommendations"),
    exclude_watched: bool = Query(default=True, description="Exclude already watched videos"),
    x_user_id: str = Header(..., alias="X-User-ID", min_length=1, description="Calling user"),
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationsResponse:
    return await service.get_recommendations_for_user(
        user_id=x_user_id,
        limit=limit,
        exclude_watched=exclude_watched,
    )


@router.get(
    "/trending",
    response_model=List[VideoItem],
    summary="Get Trending Videos",
)
async def get_trending(
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    timeframe: str = Query(default="week", description="day | week | month"),
    service: RecommendationService = Depends(get_recommendation_service),
) -> List[VideoItem]:
    return await service.get_trending_videos(limit=limit, timeframe=timeframe)


@router.get(
    "/discover",
    response_model=DiscoverResponse,
    summary="Discover Videos",
    description="Recommendations diversified across categories and instructors.",
)
async def discover(
    limit: int = Query(default=15, ge=1, le=25),
    x_user_id: str = Header(..., alias="X-User-ID", min_length=1),
    service: RecommendationService = Depends(get_recommendation_service),
) -> DiscoverResponse:
    return await service.discover_videos(user_id=x_user_id, limit=limit)


@router.get(
    "/category/{category}",
    response_model=List[VideoItem],
    summary="Get Videos by Category",
    description="Most viewed videos in a category, personalized when a user is known.",
)
async def get_by_category(
    category: str = Path(..., min_length=1),
    limit: int = Query(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
    service: RecommendationService = Depends(get_recommendation_service),
) -> List[VideoItem]:
    return await service.get_videos_by_category(category=category, user_id=x_user_id, limit=limit)


@router.get(
    "/learning-path/{user_id}",
    response_model=LearningPathResponse,
    summary="Get Learning Path",
)
async def get_learning_path(
    user_id: str = Path(..., min_length=1),
    subject: Optional[str] = Query(default=None, description="Category or tag to focus on"),
    difficulty: Optional[str] = Query(default=None, description="Target difficulty level"),
    service: RecommendationService = Depends(get_recommendation_service),
) -> LearningPathResponse:
    return await service.get_learning_path(user_id=user_id, subject=subject, difficulty=difficulty)


@router.get(
    "/{video_id}/similar",
    response_model=List[VideoItem],
    summary="Get Similar Videos",
)
async def get_similar(
    video_id: str = Path(..., min_length=1),
    limit: int = Query(default=5, ge=1, le=MAX_LIMIT),
    service: RecommendationService = Depends(get_recommendation_service),
) -> List[VideoItem]:
    return await service.get_similar_videos(item_id=video_id, limit=limit)
