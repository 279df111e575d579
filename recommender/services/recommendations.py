"""
Recommendation service - main business logic orchestrator.
Coordinates cache freshness, candidate selection, concurrent strategy
execution, aggregation and explanation metadata. A failing or slow strategy
degrades the result instead of failing the request.
"""
import asyncio
import logging
import time
from itertools import chain
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from recommender.core.circuit_breaker import CircuitBreaker
from recommender.core.exceptions import (
    CircuitBreakerOpenError,
    LimitOutOfRangeError,
    ServiceUnavailableError,
    UnknownOptionError,
)
from recommender.core.metrics import non_personalized_total, record_strategy_outcome
from recommender.core.telemetry import get_tracer
from recommender.models.interfaces import CatalogStore, FeatureFlagService, WatchHistoryStore
from recommender.models.schemas import (
    DiscoverResponse,
    DiscoveryMetadata,
    LearningPathMetadata,
    LearningPathResponse,
    RecommendationMetadata,
    RecommendationResult,
    RecommendationsResponse,
    StrategyType,
    VideoItem,
)
from recommender.services.aggregator import (
    build_explanations,
    combine_recommendations,
    count_by_strategy,
    summarize_profile,
)
from recommender.services.features import DIFFICULTY_LEVELS
from recommender.services.freshness import FreshnessManager
from recommender.services.similarity import video_similarity
from recommender.services.strategies import (
    LearningPathStrategy,
    RecommendationStrategy,
    StrategyContext,
    TrendingStrategy,
    default_strategies,
    personalization_score,
)

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

TIMEFRAME_DAYS = {"day": 1, "week": 7, "month": 30}

# Slice of the request deadline kept free for aggregation
AGGREGATION_SHARE = 0.1


class RecommendationService:
    """
    Entry point of the recommendation engine.

    Responsibilities:
    - Keep feature/preference caches fresh (via FreshnessManager)
    - Build the candidate set per request
    - Run the five strategies concurrently with per-strategy timeouts
    - Aggregate, rank and explain
    """

    def __init__(
            self,
            catalog: CatalogStore,
            history: WatchHistoryStore,
            freshness: FreshnessManager,
            feature_flags: FeatureFlagService,
            strategies: Optional[Sequence[RecommendationStrategy]] = None,
            breakers: Optional[Dict[str, CircuitBreaker]] = None,
            strategy_timeout_sec: float = 0.2,
            request_deadline_sec: float = 0.5,
            max_limit: int = 50,
    ) -> None:
        """
        Initialize recommendation service with dependencies.

        Args:
            catalog: Catalog store (item lookups)
            history: Watch history store
            freshness: Owner of the feature and preference caches
            feature_flags: Personalization kill switch / rollout
            strategies: Scoring strategies (default: all five)
            breakers: Circuit breaker per strategy name
            strategy_timeout_sec: Budget for a single strategy
            request_deadline_sec: Budget for all strategies plus aggregation
            max_limit: Largest accepted limit
        """
        self._catalog = catalog
        self._history = history
        self._freshness = freshness
        self._feature_flags = feature_flags
        self._strategies = list(strategies) if strategies is not None else default_strategies()
        self._breakers = dict(breakers or {})
        for strategy in self._strategies:
            self._breakers.setdefault(strategy.name, CircuitBreaker(name=f"strategy.{strategy.name}"))
        self._strategy_timeout = strategy_timeout_sec
        self._request_deadline = request_deadline_sec
        self._max_limit = max_limit

    @property
    def freshness(self) -> FreshnessManager:
        return self._freshness

    @property
    def breakers(self) -> Dict[str, CircuitBreaker]:
        return self._breakers

    # =========================================================================
    # Personalized recommendations
    # =========================================================================

    async def get_recommendations_for_user(
            self,
            user_id: str,
            limit: int = 10,
            exclude_watched: bool = True,
    ) -> RecommendationsResponse:
        """
        Get personalized recommendations for a user.

        Args:
            user_id: User identifier
            limit: Maximum items to return
            exclude_watched: Drop items the user already has progress on

        Returns:
            RecommendationsResponse with ranked items and explanation metadata
        """
        self._validate_limit(limit)
        return await self._recommend(user_id, limit, exclude_watched)

    async def _recommend(
            self,
            user_id: str,
            limit: int,
            exclude_watched: bool,
    ) -> RecommendationsResponse:
        start_time = time.perf_counter()

        reason = self._feature_flags.disabled_reason(user_id)
        personalized = reason is None
        if not personalized:
            non_personalized_total.labels(reason=reason).inc()
            logger.info(
                f"Personalization off for user={user_id} ({reason}), serving trending only",
                extra={"user_id": user_id},
            )

        catalog, watched_ids = await asyncio.gather(
            self._freshness.load_catalog(),
            self._get_watched_ids(user_id),
        )
        snapshot, preference, co_watch = await asyncio.gather(
            self._freshness.get_feature_snapshot(),
            self._freshness.get_preference(user_id, catalog),
            self._get_co_watch(user_id) if personalized and watched_ids else _empty_co_watch(),
        )

        # Candidate set is rebuilt for every request
        candidates = [item for item in catalog if item.id not in watched_ids] if exclude_watched else catalog

        context = StrategyContext(
            user_id=user_id,
            candidates=tuple(candidates),
            preference=preference,
            now=self._freshness.now(),
            watched_ids=watched_ids,
            co_watch=co_watch,
        )
        strategies = self._strategies if personalized else [self._trending_strategy()]
        deadline_started = time.perf_counter()
        results_by_strategy, failed = await self._run_strategies(
            strategies,
            context,
            timeout=self._request_deadline * (1 - AGGREGATION_SHARE),
        )

        combined = combine_recommendations(chain.from_iterable(results_by_strategy.values()))
        top = combined[:limit]

        deadline_elapsed = time.perf_counter() - deadline_started
        if deadline_elapsed > self._request_deadline:
            logger.warning(
                f"Request deadline exceeded for user={user_id}: "
                f"{deadline_elapsed * 1000:.0f}ms > {self._request_deadline * 1000:.0f}ms",
                extra={"user_id": user_id, "elapsed_ms": round(deadline_elapsed * 1000, 2)},
            )

        # Ids that vanished from the candidate set are dropped
        items_by_id = {item.id: item for item in candidates}
        recommendations = [items_by_id[rec.item_id] for rec in top if rec.item_id in items_by_id]

        metadata = RecommendationMetadata(
            total_candidates=len(candidates),
            personalized=personalized,
            algorithms=count_by_strategy(results_by_strategy),
            failed_strategies=failed,
            user_profile=summarize_profile(preference),
            explanations=build_explanations(top, snapshot.features),
        )

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Recommendations served: user={user_id}, items={len(recommendations)}, "
            f"candidates={len(candidates)}, failed={failed}, elapsed_ms={elapsed_ms:.2f}",
            extra={"user_id": user_id, "elapsed_ms": round(elapsed_ms, 2)},
        )
        return RecommendationsResponse(recommendations=recommendations, metadata=metadata)

    async def _run_strategies(
            self,
            strategies: Sequence[RecommendationStrategy],
            context: StrategyContext,
            timeout: float,
    ) -> Tuple[Dict[str, List[RecommendationResult]], List[str]]:
        """
        Run strategies concurrently, giving up on the stragglers after timeout.

        Returns:
            Tuple of (results per strategy name in strategy order, failed names)
        """
        if not strategies:
            return {}, []

        started = time.perf_counter()
        tasks = {
            strategy.name: asyncio.ensure_future(self._run_strategy(strategy, context))
            for strategy in strategies
        }
        done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
        for task in pending:
            task.cancel()

        results: Dict[str, List[RecommendationResult]] = {}
        failed: List[str] = []
        for name, task in tasks.items():
            outcome = task.result() if task in done else None
            if outcome is None:
                if task not in done:
                    logger.warning(f"Strategy {name} missed the request deadline", extra={"strategy": name})
                    record_strategy_outcome(name, "deadline", time.perf_counter() - started)
                failed.append(name)
                outcome = []
            results[name] = outcome
        return results, failed

    async def _run_strategy(
            self,
            strategy: RecommendationStrategy,
            context: StrategyContext,
    ) -> Optional[List[RecommendationResult]]:
        """Execute one strategy; None means it failed or timed out."""
        breaker = self._breakers[strategy.name]
        started = time.perf_counter()
        with tracer.start_as_current_span(f"strategy.{strategy.name}") as span:
            try:
                results = await asyncio.wait_for(
                    asyncio.to_thread(breaker.call, lambda: strategy.recommend(context)),
                    timeout=self._strategy_timeout,
                )
            except asyncio.TimeoutError:
                outcome = "timeout"
                logger.warning(
                    f"Strategy {strategy.name} timed out after {self._strategy_timeout * 1000:.0f}ms",
                    extra={"strategy": strategy.name, "user_id": context.user_id},
                )
                results = None
            except CircuitBreakerOpenError as e:
                outcome = "circuit_open"
                logger.warning(
                    f"Strategy {strategy.name} skipped, circuit open "
                    f"(retry in {e.details['retry_in_sec']}s)",
                    extra={"strategy": strategy.name},
                )
                results = None
            except Exception as e:
                outcome = "error"
                logger.exception(
                    f"Strategy {strategy.name} failed: {e}",
                    extra={"strategy": strategy.name, "user_id": context.user_id},
                )
                results = None
            else:
                outcome = "ok"
                span.set_attribute("recommendation.results", len(results))

            span.set_attribute("recommendation.outcome", outcome)
            record_strategy_outcome(strategy.name, outcome, time.perf_counter() - started)
            return results

    # =========================================================================
    # Item and catalog lookups
    # =========================================================================

    async def get_similar_videos(self, item_id: str, limit: int = 5) -> List[VideoItem]:
        """
        Items most similar to the target, never including the target.
        Unknown targets yield an empty list.
        """
        self._validate_limit(limit)
        try:
            target = await self._catalog.get_item(item_id)
        except Exception as e:
            raise ServiceUnavailableError("catalog_store", str(e)) from e
        if target is None:
            return []

        catalog = await self._freshness.load_catalog()
        scored = [
            (video_similarity(target, video), video)
            for video in catalog
            if video.id != item_id
        ]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [video for _, video in scored[:limit]]

    async def get_videos_by_category(
            self,
            category: str,
            user_id: Optional[str] = None,
            limit: int = 10,
    ) -> List[VideoItem]:
        """
        Most viewed items in a category, re-ranked by content match when a
        user is given (watched items removed).
        """
        self._validate_limit(limit)
        catalog = await self._freshness.load_catalog()
        videos = sorted(
            (video for video in catalog if video.category == category),
            key=lambda v: (v.view_count, v.created_at),
            reverse=True,
        )[: limit * 2]

        if not user_id or not self._feature_flags.is_personalization_enabled(user_id):
            return videos[:limit]

        preference, watched_ids = await asyncio.gather(
            self._freshness.get_preference(user_id, catalog),
            self._get_watched_ids(user_id),
        )
        unwatched = [video for video in videos if video.id not in watched_ids]
        unwatched.sort(key=lambda v: personalization_score(v, preference), reverse=True)
        return unwatched[:limit]

    async def get_trending_videos(self, limit: int = 10, timeframe: str = "week") -> List[VideoItem]:
        """Items created within the timeframe, most viewed first."""
        self._validate_limit(limit)
        if timeframe not in TIMEFRAME_DAYS:
            raise UnknownOptionError("timeframe", timeframe, sorted(TIMEFRAME_DAYS))

        window = TrendingStrategy(window_days=TIMEFRAME_DAYS[timeframe])
        now = self._freshness.now()
        catalog = await self._freshness.load_catalog()
        recent = [video for video in catalog if window.in_window(video, now)]
        recent.sort(key=lambda v: v.view_count, reverse=True)
        return recent[:limit]

    # =========================================================================
    # Discovery and learning paths
    # =========================================================================

    async def discover_videos(self, user_id: str, limit: int = 15) -> DiscoverResponse:
        """
        Diversified recommendations.

        Draws 2*limit ranked recommendations, then fills: one item per new
        category up to half the slots, then items from new instructors, then
        anything left, keeping ranking order within each pass.
        """
        self._validate_limit(limit)
        response = await self._recommend(user_id, limit * 2, exclude_watched=True)
        ranked = response.recommendations

        chosen: List[VideoItem] = []
        chosen_ids: Set[str] = set()
        used_categories: Set[Optional[str]] = set()
        used_instructors: Set[str] = set()

        def take(video: VideoItem) -> None:
            chosen.append(video)
            chosen_ids.add(video.id)
            used_categories.add(video.category)
            if video.uploader_id:
                used_instructors.add(video.uploader_id)

        for video in ranked:
            if len(chosen) >= limit / 2:
                break
            if video.category not in used_categories:
                take(video)

        for video in ranked:
            if len(chosen) >= limit:
                break
            if video.id in chosen_ids:
                continue
            if not video.uploader_id or video.uploader_id not in used_instructors:
                take(video)

        for video in ranked:
            if len(chosen) >= limit:
                break
            if video.id not in chosen_ids:
                take(video)

        metadata = DiscoveryMetadata(
            **response.metadata.model_dump(),
            category_diversity=len(used_categories),
            instructor_diversity=len(used_instructors),
        )
        return DiscoverResponse(videos=chosen[:limit], metadata=metadata)

    async def get_learning_path(
            self,
            user_id: str,
            subject: Optional[str] = None,
            difficulty: Optional[str] = None,
    ) -> LearningPathResponse:
        """
        Ordered learning path for a user, optionally focused on a subject
        (category or tag substring) and a difficulty level.
        """
        if difficulty is not None and difficulty not in DIFFICULTY_LEVELS:
            raise UnknownOptionError("difficulty", difficulty, list(DIFFICULTY_LEVELS))

        catalog = await self._freshness.load_catalog()
        preference = await self._freshness.get_preference(user_id, catalog)

        candidates = catalog
        if subject:
            needle = subject.lower()
            candidates = [
                video for video in candidates
                if (video.category and needle in video.category.lower())
                or any(needle in tag.lower() for tag in video.tags)
            ]
        if difficulty:
            candidates = [video for video in candidates if video.difficulty == difficulty]

        # New learners start at level 1 rather than getting an empty path
        strategy = LearningPathStrategy(skip_cold_start=False)
        results = strategy.recommend(
            StrategyContext(
                user_id=user_id,
                candidates=tuple(candidates),
                preference=preference,
                now=self._freshness.now(),
            )
        )
        results.sort(key=lambda r: r.score, reverse=True)

        items_by_id = {video.id: video for video in candidates}
        path = [items_by_id[r.item_id] for r in results if r.item_id in items_by_id]

        return LearningPathResponse(
            learning_path=path,
            metadata=LearningPathMetadata(
                total_videos=len(path),
                subject=subject,
                difficulty=difficulty,
                estimated_duration=sum(video.duration for video in path),
            ),
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_watched_ids(self, user_id: str) -> FrozenSet[str]:
        try:
            return frozenset(await self._history.get_watched_ids(user_id))
        except Exception as e:
            logger.error(f"Watch history store failed for user={user_id}: {e}")
            raise ServiceUnavailableError("watch_history_store", str(e)) from e

    async def _get_co_watch(self, user_id: str) -> Dict[str, FrozenSet[str]]:
        try:
            all_watched = await self._history.get_all_watched()
        except Exception as e:
            logger.error(f"Watch history store failed loading co-watch data: {e}")
            raise ServiceUnavailableError("watch_history_store", str(e)) from e
        return {
            other: frozenset(watched)
            for other, watched in all_watched.items()
            if other != user_id
        }

    def _trending_strategy(self) -> RecommendationStrategy:
        return self._find_strategy(StrategyType.TRENDING) or TrendingStrategy()

    def _find_strategy(self, strategy_type: StrategyType) -> Optional[RecommendationStrategy]:
        for strategy in self._strategies:
            if strategy.strategy_type == strategy_type:
                return strategy
        return None

    def _validate_limit(self, limit: int) -> None:
        if limit < 1 or limit > self._max_limit:
            raise LimitOutOfRangeError(limit, self._max_limit)


async def _empty_co_watch() -> Dict[str, FrozenSet[str]]:
    return {}
