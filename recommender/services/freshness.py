"""
Cache/freshness manager.
Owns the derived state of the engine: the catalog feature snapshot and the
per-user preference profiles. Each cache tracks its own TTL and recomputes
lazily, once per key, when a request finds it stale.
"""
import asyncio
import logging
import time
from typing import Dict, List, Optional

from recommender.core.cache import Clock, InMemoryCache
from recommender.core.exceptions import ServiceUnavailableError
from recommender.core.metrics import cache_rebuilds_total
from recommender.core.telemetry import get_tracer
from recommender.models.interfaces import CatalogStore, UserDirectory, WatchHistoryStore
from recommender.models.schemas import (
    FeatureSnapshot,
    UserPreference,
    VideoFeatures,
    VideoItem,
)
from recommender.services.features import FeatureExtractor
from recommender.services.profiler import PreferenceProfiler

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


class FreshnessManager:
    """
    Time-bounded caches for VideoFeatures and UserPreference.

    The feature snapshot is rebuilt in bulk for the whole catalog when older
    than ``feature_ttl_sec``. Preferences expire per user after
    ``preference_ttl_sec``; a feature rebuild leaves them untouched.
    """

    FEATURES_KEY = "catalog_features"

    def __init__(
        self,
        catalog: CatalogStore,
        history: WatchHistoryStore,
        directory: Optional[UserDirectory] = None,
        extractor: Optional[FeatureExtractor] = None,
        profiler: Optional[PreferenceProfiler] = None,
        feature_ttl_sec: float = 1800,
        preference_ttl_sec: float = 1800,
        clock: Clock = time.time,
    ) -> None:
        self._catalog = catalog
        self._history = history
        self._directory = directory
        self._extractor = extractor or FeatureExtractor()
        self._profiler = profiler or PreferenceProfiler()
        self._clock = clock

        self._features: InMemoryCache[FeatureSnapshot] = InMemoryCache(feature_ttl_sec, clock)
        self._preferences: InMemoryCache[UserPreference] = InMemoryCache(preference_ttl_sec, clock)
        # Unknown names are cached as "" so they are not looked up every request
        self._display_names: InMemoryCache[str] = InMemoryCache(preference_ttl_sec, clock)

        self.feature_refreshes = 0
        self.preference_computations = 0

    def now(self) -> float:
        """Current time according to the injected clock."""
        return self._clock()

    # -------------------------------------------------------------------------
    # Catalog (never cached)
    # -------------------------------------------------------------------------

    async def load_catalog(self) -> List[VideoItem]:
        """
        Fetch ready + public items with instructor names resolved.

        Raises:
            ServiceUnavailableError: If the catalog store fails
        """
        try:
            items = await self._catalog.list_ready_public_items()
        except Exception as e:
            logger.error(f"Catalog store failed: {e}")
            raise ServiceUnavailableError("catalog_store", str(e)) from e
        return await self._resolve_instructors(items)

    async def _resolve_instructors(self, items: List[VideoItem]) -> List[VideoItem]:
        if self._directory is None:
            return items

        missing = sorted({
            item.uploader_id for item in items
            if item.uploader_id and not item.uploader_name
        })
        if not missing:
            return items

        names = dict(zip(
            missing,
            await asyncio.gather(*(self._display_name(uid) for uid in missing)),
        ))
        return [
            item.model_copy(update={"uploader_name": names[item.uploader_id]})
            if item.uploader_id in names and names[item.uploader_id] and not item.uploader_name
            else item
            for item in items
        ]

    async def _display_name(self, user_id: str) -> str:
        async def lookup() -> str:
            try:
                return await self._directory.get_display_name(user_id) or ""
            except Exception as e:
                # Names only feed explanation text, a lookup failure is not fatal
                logger.warning(f"Display name lookup failed for user={user_id}: {e}")
                return ""

        return await self._display_names.get_or_compute(user_id, lookup)

    # -------------------------------------------------------------------------
    # Feature cache
    # -------------------------------------------------------------------------

    async def get_feature_snapshot(self) -> FeatureSnapshot:
        """Return the catalog feature snapshot, rebuilding it when stale."""
        return await self._features.get_or_compute(
            self.FEATURES_KEY,
            self._rebuild_features,
            validator=lambda snapshot: isinstance(snapshot, FeatureSnapshot),
        )

    async def get_features(self, item_id: str) -> Optional[VideoFeatures]:
        """Cached features for one item, None if the item is not in the snapshot."""
        snapshot = await self.get_feature_snapshot()
        return snapshot.features.get(item_id)

    async def _rebuild_features(self) -> FeatureSnapshot:
        with tracer.start_as_current_span("features.rebuild"):
            items = await self.load_catalog()
            now = self._clock()
            categories, tags, features = self._extractor.extract_all(items, now)
            self.feature_refreshes += 1
            cache_rebuilds_total.labels(cache="features").inc()
            logger.info(
                f"Rebuilt feature cache for {len(features)} videos "
                f"({len(categories)} categories, {len(tags)} tags)"
            )
            return FeatureSnapshot(
                categories=categories,
                tags=tags,
                features={f.id: f for f in features},
                computed_at=now,
            )

    # -------------------------------------------------------------------------
    # Preference cache
    # -------------------------------------------------------------------------

    async def get_preference(
        self,
        user_id: str,
        catalog: Optional[List[VideoItem]] = None,
    ) -> UserPreference:
        """
        Return the user's preference profile, computing it on a miss.

        Args:
            user_id: User identifier
            catalog: Already-loaded catalog to join history against
        """
        return await self._preferences.get_or_compute(
            user_id,
            lambda: self._compute_preference(user_id, catalog),
            validator=lambda pref: pref.user_id == user_id,
        )

    async def _compute_preference(
        self,
        user_id: str,
        catalog: Optional[List[VideoItem]],
    ) -> UserPreference:
        try:
            history = await self._history.get_history(user_id)
        except Exception as e:
            logger.error(f"Watch history store failed for user={user_id}: {e}")
            raise ServiceUnavailableError("watch_history_store", str(e)) from e

        if catalog is None:
            catalog = await self.load_catalog()
        items_by_id: Dict[str, VideoItem] = {item.id: item for item in catalog}

        # Watched items may have left the public catalog since
        missing = {e.video_id for e in history if e.video_id not in items_by_id}
        if missing:
            try:
                fetched = await asyncio.gather(*(self._catalog.get_item(vid) for vid in missing))
            except Exception as e:
                raise ServiceUnavailableError("catalog_store", str(e)) from e
            resolved = await self._resolve_instructors([item for item in fetched if item])
            items_by_id.update((item.id, item) for item in resolved)

        preference = self._profiler.build(user_id, history, items_by_id, self._clock())
        self.preference_computations += 1
        cache_rebuilds_total.labels(cache="preferences").inc()
        logger.debug(
            f"Computed preferences for user={user_id}: videos={preference.video_count}"
        )
        return preference

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def refresh(self) -> FeatureSnapshot:
        """Force a bulk feature rebuild."""
        self._features.delete(self.FEATURES_KEY)
        return await self.get_feature_snapshot()

    def invalidate(self, user_id: Optional[str] = None) -> None:
        """Drop one user's preferences, or every cached entry when no user is given."""
        if user_id is not None:
            self._preferences.delete(user_id)
            return
        self._features.clear()
        self._preferences.clear()
        self._display_names.clear()

    def stats(self) -> Dict[str, int]:
        """Cache counters for readiness checks."""
        return {
            "feature_refreshes": self.feature_refreshes,
            "preference_computations": self.preference_computations,
            "cached_preferences": self._preferences.size(),
        }
