"""
In-memory collaborator implementations.
Used for prototyping and testing.
Production would replace these with Postgres-backed implementations.
"""
import time
from typing import Dict, List, Optional, Set

from recommender.core.cache import Clock
from recommender.models.schemas import VideoItem, WatchEntry

DAY = 86400


class InMemoryCatalogStore:
    """
    In-memory implementation of CatalogStore.
    Simulates the video table.
    """

    def __init__(self, seed: bool = True, clock: Clock = time.time) -> None:
        self._items: Dict[str, VideoItem] = {}
        if seed:
            self._initialize_mock_data(clock())

    def _initialize_mock_data(self, now: float) -> None:
        """Load mock catalog for testing."""
        mock_items = [
            VideoItem(
                id="v1", title="Python Basics", category="programming",
                tags=["python", "backend"], difficulty="beginner", duration=600,
                view_count=1500, like_count=120, comment_count=30,
                created_at=now - 2 * DAY, uploader_id="i_ada",
                stream_resolutions=["480p", "1080p"],
            ),
            VideoItem(
                id="v2", title="Async Python in Depth", category="programming",
                tags=["python", "asyncio"], difficulty="intermediate", duration=1200,
                view_count=640, like_count=80, comment_count=12,
                created_at=now - 20 * DAY, uploader_id="i_ada",
                stream_resolutions=["720p"],
            ),
            VideoItem(
                id="v3", title="REST APIs with FastAPI", category="programming",
                tags=["python", "api", "backend"], difficulty="intermediate", duration=900,
                view_count=90, like_count=10, comment_count=3,
                created_at=now - 1 * DAY, uploader_id="i_linus",
                stream_resolutions=["480p"],
            ),
            VideoItem(
                id="v4", title="Color Theory", category="design",
                tags=["ui", "color"], difficulty="beginner", duration=480,
                view_count=300, like_count=25, comment_count=4,
                created_at=now - 3 * DAY, uploader_id="i_grace",
                stream_resolutions=["1080p"],
            ),
            VideoItem(
                id="v5", title="Advanced Figma Prototyping", category="design",
                tags=["ui", "figma"], difficulty="advanced", duration=2400,
                view_count=45, created_at=now - 90 * DAY, uploader_id="i_grace",
            ),
            VideoItem(
                id="v6", title="Pandas for Analysts", category="data-science",
                tags=["python", "pandas"], difficulty="intermediate", duration=1500,
                view_count=2200, like_count=300, comment_count=55,
                created_at=now - 5 * DAY, uploader_id="i_linus",
                stream_resolutions=["720p", "1080p"],
            ),
            VideoItem(
                id="v7", title="Distributed Systems Internals", category="programming",
                tags=["backend", "databases"], difficulty="expert", duration=3600,
                view_count=150, created_at=now - 400 * DAY, uploader_id="i_ada",
            ),
            VideoItem(
                id="v8", title="Draft: Unreleased Lesson", category="programming",
                tags=["python"], difficulty="beginner", duration=300,
                created_at=now - 1 * DAY, status="processing", is_public=False,
            ),
        ]
        for item in mock_items:
            self._items[item.id] = item

    def add_item(self, item: VideoItem) -> None:
        self._items[item.id] = item

    def remove_item(self, item_id: str) -> None:
        self._items.pop(item_id, None)

    async def list_ready_public_items(self) -> List[VideoItem]:
        """Fetch ready + public items, newest first."""
        items = [
            item for item in self._items.values()
            if item.status == "ready" and item.is_public
        ]
        return sorted(items, key=lambda item: item.created_at, reverse=True)

    async def get_item(self, item_id: str) -> Optional[VideoItem]:
        """Fetch a single item regardless of status."""
        return self._items.get(item_id)


class InMemoryWatchHistoryStore:
    """
    In-memory implementation of WatchHistoryStore.
    Simulates the video progress table.
    """

    def __init__(self, seed: bool = True) -> None:
        self._entries: Dict[str, Dict[str, WatchEntry]] = {}
        if seed:
            self._initialize_mock_data()

    def _initialize_mock_data(self) -> None:
        """Load mock watch progress for testing."""
        mock_entries = [
            WatchEntry(user_id="u_alice", video_id="v1", completed=True, watch_time=600),
            WatchEntry(user_id="u_alice", video_id="v2", completed=True, watch_time=1100),
            WatchEntry(user_id="u_bob", video_id="v1", completed=True, watch_time=580),
            WatchEntry(user_id="u_bob", video_id="v3", completed=False, watch_time=300),
            WatchEntry(user_id="u_bob", video_id="v6", completed=True, watch_time=1500),
            WatchEntry(user_id="u_carol", video_id="v2", completed=True, watch_time=1200),
            WatchEntry(user_id="u_carol", video_id="v3", completed=True, watch_time=900),
            WatchEntry(user_id="u_dave", video_id="v4", completed=False, watch_time=120),
            WatchEntry(user_id="u_dave", video_id="v5", completed=False, watch_time=200),
        ]
        for entry in mock_entries:
            self.record(entry)

    def record(self, entry: WatchEntry) -> None:
        """Insert or replace the (user, video) progress entry."""
        self._entries.setdefault(entry.user_id, {})[entry.video_id] = entry

    async def get_history(self, user_id: str) -> List[WatchEntry]:
        return list(self._entries.get(user_id, {}).values())

    async def get_watched_ids(self, user_id: str) -> List[str]:
        return list(self._entries.get(user_id, {}))

    async def get_all_watched(self) -> Dict[str, Set[str]]:
        return {user_id: set(entries) for user_id, entries in self._entries.items()}


class InMemoryUserDirectory:
    """
    In-memory implementation of UserDirectory.
    Simulates the users table.
    """

    def __init__(self, names: Optional[Dict[str, str]] = None) -> None:
        self._names = dict(names) if names is not None else {
            "i_ada": "Ada Lovelace",
            "i_linus": "Linus Torvalds",
            "i_grace": "Grace Hopper",
        }

    async def get_display_name(self, user_id: str) -> Optional[str]:
        return self._names.get(user_id)
