"""
Collaborator interfaces (abstractions).
Using Protocol for structural subtyping (duck typing with type hints).
These define the contracts the catalog, watch history and user directory
implementations must follow; the engine never talks to storage directly.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Protocol, Set, runtime_checkable

from recommender.models.schemas import VideoItem, WatchEntry


@runtime_checkable
class CatalogStore(Protocol):
    """
    Interface for catalog access.
    Production: Postgres-backed video repository.
    Testing: In-memory mock implementation.
    """

    async def list_ready_public_items(self) -> List[VideoItem]:
        """
        Fetch every item that is ready for playback and publicly visible.

        Returns:
            List of catalog items (may be empty)
        """
        ...

    async def get_item(self, item_id: str) -> Optional[VideoItem]:
        """
        Fetch a single item regardless of status.

        Args:
            item_id: Video identifier

        Returns:
            VideoItem if found, None otherwise
        """
        ...


@runtime_checkable
class WatchHistoryStore(Protocol):
    """
    Interface for watch-progress data access.
    Production: Postgres video_progress table.
    Testing: In-memory mock implementation.
    """

    async def get_history(self, user_id: str) -> List[WatchEntry]:
        """
        Fetch all watch entries for a user.

        Args:
            user_id: User identifier

        Returns:
            Watch entries, empty for cold-start users
        """
        ...

    async def get_watched_ids(self, user_id: str) -> List[str]:
        """Fetch ids of every video the user has progress on."""
        ...

    async def get_all_watched(self) -> Dict[str, Set[str]]:
        """
        Fetch the co-watch matrix.

        Returns:
            Mapping of user id to the set of video ids that user watched
        """
        ...


@runtime_checkable
class UserDirectory(Protocol):
    """
    Interface for user display-name lookups.
    Production: users table / identity service.
    Testing: In-memory mock implementation.
    """

    async def get_display_name(self, user_id: str) -> Optional[str]:
        """Resolve a user id to a display name, None if unknown."""
        ...


class EngagementScorer(ABC):
    """
    Pluggable engagement metric for the feature extractor.
    Implementations must be deterministic and return a value in [0, 1].
    """

    @abstractmethod
    def score(self, item: VideoItem) -> float:
        """
        Compute an engagement score for an item.

        Args:
            item: Catalog item

        Returns:
            Engagement score in [0, 1]
        """
        pass


class FeatureFlagService(ABC):
    """
    Abstract base class for feature flag evaluation.
    Supports kill switch and gradual rollout.
    """

    @abstractmethod
    def is_personalization_enabled(self, user_id: str) -> bool:
        """
        Check if personalization is enabled for this request.

        Args:
            user_id: User identifier for percentage rollout

        Returns:
            True if personalized strategies should run
        """
        pass

    @abstractmethod
    def is_kill_switch_active(self) -> bool:
        """
        Check if global kill switch is activated.

        Returns:
            True if all personalization should be disabled
        """
        pass

    @abstractmethod
    def disabled_reason(self, user_id: str) -> Optional[str]:
        """
        Explain why personalization is off for this user.

        Returns:
            A short reason label, or None when personalization is enabled
        """
        pass
