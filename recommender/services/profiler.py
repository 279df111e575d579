"""
Preference profiling.
Turns a user's watch history into frequency maps and behavioral scalars.
"""
import logging
from collections import Counter
from typing import Iterable, Mapping, Optional

from recommender.models.schemas import UserPreference, VideoItem, WatchEntry

logger = logging.getLogger(__name__)


def instructor_name(item: VideoItem) -> Optional[str]:
    """Display name used as the instructor key for an item."""
    return item.uploader_name or None


class PreferenceProfiler:
    """Stateless builder of UserPreference records."""

    def build(
        self,
        user_id: str,
        history: Iterable[WatchEntry],
        items_by_id: Mapping[str, VideoItem],
        now: float,
    ) -> UserPreference:
        """
        Build a preference profile from watch history.

        Args:
            user_id: User identifier
            history: Watch entries for the user
            items_by_id: Catalog lookup used to join entries with item attributes
            now: Timestamp recorded as last_computed

        Returns:
            UserPreference; empty maps and zero scalars for cold-start users
        """
        categories: Counter = Counter()
        tags: Counter = Counter()
        difficulties: Counter = Counter()
        instructors: Counter = Counter()

        total_videos = 0
        completed_videos = 0
        total_watch_time = 0.0
        total_duration = 0.0
        skipped = 0

        for entry in history:
            item = items_by_id.get(entry.video_id)
            if item is None:
                skipped += 1
                continue

            total_videos += 1
            total_watch_time += entry.watch_time
            total_duration += item.duration
            if entry.completed:
                completed_videos += 1

            if item.category:
                categories[item.category] += 1
            for tag in item.tags:
                tags[tag] += 1
            if item.difficulty:
                difficulties[item.difficulty] += 1
            name = instructor_name(item)
            if name:
                instructors[name] += 1

        if skipped:
            logger.debug(f"Skipped {skipped} history entries without catalog item for user={user_id}")

        if total_videos == 0:
            return UserPreference(user_id=user_id, last_computed=now)

        return UserPreference(
            user_id=user_id,
            categories=dict(categories),
            tags=dict(tags),
            difficulties=dict(difficulties),
            instructors=dict(instructors),
            avg_watch_time=total_watch_time / total_videos,
            completion_rate=completed_videos / total_videos,
            preferred_duration=total_duration / total_videos,
            video_count=total_videos,
            last_computed=now,
        )
