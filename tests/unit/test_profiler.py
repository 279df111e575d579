import pytest

from recommender.models.schemas import VideoItem, WatchEntry
from recommender.services.profiler import PreferenceProfiler, instructor_name

NOW = 1_700_000_000.0


@pytest.fixture
def items_by_id():
    items = [
        VideoItem(id="a", category="programming", tags=["python", "api"], difficulty="beginner",
                  duration=600, created_at=NOW, uploader_name="Ada Lovelace"),
        VideoItem(id="b", category="programming", tags=["python"], difficulty="intermediate",
                  duration=1200, created_at=NOW, uploader_name="Ada Lovelace"),
        VideoItem(id="c", category="design", tags=[], duration=300, created_at=NOW),
    ]
    return {item.id: item for item in items}


class TestPreferenceProfiler:
    def test_frequency_maps_count_watched_items(self, items_by_id):
        history = [
            WatchEntry(user_id="u", video_id="a", completed=True, watch_time=600),
            WatchEntry(user_id="u", video_id="b", completed=False, watch_time=300),
            WatchEntry(user_id="u", video_id="c", completed=True, watch_time=300),
        ]
        pref = PreferenceProfiler().build("u", history, items_by_id, NOW)

        assert pref.categories == {"programming": 2, "design": 1}
        assert pref.tags == {"python": 2, "api": 1}
        assert pref.difficulties == {"beginner": 1, "intermediate": 1}
        assert pref.instructors == {"Ada Lovelace": 2}
        assert pref.video_count == 3
        assert pref.last_computed == NOW

    def test_behavioral_scalars(self, items_by_id):
        history = [
            WatchEntry(user_id="u", video_id="a", completed=True, watch_time=600),
            WatchEntry(user_id="u", video_id="b", completed=False, watch_time=200),
        ]
        pref = PreferenceProfiler().build("u", history, items_by_id, NOW)

        assert pref.avg_watch_time == 400
        assert pref.completion_rate == 0.5
        assert pref.preferred_duration == 900

    def test_cold_start(self, items_by_id):
        pref = PreferenceProfiler().build("new_user", [], items_by_id, NOW)

        assert pref.is_cold_start
        assert pref.categories == {}
        assert pref.avg_watch_time == 0
        assert pref.completion_rate == 0
        assert pref.preferred_duration == 0

    def test_entries_without_catalog_item_are_skipped(self, items_by_id):
        history = [
            WatchEntry(user_id="u", video_id="a", completed=True, watch_time=600),
            WatchEntry(user_id="u", video_id="gone", completed=True, watch_time=9999),
        ]
        pref = PreferenceProfiler().build("u", history, items_by_id, NOW)

        assert pref.video_count == 1
        assert pref.avg_watch_time == 600
        assert pref.completion_rate == 1.0

    def test_only_unresolved_history_is_cold_start(self, items_by_id):
        history = [WatchEntry(user_id="u", video_id="gone", completed=True, watch_time=10)]
        assert PreferenceProfiler().build("u", history, items_by_id, NOW).is_cold_start


def test_instructor_name_requires_display_name():
    assert instructor_name(VideoItem(id="x", created_at=NOW, uploader_id="i1")) is None
    assert instructor_name(VideoItem(id="x", created_at=NOW, uploader_name="Grace")) == "Grace"
