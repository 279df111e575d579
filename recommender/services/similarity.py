"""
Item-to-item similarity used by the similar-videos lookup.
"""
from recommender.models.schemas import VideoItem


def tag_jaccard(a: VideoItem, b: VideoItem) -> float:
    """Jaccard overlap of two items' tag sets, 0 when both are empty."""
    tags_a, tags_b = set(a.tags), set(b.tags)
    union = tags_a | tags_b
    if not union:
        return 0.0
    return len(tags_a & tags_b) / len(union)


def duration_similarity(a: VideoItem, b: VideoItem) -> float:
    longest = max(a.duration, b.duration)
    if longest <= 0:
        return 0.0
    return 1 - abs(a.duration - b.duration) / longest


def video_similarity(a: VideoItem, b: VideoItem) -> float:
    """
    Weighted similarity in [0, 1].

    0.3 same category, 0.4 tag overlap, 0.2 same difficulty, 0.1 duration
    closeness.
    """
    similarity = 0.0
    if a.category is not None and a.category == b.category:
        similarity += 0.3
    similarity += tag_jaccard(a, b) * 0.4
    if a.difficulty is not None and a.difficulty == b.difficulty:
        similarity += 0.2
    similarity += duration_similarity(a, b) * 0.1
    return similarity
