"""Repository implementations package."""
from .memory import (
    InMemoryCatalogStore,
    InMemoryUserDirectory,
    InMemoryWatchHistoryStore,
)

__all__ = [
    "InMemoryCatalogStore",
    "InMemoryUserDirectory",
    "InMemoryWatchHistoryStore",
]
