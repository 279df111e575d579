"""
Generic in-memory cache with TTL support.
Thread-safe for synchronous access and single-flight for async recomputation.
Can be replaced with Redis adapter for production.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Awaitable, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]


class CacheInterface(ABC, Generic[T]):
    """Abstract interface for cache implementations."""

    @abstractmethod
    def get(self, key: str) -> Optional[T]:
        """Get value by key, returns None if not found or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: T, ttl_seconds: Optional[float] = None) -> None:
        """Set value with optional TTL."""
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete key, returns True if existed."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all entries."""
        pass

    @abstractmethod
    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[float] = None,
        validator: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """Get value or compute it once, even under concurrent misses."""
        pass


class CacheEntry(Generic[T]):
    """Single cache entry with expiration tracking."""

    def __init__(self, value: T, expires_at: Optional[float]) -> None:
        self.value = value
        self.expires_at = expires_at

    def is_expired(self, now: float) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class InMemoryCache(CacheInterface[T]):
    """
    In-memory cache with TTL support and an injectable clock.

    Usage:
        cache: CacheInterface[UserPreference] = InMemoryCache(default_ttl_seconds=1800)
        preference = await cache.get_or_compute("user_123", lambda: profile("user_123"))
    """

    def __init__(
        self,
        default_ttl_seconds: Optional[float] = None,
        clock: Clock = time.time,
    ) -> None:
        self._store: Dict[str, CacheEntry[T]] = {}
        self._inflight: Dict[str, "asyncio.Task[T]"] = {}
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._lock = Lock()

    def get(self, key: str) -> Optional[T]:
        """Get value by key, returns None if not found or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._store[key]
                return None
            return entry.value

    def set(self, key: str, value: T, ttl_seconds: Optional[float] = None) -> None:
        """Set value with optional TTL."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl
        expires_at = self._clock() + ttl if ttl else None
        with self._lock:
            self._store[key] = CacheEntry(value, expires_at)

    def delete(self, key: str) -> bool:
        """Delete key, returns True if existed."""
        with self._lock:
            if key in self._store:
                del self._store[key]
                return True
            return False

    def clear(self) -> None:
        """Clear all entries."""
        with self._lock:
            self._store.clear()

    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[float] = None,
        validator: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """
        Get value or compute and cache it if missing.

        Concurrent callers missing the same key share one in-flight
        computation. Cached values rejected by ``validator`` are dropped
        and treated as misses.

        Args:
            key: Cache key
            factory: Coroutine function producing the value
            ttl_seconds: TTL override for the stored value
            validator: Optional predicate a cached value must satisfy

        Returns:
            Cached or freshly computed value
        """
        value = self.get(key)
        if value is not None:
            if validator is None or validator(value):
                return value
            self.delete(key)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute(key, factory, ttl_seconds))
            self._inflight[key] = task

        # Shield so one cancelled waiter does not abort the shared computation
        return await asyncio.shield(task)

    async def _compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        ttl_seconds: Optional[float],
    ) -> T:
        try:
            value = await factory()
            self.set(key, value, ttl_seconds)
            return value
        finally:
            self._inflight.pop(key, None)

    def is_computing(self, key: str) -> bool:
        """Return True while a computation for key is in flight."""
        return key in self._inflight

    def size(self) -> int:
        """Return number of entries (including possibly expired)."""
        with self._lock:
            return len(self._store)

    def cleanup_expired(self) -> int:
        """Remove expired entries, return count removed."""
        now = self._clock()
        with self._lock:
            expired_keys = [
                k for k, v in self._store.items() if v.is_expired(now)
            ]
            for key in expired_keys:
                del self._store[key]
        return len(expired_keys)
