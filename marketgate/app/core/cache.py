"""Short-lived response cache for upstream payloads.

Successful CoinGlass responses are kept for the revalidation window so that
identical queries arriving inside it are answered without another upstream
call. The cache is process-local and lost on restart.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import asyncio
import time


@dataclass
class _CacheEntry:
    """Internal cache entry with TTL tracking."""

    value: bytes
    expires_at: float | None = None

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (time.time() if now is None else now) > self.expires_at


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the cached value, or None if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int) -> None:
        """Store a value for ``ttl`` seconds. A ttl of 0 disables caching."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a value from the cache."""

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from the cache."""

    @abstractmethod
    async def size(self) -> int:
        """Number of live entries."""


class InMemoryCache(CacheBackend):
    """In-memory cache implementation with TTL support."""

    def __init__(self) -> None:
        self._data: dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._data[key]
                return None
            return entry.value

    async def set(self, key: str, value: bytes, ttl: int) -> None:
        if ttl <= 0:
            return
        async with self._lock:
            self._data[key] = _CacheEntry(value=value, expires_at=time.time() + ttl)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    async def size(self) -> int:
        async with self._lock:
            now = time.time()
            expired = [k for k, entry in self._data.items() if entry.is_expired(now)]
            for key in expired:
                del self._data[key]
            return len(self._data)


_cache: CacheBackend | None = None


def get_cache() -> CacheBackend:
    """Get the process-wide cache instance, creating it on first use."""
    global _cache
    if _cache is None:
        _cache = InMemoryCache()
    return _cache


def reset_cache() -> None:
    """Drop the process-wide cache (used by tests)."""
    global _cache
    _cache = None
