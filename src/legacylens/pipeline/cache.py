"""Content-aware LRU cache for expensive analysis results."""

import hashlib
import json
import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Generic, TypeVar

from legacylens.constants import DEFAULT_CACHE_MAX_SIZE, DEFAULT_CACHE_TTL_MS

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_content_hash(content: str) -> str:
    """Compute SHA-256 hash of content.

    Args:
        content: String content to hash.

    Returns:
        Hex digest of SHA-256 hash.
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _serialize(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with the time it was stored and the hash of its input."""

    data: T
    timestamp: float
    content_hash: str


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of cache occupancy."""

    size: int
    max_size: int
    oldest_entry: datetime | None


class CacheManager(Generic[T]):
    """Caches values by key, invalidating on TTL expiry or content change.

    When no content is supplied to set(), the hash is taken over the
    serialized value instead, which only detects changes to the result and
    not to the input that produced it.
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        max_size: int = DEFAULT_CACHE_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the cache.

        Args:
            ttl_ms: Entry lifetime in milliseconds.
            max_size: Maximum number of entries before LRU eviction.
            clock: Wall clock returning epoch seconds.
        """
        self.ttl_ms = ttl_ms
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        # Least recently used key first
        self._access_order: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: T, content: str | None = None) -> None:
        """Store a value, hashing content if given, else the serialized value."""
        content_hash = compute_content_hash(content if content is not None else _serialize(value))

        if len(self._entries) >= self.max_size and key not in self._entries:
            self._evict_lru()

        self._entries[key] = CacheEntry(data=value, timestamp=self._clock(), content_hash=content_hash)
        self._touch(key)

    def get(self, key: str, content_hash: str | None = None) -> T | None:
        """Return the cached value, or None if absent, expired or stale."""
        entry = self._lookup(key, content_hash)
        return entry.data if entry is not None else None

    def has(self, key: str, content_hash: str | None = None) -> bool:
        """Check if a valid entry exists. Expired or stale entries are evicted."""
        return self._lookup(key, content_hash) is not None

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[T]],
        content: str | None = None,
    ) -> T:
        """Return the cached value for key, computing and storing it on a miss."""
        content_hash = compute_content_hash(content) if content is not None else None
        entry = self._lookup(key, content_hash)
        if entry is not None:
            logger.debug(f"Cache hit: {key}")
            return entry.data

        value = await compute_fn()
        self.set(key, value, content)
        return value

    def invalidate(self, key: str) -> bool:
        """Remove a single entry. Returns True if it existed."""
        if key not in self._entries:
            return False
        self._remove(key)
        return True

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Remove every entry whose key matches the pattern. Returns the count."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        matching = [key for key in self._entries if regex.search(key)]
        for key in matching:
            self._remove(key)
        return len(matching)

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()
        self._access_order.clear()

    def cleanup(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        expired = [key for key, entry in self._entries.items() if self._is_expired(entry)]
        for key in expired:
            self._remove(key)
        if expired:
            logger.debug(f"Cache cleanup removed {len(expired)} expired entries")
        return len(expired)

    def get_stats(self) -> CacheStats:
        """Get cache size, capacity and the age of the oldest entry."""
        oldest = min((entry.timestamp for entry in self._entries.values()), default=None)
        return CacheStats(
            size=len(self._entries),
            max_size=self.max_size,
            oldest_entry=datetime.fromtimestamp(oldest) if oldest is not None else None,
        )

    def _lookup(self, key: str, content_hash: str | None) -> CacheEntry[T] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry):
            self._remove(key)
            return None

        if content_hash is not None and entry.content_hash != content_hash:
            logger.debug(f"Cache entry {key} is stale (content changed)")
            self._remove(key)
            return None

        self._touch(key)
        return entry

    def _is_expired(self, entry: CacheEntry[T]) -> bool:
        return (self._clock() - entry.timestamp) * 1000 > self.ttl_ms

    def _touch(self, key: str) -> None:
        self._access_order[key] = None
        self._access_order.move_to_end(key)

    def _remove(self, key: str) -> None:
        self._entries.pop(key, None)
        self._access_order.pop(key, None)

    def _evict_lru(self) -> None:
        if not self._access_order:
            return
        lru_key = next(iter(self._access_order))
        logger.debug(f"Evicting least recently used cache entry: {lru_key}")
        self._remove(lru_key)
