"""
In-memory cache manager with Time-To-Live (TTL) and LRU eviction.
"""
import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from crypto_advisor.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the clock reading at which it was stored."""
    value: Any
    stored_at: float


class CacheManager:
    """
    A bounded in-memory cache with Time-To-Live (TTL) support.

    Every gateway and engine owns one instance with its own TTL. Staleness is
    checked lazily on read; once more than `max_entries` keys are held, the
    least recently used entry is evicted. Entries are replaced wholesale,
    never updated in place.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_entries: int = 256,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ):
        """
        Initializes the cache.

        Args:
            ttl_seconds: Maximum age at which an entry is still served.
            max_entries: Capacity before least-recently-used eviction.
            clock: Monotonic time source in seconds (injectable for tests).
            name: Label used in log events.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self.name = name
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        # Locks exist only while a fetch for the key is in flight or awaited
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.stored_at < self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        """
        Retrieves an item from the cache if it exists and has not expired.

        Args:
            key: The key of the item to retrieve.

        Returns:
            The cached item, or None if it is not found or has expired.
        """
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("Cache MISS", cache=self.name, cache_key=key)
            return None

        if not self._is_fresh(entry):
            del self._entries[key]
            logger.debug("Cache EXPIRED", cache=self.name, cache_key=key)
            return None

        self._entries.move_to_end(key)
        logger.debug("Cache HIT", cache=self.name, cache_key=key)
        return entry.value

    def set(self, key: str, value: Any) -> None:
        """
        Stores an item, replacing any previous entry for the key.

        Args:
            key: The key to store the item under.
            value: The item to store.
        """
        if self.ttl_seconds <= 0:
            return  # Do not cache if TTL is non-positive

        self._entries[key] = CacheEntry(value=value, stored_at=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted_key, _ = self._entries.popitem(last=False)
            logger.debug("Cache EVICTED", cache=self.name, cache_key=evicted_key)

    async def get_or_fetch(self, key: str, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """
        Returns the cached value for `key`, fetching and storing it on a miss.

        The read-check-fetch-write sequence is serialized per key, so callers
        racing on the same missing key trigger a single fetch. Exceptions from
        the fetcher propagate and nothing is stored.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        lock = self._acquire_lock(key)
        try:
            async with lock:
                cached = self.get(key)
                if cached is not None:
                    return cached
                value = await fetcher()
                self.set(key, value)
                return value
        finally:
            self._release_lock(key)

    def _acquire_lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        return lock

    def _release_lock(self, key: str) -> None:
        users = self._lock_users[key] - 1
        if users:
            self._lock_users[key] = users
        else:
            del self._lock_users[key]
            del self._locks[key]

    def clear(self) -> None:
        """Clears all items from the cache."""
        self._entries.clear()
        logger.info("Cache CLEARED", cache=self.name)
