"""
Bounded in-memory escrow cache.

TTL expiry on read, least-useful eviction on write, and a periodic sweep
that drops expired entries between reads. Memory-resident only: contents
are lost on restart.
"""

import asyncio
import dataclasses
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from cachetools import Cache

from greffier.infrastructure.monitoring import metrics

logger = logging.getLogger(__name__)

# Integers outside a signed 64-bit word are stored as decimal strings
MAX_SAFE_INT = 2**63 - 1
MIN_SAFE_INT = -(2**63)

EVICTION_FRACTION = 0.1


def make_serializable(value: Any) -> Any:
    """
    Replace oversized integers with decimal strings, recursively.

    Walks lists, tuples, dicts and dataclass instances. Containers are
    rebuilt only when something inside them changed.

    Args:
        value: Value to normalize

    Returns:
        Normalized value
    """
    if isinstance(value, bool):
        return value

    if isinstance(value, int):
        if value > MAX_SAFE_INT or value < MIN_SAFE_INT:
            return str(value)
        return value

    if isinstance(value, dict):
        return {key: make_serializable(item) for key, item in value.items()}

    if isinstance(value, list):
        return [make_serializable(item) for item in value]

    if isinstance(value, tuple):
        return tuple(make_serializable(item) for item in value)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        changes = {}
        for f in dataclasses.fields(value):
            if not f.init:
                continue
            current = getattr(value, f.name)
            normalized = make_serializable(current)
            if normalized is not current:
                changes[f.name] = normalized
        return dataclasses.replace(value, **changes) if changes else value

    return value


@dataclass
class CacheEntry:
    """Cached value with bookkeeping for expiry and eviction ranking."""

    value: Any
    timestamp: float
    access_count: int = 0


class BoundedCache:
    """
    Key/value cache with time-based expiry and size-bounded eviction.

    Behavior:
    - get() drops and misses entries older than expiration_time
    - set() evicts ~10% of entries, least accessed then oldest first,
      once the cache is full
    - set() normalizes values before storing and never raises
    - A background sweeper removes expired entries every sweep_interval

    Example:
        cache = BoundedCache(max_size=200, expiration_time=300)
        cache.set("escrow-7", record)
        cache.get("escrow-7")
    """

    def __init__(
        self,
        max_size: int = 200,
        expiration_time: float = 300.0,
        sweep_interval: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize bounded cache.

        Args:
            max_size: Maximum number of entries
            expiration_time: Entry TTL in seconds
            sweep_interval: Seconds between background sweeps
            clock: Monotonic time source
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self.max_size = max_size
        self.expiration_time = expiration_time
        self.sweep_interval = sweep_interval
        self._clock = clock

        # Backing store refuses to grow past max_size on its own
        self._entries: Cache = Cache(maxsize=max_size)
        self._sweeper: Optional[asyncio.Task] = None

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.timestamp > self.expiration_time

    def get(self, key: Hashable) -> Optional[Any]:
        """
        Get value by key.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if absent or expired
        """
        entry = self._entries.get(key)
        if entry is None:
            metrics.cache_misses_total.inc()
            return None

        if self._is_expired(entry, self._clock()):
            self._remove(key, reason="expired")
            metrics.cache_misses_total.inc()
            return None

        entry.access_count += 1
        metrics.cache_hits_total.inc()
        return entry.value

    def set(self, key: Hashable, value: Any) -> Any:
        """
        Store value under key.

        Args:
            key: Cache key
            value: Value to cache

        Returns:
            The value as stored (normalized when possible)
        """
        try:
            if key not in self._entries and self.size() >= self.max_size:
                self._evict_least_used()

            try:
                stored = make_serializable(value)
            except Exception as e:
                logger.debug(f"Cache value normalization failed for {key}: {e}")
                stored = value

            self._entries[key] = CacheEntry(value=stored, timestamp=self._clock())
            metrics.cache_size.set(self.size())
            return stored
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            return value

    def delete(self, key: Hashable) -> None:
        """Remove key if present."""
        self._remove(key, reason="deleted")

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()
        metrics.cache_size.set(0)

    def size(self) -> int:
        """Number of entries currently held (expired ones included)."""
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return self.size()

    def _remove(self, key: Hashable, reason: str) -> None:
        if self._entries.pop(key, None) is not None:
            metrics.cache_evictions_total.labels(reason=reason).inc()
            metrics.cache_size.set(self.size())

    def _evict_least_used(self) -> int:
        """
        Evict ~10% of entries by ascending (access_count, timestamp).

        Returns:
            Number of entries evicted
        """
        if not self._entries:
            return 0

        to_remove = max(1, math.floor(self.size() * EVICTION_FRACTION))
        ranked = sorted(
            self._entries.items(),
            key=lambda item: (item[1].access_count, item[1].timestamp),
        )
        for key, _ in ranked[:to_remove]:
            self._remove(key, reason="capacity")

        logger.debug(f"Cache full: evicted {to_remove} least used entries")
        return to_remove

    def sweep_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items() if self._is_expired(entry, now)
        ]
        for key in expired:
            self._remove(key, reason="expired")

        if expired:
            logger.debug(f"Cache cleanup: removed {len(expired)} expired entries")
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep_expired()

    def start_sweeper(self) -> asyncio.Task:
        """
        Start the periodic sweep on the running event loop.

        Safe to call more than once; a single sweeper runs per cache.
        """
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(
                self._sweep_loop(), name="greffier-cache-sweeper"
            )
        return self._sweeper

    async def stop_sweeper(self) -> None:
        """Stop the periodic sweep. Safe to call multiple times."""
        if self._sweeper is None:
            return

        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    @property
    def sweeper_running(self) -> bool:
        """True while the background sweep task is alive."""
        return self._sweeper is not None and not self._sweeper.done()

    def get_stats(self) -> dict:
        """
        Get cache statistics.

        Returns:
            Dict with size and configuration
        """
        return {
            "size": self.size(),
            "max_size": self.max_size,
            "expiration_time": self.expiration_time,
            "sweep_interval": self.sweep_interval,
        }
