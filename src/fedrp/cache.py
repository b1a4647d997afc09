"""Expiring record cache and periodic sweeper.

Both the trust validator and the discovery service keep time-boxed records
keyed by OP identifier. This module provides the instance-owned cache they
share the implementation of:

- ``get`` evicts an expired entry lazily when it is read;
- ``sweep`` removes every expired entry and is driven by ``CacheSweeper``,
  an asyncio background task independent of request traffic, so that
  one-shot OPs that are never queried again do not stay in memory.

Reading an entry never extends its expiry. All operations are synchronous:
callers running on one event loop need no locking as long as they do not
await between a read and the matching write.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable, Iterable
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

from fedrp.observability import StructuredLogger, get_logger

V = TypeVar("V")

Clock = Callable[[], float]

# Default TTL in seconds (1 hour)
DEFAULT_TTL = 3600.0

# Default sweep interval in seconds (10 minutes)
DEFAULT_SWEEP_INTERVAL = 600.0

# 0 means unbounded
DEFAULT_MAX_SIZE = 0


class CacheEntry(Generic[V]):
    """Cache entry with TTL expiration.

    Attributes:
        value: Cached value
        created_at: Clock time when the entry was written
        expires_at: Clock time when the entry expires (created_at + ttl)
    """

    __slots__ = ("value", "created_at", "expires_at")

    def __init__(self, value: V, created_at: float, ttl: float) -> None:
        self.value = value
        self.created_at = created_at
        self.expires_at = created_at + ttl

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class CacheStats:
    total_entries: int
    valid_entries: int
    expired_entries: int


class ExpiringCache(Generic[V]):
    """In-memory keyed store of time-boxed records.

    Attributes:
        _entries: OrderedDict mapping key to CacheEntry (insertion/LRU order)
        _default_ttl: Default TTL in seconds
        _max_size: Maximum number of entries (0 for unlimited)
        _clock: Callable returning the current time in seconds

    Example:
        >>> cache: ExpiringCache[str] = ExpiringCache(default_ttl=60.0)
        >>> entry = cache.put("https://op.example.com", "value")
        >>> cache.get("https://op.example.com")
        'value'
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Optional[Clock] = None,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        self._entries: OrderedDict[str, CacheEntry[V]] = OrderedDict()
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock: Clock = clock or time.time

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def now(self) -> float:
        return self._clock()

    def get_entry(self, key: str) -> Optional[CacheEntry[V]]:
        """Return the unexpired entry for ``key``, deleting it if it has expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    def get(self, key: str) -> Optional[V]:
        entry = self.get_entry(key)
        return entry.value if entry is not None else None

    def put(
        self,
        key: str,
        value: V,
        ttl: Optional[float] = None,
        *,
        now: Optional[float] = None,
    ) -> CacheEntry[V]:
        """Write ``value`` under ``key``, replacing any previous entry wholesale.

        Args:
            key: Cache key.
            value: Value to store.
            ttl: Lifetime in seconds; defaults to the cache TTL.
            now: Write time, when the caller has already read the clock.
        """
        if ttl is None:
            ttl = self._default_ttl
        if key in self._entries:
            del self._entries[key]
        elif self._max_size > 0:
            while len(self._entries) >= self._max_size:
                self._entries.popitem(last=False)
        entry = CacheEntry(value, self._clock() if now is None else now, ttl)
        self._entries[key] = entry
        return entry

    def evict(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of expired entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def keys(self) -> list[str]:
        """Return every stored key, including not-yet-swept expired ones."""
        return list(self._entries.keys())

    def stats(self) -> CacheStats:
        now = self._clock()
        expired = sum(1 for entry in self._entries.values() if entry.is_expired(now))
        return CacheStats(
            total_entries=len(self._entries),
            valid_entries=len(self._entries) - expired,
            expired_entries=expired,
        )

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def __len__(self) -> int:
        return len(self._entries)


class CacheSweeper:
    """Background task that periodically sweeps expired entries from caches.

    The task is started explicitly with ``start()`` (a running event loop is
    required) and stopped with ``stop()``; it can also be used as an async
    context manager. Stopping cancels the sleeping task, so it never delays
    process shutdown.

    Example:
        >>> sweeper = CacheSweeper([validation_cache, discovery_cache], interval=600.0)
        >>> sweeper.start()
        >>> ...
        >>> await sweeper.stop()
    """

    def __init__(
        self,
        caches: Iterable[ExpiringCache[Any]],
        interval: float = DEFAULT_SWEEP_INTERVAL,
        *,
        name: str = "cache",
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self._caches = list(caches)
        self._interval = interval
        self._name = name
        self._logger: StructuredLogger = logger or get_logger(__name__)
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def add(self, cache: ExpiringCache[Any]) -> None:
        self._caches.append(cache)

    def sweep_once(self) -> int:
        """Sweep every cache now and return the total number of entries removed."""
        removed = 0
        for cache in self._caches:
            removed += cache.sweep()
        if removed:
            self._logger.info(
                "fedrp.cache.swept",
                sweeper=self._name,
                removed_count=removed,
                remaining_entries=sum(len(c) for c in self._caches),
            )
        return removed

    def start(self) -> None:
        """Start the sweep loop. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._logger.debug("fedrp.cache.sweeper_started", sweeper=self._name, interval=self._interval)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        self._logger.debug("fedrp.cache.sweeper_stopped", sweeper=self._name)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep_once()
            except Exception as e:
                self._logger.warning("fedrp.cache.sweep_error", sweeper=self._name, error=str(e))

    async def __aenter__(self) -> "CacheSweeper":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
