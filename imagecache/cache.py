"""Thread-safe, cost-aware LRU cache used for decoded images and image bytes.

A :class:`BoundedCache` holds at most ``count_limit`` entries whose summed
``cost`` never exceeds ``total_cost_limit``.  Both limits are enforced after
every insert by evicting the least recently used entries.  Per-key access
counts live under the same lock as the entries so that statistics can never
drift from the cache contents: eviction, removal and flushes erase them
together.

The cache is generic over its payload; callers supply the cost of each value
(see :mod:`imagecache.costs`).  The module also exposes factory and
context-manager helpers so an application can keep one default instance at
its composition root without internal code reaching for global state.
"""

from __future__ import annotations

import logging
from collections import Counter, OrderedDict
from contextlib import contextmanager
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from . import config

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")


class InvalidConfiguration(ValueError):
    """Raised when a cache is constructed with non-positive limits."""


@dataclass(slots=True)
class CacheEntry(Generic[V]):
    """A single cached payload and its accounting weight."""

    key: str
    value: V
    cost: int


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Point-in-time snapshot of cache usage."""

    entry_count: int
    count_limit: int
    total_cost: int
    total_cost_limit: int
    hits: int
    misses: int
    evictions: int
    flushes: int

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


def _check_limit(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfiguration(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidConfiguration(f"{name} must be greater than zero, got {value}")
    return value


class BoundedCache(Generic[V]):
    """A count- and cost-bounded LRU cache with access statistics."""

    def __init__(
        self,
        count_limit: int = config.DEFAULT_COUNT_LIMIT,
        total_cost_limit: int = config.DEFAULT_TOTAL_COST_LIMIT,
        *,
        name: str = "image_cache",
    ) -> None:
        self._count_limit = _check_limit("count_limit", count_limit)
        self._total_cost_limit = _check_limit("total_cost_limit", total_cost_limit)
        self.name = name
        self._entries: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()
        # Insertion order doubles as the tie-break for most_accessed().
        self._access_counts: Dict[str, int] = {}
        self._total_cost = 0
        self._metrics: Counter[str] = Counter()
        self._lock = RLock()

    @property
    def count_limit(self) -> int:
        return self._count_limit

    @property
    def total_cost_limit(self) -> int:
        return self._total_cost_limit

    @property
    def total_cost(self) -> int:
        """Summed cost of all live entries."""
        with self._lock:
            return self._total_cost

    def put(self, key: str, value: V, cost: int) -> None:
        """Insert or replace *key*.

        Replacing an entry swaps its cost out before the new cost is added.
        Afterwards least recently used entries are evicted until both limits
        hold.  The inserted entry is only dropped when its own cost exceeds
        ``total_cost_limit``.  Inserting counts as an access.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if cost < 0:
            raise ValueError(f"cost must be non-negative, got {cost}")

        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._total_cost -= previous.cost
            self._entries[key] = CacheEntry(key, value, cost)
            self._total_cost += cost
            self._access_counts[key] = self._access_counts.get(key, 0) + 1
            LOGGER.debug(
                "cache put",
                extra={"cache": self.name, "key": key, "cost": cost, "replaced": previous is not None},
            )
            self._enforce_limits()

    def get(self, key: str) -> Optional[V]:
        """Return the value stored for *key* or ``None`` on a miss.

        A hit refreshes the key's recency and bumps its access count.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._metrics["misses"] += 1
                LOGGER.debug("cache miss", extra={"cache": self.name, "key": key})
                return None
            self._entries.move_to_end(key)
            self._access_counts[key] += 1
            self._metrics["hits"] += 1
            LOGGER.debug(
                "cache hit",
                extra={"cache": self.name, "key": key, "access_count": self._access_counts[key]},
            )
            return entry.value

    def remove(self, key: str) -> None:
        """Delete *key* if present.  Removing a missing key is a no-op."""
        with self._lock:
            if self._discard(key):
                LOGGER.debug("cache remove", extra={"cache": self.name, "key": key})

    def clear(self) -> None:
        """Remove all entries and erase all statistics."""
        with self._lock:
            count = len(self._entries)
            self._clear()
        LOGGER.info("cache cleared", extra={"cache": self.name, "removed": count})

    def on_memory_pressure(self) -> None:
        """Flush the cache in response to a host memory-pressure signal."""
        with self._lock:
            count = len(self._entries)
            freed = self._total_cost
            self._clear()
            self._metrics["flushes"] += 1
        LOGGER.warning(
            "cache flushed due to memory pressure",
            extra={"cache": self.name, "removed": count, "freed": freed},
        )

    def size(self) -> int:
        """Return the number of live entries."""
        with self._lock:
            return len(self._entries)

    def contains(self, key: str) -> bool:
        """Return whether *key* is cached.  Does not touch statistics."""
        with self._lock:
            return key in self._entries

    def access_count(self, key: str) -> int:
        with self._lock:
            return self._access_counts.get(key, 0)

    def most_accessed(self) -> List[Tuple[str, int]]:
        """Return ``(key, count)`` pairs ordered by descending access count.

        Keys with equal counts keep the order in which they were first
        tracked, earliest first.
        """
        with self._lock:
            items = list(self._access_counts.items())
        # sorted() is stable, so ties retain tracking order.
        return sorted(items, key=lambda item: item[1], reverse=True)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                entry_count=len(self._entries),
                count_limit=self._count_limit,
                total_cost=self._total_cost,
                total_cost_limit=self._total_cost_limit,
                hits=self._metrics["hits"],
                misses=self._metrics["misses"],
                evictions=self._metrics["evictions"],
                flushes=self._metrics["flushes"],
            )

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.contains(key)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, entries={len(self._entries)}/"
            f"{self._count_limit}, cost={self._total_cost}/{self._total_cost_limit})"
        )

    # Helpers below expect the caller to hold ``self._lock``.

    def _over_limits(self) -> bool:
        return (
            len(self._entries) > self._count_limit
            or self._total_cost > self._total_cost_limit
        )

    def _enforce_limits(self) -> None:
        while self._entries and self._over_limits():
            # The most recent insert sits at the end, so it is only reached
            # once every other entry is gone.
            oldest = next(iter(self._entries))
            if len(self._entries) == 1:
                LOGGER.warning(
                    "entry exceeds total cost limit",
                    extra={
                        "cache": self.name,
                        "key": oldest,
                        "cost": self._entries[oldest].cost,
                        "limit": self._total_cost_limit,
                    },
                )
            self._discard(oldest)
            self._metrics["evictions"] += 1
            LOGGER.debug("cache evict", extra={"cache": self.name, "key": oldest})

    def _discard(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        self._access_counts.pop(key, None)
        if entry is None:
            return False
        self._total_cost -= entry.cost
        return True

    def _clear(self) -> None:
        self._entries.clear()
        self._access_counts.clear()
        self._total_cost = 0


class _DefaultCacheSlot:
    """Holds the application's shared cache and the recipe for building it."""

    def __init__(self, factory: Callable[[], BoundedCache]) -> None:
        self.factory = factory
        self.instance: Optional[BoundedCache] = None
        self.lock = RLock()

    def current(self) -> BoundedCache:
        with self.lock:
            if self.instance is None:
                self.instance = self.factory()
            return self.instance


_default = _DefaultCacheSlot(BoundedCache)


def configure_cache(factory: Callable[[], BoundedCache], *, reset: bool = True) -> None:
    """Change how the shared cache is built.

    *factory* is called on the next :func:`get_cache` that finds no live
    instance.  With ``reset=False`` an already built instance stays in place
    and *factory* only applies once that instance is dropped.
    """

    if not callable(factory):
        raise TypeError("factory must be callable")
    with _default.lock:
        _default.factory = factory
        if reset:
            _default.instance = None


def get_cache() -> BoundedCache:
    """Return the shared cache, building it on first use."""

    return _default.current()


@contextmanager
def override_cache(cache: BoundedCache) -> Iterator[BoundedCache]:
    """Make *cache* the shared instance until the block exits.

    The previous factory and instance come back afterwards, even when the
    block raises, so tests can run against an isolated cache.
    """

    with _default.lock:
        saved = (_default.factory, _default.instance)
        _default.factory = lambda: cache
        _default.instance = cache
    try:
        yield cache
    finally:
        with _default.lock:
            _default.factory, _default.instance = saved


class _SharedCacheHandle:
    """Resolves every attribute against :func:`get_cache` at call time."""

    def __getattr__(self, item: str) -> Any:
        return getattr(get_cache(), item)

    def __repr__(self) -> str:  # pragma: no cover - trivial representation
        return f"<shared {get_cache()!r}>"


# For composition roots only; library code takes the cache as an argument.
image_cache = _SharedCacheHandle()

__all__ = [
    "BoundedCache",
    "CacheEntry",
    "CacheStats",
    "InvalidConfiguration",
    "configure_cache",
    "get_cache",
    "image_cache",
    "override_cache",
]
