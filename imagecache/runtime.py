"""Composition root wiring the default cache to memory-pressure signals.

:class:`CacheRuntime` is the single place that subscribes a cache to a
:class:`~imagecache.managers.memory.MemoryPressureNotifier` and tears the
subscription down again.  Everything else receives the cache as an argument.
"""

from __future__ import annotations

import logging
from typing import Optional

from .cache import BoundedCache, get_cache
from .managers.memory import MemoryPressureMonitor, MemoryPressureNotifier

LOGGER = logging.getLogger(__name__)


class CacheRuntime:
    """Own the lifetime of a cache's memory-pressure subscription."""

    def __init__(
        self,
        cache: Optional[BoundedCache] = None,
        notifier: Optional[MemoryPressureNotifier] = None,
        monitor: Optional[MemoryPressureMonitor] = None,
    ) -> None:
        self.cache = cache if cache is not None else get_cache()
        self.notifier = notifier or MemoryPressureNotifier()
        if monitor is not None and monitor.notifier is not self.notifier:
            raise ValueError("monitor must report to the runtime's notifier")
        self.monitor = monitor
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    def start(self) -> None:
        """Subscribe the cache and start the monitor.  Idempotent."""

        if self._started:
            return
        self.notifier.register(self.cache.on_memory_pressure)
        if self.monitor is not None:
            self.monitor.start()
        self._started = True
        LOGGER.info("cache runtime started", extra={"cache": self.cache.name})

    def shutdown(self) -> None:
        """Stop the monitor and unsubscribe the cache.  Idempotent."""

        if not self._started:
            return
        if self.monitor is not None:
            self.monitor.stop()
        self.notifier.unregister(self.cache.on_memory_pressure)
        self._started = False
        LOGGER.info("cache runtime stopped", extra={"cache": self.cache.name})

    def __enter__(self) -> "CacheRuntime":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
