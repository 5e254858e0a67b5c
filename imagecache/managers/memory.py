# managers/memory.py
"""
Memory-pressure signalling for caches.

MemoryPressureNotifier is the host-side collaborator: caches subscribe through
an explicit register/unregister pair and receive one call per notification.
MemoryPressureMonitor watches process memory and raises notifications when
resident memory crosses a threshold.
"""
from __future__ import annotations

import gc
import logging
import threading
import time
from typing import Callable, List, Optional

import psutil
from PySide6.QtCore import QObject, Qt, QTimer, Signal

from .. import config

LOGGER = logging.getLogger(__name__)

PressureCallback = Callable[[], None]


class MemoryPressureNotifier(QObject):
    """Delivers memory-pressure notifications to registered callbacks."""

    memory_pressure = Signal()

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._callbacks: List[PressureCallback] = []
        self._lock = threading.Lock()
        # Direct delivery: callbacks run on the thread that calls notify().
        self.memory_pressure.connect(self._dispatch, Qt.ConnectionType.DirectConnection)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._callbacks)

    def register(self, callback: PressureCallback) -> None:
        """Subscribe *callback*.  Registering the same callback twice is a no-op."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)

    def unregister(self, callback: PressureCallback) -> None:
        """Unsubscribe *callback* if it is registered."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def notify(self) -> None:
        """Raise one memory-pressure notification.

        Callbacks run synchronously on the calling thread, so the flush has
        happened by the time this returns.
        """
        self.memory_pressure.emit()

    def _dispatch(self) -> None:
        with self._lock:
            callbacks = list(self._callbacks)
        LOGGER.info("memory pressure notification", extra={"subscribers": len(callbacks)})
        for callback in callbacks:
            try:
                callback()
            except Exception:
                LOGGER.exception("memory pressure callback failed")


def _process_rss() -> int:
    return psutil.Process().memory_info().rss


class MemoryPressureMonitor:
    """Checks process memory periodically and notifies when over threshold."""

    def __init__(
        self,
        notifier: MemoryPressureNotifier,
        *,
        threshold_bytes: int = config.MEMORY_THRESHOLD_BYTES,
        interval_ms: int = config.MEMORY_CHECK_INTERVAL_MS,
        cooldown_secs: float = config.MEMORY_PRESSURE_COOLDOWN_SECS,
        timer: Optional[QTimer] = None,
        rss_reader: Optional[Callable[[], int]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.notifier = notifier
        self.threshold_bytes = threshold_bytes
        self.interval_ms = interval_ms
        self.cooldown_secs = cooldown_secs
        self.timer = timer or QTimer()
        self.timer.timeout.connect(self.check_memory)
        self._read_rss = rss_reader or _process_rss
        self._clock = clock
        self._last_notified: Optional[float] = None

    def start(self) -> None:
        self.timer.start(self.interval_ms)

    def stop(self) -> None:
        self.timer.stop()

    def check_memory(self) -> bool:
        """Return ``True`` when this check raised a notification.

        After notifying, a garbage collection pass reclaims the payloads the
        subscribers just released.
        """
        try:
            rss = self._read_rss()
        except (psutil.Error, OSError) as e:
            LOGGER.warning("Memory check failed: %s", e)
            return False

        if rss <= self.threshold_bytes:
            return False

        now = self._clock()
        if self._last_notified is not None and now - self._last_notified < self.cooldown_secs:
            return False
        self._last_notified = now

        LOGGER.warning(
            "process memory above threshold",
            extra={"rss": rss, "threshold": self.threshold_bytes},
        )
        self.notifier.notify()
        gc.collect()
        return True
