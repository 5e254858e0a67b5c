"""Host-runtime managers that drive cache housekeeping."""

from .memory import MemoryPressureMonitor, MemoryPressureNotifier

__all__ = ["MemoryPressureMonitor", "MemoryPressureNotifier"]
