"""Bounded, cost-aware image cache with memory-pressure flushing."""

from .cache import (
    BoundedCache,
    CacheEntry,
    CacheStats,
    InvalidConfiguration,
    configure_cache,
    get_cache,
    image_cache,
    override_cache,
)
from .costs import bytes_cost, image_cost, payload_cost
from .loader import ImageLoader, ImageLoadError, decode_image
from .managers.memory import MemoryPressureMonitor, MemoryPressureNotifier
from .runtime import CacheRuntime

__all__ = [
    "BoundedCache",
    "CacheEntry",
    "CacheRuntime",
    "CacheStats",
    "ImageLoadError",
    "ImageLoader",
    "InvalidConfiguration",
    "MemoryPressureMonitor",
    "MemoryPressureNotifier",
    "bytes_cost",
    "configure_cache",
    "decode_image",
    "get_cache",
    "image_cache",
    "image_cost",
    "override_cache",
    "payload_cost",
]
