"""Cost functions for cached payloads.

Decoded images are weighed by their uncompressed pixel footprint; raw
buffers by their byte length.  Costs are what :class:`~imagecache.cache.BoundedCache`
sums against ``total_cost_limit``.
"""
from __future__ import annotations

from typing import Any, Union

from PIL import Image
from PySide6.QtGui import QImage, QPixmap

from . import config

Buffer = Union[bytes, bytearray, memoryview]


def image_cost(image: Union[Image.Image, QImage, QPixmap]) -> int:
    """Return ``width * height * BYTES_PER_PIXEL`` for a decoded image.

    Null Qt images and zero-sized images cost nothing.
    """
    if isinstance(image, Image.Image):
        width, height = image.size
    elif isinstance(image, (QImage, QPixmap)):
        if image.isNull():
            return 0
        width, height = image.width(), image.height()
    else:
        raise TypeError(f"Unsupported image type: {type(image).__name__}")
    return max(width, 0) * max(height, 0) * config.BYTES_PER_PIXEL


def bytes_cost(data: Buffer) -> int:
    """Return the byte length of a raw buffer."""
    if isinstance(data, memoryview):
        return data.nbytes
    if isinstance(data, (bytes, bytearray)):
        return len(data)
    raise TypeError(f"Unsupported buffer type: {type(data).__name__}")


def payload_cost(value: Any) -> int:
    """Dispatch to :func:`image_cost` or :func:`bytes_cost`."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes_cost(value)
    return image_cost(value)
