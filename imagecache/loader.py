"""Image loading in front of a :class:`~imagecache.cache.BoundedCache`.

The loader consults the cache, fetches bytes through an injected callable on a
miss, decodes them with Pillow and stores the result.  It can cache either the
decoded image (costed by pixel footprint) or the raw bytes (costed by length,
decoded on every load).  Fetch and decode failures never reach the cache; they
surface as :class:`ImageLoadError` or fall back to a placeholder image.
Concurrent misses on the same key share a single fetch.
"""
from __future__ import annotations

import io
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, Optional

from PIL import Image, ImageOps

from . import config
from .cache import BoundedCache
from .costs import bytes_cost, image_cost
from .validation import validate_image_url

LOGGER = logging.getLogger(__name__)

Fetcher = Callable[[str], bytes]
Decoder = Callable[[bytes], Any]


class ImageLoadError(RuntimeError):
    """Raised when an image cannot be fetched or decoded."""


def decode_image(data: bytes) -> Image.Image:
    """Decode *data* into a fully loaded, orientation-corrected Pillow image."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        return ImageOps.exif_transpose(img)


class ImageLoader:
    """Loads images through a bounded cache."""

    STORES = ("image", "data")

    def __init__(
        self,
        cache: BoundedCache,
        fetch: Fetcher,
        *,
        store: str = "image",
        decoder: Optional[Decoder] = None,
        placeholder: Optional[Any] = None,
        max_workers: int = config.LOADER_MAX_WORKERS,
    ):
        """
        Args:
            cache: Cache receiving decoded images or raw bytes.
            fetch: Callable returning the bytes stored at a URL. Owns its own
                retries and timeouts.
            store: ``"image"`` to cache decoded images, ``"data"`` to cache
                the fetched bytes.
            decoder: Optional replacement for :func:`decode_image`.
            placeholder: Returned instead of raising when a load fails.
            max_workers: Thread count used by :meth:`load_many`.
        """
        if store not in self.STORES:
            raise ValueError(f"store must be one of {self.STORES}, got {store!r}")
        self._cache = cache
        self._fetch = fetch
        self._decode_fn = decoder or decode_image
        self.store = store
        self.placeholder = placeholder
        self._thread_pool = ThreadPoolExecutor(max_workers=max_workers)
        self._inflight: Dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

    @property
    def cache(self) -> BoundedCache:
        return self._cache

    def load(self, url: str) -> Any:
        """
        Return the image for *url*, fetching it on a cache miss.

        Raises:
            ImageLoadError: If the image cannot be produced and no placeholder
                is configured.
        """
        try:
            key = self._validate(url)
            return self._load(key)
        except ImageLoadError as e:
            if self.placeholder is None:
                raise
            LOGGER.warning("Image load failed, using placeholder: %s", e)
            return self.placeholder

    def load_many(self, urls: Iterable[str]) -> Dict[str, Any]:
        """Load several URLs concurrently.

        Failed loads map to the placeholder, or ``None`` without one.
        """
        futures = {url: self._thread_pool.submit(self.load, url) for url in urls}
        results: Dict[str, Any] = {}
        for url, future in futures.items():
            try:
                results[url] = future.result()
            except ImageLoadError as e:
                LOGGER.warning("Image load failed: %s", e)
                results[url] = None
        return results

    def invalidate(self, url: str) -> None:
        """Drop *url* from the cache so the next load fetches it again."""
        self._cache.remove(self._validate(url))

    def close(self) -> None:
        self._thread_pool.shutdown(wait=True)

    def __enter__(self) -> "ImageLoader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _validate(self, url: str) -> str:
        try:
            return validate_image_url(url)
        except ValueError as e:
            raise ImageLoadError(f"Invalid image URL {url!r}: {e}") from e

    def _load(self, key: str) -> Any:
        cached = self._cache.get(key)
        if cached is not None:
            return self._from_cache(key, cached)

        with self._inflight_lock:
            pending = self._inflight.get(key)
            owner = pending is None
            if owner:
                # The key may have been stored since the miss above.
                cached = self._cache.get(key)
                if cached is None:
                    pending = self._inflight[key] = Future()
        if cached is not None:
            return self._from_cache(key, cached)
        if not owner:
            LOGGER.debug("Waiting for in-flight fetch of %s", key)
            return pending.result()

        try:
            image = self._fetch_and_store(key)
        except BaseException as e:
            pending.set_exception(e)
            raise
        else:
            pending.set_result(image)
            return image
        finally:
            with self._inflight_lock:
                del self._inflight[key]

    def _from_cache(self, key: str, cached: Any) -> Any:
        return cached if self.store == "image" else self._decode(key, cached)

    def _fetch_and_store(self, key: str) -> Any:
        data = self._fetch_bytes(key)
        image = self._decode(key, data)
        if self.store == "image":
            self._cache.put(key, image, image_cost(image))
        else:
            self._cache.put(key, data, bytes_cost(data))
        LOGGER.debug("Fetched and cached %s", key)
        return image

    def _fetch_bytes(self, key: str) -> bytes:
        try:
            data = self._fetch(key)
        except Exception as e:
            raise ImageLoadError(f"Failed to fetch {key}: {e}") from e
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise ImageLoadError(
                f"Fetcher returned {type(data).__name__} for {key}, expected bytes"
            )
        return bytes(data)

    def _decode(self, key: str, data: bytes) -> Any:
        try:
            return self._decode_fn(data)
        except Exception as e:  # includes Image.DecompressionBombError
            raise ImageLoadError(f"Failed to decode {key}: {e}") from e
