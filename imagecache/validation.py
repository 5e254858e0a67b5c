"""Input validation helpers for cache keys."""
from __future__ import annotations

from typing import Iterable, Optional
from urllib.parse import urlparse

from . import config


def _url_scheme(key: str) -> Optional[str]:
    """Return the scheme of *key* if it looks like a URL.

    Single-letter schemes such as ``"C"`` are treated as Windows drive
    letters and ignored.
    """
    parsed = urlparse(key)
    if parsed.scheme and len(parsed.scheme) > 1:
        return parsed.scheme.lower()
    return None


def validate_image_url(
    key: str, allowed_schemes: Iterable[str] = config.ALLOWED_URL_SCHEMES
) -> str:
    """Validate an image URL or name used as a cache key.

    Plain names are accepted as-is.  URL-shaped keys must use one of
    *allowed_schemes*.  Returns the key with surrounding whitespace removed.
    """
    if not isinstance(key, str):
        raise ValueError(f"Cache key must be a string, got {type(key).__name__}")
    key = key.strip()
    if not key:
        raise ValueError("Cache key must not be empty")

    scheme = _url_scheme(key)
    if scheme is not None and scheme not in {s.lower() for s in allowed_schemes}:
        raise ValueError(f"Unsupported URL scheme: {scheme}")

    return key
