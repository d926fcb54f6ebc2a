"""Content hashing for cache keys.

The digest is a fingerprint, not a security boundary: two sources with
the same digest are treated as interchangeable.
"""

from __future__ import annotations

import hashlib
from typing import Callable

# xxhash (the `fast` extra) is a native non-cryptographic hash, much
# faster than SHA-256 on large sources
try:
    import xxhash
except ImportError:
    xxhash = None


def _xxh3(data: bytes) -> str:
    return xxhash.xxh3_128_hexdigest(data)


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _select_hasher() -> tuple[str, Callable[[bytes], str]]:
    if xxhash is not None:
        return "xxh3_128", _xxh3
    return "sha256", _sha256


_HASHER_NAME, _hasher = _select_hasher()


def selected_hasher() -> str:
    """Name of the digest used by content_hash in this process."""
    return _HASHER_NAME


def content_hash(source: str) -> str:
    """Hex digest of the UTF-8 encoding of source."""
    return _hasher(source.encode("utf-8"))
