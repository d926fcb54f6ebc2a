"""Cache keys, cache paths and validity markers.

A key is `<parent dir name>_<file name>_<content hash>`. Every stored
entry ends with a marker embedding the compiler version and the key, so
an entry written by another compiler version reads as a miss.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from .hashing import content_hash

if TYPE_CHECKING:
    from .options import CacheOptions

_MARKER_PREFIX = "loadhook"


def cache_key(identity: str, source: str) -> str:
    """Derive the cache key for a file identity and its source text."""
    parent = os.path.basename(os.path.dirname(identity))
    filebase = f"{parent}_{os.path.basename(identity)}"
    return f"{filebase}_{content_hash(source)}"


def cache_path(key: str, options: CacheOptions) -> Path:
    return Path(options.base) / key


def validity_marker(key: str, compiler_version: str) -> str:
    """Trailer appended to every cache entry."""
    return f"/* {_MARKER_PREFIX}-{compiler_version}-{key} */"
