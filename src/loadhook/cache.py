"""Transform cache facade.

Caches compiler output keyed by the file's identity and the hash of its
source. Each entry is stored as `<output><marker>`; a read is only
honoured when the entry ends with the marker for the current compiler
version, so upgrades and torn reads both fall back to recompiling.

Cache location: options.base (default: <tempdir>/loadhook).
Invalidation: automatic. A source change produces a new key, a compiler
upgrade produces a new marker.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from .cachedir import CacheRuntimeState, prepare_cache_dir
from .keys import cache_key, cache_path, validity_marker

if TYPE_CHECKING:
    from .options import CacheOptions

logger = logging.getLogger("loadhook.cache")


async def get_cache(
    identity: str,
    source: str,
    options: CacheOptions,
    state: CacheRuntimeState,
) -> Optional[str]:
    """Look up cached output for identity/source.

    Returns the cached output, or None on a miss (disabled cache, no
    entry, or an entry whose marker doesn't match).
    """
    if not options.enable:
        return None
    await asyncio.to_thread(prepare_cache_dir, state, options)

    key = cache_key(identity, source)
    path = cache_path(key, options)

    data = await asyncio.to_thread(state.backend.read, path)
    if data is None:
        logger.debug("cache miss for %s", identity)
        return None

    version = await asyncio.to_thread(state.resolve_compiler_version)
    marker = validity_marker(key, version)
    if not data.endswith(marker):
        logger.debug("stale cache entry for %s", identity)
        return None

    logger.debug("cache hit for %s", identity)
    return data[: len(data) - len(marker)]


async def set_cache(
    identity: str,
    source: str,
    data: Optional[str],
    options: CacheOptions,
    state: CacheRuntimeState,
) -> None:
    """Store output for identity/source, or drop the entry if data is None."""
    if not options.enable:
        return
    await asyncio.to_thread(prepare_cache_dir, state, options)

    key = cache_key(identity, source)
    path = cache_path(key, options)

    if data is None:
        await asyncio.to_thread(state.backend.remove, path)
        return

    version = await asyncio.to_thread(state.resolve_compiler_version)
    marker = validity_marker(key, version)
    await asyncio.to_thread(state.backend.write, path, data + marker)
    logger.debug("cached %s as %s", identity, key)
