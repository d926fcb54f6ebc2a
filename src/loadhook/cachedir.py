"""Cache directory lifecycle and per-session cache state."""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from .errors import ConfigurationError
from .storage import StorageBackend, select_backend

if TYPE_CHECKING:
    from .options import CacheOptions

logger = logging.getLogger("loadhook.cachedir")

_CACHE_DIR_NAME = "loadhook"


@dataclass
class CacheRuntimeState:
    """State shared by every cache call of one build session.

    Built once when the session starts and passed to get_cache/set_cache.
    `prepared` records that the cache directory has been created and
    checked; `compiler_version` memoizes the installed compiler version.
    """

    compiler: str = "typia"
    compiler_version: Optional[str] = None
    prepared: bool = False
    backend: StorageBackend = field(default_factory=select_backend)

    def resolve_compiler_version(self) -> str:
        """Installed version of the compiler, or "" if it isn't installed."""
        if self.compiler_version is None:
            try:
                self.compiler_version = metadata.version(self.compiler)
            except metadata.PackageNotFoundError:
                logger.debug("compiler %r is not installed", self.compiler)
                self.compiler_version = ""
        return self.compiler_version


def _is_writable(path: Path) -> bool:
    return os.access(path, os.W_OK)


def prepare_cache_dir(state: CacheRuntimeState, options: CacheOptions) -> None:
    """Create and check the cache directory once per session.

    Raises ConfigurationError if the directory is not writable.
    """
    if state.prepared:
        return
    base = Path(options.base)
    base.mkdir(parents=True, exist_ok=True)
    if not _is_writable(base):
        raise ConfigurationError(f"Cache directory is not writable: {base}")
    logger.debug("cache directory ready at %s (backend: %s)", base, state.backend.name)
    state.prepared = True


def default_cache_dir() -> Path:
    """Default cache location under the system temporary directory.

    Some package managers export TMPDIR as the working directory; when
    that happens the variable is ignored and the temp root recomputed.
    """
    tmp_dir = tempfile.gettempdir()
    env_tmp = os.environ.get("TMPDIR")
    if env_tmp is not None and os.path.abspath(tmp_dir) == os.getcwd():
        del os.environ["TMPDIR"]
        tempfile.tempdir = None
        try:
            tmp_dir = tempfile.gettempdir()
        finally:
            os.environ["TMPDIR"] = env_tmp
            tempfile.tempdir = None
    return Path(tmp_dir) / _CACHE_DIR_NAME
