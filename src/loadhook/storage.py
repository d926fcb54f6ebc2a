"""File backends for the transform cache.

Both backends behave identically: entries are UTF-8 text, writes are
published atomically via a temporary sibling file and os.replace, and a
missing entry reads as None. Which one is used is decided once per
session by select_backend().
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Optional, Protocol


class StorageBackend(Protocol):
    """Blocking file operations used by the cache facade."""

    name: str

    def read(self, path: Path) -> Optional[str]:
        """Return the entry at path, or None if it does not exist."""
        ...

    def write(self, path: Path, data: str) -> None:
        """Replace the entry at path with data."""
        ...

    def remove(self, path: Path) -> None:
        """Delete the entry at path. Missing entries are ignored."""
        ...


def _temp_sibling(path: Path) -> Path:
    # Unique per writer so concurrent writers never share a temp file
    return path.with_name(f".{path.name}.{os.getpid()}.{uuid.uuid4().hex}.tmp")


class PosixFileBackend:
    """Backend built on raw file descriptors."""

    name = "posix"

    def read(self, path: Path) -> Optional[str]:
        try:
            fd = os.open(path, os.O_RDONLY)
        except FileNotFoundError:
            return None
        chunks = []
        try:
            while True:
                chunk = os.read(fd, 1 << 16)
                if not chunk:
                    break
                chunks.append(chunk)
        finally:
            os.close(fd)
        return b"".join(chunks).decode("utf-8")

    def write(self, path: Path, data: str) -> None:
        os.makedirs(path.parent, exist_ok=True)
        tmp = _temp_sibling(path)
        payload = data.encode("utf-8")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        try:
            try:
                view = memoryview(payload)
                while view:
                    written = os.write(fd, view)
                    view = view[written:]
            finally:
                os.close(fd)
            os.replace(tmp, path)
        except OSError:
            os.unlink(tmp)
            raise

    def remove(self, path: Path) -> None:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass


class PathlibFileBackend:
    """Portable backend built on pathlib."""

    name = "pathlib"

    def read(self, path: Path) -> Optional[str]:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, path: Path, data: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = _temp_sibling(path)
        tmp.write_text(data, encoding="utf-8")
        try:
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def remove(self, path: Path) -> None:
        path.unlink(missing_ok=True)


def select_backend() -> StorageBackend:
    """Pick the backend for the running platform."""
    if os.name == "posix":
        return PosixFileBackend()
    return PathlibFileBackend()
