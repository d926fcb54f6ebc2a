"""Plugin options and their resolution."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from .cachedir import default_cache_dir
from .errors import ConfigurationError

DEFAULT_INCLUDE = re.compile(r"\.[cm]?[jt]sx?$")
DEFAULT_EXCLUDE = re.compile(r"node_modules")
DEFAULT_COMPILER = "typia"

_KNOWN_KEYS = {"include", "exclude", "cache", "compiler", "force_module_rewrite"}


@dataclass(frozen=True)
class CacheOptions:
    enable: bool
    base: Path


@dataclass(frozen=True)
class Options:
    """Resolved options for one build session."""

    # Validated lazily by the dispatcher, see filters.normalize_filters
    include: Any = DEFAULT_INCLUDE
    exclude: tuple[re.Pattern, ...] = (DEFAULT_EXCLUDE,)
    cache: CacheOptions = field(
        default_factory=lambda: CacheOptions(enable=True, base=default_cache_dir())
    )
    compiler: str = DEFAULT_COMPILER
    # Serve <compiler>/lib/*.mjs in place of *.js for runtimes that can't
    # load the CommonJS build
    force_module_rewrite: bool = True


def _resolve_cache(value: Any) -> CacheOptions:
    if value is None or value is True:
        return CacheOptions(enable=True, base=default_cache_dir())
    if value is False:
        return CacheOptions(enable=False, base=default_cache_dir())
    if isinstance(value, Mapping):
        unknown = set(value) - {"enable", "base"}
        if unknown:
            raise ConfigurationError(f"unknown cache option(s): {', '.join(sorted(unknown))}")
        base = value.get("base")
        return CacheOptions(
            enable=bool(value.get("enable", True)),
            base=Path(base) if base is not None else default_cache_dir(),
        )
    raise ConfigurationError(f"cache option should be a bool or a mapping, got {value!r}")


def _resolve_exclude(value: Any) -> tuple[re.Pattern, ...]:
    if value is None:
        return (DEFAULT_EXCLUDE,)
    if isinstance(value, (str, re.Pattern)):
        value = [value]
    return tuple(re.compile(p) if isinstance(p, str) else p for p in value)


def resolve_options(raw: Optional[Mapping[str, Any]] = None) -> Options:
    """Fill defaults into user options.

    `include` is passed through as given; its shape is checked when the
    dispatcher is set up.
    """
    raw = dict(raw or {})
    unknown = set(raw) - _KNOWN_KEYS
    if unknown:
        raise ConfigurationError(f"unknown option(s): {', '.join(sorted(unknown))}")

    return Options(
        include=raw.get("include", DEFAULT_INCLUDE),
        exclude=_resolve_exclude(raw.get("exclude")),
        cache=_resolve_cache(raw.get("cache")),
        compiler=raw.get("compiler", DEFAULT_COMPILER),
        force_module_rewrite=raw.get("force_module_rewrite", True),
    )
