"""Dispatch of build-tool load hooks to the compiler transform.

A build tool reports "load this file" events; the Dispatcher registers
one handler per include pattern on the tool's host object, and each
handler reads the file, consults the transform cache, runs the compiler
transform on a miss and hands back `{"contents": ...}`.

The host only needs `on_load(pattern, handler)`. LoadRegistry is the
in-process host used by the command line and the tests.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol, Union

from .cache import get_cache, set_cache
from .cachedir import CacheRuntimeState
from .errors import ConfigurationError, UnexpectedResultShape
from .filters import Pattern, matches_any, normalize_filters
from .options import Options, resolve_options

logger = logging.getLogger("loadhook.dispatch")

LoadResult = dict[str, str]
LoadHandler = Callable[[str], Awaitable[Optional[LoadResult]]]
Transform = Callable[[str, str], Any]


# --- Transform results ---

@dataclass(frozen=True)
class Passthrough:
    """Serve the original source unchanged."""


@dataclass(frozen=True)
class Replaced:
    """Serve the compiler's output instead of the source."""
    code: str


@dataclass(frozen=True)
class Failed:
    """The transform reports an error for this file."""
    error: BaseException


TransformResult = Union[Passthrough, Replaced, Failed]


def _replaced(result: Any, code: Any) -> TransformResult:
    if code is None:
        return Passthrough()
    if not isinstance(code, str):
        raise UnexpectedResultShape(result)
    return Replaced(code)


def classify_result(result: Any) -> TransformResult:
    """Map a raw transform return value onto Passthrough or Replaced.

    None and plain strings are Passthrough; a mapping with a "code" key or
    an object with a `code` attribute is Replaced, or Passthrough when the
    code is None. A Failed result raises its error; any other shape,
    including a non-string code, raises UnexpectedResultShape.
    """
    if isinstance(result, (Passthrough, Replaced)):
        return result
    if isinstance(result, Failed):
        raise result.error
    if result is None:
        return Passthrough()
    if isinstance(result, str):
        # Plain strings are not applied (see DESIGN.md, open questions)
        return Passthrough()
    if isinstance(result, Mapping):
        if "code" in result:
            return _replaced(result, result["code"])
        raise UnexpectedResultShape(result)
    if hasattr(result, "code"):
        return _replaced(result, result.code)
    raise UnexpectedResultShape(result)


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def cached_transform(
    identity: str,
    source: str,
    transform: Transform,
    options: Options,
    state: CacheRuntimeState,
) -> str:
    """Return the text to serve for identity, using the cache when possible."""
    cached = await get_cache(identity, source, options.cache, state)
    if cached is not None:
        return cached

    outcome = classify_result(await _call(transform, source, identity))
    if isinstance(outcome, Replaced):
        await set_cache(identity, source, outcome.code, options.cache, state)
        return outcome.code

    await set_cache(identity, source, None, options.cache, state)
    return source


# --- Build hosts ---

class BuildHost(Protocol):
    def on_load(self, pattern: Pattern, handler: LoadHandler) -> None:
        ...


class LoadRegistry:
    """Minimal build host: routes a path to the registered handlers.

    Handlers are tried in registration order among those whose pattern
    matches; the first one returning a result wins. A handler returning
    None passes the file on to the next one.
    """

    def __init__(self):
        self._handlers: list[tuple[Pattern, LoadHandler]] = []

    def on_load(self, pattern: Pattern, handler: LoadHandler) -> None:
        self._handlers.append((pattern, handler))

    @property
    def patterns(self) -> list[Pattern]:
        return [p for p, _ in self._handlers]

    async def load(self, identity: str) -> Optional[LoadResult]:
        """Run the handlers for identity; None if no handler claims it."""
        for pattern, handler in self._handlers:
            if not pattern.search(identity):
                continue
            result = await handler(identity)
            if result is not None:
                return result
        return None


# --- Dispatcher ---

class DispatchState(enum.Enum):
    UNCONFIGURED = "unconfigured"
    FILTERS_VALIDATED = "filters-validated"
    READY = "ready"


def module_build_pattern(compiler: str) -> Pattern:
    """Paths inside the compiler's installed CommonJS runtime output."""
    return re.compile(rf".+/node_modules/{re.escape(compiler)}/lib/.*\.js$")


def _read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


class Dispatcher:
    """Adapts a build host's load hook to the compiler transform."""

    def __init__(
        self,
        transform: Optional[Transform],
        options: Optional[Options] = None,
        build_start: Optional[Callable[[], Any]] = None,
        state: Optional[CacheRuntimeState] = None,
    ):
        self.transform = transform
        self.options = options if options is not None else resolve_options()
        self.build_start = build_start
        self.cache_state = state if state is not None else CacheRuntimeState(
            compiler=self.options.compiler
        )
        self.state = DispatchState.UNCONFIGURED
        self.filters: list[Pattern] = []

    async def setup(self, host: BuildHost) -> None:
        """Validate configuration and register the load handlers on host."""
        if self.state is not DispatchState.UNCONFIGURED:
            raise ConfigurationError("dispatcher is already set up")

        self.filters = normalize_filters(self.options.include)
        if not callable(self.transform):
            raise ConfigurationError("transform is not defined")
        self.state = DispatchState.FILTERS_VALIDATED

        if self.build_start is not None:
            await _call(self.build_start)

        if self.options.force_module_rewrite:
            host.on_load(module_build_pattern(self.options.compiler), self._load_module_build)
        for pattern in self.filters:
            host.on_load(pattern, self._load_matched)

        self.state = DispatchState.READY
        logger.debug("dispatcher ready with %d include pattern(s)", len(self.filters))

    async def _load_matched(self, identity: str) -> Optional[LoadResult]:
        if matches_any(identity, self.options.exclude):
            return None
        source = await asyncio.to_thread(_read_text, identity)
        code = await cached_transform(
            identity, source, self.transform, self.options, self.cache_state,
        )
        return {"contents": code}

    async def _load_module_build(self, identity: str) -> LoadResult:
        module_path = re.sub(r"\.js$", ".mjs", identity)
        logger.debug("serving %s in place of %s", module_path, identity)
        return {"contents": await asyncio.to_thread(_read_text, module_path)}
