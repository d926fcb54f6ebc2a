"""loadhook: cached compiler transforms for build-tool load hooks."""

from .errors import (
    LoadhookError as LoadhookError,
    ConfigurationError as ConfigurationError,
    UnexpectedResultShape as UnexpectedResultShape,
)
from .options import Options as Options, CacheOptions as CacheOptions, resolve_options as resolve_options
from .cache import get_cache as get_cache, set_cache as set_cache
from .cachedir import CacheRuntimeState as CacheRuntimeState
from .dispatch import Dispatcher as Dispatcher, LoadRegistry as LoadRegistry
