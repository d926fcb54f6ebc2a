"""Normalization of include/exclude filters."""

from __future__ import annotations

import re
from typing import Sequence

from .errors import ConfigurationError

Pattern = re.Pattern


def normalize_filters(include: object) -> list[Pattern]:
    """Turn an include option into a non-empty list of compiled patterns.

    Accepts a compiled pattern, a regex string, or a non-empty list/tuple
    of compiled patterns. Anything else is a configuration error.
    """
    if isinstance(include, re.Pattern):
        return [include]
    if isinstance(include, str):
        try:
            return [re.compile(include)]
        except re.error as e:
            raise ConfigurationError(f"invalid include pattern {include!r}: {e}") from e
    if (isinstance(include, (list, tuple)) and include
            and all(isinstance(p, re.Pattern) for p in include)):
        return list(include)
    raise ConfigurationError(
        "include option should be a string, a compiled pattern, "
        "or a list of compiled patterns with at least one element"
    )


def matches_any(identity: str, patterns: Sequence[Pattern]) -> bool:
    return any(p.search(identity) for p in patterns)
