# fallbackstream/core/options.py
from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .filters import ErrorFilter, build_error_filter

ERROR_FILTER_KEY = "error_filter"


@dataclass(frozen=True, slots=True)
class FallbackOptions:
    """
    Parsed options of a fallback stream.

    - error_filter: decision function (True -> fall back, False -> propagate)
    - stream_options: forwarded unchanged to the combined stream (object_mode, ...)
    """
    error_filter: ErrorFilter
    stream_options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not callable(self.error_filter):
            raise TypeError("FallbackOptions.error_filter must be callable.")
        if self.stream_options is None:
            object.__setattr__(self, "stream_options", {})
        elif not isinstance(self.stream_options, dict):
            raise TypeError("FallbackOptions.stream_options must be a dict.")
        elif ERROR_FILTER_KEY in self.stream_options:
            raise TypeError(f"FallbackOptions.stream_options must not contain '{ERROR_FILTER_KEY}'.")


def parse_options(options: Any = None, **overrides: Any) -> FallbackOptions:
    """
    Accept ``None``, a filter specification (callable / pattern), or a mapping
    holding ``error_filter`` plus stream options. Keyword overrides win.

    The caller's mapping is copied, never mutated.
    """
    if options is None:
        merged: dict[str, Any] = {}
    elif isinstance(options, Mapping) and not isinstance(options, re.Pattern):
        merged = dict(options)
    else:
        merged = {ERROR_FILTER_KEY: options}

    merged.update(overrides)
    spec = merged.pop(ERROR_FILTER_KEY, None)
    return FallbackOptions(error_filter=build_error_filter(spec), stream_options=merged)
