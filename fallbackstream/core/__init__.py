"""
Core building blocks for fallbackstream.

This module defines the pieces the combined stream is assembled from:
- EventEmitter / Readable: event-driven stream primitives
- build_error_filter: normalizes a filter spec into (error) -> bool
- Ready / Factory: lazily resolved source entries
- FallbackGuard: per-source fallback decision (ARMED -> ...)
- SuppressedErrorLog: append-only record of suppressed errors

The core layer knows nothing about concatenation; see fallbackstream.io.
"""

from .events import EventEmitter, NEW_LISTENER
from .readable import Readable, StreamLike
from .filters import ErrorFilter, always_true, build_error_filter, error_text, pattern_filter
from .options import FallbackOptions, parse_options
from .sources import Ready, Factory, SourceEntry, normalize_source
from .errorlog import SuppressedErrorLog
from .guard import FallbackGuard, GuardState
from .exceptions import (
    FallbackStreamError,
    InvalidSourceList,
    InvalidSource,
    InvalidErrorFilter,
    UnhandledStreamError,
    PrematureClose,
)


__all__ = [
    # stream primitives
    "EventEmitter",
    "NEW_LISTENER",
    "Readable",
    "StreamLike",

    # filters / options
    "ErrorFilter",
    "always_true",
    "build_error_filter",
    "error_text",
    "pattern_filter",
    "FallbackOptions",
    "parse_options",

    # sources / fallback
    "Ready",
    "Factory",
    "SourceEntry",
    "normalize_source",
    "SuppressedErrorLog",
    "FallbackGuard",
    "GuardState",

    # exceptions
    "FallbackStreamError",
    "InvalidSourceList",
    "InvalidSource",
    "InvalidErrorFilter",
    "UnhandledStreamError",
    "PrematureClose",
]
