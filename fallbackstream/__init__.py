"""Concatenate readable streams, falling back to the next one when a source fails."""

from fallbackstream.io.fallback import FallbackStream, fallback_stream
from fallbackstream.core import (
    Readable,
    SuppressedErrorLog,
    FallbackStreamError,
    InvalidSourceList,
    InvalidSource,
    InvalidErrorFilter,
    PrematureClose,
)

__all__ = [
    "fallback_stream",
    "FallbackStream",
    "Readable",
    "SuppressedErrorLog",
    "FallbackStreamError",
    "InvalidSourceList",
    "InvalidSource",
    "InvalidErrorFilter",
    "PrematureClose",
]
