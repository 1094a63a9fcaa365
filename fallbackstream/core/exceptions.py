# fallbackstream/core/exceptions.py
from __future__ import annotations


class FallbackStreamError(Exception):
    """Base error for all fallbackstream exceptions."""


# ---- Configuration errors (raised synchronously, never caught internally) ----
class InvalidSourceList(FallbackStreamError, TypeError):
    """Raised when the list of sources is not a list/tuple."""


class InvalidSource(FallbackStreamError, TypeError):
    """
    Raised when a source entry (or what its factory returns) is not a readable stream.

    A readable stream here is any object providing ``on``, ``once``, ``emit``,
    ``remove_listener`` and ``listeners``; an emitter with only ``on``/``once``
    is rejected.
    """


class InvalidErrorFilter(FallbackStreamError, TypeError):
    """Raised when the error filter is neither a callable nor a compiled pattern."""


# ---- Stream errors ----
class UnhandledStreamError(FallbackStreamError):
    """Raised when an ``error`` event carrying a non-exception payload has no listener."""

    def __init__(self, payload: object) -> None:
        super().__init__(f"Unhandled 'error' event: {payload!r}")
        self.payload = payload


class PrematureClose(FallbackStreamError):
    """Raised when a source emits ``close`` before ``end`` or ``error``."""
