# fallbackstream/core/guard.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable

from .errorlog import SuppressedErrorLog
from .events import NEW_LISTENER, Listener
from .filters import ErrorFilter
from .readable import StreamLike

logger = logging.getLogger(__name__)


class GuardState(Enum):
    ARMED = "armed"
    FALLBACK_TRIGGERED = "fallback_triggered"
    PROPAGATED = "propagated"
    NATURAL_END = "natural_end"


class FallbackGuard:
    """
    Intercepts the first error of a non-terminal source and decides its fate.

    While ARMED every ``error`` listener on the source (already attached, or
    attached later by the driver or by user code) is detached and held, so the
    guard sees the first error alone:

    - filter accepts the error -> FALLBACK_TRIGGERED: the error is logged, the
      held listeners are put back without replay, and the source is made to
      emit ``end`` so the driver moves on to the next source.
    - filter rejects the error -> PROPAGATED: the held listeners are put back
      and the same error object is re-emitted on the source.
    - filter raises -> PROPAGATED: as above, but the filter's exception is
      emitted in place of the original error.
    - the source ends on its own -> NATURAL_END: the held listeners are put
      back and the driver's queue of remaining sources is dropped.

    Held listeners are never attached while ARMED, which also covers sources
    that close without ever erroring.
    """

    def __init__(
        self,
        source: StreamLike,
        error_filter: ErrorFilter,
        errors: SuppressedErrorLog,
        on_natural_end: Callable[[], Any],
        *,
        index: int | None = None,
    ) -> None:
        self.source = source
        self.error_filter = error_filter
        self.errors = errors
        self.on_natural_end = on_natural_end
        self.index = index

        self.state = GuardState.ARMED
        self._held: list[Listener] = []

    @property
    def held_listeners(self) -> list[Listener]:
        return list(self._held)

    def install(self) -> StreamLike:
        source = self.source
        for listener in source.listeners("error"):
            source.remove_listener("error", listener)
            self._held.append(listener)

        # Order matters: these run before anything the driver attaches next.
        source.once("error", self._on_error)
        source.on(NEW_LISTENER, self._on_new_listener)
        source.once("end", self._on_end)

        if getattr(source, "readable_ended", False):
            source.remove_listener("end", self._on_end)
            logger.debug("Source #%s had already ended when wrapped", self.index)
            self._on_end()
        return source

    def _on_new_listener(self, event: str, listener: Listener) -> None:
        if self.state is not GuardState.ARMED or event != "error":
            return
        if listener == self._on_error:
            return
        self.source.remove_listener("error", listener)
        self._held.append(listener)

    def _on_error(self, error: BaseException) -> None:
        if self.state is not GuardState.ARMED:
            return

        try:
            suppress = self.error_filter(error)
        except Exception as exc:
            # A broken filter fails the source with its own exception.
            self.state = GuardState.PROPAGATED
            logger.debug("Error filter for source #%s raised: %r", self.index, exc)
            self._release()
            self.source.emit("error", exc)
            return

        if suppress:
            self.state = GuardState.FALLBACK_TRIGGERED
            self.errors.append(error)
            logger.debug("Source #%s failed, falling back: %r", self.index, error)
            self._release()
            self.source.emit("end")
            return

        self.state = GuardState.PROPAGATED
        logger.debug("Source #%s failed, propagating: %r", self.index, error)
        self._release()
        self.source.emit("error", error)

    def _on_end(self) -> None:
        if self.state is not GuardState.ARMED:
            return
        self.state = GuardState.NATURAL_END
        logger.debug("Source #%s ended without fallback; skipping remaining sources", self.index)
        self._release()
        self.on_natural_end()

    def _release(self) -> None:
        # Later errors are not ours to intercept.
        self.source.remove_listener("error", self._on_error)
        self.source.remove_listener(NEW_LISTENER, self._on_new_listener)
        self.source.remove_listener("end", self._on_end)
        held, self._held = self._held, []
        for listener in held:
            self.source.on("error", listener)
