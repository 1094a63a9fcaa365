# fallbackstream/io/multistream.py
from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Iterable

from fallbackstream.core.exceptions import PrematureClose
from fallbackstream.core.readable import DEFAULT_HIGH_WATER_MARK, Readable, StreamLike

logger = logging.getLogger(__name__)

Producer = Callable[[], StreamLike]


class MultiStream(Readable):
    """
    Sequential concatenation of lazily produced streams.

    Producer 1 is pulled while the MultiStream is constructed; each following
    producer is pulled when the previous source emits ``end``. An ``error``
    from the current source destroys the MultiStream with that error.
    """

    def __init__(
        self,
        producers: Iterable[Producer],
        *,
        object_mode: bool = False,
        high_water_mark: int = DEFAULT_HIGH_WATER_MARK,
    ) -> None:
        super().__init__(object_mode=object_mode, high_water_mark=high_water_mark)
        self._queue: deque[Producer] = deque(producers)
        self._current: StreamLike | None = None
        # Sources pulled during construction raise from the constructor.
        self._constructed = False
        self._next()
        self._constructed = True

    @property
    def pending(self) -> int:
        """Number of producers not pulled yet."""
        return len(self._queue)

    @property
    def current(self) -> StreamLike | None:
        return self._current

    def clear_queue(self) -> None:
        self._queue.clear()

    def _next(self) -> None:
        if self.destroyed:
            return
        if not self._queue:
            logger.debug("All sources consumed")
            self.push(None)
            return

        producer = self._queue.popleft()
        if not self._constructed:
            source = producer()
        else:
            try:
                source = producer()
            except Exception as exc:
                logger.debug("Source failed to materialize: %r", exc)
                self.destroy(exc)
                return
        if getattr(source, "readable_ended", False):
            logger.debug("Skipping source that has already ended")
            self._next()
            return
        self._attach(source)

    def _attach(self, source: StreamLike) -> None:
        self._current = source
        source.on("data", self._on_data)
        source.once("end", self._on_end)
        source.on("error", self._on_error)
        source.once("close", self._on_close)

    def _detach(self, source: StreamLike) -> None:
        source.remove_listener("data", self._on_data)
        source.remove_listener("end", self._on_end)
        source.remove_listener("error", self._on_error)
        source.remove_listener("close", self._on_close)
        if self._current is source:
            self._current = None

    def _on_data(self, chunk: Any) -> None:
        if not self.push(chunk):
            pause = getattr(self._current, "pause", None)
            if pause is not None:
                pause()

    def _on_end(self) -> None:
        if self._current is not None:
            self._detach(self._current)
        self._next()

    def _on_error(self, error: BaseException) -> None:
        if self._current is not None:
            self._detach(self._current)
        self.destroy(error)

    def _on_close(self) -> None:
        # A source that closes before ending has neither data nor an error to give.
        if self._current is not None:
            self._detach(self._current)
        self.destroy(PrematureClose("Source closed before it ended."))

    def _read(self) -> None:
        resume = getattr(self._current, "resume", None)
        if resume is not None:
            resume()

    def destroy(self, error: BaseException | None = None) -> "MultiStream":
        source = self._current
        if source is not None:
            self._detach(source)
            source_destroy = getattr(source, "destroy", None)
            if source_destroy is not None:
                source_destroy()
        self._queue.clear()
        super().destroy(error)
        return self
