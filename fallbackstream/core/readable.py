# fallbackstream/core/readable.py
from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, AsyncIterator, Callable, Iterable, Protocol, runtime_checkable

from .events import EventEmitter, Listener

DEFAULT_HIGH_WATER_MARK = 16


@runtime_checkable
class StreamLike(Protocol):
    """Structural interface for anything that can be used as a source."""

    def on(self, event: str, listener: Listener) -> Any: ...

    def once(self, event: str, listener: Listener) -> Any: ...

    def emit(self, event: str, *args: Any) -> bool: ...

    def remove_listener(self, event: str, listener: Listener) -> Any: ...

    def listeners(self, event: str) -> list[Listener]: ...


class Readable(EventEmitter):
    """
    Buffered readable stream emitting ``data``, ``end``, ``error`` and ``close``.

    - Byte mode (default): chunks are coerced to ``bytes``; empty chunks are dropped.
    - Object mode: any value except ``None`` is delivered unchanged.
    - ``push(None)`` marks the end of input.

    Attaching a ``data`` listener switches the stream to flowing mode. Events are
    delivered from the running asyncio loop (``call_soon``), never from the
    call that attached the listener.
    """

    def __init__(
        self,
        read: Callable[["Readable"], None] | None = None,
        *,
        object_mode: bool = False,
        high_water_mark: int = DEFAULT_HIGH_WATER_MARK,
    ) -> None:
        super().__init__()
        if read is not None and not callable(read):
            raise TypeError("Readable.read must be callable.")
        if high_water_mark < 1:
            raise ValueError("high_water_mark must be >= 1")

        self.object_mode = object_mode
        self.high_water_mark = high_water_mark
        self._read_fn = read

        self._buffer: deque[Any] = deque()
        self._input_ended = False
        self._end_emitted = False
        self._destroyed = False
        self._close_emitted = False

        self._flowing = False
        self._reading = False
        self._in_flow = False
        self._flow_scheduled = False

    @classmethod
    def from_iterable(
        cls,
        iterable: Iterable[Any],
        *,
        object_mode: bool = False,
    ) -> "Readable":
        """
        Build a stream that pulls one item per read from `iterable`.

        An exception raised while iterating destroys the stream with that
        exception, so generators make convenient failing sources.
        """
        iterator = iter(iterable)

        def _read(stream: Readable) -> None:
            try:
                chunk = next(iterator)
            except StopIteration:
                stream.push(None)
            except Exception as exc:
                stream.destroy(exc)
            else:
                stream.push(chunk)

        return cls(_read, object_mode=object_mode)

    # ---- state ----
    @property
    def readable_ended(self) -> bool:
        return self._end_emitted

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def flowing(self) -> bool:
        return self._flowing

    # ---- producer side ----
    def push(self, chunk: Any) -> bool:
        """Buffer `chunk` (or end the input on ``None``). Returns False when the buffer is full."""
        if self._destroyed or self._input_ended:
            return False

        self._reading = False
        if chunk is None:
            self._input_ended = True
        else:
            data = self._coerce(chunk)
            if self.object_mode or len(data) > 0:
                self._buffer.append(data)

        self._schedule_flow()
        return len(self._buffer) < self.high_water_mark

    def _coerce(self, chunk: Any) -> Any:
        if self.object_mode:
            return chunk
        if isinstance(chunk, bytes):
            return chunk
        if isinstance(chunk, str):
            return chunk.encode("utf-8")
        try:
            return bytes(memoryview(chunk))
        except TypeError:
            raise TypeError(
                f"Invalid chunk of type {type(chunk).__name__}: expected str or a bytes-like "
                "object (use object_mode=True for arbitrary values)."
            ) from None

    def _read(self) -> None:
        if self._read_fn is not None:
            self._read_fn(self)

    # ---- consumer side ----
    def _add_listener(self, event: str, listener: Listener, *, once: bool) -> None:
        super()._add_listener(event, listener, once=once)
        if event == "data":
            self.resume()

    def resume(self) -> "Readable":
        if not self._destroyed:
            self._flowing = True
            self._schedule_flow()
        return self

    def pause(self) -> "Readable":
        self._flowing = False
        return self

    def destroy(self, error: BaseException | None = None) -> "Readable":
        """
        Stop the stream; emit ``error`` (if given) then ``close`` on the next loop turns.

        Outside a running loop both events are emitted before returning.
        """
        if self._destroyed:
            return self
        self._destroyed = True
        self._flowing = False
        self._buffer.clear()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if error is not None:
                self.emit("error", error)
            self._emit_close()
            return self
        if error is not None:
            loop.call_soon(self.emit, "error", error)
        loop.call_soon(self._emit_close)
        return self

    # ---- flowing machinery ----
    def _schedule_flow(self) -> None:
        if self._flow_scheduled or self._in_flow or not self._flowing or self._destroyed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Not inside a loop yet; the next resume() from within one starts flowing.
            return
        self._flow_scheduled = True
        loop.call_soon(self._flow)

    def _flow(self) -> None:
        self._flow_scheduled = False
        self._in_flow = True
        try:
            while self._flowing and not self._destroyed:
                if self._buffer:
                    self.emit("data", self._buffer.popleft())
                    continue
                if self._input_ended:
                    self._emit_end()
                    return
                if self._reading:
                    return
                self._reading = True
                self._read()
                if not (self._buffer or self._input_ended):
                    return
        finally:
            self._in_flow = False

    def _emit_end(self) -> None:
        if self._end_emitted:
            return
        self._end_emitted = True
        self._destroyed = True
        self._flowing = False
        self.emit("end")
        asyncio.get_running_loop().call_soon(self._emit_close)

    def _emit_close(self) -> None:
        if self._close_emitted:
            return
        self._close_emitted = True
        self.emit("close")

    # ---- async consumption ----
    async def __aiter__(self) -> AsyncIterator[Any]:
        if self._end_emitted or self._close_emitted:
            return

        queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue()

        def on_data(chunk: Any) -> None:
            queue.put_nowait(("data", chunk))

        def on_error(error: BaseException) -> None:
            queue.put_nowait(("error", error))

        def on_done() -> None:
            queue.put_nowait(("end", None))

        self.on("error", on_error)
        self.on("end", on_done)
        self.on("close", on_done)
        self.on("data", on_data)
        try:
            while True:
                kind, value = await queue.get()
                if kind == "data":
                    yield value
                elif kind == "error":
                    raise value
                else:
                    return
        finally:
            self.remove_listener("data", on_data)
            self.remove_listener("end", on_done)
            self.remove_listener("close", on_done)
            self.remove_listener("error", on_error)

    async def read_all(self) -> list[Any]:
        """Consume the stream and return every chunk; raises the stream's error, if any."""
        return [chunk async for chunk in self]
