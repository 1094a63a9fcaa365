# fallbackstream/core/events.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .exceptions import UnhandledStreamError

Listener = Callable[..., Any]

NEW_LISTENER = "new_listener"


@dataclass(slots=True)
class _Registration:
    callback: Listener
    once: bool = False


class EventEmitter:
    """
    Minimal synchronous event emitter.

    Differences from Node's emitter worth knowing:
    - ``new_listener`` is emitted *after* the listener is registered, so a
      ``new_listener`` handler is free to detach what was just added.
    - listeners are compared with ``==`` so bound methods can be removed.
    """

    def __init__(self) -> None:
        self._events: dict[str, list[_Registration]] = {}

    # ---- registration ----
    def on(self, event: str, listener: Listener) -> "EventEmitter":
        self._add_listener(event, listener, once=False)
        return self

    add_listener = on

    def once(self, event: str, listener: Listener) -> "EventEmitter":
        self._add_listener(event, listener, once=True)
        return self

    def remove_listener(self, event: str, listener: Listener) -> "EventEmitter":
        regs = self._events.get(event)
        if not regs:
            return self
        # Remove the most recently added match, like Node does
        for i in range(len(regs) - 1, -1, -1):
            if regs[i].callback == listener:
                del regs[i]
                break
        if not regs:
            del self._events[event]
        return self

    off = remove_listener

    def remove_all_listeners(self, event: str | None = None) -> "EventEmitter":
        if event is None:
            self._events.clear()
        else:
            self._events.pop(event, None)
        return self

    def listeners(self, event: str) -> list[Listener]:
        return [reg.callback for reg in self._events.get(event, ())]

    def listener_count(self, event: str) -> int:
        return len(self._events.get(event, ()))

    def _add_listener(self, event: str, listener: Listener, *, once: bool) -> None:
        if not callable(listener):
            raise TypeError(f"listener must be callable, got {type(listener).__name__}")
        self._events.setdefault(event, []).append(_Registration(listener, once))
        if event != NEW_LISTENER:
            self.emit(NEW_LISTENER, event, listener)

    # ---- dispatch ----
    def emit(self, event: str, *args: Any) -> bool:
        regs = self._events.get(event)
        if not regs:
            if event == "error":
                payload = args[0] if args else None
                if isinstance(payload, BaseException):
                    raise payload
                raise UnhandledStreamError(payload)
            return False

        snapshot = list(regs)
        for reg in snapshot:
            if reg.once:
                self._discard(event, reg)
        for reg in snapshot:
            reg.callback(*args)
        return True

    def _discard(self, event: str, reg: _Registration) -> None:
        regs = self._events.get(event)
        if regs is None:
            return
        for i, existing in enumerate(regs):
            if existing is reg:
                del regs[i]
                break
        if not regs:
            del self._events[event]
