# fallbackstream/core/sources.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Union

from .exceptions import InvalidSource
from .readable import StreamLike


@dataclass(slots=True)
class Ready:
    """A source given as a stream instance. Validated on first demand."""

    value: Any

    def resolve(self) -> StreamLike:
        if not isinstance(self.value, StreamLike):
            raise InvalidSource("All items in the list must be a readable stream or a function.")
        return self.value


@dataclass(slots=True)
class Factory:
    """A source given as a zero-argument producer. Invoked once, on first demand."""

    producer: Callable[[], Any] = field(repr=False)
    _stream: StreamLike | None = field(default=None, init=False, repr=False)

    def resolve(self) -> StreamLike:
        if self._stream is not None:
            return self._stream

        stream = self.producer()
        if not isinstance(stream, StreamLike):
            raise InvalidSource("All functions in the list must return a readable stream.")
        self._stream = stream
        return stream


SourceEntry = Union[Ready, Factory]


def normalize_source(entry: Any) -> SourceEntry:
    """Tag a raw list item; nothing is invoked or validated yet."""
    if isinstance(entry, (Ready, Factory)):
        return entry
    if callable(entry):
        return Factory(entry)
    return Ready(entry)
