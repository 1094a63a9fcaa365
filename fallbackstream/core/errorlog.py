# fallbackstream/core/errorlog.py
from __future__ import annotations

from collections.abc import Sequence
from typing import Iterator, overload


class SuppressedErrorLog(Sequence[BaseException]):
    """
    Ordered, append-only record of the errors that were turned into fallbacks.

    Owned by the combined stream. It can be read at any time (partial while the
    stream is running, complete once it has ended) and is never cleared.
    """

    __slots__ = ("_errors", "_frozen")

    def __init__(self) -> None:
        self._errors: list[BaseException] = []
        self._frozen = False

    def append(self, error: BaseException) -> None:
        if self._frozen:
            raise RuntimeError("SuppressedErrorLog is frozen; the stream has already ended.")
        self._errors.append(error)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @overload
    def __getitem__(self, index: int) -> BaseException: ...

    @overload
    def __getitem__(self, index: slice) -> list[BaseException]: ...

    def __getitem__(self, index):
        return self._errors[index]

    def __len__(self) -> int:
        return len(self._errors)

    def __iter__(self) -> Iterator[BaseException]:
        return iter(self._errors)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SuppressedErrorLog):
            return self._errors == other._errors
        if isinstance(other, (list, tuple)):
            return self._errors == list(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"SuppressedErrorLog({self._errors!r})"
