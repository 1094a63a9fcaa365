# fallbackstream/io/fallback.py
from __future__ import annotations

from functools import partial
from typing import Any, Sequence

from fallbackstream.core import (
    FallbackGuard,
    FallbackOptions,
    InvalidSourceList,
    SourceEntry,
    StreamLike,
    SuppressedErrorLog,
    normalize_source,
    parse_options,
)
from fallbackstream.io.multistream import MultiStream


class FallbackStream(MultiStream):
    """
    Combined stream returned by :func:`fallback_stream`.

    `errors` holds every error that was suppressed in favour of the next
    source, in source order. It is readable at any time and frozen once the
    stream ends.
    """

    def __init__(self, sources: Sequence[Any], options: FallbackOptions) -> None:
        self.errors = SuppressedErrorLog()
        self.error_filter = options.error_filter
        self.guards: list[FallbackGuard] = []

        entries = [normalize_source(entry) for entry in sources]
        last = len(entries) - 1
        producers = [
            partial(self._produce, entry, index, index == last)
            for index, entry in enumerate(entries)
        ]
        super().__init__(producers, **options.stream_options)

    def _produce(self, entry: SourceEntry, index: int, terminal: bool) -> StreamLike:
        source = entry.resolve()
        # The last source has nothing to fall back to: its errors always surface.
        if terminal:
            return source

        guard = FallbackGuard(
            source,
            self.error_filter,
            self.errors,
            self.clear_queue,
            index=index,
        )
        self.guards.append(guard)
        return guard.install()

    def _emit_end(self) -> None:
        self.errors.freeze()
        super()._emit_end()


def fallback_stream(
    sources: Sequence[Any],
    options: Any = None,
    **stream_options: Any,
) -> FallbackStream:
    """
    Concatenate `sources` with fallback.

    Parameters
    ----------
    sources:
        list/tuple of readable streams or zero-argument callables returning one.
        Callables are invoked lazily, when their turn comes.
    options:
        None, an error filter (callable or compiled ``re.Pattern``), or a
        mapping with ``error_filter`` plus stream options such as
        ``object_mode``. The mapping is not modified.
    stream_options:
        Extra stream options; they override the ones in `options`.

    Raises
    ------
    InvalidSourceList, InvalidErrorFilter, InvalidSource
        Configuration errors, raised from this call. An invalid source
        further down the list raises when the stream reaches it.
    """
    if not isinstance(sources, (list, tuple)):
        raise InvalidSourceList(
            f"{sources!r} is not a list. The first argument to fallback_stream() must be a list."
        )

    parsed = parse_options(options, **stream_options)
    return FallbackStream(sources, parsed)
