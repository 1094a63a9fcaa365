import asyncio
import re

import pytest

from fallbackstream import (
    FallbackStream,
    InvalidErrorFilter,
    InvalidSource,
    InvalidSourceList,
    PrematureClose,
    Readable,
    fallback_stream,
)
from fallbackstream.core.guard import GuardState

TMP_ERROR = RuntimeError("tmp error")


def emit_error_soon(stream, error=TMP_ERROR):
    asyncio.get_running_loop().call_soon(stream.emit, "error", error)
    return stream


def from_items(*items, **kwargs):
    return Readable.from_iterable(items, **kwargs)


async def consume(stream):
    chunks = []
    try:
        async for chunk in stream:
            chunks.append(chunk)
    except Exception as exc:
        return chunks, exc
    return chunks, None


async def closed(stream):
    done = asyncio.get_running_loop().create_future()
    stream.once("close", lambda: done.done() or done.set_result(None))
    await done


def test_single_source_passes_through():
    options = {}

    async def _exercise():
        combined = fallback_stream([from_items("a")], options)
        chunks = await combined.read_all()
        return combined, chunks

    combined, chunks = asyncio.run(_exercise())
    assert isinstance(combined, FallbackStream)
    assert chunks == [b"a"]
    assert options == {}
    assert combined.errors == []
    assert combined.errors.frozen


def test_uses_only_the_first_source_when_it_does_not_fail():
    async def _exercise():
        combined = fallback_stream([from_items("a"), from_items("b")])
        return combined, await combined.read_all()

    combined, chunks = asyncio.run(_exercise())
    assert chunks == [b"a"]
    assert combined.guards[0].state is GuardState.NATURAL_END


def test_accepts_a_function_returning_a_stream():
    async def _exercise():
        return await fallback_stream([lambda: from_items("a")]).read_all()

    assert asyncio.run(_exercise()) == [b"a"]


def test_last_source_error_is_emitted():
    async def _exercise():
        combined = fallback_stream([lambda: emit_error_soon(Readable())])
        chunks, error = await consume(combined)
        return combined, chunks, error

    combined, chunks, error = asyncio.run(_exercise())
    assert chunks == []
    assert error is TMP_ERROR
    assert combined.errors == []
    assert combined.guards == []


def test_falls_back_to_next_source_on_error():
    async def _exercise():
        will_emit_error = from_items()
        combined = fallback_stream([will_emit_error, from_items("a")])

        seen = []
        will_emit_error.on("error", seen.append)
        will_emit_error.emit("error", TMP_ERROR)

        chunks = await combined.read_all()
        return combined, chunks, seen, will_emit_error

    combined, chunks, seen, will_emit_error = asyncio.run(_exercise())
    assert chunks == [b"a"]
    assert combined.errors == [TMP_ERROR]
    assert combined.guards[0].state is GuardState.FALLBACK_TRIGGERED
    # not replayed, but still attached for anything the source emits later
    assert seen == []
    assert will_emit_error.listeners("error") == [seen.append]


def test_iterator_failure_falls_back():
    def flaky():
        yield "partial"
        raise ConnectionError("reset by peer")

    async def _exercise():
        combined = fallback_stream([
            lambda: Readable.from_iterable(flaky()),
            lambda: from_items("mirror"),
        ])
        return combined, await combined.read_all()

    combined, chunks = asyncio.run(_exercise())
    # data already forwarded from the failed source is not retracted
    assert chunks == [b"partial", b"mirror"]
    assert len(combined.errors) == 1
    assert isinstance(combined.errors[0], ConnectionError)


def test_non_matching_error_propagates_to_external_listeners():
    async def _exercise():
        source = Readable()
        combined = fallback_stream([source, Readable()], lambda err: False)

        seen = []
        source.on("error", seen.append)
        emit_error_soon(source)

        chunks, error = await consume(combined)
        return combined, chunks, error, seen

    combined, chunks, error, seen = asyncio.run(_exercise())
    assert chunks == []
    assert error is TMP_ERROR
    assert seen == [TMP_ERROR]
    assert seen[0] is TMP_ERROR
    assert combined.errors == []
    assert combined.guards[0].state is GuardState.PROPAGATED


def test_function_error_filter():
    async def _exercise():
        combined = fallback_stream(
            [lambda: emit_error_soon(Readable()), Readable()],
            lambda err: str(err) == "__does_not_match__",
        )
        return await consume(combined)

    _, error = asyncio.run(_exercise())
    assert error is TMP_ERROR


def test_pattern_error_filter():
    async def _exercise():
        loop = asyncio.get_running_loop()

        def fail_on_read(stream):
            loop.call_soon(stream.emit, "error", TypeError("error"))

        combined = fallback_stream(
            [
                lambda: Readable(fail_on_read),
                lambda: emit_error_soon(Readable()),
                Readable(),
            ],
            re.compile("TypeError"),
        )
        chunks, error = await consume(combined)
        return combined, error

    combined, error = asyncio.run(_exercise())
    assert error is TMP_ERROR
    assert len(combined.errors) == 1
    assert isinstance(combined.errors[0], TypeError)
    assert [guard.state for guard in combined.guards] == [
        GuardState.FALLBACK_TRIGGERED,
        GuardState.PROPAGATED,
    ]


def test_error_filter_option_and_object_mode():
    filtered = []

    def error_filter(err):
        filtered.append(err)
        return True

    async def _exercise():
        combined = fallback_stream(
            [
                lambda: emit_error_soon(Readable(object_mode=True)),
                from_items({"a": 1}, object_mode=True),
            ],
            {"object_mode": True, "error_filter": error_filter},
        )
        return await combined.read_all()

    assert asyncio.run(_exercise()) == [{"a": 1}]
    assert filtered == [TMP_ERROR]


def test_stream_options_as_keywords():
    async def _exercise():
        combined = fallback_stream([from_items((1, 2), object_mode=True)], object_mode=True)
        return await combined.read_all()

    assert asyncio.run(_exercise()) == [(1, 2)]


def test_suppressed_errors_are_logged_in_source_order():
    first, second = RuntimeError("first"), RuntimeError("second")

    async def _exercise():
        combined = fallback_stream([
            emit_error_soon(Readable(), first),
            lambda: emit_error_soon(Readable(), second),
            lambda: from_items("ok"),
        ])
        return combined, await combined.read_all()

    combined, chunks = asyncio.run(_exercise())
    assert chunks == [b"ok"]
    assert combined.errors == [first, second]


def test_error_log_is_readable_before_the_end():
    async def _exercise():
        combined = fallback_stream([emit_error_soon(Readable()), from_items("a", "b")])
        snapshots = []
        combined.on("data", lambda chunk: snapshots.append((list(combined.errors), combined.errors.frozen)))
        await closed(combined)
        return combined, snapshots

    combined, snapshots = asyncio.run(_exercise())
    assert snapshots == [([TMP_ERROR], False), ([TMP_ERROR], False)]
    assert combined.errors == [TMP_ERROR]
    assert combined.errors.frozen


def test_stops_when_the_first_source_has_already_ended():
    async def _exercise():
        ended = from_items("a")
        await ended.read_all()
        assert ended.readable_ended

        combined = fallback_stream([ended, from_items("b")], None)
        chunks, error = await consume(combined)
        return combined, chunks, error

    combined, chunks, error = asyncio.run(_exercise())
    assert chunks == []
    assert error is None
    assert combined.errors == []
    assert combined.guards[0].state is GuardState.NATURAL_END


def test_empty_source_list_ends_without_data():
    async def _exercise():
        combined = fallback_stream([])
        return combined, await combined.read_all()

    combined, chunks = asyncio.run(_exercise())
    assert chunks == []
    assert combined.errors == []


def test_options_mapping_is_not_mutated():
    options = {"error_filter": re.compile("Timeout"), "object_mode": True}
    snapshot = dict(options)

    async def _exercise():
        combined = fallback_stream([from_items({"k": "v"}, object_mode=True)], options)
        return await combined.read_all()

    assert asyncio.run(_exercise()) == [{"k": "v"}]
    assert options == snapshot


def test_can_be_built_outside_a_running_loop():
    combined = fallback_stream([from_items("a"), from_items("b")])
    assert asyncio.run(combined.read_all()) == [b"a"]


def test_destroying_the_combined_stream_early():
    async def _exercise():
        source = Readable()
        combined = fallback_stream([source, Readable()])
        combined.destroy()
        await closed(combined)
        return combined, source

    combined, source = asyncio.run(_exercise())
    assert combined.destroyed
    assert source.destroyed
    assert combined.guards[0].state is GuardState.ARMED
    assert combined.errors == []


def test_destroying_outside_a_running_loop():
    source = from_items("a")
    combined = fallback_stream([source, from_items("b")])
    closes = []
    combined.on("close", lambda: closes.append(True))

    combined.destroy()

    assert combined.destroyed
    assert source.destroyed
    assert closes == [True]


def test_invalid_later_source_fails_the_combined_stream():
    async def _exercise():
        combined = fallback_stream([emit_error_soon(Readable()), lambda: None])
        with pytest.raises(InvalidSource, match="must return a readable stream"):
            await combined.read_all()
        return combined

    combined = asyncio.run(_exercise())
    assert combined.destroyed
    assert combined.errors == [TMP_ERROR]


def test_error_filter_that_raises_fails_the_combined_stream():
    def error_filter(err):
        raise LookupError("broken filter")

    async def _exercise():
        combined = fallback_stream(
            [lambda: emit_error_soon(Readable()), lambda: from_items("never")],
            error_filter,
        )
        chunks, error = await consume(combined)
        return combined, chunks, error

    combined, chunks, error = asyncio.run(_exercise())
    assert chunks == []
    assert isinstance(error, LookupError)
    assert combined.errors == []
    assert combined.guards[0].state is GuardState.PROPAGATED


def test_source_closed_without_error_fails_the_combined_stream():
    async def _exercise():
        first = Readable()
        combined = fallback_stream([first, from_items("b")])
        asyncio.get_running_loop().call_soon(first.destroy)
        chunks, error = await consume(combined)
        return combined, chunks, error

    combined, chunks, error = asyncio.run(_exercise())
    assert chunks == []
    assert isinstance(error, PrematureClose)
    assert combined.destroyed
    assert combined.errors == []


@pytest.mark.integration
def test_falls_back_to_mirror_when_primary_file_is_missing(tmp_path):
    mirror = tmp_path / "mirror.txt"
    mirror.write_bytes(b"hello\nworld\n")

    def read_lines(path):
        def _lines():
            with open(path, "rb") as fh:
                yield from fh

        return lambda: Readable.from_iterable(_lines())

    async def _exercise():
        combined = fallback_stream(
            [read_lines(tmp_path / "primary.txt"), read_lines(mirror)],
            re.compile("FileNotFoundError"),
        )
        return combined, await combined.read_all()

    combined, chunks = asyncio.run(_exercise())
    assert b"".join(chunks) == b"hello\nworld\n"
    assert len(combined.errors) == 1
    assert isinstance(combined.errors[0], FileNotFoundError)


class TestArgumentValidation:
    def test_rejects_a_non_list(self):
        with pytest.raises(InvalidSourceList, match=r"is not a list.*must be a list"):
            fallback_stream(from_items("a"))

    def test_rejects_none(self):
        with pytest.raises(InvalidSourceList, match=r"is not a list.*must be a list"):
            fallback_stream(None)

    def test_source_list_is_checked_before_options(self):
        with pytest.raises(InvalidSourceList):
            fallback_stream("ab", {"error_filter": 1})

    def test_function_returning_non_stream(self):
        with pytest.raises(InvalidSource, match="must return a readable stream"):
            fallback_stream([lambda: None])

    def test_item_neither_stream_nor_function(self):
        with pytest.raises(InvalidSource, match="must be a readable stream or a function"):
            fallback_stream([{"a": 1}, None])

    def test_options_of_unsupported_type(self):
        with pytest.raises(InvalidErrorFilter, match="it was str"):
            fallback_stream([from_items("a")], "foo")

    def test_error_filter_of_unsupported_type(self):
        with pytest.raises(InvalidErrorFilter, match="it was int"):
            fallback_stream([from_items("a")], {"error_filter": 1})

    def test_configuration_errors_are_type_errors(self):
        with pytest.raises(TypeError):
            fallback_stream(42)
