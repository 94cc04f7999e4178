"""Tests for the tail-polling engine.

Reads and sleeps are scripted, so every test is deterministic: each
:class:`~tests.helpers.StepSleep` step runs between two poll iterations.
"""

from __future__ import annotations

import asyncio

import pytest

from typegit._internal.polling import TailPoller
from typegit.cancel import CancelToken
from tests.helpers import MemoryReader, StepSleep


def make_poller(
    reader: MemoryReader,
    token: CancelToken,
    steps: list,  # type: ignore[type-arg]
    **kwargs: object,
) -> tuple[TailPoller, StepSleep]:
    sleep = StepSleep(steps)
    poller = TailPoller(reader, token=token, sleep=sleep, **kwargs)  # type: ignore[arg-type]
    return poller, sleep


@pytest.mark.asyncio
async def test_lines_split_across_reads_are_joined() -> None:
    reader = MemoryReader(b"one\ntw")
    token = CancelToken()
    poller, _ = make_poller(
        reader,
        token,
        [lambda: reader.append(b"o\nthree\n"), token.cancel],
    )

    lines: list[str] = []
    await poller.run(lines.append)

    assert lines == ["one", "two", "three"]
    assert reader.reads == [0, 6]
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_missing_file_is_retried() -> None:
    reader = MemoryReader(exists=False)
    token = CancelToken()
    poller, _ = make_poller(
        reader,
        token,
        [lambda: None, lambda: reader.append(b"late\n"), token.cancel],
    )

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == ["late"]


@pytest.mark.asyncio
async def test_file_not_found_error_never_counts_as_failure() -> None:
    reader = MemoryReader(b"ok\n")
    reader.errors = [FileNotFoundError() for _ in range(5)]
    token = CancelToken()
    steps = [lambda: None] * 5 + [token.cancel]
    poller, _ = make_poller(reader, token, steps, max_read_errors=1)

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == ["ok"]


@pytest.mark.asyncio
async def test_empty_lines_are_skipped() -> None:
    reader = MemoryReader(b"a\n\n   \n\tb\n")
    token = CancelToken()
    poller, _ = make_poller(reader, token, [token.cancel])

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == ["a", "   ", "\tb"]


@pytest.mark.asyncio
async def test_start_offset_skips_existing_content() -> None:
    reader = MemoryReader(b"skip\nkeep\n")
    token = CancelToken()
    poller, _ = make_poller(reader, token, [token.cancel], start_offset=5)

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == ["keep"]
    assert reader.reads[0] == 5


def test_negative_start_offset_rejected() -> None:
    with pytest.raises(ValueError):
        TailPoller(MemoryReader(), start_offset=-1)


@pytest.mark.asyncio
async def test_sleeps_poll_interval_after_every_iteration() -> None:
    reader = MemoryReader()
    token = CancelToken()
    poller, sleep = make_poller(
        reader,
        token,
        [lambda: None, lambda: None, token.cancel],
        poll_interval=0.25,
    )
    await poller.run(lambda line: None)
    assert sleep.calls == [0.25, 0.25, 0.25]


@pytest.mark.asyncio
async def test_pre_cancelled_token_reads_nothing() -> None:
    reader = MemoryReader(b"data\n")
    token = CancelToken()
    token.cancel()
    poller, _ = make_poller(reader, token, [])

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == []
    assert reader.reads == []
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_persistent_read_errors_surface() -> None:
    reader = MemoryReader(b"data\n")
    reader.errors = [PermissionError("denied") for _ in range(3)]
    poller, sleep = make_poller(reader, CancelToken(), [], max_read_errors=3)

    with pytest.raises(PermissionError, match="denied"):
        await poller.run(lambda line: None)
    assert len(sleep.calls) == 2
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_read_error_count_resets_after_success() -> None:
    reader = MemoryReader(b"a\n")
    token = CancelToken()
    steps = [
        lambda: reader.errors.append(OSError("flaky")),
        lambda: reader.append(b"b\n"),
        lambda: reader.errors.append(OSError("flaky")),
        lambda: reader.append(b"c\n"),
        token.cancel,
    ]
    poller, _ = make_poller(reader, token, steps, max_read_errors=2)

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_unlimited_read_errors() -> None:
    reader = MemoryReader(b"a\n")
    reader.errors = [OSError("flaky") for _ in range(100)]
    token = CancelToken()
    steps = [lambda: None] * 100 + [token.cancel]
    poller, _ = make_poller(reader, token, steps, max_read_errors=None)

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == ["a"]


@pytest.mark.parametrize(
    ("flush_on_stop", "expected"),
    [(True, ["done", "late", "partial"]), (False, ["done"])],
    ids=["flush", "no_flush"],
)
@pytest.mark.asyncio
async def test_flush_on_stop(flush_on_stop: bool, expected: list[str]) -> None:
    reader = MemoryReader(b"done\n")
    token = CancelToken()

    def finish() -> None:
        reader.append(b"late\npartial")
        token.cancel()

    poller, _ = make_poller(reader, token, [finish], flush_on_stop=flush_on_stop)

    lines: list[str] = []
    await poller.run(lines.append)
    assert lines == expected


# ============================================================================
# Pull mode
# ============================================================================


@pytest.mark.asyncio
async def test_stream_yields_lines_in_order_until_token() -> None:
    reader = MemoryReader(b"1\n2\n")
    token = CancelToken()
    poller, _ = make_poller(reader, token, [lambda: reader.append(b"3\n"), token.cancel])

    lines = [line async for line in poller.stream()]

    assert lines == ["1", "2", "3"]
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_waiting_consumer_gets_next_line_directly() -> None:
    reader = MemoryReader()
    token = CancelToken()
    steps = [lambda: None] * 3 + [lambda: reader.append(b"x\n")] + [lambda: None] * 1000
    poller, _ = make_poller(reader, token, steps)
    handle = poller.stream()

    line = await asyncio.wait_for(handle.__anext__(), timeout=5)
    assert line == "x"
    await handle.aclose()
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_stop_resolves_waiting_consumer() -> None:
    reader = MemoryReader()
    poller, _ = make_poller(reader, CancelToken(), [lambda: None] * 1000)
    handle = poller.stream()

    consumer = asyncio.ensure_future(handle.__anext__())
    for _ in range(5):
        await asyncio.sleep(0)
    handle.stop()

    with pytest.raises(StopAsyncIteration):
        await consumer
    await handle.aclose()
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_second_concurrent_consumer_rejected() -> None:
    reader = MemoryReader()
    poller, _ = make_poller(reader, CancelToken(), [lambda: None] * 1000)
    handle = poller.stream()

    first = asyncio.ensure_future(handle.__anext__())
    await asyncio.sleep(0)
    with pytest.raises(RuntimeError, match="already waiting"):
        await handle.__anext__()

    handle.stop()
    with pytest.raises(StopAsyncIteration):
        await first
    await handle.aclose()


@pytest.mark.asyncio
async def test_no_lines_delivered_after_stop() -> None:
    reader = MemoryReader(b"a\nb\nc\n")
    poller, _ = make_poller(reader, CancelToken(), [lambda: None] * 1000)
    handle = poller.stream()

    assert await handle.__anext__() == "a"
    handle.stop()
    with pytest.raises(StopAsyncIteration):
        await handle.__anext__()
    await handle.aclose()


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_releases_once() -> None:
    reader = MemoryReader(b"a\n")
    poller, _ = make_poller(reader, CancelToken(), [lambda: None] * 1000)
    handle = poller.stream()

    assert await handle.__anext__() == "a"
    handle.stop()
    handle.stop()
    await handle.aclose()
    handle.stop()
    await handle.aclose()

    assert handle.stopped
    assert handle.released
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_stop_releases_reader_while_loop_is_running() -> None:
    reader = MemoryReader(b"a\n")
    poller, _ = make_poller(reader, CancelToken(), [lambda: None] * 1000)
    handle = poller.stream()

    assert await handle.__anext__() == "a"
    handle.stop()
    assert handle.released
    assert reader.close_count == 1

    reads_at_stop = len(reader.reads)
    reader.append(b"b\n")
    await handle.aclose()
    assert len(reader.reads) == reads_at_stop
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_stop_before_polling_started_releases_immediately() -> None:
    reader = MemoryReader(b"a\n")
    poller, _ = make_poller(reader, CancelToken(), [])
    handle = poller.stream()

    handle.stop()
    assert handle.released
    assert reader.close_count == 1
    await handle.aclose()
    assert reader.reads == []
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_loop_end_then_stop_releases_once() -> None:
    reader = MemoryReader(b"a\n")
    token = CancelToken()
    poller, _ = make_poller(reader, token, [token.cancel])
    handle = poller.stream()

    assert [line async for line in handle] == ["a"]
    handle.stop()
    await handle.aclose()
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_stream_surfaces_persistent_read_error() -> None:
    reader = MemoryReader()
    reader.errors = [PermissionError("denied")]
    poller, _ = make_poller(reader, CancelToken(), [], max_read_errors=1)

    with pytest.raises(PermissionError, match="denied"):
        async for _ in poller.stream():
            pass
    assert reader.close_count == 1


@pytest.mark.asyncio
async def test_stream_as_context_manager() -> None:
    reader = MemoryReader(b"a\nb\n")
    poller, _ = make_poller(reader, CancelToken(), [lambda: None] * 1000)

    async with poller.stream() as handle:
        first = await handle.__anext__()

    assert first == "a"
    assert handle.stopped
    assert reader.close_count == 1
