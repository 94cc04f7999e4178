"""Tail a growing file as a stream of lines.

Note
----
This is an internal API not covered by versioning policy.

:class:`TailPoller` is host independent: it only knows a
:class:`ChunkReader` ("give me the bytes from this offset to the current end")
and a sleep callable. :class:`typegit.fs.FileChunkReader` is the local
filesystem implementation.

Examples
--------
>>> import asyncio
>>> class StaticReader:
...     data = b"first\\nsecond\\n"
...     async def read_chunk(self, position):
...         return self.data[position:]
...     def close(self):
...         pass
>>> async def example():
...     handle = TailPoller(StaticReader(), poll_interval=0.01).stream()
...     lines = [await handle.__anext__(), await handle.__anext__()]
...     handle.stop()
...     return lines
>>> asyncio.run(example())
['first', 'second']
"""

from __future__ import annotations

import asyncio
import collections
import logging
import typing as t

from typing_extensions import Self

from typegit.constants import MAX_READ_ERRORS, POLL_INTERVAL_SECONDS

from .decoder import LineDecoder

if t.TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

    from typegit.cancel import CancelToken

    from .types import TextObserver

logger = logging.getLogger(__name__)

SleepFn = t.Callable[[float], "Awaitable[None]"]


class ChunkReader(t.Protocol):
    """Host primitive reading a file from a byte offset."""

    async def read_chunk(self, position: int) -> bytes | None:
        """Return the bytes from *position* to end of file.

        ``None`` (or :exc:`FileNotFoundError`) means the file does not exist
        yet. Other :exc:`OSError` are counted as read failures.
        """
        ...

    def close(self) -> None:
        """Release any handle opened by :meth:`read_chunk`."""
        ...


class TailPoller:
    """Poll a :class:`ChunkReader` and republish its content as lines.

    Parameters
    ----------
    reader : ChunkReader
        Byte source, owned by this poller from now on.
    token : CancelToken, optional
        Stops polling when triggered.
    poll_interval : float
        Seconds to sleep after every read, whether or not bytes were found.
    start_offset : int
        Byte offset of the first read.
    sleep : callable
        Sleep primitive, :func:`asyncio.sleep` by default.
    max_read_errors : int or None
        Consecutive read failures (other than the file not existing yet)
        tolerated before the error is surfaced. ``None`` retries forever.
    flush_on_stop : bool
        When the token stops the loop, read once more and emit the trailing
        partial line. Useful once the writer is known to be finished.
    """

    def __init__(
        self,
        reader: ChunkReader,
        *,
        token: CancelToken | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        start_offset: int = 0,
        sleep: SleepFn = asyncio.sleep,
        max_read_errors: int | None = MAX_READ_ERRORS,
        flush_on_stop: bool = False,
    ) -> None:
        if start_offset < 0:
            msg = "start_offset must not be negative"
            raise ValueError(msg)
        self.reader = reader
        self.token = token
        self.poll_interval = poll_interval
        self.position = start_offset
        self.max_read_errors = max_read_errors
        self.flush_on_stop = flush_on_stop
        self._sleep = sleep
        self._decoder = LineDecoder()
        self._read_errors = 0

    async def _read_lines(self) -> list[str]:
        try:
            data = await self.reader.read_chunk(self.position)
        except FileNotFoundError:
            data = None
        except OSError:
            self._read_errors += 1
            logger.debug(
                "tail read failed",
                extra={"position": self.position, "failures": self._read_errors},
                exc_info=True,
            )
            if self.max_read_errors is not None and self._read_errors >= self.max_read_errors:
                raise
            return []

        self._read_errors = 0
        if not data:
            return []
        self.position += len(data)
        return self._decoder.decode(data)

    async def _iter_lines(self, stopped: Callable[[], bool]) -> AsyncIterator[str]:
        while not stopped():
            for line in await self._read_lines():
                if line:
                    yield line
            if stopped():
                break
            await self._sleep(self.poll_interval)

        if self.flush_on_stop and self.token is not None and self.token.cancelled:
            lines = await self._read_lines()
            lines.extend(self._decoder.flush())
            for line in lines:
                if line:
                    yield line

    def _token_cancelled(self) -> bool:
        return self.token is not None and self.token.cancelled

    async def run(self, on_line: TextObserver) -> None:
        """Deliver every line to *on_line* until the token fires.

        The reader is closed when this returns or raises.
        """
        try:
            async for line in self._iter_lines(self._token_cancelled):
                on_line(line)
        finally:
            _close_reader(self.reader)

    def stream(self) -> TailHandle:
        """Start polling in a background task and return a pull handle."""
        return TailHandle(self)


def _close_reader(reader: ChunkReader) -> None:
    try:
        reader.close()
    except OSError:
        logger.debug("closing tail reader failed", exc_info=True)


class TailHandle:
    """Pull side of a :class:`TailPoller`.

    Lines are queued in a FIFO backlog. At most one consumer may wait for the
    next line at a time; it is resolved directly by the next produced line.

    Iterate with ``async for``. :meth:`stop` ends the sequence and releases
    the reader exactly once, whether the polling loop or the consumer gets
    there first.
    """

    def __init__(self, poller: TailPoller) -> None:
        self._poller = poller
        self._backlog: collections.deque[str] = collections.deque()
        self._waiter: asyncio.Future[str | None] | None = None
        self._error: BaseException | None = None
        self._stopped = False
        self._exhausted = False
        self._released = False
        self._task = asyncio.create_task(self._poll(), name="typegit-tail")

    def __repr__(self) -> str:
        state = "stopped" if self._stopped else "polling"
        return f"{self.__class__.__name__}({state}, backlog={len(self._backlog)})"

    @property
    def stopped(self) -> bool:
        """Return True once the sequence has ended."""
        return self._stopped or self._exhausted

    @property
    def released(self) -> bool:
        """Return True once the underlying reader has been closed."""
        return self._released

    def _should_stop(self) -> bool:
        return self._stopped or self._poller._token_cancelled()

    async def _poll(self) -> None:
        try:
            async for line in self._poller._iter_lines(self._should_stop):
                self._publish(line)
        except asyncio.CancelledError:
            raise
        except Exception as error:
            logger.debug("tail polling stopped on error", exc_info=True)
            self._error = error
        finally:
            self._release()
            self._finish()

    def _publish(self, line: str) -> None:
        waiter = self._waiter
        if waiter is not None and not waiter.done():
            self._waiter = None
            waiter.set_result(line)
        else:
            self._backlog.append(line)

    def _finish(self) -> None:
        self._exhausted = True
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            if self._error is not None:
                error, self._error = self._error, None
                waiter.set_exception(error)
            else:
                waiter.set_result(None)

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        _close_reader(self._poller.reader)

    def stop(self) -> None:
        """End the sequence and release the reader. Idempotent."""
        if self._stopped and self._released:
            return
        self._stopped = True
        self._backlog.clear()
        self._finish()
        if not self._task.done():
            self._task.cancel()
        self._release()

    async def aclose(self) -> None:
        """Stop and wait for the polling task to finish."""
        self.stop()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._release()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> str:
        if self._stopped:
            raise StopAsyncIteration
        if self._backlog:
            return self._backlog.popleft()
        if self._exhausted:
            if self._error is not None:
                error, self._error = self._error, None
                raise error
            raise StopAsyncIteration
        if self._waiter is not None:
            msg = "another consumer is already waiting for the next line"
            raise RuntimeError(msg)

        waiter: asyncio.Future[str | None] = asyncio.get_running_loop().create_future()
        self._waiter = waiter
        try:
            line = await waiter
        finally:
            if self._waiter is waiter:
                self._waiter = None
        if line is None:
            raise StopAsyncIteration
        return line
