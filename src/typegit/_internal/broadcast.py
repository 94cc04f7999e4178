"""Fan one byte stream out to independently paced readers.

Note
----
This is an internal API not covered by versioning policy.

One pump task reads the upstream source; every :class:`BroadcastCursor` sees
every chunk, in order. A slow cursor buffers, the pump only pauses while all
active cursors are at their high-water mark. Closing a cursor detaches it so
an abandoned reader never holds the others back.
"""

from __future__ import annotations

import asyncio
import logging
import typing as t

from typegit.constants import BROADCAST_HIGH_WATER, READ_CHUNK_SIZE

logger = logging.getLogger(__name__)


class ByteSource(t.Protocol):
    """Upstream primitive, satisfied by :class:`asyncio.StreamReader`."""

    async def read(self, n: int = -1) -> bytes:
        """Return up to *n* bytes, ``b""`` at end of stream."""
        ...


class BroadcastCursor:
    """Independent read position into a :class:`BroadcastBuffer`."""

    def __init__(self, buffer: BroadcastBuffer) -> None:
        self._buffer = buffer
        self.position = 0
        self.closed = False

    def __aiter__(self) -> BroadcastCursor:
        return self

    async def __anext__(self) -> bytes:
        chunk = await self.read()
        if chunk is None:
            raise StopAsyncIteration
        return chunk

    async def read(self) -> bytes | None:
        """Return the next chunk, ``None`` once the upstream is exhausted."""
        return await self._buffer._next(self)

    def close(self) -> None:
        """Detach from the buffer. Safe to call more than once."""
        if not self.closed:
            self.closed = True
            self._buffer._detach()


class BroadcastBuffer:
    """One upstream reader, N downstream cursors.

    Examples
    --------
    >>> import asyncio
    >>> async def demo():
    ...     reader = asyncio.StreamReader()
    ...     reader.feed_data(b"a\\nb\\n")
    ...     reader.feed_eof()
    ...     buffer = BroadcastBuffer(reader)
    ...     first, second = buffer.cursor(), buffer.cursor()
    ...     buffer.start()
    ...     one = b"".join([chunk async for chunk in first])
    ...     two = b"".join([chunk async for chunk in second])
    ...     return one == two == b"a\\nb\\n"
    >>> asyncio.run(demo())
    True
    """

    def __init__(
        self,
        source: ByteSource,
        *,
        high_water: int = BROADCAST_HIGH_WATER,
        chunk_size: int = READ_CHUNK_SIZE,
    ) -> None:
        self._source = source
        self._high_water = high_water
        self._chunk_size = chunk_size
        self._chunks: list[bytes] = []
        self._base = 0
        self._cursors: list[BroadcastCursor] = []
        self._eof = False
        self._error: BaseException | None = None
        self._waiters: list[asyncio.Future[None]] = []
        self._task: asyncio.Task[None] | None = None

    @property
    def _end(self) -> int:
        return self._base + len(self._chunks)

    @property
    def done(self) -> bool:
        """Return True once the upstream is exhausted."""
        return self._eof

    def cursor(self) -> BroadcastCursor:
        """Create a cursor. Cursors must exist before :meth:`start`."""
        if self._task is not None:
            msg = "cursors must be created before the buffer is started"
            raise RuntimeError(msg)
        cursor = BroadcastCursor(self)
        self._cursors.append(cursor)
        return cursor

    def start(self) -> asyncio.Task[None]:
        """Start pumping the upstream source on the running loop."""
        if self._task is None:
            self._task = asyncio.create_task(self._pump(), name="typegit-broadcast")
        return self._task

    async def aclose(self) -> None:
        """Stop the pump and detach every cursor."""
        for cursor in list(self._cursors):
            cursor.close()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    def _has_room(self) -> bool:
        active = [c for c in self._cursors if not c.closed]
        if not active:
            return True
        return any(self._end - c.position < self._high_water for c in active)

    async def _wait(self) -> None:
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)

    def _wake(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    async def _pump(self) -> None:
        try:
            while True:
                while not self._has_room():
                    await self._wait()
                chunk = await self._source.read(self._chunk_size)
                if not chunk:
                    return
                self._chunks.append(chunk)
                self._trim()
                self._wake()
        except asyncio.CancelledError:
            raise
        except Exception as error:
            logger.debug("broadcast upstream failed", exc_info=True)
            self._error = error
        finally:
            self._eof = True
            self._wake()

    async def _next(self, cursor: BroadcastCursor) -> bytes | None:
        if self._task is None:
            msg = "buffer has not been started"
            raise RuntimeError(msg)
        while not (cursor.closed or cursor.position < self._end or self._eof):
            await self._wait()
        if cursor.closed:
            return None
        if cursor.position < self._end:
            chunk = self._chunks[cursor.position - self._base]
            cursor.position += 1
            self._trim()
            self._wake()
            return chunk
        if self._error is not None:
            raise self._error
        return None

    def _detach(self) -> None:
        self._trim()
        self._wake()

    def _trim(self) -> None:
        active = [c.position for c in self._cursors if not c.closed]
        floor = min(active) if active else self._end
        drop = floor - self._base
        if drop > 0:
            del self._chunks[:drop]
            self._base = floor
