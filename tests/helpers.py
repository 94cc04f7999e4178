"""Fakes for process and file host primitives."""

from __future__ import annotations

import asyncio
import shutil
import typing as t

import pytest

from typegit.exec import SpawnResult

if t.TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from typegit.exec import SpawnSpec

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class FakeChild:
    """In-memory child process with feedable stdout/stderr."""

    def __init__(self, *, exit_on_signal: bool = True) -> None:
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.signals: list[int] = []
        self.exit_on_signal = exit_on_signal
        self._returncode: int | None = None
        self._exited = asyncio.Event()

    @property
    def returncode(self) -> int | None:
        return self._returncode

    def exit(self, code: int = 0) -> None:
        if self._returncode is not None:
            return
        self._returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        assert self._returncode is not None
        return self._returncode

    def send_signal(self, sig: int) -> None:
        if self._returncode is not None:
            raise ProcessLookupError
        self.signals.append(sig)
        if self.exit_on_signal:
            self.exit(-sig)


class FakeSpawner:
    """Spawner handing out a prepared :class:`FakeChild`, or failing."""

    def __init__(
        self,
        child: FakeChild | None = None,
        error: OSError | None = None,
    ) -> None:
        self.child = child
        self.error = error
        self.calls: list[tuple[tuple[str, ...], Mapping[str, str] | None, t.Any]] = []

    async def spawn(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: t.Any = None,
    ) -> FakeChild:
        self.calls.append((tuple(argv), env, cwd))
        if self.error is not None:
            raise self.error
        assert self.child is not None
        return self.child


class MemoryReader:
    """:class:`~typegit._internal.polling.ChunkReader` over a bytearray."""

    def __init__(self, data: bytes = b"", *, exists: bool = True) -> None:
        self.data = bytearray(data)
        self.exists = exists
        self.errors: list[BaseException] = []
        self.reads: list[int] = []
        self.close_count = 0

    def append(self, data: bytes) -> None:
        self.exists = True
        self.data += data

    async def read_chunk(self, position: int) -> bytes | None:
        self.reads.append(position)
        if self.errors:
            raise self.errors.pop(0)
        if not self.exists:
            return None
        return bytes(self.data[position:])

    def close(self) -> None:
        self.close_count += 1


class StepSleep:
    """Sleep replacement running one scripted step per poll iteration."""

    def __init__(self, steps: Sequence[Callable[[], None]] = ()) -> None:
        self.steps = list(steps)
        self.calls: list[float] = []

    async def __call__(self, interval: float) -> None:
        self.calls.append(interval)
        if self.steps:
            self.steps.pop(0)()
        await asyncio.sleep(0)


class RecordingEngine:
    """Engine stand-in returning a canned result and replaying stderr."""

    def __init__(
        self,
        result: SpawnResult | None = None,
        stderr_chunks: Sequence[str] = (),
        on_execute: Callable[[SpawnSpec], None] | None = None,
    ) -> None:
        self.result = result if result is not None else SpawnResult(exit_code=0)
        self.stderr_chunks = list(stderr_chunks)
        self.on_execute = on_execute
        self.specs: list[SpawnSpec] = []

    async def execute(
        self,
        spec: SpawnSpec,
        on_stdout: Callable[[str], None] | None = None,
        on_stderr: Callable[[str], None] | None = None,
    ) -> SpawnResult:
        self.specs.append(spec)
        if self.on_execute is not None:
            self.on_execute(spec)
        if on_stderr is not None:
            for chunk in self.stderr_chunks:
                on_stderr(chunk)
        await asyncio.sleep(0)
        return self.result
