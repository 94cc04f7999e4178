"""Run git (or any program) through :mod:`asyncio.subprocess`.

typegit.exec
~~~~~~~~~~~~

:class:`ExecEngine` is the process execution adapter. It offers two ways to
run a :class:`SpawnSpec`:

- :meth:`ExecEngine.execute` awaits completion and returns one aggregate
  :class:`SpawnResult`, optionally forwarding every decoded output chunk to
  observers as it arrives.
- :meth:`ExecEngine.execute_streaming` returns a :class:`StreamHandle` as soon
  as the child is running, exposing stdout and stderr as async line
  iterators while still accumulating the full output for
  :meth:`StreamHandle.wait`.

Spawning itself goes through a small :class:`Spawner` primitive so the
engine can be driven by a fake process in tests.

Examples
--------
>>> import asyncio
>>> async def example():
...     result = await ExecEngine().execute(SpawnSpec(["echo", "hi"]))
...     return result.exit_code, result.stdout
>>> asyncio.run(example())
(0, 'hi\\n')

Streaming, with a cancellation token shared with the caller:

>>> async def streaming():
...     token = CancelToken()
...     handle = await ExecEngine().execute_streaming(
...         SpawnSpec(["sh", "-c", "echo one; echo two"], token=token)
...     )
...     lines = [line async for line in handle.stdout]
...     result = await handle.wait()
...     return lines, result.cancelled
>>> asyncio.run(streaming())
(['one', 'two'], False)
"""

from __future__ import annotations

import asyncio
import codecs
import dataclasses
import logging
import os
import signal as signal_module
import subprocess
import types
import typing as t

from typing_extensions import Self

from . import exc
from ._internal.broadcast import BroadcastBuffer, BroadcastCursor, ByteSource
from ._internal.decoder import LineDecoder
from .cancel import CancelToken
from .constants import OUTPUT_ENCODING, OUTPUT_ERRORS, READ_CHUNK_SIZE, KillSignal

if t.TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping, Sequence

    from ._internal.types import StrPath, TextObserver

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class SpawnSpec:
    """What to run and how. Immutable once created.

    Parameters
    ----------
    argv : Sequence[str]
        Program and arguments. Must not be empty.
    env : Mapping[str, str], optional
        Variables merged over (not replacing) :data:`os.environ`.
    cwd : str or PathLike, optional
        Working directory of the child.
    token : CancelToken, optional
        Triggering it terminates the child.
    kill_signal : KillSignal
        Signal sent on cancellation.

    Examples
    --------
    >>> SpawnSpec(["git", "status"]).argv
    ('git', 'status')
    >>> SpawnSpec([])
    Traceback (most recent call last):
        ...
    ValueError: argv must not be empty
    """

    argv: Sequence[str]
    env: Mapping[str, str] | None = None
    cwd: StrPath | None = None
    token: CancelToken | None = None
    kill_signal: KillSignal = KillSignal.TERM

    def __post_init__(self) -> None:
        argv = tuple(str(arg) for arg in self.argv)
        if not argv:
            msg = "argv must not be empty"
            raise ValueError(msg)
        object.__setattr__(self, "argv", argv)
        if self.env is not None:
            object.__setattr__(self, "env", types.MappingProxyType(dict(self.env)))

    @property
    def cmdline(self) -> str:
        """Return argv as a single shell-like string, for logs and messages."""
        return subprocess.list2cmdline(self.argv)

    def error_context(self, **kwargs: t.Any) -> exc.ErrorContext:
        """Return an :class:`~typegit.exc.ErrorContext` for this spec."""
        return exc.ErrorContext(
            argv=tuple(self.argv),
            workdir=os.fspath(self.cwd) if self.cwd is not None else None,
            **kwargs,
        )


@dataclasses.dataclass(frozen=True)
class SpawnResult:
    """Aggregate outcome of one execution.

    ``exit_code`` is ``-1`` when no exit status exists, either because the
    process never started (cancelled beforehand) or because it died from a
    signal, which is then named in ``signal``.
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = -1
    signal: str | None = None
    cancelled: bool = False

    @classmethod
    def already_cancelled(cls) -> SpawnResult:
        """Return the result of an execution cancelled before it started."""
        return cls(stdout="", stderr="", exit_code=-1, signal=None, cancelled=True)

    @property
    def ok(self) -> bool:
        """Return True for a natural, successful exit."""
        return self.exit_code == 0 and not self.cancelled

    @property
    def stdout_lines(self) -> list[str]:
        """Return stdout split into lines, without trailing blank lines."""
        lines = self.stdout.split("\n")
        while lines and lines[-1] == "":
            lines.pop()
        return lines

    @property
    def stderr_lines(self) -> list[str]:
        """Return non-empty stderr lines."""
        return list(filter(None, self.stderr.split("\n")))


class ChildProcess(t.Protocol):
    """Running process, satisfied by :class:`asyncio.subprocess.Process`."""

    stdout: ByteSource | None
    stderr: ByteSource | None

    @property
    def returncode(self) -> int | None:
        """Exit status, ``None`` while running."""
        ...

    async def wait(self) -> int:
        """Wait for exit and return the exit status."""
        ...

    def send_signal(self, sig: int) -> None:
        """Deliver *sig* to the process."""
        ...


class Spawner(t.Protocol):
    """Host primitive starting a child with stdout/stderr piped, stdin closed."""

    async def spawn(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: StrPath | None = None,
    ) -> ChildProcess:
        """Start *argv*. Raise :exc:`OSError` if it cannot be started."""
        ...


class AsyncioSpawner:
    """:class:`Spawner` backed by :func:`asyncio.create_subprocess_exec`."""

    async def spawn(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: StrPath | None = None,
    ) -> ChildProcess:
        """Start *argv* with *env* merged over the ambient environment."""
        full_env: dict[str, str] | None = None
        if env is not None:
            full_env = os.environ.copy()
            full_env.update(env)

        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=full_env,
            cwd=cwd,
        )
        return t.cast("ChildProcess", process)


class _Terminator:
    """Send each kill signal at most once, never to an exited process."""

    def __init__(self, child: ChildProcess, kill_signal: KillSignal) -> None:
        self._child = child
        self._kill_signal = kill_signal
        self._sent: set[KillSignal] = set()
        self.cancelled = False

    def __call__(self) -> None:
        self.cancelled = True
        self.send(self._kill_signal)

    def send(self, kill_signal: KillSignal) -> bool:
        if kill_signal in self._sent or self._child.returncode is not None:
            return False
        self._sent.add(kill_signal)
        try:
            self._child.send_signal(kill_signal.signum)
        except ProcessLookupError:
            logger.debug("process already exited", extra={"signal": kill_signal.value})
            return False
        return True


class _EmptySource:
    async def read(self, n: int = -1) -> bytes:
        return b""


def _exit_status(returncode: int) -> tuple[int, str | None]:
    if returncode >= 0:
        return returncode, None
    try:
        name = signal_module.Signals(-returncode).name
    except ValueError:
        name = f"SIG{-returncode}"
    return -1, name


def _build_result(
    stdout: str,
    stderr: str,
    returncode: int,
    cancelled: bool,
) -> SpawnResult:
    exit_code, signal_name = _exit_status(returncode)
    return SpawnResult(
        stdout=stdout,
        stderr=stderr,
        exit_code=exit_code,
        signal=signal_name,
        cancelled=cancelled,
    )


async def _collect(source: ByteSource | None, observer: TextObserver | None) -> str:
    """Read *source* to the end, forwarding decoded chunks to *observer*."""
    if source is None:
        return ""
    decoder = codecs.getincrementaldecoder(OUTPUT_ENCODING)(errors=OUTPUT_ERRORS)
    parts: list[str] = []
    while True:
        chunk = await source.read(READ_CHUNK_SIZE)
        final = not chunk
        text = decoder.decode(chunk, final=final)
        if text:
            parts.append(text)
            if observer is not None:
                observer(text)
        if final:
            return "".join(parts)


async def _accumulate(cursor: BroadcastCursor) -> str:
    decoder = codecs.getincrementaldecoder(OUTPUT_ENCODING)(errors=OUTPUT_ERRORS)
    parts = [decoder.decode(chunk) async for chunk in cursor]
    parts.append(decoder.decode(b"", final=True))
    return "".join(parts)


async def _iter_lines(cursor: BroadcastCursor) -> AsyncIterator[str]:
    decoder = LineDecoder()
    try:
        async for chunk in cursor:
            for line in decoder.decode(chunk):
                yield line
        for line in decoder.flush():
            yield line
    finally:
        cursor.close()


async def _no_lines() -> AsyncIterator[str]:
    return
    yield


class StreamHandle:
    """Live handle to a running process.

    ``stdout`` and ``stderr`` are independent async iterators of lines. The
    aggregate :class:`SpawnResult` from :meth:`wait` always holds the full
    output, whether or not the iterators were consumed.
    """

    stdout: AsyncIterator[str]
    stderr: AsyncIterator[str]

    def __init__(self, spec: SpawnSpec, child: ChildProcess | None) -> None:
        self.spec = spec
        self._child = child
        self._remove_callback: t.Callable[[], None] | None = None

        if child is None:
            loop = asyncio.get_running_loop()
            done: asyncio.Future[SpawnResult] = loop.create_future()
            done.set_result(SpawnResult.already_cancelled())
            self._result: asyncio.Future[SpawnResult] = done
            self._terminator: _Terminator | None = None
            self.stdout = _no_lines()
            self.stderr = _no_lines()
            return

        self._terminator = _Terminator(child, spec.kill_signal)
        stdout_buffer = BroadcastBuffer(child.stdout or _EmptySource())
        stderr_buffer = BroadcastBuffer(child.stderr or _EmptySource())
        self.stdout = _iter_lines(stdout_buffer.cursor())
        self.stderr = _iter_lines(stderr_buffer.cursor())
        stdout_full = stdout_buffer.cursor()
        stderr_full = stderr_buffer.cursor()
        stdout_buffer.start()
        stderr_buffer.start()

        if spec.token is not None:
            self._remove_callback = spec.token.add_callback(self._terminator)
        self._result = asyncio.create_task(
            self._wait_result(child, stdout_full, stderr_full),
            name="typegit-stream-result",
        )

    def __repr__(self) -> str:
        state = "done" if self._result.done() else "running"
        return f"{self.__class__.__name__}({self.spec.cmdline!r}, {state})"

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _wait_result(
        self,
        child: ChildProcess,
        stdout: BroadcastCursor,
        stderr: BroadcastCursor,
    ) -> SpawnResult:
        try:
            stdout_text, stderr_text = await asyncio.gather(
                _accumulate(stdout),
                _accumulate(stderr),
            )
            returncode = await child.wait()
        finally:
            if self._remove_callback is not None:
                self._remove_callback()
        assert self._terminator is not None
        result = _build_result(
            stdout_text,
            stderr_text,
            returncode,
            self._terminator.cancelled,
        )
        logger.debug(
            "process finished",
            extra={"argv": self.spec.argv, "exit_code": result.exit_code},
        )
        return result

    @property
    def done(self) -> bool:
        """Return True once the aggregate result is available."""
        return self._result.done()

    async def wait(self) -> SpawnResult:
        """Wait for exit and return the aggregate result.

        May be awaited any number of times; the result is produced once.
        """
        return await asyncio.shield(self._result)

    def kill(self, kill_signal: KillSignal = KillSignal.TERM) -> None:
        """Send *kill_signal* to the process.

        Idempotent, and a no-op once the process has exited.
        """
        if self._terminator is not None:
            self._terminator.send(kill_signal)

    async def aclose(self) -> None:
        """Terminate the process if it still runs and wait for it."""
        if not self._result.done():
            self.kill()
        await self.wait()


class ExecEngine:
    """Process execution adapter.

    Parameters
    ----------
    spawner : Spawner, optional
        Host primitive used to start processes. Defaults to
        :class:`AsyncioSpawner`.
    """

    def __init__(self, spawner: Spawner | None = None) -> None:
        self.spawner: Spawner = spawner if spawner is not None else AsyncioSpawner()

    async def _spawn(self, spec: SpawnSpec) -> ChildProcess:
        try:
            child = await self.spawner.spawn(spec.argv, env=spec.env, cwd=spec.cwd)
        except OSError as error:
            logger.exception(f"Exception for {spec.cmdline}")
            msg = f"Failed to spawn {spec.argv[0]}: {error}"
            raise exc.SpawnFailed(
                msg,
                spec.error_context(stderr=str(error)),
            ) from error
        logger.debug("spawned process", extra={"argv": spec.argv})
        return child

    async def execute(
        self,
        spec: SpawnSpec,
        on_stdout: TextObserver | None = None,
        on_stderr: TextObserver | None = None,
    ) -> SpawnResult:
        """Run *spec* to completion.

        Parameters
        ----------
        spec : SpawnSpec
            What to run.
        on_stdout, on_stderr : callable, optional
            Receive every decoded chunk of the matching stream as it arrives.

        Returns
        -------
        SpawnResult
            Output, exit status and whether the token cancelled the run.
            A non-zero exit is not an error at this layer.

        Raises
        ------
        :exc:`typegit.exc.SpawnFailed`
            The process could not be started.
        """
        token = spec.token
        if token is not None and token.cancelled:
            logger.debug("token cancelled before spawn", extra={"argv": spec.argv})
            return SpawnResult.already_cancelled()

        child = await self._spawn(spec)
        terminator = _Terminator(child, spec.kill_signal)
        remove_callback = token.add_callback(terminator) if token is not None else None

        readers = [
            asyncio.ensure_future(_collect(child.stdout, on_stdout)),
            asyncio.ensure_future(_collect(child.stderr, on_stderr)),
        ]
        try:
            stdout, stderr = await asyncio.gather(*readers)
            returncode = await child.wait()
        except BaseException:
            for reader in readers:
                reader.cancel()
            terminator.send(spec.kill_signal)
            raise
        finally:
            if remove_callback is not None:
                remove_callback()

        result = _build_result(stdout, stderr, returncode, terminator.cancelled)
        logger.debug(
            "process finished",
            extra={"argv": spec.argv, "exit_code": result.exit_code},
        )
        return result

    async def execute_streaming(self, spec: SpawnSpec) -> StreamHandle:
        """Start *spec* and return a :class:`StreamHandle` immediately.

        Raises
        ------
        :exc:`typegit.exc.SpawnFailed`
            The process could not be started.
        """
        token = spec.token
        if token is not None and token.cancelled:
            logger.debug("token cancelled before spawn", extra={"argv": spec.argv})
            return StreamHandle(spec, None)
        child = await self._spawn(spec)
        return StreamHandle(spec, child)
