"""Run git commands in a repository context.

typegit.runner
~~~~~~~~~~~~~~

:class:`CliRunner` turns ``(context, args)`` into a git invocation, reports
progress parsed from stderr (and from the git-lfs progress file) while it
runs, and maps failures to :exc:`~typegit.exc.GitError`.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import re
import time
import typing as t

from . import exc
from ._internal.decoder import LineDecoder
from .cancel import CancelToken
from .capabilities import Capabilities, detect_capabilities
from .constants import GIT_BINARY, POLL_INTERVAL_SECONDS
from .exec import ExecEngine, SpawnResult, SpawnSpec
from .fs import LocalFs
from .parsers.progress import (
    GitProgress,
    LfsProgress,
    parse_git_progress,
    parse_lfs_progress,
)

if t.TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from typing_extensions import TypeAlias

    from ._internal.types import StrPath

    ProgressCallback = Callable[[GitProgress], None]
    LfsProgressCallback = Callable[[LfsProgress], None]
    AuditCallback = Callable[["AuditEvent"], None]
    TraceCallback = Callable[["TraceEvent"], None]

logger = logging.getLogger(__name__)

_FATAL_RE = re.compile(r"fatal:\s*(.+)", re.IGNORECASE)
_ERROR_RE = re.compile(r"error:\s*(.+)", re.IGNORECASE)

#: Environment variable git-lfs appends progress records to
LFS_PROGRESS_ENV = "GIT_LFS_PROGRESS"

#: Lines git writes to stderr when ``GIT_TRACE`` is enabled
GIT_TRACE_RE = re.compile(
    r"^[0-9]{2}:[0-9]{2}:[0-9]{2}\.[0-9]+\s+(?:trace:|[A-Za-z0-9_.-]+\.c:)",
)


@dataclasses.dataclass(frozen=True)
class GlobalContext:
    """Commands that need no repository, e.g. ``git clone`` or ``git init``."""

    def argv(self) -> list[str]:
        return []

    @property
    def cwd(self) -> str | None:
        return None

    def error_fields(self) -> dict[str, str]:
        return {}


@dataclasses.dataclass(frozen=True)
class WorktreeContext:
    """Commands run inside a working tree (``git -C <workdir>``)."""

    workdir: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "workdir", os.fspath(self.workdir))

    def argv(self) -> list[str]:
        return ["-C", self.workdir]

    @property
    def cwd(self) -> str | None:
        return self.workdir

    def error_fields(self) -> dict[str, str]:
        return {"workdir": self.workdir}


@dataclasses.dataclass(frozen=True)
class BareContext:
    """Commands run against a bare repository (``git --git-dir <git_dir>``)."""

    git_dir: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "git_dir", os.fspath(self.git_dir))

    def argv(self) -> list[str]:
        return ["--git-dir", self.git_dir]

    @property
    def cwd(self) -> str | None:
        return None

    def error_fields(self) -> dict[str, str]:
        return {"git_dir": self.git_dir}


ExecutionContext: TypeAlias = "GlobalContext | WorktreeContext | BareContext"


@dataclasses.dataclass(frozen=True)
class CredentialHelper:
    """``credential.helper`` to pass through ``git -c``.

    ``helper_path`` is a custom helper executable whose directory is put in
    front of ``PATH`` so git can find ``git-credential-<helper>``.
    """

    helper: str | None = None
    helper_path: str | None = None


@dataclasses.dataclass(frozen=True)
class AuditEvent:
    """A git command starting (``kind="start"``) or finishing (``"end"``).

    ``timestamp`` is seconds since the epoch. The remaining fields are only
    set on ``end`` events; ``duration`` is in seconds. A command that could
    not be started ends with ``exit_code=-1`` and the error text as
    ``stderr``.
    """

    kind: t.Literal["start", "end"]
    timestamp: float
    argv: tuple[str, ...]
    context: ExecutionContext
    stdout: str | None = None
    stderr: str | None = None
    exit_code: int | None = None
    aborted: bool | None = None
    duration: float | None = None


@dataclasses.dataclass(frozen=True)
class TraceEvent:
    """One ``GIT_TRACE`` line from stderr."""

    timestamp: float
    line: str


@dataclasses.dataclass(frozen=True)
class AuditConfig:
    """Command tracking hooks.

    ``on_audit`` sees every command start and end. ``on_trace`` turns on
    ``GIT_TRACE`` and receives its lines, which are then kept away from the
    progress parser.
    """

    on_audit: AuditCallback | None = None
    on_trace: TraceCallback | None = None


class _StderrLines:
    """Stderr observer routing lines to trace and progress callbacks.

    git redraws meters with ``\\r``, so both ``\\r`` and ``\\n`` end a line.
    """

    def __init__(
        self,
        on_progress: ProgressCallback | None,
        on_trace: TraceCallback | None,
    ) -> None:
        self._on_progress = on_progress
        self._on_trace = on_trace
        self._decoder = LineDecoder(split_cr=True)

    def __call__(self, chunk: str) -> None:
        for line in self._decoder.feed(chunk):
            self._emit(line)

    def flush(self) -> None:
        for line in self._decoder.flush():
            self._emit(line)

    def _emit(self, line: str) -> None:
        stripped = line.strip()
        if not stripped:
            return
        if self._on_trace is not None and GIT_TRACE_RE.match(stripped):
            self._on_trace(TraceEvent(time.time(), stripped))
            return
        if self._on_progress is None:
            return
        progress = parse_git_progress(line)
        if progress is None:
            logger.debug("stderr line is not progress", extra={"line": line})
            return
        self._on_progress(progress)


class CliRunner:
    """Execute git commands.

    Parameters
    ----------
    engine : ExecEngine, optional
        Process execution adapter.
    fs : LocalFs, optional
        Filesystem adapter, used for the LFS progress file.
    git_binary : str
        git executable, ``$TYPEGIT_GIT_BINARY`` or ``git`` by default.
    env : Mapping[str, str], optional
        Variables added to the inherited environment.
    path_prefix : Sequence[str]
        Directories put in front of ``PATH``.
    home : str, optional
        Isolated ``HOME`` (and ``USERPROFILE``) for git config lookups.
    credential : CredentialHelper, optional
        Credential helper configuration.
    capabilities : Capabilities, optional
        Host description, probed with
        :func:`~typegit.capabilities.detect_capabilities` by default.
    poll_interval : float
        Seconds between reads of the LFS progress file.
    audit : AuditConfig, optional
        Command start/end and ``GIT_TRACE`` hooks.

    Examples
    --------
    >>> runner = CliRunner(credential=CredentialHelper(helper="store"))
    >>> runner.build_argv(WorktreeContext("/src/repo"), ["status"])
    ['git', '-c', 'credential.helper=store', '-C', '/src/repo', 'status']
    >>> runner.build_argv(BareContext("/srv/repo.git"), ["log"])[-3:]
    ['--git-dir', '/srv/repo.git', 'log']
    """

    def __init__(
        self,
        engine: ExecEngine | None = None,
        fs: LocalFs | None = None,
        *,
        git_binary: str = GIT_BINARY,
        env: Mapping[str, str] | None = None,
        path_prefix: Sequence[str] = (),
        home: StrPath | None = None,
        credential: CredentialHelper | None = None,
        capabilities: Capabilities | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        audit: AuditConfig | None = None,
    ) -> None:
        self.engine = engine if engine is not None else ExecEngine()
        self.fs = fs if fs is not None else LocalFs()
        self.git_binary = git_binary
        self.env: dict[str, str] = dict(env or {})
        self.path_prefix: list[str] = [os.fspath(p) for p in path_prefix]
        self.home = os.fspath(home) if home is not None else None
        self.credential = credential
        self.capabilities = capabilities if capabilities is not None else detect_capabilities()
        self.poll_interval = poll_interval
        self.audit = audit if audit is not None else AuditConfig()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(git_binary={self.git_binary!r})"

    def with_options(
        self,
        *,
        git_binary: str | None = None,
        env: Mapping[str, str] | None = None,
        path_prefix: Sequence[str] = (),
        home: StrPath | None = None,
        credential: CredentialHelper | None = None,
        audit: AuditConfig | None = None,
    ) -> CliRunner:
        """Return a runner sharing adapters, with these options merged in.

        ``env`` entries override, ``path_prefix`` entries are appended, other
        values replace the current ones when given.

        Examples
        --------
        >>> base = CliRunner(env={"GIT_TERMINAL_PROMPT": "0"}, path_prefix=["/a"])
        >>> repo = base.with_options(env={"LANG": "C"}, path_prefix=["/b"])
        >>> sorted(repo.env), repo.path_prefix
        (['GIT_TERMINAL_PROMPT', 'LANG'], ['/a', '/b'])
        """
        return CliRunner(
            self.engine,
            self.fs,
            git_binary=git_binary if git_binary is not None else self.git_binary,
            env={**self.env, **(env or {})},
            path_prefix=[*self.path_prefix, *path_prefix],
            home=home if home is not None else self.home,
            credential=credential if credential is not None else self.credential,
            capabilities=self.capabilities,
            poll_interval=self.poll_interval,
            audit=audit if audit is not None else self.audit,
        )

    def build_argv(self, context: ExecutionContext, args: Sequence[str]) -> list[str]:
        """Return the full argv for *args* in *context*."""
        argv = [self.git_binary]
        if self.credential is not None and self.credential.helper:
            argv += ["-c", f"credential.helper={self.credential.helper}"]
        argv += context.argv()
        argv += [str(arg) for arg in args]
        return argv

    def build_env(self) -> dict[str, str]:
        """Return the variables overlaid on the inherited environment.

        Examples
        --------
        >>> runner = CliRunner(home="/tmp/home", path_prefix=["/opt/git/bin"])
        >>> env = runner.build_env()
        >>> env["HOME"] == env["USERPROFILE"] == "/tmp/home"
        True
        >>> env["PATH"].split(os.pathsep)[0]
        '/opt/git/bin'
        """
        env = dict(self.env)

        if self.home is not None:
            env["HOME"] = self.home
            env["USERPROFILE"] = self.home

        prefixes = list(self.path_prefix)
        if self.credential is not None and self.credential.helper_path:
            helper_dir = os.path.dirname(self.credential.helper_path)
            if helper_dir:
                prefixes.insert(0, helper_dir)

        if prefixes:
            current = env.get("PATH", os.environ.get("PATH", ""))
            env["PATH"] = os.pathsep.join([*prefixes, current] if current else prefixes)

        if self.audit.on_trace is not None:
            if "GIT_TRACE" not in env:
                env["GIT_TRACE"] = "1"
            elif env["GIT_TRACE"] in ("", "0"):
                logger.warning(
                    "on_trace is set but GIT_TRACE is disabled, no trace events will be emitted",
                )

        return env

    async def run(
        self,
        context: ExecutionContext,
        args: Sequence[str],
        *,
        token: CancelToken | None = None,
        on_progress: ProgressCallback | None = None,
        on_lfs_progress: LfsProgressCallback | None = None,
    ) -> SpawnResult:
        """Run ``git <args>`` in *context*.

        A non-zero exit is returned, not raised; see :meth:`run_or_raise`.

        Parameters
        ----------
        context : ExecutionContext
            Where to run.
        args : Sequence[str]
            git subcommand and arguments.
        token : CancelToken, optional
            Cancels the run.
        on_progress : callable, optional
            Receives :class:`~typegit.parsers.progress.GitProgress` parsed from
            stderr.
        on_lfs_progress : callable, optional
            Receives :class:`~typegit.parsers.progress.LfsProgress` records
            git-lfs writes to a temporary progress file.

        Raises
        ------
        :exc:`typegit.exc.CapabilityMissing`
            The host cannot spawn processes, or cannot write the temporary
            progress file when *on_lfs_progress* is given.
        :exc:`typegit.exc.SpawnFailed`
            git could not be started.
        """
        self.capabilities.require("can_spawn_process")
        argv = self.build_argv(context, args)
        env = self.build_env()

        if on_lfs_progress is None:
            return await self._execute(argv, env, context, token, on_progress)

        self.capabilities.require("can_write_temp")
        progress_file = await self.fs.create_temp_file()
        env[LFS_PROGRESS_ENV] = os.fspath(progress_file)

        def on_line(line: str) -> None:
            progress = parse_lfs_progress(line)
            if progress is None:
                logger.debug("skipping malformed lfs progress line", extra={"line": line})
                return
            on_lfs_progress(progress)

        tail_token = CancelToken()
        tail = asyncio.ensure_future(
            self.fs.tail(
                progress_file,
                on_line,
                token=tail_token,
                poll_interval=self.poll_interval,
                max_read_errors=None,
                flush_on_stop=True,
            ),
        )
        try:
            return await self._execute(argv, env, context, token, on_progress)
        finally:
            tail_token.cancel()
            try:
                await tail
            finally:
                await self.fs.delete_directory(progress_file.parent)

    async def _execute(
        self,
        argv: list[str],
        env: dict[str, str],
        context: ExecutionContext,
        token: CancelToken | None,
        on_progress: ProgressCallback | None,
    ) -> SpawnResult:
        spec = SpawnSpec(argv, env=env, cwd=context.cwd, token=token)
        observer = None
        if on_progress is not None or self.audit.on_trace is not None:
            observer = _StderrLines(on_progress, self.audit.on_trace)

        started = time.monotonic()
        self._audit("start", spec.argv, context)
        try:
            result = await self.engine.execute(spec, on_stderr=observer)
        except exc.SpawnFailed as error:
            self._audit(
                "end",
                spec.argv,
                context,
                stdout="",
                stderr=str(error),
                exit_code=-1,
                aborted=token is not None and token.cancelled,
                duration=time.monotonic() - started,
            )
            raise
        if observer is not None:
            observer.flush()
        self._audit(
            "end",
            spec.argv,
            context,
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.exit_code,
            aborted=result.cancelled,
            duration=time.monotonic() - started,
        )
        return result

    def _audit(
        self,
        kind: t.Literal["start", "end"],
        argv: tuple[str, ...],
        context: ExecutionContext,
        **fields: t.Any,
    ) -> None:
        if self.audit.on_audit is None:
            return
        self.audit.on_audit(AuditEvent(kind, time.time(), argv, context, **fields))

    def map_error(
        self,
        result: SpawnResult,
        context: ExecutionContext,
        argv: Sequence[str],
    ) -> exc.GitError | None:
        """Return the :exc:`~typegit.exc.GitError` *result* represents, if any.

        Examples
        --------
        >>> runner = CliRunner()
        >>> result = SpawnResult(stderr="fatal: not a git repository\\n", exit_code=128)
        >>> error = runner.map_error(result, GlobalContext(), ["git", "status"])
        >>> error.kind, error.message
        (<ErrorKind.NonZeroExit: 'NonZeroExit'>, 'not a git repository')
        >>> runner.map_error(SpawnResult(exit_code=0), GlobalContext(), ["git"]) is None
        True
        """
        error_context = exc.ErrorContext(
            argv=tuple(argv),
            exit_code=result.exit_code,
            stdout=result.stdout,
            stderr=result.stderr,
            **context.error_fields(),
        )

        if result.cancelled:
            return exc.Aborted(context=error_context)

        if result.exit_code == 0:
            return None

        message = _error_message(result)
        category = exc.detect_error_category(result.stderr)
        if (result.exit_code == -1 and result.signal is None) or (
            "command not found" in result.stderr.lower()
        ):
            return exc.SpawnFailed(message, error_context, category)
        return exc.NonZeroExit(message, error_context, category)

    async def run_or_raise(
        self,
        context: ExecutionContext,
        args: Sequence[str],
        *,
        token: CancelToken | None = None,
        on_progress: ProgressCallback | None = None,
        on_lfs_progress: LfsProgressCallback | None = None,
    ) -> SpawnResult:
        """Like :meth:`run`, raising the mapped :exc:`~typegit.exc.GitError`."""
        result = await self.run(
            context,
            args,
            token=token,
            on_progress=on_progress,
            on_lfs_progress=on_lfs_progress,
        )
        error = self.map_error(result, context, self.build_argv(context, args))
        if error is not None:
            logger.debug(
                "git command failed",
                extra={"argv": error.context.argv, "exit_code": result.exit_code},
            )
            raise error
        return result


def _error_message(result: SpawnResult) -> str:
    stderr = result.stderr.strip()
    for pattern in (_FATAL_RE, _ERROR_RE):
        match = pattern.search(stderr)
        if match:
            return match.group(1).strip()
    first_line = stderr.split("\n")[0].strip()
    return first_line or f"git exited with code {result.exit_code}"
