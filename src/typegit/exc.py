"""Provide exceptions used by typegit.

typegit.exc
~~~~~~~~~~~

Every failure that crosses the execution or parsing boundary reaches the
caller as a :exc:`GitError`. It carries one :class:`ErrorKind` from a closed
set, a human readable message and an :class:`ErrorContext` describing the
command that produced it.

Notes
-----
Catch :exc:`GitError` for any failure of a git invocation, or one of the kind
specific subclasses (:exc:`SpawnFailed`, :exc:`NonZeroExit`,
:exc:`ParseError`, :exc:`Aborted`, :exc:`CapabilityMissing`) when only one
matters.

Examples
--------
>>> err = NonZeroExit("not a git repository", ErrorContext(argv=("git", "status"),
...     exit_code=128))
>>> err.kind
<ErrorKind.NonZeroExit: 'NonZeroExit'>
>>> err.context.exit_code
128
>>> isinstance(err, GitError)
True
"""

from __future__ import annotations

import dataclasses
import enum
import re
import typing as t


class TypeGitError(Exception):
    """Root exception for typegit."""


class VersionTooLow(TypeGitError):
    """Raised if git is below the minimum version supported by typegit."""


class ErrorKind(enum.Enum):
    """Closed taxonomy of git failures."""

    SpawnFailed = "SpawnFailed"
    NonZeroExit = "NonZeroExit"
    ParseError = "ParseError"
    Aborted = "Aborted"
    CapabilityMissing = "CapabilityMissing"


class ErrorCategory(enum.Enum):
    """Coarse cause of a git failure, detected from its stderr."""

    Auth = "auth"
    Network = "network"
    Conflict = "conflict"
    Lfs = "lfs"
    Permission = "permission"
    Corruption = "corruption"
    Unknown = "unknown"


@dataclasses.dataclass(frozen=True)
class ErrorContext:
    """Context bag attached to a :exc:`GitError` whenever it is available."""

    argv: tuple[str, ...] | None = None
    workdir: str | None = None
    git_dir: str | None = None
    exit_code: int | None = None
    stdout: str | None = None
    stderr: str | None = None


class GitError(TypeGitError):
    """Failure record for a git invocation.

    Instances are immutable once constructed.

    Parameters
    ----------
    kind : ErrorKind
        Which failure happened.
    message : str
        Human readable description.
    context : ErrorContext, optional
        The command, working directory and captured output.
    category : ErrorCategory, optional
        Coarse cause, see :func:`detect_error_category`.
    """

    kind: ErrorKind
    context: ErrorContext
    category: ErrorCategory

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        context: ErrorContext | None = None,
        category: ErrorCategory = ErrorCategory.Unknown,
    ) -> None:
        super().__init__(message)
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "message", message)
        object.__setattr__(self, "context", context or ErrorContext())
        object.__setattr__(self, "category", category)

    def __setattr__(self, name: str, value: t.Any) -> None:
        # Python sets __traceback__, __context__, __cause__ and friends itself.
        if name.startswith("__"):
            object.__setattr__(self, name, value)
            return
        msg = f"{self.__class__.__name__} is immutable: cannot modify {name!r}"
        raise AttributeError(msg)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value}, message={self.message!r})"


class SpawnFailed(GitError):
    """The git process could not be started."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        category: ErrorCategory = ErrorCategory.Unknown,
    ) -> None:
        super().__init__(ErrorKind.SpawnFailed, message, context, category)


class NonZeroExit(GitError):
    """git exited with a non-zero exit code."""

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        category: ErrorCategory = ErrorCategory.Unknown,
    ) -> None:
        super().__init__(ErrorKind.NonZeroExit, message, context, category)


class ParseError(GitError):
    """git output did not match the expected grammar.

    The offending text is available as :attr:`raw`.
    """

    raw: str

    def __init__(
        self,
        message: str,
        raw: str,
        context: ErrorContext | None = None,
    ) -> None:
        super().__init__(ErrorKind.ParseError, f"{message}: {raw!r}", context)
        object.__setattr__(self, "raw", raw)


class Aborted(GitError):
    """The operation was cancelled before it completed.

    Whatever output had been captured is kept in :attr:`context`.
    """

    def __init__(
        self,
        message: str = "Command was aborted",
        context: ErrorContext | None = None,
        category: ErrorCategory = ErrorCategory.Unknown,
    ) -> None:
        super().__init__(ErrorKind.Aborted, message, context, category)


class CapabilityMissing(GitError):
    """The current host cannot perform the requested operation."""

    def __init__(self, capability: str, context: ErrorContext | None = None) -> None:
        super().__init__(
            ErrorKind.CapabilityMissing,
            f"Capability not available in this environment: {capability}",
            context,
        )
        object.__setattr__(self, "capability", capability)


#: Ordered stderr patterns, first match wins.
_CATEGORY_PATTERNS: list[tuple[ErrorCategory, re.Pattern[str]]] = [
    (
        ErrorCategory.Auth,
        re.compile(
            r"authentication failed|permission denied \(publickey|"
            r"\b401\b|\b403\b|could not read username|invalid credentials",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorCategory.Network,
        re.compile(
            r"could not resolve host|connection timed out|connection refused|"
            r"could not read from remote repository|network is unreachable|"
            r"unable to access",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorCategory.Conflict,
        re.compile(r"conflict|fix conflicts|merge conflict", re.IGNORECASE),
    ),
    (
        ErrorCategory.Lfs,
        re.compile(r"\blfs\b|smudge filter|clean filter", re.IGNORECASE),
    ),
    (
        ErrorCategory.Permission,
        re.compile(
            r"cannot lock ref|unable to create .*\.lock|permission denied|"
            r"read-only file system",
            re.IGNORECASE,
        ),
    ),
    (
        ErrorCategory.Corruption,
        re.compile(
            r"bad object|is corrupt|object file .* is empty|broken link|"
            r"missing (blob|tree|commit) ",
            re.IGNORECASE,
        ),
    ),
]


def detect_error_category(stderr: str) -> ErrorCategory:
    """Return the coarse cause of a failure from git's stderr.

    Examples
    --------
    >>> detect_error_category("fatal: Could not resolve host: github.com")
    <ErrorCategory.Network: 'network'>
    >>> detect_error_category("Some unknown error")
    <ErrorCategory.Unknown: 'unknown'>
    """
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(stderr):
            return category
    return ErrorCategory.Unknown


__all__ = sorted(
    {
        "Aborted",
        "CapabilityMissing",
        "ErrorCategory",
        "ErrorContext",
        "ErrorKind",
        "GitError",
        "NonZeroExit",
        "ParseError",
        "SpawnFailed",
        "TypeGitError",
        "VersionTooLow",
        "detect_error_category",
    }
)
