"""Version helpers for typegit.

typegit.common
~~~~~~~~~~~~~~

"""

from __future__ import annotations

import functools
import logging
import re

from . import exc
from .constants import GIT_BINARY
from .exec import ExecEngine, SpawnSpec

logger = logging.getLogger(__name__)


#: Minimum version of git required to run typegit
GIT_MIN_VERSION = "2.30.0"

_GIT_VERSION_RE = re.compile(r"git version (?P<version>[0-9]+(?:\.[0-9]+)*(?:\.rc[0-9]+)?)")
_LFS_VERSION_RE = re.compile(r"git-lfs/(?P<version>[0-9]+(?:\.[0-9]+)*)")
_RC_RE = re.compile(r"^rc([0-9]+)$")
_DECIMAL_RE = re.compile(r"[0-9]+")


@functools.total_ordering
class GitVersion:
    """Comparable git version, release candidates sort before the release.

    Examples
    --------
    >>> GitVersion("2.43.0") > GitVersion("2.9")
    True
    >>> GitVersion("2.44.0.rc1") < "2.44.0"
    True
    >>> GitVersion("2.43") == "2.43.0"
    True
    """

    def __init__(self, version: object) -> None:
        self._version = str(version)
        self._key = self._cmpkey(self._version)

    @staticmethod
    def _cmpkey(version: str) -> tuple[tuple[int, ...], tuple[int, int]]:
        numbers: list[int] = []
        release: tuple[int, int] = (1, 0)
        for part in version.split("."):
            if _DECIMAL_RE.fullmatch(part):
                numbers.append(int(part))
                continue
            rc = _RC_RE.match(part)
            if rc is None:
                msg = f"Unparsable git version: {version!r}"
                raise ValueError(msg)
            release = (0, int(rc.group(1)))
        while len(numbers) > 1 and numbers[-1] == 0:
            numbers.pop()
        return tuple(numbers), release

    def __str__(self) -> str:
        return self._version

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._version!r})"

    def __hash__(self) -> int:
        return hash(self._key)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            other = GitVersion(other)
        if not isinstance(other, GitVersion):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other: object) -> bool:
        if isinstance(other, str):
            other = GitVersion(other)
        if not isinstance(other, GitVersion):
            return NotImplemented
        return self._key < other._key


def parse_git_version(text: str) -> str | None:
    """Return the version from ``git --version`` output.

    Vendor suffixes are dropped.

    Examples
    --------
    >>> parse_git_version("git version 2.43.0")
    '2.43.0'
    >>> parse_git_version("git version 2.39.3 (Apple Git-146)")
    '2.39.3'
    >>> parse_git_version("git version 2.45.1.windows.1")
    '2.45.1'
    >>> parse_git_version("not git") is None
    True
    """
    match = _GIT_VERSION_RE.search(text)
    return match.group("version") if match else None


def parse_lfs_version(text: str) -> str | None:
    """Return the version from ``git lfs version`` output.

    Examples
    --------
    >>> parse_lfs_version("git-lfs/3.4.1 (GitHub; linux amd64; go 1.21.5)")
    '3.4.1'
    """
    match = _LFS_VERSION_RE.search(text)
    return match.group("version") if match else None


async def get_version(
    engine: ExecEngine | None = None,
    git_binary: str = GIT_BINARY,
) -> GitVersion:
    """Return the version of the git found on ``PATH`` (or *git_binary*).

    Raises
    ------
    :exc:`typegit.exc.SpawnFailed`
        git could not be started.
    :exc:`typegit.exc.TypeGitError`
        git ran but did not report a version.
    """
    engine = engine if engine is not None else ExecEngine()
    spec = SpawnSpec((git_binary, "--version"))
    result = await engine.execute(spec)
    version = parse_git_version(result.stdout) if result.exit_code == 0 else None
    if version is None:
        msg = f"Could not determine git version from {result.stdout.strip()!r}"
        raise exc.TypeGitError(msg)
    logger.debug("detected git version", extra={"git_version": version})
    return GitVersion(version)


async def has_minimum_version(
    engine: ExecEngine | None = None,
    raises: bool = True,
    git_binary: str = GIT_BINARY,
) -> bool:
    """Return True if git meets the version requirement, :data:`GIT_MIN_VERSION`.

    Raises
    ------
    :exc:`typegit.exc.VersionTooLow`
        git is older than required and *raises* is set.
    """
    version = await get_version(engine, git_binary)
    if version < GIT_MIN_VERSION:
        if raises:
            msg = (
                f"typegit only supports git {GIT_MIN_VERSION} and greater. This "
                f"system has {version}."
            )
            raise exc.VersionTooLow(msg)
        return False
    return True
