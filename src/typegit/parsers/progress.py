"""Progress meters.

typegit.parsers.progress
~~~~~~~~~~~~~~~~~~~~~~~~

Two grammars: the meters git prints on stderr while transferring objects, and
the records git-lfs appends to the file named by ``GIT_LFS_PROGRESS``.
"""

from __future__ import annotations

import dataclasses
import enum
import logging
import re
import typing as t

if t.TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

_PERCENT_RE = re.compile(
    r"^(?P<phase>.+?):\s*(?P<percent>[0-9]+)%\s*\((?P<current>[0-9]+)/(?P<total>[0-9]+)\)"
)
_RATIO_RE = re.compile(r"^(?P<phase>.+?):\s*(?P<current>[0-9]+)/(?P<total>[0-9]+)")
_COUNT_RE = re.compile(r"^(?P<phase>.+?):\s*(?P<current>[0-9]+)(?:,\s*done)?\.?\s*$")
_DONE_RE = re.compile(r",\s*done\.?\s*$")
_REMOTE_PREFIX = "remote: "


@dataclasses.dataclass(frozen=True)
class GitProgress:
    """One progress meter line from git's stderr."""

    phase: str
    current: int
    total: int | None
    percent: int | None
    done: bool
    message: str


def parse_git_progress(line: str) -> GitProgress | None:
    """Parse a git progress meter, ``None`` if *line* is something else.

    ``remote:`` prefixes are dropped from the phase. Meters without a total
    (``Enumerating objects: 42, done.``) report ``total`` and ``percent`` as
    ``None``.

    Examples
    --------
    >>> parse_git_progress("Receiving objects:  45% (9/20)")
    GitProgress(phase='Receiving objects', current=9, total=20, percent=45, done=False, message='Receiving objects:  45% (9/20)')
    >>> parse_git_progress("Counting objects: 100% (10/10), done.").done
    True
    >>> parse_git_progress("Checking objects: 3/4").percent
    75
    >>> parse_git_progress("remote: Enumerating objects: 42, done.").total is None
    True
    >>> parse_git_progress("fatal: not a git repository") is None
    True
    """
    message = line.rstrip()
    body = message.strip()
    if body.startswith(_REMOTE_PREFIX):
        body = body[len(_REMOTE_PREFIX) :].lstrip()

    match = _PERCENT_RE.match(body)
    if match:
        return GitProgress(
            phase=match["phase"].strip(),
            current=int(match["current"]),
            total=int(match["total"]),
            percent=int(match["percent"]),
            done=_DONE_RE.search(body) is not None,
            message=message,
        )

    match = _RATIO_RE.match(body)
    if match:
        current, total = int(match["current"]), int(match["total"])
        return GitProgress(
            phase=match["phase"].strip(),
            current=current,
            total=total,
            percent=round(current / total * 100) if total > 0 else None,
            done=False,
            message=message,
        )

    match = _COUNT_RE.match(body)
    if match:
        return GitProgress(
            phase=match["phase"].strip(),
            current=int(match["current"]),
            total=None,
            percent=None,
            done=_DONE_RE.search(body) is not None,
            message=message,
        )

    return None


class LfsDirection(enum.Enum):
    """Transfer direction of an LFS progress record."""

    Download = "download"
    Upload = "upload"
    Checkout = "checkout"


@dataclasses.dataclass(frozen=True)
class LfsProgress:
    """One line of a ``GIT_LFS_PROGRESS`` file."""

    direction: LfsDirection
    oid: str
    bytes_so_far: int
    bytes_total: int
    bytes_transferred: int

    @property
    def percent(self) -> int | None:
        """Return completion of this object in percent, if the size is known."""
        if self.bytes_total <= 0:
            return None
        return round(self.bytes_so_far / self.bytes_total * 100)


_BYTES_RE = re.compile(r"([0-9]+)/([0-9]+)")
_DECIMAL_RE = re.compile(r"[0-9]+")


def parse_lfs_progress(line: str) -> LfsProgress | None:
    """Parse ``<direction> <oid> <so_far>/<total> <transferred>``.

    Returns ``None`` for anything malformed; the progress file is advisory.

    Examples
    --------
    >>> parse_lfs_progress("download abc123 100/1000 50")
    LfsProgress(direction=<LfsDirection.Download: 'download'>, oid='abc123', bytes_so_far=100, bytes_total=1000, bytes_transferred=50)
    >>> parse_lfs_progress("sideways abc123 100/1000 50") is None
    True
    >>> parse_lfs_progress("upload abc123 100 50") is None
    True
    """
    parts = line.split()
    if len(parts) < 4:
        return None
    try:
        direction = LfsDirection(parts[0])
    except ValueError:
        return None
    match = _BYTES_RE.fullmatch(parts[2])
    if not match or not _DECIMAL_RE.fullmatch(parts[3]):
        return None
    return LfsProgress(
        direction=direction,
        oid=parts[1],
        bytes_so_far=int(match.group(1)),
        bytes_total=int(match.group(2)),
        bytes_transferred=int(parts[3]),
    )


def iter_lfs_progress(lines: Iterable[str]) -> Iterator[LfsProgress]:
    """Yield every well formed LFS record in *lines*, skipping the rest.

    Examples
    --------
    >>> lines = ["download a 1/2 1", "garbage", "upload b 2/2 2"]
    >>> [p.oid for p in iter_lfs_progress(lines)]
    ['a', 'b']
    """
    for line in lines:
        if not line.strip():
            continue
        progress = parse_lfs_progress(line)
        if progress is None:
            logger.debug("skipping malformed lfs progress line", extra={"line": line})
            continue
        yield progress
