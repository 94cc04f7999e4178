"""``git status --porcelain`` output.

typegit.parsers.status
~~~~~~~~~~~~~~~~~~~~~~

Version 1 (``--porcelain``) is a two letter code followed by a path. Version 2
(``--porcelain=v2 --branch``) adds branch headers and typed records carrying
modes and object names.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import typing as t

from typegit.exc import ParseError

from .common import parse_records, split_lines

if t.TYPE_CHECKING:
    from typing_extensions import TypeAlias

logger = logging.getLogger(__name__)

_DECIMAL_RE = re.compile(r"[0-9]+")

#: Letters git uses in either column of a status code
STATUS_LETTERS = frozenset(" MTADRCU?!")

_RENAME_LETTERS = frozenset("RC")
_RENAME_SEPARATOR = " -> "
_C_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    '"': '"',
    "\\": "\\",
}


@dataclasses.dataclass(frozen=True)
class StatusEntry:
    """One changed path.

    ``index`` and ``workdir`` are the status letters for the staging area and
    the working tree, ``" "`` meaning unchanged. ``original_path`` is only set
    for renames and copies.
    """

    path: str
    index: str
    workdir: str
    original_path: str | None = None

    @property
    def code(self) -> str:
        return self.index + self.workdir

    @property
    def is_untracked(self) -> bool:
        return self.code == "??"

    @property
    def is_ignored(self) -> bool:
        return self.code == "!!"

    @property
    def is_conflicted(self) -> bool:
        return "U" in self.code or self.code in {"AA", "DD"}


def unquote_path(path: str) -> str:
    """Undo git's C-style quoting of unusual path names.

    Examples
    --------
    >>> unquote_path('"tab\\\\there.txt"')
    'tab\\there.txt'
    >>> unquote_path('"caf\\\\303\\\\251.txt"')
    'café.txt'
    >>> unquote_path("plain.txt")
    'plain.txt'
    """
    if len(path) < 2 or not (path.startswith('"') and path.endswith('"')):
        return path

    body = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char != "\\" or i + 1 == len(body):
            out += char.encode("utf-8")
            i += 1
            continue
        escape = body[i + 1]
        octal = body[i + 1 : i + 4]
        if len(octal) == 3 and all(c in "01234567" for c in octal):
            out.append(int(octal, 8))
            i += 4
        elif escape in _C_ESCAPES:
            out += _C_ESCAPES[escape].encode("utf-8")
            i += 2
        else:
            out += char.encode("utf-8")
            i += 1
    return out.decode("utf-8", errors="backslashreplace")


def _status_code(record: str) -> tuple[str, str, str]:
    if len(record) < 4 or record[2] != " ":
        msg = "Malformed porcelain status line"
        raise ParseError(msg, record)
    index, workdir = record[0], record[1]
    if index not in STATUS_LETTERS or workdir not in STATUS_LETTERS:
        msg = "Unknown porcelain status code"
        raise ParseError(msg, record)
    return index, workdir, record[3:]


def parse_porcelain_v1(text: str, *, nul_terminated: bool = False) -> list[StatusEntry]:
    """Parse ``git status --porcelain`` (optionally ``-z``) output.

    Renames and copies populate ``original_path``: ``orig -> new`` in line
    mode, or a second NUL terminated path (``new\\0orig\\0``) with ``-z``.

    Raises
    ------
    :exc:`typegit.exc.ParseError`
        On a line shorter than ``XY p`` or an unknown status letter.

    Examples
    --------
    >>> parse_porcelain_v1("R  old.txt -> new.txt\\n")
    [StatusEntry(path='new.txt', index='R', workdir=' ', original_path='old.txt')]
    >>> parse_porcelain_v1(" M a.txt\\0R  b.txt\\0a.txt\\0", nul_terminated=True)[1].original_path
    'a.txt'
    """
    entries: list[StatusEntry] = []

    if nul_terminated:
        records = iter(parse_records(text))
        for record in records:
            index, workdir, path = _status_code(record)
            original = None
            if index in _RENAME_LETTERS or workdir in _RENAME_LETTERS:
                original = next(records, None)
                if original is None:
                    msg = "Rename without original path"
                    raise ParseError(msg, record)
            entries.append(StatusEntry(path, index, workdir, original))
        return entries

    for line in split_lines(text):
        if not line.strip():
            continue
        index, workdir, rest = _status_code(line)
        original = None
        if (index in _RENAME_LETTERS or workdir in _RENAME_LETTERS) and _RENAME_SEPARATOR in rest:
            original, _, rest = rest.partition(_RENAME_SEPARATOR)
            original = unquote_path(original)
        entries.append(StatusEntry(unquote_path(rest), index, workdir, original))
    return entries


@dataclasses.dataclass(frozen=True)
class ChangedEntry:
    """Porcelain v2 ``1`` (ordinary) or ``2`` (rename/copy) record."""

    xy: str
    submodule: str
    mode_head: str
    mode_index: str
    mode_worktree: str
    hash_head: str
    hash_index: str
    path: str
    original_path: str | None = None
    score: str | None = None


@dataclasses.dataclass(frozen=True)
class UnmergedEntry:
    """Porcelain v2 ``u`` record."""

    xy: str
    submodule: str
    mode_stage1: str
    mode_stage2: str
    mode_stage3: str
    mode_worktree: str
    hash_stage1: str
    hash_stage2: str
    hash_stage3: str
    path: str


@dataclasses.dataclass(frozen=True)
class UntrackedEntry:
    path: str


@dataclasses.dataclass(frozen=True)
class IgnoredEntry:
    path: str


PorcelainV2Entry: TypeAlias = "ChangedEntry | UnmergedEntry | UntrackedEntry | IgnoredEntry"


@dataclasses.dataclass(frozen=True)
class StatusPorcelain:
    """Result of ``git status --porcelain=v2 --branch``.

    ``branch`` is ``None`` on a detached HEAD, ``oid`` is ``None`` before the
    first commit. ``ahead``/``behind`` are ``None`` without an upstream.
    """

    entries: list[StatusEntry]
    branch: str | None = None
    upstream: str | None = None
    ahead: int | None = None
    behind: int | None = None
    oid: str | None = None
    stash: int | None = None

    @property
    def is_clean(self) -> bool:
        return not any(not e.is_ignored for e in self.entries)


def _split_fields(record: str, count: int) -> list[str]:
    """Split the first *count* space separated fields, the rest is the path."""
    fields = record.split(" ", count)
    if len(fields) != count + 1 or not fields[-1]:
        msg = "Malformed porcelain v2 record"
        raise ParseError(msg, record)
    return fields


def _iter_v2_records(text: str, nul_terminated: bool) -> t.Iterator[tuple[str, str | None]]:
    """Yield ``(record, original_path)``; only ``2`` records carry the latter."""
    if nul_terminated:
        records = iter(parse_records(text))
        for record in records:
            if record.startswith("2 "):
                original = next(records, None)
                if original is None:
                    msg = "Rename without original path"
                    raise ParseError(msg, record)
                yield record, original
            elif record:
                yield record, None
        return

    for line in split_lines(text):
        if not line.strip():
            continue
        if line.startswith("2 "):
            record, tab, original = line.partition("\t")
            if not tab:
                msg = "Rename without original path"
                raise ParseError(msg, line)
            yield record, unquote_path(original)
        else:
            yield line, None


def _parse_v2_record(
    record: str,
    original: str | None,
    quoted: bool = True,
) -> PorcelainV2Entry | None:
    unquote = unquote_path if quoted else str
    kind = record[:2]
    if kind == "1 ":
        f = _split_fields(record, 8)
        return ChangedEntry(f[1], f[2], f[3], f[4], f[5], f[6], f[7], unquote(f[8]))
    if kind == "2 ":
        f = _split_fields(record, 9)
        return ChangedEntry(
            f[1], f[2], f[3], f[4], f[5], f[6], f[7], unquote(f[9]), original, score=f[8]
        )
    if kind == "u ":
        f = _split_fields(record, 10)
        return UnmergedEntry(*f[1:10], path=unquote(f[10]))
    if kind == "? ":
        return UntrackedEntry(unquote(record[2:]))
    if kind == "! ":
        return IgnoredEntry(unquote(record[2:]))
    if record.startswith("#"):
        return None
    msg = "Unknown porcelain v2 record"
    raise ParseError(msg, record)


def parse_porcelain_v2(text: str, *, nul_terminated: bool = False) -> list[PorcelainV2Entry]:
    """Parse the file records of ``git status --porcelain=v2``.

    Header lines (``# ...``) are ignored, see :func:`parse_status` for those.

    Examples
    --------
    >>> out = (
    ...     "# branch.head main\\n"
    ...     "1 .M N... 100644 100644 100644 e69de29 e69de29 README.md\\n"
    ...     "? notes.txt\\n"
    ... )
    >>> entries = parse_porcelain_v2(out)
    >>> entries[0].xy, entries[0].path
    ('.M', 'README.md')
    >>> entries[1]
    UntrackedEntry(path='notes.txt')
    """
    entries: list[PorcelainV2Entry] = []
    for record, original in _iter_v2_records(text, nul_terminated):
        entry = _parse_v2_record(record, original, quoted=not nul_terminated)
        if entry is not None:
            entries.append(entry)
    return entries


def _letter(value: str) -> str:
    return " " if value == "." else value


def _to_status_entry(entry: PorcelainV2Entry) -> StatusEntry:
    if isinstance(entry, UntrackedEntry):
        return StatusEntry(entry.path, "?", "?")
    if isinstance(entry, IgnoredEntry):
        return StatusEntry(entry.path, "!", "!")
    original = entry.original_path if isinstance(entry, ChangedEntry) else None
    return StatusEntry(entry.path, _letter(entry.xy[0]), _letter(entry.xy[1]), original)


def _parse_header(record: str, headers: dict[str, t.Any]) -> None:
    key, _, value = record[2:].partition(" ")
    if key == "branch.oid":
        headers["oid"] = None if value == "(initial)" else value
    elif key == "branch.head":
        headers["branch"] = None if value == "(detached)" else value
    elif key == "branch.upstream":
        headers["upstream"] = value
    elif key == "branch.ab":
        ahead, _, behind = value.partition(" ")
        try:
            headers["ahead"] = int(ahead.lstrip("+"))
            headers["behind"] = int(behind.lstrip("-"))
        except ValueError as e:
            msg = "Malformed branch.ab header"
            raise ParseError(msg, record) from e
    elif key == "stash":
        headers["stash"] = int(value) if _DECIMAL_RE.fullmatch(value) else None
    else:
        logger.debug("ignoring status header", extra={"header": record})


def parse_status(text: str, *, nul_terminated: bool = False) -> StatusPorcelain:
    """Parse ``git status --porcelain=v2 --branch`` into a summary.

    Examples
    --------
    >>> out = (
    ...     "# branch.oid 4b825dc642cb6eb9a060e54bf8d69288fbee4904\\n"
    ...     "# branch.head main\\n"
    ...     "# branch.upstream origin/main\\n"
    ...     "# branch.ab +2 -1\\n"
    ...     "2 R. N... 100644 100644 100644 aaa aaa R100 new.txt\\told.txt\\n"
    ... )
    >>> status = parse_status(out)
    >>> status.branch, status.upstream, status.ahead, status.behind
    ('main', 'origin/main', 2, 1)
    >>> status.entries
    [StatusEntry(path='new.txt', index='R', workdir=' ', original_path='old.txt')]
    """
    headers: dict[str, t.Any] = {}
    entries: list[StatusEntry] = []
    for record, original in _iter_v2_records(text, nul_terminated):
        if record.startswith("# "):
            _parse_header(record, headers)
            continue
        entry = _parse_v2_record(record, original, quoted=not nul_terminated)
        if entry is not None:
            entries.append(_to_status_entry(entry))
    return StatusPorcelain(entries=entries, **headers)
