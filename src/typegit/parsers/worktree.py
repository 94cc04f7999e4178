"""``git worktree list --porcelain`` and ``git ls-tree`` output.

typegit.parsers.worktree
~~~~~~~~~~~~~~~~~~~~~~~~

Absent attributes are ``None`` (or ``False`` for flags), never ``""``.
"""

from __future__ import annotations

import dataclasses
import logging
import re

from typegit.exc import ParseError

from .common import optional, split_lines

logger = logging.getLogger(__name__)

_DECIMAL_RE = re.compile(r"[0-9]+")


@dataclasses.dataclass(frozen=True)
class Worktree:
    """One block of ``git worktree list --porcelain``."""

    path: str
    head: str | None = None
    branch: str | None = None
    bare: bool = False
    detached: bool = False
    locked: bool = False
    lock_reason: str | None = None
    prunable: bool = False
    prune_reason: str | None = None


def _worktree_from_block(lines: list[str]) -> Worktree:
    first = lines[0]
    key, _, path = first.partition(" ")
    if key != "worktree" or not path:
        msg = "Worktree block must start with 'worktree <path>'"
        raise ParseError(msg, "\n".join(lines))

    attrs: dict[str, object] = {}
    for line in lines[1:]:
        key, _, value = line.partition(" ")
        if key == "HEAD":
            attrs["head"] = optional(value)
        elif key == "branch":
            attrs["branch"] = optional(value)
        elif key == "bare":
            attrs["bare"] = True
        elif key == "detached":
            attrs["detached"] = True
        elif key == "locked":
            attrs["locked"] = True
            attrs["lock_reason"] = optional(value)
        elif key == "prunable":
            attrs["prunable"] = True
            attrs["prune_reason"] = optional(value)
        else:
            logger.debug("ignoring worktree attribute", extra={"attribute": line})
    return Worktree(path=path, **attrs)  # type: ignore[arg-type]


def parse_worktree_list(text: str) -> list[Worktree]:
    """Parse blank line separated worktree blocks.

    Examples
    --------
    >>> out = (
    ...     "worktree /src/main\\nHEAD abc123\\nbranch refs/heads/main\\n\\n"
    ...     "worktree /src/feature\\nHEAD def456\\nbranch refs/heads/feature\\n"
    ...     "locked moved to usb disk\\n\\n"
    ...     "worktree /src/detached\\nHEAD 789abc\\ndetached\\n"
    ... )
    >>> main, feature, detached = parse_worktree_list(out)
    >>> main.branch, main.locked
    ('refs/heads/main', False)
    >>> feature.locked, feature.lock_reason
    (True, 'moved to usb disk')
    >>> detached.branch is None, detached.detached
    (True, True)
    """
    worktrees: list[Worktree] = []
    block: list[str] = []
    for line in [*split_lines(text), ""]:
        if line.strip():
            block.append(line.rstrip())
        elif block:
            worktrees.append(_worktree_from_block(block))
            block = []
    return worktrees


@dataclasses.dataclass(frozen=True)
class LsTreeEntry:
    """One ``git ls-tree`` line.

    Which fields are set depends on the output mode: ``--name-only`` only
    sets ``path``, ``--object-only`` only ``object``, ``--long`` adds
    ``size`` (``None`` for trees).
    """

    mode: str | None = None
    type: str | None = None
    object: str | None = None
    size: int | None = None
    path: str | None = None


def _ls_tree_line(line: str, long: bool) -> LsTreeEntry:
    meta, tab, path = line.partition("\t")
    fields = meta.split()
    expected = 4 if long else 3
    if not tab or len(fields) != expected or not path:
        msg = "Malformed ls-tree line"
        raise ParseError(msg, line)

    size = None
    if long and fields[3] != "-":
        if not _DECIMAL_RE.fullmatch(fields[3]):
            msg = "ls-tree size is not an integer"
            raise ParseError(msg, line)
        size = int(fields[3])
    return LsTreeEntry(mode=fields[0], type=fields[1], object=fields[2], size=size, path=path)


def parse_ls_tree(
    text: str,
    *,
    name_only: bool = False,
    object_only: bool = False,
    long: bool = False,
) -> list[LsTreeEntry]:
    """Parse ``git ls-tree`` output in the matching output mode.

    Examples
    --------
    >>> out = (
    ...     "100644 blob e69de29bb2d1d6434b8b29ae775ad8c2e48c5391      12\\tREADME.md\\n"
    ...     "040000 tree 4b825dc642cb6eb9a060e54bf8d69288fbee4904       -\\tsrc\\n"
    ... )
    >>> [(e.type, e.size, e.path) for e in parse_ls_tree(out, long=True)]
    [('blob', 12, 'README.md'), ('tree', None, 'src')]
    >>> parse_ls_tree("README.md\\n", name_only=True)
    [LsTreeEntry(mode=None, type=None, object=None, size=None, path='README.md')]
    """
    entries: list[LsTreeEntry] = []
    for line in split_lines(text):
        if not line.strip():
            continue
        if name_only:
            entries.append(LsTreeEntry(path=line))
        elif object_only:
            entries.append(LsTreeEntry(object=line.strip()))
        else:
            entries.append(_ls_tree_line(line, long))
    return entries
