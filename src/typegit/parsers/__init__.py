"""Typed records from git's textual output.

typegit.parsers
~~~~~~~~~~~~~~~

Pure functions, no I/O. Grammars git prints for scripts are parsed strictly:
drift from the expected format raises :exc:`typegit.exc.ParseError` carrying
the offending text. Advisory streams (progress meters, LFS progress) skip what
they do not understand.
"""

from __future__ import annotations

from .common import parse_json, parse_key_value, parse_lines, parse_records, split_lines
from .log import GIT_LOG_FORMAT, Commit, Signature, iter_commits, parse_git_log
from .progress import (
    GitProgress,
    LfsDirection,
    LfsProgress,
    iter_lfs_progress,
    parse_git_progress,
    parse_lfs_progress,
)
from .refs import RemoteRef, parse_ls_remote
from .status import (
    ChangedEntry,
    IgnoredEntry,
    PorcelainV2Entry,
    StatusEntry,
    StatusPorcelain,
    UnmergedEntry,
    UntrackedEntry,
    parse_porcelain_v1,
    parse_porcelain_v2,
    parse_status,
    unquote_path,
)
from .worktree import LsTreeEntry, Worktree, parse_ls_tree, parse_worktree_list

__all__ = (
    "GIT_LOG_FORMAT",
    "ChangedEntry",
    "Commit",
    "GitProgress",
    "IgnoredEntry",
    "LfsDirection",
    "LfsProgress",
    "LsTreeEntry",
    "PorcelainV2Entry",
    "RemoteRef",
    "Signature",
    "StatusEntry",
    "StatusPorcelain",
    "UnmergedEntry",
    "UntrackedEntry",
    "Worktree",
    "iter_commits",
    "iter_lfs_progress",
    "parse_git_log",
    "parse_git_progress",
    "parse_json",
    "parse_key_value",
    "parse_lfs_progress",
    "parse_lines",
    "parse_ls_remote",
    "parse_ls_tree",
    "parse_porcelain_v1",
    "parse_porcelain_v2",
    "parse_records",
    "parse_status",
    "parse_worktree_list",
    "split_lines",
    "unquote_path",
)
