"""``git ls-remote`` output.

typegit.parsers.refs
~~~~~~~~~~~~~~~~~~~~
"""

from __future__ import annotations

import dataclasses
import re

from typegit.exc import ParseError

from .common import split_lines

_SYMREF_PREFIX = "ref: "
_HASH_RE = re.compile(r"^[0-9a-fA-F]+$")


@dataclasses.dataclass(frozen=True)
class RemoteRef:
    """One advertised ref.

    ``HEAD`` and peeled tags (``refs/tags/v1^{}``) keep their names verbatim.
    ``symref_target`` is only set with ``--symref``.
    """

    hash: str
    name: str
    symref_target: str | None = None

    @property
    def is_peeled(self) -> bool:
        return self.name.endswith("^{}")


def parse_ls_remote(text: str) -> list[RemoteRef]:
    """Parse ``<hash><whitespace><ref>`` lines.

    ``ref: <target>\\t<name>`` lines printed by ``--symref`` attach
    ``symref_target`` to the next ref called ``<name>``.

    Raises
    ------
    :exc:`typegit.exc.ParseError`
        On a line without a hash and a ref name.

    Examples
    --------
    >>> out = (
    ...     "ref: refs/heads/main\\tHEAD\\n"
    ...     "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391\\tHEAD\\n"
    ...     "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391\\trefs/heads/main\\n"
    ...     "0123456789abcdef0123456789abcdef01234567\\trefs/tags/v1^{}\\n"
    ... )
    >>> refs = parse_ls_remote(out)
    >>> [(r.name, r.symref_target) for r in refs]
    [('HEAD', 'refs/heads/main'), ('refs/heads/main', None), ('refs/tags/v1^{}', None)]
    """
    refs: list[RemoteRef] = []
    symrefs: dict[str, str] = {}

    for line in split_lines(text):
        if not line.strip():
            continue
        if line.startswith(_SYMREF_PREFIX):
            target, _, name = line[len(_SYMREF_PREFIX) :].partition("\t")
            if not target or not name:
                msg = "Malformed symref line"
                raise ParseError(msg, line)
            symrefs[name.strip()] = target.strip()
            continue

        parts = line.split(None, 1)
        if len(parts) != 2 or not _HASH_RE.match(parts[0]):
            msg = "Expected '<hash> <ref>'"
            raise ParseError(msg, line)
        ref_hash, name = parts[0], parts[1].strip()
        refs.append(RemoteRef(ref_hash, name, symrefs.pop(name, None)))

    return refs
