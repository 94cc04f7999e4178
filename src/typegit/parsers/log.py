"""``git log`` output in a fixed, delimiter based format.

typegit.parsers.log
~~~~~~~~~~~~~~~~~~~

Run ``git log`` with ``--format=`` :data:`GIT_LOG_FORMAT`. Fields are NUL
separated and every record ends with ``\\x01``, so bodies may span lines.
"""

from __future__ import annotations

import dataclasses
import datetime
import typing as t

from typegit.exc import ParseError

if t.TYPE_CHECKING:
    from collections.abc import Iterator

FIELD_SEPARATOR = "\x00"
RECORD_TERMINATOR = "\x01"

#: Pretty format understood by :func:`parse_git_log`
GIT_LOG_FORMAT = "%x00".join(
    ["%H", "%h", "%P", "%an", "%ae", "%at", "%cn", "%ce", "%ct", "%s", "%b"],
) + "%x01"

_FIELD_COUNT = 11


@dataclasses.dataclass(frozen=True)
class Signature:
    """Author or committer identity with a unix timestamp."""

    name: str
    email: str
    timestamp: int

    @property
    def date(self) -> datetime.datetime:
        """Return the timestamp as an aware UTC datetime.

        Examples
        --------
        >>> Signature("Jane", "jane@example.com", 0).date.isoformat()
        '1970-01-01T00:00:00+00:00'
        """
        return datetime.datetime.fromtimestamp(self.timestamp, tz=datetime.timezone.utc)


@dataclasses.dataclass(frozen=True)
class Commit:
    """One ``git log`` record."""

    hash: str
    abbrev_hash: str
    parents: tuple[str, ...]
    author: Signature
    committer: Signature
    subject: str
    body: str

    @property
    def is_root(self) -> bool:
        return not self.parents

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1


def _timestamp(value: str, record: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        msg = "Commit timestamp is not an integer"
        raise ParseError(msg, record) from e


def _parse_record(record: str) -> Commit:
    fields = record.split(FIELD_SEPARATOR)
    if len(fields) != _FIELD_COUNT:
        msg = f"Expected {_FIELD_COUNT} log fields, got {len(fields)}"
        raise ParseError(msg, record)

    (
        commit_hash,
        abbrev,
        parents,
        author_name,
        author_email,
        author_time,
        committer_name,
        committer_email,
        committer_time,
        subject,
        body,
    ) = fields

    return Commit(
        hash=commit_hash,
        abbrev_hash=abbrev,
        parents=tuple(parents.split()),
        author=Signature(author_name, author_email, _timestamp(author_time, record)),
        committer=Signature(
            committer_name,
            committer_email,
            _timestamp(committer_time, record),
        ),
        subject=subject,
        body=body[:-1] if body.endswith("\n") else body,
    )


def iter_commits(text: str) -> Iterator[Commit]:
    """Yield commits from ``git log --format=GIT_LOG_FORMAT`` output.

    The newline git prints between records is not part of the next hash.

    Raises
    ------
    :exc:`typegit.exc.ParseError`
        On a record with the wrong field count or a non integer timestamp.
    """
    for raw in text.split(RECORD_TERMINATOR):
        record = raw.lstrip("\n")
        if not record.strip():
            continue
        yield _parse_record(record)


def parse_git_log(text: str) -> list[Commit]:
    """Parse ``git log --format=GIT_LOG_FORMAT`` output.

    Examples
    --------
    >>> out = (
    ...     "a1b2c3\\x00a1b\\x00\\x00Jane\\x00jane@example.com\\x001700000000"
    ...     "\\x00Jane\\x00jane@example.com\\x001700000000\\x00Initial commit"
    ...     "\\x00Longer\\nbody\\n\\x01\\n"
    ... )
    >>> commit, = parse_git_log(out)
    >>> commit.hash, commit.parents, commit.subject, commit.body
    ('a1b2c3', (), 'Initial commit', 'Longer\\nbody')
    """
    return list(iter_commits(text))
