"""Generic helpers for git's textual output.

typegit.parsers.common
~~~~~~~~~~~~~~~~~~~~~~
"""

from __future__ import annotations

import json
import typing as t


def parse_lines(text: str, *, keep_empty: bool = False, strip: bool = True) -> list[str]:
    """Split newline separated output.

    Examples
    --------
    >>> parse_lines("  one  \\n\\ntwo\\n")
    ['one', 'two']
    >>> parse_lines("one\\n\\ntwo", keep_empty=True)
    ['one', '', 'two']
    """
    lines = text.split("\n")
    if strip:
        lines = [line.strip() for line in lines]
    if keep_empty:
        return lines
    return [line for line in lines if line]


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, dropping a ``\\r`` left by CRLF line endings.

    Unlike :meth:`str.splitlines`, separators such as ``\\x1c`` or
    ``\\u2028`` stay inside the line, so unquoted paths survive.

    Examples
    --------
    >>> split_lines("a\\x1cb\\r\\nc\\u2028d\\n")
    ['a\\x1cb', 'c\\u2028d', '']
    """
    return [line[:-1] if line.endswith("\r") else line for line in text.split("\n")]


def parse_records(text: str, delimiter: str = "\0") -> list[str]:
    """Split delimiter terminated (or separated) records.

    A single trailing delimiter does not produce an empty record.

    Examples
    --------
    >>> parse_records("a\\0b\\0")
    ['a', 'b']
    >>> parse_records("")
    []
    """
    if text.endswith(delimiter):
        text = text[: -len(delimiter)]
    if not text:
        return []
    return text.split(delimiter)


def parse_json(text: str, *, ndjson: bool = False) -> t.Any:
    """Decode JSON output, or newline delimited JSON when *ndjson* is set.

    Empty output decodes to ``None`` (``[]`` for *ndjson*).

    Examples
    --------
    >>> parse_json('{"a": 1}')
    {'a': 1}
    >>> parse_json('{"a": 1}\\n{"a": 2}\\n', ndjson=True)
    [{'a': 1}, {'a': 2}]
    """
    stripped = text.strip()
    if ndjson:
        return [json.loads(line) for line in stripped.split("\n") if line.strip()]
    if not stripped:
        return None
    return json.loads(stripped)


def parse_key_value(
    text: str,
    *,
    separator: str = "=",
    delimiter: str = "\n",
) -> dict[str, str]:
    """Parse ``key<separator>value`` records, as printed by ``git config -l``.

    Records without a separator, or with an empty key, are ignored. Later keys
    win.

    Examples
    --------
    >>> parse_key_value("user.name=Jane\\ncore.bare=false\\nbogus\\n")
    {'user.name': 'Jane', 'core.bare': 'false'}
    >>> parse_key_value("a.b\\nx\\0c.d\\ny\\0", separator="\\n", delimiter="\\0")
    {'a.b': 'x', 'c.d': 'y'}
    """
    records = parse_lines(text) if delimiter == "\n" else parse_records(text, delimiter)
    result: dict[str, str] = {}
    for record in records:
        key, sep, value = record.partition(separator)
        if sep and key:
            result[key] = value
    return result


def optional(value: str) -> str | None:
    """Return *value*, or ``None`` when it is empty."""
    return value or None
