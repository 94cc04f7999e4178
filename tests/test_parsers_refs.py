"""Tests for ``git ls-remote`` parsing."""

from __future__ import annotations

import pytest

from typegit import exc
from typegit.parsers.refs import RemoteRef, parse_ls_remote

MAIN = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"
TAG = "0123456789abcdef0123456789abcdef01234567"


def test_parse_ls_remote() -> None:
    text = (
        f"{MAIN}\tHEAD\n"
        f"{MAIN}\trefs/heads/main\n"
        f"{TAG}\trefs/tags/v1.0\n"
        f"{MAIN}\trefs/tags/v1.0^{{}}\n"
    )
    refs = parse_ls_remote(text)
    assert refs == [
        RemoteRef(MAIN, "HEAD"),
        RemoteRef(MAIN, "refs/heads/main"),
        RemoteRef(TAG, "refs/tags/v1.0"),
        RemoteRef(MAIN, "refs/tags/v1.0^{}"),
    ]
    assert [r.is_peeled for r in refs] == [False, False, False, True]


def test_symref_attaches_to_named_ref() -> None:
    text = f"ref: refs/heads/main\tHEAD\n{MAIN}\tHEAD\n{MAIN}\trefs/heads/main\n"
    head, main = parse_ls_remote(text)
    assert head.symref_target == "refs/heads/main"
    assert main.symref_target is None


def test_space_separated_and_blank_lines() -> None:
    refs = parse_ls_remote(f"\n{MAIN} refs/heads/main\n\n")
    assert refs == [RemoteRef(MAIN, "refs/heads/main")]


def test_empty_output() -> None:
    assert parse_ls_remote("") == []


@pytest.mark.parametrize(
    "line",
    [
        MAIN,
        "not-a-hash\trefs/heads/main",
        "ref: \tHEAD",
        "ref: refs/heads/main",
    ],
    ids=["missing_name", "non_hex_hash", "symref_missing_target", "symref_missing_name"],
)
def test_malformed_lines(line: str) -> None:
    with pytest.raises(exc.ParseError) as excinfo:
        parse_ls_remote(line + "\n")
    assert excinfo.value.raw == line


def test_line_separator_character_stays_in_ref_name() -> None:
    assert parse_ls_remote(f"{MAIN}\trefs/heads/odd\u2028name\r\n") == [
        RemoteRef(MAIN, "refs/heads/odd\u2028name"),
    ]
