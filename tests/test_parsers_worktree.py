"""Tests for ``git worktree list`` and ``git ls-tree`` parsing."""

from __future__ import annotations

import typing as t

import pytest

from typegit import exc
from typegit.parsers.worktree import (
    LsTreeEntry,
    Worktree,
    parse_ls_tree,
    parse_worktree_list,
)


def test_parse_worktree_list() -> None:
    text = (
        "worktree /srv/repo.git\n"
        "bare\n"
        "\n"
        "worktree /srv/main\n"
        "HEAD 1111111111111111111111111111111111111111\n"
        "branch refs/heads/main\n"
        "\n"
        "worktree /srv/hotfix\n"
        "HEAD 2222222222222222222222222222222222222222\n"
        "detached\n"
        "locked\n"
        "\n"
        "worktree /tmp/gone\n"
        "HEAD 3333333333333333333333333333333333333333\n"
        "branch refs/heads/gone\n"
        "prunable gitdir file points to non-existent location\n"
        "\n"
    )
    assert parse_worktree_list(text) == [
        Worktree(path="/srv/repo.git", bare=True),
        Worktree(
            path="/srv/main",
            head="1111111111111111111111111111111111111111",
            branch="refs/heads/main",
        ),
        Worktree(
            path="/srv/hotfix",
            head="2222222222222222222222222222222222222222",
            detached=True,
            locked=True,
        ),
        Worktree(
            path="/tmp/gone",
            head="3333333333333333333333333333333333333333",
            branch="refs/heads/gone",
            prunable=True,
            prune_reason="gitdir file points to non-existent location",
        ),
    ]


def test_worktree_path_with_spaces_and_unknown_attribute() -> None:
    (worktree,) = parse_worktree_list("worktree /home/me/my repo\nfuture-flag yes\n")
    assert worktree.path == "/home/me/my repo"
    assert worktree.head is None


def test_worktree_block_without_header() -> None:
    with pytest.raises(exc.ParseError):
        parse_worktree_list("HEAD abc\nbranch refs/heads/main\n")


def test_empty_worktree_list() -> None:
    assert parse_worktree_list("") == []


class LsTreeFixture(t.NamedTuple):
    """Test fixture for ``git ls-tree`` output modes."""

    test_id: str
    text: str
    options: dict[str, bool]
    expected: list[LsTreeEntry]


BLOB = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"
TREE = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"

LS_TREE_FIXTURES: list[LsTreeFixture] = [
    LsTreeFixture(
        test_id="default",
        text=f"100644 blob {BLOB}\tREADME.md\n040000 tree {TREE}\tsrc\n",
        options={},
        expected=[
            LsTreeEntry("100644", "blob", BLOB, None, "README.md"),
            LsTreeEntry("040000", "tree", TREE, None, "src"),
        ],
    ),
    LsTreeFixture(
        test_id="long",
        text=f"100755 blob {BLOB}    2048\tbin/run\n040000 tree {TREE}       -\tsrc\n",
        options={"long": True},
        expected=[
            LsTreeEntry("100755", "blob", BLOB, 2048, "bin/run"),
            LsTreeEntry("040000", "tree", TREE, None, "src"),
        ],
    ),
    LsTreeFixture(
        test_id="name_only",
        text="README.md\nsrc/with space.py\n",
        options={"name_only": True},
        expected=[LsTreeEntry(path="README.md"), LsTreeEntry(path="src/with space.py")],
    ),
    LsTreeFixture(
        test_id="object_only",
        text=f"{BLOB}\n{TREE}\n",
        options={"object_only": True},
        expected=[LsTreeEntry(object=BLOB), LsTreeEntry(object=TREE)],
    ),
    LsTreeFixture(
        test_id="path_with_space",
        text=f"100644 blob {BLOB}\tdocs/read me.md\n",
        options={},
        expected=[LsTreeEntry("100644", "blob", BLOB, None, "docs/read me.md")],
    ),
]


@pytest.mark.parametrize(
    list(LsTreeFixture._fields),
    LS_TREE_FIXTURES,
    ids=[test.test_id for test in LS_TREE_FIXTURES],
)
def test_parse_ls_tree(
    test_id: str,
    text: str,
    options: dict[str, bool],
    expected: list[LsTreeEntry],
) -> None:
    assert parse_ls_tree(text, **options) == expected


@pytest.mark.parametrize(
    ("text", "long"),
    [
        (f"100644 blob {BLOB} README.md\n", False),
        ("100644 blob\tREADME.md\n", False),
        (f"100644 blob {BLOB} big\tREADME.md\n", True),
        (f"100644 blob {BLOB} \u00b2\tREADME.md\n", True),
    ],
    ids=["missing_tab", "missing_object", "size_not_integer", "size_non_ascii_digit"],
)
def test_parse_ls_tree_malformed(text: str, long: bool) -> None:
    with pytest.raises(exc.ParseError):
        parse_ls_tree(text, long=long)


def test_line_separator_characters_stay_in_paths() -> None:
    text = f"100644 blob {BLOB}\tnotes\u2028draft.md\n100644 blob {BLOB}\tfs\x1cname\n"
    assert [entry.path for entry in parse_ls_tree(text)] == [
        "notes\u2028draft.md",
        "fs\x1cname",
    ]

    (worktree,) = parse_worktree_list("worktree /srv/a\x85b\nHEAD abc\n")
    assert worktree.path == "/srv/a\x85b"
