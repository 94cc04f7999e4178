"""Tests for git and git-lfs progress parsing."""

from __future__ import annotations

import typing as t

import pytest

from typegit.parsers.progress import (
    GitProgress,
    LfsDirection,
    LfsProgress,
    iter_lfs_progress,
    parse_git_progress,
    parse_lfs_progress,
)


class GitProgressFixture(t.NamedTuple):
    """Test fixture for git progress meters."""

    test_id: str
    line: str
    phase: str
    current: int
    total: int | None
    percent: int | None
    done: bool


GIT_PROGRESS_FIXTURES: list[GitProgressFixture] = [
    GitProgressFixture(
        test_id="percent_meter",
        line="Receiving objects:  45% (9/20)",
        phase="Receiving objects",
        current=9,
        total=20,
        percent=45,
        done=False,
    ),
    GitProgressFixture(
        test_id="percent_with_throughput_done",
        line="Receiving objects: 100% (20/20), 1.20 MiB | 3.00 MiB/s, done.",
        phase="Receiving objects",
        current=20,
        total=20,
        percent=100,
        done=True,
    ),
    GitProgressFixture(
        test_id="percent_with_throughput_running",
        line="Receiving objects:  10% (2/20), 1.00 KiB | 1.00 KiB/s",
        phase="Receiving objects",
        current=2,
        total=20,
        percent=10,
        done=False,
    ),
    GitProgressFixture(
        test_id="remote_prefix",
        line="remote: Counting objects: 100% (10/10), done.",
        phase="Counting objects",
        current=10,
        total=10,
        percent=100,
        done=True,
    ),
    GitProgressFixture(
        test_id="ratio_without_percent",
        line="Checking objects: 3/4",
        phase="Checking objects",
        current=3,
        total=4,
        percent=75,
        done=False,
    ),
    GitProgressFixture(
        test_id="ratio_zero_total",
        line="Updating files: 0/0",
        phase="Updating files",
        current=0,
        total=0,
        percent=None,
        done=False,
    ),
    GitProgressFixture(
        test_id="count_done",
        line="remote: Enumerating objects: 42, done.",
        phase="Enumerating objects",
        current=42,
        total=None,
        percent=None,
        done=True,
    ),
    GitProgressFixture(
        test_id="count_running",
        line="Enumerating objects: 7",
        phase="Enumerating objects",
        current=7,
        total=None,
        percent=None,
        done=False,
    ),
]


@pytest.mark.parametrize(
    list(GitProgressFixture._fields),
    GIT_PROGRESS_FIXTURES,
    ids=[test.test_id for test in GIT_PROGRESS_FIXTURES],
)
def test_parse_git_progress(
    test_id: str,
    line: str,
    phase: str,
    current: int,
    total: int | None,
    percent: int | None,
    done: bool,
) -> None:
    progress = parse_git_progress(line)
    assert progress == GitProgress(
        phase=phase,
        current=current,
        total=total,
        percent=percent,
        done=done,
        message=line,
    )


@pytest.mark.parametrize(
    "line",
    [
        "",
        "fatal: repository 'x' not found",
        "Cloning into 'repo'...",
        "hint: Using 'master' as the name for the initial branch.",
        "remote: ",
    ],
)
def test_non_progress_lines(line: str) -> None:
    assert parse_git_progress(line) is None


def test_trailing_whitespace_trimmed_from_message() -> None:
    progress = parse_git_progress("Compressing objects:  50% (1/2)   \n")
    assert progress is not None
    assert progress.message == "Compressing objects:  50% (1/2)"


class LfsProgressFixture(t.NamedTuple):
    """Test fixture for GIT_LFS_PROGRESS records."""

    test_id: str
    line: str
    expected: LfsProgress | None


LFS_PROGRESS_FIXTURES: list[LfsProgressFixture] = [
    LfsProgressFixture(
        test_id="download",
        line="download 3bd0 1024/4096 512",
        expected=LfsProgress(LfsDirection.Download, "3bd0", 1024, 4096, 512),
    ),
    LfsProgressFixture(
        test_id="upload_trailing_name",
        line="upload 3bd0 4096/4096 4096 assets/video.mp4",
        expected=LfsProgress(LfsDirection.Upload, "3bd0", 4096, 4096, 4096),
    ),
    LfsProgressFixture(
        test_id="checkout",
        line="checkout 3bd0 1/1 1",
        expected=LfsProgress(LfsDirection.Checkout, "3bd0", 1, 1, 1),
    ),
    LfsProgressFixture(
        test_id="unknown_direction",
        line="sideways 3bd0 1/1 1",
        expected=None,
    ),
    LfsProgressFixture(
        test_id="bytes_not_ratio",
        line="download 3bd0 1024 512",
        expected=None,
    ),
    LfsProgressFixture(
        test_id="transferred_not_numeric",
        line="download 3bd0 1/2 many",
        expected=None,
    ),
    LfsProgressFixture(
        test_id="non_ascii_digit_count",
        line="download 3bd0 1/2 \u00b2",
        expected=None,
    ),
    LfsProgressFixture(
        test_id="non_ascii_digit_bytes",
        line="download 3bd0 \u0663/4 1",
        expected=None,
    ),
    LfsProgressFixture(
        test_id="too_few_fields",
        line="download 3bd0",
        expected=None,
    ),
]


@pytest.mark.parametrize(
    list(LfsProgressFixture._fields),
    LFS_PROGRESS_FIXTURES,
    ids=[test.test_id for test in LFS_PROGRESS_FIXTURES],
)
def test_parse_lfs_progress(
    test_id: str,
    line: str,
    expected: LfsProgress | None,
) -> None:
    assert parse_lfs_progress(line) == expected


def test_lfs_percent() -> None:
    assert LfsProgress(LfsDirection.Download, "a", 1, 4, 1).percent == 25
    assert LfsProgress(LfsDirection.Download, "a", 0, 0, 0).percent is None


def test_iter_lfs_progress_skips_malformed_and_blank() -> None:
    records = list(
        iter_lfs_progress(
            ["download a 1/2 1", "", "not progress", "upload b 2/2 2"],
        ),
    )
    assert [(r.direction, r.oid) for r in records] == [
        (LfsDirection.Download, "a"),
        (LfsDirection.Upload, "b"),
    ]


def test_iter_lfs_progress_skips_non_ascii_digits() -> None:
    records = list(iter_lfs_progress(["download a 1/2 \u00b2", "upload b 2/2 2"]))
    assert [r.oid for r in records] == ["b"]
