"""Fixtures for typegit tests."""

from __future__ import annotations

import logging
import typing as t

import pytest

from typegit.exec import ExecEngine
from typegit.fs import LocalFs

if t.TYPE_CHECKING:
    import pathlib

logger = logging.getLogger(__name__)


@pytest.fixture
def engine() -> ExecEngine:
    """Return an :class:`ExecEngine` spawning real processes."""
    return ExecEngine()


@pytest.fixture
def fs() -> LocalFs:
    """Return the local filesystem adapter."""
    return LocalFs()


@pytest.fixture
def repo_path(tmp_path: pathlib.Path) -> pathlib.Path:
    """Return an empty directory to ``git init`` into."""
    path = tmp_path / "repo"
    path.mkdir()
    return path
