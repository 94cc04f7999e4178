"""Describe what the current host can do.

typegit.capabilities
~~~~~~~~~~~~~~~~~~~~

Higher layers consult :class:`Capabilities` before attempting an operation
and fail fast with :exc:`~typegit.exc.CapabilityMissing` instead of running
into a generic runtime failure.
"""

from __future__ import annotations

import dataclasses
import logging
import os
import platform
import signal
import sys
import tempfile
import typing as t

from . import exc

if t.TYPE_CHECKING:
    from .exec import ExecEngine

logger = logging.getLogger(__name__)

CapabilityName = t.Literal[
    "can_spawn_process",
    "can_read_env",
    "can_write_temp",
    "supports_cancellation",
    "supports_kill_signal",
]

#: Platforms where :mod:`subprocess` cannot start processes
_NO_SPAWN_PLATFORMS = frozenset({"emscripten", "wasi"})


@dataclasses.dataclass(frozen=True)
class Capabilities:
    """Static description of the execution environment.

    Examples
    --------
    >>> caps = Capabilities(can_spawn_process=False, runtime="cpython")
    >>> caps.require("can_read_env")
    >>> caps.require("can_spawn_process")
    Traceback (most recent call last):
        ...
    typegit.exc.CapabilityMissing: Capability not available in this environment: can_spawn_process
    """

    can_spawn_process: bool = True
    can_read_env: bool = True
    can_write_temp: bool = True
    supports_cancellation: bool = True
    supports_kill_signal: bool = True
    runtime: str = "cpython"
    git_version: str | None = None
    lfs_version: str | None = None

    def supports(self, capability: CapabilityName) -> bool:
        """Return True if *capability* is available."""
        return bool(getattr(self, capability))

    def require(self, capability: CapabilityName) -> None:
        """Raise :exc:`~typegit.exc.CapabilityMissing` unless *capability* is set."""
        if not self.supports(capability):
            raise exc.CapabilityMissing(capability)


def _can_write_temp() -> bool:
    try:
        return os.access(tempfile.gettempdir(), os.W_OK)
    except OSError:
        logger.debug("temp dir lookup failed", exc_info=True)
        return False


def detect_capabilities() -> Capabilities:
    """Probe the running interpreter and platform.

    Examples
    --------
    >>> caps = detect_capabilities()
    >>> caps.can_read_env
    True
    >>> caps.runtime == platform.python_implementation().lower()
    True
    """
    return Capabilities(
        can_spawn_process=sys.platform not in _NO_SPAWN_PLATFORMS,
        can_read_env=True,
        can_write_temp=_can_write_temp(),
        supports_cancellation=True,
        supports_kill_signal=hasattr(signal, "SIGKILL"),
        runtime=platform.python_implementation().lower(),
    )


async def detect_tool_versions(
    engine: ExecEngine,
    capabilities: Capabilities | None = None,
    git_binary: str = "git",
) -> Capabilities:
    """Return *capabilities* with ``git_version`` and ``lfs_version`` filled in.

    Missing tools leave the field as ``None``.
    """
    from .common import parse_git_version, parse_lfs_version
    from .exec import SpawnSpec

    caps = capabilities if capabilities is not None else detect_capabilities()
    caps.require("can_spawn_process")

    versions: dict[str, str | None] = {}
    for field, argv, parse in (
        ("git_version", (git_binary, "--version"), parse_git_version),
        ("lfs_version", (git_binary, "lfs", "version"), parse_lfs_version),
    ):
        try:
            result = await engine.execute(SpawnSpec(argv))
        except exc.SpawnFailed:
            logger.debug("version probe failed", extra={"argv": argv})
            versions[field] = None
            continue
        versions[field] = parse(result.stdout) if result.exit_code == 0 else None

    return dataclasses.replace(caps, **versions)
