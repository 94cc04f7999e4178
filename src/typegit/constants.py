"""Constant variables for typegit.

Defaults below can be overridden through environment variables, read once at
import time.
"""

from __future__ import annotations

import enum
import os
import signal


class KillSignal(enum.Enum):
    """Signal used to stop a running git process."""

    TERM = "SIGTERM"
    KILL = "SIGKILL"

    @property
    def signum(self) -> int:
        """Return the platform signal number.

        Platforms without ``SIGKILL`` (Windows) fall back to ``SIGTERM``, which
        terminates the process unconditionally there.
        """
        return int(getattr(signal, self.value, signal.SIGTERM))


#: git executable used by :class:`typegit.runner.CliRunner`
#: Can be configured via :envvar:`TYPEGIT_GIT_BINARY`
GIT_BINARY = os.getenv("TYPEGIT_GIT_BINARY", "git")

#: Seconds between two reads of a tailed file
#: Can be configured via :envvar:`TYPEGIT_POLL_INTERVAL_SECONDS`
#: Defaults to 0.1 seconds (100ms)
POLL_INTERVAL_SECONDS = float(os.getenv("TYPEGIT_POLL_INTERVAL_SECONDS", 0.1))

#: Consecutive read failures (other than a missing file) tolerated by the
#: tail engine before the error is surfaced
#: Can be configured via :envvar:`TYPEGIT_MAX_READ_ERRORS`
MAX_READ_ERRORS = int(os.getenv("TYPEGIT_MAX_READ_ERRORS", 50))

#: Bytes requested from a pipe per read
READ_CHUNK_SIZE = 64 * 1024

#: Chunks a fan-out branch may hold before the pipe reader considers it full
BROADCAST_HIGH_WATER = 16

#: Encoding and error handler used for all git output
OUTPUT_ENCODING = "utf-8"
OUTPUT_ERRORS = "backslashreplace"

#: Prefix of temp directories created for progress files
TEMP_PREFIX = "typegit-"
