"""typegit, a typed, asyncio client layer over the git command line."""

from .__about__ import (
    __author__,
    __copyright__,
    __description__,
    __email__,
    __license__,
    __package_name__,
    __title__,
    __version__,
)
from .cancel import CancelToken
from .capabilities import Capabilities, detect_capabilities, detect_tool_versions
from .constants import KillSignal
from .exc import (
    Aborted,
    CapabilityMissing,
    ErrorCategory,
    ErrorContext,
    ErrorKind,
    GitError,
    NonZeroExit,
    ParseError,
    SpawnFailed,
    TypeGitError,
)
from .exec import ExecEngine, SpawnResult, SpawnSpec, StreamHandle
from .fs import LocalFs
from .runner import (
    AuditConfig,
    AuditEvent,
    BareContext,
    CliRunner,
    CredentialHelper,
    GlobalContext,
    TraceEvent,
    WorktreeContext,
)

__all__ = (
    "Aborted",
    "AuditConfig",
    "AuditEvent",
    "BareContext",
    "CancelToken",
    "Capabilities",
    "CapabilityMissing",
    "CliRunner",
    "CredentialHelper",
    "ErrorCategory",
    "ErrorContext",
    "ErrorKind",
    "ExecEngine",
    "GitError",
    "GlobalContext",
    "KillSignal",
    "LocalFs",
    "NonZeroExit",
    "ParseError",
    "SpawnFailed",
    "SpawnResult",
    "SpawnSpec",
    "StreamHandle",
    "TraceEvent",
    "TypeGitError",
    "WorktreeContext",
    "__author__",
    "__copyright__",
    "__description__",
    "__email__",
    "__license__",
    "__package_name__",
    "__title__",
    "__version__",
    "detect_capabilities",
    "detect_tool_versions",
)
