"""Local filesystem adapter.

typegit.fs
~~~~~~~~~~

Temp files, plain reads and writes, and tailing a file that another process
is appending to (git-lfs writes its progress that way).
"""

from __future__ import annotations

import logging
import pathlib
import shutil
import tempfile
import typing as t

from .constants import POLL_INTERVAL_SECONDS, READ_CHUNK_SIZE, TEMP_PREFIX
from ._internal.polling import TailHandle, TailPoller

if t.TYPE_CHECKING:
    from .cancel import CancelToken
    from ._internal.types import StrPath, TextObserver

logger = logging.getLogger(__name__)


class FileChunkReader:
    """Read a file from a byte offset to its current end.

    The file is opened on first read, so it may not exist yet when the reader
    is created.

    Examples
    --------
    >>> import asyncio
    >>> path = tmp_path / "progress"
    >>> reader = FileChunkReader(path)
    >>> asyncio.run(reader.read_chunk(0)) is None
    True
    >>> _ = path.write_bytes(b"abc\\n")
    >>> asyncio.run(reader.read_chunk(1))
    b'bc\\n'
    >>> reader.close()
    """

    def __init__(self, path: StrPath, chunk_size: int = READ_CHUNK_SIZE) -> None:
        self.path = pathlib.Path(path)
        self.chunk_size = chunk_size
        self._file: t.BinaryIO | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.path)!r})"

    async def read_chunk(self, position: int) -> bytes | None:
        if self._file is None:
            try:
                self._file = self.path.open("rb")
            except FileNotFoundError:
                return None
        self._file.seek(position)
        parts = []
        while True:
            part = self._file.read(self.chunk_size)
            if not part:
                break
            parts.append(part)
        return b"".join(parts)

    def close(self) -> None:
        file, self._file = self._file, None
        if file is not None:
            file.close()


class LocalFs:
    """Filesystem primitives backed by the local disk."""

    async def create_temp_file(self, prefix: str = TEMP_PREFIX) -> pathlib.Path:
        """Return the path of a not yet existing file inside a fresh temp dir.

        Remove it with :meth:`delete_directory` on the path's parent.
        """
        directory = pathlib.Path(tempfile.mkdtemp(prefix=prefix))
        return directory / "temp"

    async def delete_file(self, path: StrPath) -> None:
        """Remove *path*. A missing file is not an error."""
        pathlib.Path(path).unlink(missing_ok=True)

    async def delete_directory(self, path: StrPath) -> None:
        """Remove *path* recursively. A missing directory is not an error."""
        shutil.rmtree(path, ignore_errors=True)

    async def exists(self, path: StrPath) -> bool:
        return pathlib.Path(path).exists()

    async def read_file(self, path: StrPath) -> str:
        return pathlib.Path(path).read_text(encoding="utf-8")

    async def write_file(self, path: StrPath, contents: str) -> None:
        pathlib.Path(path).write_text(contents, encoding="utf-8")

    def poller(
        self,
        path: StrPath,
        *,
        token: CancelToken | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        start_offset: int = 0,
        **kwargs: t.Any,
    ) -> TailPoller:
        """Return a :class:`~typegit._internal.polling.TailPoller` over *path*.

        Extra keyword arguments go to the poller.
        """
        return TailPoller(
            FileChunkReader(path),
            token=token,
            poll_interval=poll_interval,
            start_offset=start_offset,
            **kwargs,
        )

    async def tail(
        self,
        path: StrPath,
        on_line: TextObserver,
        *,
        token: CancelToken | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        start_offset: int = 0,
        **kwargs: t.Any,
    ) -> None:
        """Call *on_line* for each line appended to *path* until *token* fires."""
        logger.debug("tailing file", extra={"path": str(path)})
        poller = self.poller(
            path,
            token=token,
            poll_interval=poll_interval,
            start_offset=start_offset,
            **kwargs,
        )
        await poller.run(on_line)

    def tail_streaming(
        self,
        path: StrPath,
        *,
        token: CancelToken | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        start_offset: int = 0,
        **kwargs: t.Any,
    ) -> TailHandle:
        """Return a pull handle over lines appended to *path*.

        Must be called from a running event loop.
        """
        logger.debug("tailing file", extra={"path": str(path)})
        poller = self.poller(
            path,
            token=token,
            poll_interval=poll_interval,
            start_offset=start_offset,
            **kwargs,
        )
        return poller.stream()
