"""Open stream handles.

A handle is owned by one open -> ... -> close sequence. Its lifecycle follows

    OPENING -> READING | WRITING | APPENDING -> CLOSED

`ReadHandle` reads through a `SeekableCachingBuffer`. `WriteHandle` collects
writes in a local spill buffer and hands it to the stream wrapper's commit
callback on `close`; nothing is sent remotely before that. Leaving a write
handle's context because of an exception aborts instead of uploading.
"""

from __future__ import annotations

import abc
import io
import logging
import shutil
import tempfile
from collections.abc import Callable
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, BinaryIO

from bucketfs.domain.modes import OpenMode

if TYPE_CHECKING:
    from .buffer import SeekableCachingBuffer

log = logging.getLogger(__name__)

SPILL_MEMORY_LIMIT = 8 * 1024 * 1024


class HandleState(Enum):
    """Lifecycle states of a stream handle."""

    OPENING = "opening"
    READING = "reading"
    WRITING = "writing"
    APPENDING = "appending"
    CLOSED = "closed"


class StreamHandle(abc.ABC):
    """Common surface of read and write handles."""

    def __init__(self, uri: str, key: str, mode: OpenMode) -> None:
        self.uri = uri
        self.key = key
        self.mode = mode
        self.state = HandleState.OPENING

    @property
    def closed(self) -> bool:
        """True once the handle has been closed or aborted."""
        return self.state is HandleState.CLOSED

    def read(self, size: int = -1) -> bytes:  # pylint: disable=unused-argument
        """Read up to ``size`` bytes."""
        raise io.UnsupportedOperation(f"{self.uri} is not open for reading")

    def write(self, data: bytes) -> int:  # pylint: disable=unused-argument
        """Write ``data`` and return the number of bytes written."""
        raise io.UnsupportedOperation(f"{self.uri} is not open for writing")

    @abc.abstractmethod
    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the cursor and return the new absolute position."""

    @abc.abstractmethod
    def tell(self) -> int:
        """Return the cursor position."""

    @property
    @abc.abstractmethod
    def eof(self) -> bool:
        """True when no more bytes can be read."""

    def flush(self) -> None:
        """No-op: data only leaves the process on close."""
        self._ensure_open()

    @abc.abstractmethod
    def close(self) -> None:
        """Release the handle. Closing twice is a no-op."""

    def _ensure_open(self) -> None:
        if self.closed:
            raise ValueError(f"I/O operation on closed handle for {self.uri}.")

    def __enter__(self) -> StreamHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


class ReadHandle(StreamHandle):
    """Handle opened with mode ``r``."""

    def __init__(self, uri: str, key: str, buffer: SeekableCachingBuffer) -> None:
        super().__init__(uri, key, OpenMode.READ)
        self.buffer = buffer
        self.state = HandleState.READING

    def read(self, size: int = -1) -> bytes:
        self._ensure_open()
        return self.buffer.read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._ensure_open()
        return self.buffer.seek(offset, whence)

    def tell(self) -> int:
        self._ensure_open()
        return self.buffer.tell()

    @property
    def eof(self) -> bool:
        return self.closed or self.buffer.eof

    def close(self) -> None:
        if self.closed:
            return
        try:
            self.buffer.close()
        finally:
            self.state = HandleState.CLOSED


CommitCallback = Callable[["WriteHandle", BinaryIO], None]


class WriteHandle(StreamHandle):
    """Handle opened with mode ``w``, ``a`` or ``x``.

    Args:
        uri: Normalized URI being written.
        key: Store key being written.
        mode: The write mode.
        on_commit: Called on `close` with the handle and the rewound spill
            buffer; performs the upload and cache write.
        initial: Existing body to start from (append mode). The cursor is
            positioned at its end.
    """

    def __init__(
        self,
        uri: str,
        key: str,
        mode: OpenMode,
        on_commit: CommitCallback,
        initial: BinaryIO | None = None,
    ) -> None:
        super().__init__(uri, key, mode)
        self._on_commit = on_commit
        self._spill = tempfile.SpooledTemporaryFile(  # pylint: disable=consider-using-with
            max_size=SPILL_MEMORY_LIMIT, mode="w+b"
        )
        if initial is not None:
            shutil.copyfileobj(initial, self._spill)
            self.state = HandleState.APPENDING
        else:
            self.state = HandleState.WRITING

    def write(self, data: bytes) -> int:
        self._ensure_open()
        return self._spill.write(data)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._ensure_open()
        return self._spill.seek(offset, whence)

    def tell(self) -> int:
        self._ensure_open()
        return self._spill.tell()

    @property
    def eof(self) -> bool:
        return True

    def close(self) -> None:
        """Upload the written bytes via the commit callback, then release the buffer."""
        if self.closed:
            return
        try:
            self._spill.seek(0)
            self._on_commit(self, self._spill)  # type: ignore[arg-type]
        finally:
            self._spill.close()
            self.state = HandleState.CLOSED

    def abort(self) -> None:
        """Discard the written bytes without uploading."""
        if self.closed:
            return
        log.debug("Discarding unwritten data for %s", self.uri)
        self._spill.close()
        self.state = HandleState.CLOSED

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_type is not None:
            self.abort()
        else:
            self.close()
