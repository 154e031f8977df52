"""Seekable caching buffer over a forward-only remote stream.

Object bodies arrive as forward-only streams, but callers expect files to be
seekable. `SeekableCachingBuffer` keeps every byte it has pulled from the
remote stream in a local buffer so that:

- reads are served from the local buffer first, and each remote byte is
  fetched at most once per buffer;
- seeking backward is always satisfied locally;
- seeking forward reads and discards the remote stream in fixed-size chunks
  until the local buffer reaches the target.

The local buffer is a `tempfile.SpooledTemporaryFile` that stays in memory up
to the seek ceiling. Seek targets above the ceiling (`MAX_SEEK_OFFSET`) are
rejected with `SeekLimitExceeded` instead of buffering unbounded data.
"""

from __future__ import annotations

import io
import logging
import tempfile
from typing import BinaryIO

from bucketfs.domain.errors import SeekLimitExceeded

log = logging.getLogger(__name__)

MAX_SEEK_OFFSET = 52_428_800  # 50 MiB
SKIP_CHUNK_SIZE = 16_384


class SeekableCachingBuffer(io.RawIOBase):
    """Random-access reader over a forward-only stream.

    Args:
        remote: The forward-only source stream.
        size: Total size of the remote body if known; enables ``SEEK_END`` and
            lets the buffer notice exhaustion without an extra read.
        max_seek: Largest allowed absolute seek target.
        chunk_size: Size of the chunks read while skipping forward.
    """

    def __init__(
        self,
        remote: BinaryIO,
        size: int | None = None,
        *,
        max_seek: int = MAX_SEEK_OFFSET,
        chunk_size: int = SKIP_CHUNK_SIZE,
    ) -> None:
        super().__init__()
        self._remote = remote
        self._size = size
        self._local = tempfile.SpooledTemporaryFile(max_size=max_seek, mode="w+b")  # pylint: disable=consider-using-with
        self._cached = 0
        self._pos = 0
        self._remote_exhausted = size == 0
        self.max_seek = max_seek
        self.chunk_size = chunk_size
        self.remote_bytes_read = 0

    # --- io.RawIOBase ---

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        self._ensure_open()
        return self._pos

    def read(self, size: int | None = -1) -> bytes:
        """Read up to ``size`` bytes (everything remaining if negative)."""
        self._ensure_open()
        read_all = size is None or size < 0
        parts: list[bytes] = []

        if self._pos < self._cached:
            available = self._cached - self._pos
            self._local.seek(self._pos)
            data = self._local.read(available if read_all else min(size, available))
            parts.append(data)
            self._pos += len(data)

        wanted = -1 if read_all else size - sum(len(p) for p in parts)
        if wanted != 0 and self._pos == self._cached and not self._remote_exhausted:
            data = self._pull(wanted)
            parts.append(data)
            self._pos += len(data)

        return b"".join(parts)

    def readall(self) -> bytes:
        return self.read(-1)

    def readinto(self, buffer) -> int:  # type: ignore[override]
        data = self.read(len(buffer))
        buffer[: len(data)] = data
        return len(data)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        """Move the cursor.

        Raises:
            io.UnsupportedOperation: for ``SEEK_END`` when the size is unknown.
            ValueError: for a negative target or an unknown ``whence``.
            SeekLimitExceeded: if the target is beyond `max_seek`.
        """
        self._ensure_open()
        match whence:
            case io.SEEK_SET:
                target = offset
            case io.SEEK_CUR:
                target = self._pos + offset
            case io.SEEK_END:
                if self._size is None:
                    raise io.UnsupportedOperation(
                        "SEEK_END requires a known content length"
                    )
                target = self._size + offset
            case _:
                raise ValueError(f"invalid whence ({whence!r})")

        if target < 0:
            raise ValueError(f"negative seek position {target}")
        if target > self.max_seek:
            log.warning("Rejected seek to %d (limit %d)", target, self.max_seek)
            raise SeekLimitExceeded(target, self.max_seek)

        while self._cached < target and not self._remote_exhausted:
            self._pull(self.chunk_size)

        self._pos = target
        return target

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._local.close()
            self._remote.close()
        finally:
            super().close()

    # --- extras ---

    @property
    def eof(self) -> bool:
        """True once the local buffer and the remote stream are both exhausted."""
        return self._pos >= self._cached and self._remote_exhausted

    @property
    def cached_size(self) -> int:
        """Number of bytes held in the local buffer."""
        return self._cached

    # --- internals ---

    def _pull(self, size: int) -> bytes:
        """Read from the remote stream and append the bytes to the local buffer."""
        data = self._remote.read() if size < 0 else self._remote.read(size)
        if not data:
            self._remote_exhausted = True
            return b""
        self._local.seek(self._cached)
        self._local.write(data)
        self._cached += len(data)
        self.remote_bytes_read += len(data)
        if size < 0 or (self._size is not None and self._cached >= self._size):
            self._remote_exhausted = True
        return data

    def _ensure_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed buffer.")
