"""The metadata record cached for every file and directory URI."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, replace

# Synthesized permission bits; the object store has no permission model.
PERMISSION_MASK = 0o777
DIRECTORY_MODE = stat.S_IFDIR | PERMISSION_MASK
FILE_MODE = stat.S_IFREG | PERMISSION_MASK

DEFAULT_OWNER = "bucketfs"  # pragma: no mutate


@dataclass(frozen=True)
class MetadataRecord:
    """Cached description of a URI.

    Attributes:
        uri: Normalized URI of the entry.
        size: Size in bytes (0 for directories).
        last_modified: Modification time in epoch seconds.
        is_directory: True for (inferred) directories.
        owner: Owner reported by the store, or the default owner.
        mode: Synthesized mode bits (`DIRECTORY_MODE` or `FILE_MODE`).
        expires: Epoch seconds after which the record is a cache miss, or
            None if it never expires.
    """

    uri: str
    size: int
    last_modified: int
    is_directory: bool
    owner: str
    mode: int
    expires: int | None = None

    @classmethod
    def directory(cls, uri: str, timestamp: int) -> MetadataRecord:
        """Build a synthesized directory record."""
        return cls(
            uri=uri,
            size=0,
            last_modified=timestamp,
            is_directory=True,
            owner=DEFAULT_OWNER,
            mode=DIRECTORY_MODE,
        )

    @classmethod
    def file(
        cls, uri: str, size: int, last_modified: int, owner: str | None = None
    ) -> MetadataRecord:
        """Build a file record from store metadata."""
        return cls(
            uri=uri,
            size=size,
            last_modified=last_modified,
            is_directory=False,
            owner=owner or DEFAULT_OWNER,
            mode=FILE_MODE,
        )

    def with_ttl(self, now: int, ttl: int | None) -> MetadataRecord:
        """Return a copy expiring ``ttl`` seconds after ``now`` (unchanged if no TTL)."""
        if ttl is None:
            return self
        return replace(self, expires=now + ttl)

    def with_uri(self, uri: str) -> MetadataRecord:
        """Return a copy of the record at another URI."""
        return replace(self, uri=uri)

    def is_expired(self, now: int) -> bool:
        """Return True once the record's expiry time has been reached."""
        return self.expires is not None and now >= self.expires

    def as_stat_result(self) -> os.stat_result:
        """Render the record as an `os.stat_result`.

        Directories report a zero size and zero times, like a freshly created
        mount point.
        """
        size = 0 if self.is_directory else self.size
        mtime = 0 if self.is_directory else self.last_modified
        # (mode, ino, dev, nlink, uid, gid, size, atime, mtime, ctime)
        return os.stat_result((self.mode, 0, 0, 1, 0, 0, size, mtime, mtime, mtime))
