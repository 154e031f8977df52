"""The virtual filesystem stream wrapper.

`StreamWrapper` exposes a filesystem over one bucket mount: open/read/write/
seek through stream handles, plus stat, unlink, rename, mkdir, rmdir and
directory listings. Every operation normalizes its URI first, consults the
metadata cache, and only falls back to the object store on a miss.

Ordering rules the wrapper keeps:

- **Remote first**: deletions hit the store before the cache, so the cache
  never reports "gone" while the store still has the object. A cache failure
  after a successful remote step is raised as `PartialFailureError`.
- **Rename**: copy, move the cache record, then unlink the source. A failed
  copy mutates nothing. A failed unlink leaves a duplicate object, which a
  retry resolves.
- **Uploads**: written bytes stay local until the handle is closed; close
  uploads, waits (bounded) for the store to confirm the object, then caches
  the confirmed metadata.

Operations on the same URI are not serialized here; callers needing a single
writer per URI must lock externally.
"""

from __future__ import annotations

import logging
import mimetypes
import time
from collections.abc import Callable, Iterator
from types import TracebackType
from typing import TYPE_CHECKING, BinaryIO

from bucketfs.domain.errors import (
    BucketFSError,
    CacheStoreError,
    DirectoryNotEmpty,
    ExclusiveCreateError,
    IsADirectory,
    NotADirectory,
    PartialFailureError,
    PathNotFoundError,
    UploadFailedError,
    UploadNotConfirmedError,
)
from bucketfs.domain.metadata import MetadataRecord
from bucketfs.domain.modes import OpenMode
from bucketfs.domain.uri import UriResolver
from bucketfs.interfaces.object_store import (
    ObjectInfo,
    ObjectNotFound,
    ObjectStoreError,
    Visibility,
)

from .buffer import SeekableCachingBuffer
from .handles import ReadHandle, StreamHandle, WriteHandle
from .metadata_cache import MetadataCache
from .waiter import wait_until_exists

if TYPE_CHECKING:
    from bucketfs.config import MountConfig
    from bucketfs.interfaces.cache_store import CacheStore
    from bucketfs.interfaces.clock import Clock
    from bucketfs.interfaces.object_store import ObjectStoreClient

log = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"  # pragma: no mutate


class DirectoryListing:
    """Ordered, restartable listing returned by `StreamWrapper.opendir`."""

    def __init__(self, uri: str, entries: list[str]) -> None:
        self.uri = uri
        self._entries = entries
        self._cursor = 0
        self._closed = False

    def readdir(self) -> str | None:
        """Return the next entry name, or None when the listing is exhausted."""
        self._ensure_open()
        if self._cursor >= len(self._entries):
            return None
        entry = self._entries[self._cursor]
        self._cursor += 1
        return entry

    def rewinddir(self) -> None:
        """Restart the listing from its first entry."""
        self._ensure_open()
        self._cursor = 0

    def closedir(self) -> None:
        """Release the listing."""
        self._closed = True
        self._entries = []

    def __iter__(self) -> Iterator[str]:
        while (entry := self.readdir()) is not None:
            yield entry

    def __enter__(self) -> DirectoryListing:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.closedir()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ValueError(f"Directory listing for {self.uri} is closed.")


class StreamWrapper:  # pylint: disable=too-many-public-methods
    """Filesystem operations over one bucket mount.

    Args:
        config: The mount configuration (scheme, prefix, cache and
            confirmation settings are used).
        client: Object store client.
        store: Metadata cache store.
        clock: Time source for synthesized records and expiry.
        sleep: Sleep function used by the existence-confirmation wait.
    """

    def __init__(
        self,
        config: MountConfig,
        client: ObjectStoreClient,
        store: CacheStore,
        clock: Clock,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.client = client
        self.clock = clock
        self.resolver = UriResolver(config.scheme, config.key_prefix)
        self.cache = MetadataCache(store, self.resolver, clock)
        self._sleep = sleep
        self._openers: dict[OpenMode, Callable[[str, str], StreamHandle]] = {
            OpenMode.READ: self._open_read,
            OpenMode.WRITE: self._open_write,
            OpenMode.APPEND: self._open_append,
            OpenMode.CREATE_EXCLUSIVE: self._open_exclusive,
        }

    # ------------------------------------------------------------------ #
    # Streams
    # ------------------------------------------------------------------ #

    def open(self, uri: str, mode: str = "r") -> StreamHandle:
        """Open a stream on ``uri``.

        The mode is validated before anything else, so a mode error never
        reaches the store.

        Raises:
            ModeConflictError: for read+write modes such as ``"rw"`` or ``"r+"``.
            ModeNotSupportedError: for modes outside r, w, a and x.
            ExclusiveCreateError: for ``"x"`` when the target exists.
            PathNotFoundError: for ``"r"`` when the object does not exist.
            IsADirectory: when the target is a cached directory.
        """
        open_mode = OpenMode.parse(mode)
        uri = self.resolver.normalize(uri)
        key = self.resolver.to_key(uri)
        log.debug("Opening %s with mode %s", uri, open_mode.value)
        return self._openers[open_mode](uri, key)

    def _open_read(self, uri: str, key: str) -> StreamHandle:
        self._reject_directory(uri)
        try:
            body = self.client.get(key)
        except ObjectNotFound as e:
            raise PathNotFoundError(uri) from e
        buffer = SeekableCachingBuffer(body.stream, body.content_length)
        return ReadHandle(uri, key, buffer)

    def _open_write(self, uri: str, key: str) -> StreamHandle:
        self._reject_directory(uri)
        return WriteHandle(uri, key, OpenMode.WRITE, self._commit)

    def _open_exclusive(self, uri: str, key: str) -> StreamHandle:
        self._reject_directory(uri)
        if self.cache.get(uri) is not None or self.client.exists(key):
            raise ExclusiveCreateError(uri)
        return WriteHandle(uri, key, OpenMode.CREATE_EXCLUSIVE, self._commit)

    def _open_append(self, uri: str, key: str) -> StreamHandle:
        self._reject_directory(uri)
        try:
            body = self.client.get(key)
        except ObjectNotFound:
            log.debug("%s does not exist yet; appending starts a new object", uri)
            return WriteHandle(uri, key, OpenMode.APPEND, self._commit)
        try:
            return WriteHandle(
                uri, key, OpenMode.APPEND, self._commit, initial=body.stream
            )
        finally:
            body.stream.close()

    def _commit(self, handle: WriteHandle, body: BinaryIO) -> None:
        content_type = mimetypes.guess_type(handle.key)[0] or DEFAULT_CONTENT_TYPE
        try:
            self.client.put(
                handle.key,
                body,
                content_type=content_type,
                visibility=Visibility.PUBLIC_READ,
            )
        except ObjectStoreError as e:
            log.error("Uploading %s failed: %s", handle.uri, e)
            raise UploadFailedError(handle.uri) from e

        info = self._confirm(handle.uri, handle.key)
        try:
            self.cache.put(self._file_record(handle.uri, info))
        except CacheStoreError as e:
            raise PartialFailureError(handle.uri, "Upload") from e
        log.info("Wrote %s (%d bytes)", handle.uri, info.size)

    def _confirm(self, uri: str, key: str) -> ObjectInfo:
        """Wait for ``key`` to become visible after a write or copy.

        Raises:
            UploadNotConfirmedError: if it never shows up, or a ``head`` call
                fails; the object may exist remotely either way.
        """
        attempts = self.config.confirm_max_attempts
        try:
            info = wait_until_exists(
                self.client,
                key,
                max_attempts=attempts,
                delay=self.config.confirm_delay,
                sleep=self._sleep,
            )
        except ObjectStoreError as e:
            raise UploadNotConfirmedError(uri, attempts) from e
        if info is None:
            raise UploadNotConfirmedError(uri, attempts)
        return info

    # ------------------------------------------------------------------ #
    # Metadata
    # ------------------------------------------------------------------ #

    def stat(self, uri: str, quiet: bool = False) -> MetadataRecord | None:
        """Return the metadata record of ``uri``.

        Args:
            uri: The URI to look up.
            quiet: Return None instead of raising on any error.

        Raises:
            PathNotFoundError: if the path exists neither in the cache nor the store.
        """
        try:
            return self._stat(self.resolver.normalize(uri))
        except BucketFSError as e:
            if quiet:
                log.debug("Quiet stat of %s: %s", uri, e)
                return None
            raise

    def _stat(self, uri: str) -> MetadataRecord:
        if self.resolver.is_root(uri):
            return MetadataRecord.directory(uri, 0)

        cached = self.cache.get(uri)
        if cached is not None and (cached.is_directory or not self.config.ignore_cache):
            return cached

        record = self._lookup_remote(uri)
        if record is None:
            raise PathNotFoundError(uri)
        if cached is None:
            self.cache.put(record)
        return record

    def _lookup_remote(self, uri: str) -> MetadataRecord | None:
        """Look ``uri`` up in the store: exact key first, then implied directory."""
        if (info := self.client.head(self.resolver.to_key(uri))) is not None:
            return self._file_record(uri, info)
        page = self.client.list(self.resolver.directory_key(uri), page_size=1)
        if page.entries:
            return MetadataRecord.directory(uri, self.clock.now())
        return None

    def _file_record(self, uri: str, info: ObjectInfo) -> MetadataRecord:
        owner = info.owner
        if owner is None and (known := self.cache.get(uri)) is not None:
            # head() reports no owner on S3; keep the one a listing recorded
            owner = known.owner
        record = MetadataRecord.file(
            uri, info.size, int(info.last_modified.timestamp()), owner
        )
        return record.with_ttl(self.clock.now(), self.config.cache_ttl)

    def exists(self, uri: str) -> bool:
        """Return True if ``uri`` is a file or directory."""
        return self.stat(uri, quiet=True) is not None

    def is_dir(self, uri: str) -> bool:
        """Return True if ``uri`` is a directory."""
        record = self.stat(uri, quiet=True)
        return record is not None and record.is_directory

    def is_file(self, uri: str) -> bool:
        """Return True if ``uri`` is a file."""
        record = self.stat(uri, quiet=True)
        return record is not None and not record.is_directory

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    def unlink(self, uri: str) -> None:
        """Delete a file: remote object first, then its cache record.

        Raises:
            IsADirectory: if ``uri`` is a cached directory.
            ObjectStoreError: if the remote delete fails (cache untouched).
            PartialFailureError: if the remote delete succeeded but the cache
                could not be updated.
        """
        uri = self.resolver.normalize(uri)
        self._reject_directory(uri)
        self.client.delete(self.resolver.to_key(uri))
        try:
            self.cache.delete(uri)
        except CacheStoreError as e:
            raise PartialFailureError(uri, "Unlink") from e
        log.info("Deleted %s", uri)

    def rename(self, src: str, dst: str) -> None:
        """Move a file: copy, move the cache record, then unlink the source.

        Raises:
            IsADirectory: if ``src`` or ``dst`` is a directory.
            PathNotFoundError: if ``src`` does not exist.
            ObjectStoreError: if the copy fails; nothing has been changed.
        """
        src_uri = self.resolver.normalize(src)
        dst_uri = self.resolver.normalize(dst)
        dst_key = self.resolver.to_key(dst_uri)
        self._reject_directory(src_uri)
        if src_uri == dst_uri:
            self._stat(src_uri)
            return
        self._reject_directory(dst_uri)
        record = self.cache.get(src_uri)

        try:
            self.client.copy(
                self.resolver.to_key(src_uri), dst_key, visibility=Visibility.PUBLIC_READ
            )
        except ObjectNotFound as e:
            raise PathNotFoundError(src_uri) from e

        if record is not None:
            moved = record.with_uri(dst_uri)
        else:
            moved = self._file_record(dst_uri, self._confirm(dst_uri, dst_key))

        try:
            self.cache.put(moved)
        except CacheStoreError as e:
            raise PartialFailureError(dst_uri, "Rename") from e
        self.unlink(src_uri)
        log.info("Renamed %s to %s", src_uri, dst_uri)

    def mkdir(self, uri: str, recursive: bool = False) -> None:
        """Create a directory record.

        Succeeds without change if the directory already exists. Missing
        ancestors are always recorded; ``recursive`` additionally checks that
        no ancestor is a file (otherwise only the parent is checked).

        Raises:
            NotADirectory: if ``uri`` or a checked ancestor is a file.
        """
        uri = self.resolver.normalize(uri)
        if self.resolver.is_root(uri):
            return
        if (existing := self.cache.get(uri)) is not None:
            if existing.is_directory:
                return
            raise NotADirectory(uri)

        ancestors = self.resolver.ancestors(uri)
        for ancestor in ancestors if recursive else ancestors[:1]:
            parent = self.cache.get(ancestor)
            if parent is not None and not parent.is_directory:
                raise NotADirectory(ancestor)

        self.cache.put(MetadataRecord.directory(uri, self.clock.now()))
        log.debug("Created directory %s", uri)

    def rmdir(self, uri: str) -> None:
        """Remove an empty directory.

        Raises:
            BucketFSError: when asked to remove the mount root.
            PathNotFoundError: if the directory is not cached.
            NotADirectory: if ``uri`` is a file.
            DirectoryNotEmpty: if anything is cached or stored below it.
        """
        uri = self.resolver.normalize(uri)
        if self.resolver.is_root(uri):
            raise BucketFSError(f"Cannot remove the mount root {uri}.")
        record = self.cache.get(uri)
        if record is None:
            raise PathNotFoundError(uri)
        if not record.is_directory:
            raise NotADirectory(uri)
        if self.cache.has_descendants(uri):
            raise DirectoryNotEmpty(uri)

        marker = self.resolver.directory_key(uri)
        entries = self.client.list(marker, page_size=2).entries
        if any(entry.key != marker for entry in entries):
            raise DirectoryNotEmpty(uri)
        has_marker = any(entry.key == marker for entry in entries)
        if has_marker:
            self.client.delete(marker)

        try:
            self.cache.delete(uri)
        except CacheStoreError as e:
            if has_marker:
                raise PartialFailureError(uri, "Rmdir") from e
            raise
        log.debug("Removed directory %s", uri)

    def touch(self, uri: str) -> None:
        """Create an empty file if ``uri`` does not exist."""
        if not self.exists(uri):
            with self.open(uri, "w"):
                pass

    def chmod(self, uri: str, mode: int) -> None:
        """Accept and ignore a permission change; modes are synthesized."""
        log.debug("Ignoring chmod(%s, %o)", uri, mode)

    def realpath(self, uri: str) -> None:  # pylint: disable=unused-argument
        """Real paths are not supported for remote objects."""
        return None

    def lock(self, uri: str, operation: int) -> bool:  # pylint: disable=unused-argument
        """File locking is not supported; always returns False."""
        return False

    # ------------------------------------------------------------------ #
    # Directories
    # ------------------------------------------------------------------ #

    def opendir(self, uri: str) -> DirectoryListing:
        """Open a listing of the direct children of directory ``uri``.

        Raises:
            PathNotFoundError: if the directory does not exist.
            NotADirectory: if ``uri`` is a file.
        """
        uri = self.resolver.normalize(uri)
        if not self.resolver.is_root(uri):
            record = self._stat(uri)
            if not record.is_directory:
                raise NotADirectory(uri)
        names = sorted(self.resolver.basename(r.uri) for r in self.cache.children(uri))
        return DirectoryListing(uri, names)

    def listdir(self, uri: str) -> list[str]:
        """Return the sorted names of the direct children of ``uri``."""
        with self.opendir(uri) as listing:
            return list(listing)

    def dirname(self, uri: str) -> str:
        """Return the parent URI of ``uri`` (the root is its own parent)."""
        return self.resolver.dirname(uri)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _reject_directory(self, uri: str) -> None:
        if self.resolver.is_root(uri):
            raise IsADirectory(uri)
        record = self.cache.get(uri)
        if record is not None and record.is_directory:
            raise IsADirectory(uri)
