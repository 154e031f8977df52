"""Object store client interface.

The object store is a flat, key-addressed bucket with no directories and only
eventual read-after-write consistency. bucketfs talks to it exclusively through
`ObjectStoreClient`; concrete clients live in `bucketfs.adapters.object_store`.
"""

from __future__ import annotations

import abc
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import BinaryIO

from bucketfs.domain.errors import BucketFSError

# ============================================================================
#                                  Errors
# ============================================================================


class ObjectStoreError(BucketFSError):
    """Raised when the object store reports a network or service failure."""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class ObjectNotFound(ObjectStoreError):
    """Raised when a key does not exist in the store."""

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}", key)


class ObjectStoreAccessDenied(ObjectStoreError):
    """Raised when the credentials are not allowed to perform an operation."""

    def __init__(self, key: str | None) -> None:
        super().__init__(f"Access denied for key: {key}", key)


# ============================================================================
#                               Value types
# ============================================================================


class Visibility(str, Enum):
    """Canned access policies applied to uploaded objects."""

    PUBLIC_READ = "public-read"
    PRIVATE = "private"


@dataclass(frozen=True)
class ObjectInfo:
    """Minimal metadata about a stored object or listed key."""

    key: str
    size: int
    last_modified: datetime
    owner: str | None = None
    is_prefix_marker: bool = False


@dataclass(frozen=True)
class ListPage:
    """One page of a list-by-prefix call."""

    entries: list[ObjectInfo]
    continuation_token: str | None = None


@dataclass
class ObjectBody:
    """A forward-only object body returned by `ObjectStoreClient.get`."""

    stream: BinaryIO
    content_length: int | None = None
    headers: dict[str, str] = field(default_factory=dict)


# ============================================================================
#                                 Interface
# ============================================================================


class ObjectStoreClient(abc.ABC):
    """Capability interface to the backing object store."""

    @abc.abstractmethod
    def get(self, key: str, byte_range: tuple[int, int | None] | None = None) -> ObjectBody:
        """Open an object body for reading.

        Args:
            key: The object key.
            byte_range: Optional inclusive ``(start, end)`` range; ``end`` may be
                None to read to the end of the object.

        Returns:
            ObjectBody: A forward-only stream plus headers.

        Raises:
            ObjectNotFound: if the key does not exist.
            ObjectStoreError: on any other store failure.
        """

    @abc.abstractmethod
    def put(
        self,
        key: str,
        body: BinaryIO,
        *,
        content_type: str,
        visibility: Visibility = Visibility.PUBLIC_READ,
    ) -> None:
        """Upload ``body`` (read from its current position) as the full object."""

    @abc.abstractmethod
    def delete(self, key: str) -> None:
        """Delete an object. Deleting a missing key is not an error."""

    @abc.abstractmethod
    def copy(
        self,
        src_key: str,
        dst_key: str,
        *,
        visibility: Visibility = Visibility.PUBLIC_READ,
    ) -> None:
        """Copy an object to another key, preserving its metadata.

        Raises:
            ObjectNotFound: if ``src_key`` does not exist.
        """

    @abc.abstractmethod
    def head(self, key: str) -> ObjectInfo | None:
        """Return metadata for an exact key, or None if it does not exist.

        ``owner`` may be None: S3 only reports owners in listings.
        """

    @abc.abstractmethod
    def list(
        self,
        prefix: str,
        page_size: int = 1000,
        continuation_token: str | None = None,
    ) -> ListPage:
        """Return one page of keys starting with ``prefix``, in key order."""

    # --- Convenience Methods ---

    def exists(self, key: str) -> bool:
        """Return True if ``key`` exists as an exact object."""
        return self.head(key) is not None

    def iter_pages(self, prefix: str, page_size: int = 1000) -> Iterator[ListPage]:
        """Yield every page of a listing, following continuation tokens.

        Each page is requested only when the previous one has been consumed.
        """
        token: str | None = None
        while True:
            page = self.list(prefix, page_size=page_size, continuation_token=token)
            yield page
            if page.continuation_token is None:
                return
            token = page.continuation_token
