"""Metadata cache store interface.

The cache store is a flat, persistent map from normalized URI to
`MetadataRecord` with prefix queries on top. It holds no business logic:
ancestor-directory synthesis and TTL interpretation live in
`bucketfs.service_layer.metadata_cache`, so any key-value backend with ordered
prefix scans can implement it.

Atomicity:
    - `upsert` and `delete` are atomic per call: the whole batch is applied or
      none of it is.
    - No transaction spans several calls.

Reconciliation writes to a separate staging area obtained from
`CacheStore.begin_refresh`; the live records are only replaced when the
staging area is committed with `StagingArea.swap_in` (whole mount) or
`StagingArea.merge_prefix` (one prefix).
"""

from __future__ import annotations

import abc
from collections.abc import Iterable
from types import TracebackType

from bucketfs.domain.metadata import MetadataRecord


class StagingArea(abc.ABC):
    """Write-only staging area used by a single reconciliation run.

    Use as a context manager: leaving the block without a successful
    `swap_in` or `merge_prefix` discards the staged records.
    """

    @abc.abstractmethod
    def stage(self, records: Iterable[MetadataRecord]) -> None:
        """Add records to the staging area (last write per URI wins)."""

    @abc.abstractmethod
    def swap_in(self) -> None:
        """Atomically replace every live record with the staged records."""

    @abc.abstractmethod
    def merge_prefix(self, uri_prefix: str) -> None:
        """Atomically replace the live records under ``uri_prefix``.

        Live records whose URI starts with ``uri_prefix`` are deleted and the
        staged records are copied in, in one transaction. Records outside the
        prefix are never touched. On failure the live records are unchanged.
        """

    @abc.abstractmethod
    def discard(self) -> None:
        """Drop the staged records. Safe to call more than once."""

    def __enter__(self) -> StagingArea:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.discard()


class CacheStore(abc.ABC):
    """Persistent URI -> MetadataRecord map."""

    @abc.abstractmethod
    def get(self, uri: str) -> MetadataRecord | None:
        """Return the stored record for ``uri`` (expired or not), or None."""

    @abc.abstractmethod
    def upsert(self, records: Iterable[MetadataRecord]) -> None:
        """Insert or replace records keyed by URI, atomically.

        Writing the same records twice leaves the same state as writing them once.
        """

    @abc.abstractmethod
    def delete(self, uris: Iterable[str]) -> int:
        """Delete records by URI, atomically.

        Returns:
            int: The number of records removed.
        """

    @abc.abstractmethod
    def children(self, uri_prefix: str) -> list[MetadataRecord]:
        """Return the direct children of a directory, ordered by URI.

        Args:
            uri_prefix: The directory's child prefix (e.g. ``"s3://media/a/"``).
                Children are records starting with the prefix whose remainder
                contains no further separator.
        """

    @abc.abstractmethod
    def has_descendants(self, uri_prefix: str) -> bool:
        """Return True if any record's URI starts with ``uri_prefix``."""

    @abc.abstractmethod
    def directories(self, uri_prefix: str) -> list[str]:
        """Return URIs of directory records starting with ``uri_prefix``."""

    @abc.abstractmethod
    def begin_refresh(self) -> StagingArea:
        """Create an empty staging area for a reconciliation run."""
