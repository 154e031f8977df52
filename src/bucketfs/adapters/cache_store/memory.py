"""In-memory metadata cache store.

Non-durable `CacheStore` for tests and single-process use. Records live in a
dict guarded by an `RLock`; every batch is applied under the lock, which makes
`upsert`/`delete` atomic with respect to concurrent callers. The staging area
used by reconciliation is a private dict that is swapped or merged into the
live dict under the same lock.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable

from bucketfs.domain.errors import CacheStoreError
from bucketfs.domain.metadata import MetadataRecord
from bucketfs.domain.uri import SEPARATOR
from bucketfs.interfaces.cache_store import CacheStore, StagingArea

__all__ = ["InMemoryCacheStore"]


class InMemoryCacheStore(CacheStore):
    """`CacheStore` backed by a dict."""

    def __init__(self) -> None:
        self._records: dict[str, MetadataRecord] = {}
        self._lock = threading.RLock()

    def get(self, uri: str) -> MetadataRecord | None:
        with self._lock:
            return self._records.get(uri)

    def upsert(self, records: Iterable[MetadataRecord]) -> None:
        batch = {r.uri: r for r in records}
        with self._lock:
            self._records.update(batch)

    def delete(self, uris: Iterable[str]) -> int:
        targets = set(uris)
        with self._lock:
            present = targets.intersection(self._records)
            for uri in present:
                del self._records[uri]
        return len(present)

    def children(self, uri_prefix: str) -> list[MetadataRecord]:
        with self._lock:
            found = [
                record
                for uri, record in self._records.items()
                if uri.startswith(uri_prefix)
                and SEPARATOR not in uri[len(uri_prefix) :]
            ]
        return sorted(found, key=lambda r: r.uri)

    def has_descendants(self, uri_prefix: str) -> bool:
        with self._lock:
            return any(uri.startswith(uri_prefix) for uri in self._records)

    def directories(self, uri_prefix: str) -> list[str]:
        with self._lock:
            return sorted(
                uri
                for uri, record in self._records.items()
                if record.is_directory and uri.startswith(uri_prefix)
            )

    def begin_refresh(self) -> InMemoryStagingArea:
        return InMemoryStagingArea(self)

    # --- used by the staging area ---

    def _replace_all(self, records: dict[str, MetadataRecord]) -> None:
        with self._lock:
            self._records = dict(records)

    def _replace_prefix(self, uri_prefix: str, records: dict[str, MetadataRecord]) -> None:
        with self._lock:
            kept = {
                uri: record
                for uri, record in self._records.items()
                if not uri.startswith(uri_prefix)
            }
            kept.update(
                (uri, record)
                for uri, record in records.items()
                if uri.startswith(uri_prefix)
            )
            self._records = kept


class InMemoryStagingArea(StagingArea):
    """Staging dict for one reconciliation run against `InMemoryCacheStore`."""

    def __init__(self, store: InMemoryCacheStore) -> None:
        self._store = store
        self._staged: dict[str, MetadataRecord] = {}
        self._active = True

    @property
    def staged(self) -> dict[str, MetadataRecord]:
        """Records staged so far (read-only view for tests)."""
        return dict(self._staged)

    def stage(self, records: Iterable[MetadataRecord]) -> None:
        self._ensure_active()
        self._staged.update((r.uri, r) for r in records)

    def swap_in(self) -> None:
        self._ensure_active()
        self._store._replace_all(self._staged)  # pylint: disable=protected-access
        self._active = False

    def merge_prefix(self, uri_prefix: str) -> None:
        self._ensure_active()
        self._store._replace_prefix(uri_prefix, self._staged)  # pylint: disable=protected-access
        self._active = False

    def discard(self) -> None:
        self._active = False
        self._staged.clear()

    def _ensure_active(self) -> None:
        if not self._active:
            raise CacheStoreError("Staging area is no longer active.")
