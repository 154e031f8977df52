"""Cache reconciliation: rebuild the metadata cache from the bucket listing.

The refresher lists every object under its scope, page by page, and writes the
resulting records to a staging area. Only once the listing has completed is
the staging area committed:

- whole mount: the staging area replaces the live records (`swap_in`);
- prefix: the live records under the prefix are replaced and everything else
  is left alone (`merge_prefix`), including missing directories above the
  prefix; the next write below them records those.

Directory records are rebuilt from three sources: prefix markers (keys ending
in ``/``), the ancestors of every listed file, and the directories already
cached under the scope (so folders created with ``mkdir`` survive a refresh).

Any failure discards the staging area, leaves the live cache untouched and is
raised as `RefreshFailedError`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bucketfs.domain.errors import BucketFSError, RefreshFailedError
from bucketfs.domain.metadata import MetadataRecord
from bucketfs.domain.uri import SCHEME_DELIMITER, SEPARATOR

if TYPE_CHECKING:
    from bucketfs.domain.uri import UriResolver
    from bucketfs.interfaces.cache_store import CacheStore, StagingArea
    from bucketfs.interfaces.clock import Clock
    from bucketfs.interfaces.object_store import ListPage, ObjectStoreClient

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshReport:
    """Outcome of a successful refresh.

    Attributes:
        scope: The refreshed URI (mount root or prefix).
        files: Number of file records written.
        directories: Number of directory records written.
        pages: Number of listing pages read.
        partial: True for a prefix refresh.
    """

    scope: str
    files: int
    directories: int
    pages: int
    partial: bool = False

    @property
    def message(self) -> str:
        """Operator-facing summary."""
        counts = f"{self.files} files, {self.directories} directories"
        if self.partial:
            return f"Files in the metadata cache with prefix {self.scope} have been refreshed ({counts})."
        return f"Metadata cache refreshed ({counts})."


class CacheRefresher:
    """Rebuilds the metadata cache of one mount from the object store listing.

    Args:
        client: Object store client to list.
        store: Cache store to rebuild.
        resolver: URI resolver of the mount.
        clock: Time source for synthesized directory records.
        page_size: Listing page size.
        ttl: Optional TTL applied to the file records written.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        client: ObjectStoreClient,
        store: CacheStore,
        resolver: UriResolver,
        clock: Clock,
        page_size: int = 1000,
        ttl: int | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.resolver = resolver
        self.clock = clock
        self.page_size = page_size
        self.ttl = ttl

    def refresh(self, prefix: str | None = None) -> RefreshReport:
        """Rebuild the whole mount, or only the records under ``prefix``.

        Args:
            prefix: A path (``"images/"``) or URI (``"s3://images/"``) to limit
                the refresh to. It is matched as a plain string prefix, so
                ``"img"`` also covers ``"img2/a.png"``. None or an empty
                prefix refreshes the whole mount.

        Raises:
            RefreshFailedError: on any store or listing failure.
        """
        scope_uri = self._scope_uri(prefix)
        partial = not self.resolver.is_root(scope_uri)
        if partial:
            list_prefix = self.resolver.to_key(scope_uri)
            scope_prefix = scope_uri
        else:
            scope_uri = self.resolver.root_uri
            list_prefix = self.resolver.root_key_prefix
            scope_prefix = self.resolver.child_prefix(scope_uri)

        log.info("Refreshing metadata cache for %s", scope_uri)
        try:
            with self.store.begin_refresh() as staging:
                report = self._rebuild(staging, scope_uri, scope_prefix, list_prefix, partial)
                if partial:
                    staging.merge_prefix(scope_prefix)
                else:
                    staging.swap_in()
        except BucketFSError as e:
            log.error("Metadata cache refresh of %s failed: %s", scope_uri, e)
            raise RefreshFailedError(scope_uri, e) from e

        log.info(report.message)
        return report

    def _rebuild(  # pylint: disable=too-many-arguments
        self,
        staging: StagingArea,
        scope_uri: str,
        scope_prefix: str,
        list_prefix: str,
        partial: bool,
    ) -> RefreshReport:
        folders = set(self.store.directories(scope_prefix))
        files = 0
        pages = 0
        now = self.clock.now()

        for page in self.client.iter_pages(list_prefix, self.page_size):
            pages += 1
            files += self._stage_page(staging, page, folders, now)

        directories = sorted(
            uri
            for uri in folders
            if uri.startswith(scope_prefix) and not self.resolver.is_root(uri)
        )
        staging.stage(MetadataRecord.directory(uri, now) for uri in directories)
        return RefreshReport(scope_uri, files, len(directories), pages, partial)

    def _stage_page(
        self, staging: StagingArea, page: ListPage, folders: set[str], now: int
    ) -> int:
        records = []
        for entry in page.entries:
            uri = self.resolver.uri_for_key(entry.key)
            if entry.key.endswith(SEPARATOR) or entry.is_prefix_marker:
                folders.add(uri)
                continue
            record = MetadataRecord.file(
                uri, entry.size, int(entry.last_modified.timestamp()), entry.owner
            )
            records.append(record.with_ttl(now, self.ttl))
            folders.update(self.resolver.ancestors(uri))
        staging.stage(records)
        return len(records)

    def _scope_uri(self, prefix: str | None) -> str:
        if not prefix:
            return self.resolver.root_uri
        if SCHEME_DELIMITER not in prefix:
            prefix = f"{self.resolver.scheme}{SCHEME_DELIMITER}{prefix}"
        return self.resolver.normalize(prefix)
