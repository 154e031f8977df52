"""Record-layer logic on top of a `CacheStore`.

`MetadataCache` is what the stream wrapper talks to. It adds the two rules the
store itself does not know about:

- **Expiry**: records past their ``expires`` time are misses and are deleted
  lazily, on the lookup that finds them.
- **Ancestor closure**: writing a record also writes a directory record for
  every strict ancestor that is not cached yet, in the same atomic batch, so a
  cached file is never visible without its parent directories.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from bucketfs.domain.metadata import MetadataRecord

if TYPE_CHECKING:
    from bucketfs.domain.uri import UriResolver
    from bucketfs.interfaces.cache_store import CacheStore
    from bucketfs.interfaces.clock import Clock

log = logging.getLogger(__name__)


class MetadataCache:
    """TTL-aware, ancestor-maintaining view over a `CacheStore`."""

    def __init__(self, store: CacheStore, resolver: UriResolver, clock: Clock):
        self.store = store
        self.resolver = resolver
        self.clock = clock

    def get(self, uri: str) -> MetadataRecord | None:
        """Return the live record for ``uri``, or None on a miss or expiry."""
        record = self.store.get(uri)
        if record is None:
            return None
        if record.is_expired(self.clock.now()):
            log.debug("Cached metadata for %s expired; dropping it", uri)
            self.store.delete([uri])
            return None
        return record

    def put(self, record: MetadataRecord) -> None:
        """Write ``record`` and any missing ancestor directories atomically.

        Existing ancestors are left untouched, so writing the same record twice
        leaves the same state as writing it once.
        """
        batch = [record]
        now = self.clock.now()
        for ancestor in self.resolver.ancestors(record.uri):
            existing = self.store.get(ancestor)
            if existing is None:
                batch.append(MetadataRecord.directory(ancestor, now))
            elif not existing.is_directory:
                log.warning(
                    "Ancestor %s of %s is cached as a file; not synthesizing further",
                    ancestor,
                    record.uri,
                )
                break
        self.store.upsert(batch)

    def delete(self, uris: str | Iterable[str]) -> int:
        """Delete one URI or a batch of URIs atomically."""
        targets = [uris] if isinstance(uris, str) else list(uris)
        return self.store.delete(targets)

    def children(self, uri: str) -> list[MetadataRecord]:
        """Return the direct children of directory ``uri``."""
        return self.store.children(self.resolver.child_prefix(uri))

    def has_descendants(self, uri: str) -> bool:
        """Return True if anything is cached below directory ``uri``."""
        return self.store.has_descendants(self.resolver.child_prefix(uri))
