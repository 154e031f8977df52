"""Pytest fixtures for metadata cache store contract tests.

Provided fixtures
-----------------
- **store**: Parametrized backend factory returning a **fresh** `CacheStore`
  per test: `"memory"` (`InMemoryCacheStore`) or `"sqlite"`
  (`SqlAlchemyCacheStore` over a migrated, file-backed SQLite database).
- **tree**: A small directory tree as records, see `TREE`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from bucketfs.adapters.cache_store import InMemoryCacheStore, SqlAlchemyCacheStore
from bucketfs.domain.metadata import MetadataRecord

if TYPE_CHECKING:
    from bucketfs.interfaces.cache_store import CacheStore

TREE = [
    MetadataRecord.directory("s3://media/a", 10),
    MetadataRecord.directory("s3://media/a/b", 10),
    MetadataRecord.file("s3://media/a/b/c.png", 3, 11),
    MetadataRecord.file("s3://media/a/d.txt", 4, 12),
    MetadataRecord.file("s3://media/a_b.txt", 5, 13),
    MetadataRecord.file("s3://media/top.txt", 1, 14),
]


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest) -> CacheStore:
    """Return a fresh cache store for the requested backend."""

    match request.param:
        case "memory":
            return InMemoryCacheStore()
        case "sqlite":
            return SqlAlchemyCacheStore(request.getfixturevalue("sqlite_engine_file"))
        case _:
            raise ValueError(f"unknown store type: {request.param}")


@pytest.fixture
def tree(store: CacheStore) -> list[MetadataRecord]:
    """Load `TREE` into ``store`` and return it."""
    store.upsert(TREE)
    return TREE
