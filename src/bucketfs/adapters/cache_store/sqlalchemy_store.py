"""SQLAlchemy-backed metadata cache store.

This module implements `CacheStore` on top of the ``file_metadata`` table
(see `bucketfs.adapters.cache_store.schema`). Every call runs in its own
transaction on the given Engine, which makes each `upsert`/`delete` batch
atomic without any transaction spanning several calls.

Usage:
    store = SqlAlchemyCacheStore(make_engine("sqlite:///cache.db"))
    store.upsert([MetadataRecord.directory("s3://media/a", 0)])

Reconciliation:
    `begin_refresh` creates a uniquely named staging copy of the live table.
    A whole-mount commit renames live -> old, staging -> live and drops old in
    one transaction (alembic `Operations` emits the DDL); a prefix commit
    deletes the live rows under the prefix and copies the staged rows in, also
    in one transaction. Readers never observe an intermediate state.

Exceptions:
    Every SQLAlchemy error is re-raised as `CacheStoreError`.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy import delete, insert, literal, select
from sqlalchemy.exc import SQLAlchemyError

from bucketfs.adapters.db.dialects import Backend
from bucketfs.domain.errors import CacheStoreError
from bucketfs.domain.metadata import MetadataRecord
from bucketfs.interfaces.cache_store import CacheStore, StagingArea

from .schema import build_file_metadata_table, file_metadata

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.engine import Connection, Engine

log = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"  # pragma: no mutate
DELETE_CHUNK_SIZE = 500


# ============================================================================
#                               Helpers
# ============================================================================


def like_prefix(prefix: str) -> str:
    """Escape ``prefix`` for use as the literal start of a LIKE pattern."""
    escaped = (
        prefix.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return escaped


def to_row(record: MetadataRecord) -> dict[str, Any]:
    """Map a record onto ``file_metadata`` column values."""
    return {
        "uri": record.uri,
        "filesize": record.size,
        "timestamp": record.last_modified,
        "is_directory": record.is_directory,
        "mode": record.mode,
        "owner": record.owner,
        "expires": record.expires,
    }


def from_row(row: Mapping[str, Any]) -> MetadataRecord:
    """Map a ``file_metadata`` row back onto a record."""
    return MetadataRecord(
        uri=row["uri"],
        size=int(row["filesize"]),
        last_modified=int(row["timestamp"]),
        is_directory=bool(row["is_directory"]),
        owner=row["owner"],
        mode=int(row["mode"]),
        expires=None if row["expires"] is None else int(row["expires"]),
    )


@contextmanager
def transaction(engine: Engine, operation: str) -> Iterator[Connection]:
    """Open a transaction, mapping SQLAlchemy failures to `CacheStoreError`."""
    try:
        with engine.begin() as conn:
            yield conn
    except SQLAlchemyError as e:
        log.error("Metadata cache %s failed: %s", operation, e)
        raise CacheStoreError(f"Metadata cache {operation} failed: {e}") from e


# ============================================================================
#                               Cache store
# ============================================================================


class SqlAlchemyCacheStore(CacheStore):
    """`CacheStore` persisted in a SQL table (SQLite or PostgreSQL)."""

    def __init__(self, engine: Engine, table: Table = file_metadata):
        self._engine = engine
        self._table = table
        self._backend = Backend.of(engine)

    def get(self, uri: str) -> MetadataRecord | None:
        stmt = select(self._table).where(self._table.c.uri == uri)
        with transaction(self._engine, "get") as conn:
            row = conn.execute(stmt).mappings().first()
        return None if row is None else from_row(row)

    def upsert(self, records: Iterable[MetadataRecord]) -> None:
        rows = [to_row(r) for r in records]
        if not rows:
            return
        with transaction(self._engine, "upsert") as conn:
            conn.execute(self._backend.upsert(self._table), rows)

    def delete(self, uris: Iterable[str]) -> int:
        targets = list(dict.fromkeys(uris))
        removed = 0
        with transaction(self._engine, "delete") as conn:
            for start in range(0, len(targets), DELETE_CHUNK_SIZE):
                chunk = targets[start : start + DELETE_CHUNK_SIZE]
                result = conn.execute(
                    delete(self._table).where(self._table.c.uri.in_(chunk))
                )
                removed += result.rowcount
        return removed

    def children(self, uri_prefix: str) -> list[MetadataRecord]:
        pattern = like_prefix(uri_prefix)
        stmt = (
            select(self._table)
            .where(
                self._table.c.uri.like(pattern + "%", escape=LIKE_ESCAPE),
                ~self._table.c.uri.like(pattern + "%/%", escape=LIKE_ESCAPE),
            )
            .order_by(self._table.c.uri)
        )
        with transaction(self._engine, "children") as conn:
            rows = conn.execute(stmt).mappings().all()
        return [from_row(row) for row in rows]

    def has_descendants(self, uri_prefix: str) -> bool:
        stmt = (
            select(literal(1))
            .select_from(self._table)
            .where(
                self._table.c.uri.like(like_prefix(uri_prefix) + "%", escape=LIKE_ESCAPE)
            )
            .limit(1)
        )
        with transaction(self._engine, "has_descendants") as conn:
            return conn.execute(stmt).first() is not None

    def directories(self, uri_prefix: str) -> list[str]:
        stmt = (
            select(self._table.c.uri)
            .where(
                self._table.c.is_directory,
                self._table.c.uri.like(like_prefix(uri_prefix) + "%", escape=LIKE_ESCAPE),
            )
            .order_by(self._table.c.uri)
        )
        with transaction(self._engine, "directories") as conn:
            return list(conn.execute(stmt).scalars().all())

    def begin_refresh(self) -> SqlAlchemyStagingArea:
        return SqlAlchemyStagingArea(self._engine, self._table, self._backend)


# ============================================================================
#                               Staging area
# ============================================================================


class SqlAlchemyStagingArea(StagingArea):
    """Staging table for one reconciliation run."""

    def __init__(self, engine: Engine, live: Table, backend: Backend):
        self._engine = engine
        self._live = live
        self._backend = backend
        self._suffix = uuid.uuid4().hex[:12]
        self.table = build_file_metadata_table(f"{live.name}_staging_{self._suffix}")
        with transaction(self._engine, "create staging table") as conn:
            self.table.create(conn)
        self._active = True
        log.debug("Created staging table %s", self.table.name)

    def stage(self, records: Iterable[MetadataRecord]) -> None:
        self._ensure_active()
        rows = [to_row(r) for r in records]
        if not rows:
            return
        with transaction(self._engine, "stage") as conn:
            conn.execute(self._backend.upsert(self.table), rows)

    def swap_in(self) -> None:
        self._ensure_active()
        live_name = self._live.name
        old_name = f"{live_name}_old_{self._suffix}"
        with transaction(self._engine, "swap") as conn:
            ops = Operations(MigrationContext.configure(conn))
            ops.rename_table(live_name, old_name)
            ops.rename_table(self.table.name, live_name)
            ops.drop_table(old_name)
        self._active = False
        log.info("Swapped staging table %s in as %s", self.table.name, live_name)

    def merge_prefix(self, uri_prefix: str) -> None:
        self._ensure_active()
        in_prefix = like_prefix(uri_prefix) + "%"
        columns = [c.name for c in self._live.columns]
        with transaction(self._engine, "merge") as conn:
            conn.execute(
                delete(self._live).where(
                    self._live.c.uri.like(in_prefix, escape=LIKE_ESCAPE)
                )
            )
            conn.execute(
                insert(self._live).from_select(
                    columns,
                    select(*(self.table.c[name] for name in columns)).where(
                        self.table.c.uri.like(in_prefix, escape=LIKE_ESCAPE)
                    ),
                )
            )
            self.table.drop(conn)
        self._active = False
        log.info("Merged staging table %s under %s", self.table.name, uri_prefix)

    def discard(self) -> None:
        if not self._active:
            return
        self._active = False
        with transaction(self._engine, "discard staging table") as conn:
            self.table.drop(conn, checkfirst=True)
        log.debug("Dropped staging table %s", self.table.name)

    def _ensure_active(self) -> None:
        if not self._active:
            raise CacheStoreError(f"Staging table {self.table.name} is no longer active.")
