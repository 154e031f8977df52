"""SQLAlchemy-backed auxiliary stat cache.

Stores JSON blobs keyed by URI with an absolute expiry in the ``stat_cache``
table. Expired rows are treated as misses and removed when read.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import BigInteger, Column, String, Table, Text, delete, select

from bucketfs.adapters.cache_store.schema import URI_MAX_LENGTH
from bucketfs.adapters.cache_store.sqlalchemy_store import transaction
from bucketfs.adapters.db.dialects import Backend
from bucketfs.adapters.db.metadata import metadata
from bucketfs.interfaces.stat_cache import StatCache

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from bucketfs.interfaces.clock import Clock

__all__ = ["SqlAlchemyStatCache", "stat_cache"]

log = logging.getLogger(__name__)

stat_cache = Table(
    "stat_cache",
    metadata,
    Column(
        "uri",
        String(URI_MAX_LENGTH),
        primary_key=True,
        comment="Cache key (normally a normalized URI).",
    ),
    Column("stat", Text, nullable=False, comment="JSON-serialized value."),
    Column(
        "expires",
        BigInteger,
        nullable=False,
        comment="Expiry in epoch seconds.",
    ),
    comment="Auxiliary cache used by URL-resolution layers.",
)


class SqlAlchemyStatCache(StatCache):
    """`StatCache` persisted in the ``stat_cache`` table."""

    def __init__(self, engine: Engine, clock: Clock):
        self._engine = engine
        self._clock = clock
        self._backend = Backend.of(engine)

    def get(self, uri: str) -> dict[str, Any] | None:
        stmt = select(stat_cache.c.stat, stat_cache.c.expires).where(
            stat_cache.c.uri == uri
        )
        with transaction(self._engine, "stat cache get") as conn:
            row = conn.execute(stmt).first()
        if row is None:
            return None
        if row.expires <= self._clock.now():
            log.debug("Stat cache entry for %s expired", uri)
            self.remove(uri)
            return None
        return json.loads(row.stat)

    def set(self, uri: str, value: dict[str, Any], ttl: int = 0) -> None:
        row = {
            "uri": uri,
            "stat": json.dumps(value, sort_keys=True),
            "expires": self.expiry(self._clock.now(), ttl),
        }
        with transaction(self._engine, "stat cache set") as conn:
            conn.execute(self._backend.upsert(stat_cache), [row])

    def remove(self, uri: str) -> None:
        with transaction(self._engine, "stat cache remove") as conn:
            conn.execute(delete(stat_cache).where(stat_cache.c.uri == uri))
