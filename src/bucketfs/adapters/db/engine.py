"""Engine factory for the metadata cache database.

The stream wrapper reads the cache while a reconciliation run builds and
swaps staging tables, so every engine is set up for that on SQLite:

- ``journal_mode=WAL`` lets readers continue while a refresh writes, and
  ``busy_timeout`` makes a writer wait for the swap instead of failing.
- pysqlite's own transaction handling is switched off and ``BEGIN`` is
  emitted whenever SQLAlchemy opens a transaction. Otherwise pysqlite commits
  before each DDL statement and the rename/rename/drop swap would not be
  atomic.
- An in-memory database is pinned to one shared connection (`StaticPool`),
  otherwise every connection would see an empty cache.

PostgreSQL engines are created as-is.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import create_engine, event
from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from .dialects import Backend

if TYPE_CHECKING:
    from sqlalchemy.engine import URL, Connection, Engine

SQLITE_BUSY_TIMEOUT_MS = 5000
SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_MS}",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA temp_store=MEMORY",
)


def _is_memory_database(url: URL) -> bool:
    return url.database in (None, "", ":memory:")


def _tune_sqlite(engine: Engine, in_memory: bool) -> None:
    pragmas = SQLITE_PRAGMAS if in_memory else (*SQLITE_PRAGMAS, "PRAGMA journal_mode=WAL")

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record) -> None:
        cursor = dbapi_conn.cursor()
        for pragma in pragmas:
            cursor.execute(pragma)
        cursor.close()
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN")


def make_engine(url: str | URL, *, echo: bool = False) -> Engine:
    """Create an Engine for the metadata cache at ``url``.

    Args:
        url: SQLAlchemy database URL (SQLite or PostgreSQL).
        echo: Log every SQL statement.

    Raises:
        UnsupportedBackend: for any other database.
        sqlalchemy.exc.ArgumentError: if ``url`` cannot be parsed.
    """
    parsed = make_url(str(url))
    if Backend.from_url(parsed) is not Backend.SQLITE:
        return create_engine(parsed, echo=echo, future=True)

    in_memory = _is_memory_database(parsed)
    options = (
        {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        if in_memory
        else {}
    )
    engine = create_engine(parsed, echo=echo, future=True, **options)
    _tune_sqlite(engine, in_memory)
    return engine
