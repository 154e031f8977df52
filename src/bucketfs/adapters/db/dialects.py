"""Database backends the metadata cache can live in.

The cache tables are written with ``INSERT ... ON CONFLICT (uri) DO UPDATE``,
which SQLAlchemy only exposes through the dialect-specific ``insert``
constructs. `Backend` names the supported databases and hands out the right
upsert for a table.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url

from bucketfs.domain.errors import ConfigurationError

if TYPE_CHECKING:
    from sqlalchemy import Table
    from sqlalchemy.engine import URL, Connection, Engine
    from sqlalchemy.sql.dml import Insert

_ALIASES = {"postgres": "postgresql", "pg": "postgresql"}


class UnsupportedBackend(ConfigurationError):
    """Raised when the cache database is neither SQLite nor PostgreSQL."""


class Backend(str, Enum):
    """Supported cache databases, valued by SQLAlchemy backend name."""

    SQLITE = "sqlite"
    POSTGRES = "postgresql"

    @classmethod
    def from_name(cls, name: str | None) -> Backend:
        """Resolve a backend or driver-qualified name (``"postgresql+psycopg"``).

        Raises:
            UnsupportedBackend: for any other database.
        """
        base = (name or "").strip().lower().split("+", 1)[0]
        try:
            return cls(_ALIASES.get(base, base))
        except ValueError as e:
            raise UnsupportedBackend(
                f"Unsupported metadata cache database: {name!r}"
            ) from e

    @classmethod
    def from_url(cls, url: str | URL) -> Backend:
        """Return the backend of a database URL."""
        return cls.from_name(make_url(str(url)).get_backend_name())

    @classmethod
    def of(cls, bind: Engine | Connection) -> Backend:
        """Return the backend an Engine or Connection talks to."""
        dialect = getattr(bind, "dialect", None)
        if dialect is None:
            raise UnsupportedBackend(f"{type(bind).__name__} has no SQL dialect")
        return cls.from_name(dialect.name)

    def upsert(self, table: Table, key: str = "uri") -> Insert:
        """Return an insert that replaces every non-key column on conflict."""
        module = postgresql if self is Backend.POSTGRES else sqlite
        stmt = module.insert(table)
        updates = {c.name: stmt.excluded[c.name] for c in table.columns if c.name != key}
        return stmt.on_conflict_do_update(index_elements=[table.c[key]], set_=updates)
