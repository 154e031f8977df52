"""Metadata cache store adapters: in-memory and SQLAlchemy."""

from .memory import InMemoryCacheStore
from .schema import file_metadata
from .sqlalchemy_store import SqlAlchemyCacheStore

__all__ = ["InMemoryCacheStore", "SqlAlchemyCacheStore", "file_metadata"]
