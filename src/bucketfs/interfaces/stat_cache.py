"""Auxiliary stat cache interface.

A small key -> JSON blob cache with absolute expiry, used by layers that sit
downstream of `stat` (for example URL resolution) to avoid repeated lookups.
"""

from __future__ import annotations

import abc
from typing import Any

ONE_YEAR_SECONDS = 31_557_600


class StatCache(abc.ABC):
    """Key -> JSON-serializable mapping with per-entry expiry."""

    @abc.abstractmethod
    def get(self, uri: str) -> dict[str, Any] | None:
        """Return the cached value, or None when missing or expired."""

    @abc.abstractmethod
    def set(self, uri: str, value: dict[str, Any], ttl: int = 0) -> None:
        """Store ``value`` for ``ttl`` seconds; ``ttl <= 0`` means one year."""

    @abc.abstractmethod
    def remove(self, uri: str) -> None:
        """Remove an entry. Removing a missing entry is not an error."""

    @staticmethod
    def expiry(now: int, ttl: int) -> int:
        """Return the absolute expiry for an entry written at ``now``."""
        return now + (ttl if ttl > 0 else ONE_YEAR_SECONDS)
