"""Pytest fixtures for object store contract tests.

- **client**: Parametrized factory returning a fresh, empty
  `ObjectStoreClient`. Currently supports `"memory"`; the boto3 client is
  covered by unit tests against a mocked boto3 client.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from bucketfs.adapters.object_store import MemoryObjectStore

if TYPE_CHECKING:
    from bucketfs.interfaces.object_store import ObjectStoreClient


@pytest.fixture(params=["memory"])
def client(request: pytest.FixtureRequest) -> ObjectStoreClient:
    """Return a fresh object store client for the requested backend."""

    match request.param:
        case "memory":
            return MemoryObjectStore()
        case _:
            raise ValueError(f"unknown client type: {request.param}")
