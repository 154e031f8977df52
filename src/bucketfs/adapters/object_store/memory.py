"""In-memory object store backend.

This module provides a dependency-free `ObjectStoreClient` meant for **tests**,
examples, and local development. Objects live entirely in RAM; there is no
persistence across process restarts.

Exports
-------
- MemoryObjectStore: Concrete `ObjectStoreClient` backed by an in-memory dict.
- ForwardOnlyStream: Non-seekable reader returned by `get`, counting the bytes
  handed out so tests can assert how much of a body was fetched.

Key behaviors
-------------
- **Flat keys**: no directory semantics; keys ending in ``/`` are ordinary
  objects that `list` flags as prefix markers.
- **Ordered listing**: `list` returns keys in lexicographic order and pages
  with an opaque continuation token (the last key of the page).
- **Eventual consistency simulation**: with ``visibility_lag=N`` every freshly
  written key stays invisible to `head` and `list` for its next N lookups,
  which is how the store's consistency window shows up to callers.
- **Thread-safety**: all reads and writes happen under an `RLock`.

Typical usage
-------------
    store = MemoryObjectStore()
    store.put("media/a.txt", io.BytesIO(b"hello"), content_type="text/plain")
    body = store.get("media/a.txt")
    body.stream.read()  # b"hello"
"""

from __future__ import annotations

import io
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import BinaryIO

from bucketfs.interfaces.object_store import (
    ListPage,
    ObjectBody,
    ObjectInfo,
    ObjectNotFound,
    ObjectStoreClient,
    Visibility,
)

__all__ = ["ForwardOnlyStream", "MemoryObjectStore", "StoredObject"]

MEMORY_OWNER = "memory"  # pragma: no mutate


class ForwardOnlyStream(io.RawIOBase):
    """A readable, non-seekable view over a bytes payload."""

    def __init__(self, payload: bytes) -> None:
        self._source = io.BytesIO(payload)
        self.bytes_read = 0
        self.read_calls = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[override]
        self.read_calls += 1
        chunk = self._source.read(len(buffer))
        buffer[: len(chunk)] = chunk
        self.bytes_read += len(chunk)
        return len(chunk)


@dataclass(frozen=True)
class StoredObject:
    """An object held by `MemoryObjectStore`."""

    data: bytes
    last_modified: datetime
    content_type: str
    visibility: Visibility


class MemoryObjectStore(ObjectStoreClient):
    """In-memory object store.

    Args:
        visibility_lag: Number of `head`/`list` lookups for which a freshly
            written key is reported as missing.
        owner: Owner reported for every object.
    """

    def __init__(self, visibility_lag: int = 0, owner: str = MEMORY_OWNER) -> None:
        self._objects: dict[str, StoredObject] = {}
        self._pending: dict[str, int] = {}
        self._lock = threading.RLock()
        self._visibility_lag = visibility_lag
        self._owner = owner
        self.opened: list[ForwardOnlyStream] = []

    # --- ObjectStoreClient ---

    def get(
        self, key: str, byte_range: tuple[int, int | None] | None = None
    ) -> ObjectBody:
        with self._lock:
            if (obj := self._objects.get(key)) is None:
                raise ObjectNotFound(key)
        data = obj.data
        if byte_range is not None:
            start, end = byte_range
            data = data[start : None if end is None else end + 1]
        stream = ForwardOnlyStream(data)
        self.opened.append(stream)
        return ObjectBody(
            stream=stream,  # type: ignore[arg-type]
            content_length=len(data),
            headers={"Content-Type": obj.content_type},
        )

    def put(
        self,
        key: str,
        body: BinaryIO,
        *,
        content_type: str,
        visibility: Visibility = Visibility.PUBLIC_READ,
    ) -> None:
        data = body.read()
        with self._lock:
            self._objects[key] = StoredObject(
                data=data,
                last_modified=datetime.now(timezone.utc),
                content_type=content_type,
                visibility=visibility,
            )
            if self._visibility_lag:
                self._pending[key] = self._visibility_lag

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)
            self._pending.pop(key, None)

    def copy(
        self,
        src_key: str,
        dst_key: str,
        *,
        visibility: Visibility = Visibility.PUBLIC_READ,
    ) -> None:
        with self._lock:
            if (obj := self._objects.get(src_key)) is None:
                raise ObjectNotFound(src_key)
            self._objects[dst_key] = StoredObject(
                data=obj.data,
                last_modified=datetime.now(timezone.utc),
                content_type=obj.content_type,
                visibility=visibility,
            )

    def head(self, key: str) -> ObjectInfo | None:
        with self._lock:
            obj = self._objects.get(key)
            if obj is None or not self._visible(key):
                return None
            return self._info(key, obj)

    def list(
        self,
        prefix: str,
        page_size: int = 1000,
        continuation_token: str | None = None,
    ) -> ListPage:
        with self._lock:
            keys = sorted(
                k
                for k in self._objects
                if k.startswith(prefix)
                and (continuation_token is None or k > continuation_token)
                and self._visible(k)
            )
            page_keys = keys[:page_size]
            entries = [self._info(k, self._objects[k]) for k in page_keys]
        token = page_keys[-1] if len(keys) > page_size else None
        return ListPage(entries=entries, continuation_token=token)

    # --- Test helpers ---

    def put_bytes(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> None:
        """Store ``data`` under ``key`` (immediately visible)."""
        with self._lock:
            self._objects[key] = StoredObject(
                data=data,
                last_modified=datetime.now(timezone.utc),
                content_type=content_type,
                visibility=Visibility.PUBLIC_READ,
            )

    def read_bytes(self, key: str) -> bytes:
        """Return the stored payload of ``key``."""
        with self._lock:
            if (obj := self._objects.get(key)) is None:
                raise ObjectNotFound(key)
            return obj.data

    def stored(self, key: str) -> StoredObject | None:
        """Return the stored object (ignoring visibility), or None."""
        with self._lock:
            return self._objects.get(key)

    def keys(self) -> list[str]:
        """Return every stored key, sorted."""
        with self._lock:
            return sorted(self._objects)

    # --- internals ---

    def _visible(self, key: str) -> bool:
        remaining = self._pending.get(key, 0)
        if remaining <= 0:
            return True
        self._pending[key] = remaining - 1
        return False

    def _info(self, key: str, obj: StoredObject) -> ObjectInfo:
        return ObjectInfo(
            key=key,
            size=len(obj.data),
            last_modified=obj.last_modified,
            owner=self._owner,
            is_prefix_marker=key.endswith("/"),
        )
