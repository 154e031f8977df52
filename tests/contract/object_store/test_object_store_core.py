"""Contract tests for `ObjectStoreClient` implementations."""

from __future__ import annotations

import io

import pytest

from bucketfs.interfaces.object_store import ObjectNotFound


def put(client, key: str, data: bytes) -> None:
    client.put(key, io.BytesIO(data), content_type="application/octet-stream")


def test_put_then_get(client):
    put(client, "media/a.txt", b"hello")
    body = client.get("media/a.txt")
    assert body.stream.read() == b"hello"
    assert body.content_length == 5


def test_get_range(client):
    put(client, "k", b"0123456789")
    assert client.get("k", byte_range=(2, 4)).stream.read() == b"234"
    assert client.get("k", byte_range=(7, None)).stream.read() == b"789"


def test_get_missing(client):
    with pytest.raises(ObjectNotFound):
        client.get("missing")


def test_put_reads_from_current_position(client):
    body = io.BytesIO(b"skip-keep")
    body.seek(5)
    client.put("k", body, content_type="text/plain")
    assert client.get("k").stream.read() == b"keep"


def test_head_and_exists(client):
    put(client, "media/dir/", b"")
    put(client, "media/dir/f", b"abc")
    info = client.head("media/dir/f")
    assert info.size == 3
    assert not info.is_prefix_marker
    assert client.head("media/dir/").is_prefix_marker
    assert client.head("media/dir") is None
    assert client.exists("media/dir/f")
    assert not client.exists("media/nope")


def test_delete_is_lenient(client):
    put(client, "k", b"x")
    client.delete("k")
    client.delete("k")
    assert not client.exists("k")


def test_copy(client):
    put(client, "src", b"payload")
    client.copy("src", "dst")
    assert client.get("dst").stream.read() == b"payload"
    assert client.exists("src")


def test_copy_missing_source(client):
    with pytest.raises(ObjectNotFound):
        client.copy("src", "dst")


def test_list_is_ordered_and_paged(client):
    for key in ("p/c", "p/a", "p/b", "q/z", "p/d"):
        put(client, key, b"")

    pages = list(client.iter_pages("p/", page_size=3))

    assert [[e.key for e in page.entries] for page in pages] == [
        ["p/a", "p/b", "p/c"],
        ["p/d"],
    ]
    assert pages[-1].continuation_token is None


def test_list_exact_page_boundary(client):
    for key in ("a", "b"):
        put(client, key, b"")
    page = client.list("", page_size=2)
    assert len(page.entries) == 2
    assert page.continuation_token is None
