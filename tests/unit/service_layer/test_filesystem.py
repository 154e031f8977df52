"""Unit tests for `StreamWrapper` over the in-memory bucket and cache.

Fixtures come from `tests.fixtures.mount`: a mount of bucket ``test`` under the
``media`` prefix, a `FixedClock`, and a ``sleeps`` list recording the delays
of the existence-confirmation wait.
"""

from __future__ import annotations

import dataclasses
import io
from unittest.mock import create_autospec

import pytest

from bucketfs.adapters.cache_store import InMemoryCacheStore
from bucketfs.adapters.object_store import MemoryObjectStore
from bucketfs.domain.errors import (
    BucketFSError,
    CacheStoreError,
    DirectoryNotEmpty,
    ExclusiveCreateError,
    IsADirectory,
    ModeConflictError,
    ModeNotSupportedError,
    NotADirectory,
    PartialFailureError,
    PathNotFoundError,
    UploadFailedError,
    UploadNotConfirmedError,
)
from bucketfs.domain.metadata import DEFAULT_OWNER, MetadataRecord
from bucketfs.interfaces.object_store import (
    ObjectStoreClient,
    ObjectStoreError,
    Visibility,
)
from bucketfs.service_layer.filesystem import StreamWrapper
from bucketfs.service_layer.handles import HandleState

# pylint: disable=redefined-outer-name

# ============================================================================
#                               Helpers
# ============================================================================


class FlakyCacheStore(InMemoryCacheStore):
    """In-memory cache store whose writes can be switched off."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_upsert = False
        self.fail_delete = False

    def upsert(self, records):
        if self.fail_upsert:
            raise CacheStoreError("upsert unavailable")
        super().upsert(records)

    def delete(self, uris):
        if self.fail_delete:
            raise CacheStoreError("delete unavailable")
        return super().delete(uris)


class BrokenStore(MemoryObjectStore):
    """In-memory bucket whose mutations can be made to fail."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.fail_put = False
        self.fail_copy = False
        self.fail_delete = False
        self.fail_head = False

    def head(self, key):
        if self.fail_head:
            raise ObjectStoreError("head refused", key)
        return super().head(key)

    def put(self, key, body, *, content_type, visibility=Visibility.PUBLIC_READ):
        if self.fail_put:
            raise ObjectStoreError("put refused", key)
        super().put(key, body, content_type=content_type, visibility=visibility)

    def copy(self, src_key, dst_key, *, visibility=Visibility.PUBLIC_READ):
        if self.fail_copy:
            raise ObjectStoreError("copy refused", src_key)
        super().copy(src_key, dst_key, visibility=visibility)

    def delete(self, key):
        if self.fail_delete:
            raise ObjectStoreError("delete refused", key)
        super().delete(key)


def write(wrapper: StreamWrapper, uri: str, data: bytes, mode: str = "w") -> None:
    with wrapper.open(uri, mode) as handle:
        handle.write(data)


@pytest.fixture
def flaky_cache() -> FlakyCacheStore:
    return FlakyCacheStore()


@pytest.fixture
def broken_store() -> BrokenStore:
    return BrokenStore()


@pytest.fixture
def fragile(mount_config, broken_store, flaky_cache, clock, sleeps) -> StreamWrapper:
    """A wrapper whose bucket and cache can be made to fail."""
    return StreamWrapper(
        mount_config, broken_store, flaky_cache, clock, sleep=sleeps.append
    )


# ============================================================================
#                             Directory scenarios
# ============================================================================


def test_mkdir_and_readdir_under_prefix(wrapper):
    wrapper.mkdir("s3://media/a/b", recursive=True)
    assert wrapper.listdir("s3://media/a") == ["b"]

    write(wrapper, "s3://media/a/b/c.png", b"png")
    assert wrapper.listdir("s3://media/a/b") == ["c.png"]
    assert wrapper.listdir("s3://media/a") == ["b"]


def test_paths_without_prefix_name_the_same_entries(wrapper):
    wrapper.mkdir("s3://a/b", recursive=True)
    assert wrapper.listdir("s3://a") == ["b"]
    assert wrapper.listdir("s3://") == ["a"]
    assert wrapper.is_dir("s3://media/a/b")


def test_rmdir_fails_until_the_file_is_unlinked(wrapper):
    wrapper.mkdir("s3://media/a")
    write(wrapper, "s3://media/a/file.txt", b"x")

    with pytest.raises(DirectoryNotEmpty):
        wrapper.rmdir("s3://media/a")

    wrapper.unlink("s3://media/a/file.txt")
    wrapper.rmdir("s3://media/a")
    assert not wrapper.exists("s3://media/a")


def test_rmdir_sees_uncached_remote_children(wrapper, object_store):
    wrapper.mkdir("s3://a")
    object_store.put_bytes("media/a/remote.txt", b"x")
    with pytest.raises(DirectoryNotEmpty):
        wrapper.rmdir("s3://a")


def test_rmdir_removes_prefix_marker(wrapper, object_store):
    object_store.put_bytes("media/a/", b"")
    assert wrapper.is_dir("s3://a")
    wrapper.rmdir("s3://a")
    assert object_store.keys() == []
    assert not wrapper.exists("s3://a")


def test_rmdir_errors(wrapper):
    write(wrapper, "s3://f.txt", b"x")
    with pytest.raises(NotADirectory):
        wrapper.rmdir("s3://f.txt")
    with pytest.raises(PathNotFoundError):
        wrapper.rmdir("s3://missing")
    with pytest.raises(BucketFSError):
        wrapper.rmdir("s3://")


def test_mkdir_is_a_noop_for_existing_directories(wrapper, cache_store, clock):
    wrapper.mkdir("s3://a")
    first = cache_store.get("s3://media/a")
    clock.advance(100)
    wrapper.mkdir("s3://a")
    assert cache_store.get("s3://media/a") == first


def test_mkdir_over_a_file_fails(wrapper):
    write(wrapper, "s3://f", b"x")
    with pytest.raises(NotADirectory):
        wrapper.mkdir("s3://f")
    with pytest.raises(NotADirectory):
        wrapper.mkdir("s3://f/sub")
    with pytest.raises(NotADirectory):
        wrapper.mkdir("s3://f/x/y", recursive=True)


def test_opendir_cursor(wrapper):
    for name in ("b.txt", "a.txt", "c.txt"):
        write(wrapper, f"s3://dir/{name}", b"")
    with wrapper.opendir("s3://dir") as listing:
        assert listing.readdir() == "a.txt"
        assert list(listing) == ["b.txt", "c.txt"]
        assert listing.readdir() is None
        listing.rewinddir()
        assert listing.readdir() == "a.txt"
    with pytest.raises(ValueError):
        listing.readdir()


def test_opendir_errors(wrapper):
    write(wrapper, "s3://f.txt", b"x")
    with pytest.raises(NotADirectory):
        wrapper.opendir("s3://f.txt")
    with pytest.raises(PathNotFoundError):
        wrapper.opendir("s3://missing")


# ============================================================================
#                                 Open modes
# ============================================================================


def test_read_write_mode_conflicts_without_remote_contact(mount_config, cache_store, clock):
    client = create_autospec(ObjectStoreClient, instance=True)
    wrapper = StreamWrapper(mount_config, client, cache_store, clock)
    with pytest.raises(ModeConflictError):
        wrapper.open("s3://media/a.png", "rw")
    with pytest.raises(ModeNotSupportedError):
        wrapper.open("s3://media/a.png", "q")
    assert client.mock_calls == []


def test_write_uploads_on_close_and_caches_metadata(wrapper, object_store, cache_store):
    handle = wrapper.open("s3://a/b/c.png", "wb")
    handle.write(b"\x89PNG")
    assert object_store.keys() == []
    handle.close()

    stored = object_store.stored("media/a/b/c.png")
    assert stored is not None
    assert stored.data == b"\x89PNG"
    assert stored.content_type == "image/png"
    assert stored.visibility is Visibility.PUBLIC_READ

    record = cache_store.get("s3://media/a/b/c.png")
    assert record is not None and record.size == 4 and record.owner == "memory"
    assert cache_store.get("s3://media/a/b").is_directory
    assert cache_store.get("s3://media/a").is_directory


def test_unknown_extension_uploads_as_octet_stream(wrapper, object_store):
    write(wrapper, "s3://blob", b"x")
    assert object_store.stored("media/blob").content_type == "application/octet-stream"


def test_read_back_with_seek(wrapper):
    write(wrapper, "s3://a.txt", b"hello world")
    with wrapper.open("s3://a.txt", "r") as handle:
        assert handle.state is HandleState.READING
        handle.seek(6)
        assert handle.read() == b"world"
        handle.seek(0)
        assert handle.read(5) == b"hello"


def test_read_missing_file(wrapper):
    with pytest.raises(PathNotFoundError):
        wrapper.open("s3://missing.txt", "r")


def test_open_directory_fails(wrapper):
    wrapper.mkdir("s3://dir")
    for mode in ("r", "w", "a"):
        with pytest.raises(IsADirectory):
            wrapper.open("s3://dir", mode)
    with pytest.raises(IsADirectory):
        wrapper.open("s3://", "r")


def test_exclusive_create(wrapper, object_store):
    write(wrapper, "s3://new.txt", b"first", mode="x")
    assert object_store.read_bytes("media/new.txt") == b"first"
    with pytest.raises(ExclusiveCreateError):
        wrapper.open("s3://new.txt", "x")


def test_exclusive_create_checks_the_bucket(wrapper, object_store):
    object_store.put_bytes("media/remote.txt", b"x")
    with pytest.raises(ExclusiveCreateError):
        wrapper.open("s3://remote.txt", "xb")


def test_exclusive_create_rejects_directories(wrapper, object_store):
    wrapper.mkdir("s3://dir")
    for uri in ("s3://", "s3://media", "s3://dir"):
        with pytest.raises(IsADirectory):
            wrapper.open(uri, "x")
    assert object_store.keys() == []


def test_append_to_existing_and_missing(wrapper, object_store, cache_store):
    object_store.put_bytes("media/log.txt", b"abc")
    with wrapper.open("s3://log.txt", "a") as handle:
        assert handle.state is HandleState.APPENDING
        handle.write(b"def")
    assert object_store.read_bytes("media/log.txt") == b"abcdef"
    assert cache_store.get("s3://media/log.txt").size == 6

    write(wrapper, "s3://fresh.txt", b"xyz", mode="a")
    assert object_store.read_bytes("media/fresh.txt") == b"xyz"


def test_exception_while_writing_uploads_nothing(wrapper, object_store):
    with pytest.raises(RuntimeError):
        with wrapper.open("s3://a.txt", "w") as handle:
            handle.write(b"partial")
            raise RuntimeError("caller failed")
    assert object_store.keys() == []


# ============================================================================
#                           Upload failure handling
# ============================================================================


def test_rejected_upload(fragile, broken_store, flaky_cache):
    broken_store.fail_put = True
    with pytest.raises(UploadFailedError):
        write(fragile, "s3://a.txt", b"x")
    assert flaky_cache.get("s3://media/a.txt") is None


def test_upload_not_confirmed(mount_config, cache_store, clock, sleeps):
    lagging = MemoryObjectStore(visibility_lag=10)
    wrapper = StreamWrapper(mount_config, lagging, cache_store, clock, sleep=sleeps.append)
    with pytest.raises(UploadNotConfirmedError) as excinfo:
        write(wrapper, "s3://a.txt", b"x")
    assert excinfo.value.attempts == mount_config.confirm_max_attempts
    assert lagging.stored("media/a.txt") is not None
    assert cache_store.get("s3://media/a.txt") is None
    assert len(sleeps) == mount_config.confirm_max_attempts - 1


def test_upload_confirmed_after_lag(mount_config, cache_store, clock, sleeps):
    lagging = MemoryObjectStore(visibility_lag=1)
    wrapper = StreamWrapper(mount_config, lagging, cache_store, clock, sleep=sleeps.append)
    write(wrapper, "s3://a.txt", b"x")
    assert cache_store.get("s3://media/a.txt") is not None
    assert len(sleeps) == 1


def test_cache_failure_after_upload_is_partial(fragile, broken_store, flaky_cache):
    flaky_cache.fail_upsert = True
    with pytest.raises(PartialFailureError):
        write(fragile, "s3://a.txt", b"x")
    assert broken_store.read_bytes("media/a.txt") == b"x"


def test_failed_confirmation_is_not_confirmed(fragile, broken_store, flaky_cache):
    broken_store.fail_head = True
    with pytest.raises(UploadNotConfirmedError) as excinfo:
        write(fragile, "s3://a.txt", b"x")
    assert isinstance(excinfo.value.__cause__, ObjectStoreError)
    assert broken_store.read_bytes("media/a.txt") == b"x"
    assert flaky_cache.get("s3://media/a.txt") is None


# ============================================================================
#                                 stat
# ============================================================================


def test_stat_root_is_a_synthesized_directory(wrapper, cache_store):
    record = wrapper.stat("s3://")
    assert record.is_directory and record.uri == "s3://media"
    assert cache_store.get("s3://media") is None


def test_stat_miss_reads_the_bucket_and_caches(wrapper, object_store, cache_store):
    object_store.put_bytes("media/a/b.txt", b"12345")
    record = wrapper.stat("s3://a/b.txt")
    assert record.size == 5 and not record.is_directory
    assert cache_store.get("s3://media/a/b.txt") == record
    assert cache_store.get("s3://media/a").is_directory


def test_stat_infers_directories_from_keys(wrapper, object_store, cache_store):
    object_store.put_bytes("media/photos/2024/x.jpg", b"x")
    record = wrapper.stat("s3://photos")
    assert record.is_directory
    assert cache_store.get("s3://media/photos").is_directory


def test_stat_hit_does_not_contact_the_bucket(mount_config, cache_store, clock):
    client = create_autospec(ObjectStoreClient, instance=True)
    cache_store.upsert([MetadataRecord.file("s3://media/a.txt", 3, 1)])
    wrapper = StreamWrapper(mount_config, client, cache_store, clock)
    assert wrapper.stat("s3://a.txt").size == 3
    assert client.mock_calls == []


def test_stat_missing(wrapper):
    with pytest.raises(PathNotFoundError):
        wrapper.stat("s3://missing")
    assert wrapper.stat("s3://missing", quiet=True) is None
    assert wrapper.stat("gs://wrong-scheme", quiet=True) is None
    assert not wrapper.exists("s3://missing")


def test_exists_is_dir_is_file(wrapper):
    write(wrapper, "s3://d/f.txt", b"x")
    assert wrapper.exists("s3://d/f.txt")
    assert wrapper.is_file("s3://d/f.txt") and not wrapper.is_dir("s3://d/f.txt")
    assert wrapper.is_dir("s3://d") and not wrapper.is_file("s3://d")


def test_cache_ttl_expires_file_records(mount_config, object_store, cache_store, clock, sleeps):
    config = dataclasses.replace(mount_config, cache_ttl=60)
    wrapper = StreamWrapper(config, object_store, cache_store, clock, sleep=sleeps.append)
    write(wrapper, "s3://a.txt", b"abc")
    assert cache_store.get("s3://media/a.txt").expires == clock.now() + 60

    object_store.put_bytes("media/a.txt", b"abcdef")
    assert wrapper.stat("s3://a.txt").size == 3
    clock.advance(60)
    assert wrapper.stat("s3://a.txt").size == 6


def test_ignore_cache_bypasses_reads_without_rewriting(mount_config, object_store, cache_store, clock):
    config = dataclasses.replace(mount_config, ignore_cache=True)
    wrapper = StreamWrapper(config, object_store, cache_store, clock)
    stale = MetadataRecord.file("s3://media/a.txt", 99, 1)
    cache_store.upsert([stale, MetadataRecord.directory("s3://media/dir", 1)])
    object_store.put_bytes("media/a.txt", b"abc")

    assert wrapper.stat("s3://a.txt").size == 3
    assert cache_store.get("s3://media/a.txt") == stale
    assert wrapper.stat("s3://dir").is_directory


# ============================================================================
#                              unlink / rename
# ============================================================================


def test_unlink(wrapper, object_store, cache_store):
    write(wrapper, "s3://a.txt", b"x")
    wrapper.unlink("s3://a.txt")
    assert object_store.keys() == []
    assert cache_store.get("s3://media/a.txt") is None


def test_unlink_directory_fails(wrapper):
    wrapper.mkdir("s3://dir")
    with pytest.raises(IsADirectory):
        wrapper.unlink("s3://dir")


def test_unlink_remote_failure_leaves_cache(fragile, broken_store, flaky_cache):
    write(fragile, "s3://a.txt", b"x")
    broken_store.fail_delete = True
    with pytest.raises(ObjectStoreError):
        fragile.unlink("s3://a.txt")
    assert flaky_cache.get("s3://media/a.txt") is not None


def test_unlink_cache_failure_is_partial(fragile, broken_store, flaky_cache):
    write(fragile, "s3://a.txt", b"x")
    flaky_cache.fail_delete = True
    with pytest.raises(PartialFailureError):
        fragile.unlink("s3://a.txt")
    assert broken_store.keys() == []


def test_rename_moves_object_and_record(wrapper, object_store, cache_store):
    write(wrapper, "s3://src.txt", b"data")
    wrapper.rename("s3://src.txt", "s3://sub/dst.txt")
    assert object_store.keys() == ["media/sub/dst.txt"]
    assert object_store.read_bytes("media/sub/dst.txt") == b"data"
    assert cache_store.get("s3://media/src.txt") is None
    assert cache_store.get("s3://media/sub/dst.txt").size == 4
    assert cache_store.get("s3://media/sub").is_directory


def test_rename_uncached_source(wrapper, object_store, cache_store):
    object_store.put_bytes("media/src.txt", b"data")
    wrapper.rename("s3://src.txt", "s3://dst.txt")
    assert object_store.keys() == ["media/dst.txt"]
    assert cache_store.get("s3://media/dst.txt").size == 4


def test_rename_missing_source(wrapper):
    with pytest.raises(PathNotFoundError):
        wrapper.rename("s3://missing", "s3://dst")


def test_rename_copy_failure_changes_nothing(fragile, broken_store, flaky_cache):
    write(fragile, "s3://src.txt", b"data")
    broken_store.fail_copy = True
    with pytest.raises(ObjectStoreError):
        fragile.rename("s3://src.txt", "s3://dst.txt")
    assert broken_store.keys() == ["media/src.txt"]
    assert flaky_cache.get("s3://media/src.txt") is not None
    assert flaky_cache.get("s3://media/dst.txt") is None


def test_rename_unlink_failure_leaves_duplicate(fragile, broken_store, flaky_cache):
    write(fragile, "s3://src.txt", b"data")
    broken_store.fail_delete = True
    with pytest.raises(ObjectStoreError):
        fragile.rename("s3://src.txt", "s3://dst.txt")
    assert broken_store.keys() == ["media/dst.txt", "media/src.txt"]
    assert flaky_cache.get("s3://media/dst.txt") is not None

    broken_store.fail_delete = False
    fragile.unlink("s3://src.txt")
    assert broken_store.keys() == ["media/dst.txt"]


def test_rename_directory_fails(wrapper):
    wrapper.mkdir("s3://dir")
    with pytest.raises(IsADirectory):
        wrapper.rename("s3://dir", "s3://other")


# ============================================================================
#                                 Misc
# ============================================================================


def test_touch_creates_once(wrapper, object_store):
    wrapper.touch("s3://empty.txt")
    assert object_store.read_bytes("media/empty.txt") == b""
    object_store.put_bytes("media/empty.txt", b"kept")
    wrapper.touch("s3://empty.txt")
    assert object_store.read_bytes("media/empty.txt") == b"kept"


def test_posix_stubs(wrapper):
    assert wrapper.dirname("s3://a/b/c.png") == "s3://media/a/b"
    assert wrapper.dirname("s3://a") == "s3://media"
    assert wrapper.chmod("s3://a", 0o644) is None
    assert wrapper.realpath("s3://a") is None
    assert wrapper.lock("s3://a", 2) is False


def test_read_buffer_uses_content_length(wrapper):
    write(wrapper, "s3://a.bin", bytes(100))
    with wrapper.open("s3://a.bin", "r") as handle:
        assert handle.seek(-10, io.SEEK_END) == 90
        assert len(handle.read()) == 10


def test_rename_onto_directory_fails(wrapper, object_store, cache_store):
    write(wrapper, "s3://a.txt", b"hello")
    wrapper.mkdir("s3://d/sub", recursive=True)

    with pytest.raises(IsADirectory):
        wrapper.rename("s3://a.txt", "s3://d")
    with pytest.raises(IsADirectory):
        wrapper.rename("s3://a.txt", "s3://")

    assert object_store.keys() == ["media/a.txt"]
    assert cache_store.get("s3://media/d").is_directory
    assert cache_store.get("s3://media/d/sub").is_directory


def test_rename_onto_itself_keeps_the_file(wrapper, object_store, cache_store):
    write(wrapper, "s3://a.txt", b"hello")
    wrapper.rename("s3://a.txt", "s3://media/a.txt")
    assert object_store.read_bytes("media/a.txt") == b"hello"
    assert cache_store.get("s3://media/a.txt").size == 5

    with pytest.raises(PathNotFoundError):
        wrapper.rename("s3://missing.txt", "s3://missing.txt")


class OwnerlessHeadStore(MemoryObjectStore):
    """Bucket that, like S3, reports owners only in listings."""

    def head(self, key):
        info = super().head(key)
        return info and dataclasses.replace(info, owner=None)


def test_write_keeps_the_listed_owner(mount_config, cache_store, clock, sleeps):
    wrapper = StreamWrapper(
        mount_config, OwnerlessHeadStore(), cache_store, clock, sleep=sleeps.append
    )
    cache_store.upsert([MetadataRecord.file("s3://media/a.txt", 1, 1, "alice")])

    write(wrapper, "s3://a.txt", b"hello")
    write(wrapper, "s3://b.txt", b"hello")

    assert cache_store.get("s3://media/a.txt").owner == "alice"
    assert cache_store.get("s3://media/a.txt").size == 5
    assert cache_store.get("s3://media/b.txt").owner == DEFAULT_OWNER
