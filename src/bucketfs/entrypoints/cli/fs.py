"""bucketfs fs CLI: filesystem operations on the mounted bucket.

Every command takes mount URIs (``s3://images/a.png``); paths without the
mount's key prefix get it prepended. Metadata comes from the cache whenever
possible, file contents always from the bucket.
"""

from __future__ import annotations

import shutil
import stat as stat_module
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, BinaryIO

import click
import click_extra as clickx

from bucketfs.bootstrap import bootstrap
from bucketfs.domain.errors import BucketFSError

from .helpers import success

if TYPE_CHECKING:
    from bucketfs.service_layer.filesystem import StreamWrapper

COPY_CHUNK_SIZE = 1024 * 1024


@contextmanager
def _filesystem() -> Iterator[StreamWrapper]:
    """Yield the wired filesystem, turning domain errors into CLI errors."""
    try:
        yield bootstrap().filesystem
    except BucketFSError as e:
        raise click.ClickException(str(e)) from e


def _copy(read: Callable[[int], bytes], write: Callable[[bytes], object]) -> None:
    while chunk := read(COPY_CHUNK_SIZE):
        write(chunk)


@click.group(cls=clickx.ExtraGroup)
def fs() -> None:
    """Filesystem commands."""


@fs.command("ls")
@click.argument("uri")
def list_directory(uri: str) -> None:
    """List the entries of a directory."""
    with _filesystem() as filesystem:
        for name in filesystem.listdir(uri):
            click.echo(name)


@fs.command("stat")
@click.argument("uri")
def stat_(uri: str) -> None:
    """Show the metadata of a file or directory."""
    with _filesystem() as filesystem:
        record = filesystem.stat(uri)
    modified = datetime.fromtimestamp(record.last_modified, tz=timezone.utc)
    click.echo(f"URI     : {record.uri}")
    click.echo(f"Type    : {'directory' if record.is_directory else 'file'}")
    click.echo(f"Size    : {record.size}")
    click.echo(f"Modified: {modified.isoformat()}")
    click.echo(f"Owner   : {record.owner}")
    click.echo(f"Mode    : {stat_module.filemode(record.mode)}")


@fs.command()
@click.argument("uri")
def cat(uri: str) -> None:
    """Write the contents of a file to stdout."""
    out = click.get_binary_stream("stdout")
    with _filesystem() as filesystem, filesystem.open(uri, "r") as handle:
        _copy(handle.read, out.write)
    out.flush()


@fs.command()
@click.argument("source", type=click.File("rb"))
@click.argument("uri")
@click.option("--append", "-a", is_flag=True, help="Append to the existing object.")
@click.option("--exclusive", "-x", is_flag=True, help="Fail if the object already exists.")
def put(source: BinaryIO, uri: str, append: bool, exclusive: bool) -> None:
    """Upload a local file (or '-' for stdin) to URI."""
    if append and exclusive:
        raise click.UsageError("--append and --exclusive are mutually exclusive.")
    mode = "a" if append else "x" if exclusive else "w"
    with _filesystem() as filesystem:
        with filesystem.open(uri, mode) as handle:
            shutil.copyfileobj(source, handle)
        success(f"Uploaded {uri}")


@fs.command()
@click.argument("uri")
def rm(uri: str) -> None:
    """Delete a file."""
    with _filesystem() as filesystem:
        filesystem.unlink(uri)
    success(f"Deleted {uri}")


@fs.command()
@click.argument("src")
@click.argument("dst")
def mv(src: str, dst: str) -> None:
    """Rename a file."""
    with _filesystem() as filesystem:
        filesystem.rename(src, dst)
    success(f"Renamed {src} to {dst}")


@fs.command()
@click.argument("uri")
@click.option("--parents", "-p", is_flag=True, help="Check every ancestor, not only the parent.")
def mkdir(uri: str, parents: bool) -> None:
    """Create a directory."""
    with _filesystem() as filesystem:
        filesystem.mkdir(uri, recursive=parents)
    success(f"Created {uri}")


@fs.command()
@click.argument("uri")
def rmdir(uri: str) -> None:
    """Remove an empty directory."""
    with _filesystem() as filesystem:
        filesystem.rmdir(uri)
    success(f"Removed {uri}")


@fs.command()
@click.argument("uri")
def touch(uri: str) -> None:
    """Create an empty file if it does not exist."""
    with _filesystem() as filesystem:
        filesystem.touch(uri)
