"""Metadata cache schema.

Defines the ``file_metadata`` table: one row per cached URI. Directories are
rows with ``is_directory`` set; the mount root is never stored.

| Column        | Meaning                                          |
|---------------|--------------------------------------------------|
| uri           | Normalized URI (primary key)                     |
| filesize      | Size in bytes, 0 for directories                 |
| timestamp     | Last modification, epoch seconds                 |
| is_directory  | True for directory records                       |
| mode          | Synthesized mode bits                            |
| owner         | Owner reported by the store                      |
| expires       | Expiry in epoch seconds, NULL when it never expires |

Constraints (enforced here):

| Constraint                 | Purpose                  |
|----------------------------|--------------------------|
| PRIMARY KEY(uri)           | one record per URI       |
| CHECK(filesize >= 0)       | sizes are unsigned       |

Reconciliation builds uniquely named staging copies of this table with
`build_file_metadata_table`, on a private `MetaData`, so their constraint
names never collide with the live table's.
"""

from __future__ import annotations

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
)

from bucketfs.adapters.db.metadata import NAMING_CONVENTION, metadata

__all__ = ["FILE_METADATA_TABLE", "build_file_metadata_table", "file_metadata"]

FILE_METADATA_TABLE = "file_metadata"  # pragma: no mutate
URI_MAX_LENGTH = 2048


def build_file_metadata_table(name: str, meta: MetaData | None = None) -> Table:
    """Return a `Table` with the ``file_metadata`` layout.

    Args:
        name: Table name.
        meta: MetaData to attach to; a fresh one using the shared naming
            convention when omitted.
    """
    meta = meta if meta is not None else MetaData(naming_convention=NAMING_CONVENTION)
    return Table(
        name,
        meta,
        Column(
            "uri",
            String(URI_MAX_LENGTH),
            primary_key=True,
            comment="Normalized URI of the file or directory.",
        ),
        Column(
            "filesize",
            BigInteger,
            nullable=False,
            server_default="0",
            comment="Size in bytes; 0 for directories.",
        ),
        Column(
            "timestamp",
            BigInteger,
            nullable=False,
            server_default="0",
            comment="Last modification time in epoch seconds.",
        ),
        Column(
            "is_directory",
            Boolean,
            nullable=False,
            default=False,
            comment="True for (inferred) directories.",
        ),
        Column(
            "mode",
            Integer,
            nullable=False,
            comment="Synthesized mode bits (file type + 0777).",
        ),
        Column(
            "owner",
            String(255),
            nullable=False,
            server_default="",
            comment="Owner reported by the object store.",
        ),
        Column(
            "expires",
            BigInteger,
            nullable=True,
            comment="Expiry in epoch seconds; NULL never expires.",
        ),
        CheckConstraint("filesize >= 0", name="filesize_non_negative"),
        comment="Metadata cache of the mounted bucket, one row per URI.",
    )


file_metadata = build_file_metadata_table(FILE_METADATA_TABLE, metadata)
