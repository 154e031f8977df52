"""create file_metadata and stat_cache tables

Revision ID: 4c2e9a7d1b30
Revises:
Create Date: 2026-10-18 09:12:41.502311

"""

# pylint: disable=invalid-name

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# pylint: disable=no-member

# revision identifiers, used by Alembic.
revision: str = "4c2e9a7d1b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade schema."""

    op.create_table(
        "file_metadata",
        sa.Column(
            "uri",
            sa.String(length=2048),
            nullable=False,
            comment="Normalized URI of the file or directory.",
        ),
        sa.Column(
            "filesize",
            sa.BigInteger(),
            nullable=False,
            server_default="0",
            comment="Size in bytes; 0 for directories.",
        ),
        sa.Column(
            "timestamp",
            sa.BigInteger(),
            nullable=False,
            server_default="0",
            comment="Last modification time in epoch seconds.",
        ),
        sa.Column(
            "is_directory",
            sa.Boolean(),
            nullable=False,
            comment="True for (inferred) directories.",
        ),
        sa.Column(
            "mode",
            sa.Integer(),
            nullable=False,
            comment="Synthesized mode bits (file type + 0777).",
        ),
        sa.Column(
            "owner",
            sa.String(length=255),
            nullable=False,
            server_default="",
            comment="Owner reported by the object store.",
        ),
        sa.Column(
            "expires",
            sa.BigInteger(),
            nullable=True,
            comment="Expiry in epoch seconds; NULL never expires.",
        ),
        sa.CheckConstraint(
            "filesize >= 0", name=op.f("ck_file_metadata_filesize_non_negative")
        ),
        sa.PrimaryKeyConstraint("uri", name=op.f("pk_file_metadata")),
        comment="Metadata cache of the mounted bucket, one row per URI.",
    )

    op.create_table(
        "stat_cache",
        sa.Column(
            "uri",
            sa.String(length=2048),
            nullable=False,
            comment="Cache key (normally a normalized URI).",
        ),
        sa.Column("stat", sa.Text(), nullable=False, comment="JSON-serialized value."),
        sa.Column(
            "expires",
            sa.BigInteger(),
            nullable=False,
            comment="Expiry in epoch seconds.",
        ),
        sa.PrimaryKeyConstraint("uri", name=op.f("pk_stat_cache")),
        comment="Auxiliary cache used by URL-resolution layers.",
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_table("stat_cache")
    op.drop_table("file_metadata")
