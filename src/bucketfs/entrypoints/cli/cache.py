"""bucketfs cache CLI: metadata cache reconciliation.

``bucketfs cache refresh`` rebuilds the metadata cache from the bucket
listing, either for the whole mount or (``--prefix``) for the keys under one
prefix. The live cache is only replaced once the whole listing has been
staged; a failed refresh leaves it untouched.
"""

from __future__ import annotations

import click
import click_extra as clickx

from bucketfs.bootstrap import bootstrap
from bucketfs.domain.errors import ConfigurationError, RefreshFailedError

from .helpers import error, success

REFRESH_FAILED_MSG = "Metadata cache refresh failed. Please see the log for details."


@click.group(cls=clickx.ExtraGroup)
def cache() -> None:
    """Metadata cache commands."""


@cache.command()
@click.option(
    "--prefix",
    "prefix",
    default=None,
    envvar="BUCKETFS_REFRESH_PREFIX",
    show_envvar=True,
    help=(
        "Only refresh keys starting with this path (e.g. 'images/'). "
        "Case sensitive. Refreshes the whole mount when omitted."
    ),
)
def refresh(prefix: str | None) -> None:
    """Rebuild the metadata cache from the bucket listing."""
    try:
        container = bootstrap()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    try:
        report = container.refresher.refresh(prefix)
    except RefreshFailedError as e:
        error(REFRESH_FAILED_MSG)
        raise click.ClickException(str(e)) from e

    success(report.message)
    click.echo(
        f"files={report.files} directories={report.directories} pages={report.pages}"
    )
