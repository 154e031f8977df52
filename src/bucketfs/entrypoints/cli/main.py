"""The ``bucketfs`` command.

Subcommands:

- ``bucketfs db``: metadata cache database schema and housekeeping.
- ``bucketfs cache``: rebuild the metadata cache from the bucket listing.
- ``bucketfs fs``: file and directory operations on the mounted bucket.

The group's own options only control logging; which bucket is mounted and
where the cache lives come from ``BUCKETFS_*`` environment variables (see
`bucketfs.config`).

Examples
    $ bucketfs db upgrade
    $ bucketfs cache refresh --prefix images/
    $ bucketfs -v fs ls s3://images
"""

import logging
from pathlib import Path

import click
import click_extra as clickx
from platformdirs import user_log_dir

from bucketfs import __version__
from bucketfs.logging import LoggingOptions, setup_logging

from .cache import cache as cache_group
from .db import db as db_group
from .fs import fs as fs_group
from .helpers.log_level_parser import parse_log_level

HELP = """Use an S3 bucket as a filesystem.

    Object metadata is cached in a SQL database so that stat calls and
    directory listings do not hit the bucket. Writes keep the cache current;
    'bucketfs cache refresh' rebuilds it from the bucket listing.
    """


def default_log_path() -> Path:
    return Path(user_log_dir("bucketfs", appauthor=False, ensure_exists=True)) / "latest.log"


@clickx.extra_group(
    version=__version__,
    help=HELP,
    params=[
        clickx.ColorOption(show_envvar=True),
        clickx.TimerOption(show_envvar=True),
        clickx.ExtraVersionOption(),
    ],
)
@click.option("--verbose", "-v", count=True, help="More console output; repeatable.")
@click.option("--quiet", "-q", count=True, help="Less console output; repeatable.")
@click.option("--debug/--no-debug", default=False, help="Log everything with source locations.")
@click.option(
    "--log-path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=default_log_path,
    envvar="BUCKETFS_LOG_PATH",
    show_default="<user log dir>/latest.log",
    show_envvar=True,
    help="File the flight recorder writes to.",
)
@click.option(
    "--flight-recorder/--no-flight-recorder",
    default=True,
    show_envvar=True,
    help=(
        "Keep recent DEBUG records in memory and write them to --log-path "
        "when a warning or error is logged."
    ),
)
@click.option(
    "--flight-recorder-capacity",
    type=click.IntRange(min=1),
    default=2000,
    hidden=True,
    envvar="BUCKETFS_FLIGHT_RECORDER_CAPACITY",
)
@click.option(
    "--force-flush/--no-force-flush",
    default=False,
    show_envvar=True,
    help="Write the flight recorder to --log-path on exit even without warnings.",
)
@click.option(
    "-L",
    "--logger-level",
    "logger_levels",
    multiple=True,
    callback=parse_log_level,
    show_envvar=True,
    help=(
        "Minimum level for a named logger, as NAME=LEVEL. Repeatable, "
        "e.g. -L botocore=DEBUG -L sqlalchemy=INFO."
    ),
)
@clickx.pass_context
def bucketfs(  # pylint: disable=too-many-arguments, too-many-positional-arguments
    ctx: click.Context,
    verbose: int,
    quiet: int,
    debug: bool,
    log_path: Path,
    flight_recorder: bool,
    flight_recorder_capacity: int,
    force_flush: bool,
    logger_levels: dict[str, int],
) -> None:
    """Use an S3 bucket as a filesystem."""
    setup_logging(
        LoggingOptions(
            verbosity=verbose - quiet,
            debug=debug,
            color=ctx.color is not False,
            log_path=log_path,
            flight_recorder=flight_recorder,
            flight_recorder_capacity=flight_recorder_capacity,
            flush_on_exit=force_flush,
            logger_levels=logger_levels,
        )
    )
    ctx.call_on_close(logging.shutdown)


for group in (db_group, cache_group, fs_group):
    bucketfs.add_command(group)
