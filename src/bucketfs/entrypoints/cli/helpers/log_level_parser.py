"""The ``-L/--logger-level`` option: per-logger minimum levels.

Accepts repeated ``NAME=LEVEL`` items, or a single string holding several of
them separated by commas or spaces (the form ``BUCKETFS_LOGGER_LEVELS``
arrives in). Levels are case-insensitive standard level names.
"""

import logging
import re

import click

# boto's HTTP stack and the SQL layer are noisy below WARNING.
DEFAULT_LIB_LEVELS = dict.fromkeys(
    ("botocore", "boto3", "urllib3", "sqlalchemy", "alembic"), logging.WARNING
)

_SEPARATORS = re.compile(r"[,\s]+")
_LEVELS = {
    name: getattr(logging, name) for name in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
}


def _level(text: str) -> int:
    try:
        return _LEVELS[text.strip().upper()]
    except KeyError as e:
        raise click.BadParameter(f"Invalid log level: {text}") from e


def parse_log_level(
    ctx: click.Context,  # pylint: disable=unused-argument
    param: click.Parameter | None,  # pylint: disable=unused-argument
    value: str | list[str] | tuple[str, ...],
) -> dict[str, int]:
    """Return `DEFAULT_LIB_LEVELS` updated with the given items, in order.

    Raises:
        click.BadParameter: On an item without ``=`` or an unknown level.
    """
    raw = [value] if isinstance(value, str) else list(value)
    levels = dict(DEFAULT_LIB_LEVELS)
    for item in (part for chunk in raw for part in _SEPARATORS.split(chunk) if part):
        name, sep, level = item.partition("=")
        if not sep:
            raise click.BadParameter(f"Expected NAME=LEVEL, got {item!r}")
        levels[name.strip()] = _level(level)
    return levels
