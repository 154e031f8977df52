"""Logging setup for the bucketfs CLI.

`setup_logging` installs two handlers on the root logger:

* a Rich console handler on stderr, at the verbosity chosen with ``-v``/``-q``;
* optionally a flight recorder: a `MemoryHandler` that keeps the most recent
  DEBUG records and writes them to a file once something goes wrong.

The root logger itself is left at DEBUG so the flight recorder sees
everything; the console handler does its own filtering. Library loggers
(botocore, sqlalchemy, ...) are tamed through per-logger levels.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
from dataclasses import dataclass, field
from logging.handlers import MemoryHandler
from pathlib import Path

import alembic
import boto3
import sqlalchemy
from rich.console import Console
from rich.logging import RichHandler

# pylint: disable=too-few-public-methods

PROJECT_LOGGER = "bucketfs"
DEFAULT_LEVEL = logging.WARNING
FLIGHT_RECORDER_FORMAT = (
    "[%(asctime)s] [%(process)d:%(threadName)s] %(levelname)s %(name)s:%(lineno)d: %(message)s"
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoggingOptions:
    """Everything the CLI's logging flags decide."""

    verbosity: int = 0
    debug: bool = False
    color: bool = True
    log_path: Path | None = None
    flight_recorder: bool = True
    flight_recorder_capacity: int = 2000
    flush_on_exit: bool = False
    logger_levels: dict[str, int] = field(default_factory=dict)

    @property
    def console_level(self) -> int:
        """``DEFAULT_LEVEL`` shifted one level per ``-v`` (negative for ``-q``)."""
        if self.debug:
            return logging.DEBUG
        level = DEFAULT_LEVEL - 10 * self.verbosity
        return max(logging.DEBUG, min(logging.CRITICAL, level))


class LibraryTagFilter(logging.Filter):
    """Tag records from other packages with ``[package]`` on the console."""

    def filter(self, record: logging.LogRecord) -> bool:
        top = record.name.split(".", 1)[0]
        record.prefix = "" if top == PROJECT_LOGGER else f"[{top}]"
        return True


def console_handler(level: int, *, debug: bool = False, color: bool = True) -> RichHandler:
    """Return a Rich handler on stderr.

    In debug mode records carry timestamps, logger names and source paths;
    otherwise only library records get a short tag.
    """
    handler = RichHandler(
        level=level,
        console=Console(color_system="auto" if color else None, stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=debug,
        enable_link_path=debug,
    )
    if debug:
        handler.setFormatter(logging.Formatter("%(asctime)s %(name)s: %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(prefix)s %(message)s"))
        handler.addFilter(LibraryTagFilter())
    return handler


def flight_recorder(path: Path, capacity: int, *, flush_on_close: bool = False) -> MemoryHandler:
    """Return a buffering handler that dumps to ``path`` on WARNING or above."""
    target = logging.FileHandler(path, mode="w", encoding="utf-8")
    target.setFormatter(logging.Formatter(FLIGHT_RECORDER_FORMAT))
    return MemoryHandler(
        capacity=capacity,
        flushLevel=logging.WARNING,
        target=target,
        flushOnClose=flush_on_close,
    )


def setup_logging(options: LoggingOptions) -> list[logging.Handler]:
    """Configure the root logger from ``options`` and return the new handlers."""
    handlers: list[logging.Handler] = [
        console_handler(options.console_level, debug=options.debug, color=options.color)
    ]
    if options.flight_recorder and options.log_path is not None:
        handlers.append(
            flight_recorder(
                options.log_path,
                options.flight_recorder_capacity,
                flush_on_close=options.flush_on_exit,
            )
        )

    logging.basicConfig(level=logging.DEBUG, handlers=handlers, force=True)
    for name, level in options.logger_levels.items():
        logging.getLogger(name).setLevel(level)

    _log_environment(options, handlers)
    return handlers


def _log_environment(options: LoggingOptions, handlers: list[logging.Handler]) -> None:
    recording = len(handlers) > 1
    logger.info(
        "bucketfs starting: console=%s, flight-recorder=%s",
        logging.getLevelName(options.console_level),
        options.log_path if recording else "off",
    )
    for label, value in (
        ("python", sys.version.split()[0]),
        ("platform", f"{platform.system()} {platform.release()}"),
        ("pid", os.getpid()),
        ("cwd", Path.cwd()),
        ("boto3", boto3.__version__),
        ("sqlalchemy", sqlalchemy.__version__),
        ("alembic", alembic.__version__),
    ):
        logger.debug("%s: %s", label, value)
    if recording:
        logger.debug(
            "flight recorder: capacity=%d, flush on exit=%s",
            options.flight_recorder_capacity,
            options.flush_on_exit,
        )
    logger.debug(
        "logger levels: %s",
        {name: logging.getLevelName(level) for name, level in options.logger_levels.items()}
        or "<none>",
    )
