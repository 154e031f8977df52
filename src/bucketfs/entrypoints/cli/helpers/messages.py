"""Status lines for the bucketfs CLI.

Everything here writes to stderr so stdout stays clean for file contents and
listings (``bucketfs fs cat`` output can be piped). Each kind of message has
an emoji marker, replaced by an ASCII token when the terminal's encoding
cannot represent it.
"""

from typing import NamedTuple

import click


class _Style(NamedTuple):
    emoji: str
    ascii: str
    color: str


_WARN = _Style("⚠️", "[!]", "yellow")  # pragma: no mutate
_SUCCESS = _Style("✅", "[OK]", "green")  # pragma: no mutate
_ERROR = _Style("❌", "[X]", "red")  # pragma: no mutate


def _supports_character(character: str) -> bool:
    """Return True if ``character`` can be encoded on stderr."""
    encoding = getattr(click.get_text_stream("stderr"), "encoding", None) or "ascii"
    try:
        character.encode(encoding)
    except UnicodeEncodeError:
        return False
    return True


def _emit(style: _Style, msg: str) -> None:
    marker = style.emoji if _supports_character(style.emoji) else style.ascii
    click.secho(f"{marker}  {msg}", fg=style.color, bold=True, err=True)


def warn(msg: str) -> None:
    """Print a yellow warning, e.g. ``⚠️  This will upgrade the schema.``"""
    _emit(_WARN, msg)


def success(msg: str) -> None:
    """Print a green confirmation, e.g. ``✅  Metadata cache refreshed.``"""
    _emit(_SUCCESS, msg)


def error(msg: str) -> None:
    _emit(_ERROR, msg)
