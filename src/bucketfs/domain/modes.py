"""Open modes understood by the stream wrapper."""

from __future__ import annotations

from enum import Enum

from .errors import ModeConflictError, ModeNotSupportedError

_IGNORED_FLAGS = frozenset("bt")
_WRITE_FLAGS = frozenset("wax")


class OpenMode(Enum):
    """Closed set of modes a stream can be opened with."""

    READ = "r"
    WRITE = "w"
    APPEND = "a"
    CREATE_EXCLUSIVE = "x"

    @classmethod
    def parse(cls, mode: str) -> OpenMode:
        """Parse a fopen-style mode string.

        Binary/text flags (``b``, ``t``) are ignored since every stream is binary.

        Args:
            mode: The raw mode string, e.g. ``"rb"`` or ``"w"``.

        Returns:
            The corresponding OpenMode member.

        Raises:
            ModeConflictError: if the mode asks for reading and writing at once
                (``+`` or a read flag combined with a write flag).
            ModeNotSupportedError: for any other mode outside r, w, a and x.
        """
        flags = [flag for flag in mode if flag not in _IGNORED_FLAGS]
        if "+" in flags or ("r" in flags and _WRITE_FLAGS.intersection(flags)):
            raise ModeConflictError(mode)
        if len(flags) != 1:
            raise ModeNotSupportedError(mode)
        try:
            return cls(flags[0])
        except ValueError as e:
            raise ModeNotSupportedError(mode) from e

    @property
    def is_write(self) -> bool:
        """True for modes that upload on close."""
        return self is not OpenMode.READ
