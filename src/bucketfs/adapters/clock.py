"""Clock implementations for bucketfs."""

import time

from bucketfs.interfaces.clock import Clock

# pylint: disable=too-few-public-methods


class SystemClock(Clock):
    """Wall-clock time from `time.time()`, truncated to whole seconds."""

    def now(self) -> int:
        """Return the current epoch time in seconds."""
        return int(time.time())


class FixedClock(Clock):
    """A manually advanced clock.

    Note:
        Not suitable for production use; primarily for testing and demos.
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = start

    def now(self) -> int:
        """Return the frozen time."""
        return self._now

    def advance(self, seconds: int) -> None:
        """Move the clock forward."""
        self._now += seconds
