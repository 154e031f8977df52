"""Clock interface."""

import abc


class Clock(abc.ABC):
    """Source of the current time in whole epoch seconds."""

    @abc.abstractmethod
    def now(self) -> int:
        """Return the current time in epoch seconds."""
