"""
Time sources for the policy layer.

Rolling limits read "now" through a clock callable so that windows can be
driven deterministically in simulations and tests.
"""

import time
from typing import Callable

from .constants import SECONDS_PER_DAY

Clock = Callable[[], int]


def system_clock() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


class ManualClock:
    """
    A clock that only moves when told to.

    Example:
        >>> clock = ManualClock(1_700_000_000)
        >>> _ = clock.advance_days(2)
        >>> clock()
        1700172800
    """

    def __init__(self, now: int = 0):
        if now < 0:
            raise ValueError(f"Timestamp cannot be negative: {now}")
        self._now = int(now)

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by *seconds*; returns the new timestamp."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += int(seconds)
        return self._now

    def advance_days(self, days: float) -> int:
        return self.advance(int(days * SECONDS_PER_DAY))

    def set(self, now: int) -> None:
        if now < self._now:
            raise ValueError("ManualClock cannot move backwards")
        self._now = int(now)
