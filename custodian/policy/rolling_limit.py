"""
Rolling Daily Limit

A renewable budget: `limit` is the daily ceiling, `available` what is left in
the current window, and `window_anchor` the start of that window.

The read path (`available`) never mutates. Callers that are about to spend
call `refresh()` first, which moves the anchor forward by every whole period
that has elapsed and restores the budget to the ceiling.

    anchor                anchor + 24h                       now
      |---- window 0 ---------|---- window 1 ----|--- ... ---|
      refresh() advances the anchor by ((now - anchor) // 24h) periods
"""

from typing import Any, Dict, Optional

from ..clock import Clock, system_clock
from ..constants import LIMIT_PERIOD_SECONDS
from ..exceptions import InvalidAmountError
from ..logger import get_logger

logger = get_logger(__name__)


def check_amount(amount: Any, *, allow_zero: bool = True) -> int:
    """
    Validate a budget amount.

    Amounts are integers in the budget's smallest unit. Booleans are refused
    even though they are ints.

    Raises:
        InvalidAmountError: If the amount is not an int, is negative, or is
            zero while zero is not allowed
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"Amount must be an integer, got {amount!r}")
    if amount < 0:
        raise InvalidAmountError(f"Amount cannot be negative: {amount}")
    if amount == 0 and not allow_zero:
        raise InvalidAmountError("Amount must be non-zero")
    return amount


class RollingLimit:
    """
    Daily budget with multi-day catch-up.

    Attributes:
        limit: Daily ceiling
        window_anchor: Start of the current window (unix seconds)
    """

    def __init__(
        self,
        limit: int = 0,
        *,
        clock: Clock = system_clock,
        period: int = LIMIT_PERIOD_SECONDS,
        available: Optional[int] = None,
    ):
        check_amount(limit)
        if period <= 0:
            raise ValueError(f"period must be positive: {period}")
        self._limit = limit
        self._available = limit if available is None else check_amount(available)
        if self._available > self._limit:
            raise ValueError(
                f"available {self._available} cannot exceed limit {self._limit}"
            )
        self._clock = clock
        self._period = period
        self._anchor = int(clock())

    # ── Reads ─────────────────────────────────────────────────────────

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_anchor(self) -> int:
        return self._anchor

    @property
    def period(self) -> int:
        return self._period

    def _window_expired(self, now: int) -> bool:
        return now > self._anchor + self._period

    @property
    def available(self) -> int:
        """Amount spendable right now; reports a full budget once the window has lapsed."""
        if self._window_expired(self._clock()):
            return self._limit
        return self._available

    # ── Mutations ─────────────────────────────────────────────────────

    def refresh(self) -> None:
        """
        Roll the window forward if at least one full period has elapsed.

        The anchor moves by whole periods only, so it stays aligned to the
        original window boundaries however long the budget sat idle.
        """
        now = self._clock()
        if not self._window_expired(now):
            return
        periods = (now - self._anchor) // self._period
        self._anchor += periods * self._period
        self._available = self._limit
        logger.debug(
            f"Rolling limit renewed after {periods} period(s): "
            f"anchor={self._anchor} available={self._available}"
        )

    def set_available(self, amount: int) -> None:
        """Overwrite the available amount. The caller keeps it within `limit`."""
        self._available = check_amount(amount)

    def modify_limit(self, new_limit: int) -> None:
        """Change the ceiling, clamping what is left in the current window."""
        check_amount(new_limit)
        self.refresh()
        self._limit = new_limit
        if self._available > new_limit:
            self._available = new_limit

    def to_dict(self) -> Dict[str, Any]:
        return {
            "limit": self._limit,
            "available": self.available,
            "windowAnchor": self._anchor,
            "period": self._period,
        }

    def __repr__(self) -> str:
        return (
            f"<RollingLimit limit={self._limit} available={self._available} "
            f"anchor={self._anchor}>"
        )
