"""
Spend and Top-Up Limit Policies

Each policy owns one RollingLimit and one scalar ChangeControl. The owner
proposes a new ceiling, a controller confirms it by repeating the exact
value (so a controller cannot confirm an amount the owner never proposed).

TopUpLimitPolicy additionally keeps every initialized, submitted and
confirmed ceiling within [min_top_up, max_top_up].
"""

from typing import Any, Dict, Optional

from ..clock import Clock, system_clock
from ..constants import (
    MAX_TOP_UP,
    MIN_TOP_UP,
    SUBJECT_SPEND_LIMIT,
    SUBJECT_TOP_UP_LIMIT,
)
from ..exceptions import InvalidPayloadError, LimitExceededError
from ..logger import get_logger
from ..roles import RoleAuthority
from .change_control import ChangeControl, ControlState, EqualityCommitment
from .events import AuditLog
from .rolling_limit import RollingLimit, check_amount

logger = get_logger(__name__)


class LimitPolicy:
    """
    Shared behaviour of the two limit policies.

    Subclasses only decide the subject name, the seed of the rolling limit and
    the payload validation.
    """

    subject: str = ""
    #: Whether initialize opens the current window with the full new ceiling
    credit_on_initialize: bool = True

    def __init__(
        self,
        roles: RoleAuthority,
        audit: AuditLog,
        *,
        clock: Clock = system_clock,
        seed: int = 0,
    ):
        self.limit = RollingLimit(seed, clock=clock)
        self.control: ChangeControl[int] = ChangeControl(
            self.subject,
            roles=roles,
            audit=audit,
            apply=self._apply,
            commitment=EqualityCommitment(),
            validate=self._validate,
            validate_confirm=self._validate,
        )

    def _validate(self, amount: Any) -> int:
        return check_amount(amount)

    def _apply(self, amount: int) -> None:
        initializing = self.control.state is ControlState.UNINITIALIZED
        self.limit.modify_limit(amount)
        if initializing and self.credit_on_initialize:
            self.limit.set_available(amount)
        logger.debug(f"{self.subject} set to {amount} (available={self.limit.available})")

    # ── Queries ───────────────────────────────────────────────────────

    @property
    def available(self) -> int:
        return self.limit.available

    @property
    def value(self) -> int:
        """Current daily ceiling."""
        return self.limit.limit

    @property
    def pending(self) -> Optional[int]:
        return self.control.pending

    @property
    def submitted(self) -> bool:
        return self.control.submitted

    @property
    def initialized(self) -> bool:
        return self.control.initialized

    # ── Change control ────────────────────────────────────────────────

    def initialize(self, actor: str, amount: int) -> int:
        return self.control.initialize(actor, amount)

    def submit(self, actor: str, amount: int) -> int:
        return self.control.submit(actor, amount)

    def confirm(self, actor: str, amount: int) -> int:
        return self.control.confirm(actor, amount)

    def cancel(self, actor: str, amount: int) -> int:
        return self.control.cancel(actor, amount)

    # ── Budget ────────────────────────────────────────────────────────

    def consume(self, amount: int) -> int:
        """
        Deduct *amount* from the current window.

        Returns:
            The amount left in the window afterwards

        Raises:
            InvalidAmountError: If amount is zero or malformed
            LimitExceededError: If amount exceeds what is available
        """
        check_amount(amount, allow_zero=False)
        self.limit.refresh()
        available = self.limit.available
        if amount > available:
            raise LimitExceededError(
                f"{self.subject}: amount {amount} exceeds available {available}"
            )
        self.limit.set_available(available - amount)
        return available - amount

    def restore(self, amount: int) -> None:
        """Give back a consumed amount, never beyond the ceiling."""
        check_amount(amount)
        self.limit.set_available(min(self.limit.available + amount, self.limit.limit))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "limit": self.limit.to_dict(),
            "control": self.control.to_dict(),
        }


class SpendLimitPolicy(LimitPolicy):
    """
    Daily budget for transfers to non-whitelisted addresses.

    Seeded at zero, so nothing can have been spent before initialize; the
    first window is opened with the full initial ceiling.
    """

    subject = SUBJECT_SPEND_LIMIT


class TopUpLimitPolicy(LimitPolicy):
    """
    Daily budget for topping up the owner's external balance.

    Seeded at max_top_up so top-ups work before the owner picks a ceiling.
    Initialize only clamps: whatever was already topped up in the current
    window stays spent.
    """

    subject = SUBJECT_TOP_UP_LIMIT
    credit_on_initialize = False

    def __init__(
        self,
        roles: RoleAuthority,
        audit: AuditLog,
        *,
        clock: Clock = system_clock,
        min_top_up: int = MIN_TOP_UP,
        max_top_up: int = MAX_TOP_UP,
    ):
        check_amount(min_top_up)
        check_amount(max_top_up)
        if min_top_up > max_top_up:
            raise ValueError(f"min_top_up {min_top_up} > max_top_up {max_top_up}")
        self.min_top_up = min_top_up
        self.max_top_up = max_top_up
        super().__init__(roles, audit, clock=clock, seed=max_top_up)

    def _validate(self, amount: Any) -> int:
        amount = check_amount(amount)
        if amount < self.min_top_up:
            raise InvalidPayloadError(
                f"Top-up limit {amount} below minimum {self.min_top_up}"
            )
        if amount > self.max_top_up:
            raise InvalidPayloadError(
                f"Top-up limit {amount} above maximum {self.max_top_up}"
            )
        return amount
