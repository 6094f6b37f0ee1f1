"""
Custodian Wallet

One wallet instance = one owner, a set of controllers, a whitelist, a spend
limit and a top-up limit. Every public operation runs under the wallet lock,
so concurrent callers are linearized per wallet and no caller ever observes
a half-applied change.

Roles:
  - owner:       transfer, top_up, initialize_* / submit_*
  - controller:  confirm_* / cancel_*, top_up
"""

import functools
import threading
from typing import Any, Dict, List, Optional

from ..clock import Clock, system_clock
from ..constants import (
    BASE_ASSET,
    MAX_TOP_UP,
    MIN_TOP_UP,
    SUBJECT_OWNERSHIP,
    SUBJECT_TOP_UP,
    SUBJECT_TRANSFER,
    ZERO_ADDRESS,
)
from ..crypto.address import normalize_address
from ..exceptions import (
    InvalidAddressError,
    InvalidPayloadError,
    PolicyError,
    TransferFailedError,
)
from ..logger import get_logger
from ..policy.events import AuditAction, AuditLog
from ..policy.limits import SpendLimitPolicy, TopUpLimitPolicy
from ..policy.rolling_limit import check_amount
from ..policy.whitelist import WhitelistPolicy
from ..roles import (
    RoleAuthority,
    Roles,
    require_owner,
    require_owner_or_controller,
)
from .authorizer import Authorization, TransferAuthorizer, UnpricedAssetPolicy
from .collaborators import AssetMover, RateConverter

logger = get_logger(__name__)


def _locked(method):
    """Run a wallet method under the wallet lock and log policy rejections."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            try:
                return method(self, *args, **kwargs)
            except PolicyError as e:
                logger.warning(f"REJECTED {method.__name__}: {type(e).__name__}: {e}")
                raise
    return wrapper


class Wallet:
    """
    Authorization and risk-control core of a self-custodial wallet.

    Args:
        address: The wallet's own address (source of transfers)
        roles: Role authority (owner / controllers)
        mover: Executes approved value transfers
        rates: Converts non-base assets into budget units
        clock: Time source for the rolling limits
        consume_spend_limit: Deduct authorized transfers from the spend budget
        unpriced_policy: Handling of assets without a usable rate
        min_top_up / max_top_up: Bounds for the top-up limit
    """

    def __init__(
        self,
        address: str,
        roles: RoleAuthority,
        mover: AssetMover,
        rates: Optional[RateConverter] = None,
        *,
        clock: Clock = system_clock,
        consume_spend_limit: bool = False,
        unpriced_policy: UnpricedAssetPolicy = UnpricedAssetPolicy.REJECT,
        min_top_up: int = MIN_TOP_UP,
        max_top_up: int = MAX_TOP_UP,
        audit: Optional[AuditLog] = None,
    ):
        self.address = normalize_address(address)
        self.roles = roles
        self.mover = mover
        self.clock = clock
        self.consume_spend_limit = consume_spend_limit
        self.audit = audit or AuditLog(clock)
        self._lock = threading.RLock()

        self.whitelist = WhitelistPolicy(roles, self.audit)
        self.spend_limit = SpendLimitPolicy(roles, self.audit, clock=clock)
        self.top_up_limit = TopUpLimitPolicy(
            roles, self.audit, clock=clock,
            min_top_up=min_top_up, max_top_up=max_top_up,
        )
        self.authorizer = TransferAuthorizer(
            self.whitelist, self.spend_limit, rates, unpriced_policy,
        )

        logger.info(f"Wallet {self.address} created (owner={roles.owner})")

    @classmethod
    def from_config(
        cls,
        config,
        address: str,
        mover: AssetMover,
        rates: Optional[RateConverter] = None,
        *,
        clock: Clock = system_clock,
    ) -> "Wallet":
        """Build a wallet from a CustodianConfig."""
        wallet_cfg = config.wallet
        if not wallet_cfg.owner:
            raise InvalidPayloadError("Configuration does not name an owner")
        roles = Roles(
            wallet_cfg.owner,
            controllers=wallet_cfg.controllers,
            transferable=wallet_cfg.owner_transferable,
        )
        return cls(
            address,
            roles,
            mover,
            rates,
            clock=clock,
            consume_spend_limit=wallet_cfg.consume_spend_limit,
            unpriced_policy=UnpricedAssetPolicy(wallet_cfg.unpriced_asset_policy),
            min_top_up=config.limits.min_top_up,
            max_top_up=config.limits.max_top_up,
        )

    # ══════════════════════════════════════════════════════════════════
    #  QUERIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def owner(self) -> str:
        return self.roles.owner

    def is_whitelisted(self, address: str) -> bool:
        return self.whitelist.is_whitelisted(address)

    @property
    def spend_available(self) -> int:
        return self.spend_limit.available

    @property
    def top_up_available(self) -> int:
        return self.top_up_limit.available

    def authorize(self, destination: str, amount: int, asset: Optional[str] = None) -> Authorization:
        """Dry-run authorization; never touches the budget."""
        with self._lock:
            return self.authorizer.authorize(destination, amount, asset)

    # ══════════════════════════════════════════════════════════════════
    #  VALUE TRANSFERS
    # ══════════════════════════════════════════════════════════════════

    @_locked
    def transfer(
        self,
        caller: str,
        destination: str,
        amount: int,
        asset: Optional[str] = None,
    ) -> Authorization:
        """
        Send *amount* of *asset* (default: the budget unit) to *destination*.

        Raises:
            UnauthorizedError: Caller is not the owner
            InvalidPayloadError: Destination is the zero address
            InvalidAmountError / LimitExceededError / UnpricedAssetError:
                Authorization rejected the transfer
            TransferFailedError: The asset mover failed; budget is restored
        """
        require_owner(self.roles, caller)
        try:
            destination = normalize_address(destination)
        except InvalidAddressError as e:
            raise InvalidPayloadError(str(e)) from e
        if destination == ZERO_ADDRESS:
            raise InvalidPayloadError("Cannot transfer to the zero address")

        decision = self.authorizer.authorize(destination, amount, asset)
        decision.raise_for_rejection()

        consumed = 0
        if self.consume_spend_limit and decision.budget_amount:
            self.spend_limit.consume(decision.budget_amount)
            consumed = decision.budget_amount

        if not self.mover.move_asset(destination, asset, amount):
            if consumed:
                self.spend_limit.restore(consumed)
            raise TransferFailedError(
                f"Transfer of {amount} to {destination} failed in the asset mover"
            )

        self.audit.record(
            SUBJECT_TRANSFER, AuditAction.EXECUTED, normalize_address(caller),
            value={
                "to": destination,
                "asset": asset or BASE_ASSET,
                "amount": str(amount),
                "budgetAmount": None if decision.budget_amount is None else str(decision.budget_amount),
                "whitelisted": decision.whitelisted,
            },
        )
        return decision

    @_locked
    def top_up(self, caller: str, amount: int) -> int:
        """
        Move *amount* budget units to the owner, within the top-up limit.

        Returns:
            Top-up budget left in the current window
        """
        require_owner_or_controller(self.roles, caller)
        check_amount(amount, allow_zero=False)

        remaining = self.top_up_limit.consume(amount)
        if not self.mover.move_asset(self.roles.owner, None, amount):
            self.top_up_limit.restore(amount)
            raise TransferFailedError(f"Top-up of {amount} to the owner failed")

        self.audit.record(
            SUBJECT_TOP_UP, AuditAction.EXECUTED, normalize_address(caller),
            value={"to": self.roles.owner, "amount": str(amount)},
        )
        return remaining

    # ══════════════════════════════════════════════════════════════════
    #  OWNERSHIP
    # ══════════════════════════════════════════════════════════════════

    @_locked
    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        require_owner(self.roles, caller)
        if not isinstance(self.roles, Roles):
            raise TypeError("Ownership transfer needs a Roles registry")
        try:
            new_owner_normalized = normalize_address(new_owner)
        except InvalidAddressError as e:
            raise InvalidPayloadError(str(e)) from e
        if self.whitelist.is_whitelisted(new_owner_normalized):
            raise InvalidPayloadError("New owner is whitelisted; remove it first")
        previous = self.roles.transfer_ownership(caller, new_owner_normalized)
        self.audit.record(
            SUBJECT_OWNERSHIP, AuditAction.TRANSFERRED, previous, value=new_owner_normalized,
        )

    # ══════════════════════════════════════════════════════════════════
    #  WHITELIST
    # ══════════════════════════════════════════════════════════════════

    @_locked
    def initialize_whitelist(self, caller: str, addresses: List[str]):
        return self.whitelist.initialize(caller, addresses)

    @_locked
    def submit_whitelist_addition(self, caller: str, addresses: List[str]) -> str:
        return self.whitelist.submit_addition(caller, addresses)

    @_locked
    def confirm_whitelist_addition(self, caller: str, commitment: str):
        return self.whitelist.confirm_addition(caller, commitment)

    @_locked
    def cancel_whitelist_addition(self, caller: str, commitment: str):
        return self.whitelist.cancel_addition(caller, commitment)

    @_locked
    def submit_whitelist_removal(self, caller: str, addresses: List[str]) -> str:
        return self.whitelist.submit_removal(caller, addresses)

    @_locked
    def confirm_whitelist_removal(self, caller: str, commitment: str):
        return self.whitelist.confirm_removal(caller, commitment)

    @_locked
    def cancel_whitelist_removal(self, caller: str, commitment: str):
        return self.whitelist.cancel_removal(caller, commitment)

    # ══════════════════════════════════════════════════════════════════
    #  SPEND LIMIT
    # ══════════════════════════════════════════════════════════════════

    @_locked
    def initialize_spend_limit(self, caller: str, amount: int) -> int:
        return self.spend_limit.initialize(caller, amount)

    @_locked
    def submit_spend_limit(self, caller: str, amount: int) -> int:
        return self.spend_limit.submit(caller, amount)

    @_locked
    def confirm_spend_limit(self, caller: str, amount: int) -> int:
        return self.spend_limit.confirm(caller, amount)

    @_locked
    def cancel_spend_limit(self, caller: str, amount: int) -> int:
        return self.spend_limit.cancel(caller, amount)

    # ══════════════════════════════════════════════════════════════════
    #  TOP-UP LIMIT
    # ══════════════════════════════════════════════════════════════════

    @_locked
    def initialize_top_up_limit(self, caller: str, amount: int) -> int:
        return self.top_up_limit.initialize(caller, amount)

    @_locked
    def submit_top_up_limit(self, caller: str, amount: int) -> int:
        return self.top_up_limit.submit(caller, amount)

    @_locked
    def confirm_top_up_limit(self, caller: str, amount: int) -> int:
        return self.top_up_limit.confirm(caller, amount)

    @_locked
    def cancel_top_up_limit(self, caller: str, amount: int) -> int:
        return self.top_up_limit.cancel(caller, amount)

    # ══════════════════════════════════════════════════════════════════
    #  SERIALIZATION
    # ══════════════════════════════════════════════════════════════════

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "address": self.address,
                "owner": self.roles.owner,
                "consumeSpendLimit": self.consume_spend_limit,
                "whitelist": self.whitelist.to_dict(),
                "spendLimit": self.spend_limit.to_dict(),
                "topUpLimit": self.top_up_limit.to_dict(),
                "auditEvents": len(self.audit),
            }

    def __repr__(self) -> str:
        return f"<Wallet {self.address} owner={self.roles.owner}>"
