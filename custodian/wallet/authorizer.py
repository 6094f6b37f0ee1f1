"""
Transfer Authorization

Decides whether an outbound transfer may proceed:

  1. zero / malformed amount          -> Reject(INVALID_AMOUNT)
  2. destination whitelisted          -> Accept (daily budget bypassed)
  3. asset has no usable rate         -> Reject(UNPRICED_ASSET) or Accept,
                                         per UnpricedAssetPolicy
  4. converted amount > available     -> Reject(LIMIT_EXCEEDED)
  5. otherwise                        -> Accept

`authorize` is a pure decision. It never deducts from the spend budget.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..exceptions import (
    CustodianException,
    InvalidAmountError,
    LimitExceededError,
    PolicyError,
    UnpricedAssetError,
)
from ..logger import get_logger
from ..policy.limits import SpendLimitPolicy
from ..policy.rolling_limit import check_amount
from ..policy.whitelist import WhitelistPolicy
from .collaborators import RateConverter, is_base_asset

logger = get_logger(__name__)


class RejectReason(str, Enum):
    INVALID_AMOUNT = "InvalidAmount"
    LIMIT_EXCEEDED = "LimitExceeded"
    UNPRICED_ASSET = "UnpricedAsset"


class UnpricedAssetPolicy(str, Enum):
    """What to do with an asset the rate converter cannot price."""
    REJECT = "reject"
    ALLOW = "allow"


_REASON_ERRORS = {
    RejectReason.INVALID_AMOUNT: InvalidAmountError,
    RejectReason.LIMIT_EXCEEDED: LimitExceededError,
    RejectReason.UNPRICED_ASSET: UnpricedAssetError,
}


@dataclass(frozen=True)
class Authorization:
    """
    Outcome of TransferAuthorizer.authorize.

    Attributes:
        accepted: Whether the transfer may proceed
        reason: Why it was rejected (None when accepted)
        budget_amount: Amount in budget units, when a conversion took place
        whitelisted: Destination was trusted
        unprotected: Accepted without a limit check because the asset is unpriced
        message: Human-readable detail
    """
    accepted: bool
    reason: Optional[RejectReason] = None
    budget_amount: Optional[int] = None
    whitelisted: bool = False
    unprotected: bool = False
    message: str = "OK"

    @classmethod
    def accept(cls, **kwargs) -> "Authorization":
        return cls(accepted=True, **kwargs)

    @classmethod
    def reject(cls, reason: RejectReason, message: str, **kwargs) -> "Authorization":
        return cls(accepted=False, reason=reason, message=message, **kwargs)

    def raise_for_rejection(self) -> None:
        """Raise the PolicyError matching the rejection reason, if any."""
        if self.accepted:
            return
        error_cls = _REASON_ERRORS.get(self.reason, PolicyError)
        raise error_cls(self.message)

    def __bool__(self) -> bool:
        return self.accepted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "reason": self.reason.value if self.reason else None,
            "budgetAmount": self.budget_amount,
            "whitelisted": self.whitelisted,
            "unprotected": self.unprotected,
            "message": self.message,
        }


class TransferAuthorizer:
    """Combines whitelist membership with the spend-limit check."""

    def __init__(
        self,
        whitelist: WhitelistPolicy,
        spend_limit: SpendLimitPolicy,
        rates: Optional[RateConverter] = None,
        unpriced_policy: UnpricedAssetPolicy = UnpricedAssetPolicy.REJECT,
    ):
        self.whitelist = whitelist
        self.spend_limit = spend_limit
        self.rates = rates
        self.unpriced_policy = UnpricedAssetPolicy(unpriced_policy)

    def to_budget_units(self, asset: Optional[str], amount: int):
        """
        Returns:
            (budget_amount, priced). budget_amount is meaningless when not priced.
            A converter that raises for an unknown asset id counts as not priced.
        """
        if is_base_asset(asset):
            return amount, True
        if self.rates is None:
            return 0, False
        try:
            budget_amount, available = self.rates.convert(asset, amount)
        except (CustodianException, LookupError, ValueError, ArithmeticError) as e:
            logger.warning(f"Rate lookup for asset {asset!r} failed: {e}")
            return 0, False
        if not available or budget_amount <= 0:
            return 0, False
        return budget_amount, True

    def authorize(
        self,
        destination: str,
        amount: int,
        asset: Optional[str] = None,
    ) -> Authorization:
        try:
            check_amount(amount, allow_zero=False)
        except InvalidAmountError as e:
            return Authorization.reject(RejectReason.INVALID_AMOUNT, str(e))

        if self.whitelist.is_whitelisted(destination):
            return Authorization.accept(whitelisted=True)

        budget_amount, priced = self.to_budget_units(asset, amount)
        if not priced:
            if self.unpriced_policy is UnpricedAssetPolicy.ALLOW:
                logger.warning(
                    f"Asset {asset} has no usable rate; transfer to {destination} "
                    f"passes without a limit check"
                )
                return Authorization.accept(unprotected=True)
            return Authorization.reject(
                RejectReason.UNPRICED_ASSET,
                f"Asset {asset} has no usable conversion rate",
            )

        available = self.spend_limit.available
        if budget_amount > available:
            return Authorization.reject(
                RejectReason.LIMIT_EXCEEDED,
                f"Transfer of {budget_amount} exceeds available spend limit {available}",
                budget_amount=budget_amount,
            )
        return Authorization.accept(budget_amount=budget_amount)
