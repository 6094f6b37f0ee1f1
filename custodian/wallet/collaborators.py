"""
External Collaborators

The core consumes two outside services through narrow interfaces:

  - RateConverter: converts an asset amount into budget units
  - AssetMover:    executes a value transfer

Both ship with an in-memory implementation so a wallet can run end to end
without a chain behind it.
"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

from ..constants import BASE_ASSET
from ..crypto.address import is_valid_address, normalize_address
from ..logger import get_logger

logger = get_logger(__name__)


def is_base_asset(asset: Optional[str]) -> bool:
    """True for the budget unit itself (no conversion required)."""
    if asset is None:
        return True
    return is_valid_address(asset) and normalize_address(asset) == BASE_ASSET


def asset_key(asset: str) -> str:
    """
    Lookup key for an asset id.

    Token addresses are normalized so that checksum and lowercase spellings
    collide; any other id (a ticker such as "DAI") is used verbatim.
    """
    return normalize_address(asset) if is_valid_address(asset) else asset


@runtime_checkable
class RateConverter(Protocol):
    def convert(self, asset: str, amount: int) -> Tuple[int, bool]:
        """
        Returns:
            (budget_amount, available). available=False means the asset has no
            usable rate; the caller decides what that means.
        """
        ...


@runtime_checkable
class AssetMover(Protocol):
    def move_asset(self, destination: str, asset: Optional[str], amount: int) -> bool: ...


class StaticRateTable:
    """
    Fixed conversion rates: budget units per smallest unit of each asset.

    Rates are opaque inputs; the table only multiplies and truncates.
    """

    def __init__(self, rates: Optional[Dict[str, Decimal]] = None):
        self._rates: Dict[str, Decimal] = {}
        for asset, rate in (rates or {}).items():
            self.set_rate(asset, rate)

    def set_rate(self, asset: str, rate: Decimal) -> None:
        rate = Decimal(rate)
        if rate < 0:
            raise ValueError(f"Rate cannot be negative: {rate}")
        self._rates[asset_key(asset)] = rate

    def remove_rate(self, asset: str) -> None:
        self._rates.pop(asset_key(asset), None)

    def convert(self, asset: str, amount: int) -> Tuple[int, bool]:
        rate = self._rates.get(asset_key(asset))
        if rate is None:
            return 0, False
        return int(Decimal(amount) * rate), True


class InMemoryLedger:
    """
    Balance book for the wallet's own holdings.

    `move_asset` debits the wallet and credits the destination; it reports
    False instead of raising when the wallet balance is too low.
    """

    def __init__(self, wallet_address: Optional[str] = None):
        self._balances: Dict[Tuple[str, str], int] = defaultdict(int)
        self.wallet_address = None if wallet_address is None else normalize_address(wallet_address)

    @staticmethod
    def _key(holder: str, asset: Optional[str]) -> Tuple[str, str]:
        asset = BASE_ASSET if asset is None else asset_key(asset)
        return normalize_address(holder), asset

    def credit(self, holder: str, asset: Optional[str], amount: int) -> None:
        if amount < 0:
            raise ValueError("Credit amount must be non-negative")
        self._balances[self._key(holder, asset)] += amount

    def balance_of(self, holder: str, asset: Optional[str] = None) -> int:
        return self._balances.get(self._key(holder, asset), 0)

    def move_asset(self, destination: str, asset: Optional[str], amount: int) -> bool:
        if self.wallet_address is None:
            raise RuntimeError("InMemoryLedger is not bound to a wallet address")
        source = self._key(self.wallet_address, asset)
        if self._balances.get(source, 0) < amount:
            logger.warning(
                f"Ledger move of amount={amount} to {destination} failed: insufficient balance"
            )
            return False
        self._balances[source] -= amount
        self._balances[self._key(destination, asset)] += amount
        return True
