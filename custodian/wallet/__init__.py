"""
Custodian Wallet Package

Provides:
  - Wallet: lock-serialized facade over the policy layer
  - TransferAuthorizer / Authorization: whitelist + spend-limit decision
  - RateConverter / AssetMover: collaborator interfaces
  - StaticRateTable / InMemoryLedger: in-memory collaborators
"""

from .authorizer import (
    Authorization,
    RejectReason,
    TransferAuthorizer,
    UnpricedAssetPolicy,
)
from .collaborators import (
    AssetMover,
    InMemoryLedger,
    RateConverter,
    StaticRateTable,
    is_base_asset,
)
from .wallet import Wallet

__all__ = [
    "Authorization",
    "RejectReason",
    "TransferAuthorizer",
    "UnpricedAssetPolicy",
    "AssetMover",
    "InMemoryLedger",
    "RateConverter",
    "StaticRateTable",
    "is_base_asset",
    "Wallet",
]
