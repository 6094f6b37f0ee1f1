"""
Custodian Unified Configuration

Loads all sections of custodian.toml at startup.
Environment variables override TOML values.
"""

from .loader import (
    CustodianConfig,
    LimitsSectionConfig,
    LoggingSectionConfig,
    WalletSectionConfig,
    load_config,
)

__all__ = [
    "CustodianConfig",
    "LimitsSectionConfig",
    "LoggingSectionConfig",
    "WalletSectionConfig",
    "load_config",
]
