"""
Custodian TOML Configuration Loader

Loads all sections of custodian.toml with environment variable overrides.
Each section is a dataclass with from_dict + apply_env; CustodianConfig ties
them together with from_file and validate.

Environment variable mapping:
    [wallet] owner               → CUSTODIAN_OWNER
    [wallet] controllers         → CUSTODIAN_CONTROLLERS (comma separated)
    [wallet] owner_transferable  → CUSTODIAN_OWNER_TRANSFERABLE
    [wallet] consume_spend_limit → CUSTODIAN_CONSUME_SPEND_LIMIT
    [wallet] unpriced_asset_policy → CUSTODIAN_UNPRICED_ASSET_POLICY
    [limits] min_top_up          → CUSTODIAN_MIN_TOP_UP
    [limits] max_top_up          → CUSTODIAN_MAX_TOP_UP
    [logging] level              → CUSTODIAN_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..constants import MAX_TOP_UP, MIN_TOP_UP
from ..crypto.address import is_valid_address
from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_UNPRICED_POLICIES = ("reject", "allow")


def _env_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Invalid boolean value: {value!r}")


def _env_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class WalletSectionConfig:
    """[wallet] section."""
    owner: str = ""
    controllers: List[str] = field(default_factory=list)
    owner_transferable: bool = False
    consume_spend_limit: bool = False
    unpriced_asset_policy: str = "reject"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WalletSectionConfig":
        return cls(
            owner=data.get("owner", ""),
            controllers=list(data.get("controllers", [])),
            owner_transferable=data.get("owner_transferable", False),
            consume_spend_limit=data.get("consume_spend_limit", False),
            unpriced_asset_policy=data.get("unpriced_asset_policy", "reject"),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("CUSTODIAN_OWNER"):
            self.owner = v
        if v := os.environ.get("CUSTODIAN_CONTROLLERS"):
            self.controllers = [c.strip() for c in v.split(",") if c.strip()]
        if v := os.environ.get("CUSTODIAN_OWNER_TRANSFERABLE"):
            self.owner_transferable = _env_bool(v)
        if v := os.environ.get("CUSTODIAN_CONSUME_SPEND_LIMIT"):
            self.consume_spend_limit = _env_bool(v)
        if v := os.environ.get("CUSTODIAN_UNPRICED_ASSET_POLICY"):
            self.unpriced_asset_policy = v.strip().lower()

    def validate(self) -> None:
        if self.owner and not is_valid_address(self.owner):
            raise ConfigurationError(f"Invalid owner address: {self.owner!r}")
        for controller in self.controllers:
            if not is_valid_address(controller):
                raise ConfigurationError(f"Invalid controller address: {controller!r}")
        if self.unpriced_asset_policy not in _UNPRICED_POLICIES:
            raise ConfigurationError(
                f"unpriced_asset_policy must be one of {_UNPRICED_POLICIES}, "
                f"got {self.unpriced_asset_policy!r}"
            )


@dataclass
class LimitsSectionConfig:
    """[limits] section. Amounts in the budget's smallest unit."""
    min_top_up: int = MIN_TOP_UP
    max_top_up: int = MAX_TOP_UP

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LimitsSectionConfig":
        return cls(
            min_top_up=data.get("min_top_up", MIN_TOP_UP),
            max_top_up=data.get("max_top_up", MAX_TOP_UP),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("CUSTODIAN_MIN_TOP_UP"):
            self.min_top_up = _env_int("CUSTODIAN_MIN_TOP_UP", v)
        if v := os.environ.get("CUSTODIAN_MAX_TOP_UP"):
            self.max_top_up = _env_int("CUSTODIAN_MAX_TOP_UP", v)

    def validate(self) -> None:
        for name in ("min_top_up", "max_top_up"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if self.min_top_up <= 0:
            raise ConfigurationError("min_top_up must be > 0")
        if self.min_top_up > self.max_top_up:
            raise ConfigurationError(
                f"min_top_up {self.min_top_up} > max_top_up {self.max_top_up}"
            )


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("CUSTODIAN_LOG_LEVEL"):
            self.level = v.strip().upper()

    def validate(self) -> None:
        if self.level not in _LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.level}")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


@dataclass
class CustodianConfig:
    """Complete configuration (all sections)."""
    wallet: WalletSectionConfig = field(default_factory=WalletSectionConfig)
    limits: LimitsSectionConfig = field(default_factory=LimitsSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustodianConfig":
        return cls(
            wallet=WalletSectionConfig.from_dict(data.get("wallet", {})),
            limits=LimitsSectionConfig.from_dict(data.get("limits", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "CustodianConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults plus environment overrides
        are used instead.

        Raises:
            ConfigurationError: On unparsable TOML or invalid values
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
        else:
            try:
                with open(path, "rb") as f:
                    raw = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e
            cfg = cls.from_dict(raw)

        cfg.apply_env()
        cfg.validate()
        return cfg

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.wallet.apply_env()
        self.limits.apply_env()
        self.logging.apply_env()

    def validate(self) -> bool:
        self.wallet.validate()
        self.limits.validate()
        self.logging.validate()
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics, NOT for re-creating TOML)."""
        return {
            "wallet": {
                "owner": self.wallet.owner,
                "controllers": list(self.wallet.controllers),
                "owner_transferable": self.wallet.owner_transferable,
                "consume_spend_limit": self.wallet.consume_spend_limit,
                "unpriced_asset_policy": self.wallet.unpriced_asset_policy,
            },
            "limits": {
                "min_top_up": self.limits.min_top_up,
                "max_top_up": self.limits.max_top_up,
            },
            "logging": {
                "level": self.logging.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> CustodianConfig:
    """
    Load custodian configuration and apply its log level.

    Resolution order:
        1. Explicit *path* argument
        2. CUSTODIAN_CONFIG env var
        3. ./custodian.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("CUSTODIAN_CONFIG", "custodian.toml")

    cfg = CustodianConfig.from_file(path)

    from ..logger import set_log_level
    set_log_level(cfg.logging.level)
    return cfg
