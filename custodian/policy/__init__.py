"""
Custodian Policy Layer

Provides:
  - RollingLimit                                   (rolling_limit.py)
  - ChangeControl / SubmissionGate / commitments   (change_control.py)
  - WhitelistPolicy                                (whitelist.py)
  - SpendLimitPolicy / TopUpLimitPolicy            (limits.py)
  - AuditEvent / AuditLog                          (events.py)
"""

from .rolling_limit import RollingLimit, check_amount
from .events import AuditAction, AuditEvent, AuditLog
from .change_control import (
    AddressListCommitment,
    ChangeControl,
    CommitmentScheme,
    ControlState,
    EqualityCommitment,
    SubmissionGate,
)
from .whitelist import WhitelistPolicy
from .limits import LimitPolicy, SpendLimitPolicy, TopUpLimitPolicy

__all__ = [
    # Rolling limit
    "RollingLimit",
    "check_amount",
    # Audit
    "AuditAction",
    "AuditEvent",
    "AuditLog",
    # Change control
    "AddressListCommitment",
    "ChangeControl",
    "CommitmentScheme",
    "ControlState",
    "EqualityCommitment",
    "SubmissionGate",
    # Policies
    "WhitelistPolicy",
    "LimitPolicy",
    "SpendLimitPolicy",
    "TopUpLimitPolicy",
]
