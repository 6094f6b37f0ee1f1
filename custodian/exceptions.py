"""
Custodian Exceptions

Custom exception classes for the wallet authorization core.

Every policy rejection derives from PolicyError and is raised before any
state is written, so a caught PolicyError always means "nothing changed".
"""


class CustodianException(Exception):
    """Base exception for Custodian."""
    pass


class InvalidAddressError(CustodianException):
    """Invalid address format."""
    pass


class ConfigurationError(CustodianException):
    """Configuration error."""
    pass


class TransferFailedError(CustodianException):
    """The asset mover reported a failed value transfer."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  POLICY REJECTIONS
# ══════════════════════════════════════════════════════════════════════

class PolicyError(CustodianException):
    """Base class for synchronous policy rejections."""
    pass


class AlreadyInitializedError(PolicyError):
    """One-time initialization was attempted a second time."""
    pass


class NotInitializedError(PolicyError):
    """Operation requires a prior initialization."""
    pass


class OperationInFlightError(PolicyError):
    """A submission is already waiting for confirmation."""
    pass


class NoOperationPendingError(PolicyError):
    """Confirm or cancel without a pending submission."""
    pass


class CommitmentMismatchError(PolicyError):
    """Token passed to confirm/cancel does not match the pending payload."""
    pass


class InvalidPayloadError(PolicyError):
    """Payload violates the policy's constraints."""
    pass


class InvalidAmountError(PolicyError):
    """Amount is zero, negative or not an integer."""
    pass


class LimitExceededError(PolicyError):
    """Amount exceeds the available daily budget."""
    pass


class UnauthorizedError(PolicyError):
    """Caller does not hold the required role."""
    pass


class UnpricedAssetError(PolicyError):
    """No usable conversion rate exists for the asset."""
    pass
