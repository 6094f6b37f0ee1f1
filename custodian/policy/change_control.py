"""
Two-Phase Change Control

A protective setting (spend limit, top-up limit, whitelist edits) is never
changed by one key alone. The owner proposes, a controller confirms or
cancels:

    UNINITIALIZED --initialize(owner)--> IDLE
    IDLE          --submit(owner)------> SUBMITTED
    SUBMITTED     --confirm(controller)-> IDLE   (pending applied)
    SUBMITTED     --cancel(controller)--> IDLE   (pending discarded)

Confirm and cancel must present a token matching the pending payload. The
token scheme is pluggable: scalar settings use the value itself, address
lists use a content hash.

Several controls may share a SubmissionGate, in which case at most one of
them can be SUBMITTED at a time.

Every check runs before the first write; a raised PolicyError leaves the
control exactly as it was.
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Any, Callable, Dict, Generic, Optional, Sequence, TypeVar

from ..crypto.address import normalize_address
from ..crypto.hashing import address_list_commitment
from ..exceptions import (
    AlreadyInitializedError,
    CommitmentMismatchError,
    NoOperationPendingError,
    NotInitializedError,
    OperationInFlightError,
)
from ..logger import get_logger
from ..roles import RoleAuthority, require_controller, require_owner
from .events import AuditAction, AuditLog

logger = get_logger(__name__)

T = TypeVar("T")


# ══════════════════════════════════════════════════════════════════════
#  STATES
# ══════════════════════════════════════════════════════════════════════

class ControlState(IntEnum):
    """Lifecycle stage of a ChangeControl."""
    UNINITIALIZED = 0   # Waiting for the one-time initial value
    IDLE = 1            # Ready to accept a submission
    SUBMITTED = 2       # Pending payload waiting for a controller


# ══════════════════════════════════════════════════════════════════════
#  COMMITMENT SCHEMES
# ══════════════════════════════════════════════════════════════════════

class CommitmentScheme(ABC):
    """Turns a payload into a token and checks tokens against the pending payload."""

    #: Whether tokens are digests worth recording next to the payload
    hashed: bool = False

    @abstractmethod
    def commit(self, payload: Any) -> Any:
        """Token the owner hands to the controller out-of-band."""

    @abstractmethod
    def verify(self, token: Any, pending: Any) -> bool:
        """True if *token* commits to *pending*."""


class EqualityCommitment(CommitmentScheme):
    """The token is the value itself; confirm must repeat it exactly."""

    def commit(self, payload: Any) -> Any:
        return payload

    def verify(self, token: Any, pending: Any) -> bool:
        if isinstance(token, bool) != isinstance(pending, bool):
            return False
        return type(token) is type(pending) and token == pending


class AddressListCommitment(CommitmentScheme):
    """keccak256 over the ABI-packed, ordered address list."""

    hashed = True

    def commit(self, payload: Sequence[str]) -> str:
        return address_list_commitment(payload)

    def verify(self, token: Any, pending: Sequence[str]) -> bool:
        if not isinstance(token, str):
            return False
        return token.lower() == self.commit(pending).lower()


# ══════════════════════════════════════════════════════════════════════
#  SUBMISSION GATE
# ══════════════════════════════════════════════════════════════════════

class SubmissionGate:
    """Mutual exclusion between the controls attached to it."""

    def __init__(self, name: str = ""):
        self.name = name
        self._holder: Optional["ChangeControl"] = None

    @property
    def holder(self) -> Optional["ChangeControl"]:
        return self._holder

    @property
    def busy(self) -> bool:
        return self._holder is not None

    def _acquire(self, control: "ChangeControl") -> None:
        self._holder = control

    def _release(self, control: "ChangeControl") -> None:
        if self._holder is control:
            self._holder = None


# ══════════════════════════════════════════════════════════════════════
#  CHANGE CONTROL
# ══════════════════════════════════════════════════════════════════════

class ChangeControl(Generic[T]):
    """
    Propose/confirm/cancel protocol for one setting.

    Args:
        subject: Name used in audit records (e.g. "spend_limit")
        roles: Role authority deciding who is owner / controller
        audit: Audit log receiving one record per state change
        apply: Commits a value into the owning policy's live state
        commitment: Token scheme (default: EqualityCommitment)
        validate: Normalizes and checks a payload before initialize/submit;
            raises a PolicyError to reject
        validate_confirm: Re-checks the pending payload at confirm time
        gate: Shared SubmissionGate; a private one is created if omitted
    """

    def __init__(
        self,
        subject: str,
        *,
        roles: RoleAuthority,
        audit: AuditLog,
        apply: Callable[[T], None],
        commitment: Optional[CommitmentScheme] = None,
        validate: Optional[Callable[[Any], T]] = None,
        validate_confirm: Optional[Callable[[T], None]] = None,
        gate: Optional[SubmissionGate] = None,
    ):
        self.subject = subject
        self._roles = roles
        self._audit = audit
        self._apply = apply
        self._commitment = commitment or EqualityCommitment()
        self._validate = validate
        self._validate_confirm = validate_confirm
        self._gate = gate or SubmissionGate(subject)

        self._pending: Optional[T] = None
        self._submitted = False
        self._initialized = False

    # ── Properties ────────────────────────────────────────────────────

    @property
    def state(self) -> ControlState:
        if self._submitted:
            return ControlState.SUBMITTED
        if self._initialized:
            return ControlState.IDLE
        return ControlState.UNINITIALIZED

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def submitted(self) -> bool:
        return self._submitted

    @property
    def pending(self) -> Optional[T]:
        return self._pending

    @property
    def pending_commitment(self) -> Optional[Any]:
        """Token for the current pending payload, or None when idle."""
        if not self._submitted:
            return None
        return self._commitment.commit(self._pending)

    @property
    def gate(self) -> SubmissionGate:
        return self._gate

    def commit(self, payload: Any) -> Any:
        """Token the given payload would have once validated."""
        return self._commitment.commit(self._prepare(payload))

    # ── Internals ─────────────────────────────────────────────────────

    def _prepare(self, payload: Any) -> T:
        if self._validate is None:
            return payload
        return self._validate(payload)

    def _require_pending(self, token: Any) -> T:
        if not self._submitted:
            raise NoOperationPendingError(f"No {self.subject} submission pending")
        if not self._commitment.verify(token, self._pending):
            raise CommitmentMismatchError(
                f"Token does not match the pending {self.subject} submission"
            )
        return self._pending

    def _recorded_commitment(self, payload: T) -> Optional[str]:
        return self._commitment.commit(payload) if self._commitment.hashed else None

    def _clear(self) -> None:
        self._pending = None
        self._submitted = False
        self._gate._release(self)

    # ── Operations ────────────────────────────────────────────────────

    def initialize(self, actor: str, value: Any) -> T:
        """Apply the one-time initial value (owner only)."""
        require_owner(self._roles, actor)
        actor = normalize_address(actor)
        if self._initialized:
            raise AlreadyInitializedError(f"{self.subject} already initialized")
        value = self._prepare(value)

        self._apply(value)
        self._initialized = True
        self._audit.record(self.subject, AuditAction.INITIALIZED, actor, value=value)
        return value

    def mark_initialized(self) -> None:
        """
        Leave UNINITIALIZED without applying a value.

        For controls whose initial state is set by their owning policy (e.g.
        the whitelist's one-time bulk set covering both addition and removal).
        """
        if self._initialized:
            raise AlreadyInitializedError(f"{self.subject} already initialized")
        self._initialized = True

    def submit(self, actor: str, value: Any) -> Any:
        """
        Propose a new value (owner only).

        Returns:
            The commitment token a controller must present to confirm/cancel
        """
        require_owner(self._roles, actor)
        actor = normalize_address(actor)
        if not self._initialized:
            raise NotInitializedError(f"{self.subject} is not initialized")
        if self._submitted:
            raise OperationInFlightError(f"A {self.subject} submission is already pending")
        holder = self._gate.holder
        if holder is not None and holder is not self:
            raise OperationInFlightError(
                f"Cannot submit {self.subject}: {holder.subject} submission is pending"
            )
        value = self._prepare(value)
        token = self._commitment.commit(value)

        self._pending = value
        self._submitted = True
        self._gate._acquire(self)
        self._audit.record(
            self.subject, AuditAction.SUBMITTED, actor,
            value=value, commitment=self._recorded_commitment(value),
        )
        return token

    def confirm(self, actor: str, token: Any) -> T:
        """Apply the pending value (controller only)."""
        require_controller(self._roles, actor)
        actor = normalize_address(actor)
        pending = self._require_pending(token)
        if self._validate_confirm is not None:
            self._validate_confirm(pending)

        self._apply(pending)
        self._clear()
        self._audit.record(
            self.subject, AuditAction.CONFIRMED, actor,
            value=pending, commitment=self._recorded_commitment(pending),
        )
        return pending

    def cancel(self, actor: str, token: Any) -> T:
        """Discard the pending value (controller only)."""
        require_controller(self._roles, actor)
        actor = normalize_address(actor)
        pending = self._require_pending(token)

        self._clear()
        self._audit.record(
            self.subject, AuditAction.CANCELLED, actor,
            value=pending, commitment=self._recorded_commitment(pending),
        )
        return pending

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "state": self.state.name,
            "initialized": self._initialized,
            "submitted": self._submitted,
            "pending": self._pending,
            "pendingCommitment": self.pending_commitment,
        }

    def __repr__(self) -> str:
        return f"<ChangeControl {self.subject} state={self.state.name}>"
