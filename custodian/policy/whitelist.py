"""
Whitelist Policy

Set of trusted payees. Transfers to a whitelisted address skip the daily
spend limit, so additions go through two-phase change control with a
content-hash commitment; removals too, sharing the same submission gate so
that additions and removals can never be in flight together.
"""

from typing import Any, Dict, List, Optional, Set, Tuple

from ..constants import (
    SUBJECT_WHITELIST,
    SUBJECT_WHITELIST_ADDITION,
    SUBJECT_WHITELIST_REMOVAL,
    ZERO_ADDRESS,
)
from ..crypto.address import is_valid_address, normalize_address, normalize_addresses
from ..crypto.hashing import address_list_commitment
from ..exceptions import (
    AlreadyInitializedError,
    InvalidAddressError,
    InvalidPayloadError,
)
from ..logger import get_logger
from ..roles import RoleAuthority, require_owner
from .change_control import (
    AddressListCommitment,
    ChangeControl,
    SubmissionGate,
)
from .events import AuditAction, AuditLog

logger = get_logger(__name__)

AddressList = Tuple[str, ...]


class WhitelistPolicy:
    """
    Trusted address set guarded by addition/removal change controls.

    The owner and the zero address can never be whitelisted. Additions and
    removals can only be submitted after the one-time `initialize`.
    """

    def __init__(self, roles: RoleAuthority, audit: AuditLog):
        self._roles = roles
        self._audit = audit
        self._trusted: Set[str] = set()
        self._initialized = False

        gate = SubmissionGate(SUBJECT_WHITELIST)
        commitment = AddressListCommitment()
        self.addition: ChangeControl[AddressList] = ChangeControl(
            SUBJECT_WHITELIST_ADDITION,
            roles=roles,
            audit=audit,
            apply=self._add,
            commitment=commitment,
            validate=self._validate_addition,
            validate_confirm=self._check_addition,
            gate=gate,
        )
        self.removal: ChangeControl[AddressList] = ChangeControl(
            SUBJECT_WHITELIST_REMOVAL,
            roles=roles,
            audit=audit,
            apply=self._remove,
            commitment=commitment,
            validate=self._validate_removal,
            validate_confirm=self._check_removal,
            gate=gate,
        )

    # ── Validation ────────────────────────────────────────────────────

    @staticmethod
    def _normalize(addresses: Any) -> AddressList:
        try:
            return normalize_addresses(addresses)
        except (InvalidAddressError, TypeError) as e:
            raise InvalidPayloadError(f"Invalid address list: {e}") from e

    def _check_addition(self, addresses: AddressList) -> None:
        if not addresses:
            raise InvalidPayloadError("Whitelist addition cannot be empty")
        self._check_members(addresses)

    def _check_members(self, addresses: AddressList) -> None:
        owner = normalize_address(self._roles.owner)
        for address in addresses:
            if address == ZERO_ADDRESS:
                raise InvalidPayloadError("Cannot whitelist the zero address")
            if address == owner:
                raise InvalidPayloadError("Cannot whitelist the owner")

    def _validate_addition(self, addresses: Any) -> AddressList:
        addresses = self._normalize(addresses)
        self._check_addition(addresses)
        return addresses

    def _validate_removal(self, addresses: Any) -> AddressList:
        return self._normalize(addresses)

    @staticmethod
    def _check_removal(addresses: AddressList) -> None:
        if not addresses:
            raise InvalidPayloadError("Whitelist removal cannot be empty")

    # ── Apply ─────────────────────────────────────────────────────────

    def _add(self, addresses: AddressList) -> None:
        for address in addresses:
            self._trusted.add(address)

    def _remove(self, addresses: AddressList) -> None:
        for address in addresses:
            self._trusted.discard(address)

    # ── Queries ───────────────────────────────────────────────────────

    def is_whitelisted(self, address: str) -> bool:
        if not is_valid_address(address):
            return False
        return normalize_address(address) in self._trusted

    @property
    def addresses(self) -> List[str]:
        return sorted(self._trusted)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def pending_addition(self) -> Optional[AddressList]:
        return self.addition.pending

    @property
    def pending_removal(self) -> Optional[AddressList]:
        return self.removal.pending

    @property
    def pending_addition_hash(self) -> Optional[str]:
        return self.addition.pending_commitment

    @property
    def pending_removal_hash(self) -> Optional[str]:
        return self.removal.pending_commitment

    @property
    def submission_in_flight(self) -> bool:
        return self.addition.gate.busy

    @staticmethod
    def calculate_hash(addresses: Any) -> str:
        """Commitment hash for *addresses*, in the given order."""
        return address_list_commitment(WhitelistPolicy._normalize(addresses))

    # ── Operations ────────────────────────────────────────────────────

    def initialize(self, actor: str, addresses: Any) -> AddressList:
        """
        One-time bulk whitelist (owner only, no controller confirmation).

        Opens the addition and removal controls; until then every whitelist
        submission fails with NotInitializedError. The list may be empty.
        """
        require_owner(self._roles, actor)
        actor = normalize_address(actor)
        if self._initialized:
            raise AlreadyInitializedError("Whitelist already initialized")
        addresses = self._normalize(addresses)
        self._check_members(addresses)

        self._add(addresses)
        self.addition.mark_initialized()
        self.removal.mark_initialized()
        self._initialized = True
        self._audit.record(SUBJECT_WHITELIST, AuditAction.INITIALIZED, actor, value=addresses)
        return addresses

    def submit_addition(self, actor: str, addresses: Any) -> str:
        return self.addition.submit(actor, addresses)

    def confirm_addition(self, actor: str, commitment: str) -> AddressList:
        return self.addition.confirm(actor, commitment)

    def cancel_addition(self, actor: str, commitment: str) -> AddressList:
        return self.addition.cancel(actor, commitment)

    def submit_removal(self, actor: str, addresses: Any) -> str:
        return self.removal.submit(actor, addresses)

    def confirm_removal(self, actor: str, commitment: str) -> AddressList:
        return self.removal.confirm(actor, commitment)

    def cancel_removal(self, actor: str, commitment: str) -> AddressList:
        return self.removal.cancel(actor, commitment)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initialized": self._initialized,
            "addresses": self.addresses,
            "addition": self.addition.to_dict(),
            "removal": self.removal.to_dict(),
        }
