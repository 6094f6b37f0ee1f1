"""
Role Authority

The policy layer never keeps global role state. It is handed a RoleAuthority
and asks it two questions: is this caller the owner, is this caller a
controller. `Roles` is the in-process implementation used by the wallet;
anything exposing the same three members (e.g. a fake in tests, or an adapter
over an on-chain controller registry) can be passed instead.
"""

from typing import Iterable, List, Optional, Protocol, Set, runtime_checkable

from .constants import ZERO_ADDRESS
from .crypto.address import is_valid_address, normalize_address
from .exceptions import InvalidPayloadError, UnauthorizedError
from .logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class RoleAuthority(Protocol):
    """Capability check consumed by ChangeControl and the wallet."""

    @property
    def owner(self) -> str: ...

    def is_owner(self, address: str) -> bool: ...

    def is_controller(self, address: str) -> bool: ...


class Roles:
    """
    Owner + controller registry.

    Attributes:
        transferable: Whether ownership may be handed to another address
    """

    def __init__(
        self,
        owner: str,
        controllers: Optional[Iterable[str]] = None,
        transferable: bool = False,
    ):
        owner = normalize_address(owner)
        if owner == ZERO_ADDRESS:
            raise InvalidPayloadError("Owner cannot be the zero address")
        self._owner = owner
        self._controllers: Set[str] = set()
        self.transferable = transferable
        for controller in controllers or ():
            self.add_controller(controller)

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def controllers(self) -> List[str]:
        return sorted(self._controllers)

    def is_owner(self, address: str) -> bool:
        return is_valid_address(address) and normalize_address(address) == self._owner

    def is_controller(self, address: str) -> bool:
        return is_valid_address(address) and normalize_address(address) in self._controllers

    def add_controller(self, address: str) -> None:
        address = normalize_address(address)
        if address == ZERO_ADDRESS:
            raise InvalidPayloadError("Controller cannot be the zero address")
        self._controllers.add(address)

    def remove_controller(self, address: str) -> None:
        self._controllers.discard(normalize_address(address))

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        """
        Hand ownership to *new_owner*. Owner only, and only if transferable.

        Returns:
            The previous owner
        """
        if not self.is_owner(caller):
            raise UnauthorizedError(f"{caller} is not the owner")
        if not self.transferable:
            raise UnauthorizedError("Ownership is not transferable")
        new_owner = normalize_address(new_owner)
        if new_owner == ZERO_ADDRESS:
            raise InvalidPayloadError("New owner cannot be the zero address")

        previous = self._owner
        self._owner = new_owner
        logger.warning(f"Ownership transferred: {previous} -> {new_owner}")
        return previous


def require_owner(roles: RoleAuthority, caller: str) -> None:
    if not roles.is_owner(caller):
        raise UnauthorizedError(f"{caller} is not the owner")


def require_controller(roles: RoleAuthority, caller: str) -> None:
    if not roles.is_controller(caller):
        raise UnauthorizedError(f"{caller} is not a controller")


def require_owner_or_controller(roles: RoleAuthority, caller: str) -> None:
    if not (roles.is_owner(caller) or roles.is_controller(caller)):
        raise UnauthorizedError(f"{caller} is neither the owner nor a controller")
