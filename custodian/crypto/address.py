"""
Custodian Crypto Address Module

Normalizes Ethereum-style addresses (EIP-55 checksum) for every place the
policy layer compares or stores them.
"""

from typing import Any, Iterable, Tuple

from eth_utils import is_address, to_checksum_address

from ..constants import ZERO_ADDRESS
from ..exceptions import InvalidAddressError


def normalize_address(address: Any) -> str:
    """
    Convert an address to EIP-55 checksum format.

    Accepts lowercase, uppercase or already-checksummed hex strings and raw
    20-byte values.

    Raises:
        InvalidAddressError: If the value is not a 20-byte address
    """
    if isinstance(address, (bytes, bytearray)):
        if len(address) != 20:
            raise InvalidAddressError(f"Address must be 20 bytes, got {len(address)}")
        return to_checksum_address(bytes(address))
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def normalize_addresses(addresses: Iterable[Any]) -> Tuple[str, ...]:
    """Normalize every address, keeping order and duplicates."""
    if isinstance(addresses, (str, bytes, bytearray)):
        raise InvalidAddressError("Expected a sequence of addresses, got a single value")
    return tuple(normalize_address(a) for a in addresses)


def is_zero_address(address: str) -> bool:
    """Check if address is the null address."""
    return normalize_address(address) == ZERO_ADDRESS


def is_valid_address(address: Any) -> bool:
    """Check if value can be normalized to an address."""
    try:
        normalize_address(address)
    except InvalidAddressError:
        return False
    return True
