"""
Custodian Crypto Module

Hashing and address helpers used by the policy layer:
- keccak256 and the ordered address-list commitment
- EIP-55 address normalization
"""

from .hashing import (
    address_list_commitment,
    keccak256,
    keccak256_hex,
    pack_address_array,
)
from .address import (
    is_valid_address,
    is_zero_address,
    normalize_address,
    normalize_addresses,
)

__all__ = [
    # Hashing
    "keccak256",
    "keccak256_hex",
    "pack_address_array",
    "address_list_commitment",
    # Addresses
    "normalize_address",
    "normalize_addresses",
    "is_zero_address",
    "is_valid_address",
]
