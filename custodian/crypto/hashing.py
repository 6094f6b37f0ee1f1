"""
Custodian Crypto Hashing Module

Provides the hash functions used by the policy layer:
- keccak256: Web3 standard, used for whitelist commitments
- address_list_commitment: keccak256 over an ABI-packed address array
"""

from typing import Iterable, Union

from eth_utils import encode_hex, keccak, to_canonical_address


def _to_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        if data.startswith('0x') or data.startswith('0X'):
            return bytes.fromhex(data[2:])
        return bytes.fromhex(data)
    return data


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes or hex string

    Returns:
        32-byte hash
    """
    return keccak(_to_bytes(data))


def keccak256_hex(data: Union[bytes, str]) -> str:
    """
    Compute Keccak-256 hash and return as hex string.

    Args:
        data: Input bytes or hex string

    Returns:
        Hex string with 0x prefix
    """
    return encode_hex(keccak256(data))


def pack_address_array(addresses: Iterable[str]) -> bytes:
    """
    ABI-pack an address array: each 20-byte address left-padded to a 32-byte word,
    in the given order.
    """
    return b"".join(
        to_canonical_address(address).rjust(32, b"\x00") for address in addresses
    )


def address_list_commitment(addresses: Iterable[str]) -> str:
    """
    Deterministic commitment for an ordered list of addresses.

    Order matters: [A, B] and [B, A] commit to different hashes.

    Returns:
        Hex string with 0x prefix
    """
    return keccak256_hex(pack_address_array(addresses))
