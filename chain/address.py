"""
NFT Freeze - Address Derivation and Validation

This module provides helpers for validating and normalising account and
contract addresses, and for deterministically deriving new ones.
"""

import hashlib
import re
from typing import List

ZERO_ADDRESS = "0x" + "0" * 40

_ADDRESS_PATTERN = re.compile(r'^0x[a-fA-F0-9]{40}$')


def is_address(value) -> bool:
    """Check if a value is a well-formed address."""
    return isinstance(value, str) and bool(_ADDRESS_PATTERN.match(value))


def normalize_address(value: str) -> str:
    """
    Validate an address and return its lower-case form.

    Raises:
        ValueError: If the value is not a 0x-prefixed 20-byte hex string
    """
    if not is_address(value):
        raise ValueError(f"Invalid address: {value!r} (expected 0x followed by 40 hex characters)")
    return value.lower()


def is_zero_address(value: str) -> bool:
    """Check if an address is the zero address."""
    return normalize_address(value) == ZERO_ADDRESS


def derive_address(deployer: str, nonce: int) -> str:
    """Derive a contract address from its deployer and the deployer's nonce."""
    data = f"{normalize_address(deployer)}:{nonce}".encode('utf-8')
    return "0x" + hashlib.sha256(data).hexdigest()[-40:]


def generate_accounts(seed: str, count: int) -> List[str]:
    """Generate a deterministic list of account addresses from a seed."""
    if count <= 0:
        raise ValueError("Account count must be positive")

    accounts = []
    for index in range(count):
        digest = hashlib.sha256(f"{seed}/account/{index}".encode('utf-8')).hexdigest()
        accounts.append("0x" + digest[:40])
    return accounts
