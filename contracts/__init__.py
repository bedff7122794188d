"""
NFT Freeze Contracts

Logic contracts for the custody ledger. Importing this package registers the
contract types so persisted deployments can be restored by name.
"""

from .exceptions import (
    EMPTY_BATCH,
    INVALID_ADDRESS,
    EmptyBatchError,
    FreezeContractError,
    InvalidAddressError,
    TokenNotFrozenError,
)
from .freeze import NFTFreezeContract
from .upgrade import UpgradeNFTFreezeContract

__all__ = [
    "EMPTY_BATCH",
    "INVALID_ADDRESS",
    "EmptyBatchError",
    "FreezeContractError",
    "InvalidAddressError",
    "TokenNotFrozenError",
    "NFTFreezeContract",
    "UpgradeNFTFreezeContract",
]
