"""
Freeze Contract Exceptions for NFT Freeze

Domain reverts of the custody ledger. The two error codes are part of the
public contract interface and must not change.
"""

from chain.exceptions import Revert

INVALID_ADDRESS = "E01"
EMPTY_BATCH = "E02"


class FreezeContractError(Revert):
    """Base exception for custody ledger reverts."""
    pass


class InvalidAddressError(FreezeContractError):
    """Raised when the zero address is given where a real one is required."""

    def __init__(self):
        super().__init__(INVALID_ADDRESS)


class EmptyBatchError(FreezeContractError):
    """Raised when a batch operation receives no token IDs."""

    def __init__(self):
        super().__init__(EMPTY_BATCH)


class TokenNotFrozenError(FreezeContractError):
    """Raised when releasing a token that is not held in custody."""

    def __init__(self, token_id: int):
        super().__init__(f"TokenNotFrozen({token_id})", token_id=token_id)
