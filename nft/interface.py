"""
NFT Freeze - Token Ledger Interface

The calls a custody contract makes on the token contract it manages.
"""

from abc import ABC, abstractmethod


class TokenLedger(ABC):
    """Minimal ERC-721 surface consumed by the freeze contract."""

    @abstractmethod
    def owner_of(self, token_id: int) -> str:
        """Return the current owner of a token, reverting if it does not exist."""
        pass

    @abstractmethod
    def transfer_from(self, sender: str, from_address: str, to: str, token_id: int) -> None:
        """Move a token, reverting unless sender is authorized for it."""
        pass
