"""
NFT Freeze - Token Contracts

ERC-721 token ledger consumed by the custody contract. Importing this package
registers MockNFT so persisted deployments of it can be restored.
"""

from .exceptions import (
    ERC721IncorrectOwner,
    ERC721InsufficientApproval,
    ERC721InvalidApprover,
    ERC721InvalidOperator,
    ERC721InvalidOwner,
    ERC721InvalidReceiver,
    ERC721InvalidSender,
    ERC721InvalidTokenId,
    ERC721NonexistentToken,
    TokenError,
)
from .interface import TokenLedger
from .mock_nft import MockNFT, TokenState

__all__ = [
    # Contracts
    'MockNFT',
    'TokenState',
    'TokenLedger',

    # Errors
    'TokenError',
    'ERC721NonexistentToken',
    'ERC721InvalidOwner',
    'ERC721IncorrectOwner',
    'ERC721InsufficientApproval',
    'ERC721InvalidApprover',
    'ERC721InvalidOperator',
    'ERC721InvalidReceiver',
    'ERC721InvalidSender',
    'ERC721InvalidTokenId',
]
