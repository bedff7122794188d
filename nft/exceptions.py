"""
Token Ledger Exceptions for NFT Freeze

ERC-721 revert reasons raised by token contracts.
"""

from chain.exceptions import Revert


class TokenError(Revert):
    """Base exception for all token ledger reverts."""
    pass


class ERC721NonexistentToken(TokenError):
    """Raised when a token ID has never been minted."""

    def __init__(self, token_id: int):
        super().__init__(f"ERC721NonexistentToken({token_id})", token_id=token_id)


class ERC721InvalidOwner(TokenError):
    """Raised when the zero address is queried as an owner."""

    def __init__(self, owner: str):
        super().__init__(f"ERC721InvalidOwner({owner})", owner=owner)


class ERC721IncorrectOwner(TokenError):
    """Raised when a transfer names the wrong current owner."""

    def __init__(self, sender: str, token_id: int, owner: str):
        super().__init__(
            f"ERC721IncorrectOwner({sender}, {token_id}, {owner})",
            sender=sender, token_id=token_id, owner=owner
        )


class ERC721InsufficientApproval(TokenError):
    """Raised when the operator is neither owner, approved nor operator."""

    def __init__(self, operator: str, token_id: int):
        super().__init__(
            f"ERC721InsufficientApproval({operator}, {token_id})",
            operator=operator, token_id=token_id
        )


class ERC721InvalidApprover(TokenError):
    """Raised when an approval is given by someone without authority."""

    def __init__(self, approver: str):
        super().__init__(f"ERC721InvalidApprover({approver})", approver=approver)


class ERC721InvalidOperator(TokenError):
    """Raised when the zero address is set as operator."""

    def __init__(self, operator: str):
        super().__init__(f"ERC721InvalidOperator({operator})", operator=operator)


class ERC721InvalidReceiver(TokenError):
    """Raised when tokens would be sent to the zero address."""

    def __init__(self, receiver: str):
        super().__init__(f"ERC721InvalidReceiver({receiver})", receiver=receiver)


class ERC721InvalidSender(TokenError):
    """Raised when minting a token ID that already exists."""

    def __init__(self, sender: str):
        super().__init__(f"ERC721InvalidSender({sender})", sender=sender)


class ERC721InvalidTokenId(TokenError):
    """Raised when a token ID falls outside the uint256 range."""

    def __init__(self, token_id: int):
        super().__init__(f"ERC721InvalidTokenId({token_id})", token_id=token_id)
