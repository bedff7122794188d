"""
Chain Runtime Exceptions for NFT Freeze

This module defines the exceptions raised by the local contract runtime.
A Revert aborts the enclosing transaction and rolls back every state change.
"""


class ChainError(Exception):
    """Base exception for all chain runtime errors."""
    pass


class Revert(ChainError):
    """Raised when a contract call reverts."""

    def __init__(self, reason: str = "", **data):
        super().__init__(reason)
        self.reason = reason
        self.data = data

    def __str__(self):
        return self.reason or self.__class__.__name__


class ContractNotFoundError(Revert):
    """Raised when a call targets an address without a contract."""

    def __init__(self, address: str):
        super().__init__(f"No contract deployed at {address}", address=address)


class UnauthorizedAccountError(Revert):
    """Raised when a caller is not the owner of an ownable contract."""

    def __init__(self, account: str):
        super().__init__(f"OwnableUnauthorizedAccount({account})", account=account)


class OwnableInvalidOwnerError(Revert):
    """Raised when ownership would be given to the zero address."""

    def __init__(self, owner: str):
        super().__init__(f"OwnableInvalidOwner({owner})", owner=owner)


class InvalidInitializationError(Revert):
    """Raised when an initializer runs on an already initialized contract."""

    def __init__(self):
        super().__init__("InvalidInitialization")


class ProxyDeniedAdminAccessError(Revert):
    """Raised when someone other than the proxy admin tries to upgrade it."""

    def __init__(self, account: str):
        super().__init__(f"ProxyDeniedAdminAccess({account})", account=account)


class UpgradeValidationError(ChainError):
    """Raised when a new implementation is not upgrade safe."""
    pass


class UnknownContractTypeError(ChainError):
    """Raised when a persisted deployment names an unregistered contract type."""
    pass
