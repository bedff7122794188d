"""
NFT Freeze - Contract Base Classes

This module provides the base class shared by every contract executed on the
local network, the external-call decorator that makes a call atomic, and a
registry that maps contract names to their classes so persisted deployments
can be restored.
"""

import functools
import logging
from typing import Any, Callable, ClassVar, Dict, Optional, Type

from pydantic import BaseModel

from .address import normalize_address
from .events import Event
from .exceptions import UnauthorizedAccountError, UnknownContractTypeError

_CONTRACT_TYPES: Dict[str, Type['Contract']] = {}


def register_contract(cls: Type['Contract']) -> Type['Contract']:
    """Class decorator registering a contract type under its contract name."""
    _CONTRACT_TYPES[cls.contract_name] = cls
    return cls


def get_contract_type(name: str) -> Type['Contract']:
    """Look up a registered contract type by name."""
    try:
        return _CONTRACT_TYPES[name]
    except KeyError:
        raise UnknownContractTypeError(f"Unknown contract type: {name}")


def list_contract_types() -> Dict[str, Type['Contract']]:
    return dict(_CONTRACT_TYPES)


def external(func: Callable) -> Callable:
    """
    Mark a contract method as an external entry point.

    The first argument after self is always the calling address. The call runs
    inside a network transaction: the outermost external call opens it and
    commits or rolls back everything, nested calls join it.
    """
    @functools.wraps(func)
    def wrapper(self, sender: str, *args, **kwargs):
        sender = normalize_address(sender)
        with self.network.transaction(sender) as tx:
            tx.enter_call(self.address, func.__name__)
            try:
                result = func(self, sender, *args, **kwargs)
            finally:
                outermost = tx.exit_call()
            if outermost:
                tx.return_value = result
        return result

    wrapper.is_external = True
    return wrapper


class Contract:
    """Base class for contracts deployed on a LocalNetwork."""

    contract_name: ClassVar[str] = "Contract"
    storage_model: ClassVar[Type[BaseModel]]

    def __init__(self, network, address: str, state: Optional[BaseModel] = None):
        self.network = network
        self.address = normalize_address(address)
        self.state = state if state is not None else self.storage_model()
        self.logger = logging.getLogger(f"contracts.{self.contract_name}")

    def constructor(self, sender: str, *args: Any) -> None:
        """Run once when the contract is deployed."""
        pass

    def emit(self, name: str, **args: Any) -> None:
        """Emit an event from this contract."""
        self.network.emit(Event(address=self.address, name=name, args=args))

    @property
    def block_number(self) -> int:
        """Number of the block the current transaction will be mined in."""
        return self.network.pending_block_number

    def capture(self) -> Any:
        """Take a snapshot of this contract's mutable state."""
        return self.state.model_copy(deep=True)

    def restore(self, captured: Any) -> None:
        """Restore a snapshot taken with capture()."""
        self.state = captured

    def export_storage(self) -> Dict[str, Any]:
        return self.state.model_dump(mode='json')

    def __repr__(self):
        return f"<{self.contract_name} at {self.address}>"


class Ownable:
    """Single-owner access control for contracts whose storage has an owner field."""

    def owner(self) -> str:
        return self.state.owner

    def _check_owner(self, sender: str) -> None:
        if sender != self.state.owner:
            raise UnauthorizedAccountError(sender)

    def _transfer_ownership(self, new_owner: str) -> None:
        previous_owner = self.state.owner
        self.state.owner = new_owner
        self.emit("OwnershipTransferred", previousOwner=previous_owner, newOwner=new_owner)
        self.logger.info(f"Ownership of {self.address} transferred from {previous_owner} to {new_owner}")

