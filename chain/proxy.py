"""
NFT Freeze - Upgradeable Proxy

A transparent proxy keeps a contract's storage at a fixed address while the
logic operating on it can be replaced by the proxy admin. The proxy admin is
the deploying account and is unrelated to any ownership the logic tracks.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Type

from pydantic import BaseModel

from .address import ZERO_ADDRESS, normalize_address
from .contract import Contract, external, get_contract_type
from .exceptions import ChainError, ProxyDeniedAdminAccessError, UpgradeValidationError

logger = logging.getLogger(__name__)

_PROXY_ATTRIBUTES = {
    'network', 'address', 'state', 'logger',
    'implementation', 'admin', 'implementation_history',
}


class TransparentUpgradeableProxy(Contract):
    """Storage holder that delegates every call to its current logic contract."""

    contract_name = "TransparentUpgradeableProxy"

    def __init__(
        self,
        network,
        address: str,
        implementation: Type[Contract],
        admin: str,
        state: Optional[BaseModel] = None,
        implementation_history: Optional[Iterable[str]] = None
    ):
        self.implementation = implementation
        self.admin = normalize_address(admin)
        self.implementation_history: List[str] = list(
            implementation_history or [implementation.contract_name]
        )
        super().__init__(
            network, address,
            state if state is not None else implementation.storage_model()
        )

    @property
    def logic(self) -> Contract:
        """Current logic bound to this proxy's address and storage."""
        return self.implementation(self.network, self.address, self.state)

    def __getattr__(self, name: str) -> Any:
        if name.startswith('_') or name in _PROXY_ATTRIBUTES:
            raise AttributeError(name)
        return getattr(self.logic, name)

    @external
    def upgrade_to(self, sender: str, new_implementation: Type[Contract]) -> None:
        if sender != self.admin:
            raise ProxyDeniedAdminAccessError(sender)

        previous = self.implementation.contract_name
        self.implementation = new_implementation
        self.implementation_history.append(new_implementation.contract_name)
        self.emit("Upgraded", implementation=new_implementation.contract_name)
        logger.info(f"Proxy {self.address} upgraded from {previous} to {new_implementation.contract_name}")

    @external
    def change_admin(self, sender: str, new_admin: str) -> None:
        if sender != self.admin:
            raise ProxyDeniedAdminAccessError(sender)

        new_admin = normalize_address(new_admin)
        if new_admin == ZERO_ADDRESS:
            raise ChainError("Proxy admin cannot be the zero address")

        self.emit("AdminChanged", previousAdmin=self.admin, newAdmin=new_admin)
        self.admin = new_admin

    def capture(self) -> Any:
        return (
            self.state.model_copy(deep=True),
            self.implementation,
            self.admin,
            list(self.implementation_history),
        )

    def restore(self, captured: Any) -> None:
        self.state, self.implementation, self.admin, self.implementation_history = captured

    def __repr__(self):
        return f"<{self.contract_name} at {self.address} -> {self.implementation.contract_name}>"


def validate_implementation(logic_cls: Type[Contract], storage_model: Optional[Type[BaseModel]] = None) -> None:
    """
    Check that a logic contract can sit behind a proxy.

    Raises:
        UpgradeValidationError: If the logic is unregistered or declares a
            different storage schema than the one already in the proxy
    """
    if not isinstance(logic_cls, type) or not issubclass(logic_cls, Contract):
        raise UpgradeValidationError(f"{logic_cls!r} is not a contract type")

    try:
        registered = get_contract_type(logic_cls.contract_name)
    except ChainError:
        registered = None
    if registered is not logic_cls:
        raise UpgradeValidationError(f"{logic_cls.contract_name} is not a registered contract type")

    if not hasattr(logic_cls, 'storage_model'):
        raise UpgradeValidationError(f"{logic_cls.contract_name} declares no storage model")

    if storage_model is not None and logic_cls.storage_model is not storage_model:
        raise UpgradeValidationError(
            f"{logic_cls.contract_name} uses storage {logic_cls.storage_model.__name__}, "
            f"proxy holds {storage_model.__name__}"
        )


def deploy_proxy(
    network,
    sender: str,
    logic_cls: Type[Contract],
    args: Sequence[Any] = (),
    initializer: Optional[str] = "initialize"
) -> TransparentUpgradeableProxy:
    """
    Deploy a proxy in front of a logic contract and run its initializer.

    Deployment and initialization happen in one transaction: if the
    initializer reverts, the proxy is never created.
    """
    validate_implementation(logic_cls)
    sender = normalize_address(sender)

    with network.transaction(sender):
        proxy = network.create_contract(
            sender,
            lambda address: TransparentUpgradeableProxy(network, address, logic_cls, admin=sender)
        )
        proxy.emit("Upgraded", implementation=logic_cls.contract_name)
        proxy.emit("AdminChanged", previousAdmin=ZERO_ADDRESS, newAdmin=sender)

        if initializer:
            getattr(proxy, initializer)(sender, *args)

    return proxy


def upgrade_proxy(
    network,
    sender: str,
    proxy_address: str,
    logic_cls: Type[Contract]
) -> TransparentUpgradeableProxy:
    """Point an existing proxy at new logic, keeping its storage."""
    proxy = network.get_contract(proxy_address)
    if not isinstance(proxy, TransparentUpgradeableProxy):
        raise UpgradeValidationError(f"{proxy_address} is not an upgradeable proxy")

    validate_implementation(logic_cls, storage_model=type(proxy.state))
    proxy.upgrade_to(sender, logic_cls)
    return proxy
