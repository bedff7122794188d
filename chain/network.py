"""
NFT Freeze - Local Network

This module provides LocalNetwork, an in-process chain that hosts contracts,
runs external calls as atomic transactions and persists its state through the
ledger storage layer.

Every committed transaction mines exactly one block. A transaction that raises
is rolled back completely: contract storage, deployments and nonces return to
what they were before it started and none of its events become visible.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Type, Union

from ledger.migrations import MigrationManager, SchemaVersionError
from ledger.schema import DeploymentRecord, NetworkSnapshot, ProxyInfo, SnapshotMetadata
from ledger.storage import SnapshotStorage, StorageError

from .address import derive_address, generate_accounts, normalize_address
from .contract import Contract, get_contract_type
from .events import Event, TransactionReceipt
from .exceptions import ChainError, ContractNotFoundError
from .proxy import TransparentUpgradeableProxy

DEFAULT_ACCOUNT_COUNT = 10
DEFAULT_SEED = "nftfreeze"


class PendingTransaction:
    """Bookkeeping for the transaction currently being executed."""

    def __init__(self, sender: str, block_number: int, snapshot: Dict[str, Any]):
        self.sender = sender
        self.block_number = block_number
        self.snapshot = snapshot
        self.events: List[Event] = []
        self.return_value: Any = None
        self.contract_address: Optional[str] = None
        self.call_stack: List[Tuple[str, str]] = []
        self.receipt: Optional[TransactionReceipt] = None

    def enter_call(self, address: str, method: str) -> None:
        self.call_stack.append((address, method))

    def exit_call(self) -> bool:
        """Pop the current call frame. Returns True when it was the outermost one."""
        self.call_stack.pop()
        return not self.call_stack

    @property
    def depth(self) -> int:
        return len(self.call_stack)


class LocalNetwork:
    """In-process chain with deterministic accounts and atomic transactions."""

    def __init__(
        self,
        name: str = "localnet",
        account_count: int = DEFAULT_ACCOUNT_COUNT,
        seed: str = DEFAULT_SEED,
        accounts: Optional[List[str]] = None,
        storage: Optional[SnapshotStorage] = None
    ):
        self.name = name
        self.accounts = [normalize_address(a) for a in accounts] if accounts else generate_accounts(seed, account_count)
        self.storage = storage
        self.block_number = 0
        self.receipts: List[TransactionReceipt] = []
        self.created_at = datetime.utcnow()

        self._contracts: Dict[str, Contract] = {}
        self._deployment_info: Dict[str, Tuple[str, int]] = {}
        self._nonces: Dict[str, int] = {}
        self._pending: Optional[PendingTransaction] = None
        self._lock = threading.RLock()
        self.logger = logging.getLogger(__name__)

    # Transactions

    @property
    def pending_block_number(self) -> int:
        """Block the current (or next) transaction is mined in."""
        if self._pending is not None:
            return self._pending.block_number
        return self.block_number + 1

    @property
    def in_transaction(self) -> bool:
        return self._pending is not None

    @contextmanager
    def transaction(self, sender: str) -> Iterator[PendingTransaction]:
        """
        Open a transaction, or join the one already running.

        The outermost transaction commits on normal exit, mining a block and
        attaching its receipt to the yielded PendingTransaction, and rolls back
        on any exception, KeyboardInterrupt included.

        With storage attached the committed state is saved afterwards. A save
        failure is logged and does not undo the transaction; the next
        successful save writes the full state again.
        """
        with self._lock:
            if self._pending is not None:
                yield self._pending
                return

            pending = PendingTransaction(
                normalize_address(sender), self.block_number + 1, self._capture()
            )
            self._pending = pending
            try:
                yield pending
            except BaseException as e:
                self._restore(pending.snapshot)
                self.logger.debug(f"Transaction from {pending.sender} reverted: {e!r}")
                raise
            finally:
                self._pending = None

            self._commit(pending)

    def _commit(self, pending: PendingTransaction) -> None:
        self.block_number = pending.block_number
        pending.receipt = TransactionReceipt(
            sender=pending.sender,
            block_number=pending.block_number,
            events=list(pending.events),
            return_value=pending.return_value,
            contract_address=pending.contract_address
        )
        self.receipts.append(pending.receipt)
        self.logger.debug(
            f"Mined block {pending.block_number} with {len(pending.events)} events"
        )

        if self.storage is not None:
            try:
                self.save()
            except (StorageError, OSError) as e:
                self.logger.error(f"Block {pending.block_number} committed but not persisted: {e}")

    def transact(self, fn: Callable, sender: str, *args, **kwargs) -> TransactionReceipt:
        """
        Send a single external call as its own transaction and return its receipt.

        Raises:
            ChainError: If fn is not an external method or a transaction is already open
        """
        if not getattr(fn, 'is_external', False):
            raise ChainError(f"{getattr(fn, '__name__', fn)!r} is not an external method")

        with self._lock:
            if self._pending is not None:
                raise ChainError("transact() cannot be used inside an open transaction")
            with self.transaction(sender) as tx:
                fn(sender, *args, **kwargs)
        return tx.receipt

    @property
    def last_receipt(self) -> Optional[TransactionReceipt]:
        return self.receipts[-1] if self.receipts else None

    def emit(self, event: Event) -> None:
        if self._pending is None:
            raise ChainError("Events can only be emitted inside a transaction")
        self._pending.events.append(event)

    def _capture(self) -> Dict[str, Any]:
        return {
            'contracts': dict(self._contracts),
            'states': {address: c.capture() for address, c in self._contracts.items()},
            'deployment_info': dict(self._deployment_info),
            'nonces': dict(self._nonces),
        }

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        self._contracts = snapshot['contracts']
        for address, contract in self._contracts.items():
            contract.restore(snapshot['states'][address])
        self._deployment_info = snapshot['deployment_info']
        self._nonces = snapshot['nonces']

    # Contracts

    def get_contract(self, address: str) -> Contract:
        address = normalize_address(address)
        try:
            return self._contracts[address]
        except KeyError:
            raise ContractNotFoundError(address)

    def has_contract(self, address: str) -> bool:
        try:
            return normalize_address(address) in self._contracts
        except ValueError:
            return False

    @property
    def contracts(self) -> Dict[str, Contract]:
        return dict(self._contracts)

    def get_nonce(self, account: str) -> int:
        return self._nonces.get(normalize_address(account), 0)

    def create_contract(self, sender: str, builder: Callable[[str], Contract]) -> Contract:
        """
        Register a new contract at the next address derived from the sender.

        Must run inside a transaction. The builder receives the new address and
        returns the contract instance.
        """
        if self._pending is None:
            raise ChainError("Contracts can only be created inside a transaction")

        sender = normalize_address(sender)
        nonce = self._nonces.get(sender, 0)
        address = derive_address(sender, nonce)
        self._nonces[sender] = nonce + 1

        contract = builder(address)
        self._contracts[address] = contract
        self._deployment_info[address] = (sender, self._pending.block_number)
        if self._pending.contract_address is None:
            self._pending.contract_address = address

        self.logger.info(f"Deployed {contract.contract_name} at {address}")
        return contract

    def deploy(self, sender: str, contract_cls: Type[Contract], *args: Any) -> Contract:
        """Deploy a plain (non-proxied) contract and run its constructor."""
        sender = normalize_address(sender)
        with self.transaction(sender):
            contract = self.create_contract(sender, lambda address: contract_cls(self, address))
            contract.constructor(sender, *args)
        return contract

    # Persistence

    def snapshot(self) -> NetworkSnapshot:
        """Build a serializable snapshot of the committed network state."""
        deployments = {}
        for address, contract in self._contracts.items():
            deployer, block = self._deployment_info[address]
            proxy_info = None
            if isinstance(contract, TransparentUpgradeableProxy):
                proxy_info = ProxyInfo(
                    admin=contract.admin,
                    implementation=contract.implementation.contract_name,
                    implementation_history=list(contract.implementation_history)
                )
            deployments[address] = DeploymentRecord(
                address=address,
                contract_name=contract.contract_name,
                deployer=deployer,
                deployed_at_block=block,
                proxy=proxy_info,
                storage=contract.export_storage()
            )

        return NetworkSnapshot(
            metadata=SnapshotMetadata(network=self.name, created_at=self.created_at),
            block_number=self.block_number,
            accounts=list(self.accounts),
            nonces=dict(self._nonces),
            deployments=deployments
        )

    @classmethod
    def from_snapshot(
        cls,
        snapshot: NetworkSnapshot,
        storage: Optional[SnapshotStorage] = None
    ) -> 'LocalNetwork':
        """
        Rebuild a network from a snapshot.

        Raises:
            UnknownContractTypeError: If a deployment names an unregistered contract
        """
        network = cls(
            name=snapshot.metadata.network,
            accounts=snapshot.accounts or None,
            storage=storage
        )
        network.block_number = snapshot.block_number
        network.created_at = snapshot.metadata.created_at
        network._nonces = dict(snapshot.nonces)

        for address, record in snapshot.deployments.items():
            if record.proxy is not None:
                implementation = get_contract_type(record.proxy.implementation)
                contract = TransparentUpgradeableProxy(
                    network, address, implementation,
                    admin=record.proxy.admin,
                    state=implementation.storage_model.model_validate(record.storage),
                    implementation_history=record.proxy.implementation_history
                )
            else:
                contract_cls = get_contract_type(record.contract_name)
                contract = contract_cls(
                    network, address,
                    contract_cls.storage_model.model_validate(record.storage)
                )
            network._contracts[contract.address] = contract
            network._deployment_info[contract.address] = (record.deployer, record.deployed_at_block)

        return network

    @classmethod
    def open(
        cls,
        data_dir: Union[str, Path],
        name: str = "localnet",
        account_count: int = DEFAULT_ACCOUNT_COUNT,
        seed: str = DEFAULT_SEED,
        compressed: bool = False,
        backup_count: int = 5,
        auto_migrate: bool = True
    ) -> 'LocalNetwork':
        """
        Load the network persisted in data_dir, creating it if absent.

        Snapshots written with an older schema are migrated first.

        Raises:
            SchemaVersionError: If the snapshot is outdated and auto_migrate is off
        """
        storage = SnapshotStorage(data_dir, compressed=compressed, backup_count=backup_count)

        if storage.exists():
            manager = MigrationManager(storage)
            if manager.needs_migration():
                if not auto_migrate:
                    raise SchemaVersionError(
                        f"Snapshot schema {manager.get_current_version()} is outdated, "
                        f"run a migration first"
                    )
                manager.migrate()
            network = cls.from_snapshot(storage.load_snapshot(), storage=storage)
            logging.getLogger(__name__).info(
                f"Loaded network '{network.name}' at block {network.block_number} from {data_dir}"
            )
            return network

        network = cls(name=name, account_count=account_count, seed=seed, storage=storage)
        network.save()
        logging.getLogger(__name__).info(f"Created network '{name}' in {data_dir}")
        return network

    def save(self) -> str:
        """Persist the committed state. Returns the written checksum."""
        if self.storage is None:
            raise ChainError("Network has no storage attached")
        if self._pending is not None:
            raise ChainError("Cannot save while a transaction is open")
        return self.storage.save_snapshot(self.snapshot())

    def get_info(self) -> Dict[str, Any]:
        info = {
            'name': self.name,
            'block_number': self.block_number,
            'accounts': len(self.accounts),
            'contracts': len(self._contracts),
            'transactions': len(self.receipts),
        }
        if self.storage is not None:
            info['storage'] = self.storage.get_storage_info()
        return info

    def __repr__(self):
        return f"<LocalNetwork {self.name} block={self.block_number} contracts={len(self._contracts)}>"
