"""
NFT Freeze - Events and Transaction Receipts

Events are emitted by contracts during a transaction and only become visible
in the receipt once the transaction commits.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Event:
    """A single log entry emitted by a contract."""
    address: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)

    @property
    def values(self) -> Tuple[Any, ...]:
        """Event arguments in declaration order."""
        return tuple(self.args.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'event': self.name,
            'args': dict(self.args),
        }


@dataclass
class TransactionReceipt:
    """Outcome of a committed transaction."""
    sender: str
    block_number: int
    events: List[Event] = field(default_factory=list)
    return_value: Any = None
    contract_address: Optional[str] = None

    def events_named(self, name: str, address: Optional[str] = None) -> List[Event]:
        """Get events with the given name, optionally filtered by emitter."""
        return [
            event for event in self.events
            if event.name == name and (address is None or event.address == address)
        ]

    def has_event(self, name: str, *values: Any, address: Optional[str] = None) -> bool:
        """Check if an event with the given name and argument values was emitted."""
        for event in self.events_named(name, address):
            if not values or event.values == tuple(values):
                return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sender': self.sender,
            'block_number': self.block_number,
            'contract_address': self.contract_address,
            'return_value': self.return_value,
            'events': [event.to_dict() for event in self.events],
        }
