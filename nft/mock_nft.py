"""
NFT Freeze - Mock NFT Token Contract

An ownable ERC-721 ledger used as the token contract in tests and local
deployments. Only the token contract owner can mint.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, NonNegativeInt

from chain.address import ZERO_ADDRESS, normalize_address
from chain.contract import Contract, Ownable, external, register_contract
from chain.exceptions import OwnableInvalidOwnerError

from .exceptions import (
    ERC721IncorrectOwner, ERC721InsufficientApproval, ERC721InvalidApprover,
    ERC721InvalidOperator, ERC721InvalidOwner, ERC721InvalidReceiver,
    ERC721InvalidSender, ERC721InvalidTokenId, ERC721NonexistentToken
)
from .interface import TokenLedger


class TokenState(BaseModel):
    """ERC-721 ledger storage."""

    name: str = Field(default="MockNFT")
    symbol: str = Field(default="MNFT")
    owner: str = Field(default=ZERO_ADDRESS, description="Token contract owner (minter)")
    owners: Dict[NonNegativeInt, str] = Field(default_factory=dict)
    balances: Dict[str, int] = Field(default_factory=dict)
    token_approvals: Dict[NonNegativeInt, str] = Field(default_factory=dict)
    operator_approvals: Dict[str, List[str]] = Field(default_factory=dict)


@register_contract
class MockNFT(Ownable, Contract, TokenLedger):
    """Ownable, approval-gated ERC-721 token ledger."""

    contract_name = "MockNFT"
    storage_model = TokenState

    def constructor(self, sender: str, initial_owner: str) -> None:
        initial_owner = normalize_address(initial_owner)
        if initial_owner == ZERO_ADDRESS:
            raise OwnableInvalidOwnerError(initial_owner)
        self._transfer_ownership(initial_owner)

    # Views

    def name(self) -> str:
        return self.state.name

    def symbol(self) -> str:
        return self.state.symbol

    def balance_of(self, owner: str) -> int:
        owner = normalize_address(owner)
        if owner == ZERO_ADDRESS:
            raise ERC721InvalidOwner(owner)
        return self.state.balances.get(owner, 0)

    def owner_of(self, token_id: int) -> str:
        owner = self.state.owners.get(token_id)
        if owner is None:
            raise ERC721NonexistentToken(token_id)
        return owner

    def get_approved(self, token_id: int) -> str:
        self.owner_of(token_id)
        return self.state.token_approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        owner = normalize_address(owner)
        operator = normalize_address(operator)
        return operator in self.state.operator_approvals.get(owner, [])

    def total_supply(self) -> int:
        return len(self.state.owners)

    def tokens_of(self, owner: str) -> List[int]:
        owner = normalize_address(owner)
        return sorted(t for t, o in self.state.owners.items() if o == owner)

    # Mutations

    @external
    def safe_mint(self, sender: str, to: str, token_id: int) -> None:
        self._check_owner(sender)
        to = normalize_address(to)
        if to == ZERO_ADDRESS:
            raise ERC721InvalidReceiver(to)
        if token_id < 0:
            raise ERC721InvalidTokenId(token_id)
        if token_id in self.state.owners:
            raise ERC721InvalidSender(ZERO_ADDRESS)

        self._update(to, token_id)
        self.logger.debug(f"Minted token {token_id} to {to}")

    @external
    def approve(self, sender: str, to: str, token_id: int) -> None:
        to = normalize_address(to)
        owner = self.owner_of(token_id)
        if sender != owner and not self.is_approved_for_all(owner, sender):
            raise ERC721InvalidApprover(sender)

        self.state.token_approvals[token_id] = to
        self.emit("Approval", owner=owner, approved=to, tokenId=token_id)

    @external
    def set_approval_for_all(self, sender: str, operator: str, approved: bool) -> None:
        operator = normalize_address(operator)
        if operator == ZERO_ADDRESS:
            raise ERC721InvalidOperator(operator)

        operators = self.state.operator_approvals.setdefault(sender, [])
        if approved and operator not in operators:
            operators.append(operator)
        elif not approved and operator in operators:
            operators.remove(operator)
        if not operators:
            del self.state.operator_approvals[sender]

        self.emit("ApprovalForAll", owner=sender, operator=operator, approved=approved)

    @external
    def transfer_from(self, sender: str, from_address: str, to: str, token_id: int) -> None:
        from_address = normalize_address(from_address)
        to = normalize_address(to)
        if to == ZERO_ADDRESS:
            raise ERC721InvalidReceiver(to)

        owner = self.owner_of(token_id)
        if not self._is_authorized(owner, sender, token_id):
            raise ERC721InsufficientApproval(sender, token_id)
        if owner != from_address:
            raise ERC721IncorrectOwner(from_address, token_id, owner)

        self._update(to, token_id)

    @external
    def safe_transfer_from(self, sender: str, from_address: str, to: str, token_id: int) -> None:
        self.transfer_from(sender, from_address, to, token_id)

    # Internals

    def _is_authorized(self, owner: str, spender: str, token_id: int) -> bool:
        return (
            spender == owner
            or self.is_approved_for_all(owner, spender)
            or self.state.token_approvals.get(token_id) == spender
        )

    def _update(self, to: str, token_id: int) -> None:
        """Move a token to its new owner, minting it if it has none."""
        from_address: Optional[str] = self.state.owners.get(token_id)

        if from_address is not None:
            self.state.token_approvals.pop(token_id, None)
            self.state.balances[from_address] -= 1
            if self.state.balances[from_address] == 0:
                del self.state.balances[from_address]

        self.state.balances[to] = self.state.balances.get(to, 0) + 1
        self.state.owners[token_id] = to

        self.emit("Transfer", **{"from": from_address or ZERO_ADDRESS, "to": to, "tokenId": token_id})
