"""
NFT Freeze - Freeze Contract Logic

This module provides NFTFreezeContract, the custody ledger logic executed
behind an upgradeable proxy. Holders freeze their tokens in bulk by moving
them into the contract's custody; the administrator releases them to a
recipient.

All storage lives in a LedgerState owned by the proxy; the logic object only
holds a reference to it, so replacing the logic keeps every custody record.
"""

from typing import Optional, Sequence, Tuple

from chain.address import ZERO_ADDRESS, normalize_address
from chain.contract import Contract, Ownable, external, register_contract
from chain.exceptions import InvalidInitializationError, Revert
from ledger.schema import CustodyRecord, LedgerState
from nft.interface import TokenLedger

from .exceptions import EmptyBatchError, InvalidAddressError, TokenNotFrozenError


@register_contract
class NFTFreezeContract(Ownable, Contract):
    """Custody ledger for bulk NFT freezing."""

    contract_name = "NFTFreezeContract"
    storage_model = LedgerState
    VERSION = "1.0.0"

    # Initialization

    @external
    def initialize(self, sender: str, nft_address: str, initial_owner: str) -> None:
        """
        Set the managed token contract and the administrator.

        Runs once per deployed proxy. Does not call into the token contract.
        """
        if self.state.initialized:
            raise InvalidInitializationError()

        nft_address = normalize_address(nft_address)
        initial_owner = normalize_address(initial_owner)
        if nft_address == ZERO_ADDRESS or initial_owner == ZERO_ADDRESS:
            raise InvalidAddressError()

        self.state.initialized = 1
        self.state.nft_address = nft_address
        self._transfer_ownership(initial_owner)
        self.emit("Initialized", version=1)

    # Views

    def nft_address(self) -> str:
        return self.state.nft_address

    def version(self) -> str:
        return self.VERSION

    def custody_record(self, token_id: int) -> Optional[CustodyRecord]:
        record = self.state.get_record(token_id)
        return record.model_copy() if record is not None else None

    def is_frozen(self, token_id: int) -> bool:
        return self.state.is_frozen(token_id)

    # Administration

    @external
    def transfer_ownership(self, sender: str, new_owner: str) -> None:
        self._check_owner(sender)
        new_owner = normalize_address(new_owner)
        if new_owner == ZERO_ADDRESS:
            raise InvalidAddressError()
        self._transfer_ownership(new_owner)

    # Custody

    @external
    def bulk_nft_freeze(self, sender: str, token_ids: Sequence[int]) -> Tuple[int, int]:
        """
        Move every listed token the caller owns into custody.

        Tokens the caller does not own are skipped, not rejected. Reverts from
        the token contract (missing approval, unknown token) abort the batch.

        Returns:
            (completed, skipped) counts
        """
        token_ids = list(token_ids)
        if not token_ids:
            raise EmptyBatchError()

        token = self._token()
        completed = 0

        for token_id in token_ids:
            if token.owner_of(token_id) != sender:
                self.logger.debug(f"Skipping token {token_id}: not owned by {sender}")
                continue

            self.state.custody[token_id] = CustodyRecord(
                original_holder=sender,
                frozen=True,
                frozen_at_block=self.block_number
            )
            token.transfer_from(self.address, sender, self.address, token_id)
            completed += 1

        skipped = len(token_ids) - completed
        if skipped == 0:
            self.emit("BulkNFTFreezeCompleted", caller=sender, count=len(token_ids))
        else:
            self.emit("BulkNFTFreezeIncomplete", caller=sender, remainingCount=skipped)

        self.logger.info(f"Froze {completed}/{len(token_ids)} tokens for {sender}")
        return completed, skipped

    @external
    def transfer_nfts_to_recipient(self, sender: str, recipient: str, token_ids: Sequence[int]) -> int:
        """
        Release frozen tokens from custody to a recipient.

        Only the administrator may call this. Every listed token must be in
        custody; otherwise nothing is released.
        """
        self._check_owner(sender)
        token_ids = list(token_ids)
        if not token_ids:
            raise EmptyBatchError()

        recipient = normalize_address(recipient)
        if recipient == ZERO_ADDRESS:
            raise InvalidAddressError()

        token = self._token()
        for token_id in token_ids:
            if not self.state.is_frozen(token_id):
                raise TokenNotFrozenError(token_id)

            token.transfer_from(self.address, self.address, recipient, token_id)
            del self.state.custody[token_id]

        self.logger.info(f"Released {len(token_ids)} tokens to {recipient}")
        return len(token_ids)

    # Internals

    def _token(self) -> TokenLedger:
        contract = self.network.get_contract(self.state.nft_address)
        if not isinstance(contract, TokenLedger):
            raise Revert(f"{self.state.nft_address} is not a token contract")
        return contract
