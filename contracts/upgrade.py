"""
NFT Freeze - Upgraded Freeze Contract Logic

Second logic version of the freeze contract. It keeps the LedgerState storage
schema untouched and adds read accessors over the existing custody records.
"""

from typing import List

from chain.contract import register_contract

from .freeze import NFTFreezeContract


@register_contract
class UpgradeNFTFreezeContract(NFTFreezeContract):
    """Freeze contract logic v2."""

    contract_name = "UpgradeNFTFreezeContract"
    VERSION = "2.0.0"

    def frozen_tokens_of(self, holder: str) -> List[int]:
        """Token IDs currently frozen on behalf of a holder."""
        return self.state.tokens_of(holder)

    def frozen_token_count(self) -> int:
        return sum(1 for record in self.state.custody.values() if record.frozen)
