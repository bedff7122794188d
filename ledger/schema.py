"""
NFT Freeze - Ledger Schema Models

This module defines the Pydantic models for the custody ledger storage struct
and for the persisted network snapshot that holds every deployment.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, NonNegativeInt, field_validator

from chain.address import ZERO_ADDRESS, normalize_address

LATEST_SCHEMA_VERSION = "1.2.0"


class CustodyRecord(BaseModel):
    """Custody entry for a single frozen token."""

    original_holder: str = Field(..., description="Address the token was pulled from")
    frozen: bool = Field(default=True)
    frozen_at_block: int = Field(default=0, ge=0, description="Block of the freezing transaction")

    @field_validator('original_holder')
    @classmethod
    def validate_original_holder(cls, v):
        return normalize_address(v)


class LedgerState(BaseModel):
    """
    Durable storage of the freeze contract.

    This is the struct a proxy keeps across logic upgrades. Fields are addressed
    by name, so logic versions must only ever add fields, never rename them.
    """

    initialized: int = Field(default=0, ge=0, description="Initializer version (0 = never initialized)")
    nft_address: str = Field(default=ZERO_ADDRESS, description="Token contract under management")
    owner: str = Field(default=ZERO_ADDRESS, description="Administrator address")
    custody: Dict[NonNegativeInt, CustodyRecord] = Field(default_factory=dict)

    @field_validator('nft_address', 'owner')
    @classmethod
    def validate_addresses(cls, v):
        return normalize_address(v)

    def get_record(self, token_id: int) -> Optional[CustodyRecord]:
        return self.custody.get(token_id)

    def is_frozen(self, token_id: int) -> bool:
        record = self.custody.get(token_id)
        return record is not None and record.frozen

    def tokens_of(self, holder: str) -> List[int]:
        """List frozen token IDs deposited by a holder."""
        holder = normalize_address(holder)
        return sorted(
            token_id for token_id, record in self.custody.items()
            if record.frozen and record.original_holder == holder
        )


class ProxyInfo(BaseModel):
    """Upgradeable proxy bookkeeping."""

    admin: str
    implementation: str = Field(..., description="Name of the current logic contract")
    implementation_history: List[str] = Field(default_factory=list)

    @field_validator('admin')
    @classmethod
    def validate_admin(cls, v):
        return normalize_address(v)


class DeploymentRecord(BaseModel):
    """A contract deployed on the network."""

    address: str
    contract_name: str
    deployer: str
    deployed_at_block: int = Field(default=0, ge=0)
    proxy: Optional[ProxyInfo] = None
    storage: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('address', 'deployer')
    @classmethod
    def validate_addresses(cls, v):
        return normalize_address(v)


class SnapshotMetadata(BaseModel):
    """Snapshot metadata model."""

    version: str = Field(default=LATEST_SCHEMA_VERSION, description="Snapshot schema version")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    network: str = Field(default="localnet")

    def update_timestamp(self) -> None:
        """Update the last modified timestamp."""
        self.updated_at = datetime.utcnow()


class NetworkSnapshot(BaseModel):
    """Complete persisted network state."""

    metadata: SnapshotMetadata = Field(default_factory=SnapshotMetadata)
    block_number: int = Field(default=0, ge=0)
    accounts: List[str] = Field(default_factory=list)
    nonces: Dict[str, int] = Field(default_factory=dict)
    deployments: Dict[str, DeploymentRecord] = Field(default_factory=dict)

    def get_deployment(self, address: str) -> Optional[DeploymentRecord]:
        return self.deployments.get(normalize_address(address))

    def list_proxies(self) -> List[DeploymentRecord]:
        return [d for d in self.deployments.values() if d.proxy is not None]
