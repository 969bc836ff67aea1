from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from src.core.service.verification.amount import is_valid_wallet_address, is_valid_discord_id


class Network(str, Enum):
    """Networks a user can be verified on. Values are stable persistence keys."""
    MONAD_TESTNET = "monad_testnet"
    ARBITRUM = "arbitrum"
    BERACHAIN = "berachain"

    @property
    def is_primary(self) -> bool:
        return self is PRIMARY_NETWORK


PRIMARY_NETWORK = Network.MONAD_TESTNET
SECONDARY_NETWORKS = (Network.ARBITRUM, Network.BERACHAIN)


class NetworkConfig(BaseModel):
    """Holdings requirements and endpoints for one network"""
    network: Network
    display_name: str
    rpc_url: Optional[str] = None
    nft_api_url: Optional[str] = None
    required_collection: Optional[str] = None
    collection_name: Optional[str] = None
    min_nft_count: int = Field(default=1, ge=1)
    staking_contracts: List[str] = Field(default_factory=list)
    role_id: Optional[str] = None

    @field_validator("required_collection")
    @classmethod
    def validate_collection(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not is_valid_wallet_address(value):
            raise ValueError(f"Invalid collection contract address: {value}")
        return value

    @field_validator("role_id")
    @classmethod
    def validate_role_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not is_valid_discord_id(value):
            raise ValueError(f"Invalid Discord role id: {value}")
        return value

    @property
    def is_primary(self) -> bool:
        return self.network.is_primary

    @property
    def has_staking_support(self) -> bool:
        return self.is_primary and bool(self.staking_contracts)
