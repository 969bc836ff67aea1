"""
Verification result variants.

Every ownership check produces exactly one variant, tagged by ``method``.
The tag is kept on persistence so stored results parse back to the same
variant through ``parse_verification_result``.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from src.core.service.verification.models.network import Network


class OwnedToken(BaseModel):
    token_id: str
    name: Optional[str] = None
    image: Optional[str] = None


class OwnershipDetails(BaseModel):
    collection_name: Optional[str] = None
    collection_symbol: Optional[str] = None
    owned_tokens: List[OwnedToken] = Field(default_factory=list)
    message: str = ""


class OwnershipCheck(BaseModel):
    """Outcome of the direct holdings lookup for one wallet"""
    verified: bool
    owned_count: int = 0
    total_nfts: int = 0
    collection_filtered: bool = False
    required_collection: Optional[str] = None
    min_required: int = 1
    details: OwnershipDetails = Field(default_factory=OwnershipDetails)
    error: Optional[str] = None


class StakingContractCheck(BaseModel):
    """Staked balance reported by one staking contract"""
    contract_address: str
    staked_count: int = 0
    staked_token_ids: List[int] = Field(default_factory=list)
    error: Optional[str] = None


class _ResultBase(BaseModel):
    network: Network
    wallet_address: str
    min_required: int = 1
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DirectOwnershipResult(_ResultBase):
    method: Literal["direct-ownership"] = "direct-ownership"
    verified: bool
    owned_count: int = 0
    total_nfts: int = 0
    collection_filtered: bool = False
    required_collection: Optional[str] = None
    details: OwnershipDetails = Field(default_factory=OwnershipDetails)


class StakedResult(_ResultBase):
    method: Literal["staked"] = "staked"
    verified: Literal[True] = True
    staked_count: int
    staked_token_ids: List[int] = Field(default_factory=list)
    total_staked_token_ids: int = 0
    staking_contracts: List[str] = Field(default_factory=list)
    staking_details: List[StakingContractCheck] = Field(default_factory=list)


class InsufficientStakedResult(_ResultBase):
    method: Literal["insufficient-staked"] = "insufficient-staked"
    verified: Literal[False] = False
    staked_count: int
    staking_contracts_checked: int = 0
    staking_details: List[StakingContractCheck] = Field(default_factory=list)


class BothFailedResult(_ResultBase):
    method: Literal["both-failed"] = "both-failed"
    verified: Literal[False] = False
    owned_count: int = 0
    total_nfts: int = 0
    collection_filtered: bool = False
    required_collection: Optional[str] = None
    details: OwnershipDetails = Field(default_factory=OwnershipDetails)
    staking_contracts_checked: int = 0
    staking_info: Optional[str] = None
    staking_details: List[StakingContractCheck] = Field(default_factory=list)
    error: Optional[str] = None


class ErrorResult(_ResultBase):
    method: Literal["error"] = "error"
    verified: Literal[False] = False
    error: str


VerificationResult = Annotated[
    Union[DirectOwnershipResult, StakedResult, InsufficientStakedResult, BothFailedResult, ErrorResult],
    Field(discriminator="method"),
]

_result_adapter: TypeAdapter = TypeAdapter(VerificationResult)


def parse_verification_result(data: Dict[str, Any]):
    """Rebuild the tagged variant from its stored JSON form."""
    return _result_adapter.validate_python(data)


def dump_verification_result(result) -> Dict[str, Any]:
    return _result_adapter.dump_python(result, mode="json")
