from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from src.core.service.verification.models.challenge import ChallengeInstructions
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.result import VerificationResult
from src.core.service.verification.models.user import NetworkVerification


class OutcomeStatus(str, Enum):
    CHALLENGE_ISSUED = "challenge_issued"
    ALREADY_VERIFIED = "already_verified"
    TRANSFER_NOT_FOUND = "transfer_not_found"
    VERIFIED = "verified"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    INVALID_WALLET = "invalid_wallet"
    INVALID_NETWORK = "invalid_network"
    PRECONDITION_FAILED = "precondition_failed"
    IN_PROGRESS = "in_progress"
    RATE_LIMITED = "rate_limited"
    ERROR = "error"


class VerificationOutcome(BaseModel):
    """Structured result of one verification command"""
    status: OutcomeStatus
    network: Network
    message: str
    wallet_address: Optional[str] = None
    challenge: Optional[ChallengeInstructions] = None
    result: Optional[VerificationResult] = None
    role_granted: bool = False

    @property
    def success(self) -> bool:
        return self.status in (OutcomeStatus.VERIFIED, OutcomeStatus.CHALLENGE_ISSUED, OutcomeStatus.ALREADY_VERIFIED)


class UserStatus(BaseModel):
    user_id: str
    username: Optional[str] = None
    verifications: Dict[Network, NetworkVerification] = Field(default_factory=dict)
    pending_challenge: Optional[ChallengeInstructions] = None
    available_networks: List[Network] = Field(default_factory=list)
    error: Optional[str] = None


class NetworkConfiguration(BaseModel):
    network: Network
    display_name: str
    is_primary: bool
    required_collection: Optional[str] = None
    collection_name: Optional[str] = None
    min_nft_count: int
    staking_contracts: List[str] = Field(default_factory=list)
    has_staking_support: bool = False
    api_configured: bool = False
    role_configured: bool = False


class ConfigurationReport(BaseModel):
    bot_wallet: Optional[str] = None
    primary_network: Network
    networks: List[NetworkConfiguration] = Field(default_factory=list)


class ResetOutcome(BaseModel):
    user_id: str
    record_removed: bool
    challenge_removed: bool
    roles_revoked: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
