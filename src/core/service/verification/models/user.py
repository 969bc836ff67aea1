from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, Field

from src.core.service.verification.models.network import Network
from src.core.service.verification.models.result import VerificationResult


class NetworkVerification(BaseModel):
    """Latest successful verification of a user on one network"""
    network: Network
    wallet_address: str
    verified_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    verification_result: VerificationResult


class UserRecord(BaseModel):
    """Persistent verification record for one Discord user"""
    user_id: str
    username: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    verifications: Dict[Network, NetworkVerification] = Field(default_factory=dict)

    def get_verification(self, network: Network) -> Optional[NetworkVerification]:
        return self.verifications.get(network)


class VerificationStats(BaseModel):
    """Aggregate counts reported by the stats endpoint"""
    total_users: int = 0
    verified: Dict[Network, int] = Field(default_factory=lambda: {network: 0 for network in Network})
    last_verification: Optional[datetime] = None


class StoreCapabilities(BaseModel):
    """Describes the verification store chosen at startup"""
    backend: str
    durable: bool = True
    degraded: bool = False
    reason: Optional[str] = None
