from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from src.core.service.verification.amount import format_amount_for_display
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.result import VerificationResult


class ChallengeRecord(BaseModel):
    """Pending or completed wallet-ownership challenge for one user"""
    user_id: str = Field(..., description="Discord user id")
    username: str = Field(..., description="Discord username at the last interaction")
    claimed_wallet: str = Field(..., description="Wallet the user claims to control")
    challenge_amount: Decimal = Field(..., description="Exact amount to send, 10 decimal places")
    challenge_amount_base_units: str = Field(..., description="floor(amount * 10^18) as an integer string")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    verified: bool = False
    verified_at: Optional[datetime] = None
    verification_result: Optional[VerificationResult] = None

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "123456789012345678",
                "username": "holder",
                "claimed_wallet": "0x742d35Cc6634C0532925a3b844Bc454e4438f44e",
                "challenge_amount": "0.0000000534",
                "challenge_amount_base_units": "53400000000",
                "verified": False
            }
        }


class ChallengeInstructions(BaseModel):
    """What the user has to send to complete a challenge"""
    network: Network
    claimed_wallet: str
    bot_wallet: Optional[str] = None
    amount: str = Field(..., description="Amount rendered without trailing zeros")
    amount_base_units: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: ChallengeRecord, network: Network, bot_wallet: Optional[str]) -> "ChallengeInstructions":
        return cls(
            network=network,
            claimed_wallet=record.claimed_wallet,
            bot_wallet=bot_wallet,
            amount=format_amount_for_display(record.challenge_amount),
            amount_base_units=record.challenge_amount_base_units,
            created_at=record.created_at,
        )
