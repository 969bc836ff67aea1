from pydantic import BaseModel, Field


class StartVerificationRequestDto(BaseModel):
    """Request to issue (or resume) a primary network challenge"""
    user_id: str = Field(..., pattern=r"^\d{17,19}$", description="Discord user id")
    username: str = Field(..., min_length=1, max_length=100, description="Discord username")
    wallet_address: str = Field(..., description="Wallet to verify (0x + 40 hex chars)")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "123456789012345678",
                "username": "holder",
                "wallet_address": "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
            }
        }


class UserCommandRequestDto(BaseModel):
    """Request carrying only the acting user"""
    user_id: str = Field(..., pattern=r"^\d{17,19}$", description="Discord user id")
    username: str = Field(..., min_length=1, max_length=100, description="Discord username")

    class Config:
        json_schema_extra = {
            "example": {
                "user_id": "123456789012345678",
                "username": "holder"
            }
        }
