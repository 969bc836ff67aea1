from typing import List, Optional
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "HoldingsGate"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
    ]

    # Command surface guard (X-API-Key header), disabled when unset
    COMMAND_API_KEY: Optional[str] = None

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10

    # Verification Store Settings
    DATABASE_URL: Optional[str] = None  # JSON file store when unset
    DB_LOGGING_ENABLED: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 5
    JSON_DB_PATH: str = "data/verified_users.json"

    # Chain Access
    ALCHEMY_API_KEY: Optional[str] = None
    MONAD_RPC_URL: Optional[str] = None
    MONAD_NFT_API_URL: Optional[str] = None
    ARBITRUM_RPC_URL: Optional[str] = None
    ARBITRUM_NFT_API_URL: Optional[str] = None
    BERACHAIN_RPC_URL: Optional[str] = None
    BERACHAIN_NFT_API_URL: Optional[str] = None
    BOT_WALLET_ADDRESS: Optional[str] = None
    SCAN_BLOCK_WINDOW: int = 1000

    # Challenge amount range in native units
    CHALLENGE_MIN_AMOUNT: str = "0.00000001"
    CHALLENGE_MAX_AMOUNT: str = "0.0000001"

    # Holdings requirements, primary network
    REQUIRED_NFT_COLLECTION: Optional[str] = None
    MIN_NFT_COUNT: int = 1
    MONAD_COLLECTION_NAME: Optional[str] = None
    STAKING_CONTRACT_ADDRESS: Optional[str] = None
    STAKING_CONTRACT_ADDRESS_2: Optional[str] = None

    # Holdings requirements, secondary networks
    ARBITRUM_NFT_COLLECTION: Optional[str] = None
    ARBITRUM_MIN_NFT_COUNT: int = 1
    ARBITRUM_COLLECTION_NAME: Optional[str] = None
    BERACHAIN_NFT_COLLECTION: Optional[str] = None
    BERACHAIN_MIN_NFT_COUNT: int = 1
    BERACHAIN_COLLECTION_NAME: Optional[str] = None

    # Discord
    DISCORD_BOT_TOKEN: Optional[str] = None
    DISCORD_API_URL: str = "https://discord.com/api/v10"
    GUILD_ID: Optional[str] = None
    VERIFIED_ROLE_ID: Optional[str] = None
    ARBITRUM_ROLE_ID: Optional[str] = None
    BERACHAIN_ROLE_ID: Optional[str] = None

    # Rate Limiting (count per window)
    RATE_LIMIT_VERIFY_COUNT: int = 5
    RATE_LIMIT_VERIFY_WINDOW_SECONDS: int = 60
    RATE_LIMIT_SUBMIT_COUNT: int = 3
    RATE_LIMIT_SUBMIT_WINDOW_SECONDS: int = 300
    RATE_LIMIT_STATUS_COUNT: int = 10
    RATE_LIMIT_STATUS_WINDOW_SECONDS: int = 60
    RATE_LIMIT_RESET_COUNT: int = 3
    RATE_LIMIT_RESET_WINDOW_SECONDS: int = 300
    RATE_LIMIT_HOLDINGS_COUNT: int = 100
    RATE_LIMIT_HOLDINGS_WINDOW_SECONDS: int = 60
    RATE_LIMIT_ROLE_ASSIGNMENT_COUNT: int = 50
    RATE_LIMIT_ROLE_ASSIGNMENT_WINDOW_SECONDS: int = 60
    PENALTY_DURATION_SECONDS: int = 300
    FAILED_ATTEMPT_THRESHOLD: int = 3
    RATE_LIMIT_SWEEP_INTERVAL_SECONDS: int = 300

    # HTTP Client Settings (seconds)
    HTTP_DEFAULT_TIMEOUT: float = 30.0
    HTTP_HOLDINGS_TIMEOUT: float = 15.0
    HTTP_RPC_TIMEOUT: float = 15.0
    HTTP_DISCORD_TIMEOUT: float = 10.0
    HTTP_MAX_CONNECTIONS: int = 100
    HTTP_MAX_KEEPALIVE_CONNECTIONS: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
