"""
Verification store interface and backend selection.

The backend is chosen once at startup: SQL when DATABASE_URL is set and the
database accepts the schema, otherwise a JSON file. A SQL backend that fails to
initialise leaves the JSON store in place, flagged as degraded.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from src.core.service.verification.models.network import Network, PRIMARY_NETWORK
from src.core.service.verification.models.user import (
    NetworkVerification,
    StoreCapabilities,
    UserRecord,
    VerificationStats,
)
from src.infra.config.settings import Settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class VerificationStore(ABC):
    """Durable per-user verification records"""

    capabilities: StoreCapabilities

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def save_verification(
        self,
        user_id: str,
        username: str,
        wallet_address: str,
        result,
        network: Network,
    ) -> NetworkVerification:
        """
        Upsert the user's verification for a network.

        Raises:
            StoreWriteFailureError: the record could not be persisted
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        pass

    @abstractmethod
    async def remove_user(self, user_id: str) -> bool:
        pass

    @abstractmethod
    async def get_stats(self) -> VerificationStats:
        pass

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    async def get_user_verifications(self, user_id: str) -> Dict[Network, NetworkVerification]:
        user = await self.get_user(user_id)
        return dict(user.verifications) if user else {}

    async def has_network_verification(self, user_id: str, network: Network) -> bool:
        verifications = await self.get_user_verifications(user_id)
        return network in verifications

    async def get_network_wallet(self, user_id: str, network: Network) -> Optional[str]:
        verifications = await self.get_user_verifications(user_id)
        verification = verifications.get(network)
        return verification.wallet_address if verification else None

    async def get_verified_wallet(self, user_id: str) -> Optional[str]:
        """Wallet proven on the primary network, if any"""
        return await self.get_network_wallet(user_id, PRIMARY_NETWORK)


def normalize_database_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


async def create_verification_store(settings: Settings) -> VerificationStore:
    """Select and initialise the verification store backend."""
    from src.infra.repository.json_verification_store import JsonVerificationStore

    if settings.DATABASE_URL:
        from src.infra.database import DatabaseManager
        from src.infra.repository.verification_repository import SqlVerificationStore

        sql_store = SqlVerificationStore(DatabaseManager(normalize_database_url(settings.DATABASE_URL)))
        try:
            await sql_store.initialize()
            logger.info("Using SQL verification store")
            return sql_store
        except Exception as e:
            logger.error(
                "SQL verification store unavailable, falling back to JSON file",
                extra={"error_type": type(e).__name__, "error": str(e)}
            )
            await sql_store.close()
            json_store = JsonVerificationStore(settings.JSON_DB_PATH)
            json_store.capabilities.degraded = True
            json_store.capabilities.reason = f"SQL initialisation failed: {type(e).__name__}"
            await json_store.initialize()
            return json_store

    json_store = JsonVerificationStore(settings.JSON_DB_PATH)
    await json_store.initialize()
    logger.info("Using JSON file verification store", extra={"path": settings.JSON_DB_PATH})
    return json_store
