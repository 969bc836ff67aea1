"""
Verification store using SQLAlchemy ORM
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError

from src.core.exceptions.base import StoreWriteFailureError
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.result import dump_verification_result, parse_verification_result
from src.core.service.verification.models.user import (
    NetworkVerification,
    StoreCapabilities,
    UserRecord,
    VerificationStats,
)
from src.core.service.verification.store import VerificationStore
from src.infra.database import DatabaseManager
from src.infra.models import VerifiedUserModel, UserVerificationModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class SqlVerificationStore(VerificationStore):
    """Verification records in the verified_users / user_verifications tables"""

    def __init__(self, database_manager: DatabaseManager):
        self.db = database_manager
        self.capabilities = StoreCapabilities(backend="sql", durable=True)

    async def initialize(self) -> None:
        await self.db.connect()

    def _sessions(self):
        factory = self.db.get_session_factory()
        if factory is None:
            raise RuntimeError("Database session factory not initialized")
        return factory()

    def _model_to_entity(self, model: VerifiedUserModel) -> UserRecord:
        """Convert SQLAlchemy model to Pydantic entity"""
        verifications = {}
        for row in model.verifications:
            network = Network(row.network)
            verifications[network] = NetworkVerification(
                network=network,
                wallet_address=row.wallet_address,
                verified_at=row.verified_at,
                verification_result=parse_verification_result(row.verification_result)
            )
        return UserRecord(
            user_id=model.user_id,
            username=model.username,
            created_at=model.created_at,
            last_updated=model.last_updated,
            verifications=verifications
        )

    async def save_verification(
        self,
        user_id: str,
        username: str,
        wallet_address: str,
        result,
        network: Network,
    ) -> NetworkVerification:
        now = datetime.now(timezone.utc)
        payload = dump_verification_result(result)

        try:
            async with self._sessions() as session:
                try:
                    user = await session.get(VerifiedUserModel, user_id)
                    if user is None:
                        user = VerifiedUserModel(
                            user_id=user_id,
                            username=username,
                            created_at=now,
                            last_updated=now
                        )
                        session.add(user)
                    else:
                        user.username = username
                        user.last_updated = now

                    row = next((v for v in user.verifications if v.network == network.value), None)
                    if row is None:
                        user.verifications.append(UserVerificationModel(
                            network=network.value,
                            wallet_address=wallet_address,
                            verified_at=now,
                            verification_result=payload
                        ))
                    else:
                        row.wallet_address = wallet_address
                        row.verified_at = now
                        row.verification_result = payload

                    await session.commit()
                except SQLAlchemyError:
                    await session.rollback()
                    raise

        except SQLAlchemyError as e:
            logger.error(
                "Failed to save verification",
                extra={
                    "user_id": user_id,
                    "network": network.value,
                    "error": str(e)
                }
            )
            raise StoreWriteFailureError(details={"user_id": user_id, "network": network.value})

        logger.info(
            "Verification saved",
            extra={"user_id": user_id, "network": network.value, "wallet_address": wallet_address}
        )
        return NetworkVerification(
            network=network,
            wallet_address=wallet_address,
            verified_at=now,
            verification_result=result
        )

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        async with self._sessions() as session:
            user = await session.get(VerifiedUserModel, user_id)
            return self._model_to_entity(user) if user else None

    async def remove_user(self, user_id: str) -> bool:
        try:
            async with self._sessions() as session:
                user = await session.get(VerifiedUserModel, user_id)
                if user is None:
                    return False
                await session.delete(user)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to remove user", extra={"user_id": user_id, "error": str(e)})
            raise StoreWriteFailureError("Failed to remove verification record", details={"user_id": user_id})

        logger.info("User verification record removed", extra={"user_id": user_id})
        return True

    async def get_stats(self) -> VerificationStats:
        async with self._sessions() as session:
            total_users = await session.scalar(select(func.count()).select_from(VerifiedUserModel))
            rows = await session.execute(
                select(
                    UserVerificationModel.network,
                    UserVerificationModel.verification_result,
                    UserVerificationModel.verified_at
                )
            )

            stats = VerificationStats(total_users=total_users or 0)
            for network, result, verified_at in rows:
                if (result or {}).get("verified"):
                    stats.verified[Network(network)] += 1
                if stats.last_verification is None or verified_at > stats.last_verification:
                    stats.last_verification = verified_at
            return stats

    async def health_check(self) -> Dict[str, Any]:
        try:
            await self.db.ping()
            return {"status": "healthy", "backend": self.capabilities.backend}
        except Exception as e:
            return {"status": "unhealthy", "backend": self.capabilities.backend, "message": str(e)}

    async def close(self) -> None:
        await self.db.close()
