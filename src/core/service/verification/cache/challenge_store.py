from typing import Optional

import redis.asyncio as redis

from src.core.service.verification.models.challenge import ChallengeRecord
from src.core.logger.logger import logger


class ChallengeStore:
    """Redis store for wallet-ownership challenges, one key per user"""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client
        self.key_prefix = "verify:challenge:"

    def _get_key(self, user_id: str) -> str:
        """Get Redis key for user id"""
        return f"{self.key_prefix}{user_id}"

    def _serialize_challenge(self, challenge: ChallengeRecord) -> str:
        """Serialize challenge to JSON string"""
        return challenge.model_dump_json()

    def _deserialize_challenge(self, data: str) -> ChallengeRecord:
        """Deserialize JSON string to ChallengeRecord"""
        return ChallengeRecord.model_validate_json(data)

    async def save_challenge(self, challenge: ChallengeRecord) -> None:
        """Save challenge to Redis. No TTL: pending challenges survive restarts."""
        try:
            key = self._get_key(challenge.user_id)
            await self.redis.set(key, self._serialize_challenge(challenge))
            logger.debug(
                "Saved challenge",
                extra={
                    "user_id": challenge.user_id,
                    "wallet_address": challenge.claimed_wallet,
                    "verified": challenge.verified
                }
            )

        except Exception as e:
            logger.error(
                "Error saving challenge",
                extra={
                    "user_id": challenge.user_id,
                    "error": str(e)
                }
            )
            raise

    async def get_challenge(self, user_id: str) -> Optional[ChallengeRecord]:
        """Get challenge from Redis if exists"""
        try:
            data = await self.redis.get(self._get_key(user_id))
            if not data:
                return None
            return self._deserialize_challenge(data)

        except Exception as e:
            logger.error(
                "Error getting challenge",
                extra={
                    "user_id": user_id,
                    "error": str(e)
                }
            )
            raise

    async def delete_challenge(self, user_id: str) -> bool:
        """Delete challenge from Redis, returning whether one existed"""
        try:
            deleted = await self.redis.delete(self._get_key(user_id))
            logger.debug(
                "Deleted challenge",
                extra={"user_id": user_id, "deleted": bool(deleted)}
            )
            return bool(deleted)

        except Exception as e:
            logger.error(
                "Error deleting challenge",
                extra={
                    "user_id": user_id,
                    "error": str(e)
                }
            )
            raise
