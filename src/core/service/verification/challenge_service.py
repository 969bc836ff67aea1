from datetime import datetime, timezone
from typing import Optional

from src.core.exceptions.base import NotFoundError, ValidationError
from src.core.exceptions.handler import ServiceErrorCode
from src.core.service.verification.amount import (
    generate_challenge_amount,
    to_base_units,
    is_valid_wallet_address,
)
from src.core.service.verification.cache.challenge_store import ChallengeStore
from src.core.service.verification.models.challenge import ChallengeRecord
from src.core.logger.logger import logger


class ChallengeService:
    """Create, resume and complete wallet-ownership challenges"""

    def __init__(self, challenge_store: ChallengeStore, amount_generator=generate_challenge_amount):
        self.store = challenge_store
        self.amount_generator = amount_generator

    async def create_or_resume_challenge(
        self,
        user_id: str,
        username: str,
        claimed_wallet: str
    ) -> ChallengeRecord:
        """
        Issue a challenge for the user, or resume the pending one.

        An unverified challenge keeps its amount; only the claimed wallet and
        username are refreshed. A verified challenge is returned unchanged.

        Raises:
            ValidationError: claimed_wallet is not a 0x-prefixed 40 hex char address
        """
        if not is_valid_wallet_address(claimed_wallet):
            raise ValidationError(
                "Invalid wallet address format (must be 0x followed by 40 hex characters)",
                code=ServiceErrorCode.INVALID_ADDRESS,
                details={"wallet_address": claimed_wallet}
            )

        existing = await self.store.get_challenge(user_id)
        if existing and existing.verified:
            logger.info("Verified challenge exists", extra={"user_id": user_id})
            return existing

        if existing:
            existing.claimed_wallet = claimed_wallet
            existing.username = username
            await self.store.save_challenge(existing)
            logger.info(
                "Resumed pending challenge",
                extra={
                    "user_id": user_id,
                    "wallet_address": claimed_wallet,
                    "amount_base_units": existing.challenge_amount_base_units
                }
            )
            return existing

        amount = self.amount_generator()
        challenge = ChallengeRecord(
            user_id=user_id,
            username=username,
            claimed_wallet=claimed_wallet,
            challenge_amount=amount,
            challenge_amount_base_units=to_base_units(amount),
        )
        await self.store.save_challenge(challenge)
        logger.info(
            "Created new challenge",
            extra={
                "user_id": user_id,
                "wallet_address": claimed_wallet,
                "amount_base_units": challenge.challenge_amount_base_units
            }
        )
        return challenge

    async def mark_verified(self, user_id: str, result) -> ChallengeRecord:
        """
        Record a successful verification on the user's challenge.

        Raises:
            NotFoundError: the user has no challenge
        """
        challenge = await self.store.get_challenge(user_id)
        if not challenge:
            raise NotFoundError("No verification challenge found", details={"user_id": user_id})

        challenge.verified = True
        challenge.verified_at = datetime.now(timezone.utc)
        challenge.verification_result = result
        await self.store.save_challenge(challenge)
        logger.info("Challenge marked verified", extra={"user_id": user_id})
        return challenge

    async def find_by_user(self, user_id: str) -> Optional[ChallengeRecord]:
        return await self.store.get_challenge(user_id)

    async def remove_by_user(self, user_id: str) -> bool:
        removed = await self.store.delete_challenge(user_id)
        if removed:
            logger.info("Removed challenge", extra={"user_id": user_id})
        return removed
