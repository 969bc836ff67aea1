"""
Multi-network verification orchestrator.

Primary network flow:
    start_verification -> challenge issued (or resumed)
    confirm_transaction -> transfer found -> holdings/staking check -> persisted -> role granted

Secondary networks reuse the wallet proven on the primary network and only run
the holdings check. Every operation re-reads the store; nothing is cached here.
"""

import asyncio
from typing import Dict, List, Optional
from weakref import WeakValueDictionary

from src.core.exceptions.base import NotFoundError, PreconditionFailedError, ValidationError
from src.core.exceptions.handler import ServiceError
from src.core.service.rate_limit.rate_limiter import RateLimiter
from src.core.service.verification.challenge_service import ChallengeService
from src.core.service.verification.models.challenge import ChallengeInstructions
from src.core.service.verification.models.network import Network, NetworkConfig, PRIMARY_NETWORK
from src.core.service.verification.models.outcome import (
    ConfigurationReport,
    NetworkConfiguration,
    OutcomeStatus,
    ResetOutcome,
    UserStatus,
    VerificationOutcome,
)
from src.core.service.verification.protocols.base import NetworkRegistry
from src.core.service.verification.role_grantor import RoleGrantor
from src.core.service.verification.store import VerificationStore
from src.core.service.verification.transaction_scanner import TransactionScanner
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class VerificationService:
    """Drives challenge, transfer confirmation, holdings checks and role grants"""

    def __init__(
        self,
        challenge_service: ChallengeService,
        verification_store: VerificationStore,
        scanner: TransactionScanner,
        registry: NetworkRegistry,
        role_grantor: RoleGrantor,
        rate_limiter: RateLimiter,
        networks: Dict[Network, NetworkConfig],
        bot_wallet: Optional[str],
    ):
        self.challenges = challenge_service
        self.store = verification_store
        self.scanner = scanner
        self.registry = registry
        self.role_grantor = role_grantor
        self.rate_limiter = rate_limiter
        self.networks = networks
        self.bot_wallet = bot_wallet
        self._user_locks: "WeakValueDictionary[str, asyncio.Lock]" = WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._user_locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._user_locks[user_id] = lock
        return lock

    def _outcome(self, status: OutcomeStatus, network: Network, message: str, **kwargs) -> VerificationOutcome:
        return VerificationOutcome(status=status, network=network, message=message, **kwargs)

    def _log_failure(self, error: Exception, user_id: str, operation: str, network: Optional[Network] = None) -> str:
        """Log a failed operation and return the message to show the user"""
        extra = {"user_id": user_id}
        if network is not None:
            extra["network"] = network.value

        if isinstance(error, ServiceError):
            extra["error_code"] = error.code
            logger.warning(f"{operation} failed: {error.code}", extra=extra)
            return error.message

        extra["error"] = str(error)
        logger.error(f"{operation} failed unexpectedly", extra=extra, exc_info=True)
        return f"{operation} failed due to an internal error"

    def _error_outcome(self, network: Network, error: Exception, user_id: str, operation: str) -> VerificationOutcome:
        return self._outcome(OutcomeStatus.ERROR, network, self._log_failure(error, user_id, operation, network))

    async def _grant_role(self, user_id: str, network: Network) -> bool:
        role_id = self.networks[network].role_id
        if not role_id:
            logger.warning("No role configured for network", extra={"network": network.value})
            return False

        decision = self.rate_limiter.check_global_limit("role_assignment")
        if not decision.allowed:
            logger.warning(
                "Role assignment deferred by global rate limit",
                extra={"user_id": user_id, "network": network.value}
            )
            return False

        return await self.role_grantor.grant(user_id, role_id)

    async def _check_holdings(self, network: Network, wallet_address: str):
        """Run the network's verifier; None when the shared holdings quota is exhausted."""
        decision = self.rate_limiter.check_global_limit("holdings_request")
        if not decision.allowed:
            return None
        verifier = self.registry.get_verifier(network)
        if verifier is None:
            raise ValidationError(f"Network not supported: {network.value}")
        return await verifier.verify(wallet_address)

    async def start_verification(self, user_id: str, username: str, wallet_address: str) -> VerificationOutcome:
        network = PRIMARY_NETWORK
        try:
            verified_wallet = await self.store.get_verified_wallet(user_id)
            if verified_wallet:
                return self._outcome(
                    OutcomeStatus.ALREADY_VERIFIED,
                    network,
                    "Wallet already verified on the primary network",
                    wallet_address=verified_wallet
                )

            challenge = await self.challenges.create_or_resume_challenge(user_id, username, wallet_address)
            if challenge.verified:
                return self._outcome(
                    OutcomeStatus.ALREADY_VERIFIED,
                    network,
                    "Challenge already completed",
                    wallet_address=challenge.claimed_wallet
                )

            instructions = ChallengeInstructions.from_record(challenge, network, self.bot_wallet)
            return self._outcome(
                OutcomeStatus.CHALLENGE_ISSUED,
                network,
                f"Send exactly {instructions.amount} to the bot wallet from {challenge.claimed_wallet}",
                wallet_address=challenge.claimed_wallet,
                challenge=instructions
            )

        except ValidationError as e:
            return self._outcome(OutcomeStatus.INVALID_WALLET, network, e.message, wallet_address=wallet_address)
        except Exception as e:
            return self._error_outcome(network, e, user_id, "Start verification")

    async def confirm_transaction(self, user_id: str, username: str) -> VerificationOutcome:
        network = PRIMARY_NETWORK
        lock = self._lock_for(user_id)
        if lock.locked():
            return self._outcome(OutcomeStatus.IN_PROGRESS, network, "A verification for this user is already running")

        async with lock:
            try:
                challenge = await self.challenges.find_by_user(user_id)
                if not challenge:
                    raise NotFoundError("No verification challenge found. Start verification first.")

                if not self.bot_wallet or self.scanner is None:
                    return self._outcome(OutcomeStatus.ERROR, network, "Transaction scanning is not configured")

                found = await self.scanner.confirm_transfer(
                    challenge.claimed_wallet,
                    self.bot_wallet,
                    challenge.challenge_amount_base_units
                )
                if not found:
                    return self._outcome(
                        OutcomeStatus.TRANSFER_NOT_FOUND,
                        network,
                        "Transaction not found in recent blocks. Wait for confirmation and try again.",
                        wallet_address=challenge.claimed_wallet,
                        challenge=ChallengeInstructions.from_record(challenge, network, self.bot_wallet)
                    )

                result = await self._check_holdings(network, challenge.claimed_wallet)
                if result is None:
                    return self._outcome(
                        OutcomeStatus.RATE_LIMITED,
                        network,
                        "Holdings lookups are busy. Try again shortly.",
                        wallet_address=challenge.claimed_wallet
                    )
                if not result.verified:
                    return self._outcome(
                        OutcomeStatus.FAILED,
                        network,
                        result.message or "NFT requirements not met",
                        wallet_address=challenge.claimed_wallet,
                        result=result
                    )

                await self.store.save_verification(user_id, username, challenge.claimed_wallet, result, network)
                await self.challenges.mark_verified(user_id, result)
                role_granted = await self._grant_role(user_id, network)

                logger.info(
                    "Primary verification complete",
                    extra={
                        "user_id": user_id,
                        "wallet_address": challenge.claimed_wallet,
                        "method": result.method,
                        "role_granted": role_granted
                    }
                )
                return self._outcome(
                    OutcomeStatus.VERIFIED,
                    network,
                    result.message or "Verification successful",
                    wallet_address=challenge.claimed_wallet,
                    result=result,
                    role_granted=role_granted
                )

            except NotFoundError as e:
                return self._outcome(OutcomeStatus.NOT_FOUND, network, e.message)
            except Exception as e:
                return self._error_outcome(network, e, user_id, "Confirm transaction")

    async def verify_secondary(self, user_id: str, username: str, network: Network) -> VerificationOutcome:
        if network.is_primary:
            return self._outcome(
                OutcomeStatus.INVALID_NETWORK,
                network,
                "The primary network is verified with a challenge transfer"
            )

        lock = self._lock_for(user_id)
        if lock.locked():
            return self._outcome(OutcomeStatus.IN_PROGRESS, network, "A verification for this user is already running")

        async with lock:
            try:
                wallet_address = await self.store.get_verified_wallet(user_id)
                if not wallet_address:
                    raise PreconditionFailedError(
                        f"Verify your wallet on {self.networks[PRIMARY_NETWORK].display_name} first",
                        details={"network": network.value}
                    )

                result = await self._check_holdings(network, wallet_address)
                if result is None:
                    return self._outcome(
                        OutcomeStatus.RATE_LIMITED,
                        network,
                        "Holdings lookups are busy. Try again shortly.",
                        wallet_address=wallet_address
                    )
                if not result.verified:
                    return self._outcome(
                        OutcomeStatus.FAILED,
                        network,
                        result.message or "NFT requirements not met",
                        wallet_address=wallet_address,
                        result=result
                    )

                await self.store.save_verification(user_id, username, wallet_address, result, network)
                role_granted = await self._grant_role(user_id, network)

                logger.info(
                    "Secondary verification complete",
                    extra={
                        "user_id": user_id,
                        "network": network.value,
                        "wallet_address": wallet_address,
                        "role_granted": role_granted
                    }
                )
                return self._outcome(
                    OutcomeStatus.VERIFIED,
                    network,
                    result.message or "Verification successful",
                    wallet_address=wallet_address,
                    result=result,
                    role_granted=role_granted
                )

            except PreconditionFailedError as e:
                return self._outcome(OutcomeStatus.PRECONDITION_FAILED, network, e.message)
            except Exception as e:
                return self._error_outcome(network, e, user_id, "Secondary verification")

    async def get_status(self, user_id: str) -> UserStatus:
        try:
            user = await self.store.get_user(user_id)
            challenge = await self.challenges.find_by_user(user_id)
        except Exception as e:
            return UserStatus(user_id=user_id, error=self._log_failure(e, user_id, "Status lookup"))

        verifications = dict(user.verifications) if user else {}

        pending = None
        if challenge and not challenge.verified:
            pending = ChallengeInstructions.from_record(challenge, PRIMARY_NETWORK, self.bot_wallet)

        if PRIMARY_NETWORK in verifications:
            available: List[Network] = [n for n in self.networks if n not in verifications]
        else:
            available = [PRIMARY_NETWORK]

        return UserStatus(
            user_id=user_id,
            username=user.username if user else (challenge.username if challenge else None),
            verifications=verifications,
            pending_challenge=pending,
            available_networks=available
        )

    def get_configuration(self) -> ConfigurationReport:
        return ConfigurationReport(
            bot_wallet=self.bot_wallet,
            primary_network=PRIMARY_NETWORK,
            networks=[
                NetworkConfiguration(
                    network=config.network,
                    display_name=config.display_name,
                    is_primary=config.is_primary,
                    required_collection=config.required_collection,
                    collection_name=config.collection_name,
                    min_nft_count=config.min_nft_count,
                    staking_contracts=list(config.staking_contracts) if config.is_primary else [],
                    has_staking_support=config.has_staking_support,
                    api_configured=bool(config.nft_api_url),
                    role_configured=bool(config.role_id)
                )
                for config in self.networks.values()
            ]
        )

    async def reset(self, user_id: str) -> ResetOutcome:
        """
        Remove the user's record and challenge and revoke every configured role.

        Each step runs even when an earlier one fails, so roles are revoked
        whatever state the stores are in. Failed steps are listed in `errors`.
        """
        errors: List[str] = []

        try:
            record_removed = await self.store.remove_user(user_id)
        except Exception as e:
            record_removed = False
            errors.append(self._log_failure(e, user_id, "Record removal"))

        try:
            challenge_removed = await self.challenges.remove_by_user(user_id)
        except Exception as e:
            challenge_removed = False
            errors.append(self._log_failure(e, user_id, "Challenge removal"))

        revoked = []
        for config in self.networks.values():
            if not config.role_id:
                continue
            try:
                if await self.role_grantor.revoke(user_id, config.role_id):
                    revoked.append(config.role_id)
            except Exception as e:
                errors.append(self._log_failure(e, user_id, "Role revoke", config.network))

        logger.info(
            "Verification reset",
            extra={
                "user_id": user_id,
                "record_removed": record_removed,
                "challenge_removed": challenge_removed,
                "roles_revoked": len(revoked),
                "failed_steps": len(errors)
            }
        )
        return ResetOutcome(
            user_id=user_id,
            record_removed=record_removed,
            challenge_removed=challenge_removed,
            roles_revoked=revoked,
            errors=errors
        )
