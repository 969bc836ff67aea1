"""
Application context: every long-lived collaborator, created at startup and
torn down at shutdown. Request handlers receive it through app.state.
"""

import os
import time
from typing import Any

from src.core.service.rate_limit.rate_limiter import RateLimitConfig, RateLimiter
from src.core.service.verification.cache.challenge_store import ChallengeStore
from src.core.service.verification.challenge_service import ChallengeService
from src.core.service.verification.models.network import PRIMARY_NETWORK
from src.core.service.verification.networks import build_network_configs
from src.core.service.verification.protocols.base import NetworkRegistry
from src.core.service.verification.protocols.evm import create_evm_verifier
from src.core.service.verification.protocols.rpc import EvmRpcClient
from src.core.service.verification.role_grantor import DiscordRoleGrantor, LoggingRoleGrantor, RoleGrantor
from src.core.service.verification.store import VerificationStore, create_verification_store
from src.core.service.verification.transaction_scanner import TransactionScanner
from src.core.service.verification.verification_service import VerificationService
from src.core.service.verification.amount import is_valid_wallet_address
from src.infra.config.redis import get_redis
from src.infra.config.settings import Settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class AppContext:
    """Holds the services shared by all requests"""

    def __init__(
        self,
        settings: Settings,
        redis_client: Any,
        verification_store: VerificationStore,
        rate_limiter: RateLimiter,
        role_grantor: RoleGrantor,
        registry: NetworkRegistry,
        verification_service: VerificationService,
    ):
        self.settings = settings
        self.redis = redis_client
        self.verification_store = verification_store
        self.rate_limiter = rate_limiter
        self.role_grantor = role_grantor
        self.registry = registry
        self.verification_service = verification_service
        self.started_at = time.time()
        self.pid = os.getpid()
        self.ready = False

    @classmethod
    async def create(cls, settings: Settings) -> "AppContext":
        """Build every collaborator from settings"""
        if settings.BOT_WALLET_ADDRESS and not is_valid_wallet_address(settings.BOT_WALLET_ADDRESS):
            raise ValueError("BOT_WALLET_ADDRESS is not a valid wallet address")

        networks = build_network_configs(settings)
        primary = networks[PRIMARY_NETWORK]

        rpc_client = EvmRpcClient(primary.rpc_url) if primary.rpc_url else None
        if rpc_client is None:
            logger.warning("Primary network RPC not configured; transfers cannot be confirmed")

        registry = NetworkRegistry()
        for config in networks.values():
            registry.register(create_evm_verifier(config, rpc_client if config.is_primary else None))

        redis_client = await get_redis(settings)
        verification_store = await create_verification_store(settings)
        rate_limiter = RateLimiter(RateLimitConfig(settings))

        if settings.DISCORD_BOT_TOKEN and settings.GUILD_ID:
            role_grantor: RoleGrantor = DiscordRoleGrantor(
                settings.DISCORD_BOT_TOKEN, settings.GUILD_ID, settings.DISCORD_API_URL
            )
        else:
            logger.warning("Discord bot token or guild not configured; role changes are only logged")
            role_grantor = LoggingRoleGrantor()

        scanner = TransactionScanner(rpc_client, settings.SCAN_BLOCK_WINDOW) if rpc_client else None

        verification_service = VerificationService(
            challenge_service=ChallengeService(ChallengeStore(redis_client)),
            verification_store=verification_store,
            scanner=scanner,
            registry=registry,
            role_grantor=role_grantor,
            rate_limiter=rate_limiter,
            networks=networks,
            bot_wallet=settings.BOT_WALLET_ADDRESS,
        )

        return cls(
            settings=settings,
            redis_client=redis_client,
            verification_store=verification_store,
            rate_limiter=rate_limiter,
            role_grantor=role_grantor,
            registry=registry,
            verification_service=verification_service,
        )

    async def start(self) -> None:
        self.rate_limiter.start()
        self.ready = True

    @property
    def uptime_seconds(self) -> float:
        return round(time.time() - self.started_at, 3)

    async def close(self) -> None:
        """Shut down in dependency order; the store drains its in-flight write first"""
        self.ready = False
        await self.rate_limiter.stop()

        try:
            await self.verification_store.close()
        except Exception as e:
            logger.error(f"Error closing verification store: {e}")

        await self.registry.close_all()

        try:
            await self.role_grantor.close()
        except Exception as e:
            logger.error(f"Error closing role grantor: {e}")

        if self.redis is not None:
            try:
                await self.redis.aclose()
                await self.redis.connection_pool.disconnect()
            except Exception as e:
                logger.error(f"Error closing Redis client: {e}")
