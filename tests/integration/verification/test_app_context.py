import pytest
from unittest.mock import AsyncMock, patch

from src.core.context import AppContext
from src.core.service.verification.models.network import Network
from src.core.service.verification.protocols.rpc import EvmRpcClient
from src.core.service.verification.role_grantor import DiscordRoleGrantor, LoggingRoleGrantor

BOT_WALLET = "0x" + "b" * 40


@pytest.mark.asyncio
async def test_create_without_chain_access(make_settings, fake_redis, tmp_path):
    """Without an API key or RPC URL transfers cannot be confirmed, but the context still builds"""
    settings = make_settings(BOT_WALLET_ADDRESS=BOT_WALLET, JSON_DB_PATH=str(tmp_path / "verified.json"))

    with patch("src.core.context.get_redis", AsyncMock(return_value=fake_redis)):
        context = await AppContext.create(settings)

    assert context.verification_service.scanner is None
    assert isinstance(context.role_grantor, LoggingRoleGrantor)
    assert context.verification_store.capabilities.backend == "json"
    assert set(context.registry.get_supported_networks()) == set(Network)

    await context.start()
    assert context.ready is True
    await context.close()

    assert context.ready is False
    assert fake_redis.closed is True


@pytest.mark.asyncio
async def test_primary_rpc_client_is_shared(make_settings, fake_redis, tmp_path):
    settings = make_settings(
        ALCHEMY_API_KEY="test-key",
        BOT_WALLET_ADDRESS=BOT_WALLET,
        DISCORD_BOT_TOKEN="token",
        GUILD_ID="999999999999999999",
        JSON_DB_PATH=str(tmp_path / "verified.json"),
    )

    with patch("src.core.context.get_redis", AsyncMock(return_value=fake_redis)):
        context = await AppContext.create(settings)

    try:
        scanner = context.verification_service.scanner
        primary = context.registry.get_verifier(Network.MONAD_TESTNET)
        secondary = context.registry.get_verifier(Network.ARBITRUM)

        assert isinstance(scanner.rpc, EvmRpcClient)
        assert primary.rpc is scanner.rpc
        assert scanner.rpc.rpc_url == "https://monad-testnet.g.alchemy.com/v2/test-key"
        assert secondary.rpc is None
        assert secondary.holdings.base_url == "https://arb-mainnet.g.alchemy.com/nft/v3/test-key"
        assert isinstance(context.role_grantor, DiscordRoleGrantor)
    finally:
        await context.close()


@pytest.mark.asyncio
async def test_malformed_bot_wallet_rejected(make_settings):
    settings = make_settings(BOT_WALLET_ADDRESS="0x1234")
    redis = AsyncMock()

    with patch("src.core.context.get_redis", redis):
        with pytest.raises(ValueError):
            await AppContext.create(settings)

    redis.assert_not_called()
