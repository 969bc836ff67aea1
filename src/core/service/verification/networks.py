"""Per-network configuration assembled from application settings."""

from typing import Dict, Optional

from src.core.service.verification.models.network import Network, NetworkConfig
from src.core.service.verification.protocols.staking import filter_staking_contracts
from src.infra.config.settings import Settings

# Alchemy network slugs
ALCHEMY_SLUGS = {
    Network.MONAD_TESTNET: "monad-testnet",
    Network.ARBITRUM: "arb-mainnet",
    Network.BERACHAIN: "berachain-mainnet",
}

DISPLAY_NAMES = {
    Network.MONAD_TESTNET: "Monad Testnet",
    Network.ARBITRUM: "Arbitrum",
    Network.BERACHAIN: "Berachain",
}


def _alchemy_rpc_url(network: Network, api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    return f"https://{ALCHEMY_SLUGS[network]}.g.alchemy.com/v2/{api_key}"


def _alchemy_nft_api_url(network: Network, api_key: Optional[str]) -> Optional[str]:
    if not api_key:
        return None
    return f"https://{ALCHEMY_SLUGS[network]}.g.alchemy.com/nft/v3/{api_key}"


def build_network_configs(settings: Settings) -> Dict[Network, NetworkConfig]:
    """
    Build the configuration of every supported network.

    Raises:
        pydantic.ValidationError: a configured collection address or role id is malformed
    """
    key = settings.ALCHEMY_API_KEY

    return {
        Network.MONAD_TESTNET: NetworkConfig(
            network=Network.MONAD_TESTNET,
            display_name=DISPLAY_NAMES[Network.MONAD_TESTNET],
            rpc_url=settings.MONAD_RPC_URL or _alchemy_rpc_url(Network.MONAD_TESTNET, key),
            nft_api_url=settings.MONAD_NFT_API_URL or _alchemy_nft_api_url(Network.MONAD_TESTNET, key),
            required_collection=settings.REQUIRED_NFT_COLLECTION,
            collection_name=settings.MONAD_COLLECTION_NAME,
            min_nft_count=settings.MIN_NFT_COUNT,
            staking_contracts=filter_staking_contracts(
                [settings.STAKING_CONTRACT_ADDRESS, settings.STAKING_CONTRACT_ADDRESS_2]
            ),
            role_id=settings.VERIFIED_ROLE_ID,
        ),
        Network.ARBITRUM: NetworkConfig(
            network=Network.ARBITRUM,
            display_name=DISPLAY_NAMES[Network.ARBITRUM],
            rpc_url=settings.ARBITRUM_RPC_URL or _alchemy_rpc_url(Network.ARBITRUM, key),
            nft_api_url=settings.ARBITRUM_NFT_API_URL or _alchemy_nft_api_url(Network.ARBITRUM, key),
            required_collection=settings.ARBITRUM_NFT_COLLECTION,
            collection_name=settings.ARBITRUM_COLLECTION_NAME,
            min_nft_count=settings.ARBITRUM_MIN_NFT_COUNT,
            role_id=settings.ARBITRUM_ROLE_ID,
        ),
        Network.BERACHAIN: NetworkConfig(
            network=Network.BERACHAIN,
            display_name=DISPLAY_NAMES[Network.BERACHAIN],
            rpc_url=settings.BERACHAIN_RPC_URL or _alchemy_rpc_url(Network.BERACHAIN, key),
            nft_api_url=settings.BERACHAIN_NFT_API_URL or _alchemy_nft_api_url(Network.BERACHAIN, key),
            required_collection=settings.BERACHAIN_NFT_COLLECTION,
            collection_name=settings.BERACHAIN_COLLECTION_NAME,
            min_nft_count=settings.BERACHAIN_MIN_NFT_COUNT,
            role_id=settings.BERACHAIN_ROLE_ID,
        ),
    }
