"""
Network abstraction layer for holdings verification.
Each supported network registers one verifier; the orchestrator looks them up by network.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from src.core.service.verification.models.network import Network, NetworkConfig
from src.core.service.verification.models.result import OwnershipCheck
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class NetworkVerifier(ABC):
    """
    Abstract base class for NFT holdings verification on one network.
    """

    def __init__(self, config: NetworkConfig):
        self.config = config
        self.network = config.network
        self.logger = get_logger(f"{__name__}.{self.network.value}")

    @abstractmethod
    async def verify_ownership(self, wallet_address: str) -> OwnershipCheck:
        """
        Check direct holdings of the configured collection

        Args:
            wallet_address: Wallet to inspect

        Returns:
            OwnershipCheck: verified=False with error set when the lookup failed
        """
        pass

    @abstractmethod
    async def verify(self, wallet_address: str):
        """
        Full verification for this network, producing a VerificationResult variant
        """
        pass

    async def close(self) -> None:
        """Release network clients"""
        pass

    def get_network_info(self) -> Dict[str, object]:
        """Get network information"""
        return {
            "network": self.network.value,
            "display_name": self.config.display_name,
            "required_collection": self.config.required_collection,
            "min_nft_count": self.config.min_nft_count,
            "api_configured": bool(self.config.nft_api_url)
        }


class NetworkRegistry:
    """Registry for managing network verifiers"""

    def __init__(self):
        self._verifiers: Dict[Network, NetworkVerifier] = {}
        self.logger = get_logger(__name__)

    def register(self, verifier: NetworkVerifier) -> None:
        """Register a network verifier"""
        self._verifiers[verifier.network] = verifier
        self.logger.info(f"Registered network verifier: {verifier.network.value}")

    def get_verifier(self, network: Network) -> Optional[NetworkVerifier]:
        """Get a network verifier by network"""
        return self._verifiers.get(network)

    def get_supported_networks(self) -> List[Network]:
        """Get list of supported networks"""
        return list(self._verifiers.keys())

    async def close_all(self) -> None:
        """Close every registered verifier"""
        for network, verifier in self._verifiers.items():
            try:
                await verifier.close()
            except Exception as e:
                self.logger.error(f"Failed to close {network.value} verifier: {e}")
