"""
EVM holdings verification.
Direct ownership comes from the holdings lookup API; on the primary network
staking contracts are queried as a fallback.
"""

from typing import List, Optional

from src.core.exceptions.base import UpstreamUnavailableError
from src.core.service.verification.models.network import NetworkConfig
from src.core.service.verification.models.result import (
    BothFailedResult,
    DirectOwnershipResult,
    ErrorResult,
    InsufficientStakedResult,
    OwnedToken,
    OwnershipCheck,
    OwnershipDetails,
    StakedResult,
)
from src.core.service.verification.protocols.base import NetworkVerifier
from src.core.service.verification.protocols.holdings import HoldingsClient, HoldingsPage
from src.core.service.verification.protocols.rpc import EvmRpcClient
from src.core.service.verification.protocols.staking import StakingContractReader
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

STAKED_IDS_SHOWN = 10


class EVMOwnershipVerifier(NetworkVerifier):
    """NFT holdings verifier for one EVM network"""

    def __init__(
        self,
        config: NetworkConfig,
        holdings_client: Optional[HoldingsClient] = None,
        rpc_client: Optional[EvmRpcClient] = None,
    ):
        super().__init__(config)
        self.holdings = holdings_client
        self.rpc = rpc_client
        self.staking = StakingContractReader(rpc_client) if rpc_client else None

    def _failed_check(self, error: str) -> OwnershipCheck:
        return OwnershipCheck(
            verified=False,
            collection_filtered=bool(self.config.required_collection),
            required_collection=self.config.required_collection,
            min_required=self.config.min_nft_count,
            error=error,
            details=OwnershipDetails(
                collection_name=self._fallback_collection_name(),
                message=f"Verification failed: {error}",
            ),
        )

    def _fallback_collection_name(self) -> Optional[str]:
        if not self.config.required_collection:
            return None
        return self.config.collection_name or self.config.required_collection

    def _evaluate(self, page: HoldingsPage) -> OwnershipCheck:
        minimum = self.config.min_nft_count
        collection = self.config.required_collection

        if not collection:
            owned = len(page.owned_nfts)
            return OwnershipCheck(
                verified=owned >= minimum,
                owned_count=owned,
                total_nfts=page.total_count,
                min_required=minimum,
                details=OwnershipDetails(message=f"Wallet owns {owned} NFTs (required: {minimum})"),
            )

        matched = [nft for nft in page.owned_nfts if nft.contract_address.lower() == collection.lower()]
        verified = len(matched) >= minimum

        details = OwnershipDetails(collection_name=self._fallback_collection_name())
        if matched:
            details.collection_name = matched[0].contract_name or details.collection_name
            details.collection_symbol = matched[0].contract_symbol or ""
            details.owned_tokens = [
                OwnedToken(token_id=nft.token_id, name=nft.name or f"#{nft.token_id}", image=nft.image)
                for nft in matched
            ]
        details.message = (
            f"Owns {len(matched)} NFTs from required collection"
            if verified
            else f"Owns {len(matched)} NFTs from required collection (need {minimum})"
        )

        return OwnershipCheck(
            verified=verified,
            owned_count=len(matched),
            total_nfts=page.total_count,
            collection_filtered=True,
            required_collection=collection,
            min_required=minimum,
            details=details,
        )

    async def verify_ownership(self, wallet_address: str) -> OwnershipCheck:
        if not self.holdings:
            return self._failed_check("Holdings API not configured")

        try:
            page = await self.holdings.get_nfts_for_owner(wallet_address, self.config.required_collection)
        except UpstreamUnavailableError as e:
            self.logger.error(
                "NFT ownership lookup failed",
                extra={"wallet_address": wallet_address, "error": e.message}
            )
            return self._failed_check(e.message)

        check = self._evaluate(page)
        self.logger.info(
            "NFT ownership checked",
            extra={
                "wallet_address": wallet_address,
                "owned_count": check.owned_count,
                "min_required": check.min_required,
                "verified": check.verified
            }
        )
        return check

    def _direct_result(self, wallet_address: str, check: OwnershipCheck):
        if check.error:
            return ErrorResult(
                network=self.network,
                wallet_address=wallet_address,
                min_required=check.min_required,
                message=check.details.message,
                error=check.error,
            )
        return DirectOwnershipResult(
            network=self.network,
            wallet_address=wallet_address,
            min_required=check.min_required,
            message=check.details.message,
            verified=check.verified,
            owned_count=check.owned_count,
            total_nfts=check.total_nfts,
            collection_filtered=check.collection_filtered,
            required_collection=check.required_collection,
            details=check.details,
        )

    async def verify_ownership_with_staking(self, wallet_address: str):
        """
        Direct ownership first, then the configured staking contracts.

        Returns one of DirectOwnershipResult (verified), StakedResult,
        InsufficientStakedResult or BothFailedResult.
        """
        direct = await self.verify_ownership(wallet_address)
        if direct.verified:
            return self._direct_result(wallet_address, direct)

        minimum = self.config.min_nft_count
        contracts: List[str] = list(self.config.staking_contracts) if self.staking else []

        checks = []
        for contract_address in contracts:
            checks.append(await self.staking.check_staked(wallet_address, contract_address))

        total_staked = sum(check.staked_count for check in checks)
        token_ids = [token_id for check in checks for token_id in check.staked_token_ids]

        if total_staked > 0:
            if total_staked >= minimum:
                self.logger.info(
                    "Verified through staked NFTs",
                    extra={"wallet_address": wallet_address, "staked_count": total_staked}
                )
                return StakedResult(
                    network=self.network,
                    wallet_address=wallet_address,
                    min_required=minimum,
                    message=(
                        f"Verified through staked NFTs ({total_staked} staked across "
                        f"{len(contracts)} contract(s), {minimum} required)"
                    ),
                    staked_count=total_staked,
                    staked_token_ids=token_ids[:STAKED_IDS_SHOWN],
                    total_staked_token_ids=len(token_ids),
                    staking_contracts=contracts,
                    staking_details=checks,
                )
            return InsufficientStakedResult(
                network=self.network,
                wallet_address=wallet_address,
                min_required=minimum,
                message=(
                    f"Insufficient staked NFTs ({total_staked} staked across "
                    f"{len(contracts)} contract(s), {minimum} required)"
                ),
                staked_count=total_staked,
                staking_contracts_checked=len(contracts),
                staking_details=checks,
            )

        return BothFailedResult(
            network=self.network,
            wallet_address=wallet_address,
            min_required=minimum,
            message=direct.details.message,
            owned_count=direct.owned_count,
            total_nfts=direct.total_nfts,
            collection_filtered=direct.collection_filtered,
            required_collection=direct.required_collection,
            details=direct.details,
            staking_contracts_checked=len(contracts),
            staking_info=(
                f"No staked NFTs found in {len(contracts)} staking contract(s)" if contracts else None
            ),
            staking_details=checks,
            error=direct.error,
        )

    async def verify(self, wallet_address: str):
        try:
            if self.config.is_primary:
                return await self.verify_ownership_with_staking(wallet_address)
            return self._direct_result(wallet_address, await self.verify_ownership(wallet_address))
        except Exception as e:
            self.logger.error(
                "Ownership verification failed",
                extra={"wallet_address": wallet_address, "error": str(e)},
                exc_info=True
            )
            return ErrorResult(
                network=self.network,
                wallet_address=wallet_address,
                min_required=self.config.min_nft_count,
                message="Verification failed",
                error=str(e),
            )

    async def close(self) -> None:
        if self.holdings:
            await self.holdings.close()
        if self.rpc:
            await self.rpc.close()


def create_evm_verifier(config: NetworkConfig, rpc_client: Optional[EvmRpcClient] = None) -> EVMOwnershipVerifier:
    """Factory function building the clients a network's configuration calls for"""
    holdings = HoldingsClient(config.nft_api_url) if config.nft_api_url else None
    rpc = rpc_client
    if rpc is None and config.is_primary and config.rpc_url:
        rpc = EvmRpcClient(config.rpc_url)
    if not holdings:
        logger.warning("Holdings API not configured", extra={"network": config.network.value})
    return EVMOwnershipVerifier(config, holdings_client=holdings, rpc_client=rpc)
