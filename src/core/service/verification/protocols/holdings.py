"""Holdings lookup API client (Alchemy NFT API, getNFTsForOwner)."""

from typing import List, Optional

import httpx
from pydantic import BaseModel, Field

from src.core.exceptions.base import UpstreamUnavailableError
from src.core.exceptions.handler import ServiceErrorCode
from src.core.http_client import create_client
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

PAGE_SIZE = 100


class OwnedNft(BaseModel):
    contract_address: str
    contract_name: Optional[str] = None
    contract_symbol: Optional[str] = None
    token_id: str
    name: Optional[str] = None
    image: Optional[str] = None


class HoldingsPage(BaseModel):
    owned_nfts: List[OwnedNft] = Field(default_factory=list)
    total_count: int = 0


def _parse_nft(raw: dict) -> Optional[OwnedNft]:
    contract = raw.get("contract") or {}
    address = contract.get("address")
    token_id = raw.get("tokenId")
    if not address or token_id is None:
        return None
    image = raw.get("image") or {}
    return OwnedNft(
        contract_address=address,
        contract_name=contract.get("name"),
        contract_symbol=contract.get("symbol"),
        token_id=str(token_id),
        name=raw.get("name"),
        image=image.get("cachedUrl") or image.get("originalUrl"),
    )


class HoldingsClient:
    """Queries NFT holdings of a wallet on one network"""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self.client = client or create_client("holdings")

    async def get_nfts_for_owner(self, wallet_address: str, contract_address: Optional[str] = None) -> HoldingsPage:
        """
        Fetch the first page of NFTs owned by the wallet.

        Raises:
            UpstreamUnavailableError: transport failure, non-2xx status or unreadable body
        """
        params = {
            "owner": wallet_address,
            "withMetadata": "true",
            "pageSize": PAGE_SIZE,
        }
        if contract_address:
            params["contractAddresses[]"] = [contract_address]

        try:
            response = await self.client.get(f"{self.base_url}/getNFTsForOwner", params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Holdings API returned an error status",
                extra={"wallet_address": wallet_address, "status_code": e.response.status_code}
            )
            raise UpstreamUnavailableError(
                f"Failed to fetch NFTs: HTTP {e.response.status_code}",
                code=ServiceErrorCode.HOLDINGS_API_ERROR
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error(
                "Holdings API request failed",
                extra={"wallet_address": wallet_address, "error_type": type(e).__name__, "error": str(e)}
            )
            raise UpstreamUnavailableError(
                f"Failed to fetch NFTs: {e}",
                code=ServiceErrorCode.HOLDINGS_API_ERROR
            )

        owned = [nft for nft in (_parse_nft(raw) for raw in payload.get("ownedNfts") or []) if nft]
        return HoldingsPage(owned_nfts=owned, total_count=payload.get("totalCount") or len(owned))

    async def close(self) -> None:
        await self.client.aclose()
