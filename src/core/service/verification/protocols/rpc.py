"""
Chain RPC access for EVM networks.
Thin async wrapper over web3 exposing the calls the scanner and staking reader need.
"""

from typing import Any, Dict, Optional

from web3 import AsyncWeb3, Web3
from web3.exceptions import BlockNotFound
from web3.middleware import ExtraDataToPOAMiddleware

from src.core.http_client import HTTPClientConfig
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class EvmRpcClient:
    """JSON-RPC client for one EVM network"""

    def __init__(self, rpc_url: str, timeout: Optional[float] = None):
        self.rpc_url = rpc_url
        self.w3 = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(
            rpc_url,
            request_kwargs={"timeout": timeout or HTTPClientConfig.get_timeout("rpc")}
        ))
        # Testnet blocks may carry oversized extraData
        self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    async def get_latest_block_height(self) -> int:
        return await self.w3.eth.block_number

    async def get_block_with_transactions(self, block_number: int) -> Optional[Dict[str, Any]]:
        """Full block, or None when the node does not have it yet"""
        try:
            block = await self.w3.eth.get_block(block_number, full_transactions=True)
        except BlockNotFound:
            logger.debug("Block not available from RPC node", extra={"block_number": block_number})
            return None
        return {
            "number": block.get("number"),
            "transactions": [dict(tx) for tx in block.get("transactions", [])]
        }

    async def call(self, contract_address: str, data: bytes) -> bytes:
        result = await self.w3.eth.call({
            "to": Web3.to_checksum_address(contract_address),
            "data": Web3.to_hex(data)
        })
        return bytes(result)

    async def get_bytecode(self, address: str) -> bytes:
        code = await self.w3.eth.get_code(Web3.to_checksum_address(address))
        return bytes(code)

    async def close(self) -> None:
        try:
            await self.w3.provider.disconnect()
        except Exception as e:
            logger.warning(f"Error closing RPC provider: {e}")
