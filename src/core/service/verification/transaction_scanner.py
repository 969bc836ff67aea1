"""
Locate the challenge transfer on the primary network.

The scanner walks the most recent blocks newest first and looks for a native
transfer from the claimed wallet to the bot wallet carrying exactly the
challenge amount. It fails closed: any RPC error is logged and reported as
"not found".
"""

from typing import Any, Dict, Optional

from src.core.service.verification.protocols.rpc import EvmRpcClient
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

DEFAULT_BLOCK_WINDOW = 1000


def _normalize_value(value: Any) -> Optional[str]:
    """Render a transaction value as a decimal integer string."""
    if value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return str(int(text, 16))
        return str(int(text))
    return str(int(value))


def _same_address(left: Optional[str], right: Optional[str]) -> bool:
    return bool(left) and bool(right) and left.lower() == right.lower()


class TransactionScanner:
    """Brute-force scan of recent blocks for an exact-amount transfer"""

    def __init__(self, rpc_client: EvmRpcClient, block_window: int = DEFAULT_BLOCK_WINDOW):
        self.rpc = rpc_client
        self.block_window = block_window

    def matches(self, transaction: Dict[str, Any], from_address: str, to_address: str, exact_base_units: str) -> bool:
        if not _same_address(transaction.get("to"), to_address):
            return False
        if not _same_address(transaction.get("from"), from_address):
            return False
        return _normalize_value(transaction.get("value")) == exact_base_units

    async def confirm_transfer(self, from_address: str, to_address: str, exact_base_units: str) -> bool:
        """
        Search blocks head .. max(0, head - window) inclusive for the transfer.

        Returns:
            bool: True once a matching transaction is seen; False when none is
            found or the scan could not complete
        """
        try:
            head = await self.rpc.get_latest_block_height()
            lowest = max(0, head - self.block_window)

            logger.info(
                "Scanning blocks for challenge transfer",
                extra={
                    "from_address": from_address,
                    "to_address": to_address,
                    "amount_base_units": exact_base_units,
                    "head": head,
                    "lowest": lowest
                }
            )

            for block_number in range(head, lowest - 1, -1):
                block = await self.rpc.get_block_with_transactions(block_number)
                if not block:
                    continue
                for transaction in block.get("transactions") or []:
                    if self.matches(transaction, from_address, to_address, exact_base_units):
                        tx_hash = transaction.get("hash")
                        logger.info(
                            "Challenge transfer found",
                            extra={
                                "from_address": from_address,
                                "block_number": block_number,
                                "tx_hash": tx_hash.hex() if isinstance(tx_hash, bytes) else tx_hash
                            }
                        )
                        return True

            logger.info(
                "Challenge transfer not found",
                extra={"from_address": from_address, "blocks_scanned": head - lowest + 1}
            )
            return False

        except Exception as e:
            logger.error(
                "Transaction scan failed",
                extra={
                    "from_address": from_address,
                    "error_type": type(e).__name__,
                    "error": str(e)
                }
            )
            return False
