"""
Staking contract reader.

Staked NFTs are held by the staking contract, so the holdings API does not
see them. Two view functions are queried through eth_call:

    nftStakeCount(address) -> uint256
    getStakedTokenIds(address) -> uint256[]

Return data that is empty, truncated or otherwise malformed decodes to a zero
count or an empty list; it never raises.
"""

from typing import List

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from src.core.service.verification.amount import is_valid_wallet_address
from src.core.service.verification.models.result import StakingContractCheck
from src.core.service.verification.protocols.rpc import EvmRpcClient
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

NFT_STAKE_COUNT_SELECTOR = bytes(Web3.keccak(text="nftStakeCount(address)")[:4])
GET_STAKED_TOKEN_IDS_SELECTOR = bytes(Web3.keccak(text="getStakedTokenIds(address)")[:4])

MAX_STAKED_TOKEN_IDS = 1000
WORD = 32


def encode_address_call(selector: bytes, address: str) -> bytes:
    """selector followed by the address left-padded to one 32-byte word"""
    return selector + encode(["address"], [Web3.to_checksum_address(address)])


def decode_uint(data: bytes) -> int:
    if len(data) < WORD:
        return 0
    try:
        return decode(["uint256"], data[:WORD])[0]
    except DecodingError:
        return 0


def decode_uint_array(data: bytes) -> List[int]:
    """Decode a dynamic uint256[] return value; ids of zero are dropped."""
    if len(data) < 2 * WORD:
        return []

    offset = int.from_bytes(data[:WORD], "big")
    if offset + WORD > len(data):
        return []
    length = int.from_bytes(data[offset:offset + WORD], "big")
    if length > MAX_STAKED_TOKEN_IDS:
        return []
    if offset + WORD * (length + 1) > len(data):
        return []

    try:
        values = decode(["uint256[]"], data)[0]
    except DecodingError:
        return []
    return [value for value in values if value > 0]


def filter_staking_contracts(addresses: List[str]) -> List[str]:
    """Drop blank and malformed addresses, keeping order."""
    contracts = []
    for address in addresses:
        if not address:
            continue
        if not is_valid_wallet_address(address):
            logger.warning("Ignoring malformed staking contract address", extra={"contract_address": address})
            continue
        contracts.append(address)
    return contracts


class StakingContractReader:
    """Reads staked balances for a wallet from staking contracts"""

    def __init__(self, rpc_client: EvmRpcClient):
        self.rpc = rpc_client

    async def check_staked(self, wallet_address: str, contract_address: str) -> StakingContractCheck:
        check = StakingContractCheck(contract_address=contract_address)
        try:
            code = await self.rpc.get_bytecode(contract_address)
            if not code:
                check.error = "Contract not found"
                logger.warning("Staking contract has no code", extra={"contract_address": contract_address})
                return check

            count_data = await self.rpc.call(
                contract_address,
                encode_address_call(NFT_STAKE_COUNT_SELECTOR, wallet_address)
            )
            check.staked_count = decode_uint(count_data)

            if check.staked_count > 0:
                try:
                    ids_data = await self.rpc.call(
                        contract_address,
                        encode_address_call(GET_STAKED_TOKEN_IDS_SELECTOR, wallet_address)
                    )
                    check.staked_token_ids = decode_uint_array(ids_data)
                except Exception as e:
                    # count stays authoritative when the id listing is unavailable
                    logger.warning(
                        "Could not read staked token ids",
                        extra={"contract_address": contract_address, "error": str(e)}
                    )

            logger.info(
                "Staking contract checked",
                extra={
                    "wallet_address": wallet_address,
                    "contract_address": contract_address,
                    "staked_count": check.staked_count
                }
            )
            return check

        except Exception as e:
            logger.error(
                "Staking contract check failed",
                extra={
                    "wallet_address": wallet_address,
                    "contract_address": contract_address,
                    "error": str(e)
                }
            )
            check.staked_count = 0
            check.error = str(e)
            return check
