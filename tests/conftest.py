"""
Shared test fixtures: in-memory stand-ins for Redis, the chain RPC, holdings
verifiers and the Discord role API.
"""

from typing import Any, Dict, List, Optional

import pytest

from src.infra.config.settings import Settings
from src.core.service.verification.protocols.base import NetworkVerifier
from src.core.service.verification.role_grantor import RoleGrantor


class FakeConnectionPool:
    def __init__(self):
        self.disconnected = False

    async def disconnect(self):
        self.disconnected = True


class FakeRedis:
    """The subset of redis.asyncio.Redis the challenge store uses"""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.connection_pool = FakeConnectionPool()
        self.closed = False

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True


class FakeRpc:
    """Chain RPC double: blocks keyed by number, contract code and eth_call results"""

    def __init__(self, head: int = 0, blocks: Optional[Dict[int, List[Dict[str, Any]]]] = None,
                 error: Optional[Exception] = None):
        self.head = head
        self.blocks = blocks or {}
        self.error = error
        self.requested_blocks: List[int] = []
        self.code: Dict[str, bytes] = {}
        self.call_results: Dict[tuple, Any] = {}
        self.closed = False

    async def get_latest_block_height(self) -> int:
        if self.error:
            raise self.error
        return self.head

    async def get_block_with_transactions(self, block_number: int):
        self.requested_blocks.append(block_number)
        return {"number": block_number, "transactions": self.blocks.get(block_number, [])}

    async def get_bytecode(self, address: str) -> bytes:
        return self.code.get(address.lower(), b"")

    async def call(self, contract_address: str, data: bytes) -> bytes:
        result = self.call_results.get((contract_address.lower(), data[:4]), b"")
        if isinstance(result, Exception):
            raise result
        return result

    async def close(self):
        self.closed = True


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubVerifier(NetworkVerifier):
    """Returns a preset verification result and records the wallets it was asked about"""

    def __init__(self, config, result=None):
        super().__init__(config)
        self.result = result
        self.calls: List[str] = []

    async def verify_ownership(self, wallet_address: str):
        raise NotImplementedError

    async def verify(self, wallet_address: str):
        self.calls.append(wallet_address)
        return self.result


class RecordingRoleGrantor(RoleGrantor):
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.grants: List[tuple] = []
        self.revokes: List[tuple] = []

    async def grant(self, user_id: str, role_id: str) -> bool:
        self.grants.append((user_id, role_id))
        return self.succeed

    async def revoke(self, user_id: str, role_id: str) -> bool:
        self.revokes.append((user_id, role_id))
        return self.succeed


@pytest.fixture
def make_settings():
    """Settings built from explicit values only, ignoring any .env file"""
    def factory(**overrides) -> Settings:
        return Settings(_env_file=None, **overrides)
    return factory


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def make_rpc():
    return FakeRpc


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_verifier():
    return StubVerifier


@pytest.fixture
def role_grantor():
    return RecordingRoleGrantor()
