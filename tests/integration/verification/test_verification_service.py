import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from src.core.service.rate_limit.rate_limiter import RateLimitConfig, RateLimiter
from src.core.service.verification.cache.challenge_store import ChallengeStore
from src.core.service.verification.challenge_service import ChallengeService
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.outcome import OutcomeStatus
from src.core.service.verification.models.result import (
    BothFailedResult,
    DirectOwnershipResult,
    StakedResult,
)
from src.core.service.verification.networks import build_network_configs
from src.core.service.verification.protocols.base import NetworkRegistry
from src.core.service.verification.transaction_scanner import TransactionScanner
from src.core.service.verification.verification_service import VerificationService
from src.infra.repository.json_verification_store import JsonVerificationStore

USER_ID = "123456789012345678"
WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
OTHER_WALLET = "0x" + "a" * 40
BOT_WALLET = "0x" + "b" * 40
MONAD_ROLE = "111111111111111111"
ARBITRUM_ROLE = "222222222222222222"
BERACHAIN_ROLE = "333333333333333333"


def challenge_transfer(sender=WALLET, value=53400000000):
    return {"hash": "0x" + "1" * 64, "from": sender, "to": BOT_WALLET, "value": value}


class Harness:
    """Service wired to in-memory collaborators"""

    def __init__(self, settings, fake_redis, rpc, make_verifier, role_grantor, clock, store_path, bot_wallet=BOT_WALLET):
        self.networks = build_network_configs(settings)
        self.verifiers = {
            network: make_verifier(config) for network, config in self.networks.items()
        }
        self.verifiers[Network.MONAD_TESTNET].result = StakedResult(
            network=Network.MONAD_TESTNET, wallet_address=WALLET, staked_count=2, message="Verified through staked NFTs"
        )
        for network in (Network.ARBITRUM, Network.BERACHAIN):
            self.verifiers[network].result = DirectOwnershipResult(
                network=network, wallet_address=WALLET, verified=True, owned_count=1, message="Owns 1 NFTs"
            )

        registry = NetworkRegistry()
        for verifier in self.verifiers.values():
            registry.register(verifier)

        self.rpc = rpc
        self.redis = fake_redis
        self.store = JsonVerificationStore(store_path)
        self.role_grantor = role_grantor
        self.rate_limiter = RateLimiter(RateLimitConfig(settings), clock=clock)
        self.challenges = ChallengeService(ChallengeStore(fake_redis), amount_generator=lambda: Decimal("0.0000000534"))
        self.service = VerificationService(
            challenge_service=self.challenges,
            verification_store=self.store,
            scanner=TransactionScanner(rpc, block_window=1000),
            registry=registry,
            role_grantor=role_grantor,
            rate_limiter=self.rate_limiter,
            networks=self.networks,
            bot_wallet=bot_wallet,
        )

    async def verify_primary(self):
        self.rpc.blocks[self.rpc.head] = [challenge_transfer()]
        await self.service.start_verification(USER_ID, "holder", WALLET)
        return await self.service.confirm_transaction(USER_ID, "holder")


@pytest.fixture
def settings(make_settings):
    return make_settings(
        VERIFIED_ROLE_ID=MONAD_ROLE,
        ARBITRUM_ROLE_ID=ARBITRUM_ROLE,
        BERACHAIN_ROLE_ID=BERACHAIN_ROLE,
        RATE_LIMIT_HOLDINGS_COUNT=100,
    )


@pytest.fixture
def harness(settings, fake_redis, make_rpc, make_verifier, role_grantor, clock, tmp_path):
    return Harness(settings, fake_redis, make_rpc(head=2000), make_verifier, role_grantor, clock,
                   str(tmp_path / "verified.json"))


@pytest.mark.asyncio
async def test_start_issues_challenge(harness):
    outcome = await harness.service.start_verification(USER_ID, "holder", WALLET)

    assert outcome.status == OutcomeStatus.CHALLENGE_ISSUED
    assert outcome.network == Network.MONAD_TESTNET
    assert outcome.challenge.amount == "0.0000000534"
    assert outcome.challenge.amount_base_units == "53400000000"
    assert outcome.challenge.bot_wallet == BOT_WALLET
    assert outcome.success


@pytest.mark.asyncio
async def test_restart_resumes_challenge_with_new_wallet(harness):
    first = await harness.service.start_verification(USER_ID, "holder", WALLET)
    second = await harness.service.start_verification(USER_ID, "holder", OTHER_WALLET)

    assert second.status == OutcomeStatus.CHALLENGE_ISSUED
    assert second.challenge.amount_base_units == first.challenge.amount_base_units
    assert second.challenge.claimed_wallet == OTHER_WALLET


@pytest.mark.asyncio
async def test_start_with_invalid_wallet(harness):
    outcome = await harness.service.start_verification(USER_ID, "holder", "not-a-wallet")

    assert outcome.status == OutcomeStatus.INVALID_WALLET
    assert await harness.challenges.find_by_user(USER_ID) is None


@pytest.mark.asyncio
async def test_confirm_without_challenge(harness):
    outcome = await harness.service.confirm_transaction(USER_ID, "holder")

    assert outcome.status == OutcomeStatus.NOT_FOUND


@pytest.mark.asyncio
async def test_confirm_without_transfer(harness):
    await harness.service.start_verification(USER_ID, "holder", WALLET)

    outcome = await harness.service.confirm_transaction(USER_ID, "holder")

    assert outcome.status == OutcomeStatus.TRANSFER_NOT_FOUND
    assert outcome.challenge.amount_base_units == "53400000000"
    assert harness.verifiers[Network.MONAD_TESTNET].calls == []
    assert await harness.store.get_user(USER_ID) is None


@pytest.mark.asyncio
async def test_transfer_from_other_wallet_is_not_accepted(harness):
    await harness.service.start_verification(USER_ID, "holder", WALLET)
    harness.rpc.blocks[harness.rpc.head] = [challenge_transfer(sender=OTHER_WALLET)]

    outcome = await harness.service.confirm_transaction(USER_ID, "holder")

    assert outcome.status == OutcomeStatus.TRANSFER_NOT_FOUND


@pytest.mark.asyncio
async def test_confirm_verifies_and_grants_role(harness, role_grantor):
    """Transfer found and holdings met: record saved, challenge completed, role granted"""
    outcome = await harness.verify_primary()

    assert outcome.status == OutcomeStatus.VERIFIED
    assert outcome.wallet_address == WALLET
    assert outcome.role_granted is True
    assert isinstance(outcome.result, StakedResult)
    assert role_grantor.grants == [(USER_ID, MONAD_ROLE)]

    assert await harness.store.get_verified_wallet(USER_ID) == WALLET
    challenge = await harness.challenges.find_by_user(USER_ID)
    assert challenge.verified is True
    assert isinstance(challenge.verification_result, StakedResult)


@pytest.mark.asyncio
async def test_start_after_verification_reports_already_verified(harness):
    await harness.verify_primary()

    outcome = await harness.service.start_verification(USER_ID, "holder", OTHER_WALLET)

    assert outcome.status == OutcomeStatus.ALREADY_VERIFIED
    assert outcome.wallet_address == WALLET


@pytest.mark.asyncio
async def test_confirm_with_insufficient_holdings(harness, role_grantor):
    harness.verifiers[Network.MONAD_TESTNET].result = BothFailedResult(
        network=Network.MONAD_TESTNET, wallet_address=WALLET, message="Owns 0 NFTs from required collection (need 1)"
    )

    outcome = await harness.verify_primary()

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.message == "Owns 0 NFTs from required collection (need 1)"
    assert isinstance(outcome.result, BothFailedResult)
    assert role_grantor.grants == []
    assert await harness.store.get_user(USER_ID) is None
    assert (await harness.challenges.find_by_user(USER_ID)).verified is False


@pytest.mark.asyncio
async def test_store_write_failure_grants_nothing(harness, role_grantor):
    await harness.store.close()

    outcome = await harness.verify_primary()

    assert outcome.status == OutcomeStatus.ERROR
    assert role_grantor.grants == []
    assert (await harness.challenges.find_by_user(USER_ID)).verified is False


@pytest.mark.asyncio
async def test_role_grant_failure_keeps_verification(harness, role_grantor):
    role_grantor.succeed = False

    outcome = await harness.verify_primary()

    assert outcome.status == OutcomeStatus.VERIFIED
    assert outcome.role_granted is False
    assert await harness.store.get_verified_wallet(USER_ID) == WALLET


@pytest.mark.asyncio
async def test_concurrent_confirm_reports_in_progress(harness):
    await harness.service.start_verification(USER_ID, "holder", WALLET)
    lock = harness.service._lock_for(USER_ID)
    await lock.acquire()
    try:
        outcome = await harness.service.confirm_transaction(USER_ID, "holder")
    finally:
        lock.release()

    assert outcome.status == OutcomeStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_exhausted_holdings_quota(make_settings, fake_redis, make_rpc, make_verifier, role_grantor, clock, tmp_path):
    settings = make_settings(VERIFIED_ROLE_ID=MONAD_ROLE, RATE_LIMIT_HOLDINGS_COUNT=1)
    harness = Harness(settings, fake_redis, make_rpc(head=10), make_verifier, role_grantor, clock,
                      str(tmp_path / "verified.json"))
    harness.rate_limiter.check_global_limit("holdings_request")

    outcome = await harness.verify_primary()

    assert outcome.status == OutcomeStatus.RATE_LIMITED
    assert harness.verifiers[Network.MONAD_TESTNET].calls == []


@pytest.mark.asyncio
async def test_confirm_without_bot_wallet(settings, fake_redis, make_rpc, make_verifier, role_grantor, clock, tmp_path):
    harness = Harness(settings, fake_redis, make_rpc(head=10), make_verifier, role_grantor, clock,
                      str(tmp_path / "verified.json"), bot_wallet=None)
    await harness.service.start_verification(USER_ID, "holder", WALLET)

    outcome = await harness.service.confirm_transaction(USER_ID, "holder")

    assert outcome.status == OutcomeStatus.ERROR


@pytest.mark.asyncio
async def test_secondary_requires_primary_verification(harness):
    outcome = await harness.service.verify_secondary(USER_ID, "holder", Network.ARBITRUM)

    assert outcome.status == OutcomeStatus.PRECONDITION_FAILED
    assert harness.verifiers[Network.ARBITRUM].calls == []


@pytest.mark.asyncio
async def test_secondary_reuses_primary_wallet(harness, role_grantor):
    await harness.verify_primary()

    outcome = await harness.service.verify_secondary(USER_ID, "holder", Network.BERACHAIN)

    assert outcome.status == OutcomeStatus.VERIFIED
    assert outcome.wallet_address == WALLET
    assert harness.verifiers[Network.BERACHAIN].calls == [WALLET]
    assert role_grantor.grants[-1] == (USER_ID, BERACHAIN_ROLE)
    assert await harness.store.has_network_verification(USER_ID, Network.BERACHAIN)


@pytest.mark.asyncio
async def test_secondary_failure_is_not_stored(harness, role_grantor):
    await harness.verify_primary()
    harness.verifiers[Network.ARBITRUM].result = DirectOwnershipResult(
        network=Network.ARBITRUM, wallet_address=WALLET, verified=False, message="Owns 0 NFTs"
    )

    outcome = await harness.service.verify_secondary(USER_ID, "holder", Network.ARBITRUM)

    assert outcome.status == OutcomeStatus.FAILED
    assert not await harness.store.has_network_verification(USER_ID, Network.ARBITRUM)
    assert (USER_ID, ARBITRUM_ROLE) not in role_grantor.grants


@pytest.mark.asyncio
async def test_secondary_rejects_primary_network(harness):
    outcome = await harness.service.verify_secondary(USER_ID, "holder", Network.MONAD_TESTNET)

    assert outcome.status == OutcomeStatus.INVALID_NETWORK


@pytest.mark.asyncio
async def test_status_reports_pending_challenge(harness):
    await harness.service.start_verification(USER_ID, "holder", WALLET)

    status = await harness.service.get_status(USER_ID)

    assert status.username == "holder"
    assert status.verifications == {}
    assert status.pending_challenge.amount_base_units == "53400000000"
    assert status.available_networks == [Network.MONAD_TESTNET]


@pytest.mark.asyncio
async def test_status_after_primary_verification(harness):
    await harness.verify_primary()

    status = await harness.service.get_status(USER_ID)

    assert set(status.verifications) == {Network.MONAD_TESTNET}
    assert status.pending_challenge is None
    assert status.available_networks == [Network.ARBITRUM, Network.BERACHAIN]


def test_configuration_report(harness):
    report = harness.service.get_configuration()

    assert report.bot_wallet == BOT_WALLET
    assert report.primary_network == Network.MONAD_TESTNET
    assert [n.network for n in report.networks] == [Network.MONAD_TESTNET, Network.ARBITRUM, Network.BERACHAIN]
    assert all(n.role_configured for n in report.networks)
    assert not any(n.api_configured for n in report.networks)


@pytest.mark.asyncio
async def test_reset_removes_everything_and_revokes_roles(harness, role_grantor):
    await harness.verify_primary()

    outcome = await harness.service.reset(USER_ID)

    assert outcome.record_removed is True
    assert outcome.challenge_removed is True
    assert outcome.roles_revoked == [MONAD_ROLE, ARBITRUM_ROLE, BERACHAIN_ROLE]
    assert await harness.store.get_user(USER_ID) is None
    assert await harness.challenges.find_by_user(USER_ID) is None

    restarted = await harness.service.start_verification(USER_ID, "holder", WALLET)
    assert restarted.status == OutcomeStatus.CHALLENGE_ISSUED


@pytest.mark.asyncio
async def test_reset_revokes_roles_when_challenge_removal_fails(harness, role_grantor):
    await harness.verify_primary()
    harness.redis.delete = AsyncMock(side_effect=ConnectionError("redis down"))

    outcome = await harness.service.reset(USER_ID)

    assert outcome.record_removed is True
    assert outcome.challenge_removed is False
    assert outcome.roles_revoked == [MONAD_ROLE, ARBITRUM_ROLE, BERACHAIN_ROLE]
    assert len(outcome.errors) == 1
    assert "Challenge removal" in outcome.errors[0]
    assert role_grantor.revokes == [(USER_ID, MONAD_ROLE), (USER_ID, ARBITRUM_ROLE), (USER_ID, BERACHAIN_ROLE)]


@pytest.mark.asyncio
async def test_reset_continues_when_record_removal_fails(harness, role_grantor):
    await harness.verify_primary()

    with patch.object(harness.store, "remove_user", AsyncMock(side_effect=OSError("disk full"))):
        outcome = await harness.service.reset(USER_ID)

    assert outcome.record_removed is False
    assert outcome.challenge_removed is True
    assert outcome.roles_revoked == [MONAD_ROLE, ARBITRUM_ROLE, BERACHAIN_ROLE]
    assert len(outcome.errors) == 1
    assert await harness.store.get_verified_wallet(USER_ID) == WALLET


@pytest.mark.asyncio
async def test_reset_reports_failed_revoke_and_tries_the_rest(harness):
    await harness.verify_primary()
    revoke = AsyncMock(side_effect=[True, RuntimeError("discord down"), True])

    with patch.object(harness.role_grantor, "revoke", revoke):
        outcome = await harness.service.reset(USER_ID)

    assert revoke.await_count == 3
    assert outcome.roles_revoked == [MONAD_ROLE, BERACHAIN_ROLE]
    assert len(outcome.errors) == 1
    assert outcome.record_removed is True


@pytest.mark.asyncio
async def test_status_reports_store_failure(harness):
    await harness.service.start_verification(USER_ID, "holder", WALLET)
    harness.redis.get = AsyncMock(side_effect=ConnectionError("redis down"))

    status = await harness.service.get_status(USER_ID)

    assert status.user_id == USER_ID
    assert status.error
    assert status.verifications == {}
    assert status.pending_challenge is None


@pytest.mark.asyncio
async def test_primary_reverification_overwrites_record_and_grants_again(harness, role_grantor):
    await harness.verify_primary()
    harness.verifiers[Network.MONAD_TESTNET].result = DirectOwnershipResult(
        network=Network.MONAD_TESTNET, wallet_address=WALLET, verified=True, owned_count=3, message="Owns 3 NFTs"
    )

    outcome = await harness.service.confirm_transaction(USER_ID, "holder-renamed")

    assert outcome.status == OutcomeStatus.VERIFIED
    assert role_grantor.grants == [(USER_ID, MONAD_ROLE), (USER_ID, MONAD_ROLE)]
    user = await harness.store.get_user(USER_ID)
    assert user.username == "holder-renamed"
    stored = user.get_verification(Network.MONAD_TESTNET).verification_result
    assert isinstance(stored, DirectOwnershipResult)
    assert stored.owned_count == 3


@pytest.mark.asyncio
async def test_secondary_reverification_overwrites_record_and_grants_again(harness, role_grantor):
    await harness.verify_primary()
    await harness.service.verify_secondary(USER_ID, "holder", Network.ARBITRUM)
    harness.verifiers[Network.ARBITRUM].result = DirectOwnershipResult(
        network=Network.ARBITRUM, wallet_address=WALLET, verified=True, owned_count=4, message="Owns 4 NFTs"
    )

    outcome = await harness.service.verify_secondary(USER_ID, "holder", Network.ARBITRUM)

    assert outcome.status == OutcomeStatus.VERIFIED
    assert role_grantor.grants.count((USER_ID, ARBITRUM_ROLE)) == 2
    user = await harness.store.get_user(USER_ID)
    assert user.get_verification(Network.ARBITRUM).verification_result.owned_count == 4
    assert list(user.verifications) == [Network.MONAD_TESTNET, Network.ARBITRUM]
