import pytest
from decimal import Decimal

from src.core.exceptions.base import NotFoundError, ValidationError
from src.core.exceptions.handler import ServiceErrorCode
from src.core.service.verification.cache.challenge_store import ChallengeStore
from src.core.service.verification.challenge_service import ChallengeService
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.result import StakedResult

USER_ID = "123456789012345678"
WALLET = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
OTHER_WALLET = "0x" + "a" * 40


@pytest.fixture
def challenge_service(fake_redis):
    return ChallengeService(ChallengeStore(fake_redis), amount_generator=lambda: Decimal("0.0000000534"))


@pytest.mark.asyncio
async def test_create_challenge(challenge_service, fake_redis):
    """A new challenge carries the amount and its exact base-unit form"""
    challenge = await challenge_service.create_or_resume_challenge(USER_ID, "holder", WALLET)

    assert challenge.user_id == USER_ID
    assert challenge.claimed_wallet == WALLET
    assert challenge.challenge_amount == Decimal("0.0000000534")
    assert challenge.challenge_amount_base_units == "53400000000"
    assert challenge.verified is False
    assert f"verify:challenge:{USER_ID}" in fake_redis.data


@pytest.mark.asyncio
async def test_resume_keeps_amount_and_updates_wallet(fake_redis):
    amounts = iter([Decimal("0.0000000534"), Decimal("0.0000000999")])
    service = ChallengeService(ChallengeStore(fake_redis), amount_generator=lambda: next(amounts))

    first = await service.create_or_resume_challenge(USER_ID, "holder", WALLET)
    second = await service.create_or_resume_challenge(USER_ID, "renamed", OTHER_WALLET)

    assert second.challenge_amount == first.challenge_amount
    assert second.challenge_amount_base_units == first.challenge_amount_base_units
    assert second.claimed_wallet == OTHER_WALLET
    assert second.username == "renamed"

    stored = await service.find_by_user(USER_ID)
    assert stored.claimed_wallet == OTHER_WALLET


@pytest.mark.asyncio
async def test_invalid_wallet_rejected(challenge_service, fake_redis):
    with pytest.raises(ValidationError) as exc_info:
        await challenge_service.create_or_resume_challenge(USER_ID, "holder", "0x1234")

    assert exc_info.value.code == ServiceErrorCode.INVALID_ADDRESS
    assert fake_redis.data == {}


@pytest.mark.asyncio
async def test_mark_verified_persists_result(challenge_service):
    await challenge_service.create_or_resume_challenge(USER_ID, "holder", WALLET)
    result = StakedResult(network=Network.MONAD_TESTNET, wallet_address=WALLET, staked_count=2)

    await challenge_service.mark_verified(USER_ID, result)

    stored = await challenge_service.find_by_user(USER_ID)
    assert stored.verified is True
    assert stored.verified_at is not None
    assert isinstance(stored.verification_result, StakedResult)
    assert stored.verification_result.staked_count == 2


@pytest.mark.asyncio
async def test_verified_challenge_returned_unchanged(challenge_service):
    await challenge_service.create_or_resume_challenge(USER_ID, "holder", WALLET)
    result = StakedResult(network=Network.MONAD_TESTNET, wallet_address=WALLET, staked_count=1)
    await challenge_service.mark_verified(USER_ID, result)

    again = await challenge_service.create_or_resume_challenge(USER_ID, "holder", OTHER_WALLET)

    assert again.verified is True
    assert again.claimed_wallet == WALLET


@pytest.mark.asyncio
async def test_mark_verified_without_challenge(challenge_service):
    result = StakedResult(network=Network.MONAD_TESTNET, wallet_address=WALLET, staked_count=1)
    with pytest.raises(NotFoundError):
        await challenge_service.mark_verified(USER_ID, result)


@pytest.mark.asyncio
async def test_remove_by_user(challenge_service):
    await challenge_service.create_or_resume_challenge(USER_ID, "holder", WALLET)

    assert await challenge_service.remove_by_user(USER_ID) is True
    assert await challenge_service.find_by_user(USER_ID) is None
    assert await challenge_service.remove_by_user(USER_ID) is False
