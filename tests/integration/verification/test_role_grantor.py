import httpx
import pytest

from src.core.http_client import create_client
from src.core.service.verification.role_grantor import DiscordRoleGrantor, LoggingRoleGrantor

USER_ID = "123456789012345678"
ROLE_ID = "111111111111111111"
GUILD_ID = "999999999999999999"
API_URL = "https://discord.test/api/v10"


def grantor_with(handler):
    client = create_client(
        "discord",
        headers={"Authorization": "Bot test-token"},
        transport=httpx.MockTransport(handler),
    )
    return DiscordRoleGrantor("test-token", GUILD_ID, API_URL, client=client)


@pytest.mark.asyncio
async def test_grant_puts_member_role():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(204)

    grantor = grantor_with(handler)
    assert await grantor.grant(USER_ID, ROLE_ID) is True
    await grantor.close()

    request = requests[0]
    assert request.method == "PUT"
    assert str(request.url) == f"{API_URL}/guilds/{GUILD_ID}/members/{USER_ID}/roles/{ROLE_ID}"
    assert request.headers["Authorization"] == "Bot test-token"
    assert request.headers["X-Audit-Log-Reason"] == "NFT holdings verification"


@pytest.mark.asyncio
async def test_revoke_deletes_member_role():
    methods = []

    def handler(request):
        methods.append(request.method)
        return httpx.Response(204)

    grantor = grantor_with(handler)
    assert await grantor.revoke(USER_ID, ROLE_ID) is True
    await grantor.close()

    assert methods == ["DELETE"]


@pytest.mark.asyncio
async def test_rejected_grant_returns_false():
    grantor = grantor_with(lambda request: httpx.Response(403, json={"message": "Missing Permissions"}))

    assert await grantor.grant(USER_ID, ROLE_ID) is False
    await grantor.close()


@pytest.mark.asyncio
async def test_transport_failure_returns_false():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    grantor = grantor_with(handler)

    assert await grantor.grant(USER_ID, ROLE_ID) is False
    await grantor.close()


@pytest.mark.asyncio
async def test_default_client_sends_bot_token():
    grantor = DiscordRoleGrantor("secret-token", GUILD_ID, API_URL)

    assert grantor.client.headers["Authorization"] == "Bot secret-token"
    assert grantor.client.headers["Accept"] == "application/json"
    await grantor.close()


@pytest.mark.asyncio
async def test_logging_grantor_reports_success():
    grantor = LoggingRoleGrantor()

    assert await grantor.grant(USER_ID, ROLE_ID) is True
    assert await grantor.revoke(USER_ID, ROLE_ID) is True
