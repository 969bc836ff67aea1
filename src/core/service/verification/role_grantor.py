"""
Discord role assignment.

Grants are assumed at-least-once: callers may repeat a grant for a role the
member already has, which Discord treats as a no-op.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from src.core.http_client import create_client
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class RoleGrantor(ABC):
    """Grants and revokes guild roles for a user"""

    @abstractmethod
    async def grant(self, user_id: str, role_id: str) -> bool:
        pass

    @abstractmethod
    async def revoke(self, user_id: str, role_id: str) -> bool:
        pass

    async def close(self) -> None:
        pass


class LoggingRoleGrantor(RoleGrantor):
    """Used when no bot token is configured: records the request and reports success"""

    async def grant(self, user_id: str, role_id: str) -> bool:
        logger.info("Role grant requested (no Discord token configured)", extra={"user_id": user_id, "role_id": role_id})
        return True

    async def revoke(self, user_id: str, role_id: str) -> bool:
        logger.info("Role revoke requested (no Discord token configured)", extra={"user_id": user_id, "role_id": role_id})
        return True


class DiscordRoleGrantor(RoleGrantor):
    """Role grantor backed by the Discord REST API"""

    def __init__(
        self,
        bot_token: str,
        guild_id: str,
        api_url: str = "https://discord.com/api/v10",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.guild_id = guild_id
        self.api_url = api_url.rstrip("/")
        self.client = client or create_client("discord", headers={"Authorization": f"Bot {bot_token}"})

    def _role_url(self, user_id: str, role_id: str) -> str:
        return f"{self.api_url}/guilds/{self.guild_id}/members/{user_id}/roles/{role_id}"

    async def _send(self, method: str, user_id: str, role_id: str) -> bool:
        try:
            response = await self.client.request(
                method,
                self._role_url(user_id, role_id),
                headers={"X-Audit-Log-Reason": "NFT holdings verification"}
            )
            response.raise_for_status()
            logger.info(
                "Discord role updated",
                extra={"user_id": user_id, "role_id": role_id, "http_method": method}
            )
            return True
        except httpx.HTTPStatusError as e:
            logger.error(
                "Discord rejected role update",
                extra={
                    "user_id": user_id,
                    "role_id": role_id,
                    "http_method": method,
                    "status_code": e.response.status_code
                }
            )
            return False
        except httpx.HTTPError as e:
            logger.error(
                "Discord role update failed",
                extra={"user_id": user_id, "role_id": role_id, "http_method": method, "error": str(e)}
            )
            return False

    async def grant(self, user_id: str, role_id: str) -> bool:
        return await self._send("PUT", user_id, role_id)

    async def revoke(self, user_id: str, role_id: str) -> bool:
        return await self._send("DELETE", user_id, role_id)

    async def close(self) -> None:
        await self.client.aclose()
