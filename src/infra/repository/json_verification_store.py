"""
Verification store backed by a single JSON file.

The whole document is loaded at startup and rewritten atomically (temp file +
rename) on every change. Writes are serialised by an asyncio lock; close()
takes the same lock so an in-flight write completes before shutdown.
"""

import asyncio
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from src.core.exceptions.base import StoreWriteFailureError
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.user import (
    NetworkVerification,
    StoreCapabilities,
    UserRecord,
    VerificationStats,
)
from src.core.service.verification.store import VerificationStore
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class JsonVerificationStore(VerificationStore):
    """Verification records kept in one JSON document keyed by user id"""

    def __init__(self, path: str):
        self.path = Path(path)
        self.capabilities = StoreCapabilities(backend="json", durable=True)
        self._users: Dict[str, UserRecord] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    async def initialize(self) -> None:
        self._users = await asyncio.to_thread(self._read)
        logger.info("JSON verification store loaded", extra={"path": str(self.path), "users": len(self._users)})

    def _read(self) -> Dict[str, UserRecord]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as handle:
            document = json.load(handle)
        return {
            user_id: UserRecord.model_validate(record)
            for user_id, record in document.get("users", {}).items()
        }

    def _write(self, document: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _document(self, users: Dict[str, UserRecord]) -> Dict[str, Any]:
        return {"users": {user_id: user.model_dump(mode="json") for user_id, user in users.items()}}

    async def _persist(self, users: Dict[str, UserRecord]) -> None:
        if self._closed:
            raise StoreWriteFailureError("Verification store is closed")
        try:
            await asyncio.to_thread(self._write, self._document(users))
        except OSError as e:
            logger.error("Failed to write verification store", extra={"path": str(self.path), "error": str(e)})
            raise StoreWriteFailureError(details={"path": str(self.path)})
        self._users = users

    async def save_verification(
        self,
        user_id: str,
        username: str,
        wallet_address: str,
        result,
        network: Network,
    ) -> NetworkVerification:
        async with self._lock:
            now = datetime.now(timezone.utc)
            users = dict(self._users)
            existing = users.get(user_id)
            user = existing.model_copy(deep=True) if existing else UserRecord(
                user_id=user_id, username=username, created_at=now
            )
            user.username = username
            user.last_updated = now

            verification = NetworkVerification(
                network=network,
                wallet_address=wallet_address,
                verified_at=now,
                verification_result=result
            )
            user.verifications[network] = verification
            users[user_id] = user

            await self._persist(users)

        logger.info(
            "Verification saved",
            extra={"user_id": user_id, "network": network.value, "wallet_address": wallet_address}
        )
        return verification

    async def get_user(self, user_id: str) -> Optional[UserRecord]:
        user = self._users.get(user_id)
        return user.model_copy(deep=True) if user else None

    async def remove_user(self, user_id: str) -> bool:
        async with self._lock:
            if user_id not in self._users:
                return False
            users = dict(self._users)
            del users[user_id]
            await self._persist(users)

        logger.info("User verification record removed", extra={"user_id": user_id})
        return True

    async def get_stats(self) -> VerificationStats:
        stats = VerificationStats(total_users=len(self._users))
        for user in self._users.values():
            for network, verification in user.verifications.items():
                if verification.verification_result.verified:
                    stats.verified[network] += 1
                if stats.last_verification is None or verification.verified_at > stats.last_verification:
                    stats.last_verification = verification.verified_at
        return stats

    async def health_check(self) -> Dict[str, Any]:
        status = "degraded" if self.capabilities.degraded else "healthy"
        health = {"status": status, "backend": self.capabilities.backend, "users": len(self._users)}
        if self.capabilities.reason:
            health["message"] = self.capabilities.reason
        return health

    async def close(self) -> None:
        async with self._lock:
            self._closed = True
        logger.info("JSON verification store closed", extra={"path": str(self.path)})
