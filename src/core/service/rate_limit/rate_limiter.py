"""
In-process rate limiting for verification commands.

Each (user, action) pair gets a fixed-window counter; shared external resources
(holdings API, Discord role assignment) get global counters. Repeated failed
verifications put a penalty on the user that blocks the action until it expires.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Tuple

from src.infra.config.settings import Settings, get_settings
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

PENALTY_COUNT = 999


@dataclass
class RateLimitRule:
    count: int
    window_seconds: float


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float
    limit: int

    def reset_at_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc)


@dataclass
class _Counter:
    count: int
    reset_at: float


class RateLimitConfig:
    """Rule tables built from settings"""

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.user_rules: Dict[str, RateLimitRule] = {
            "verify": RateLimitRule(settings.RATE_LIMIT_VERIFY_COUNT, settings.RATE_LIMIT_VERIFY_WINDOW_SECONDS),
            "submit": RateLimitRule(settings.RATE_LIMIT_SUBMIT_COUNT, settings.RATE_LIMIT_SUBMIT_WINDOW_SECONDS),
            "status": RateLimitRule(settings.RATE_LIMIT_STATUS_COUNT, settings.RATE_LIMIT_STATUS_WINDOW_SECONDS),
            "reset": RateLimitRule(settings.RATE_LIMIT_RESET_COUNT, settings.RATE_LIMIT_RESET_WINDOW_SECONDS),
        }
        self.global_rules: Dict[str, RateLimitRule] = {
            "holdings_request": RateLimitRule(
                settings.RATE_LIMIT_HOLDINGS_COUNT, settings.RATE_LIMIT_HOLDINGS_WINDOW_SECONDS
            ),
            "role_assignment": RateLimitRule(
                settings.RATE_LIMIT_ROLE_ASSIGNMENT_COUNT, settings.RATE_LIMIT_ROLE_ASSIGNMENT_WINDOW_SECONDS
            ),
        }
        self.penalty_seconds = settings.PENALTY_DURATION_SECONDS
        self.failed_attempt_threshold = settings.FAILED_ATTEMPT_THRESHOLD
        self.sweep_interval_seconds = settings.RATE_LIMIT_SWEEP_INTERVAL_SECONDS


class RateLimiter:
    """Fixed-window counters with penalties and a periodic sweep"""

    def __init__(self, config: Optional[RateLimitConfig] = None, clock: Callable[[], float] = time.time):
        self.config = config or RateLimitConfig()
        self.clock = clock
        self.user_limits: Dict[str, _Counter] = {}
        self.global_limits: Dict[str, _Counter] = {}
        self.failed_attempts: Dict[str, Tuple[int, float]] = {}
        self._sweep_task: Optional[asyncio.Task] = None

    @staticmethod
    def _user_key(user_id: str, action: str) -> str:
        return f"{user_id}:{action}"

    @staticmethod
    def _penalty_key(user_id: str, action: str) -> str:
        return f"{user_id}:{action}:penalty"

    def _consume(self, table: Dict[str, _Counter], key: str, rule: RateLimitRule) -> RateLimitDecision:
        now = self.clock()
        counter = table.get(key)

        if counter is None or now > counter.reset_at:
            counter = _Counter(count=1, reset_at=now + rule.window_seconds)
            table[key] = counter
            return RateLimitDecision(True, rule.count - 1, counter.reset_at, rule.count)

        if counter.count >= rule.count:
            return RateLimitDecision(False, 0, counter.reset_at, rule.count)

        counter.count += 1
        return RateLimitDecision(True, rule.count - counter.count, counter.reset_at, rule.count)

    def check_user_limit(self, user_id: str, action: str) -> RateLimitDecision:
        """Count one attempt of an action by a user; unknown actions use the verify rule."""
        rule = self.config.user_rules.get(action, self.config.user_rules["verify"])
        decision = self._consume(self.user_limits, self._user_key(user_id, action), rule)
        if not decision.allowed:
            logger.warning(
                "User rate limit exceeded",
                extra={"user_id": user_id, "action": action, "limit": rule.count}
            )
        return decision

    def check_global_limit(self, action: str) -> RateLimitDecision:
        """Count one use of a shared resource; unknown actions are never limited."""
        rule = self.config.global_rules.get(action)
        if rule is None:
            return RateLimitDecision(True, 0, self.clock(), 0)
        decision = self._consume(self.global_limits, action, rule)
        if not decision.allowed:
            logger.warning("Global rate limit exceeded", extra={"action": action, "limit": rule.count})
        return decision

    def add_penalty(self, user_id: str, action: str, duration_seconds: Optional[float] = None) -> float:
        """Block an action for a user; returns the time the penalty lifts."""
        duration = duration_seconds if duration_seconds is not None else self.config.penalty_seconds
        reset_at = self.clock() + duration
        self.user_limits[self._penalty_key(user_id, action)] = _Counter(count=PENALTY_COUNT, reset_at=reset_at)
        logger.warning(
            "Penalty applied",
            extra={"user_id": user_id, "action": action, "duration_seconds": duration}
        )
        return reset_at

    def is_penalized(self, user_id: str, action: str) -> Optional[float]:
        """Return the penalty's reset time while one is active, evicting it once expired."""
        key = self._penalty_key(user_id, action)
        penalty = self.user_limits.get(key)
        if penalty is None:
            return None
        if self.clock() > penalty.reset_at:
            del self.user_limits[key]
            return None
        return penalty.reset_at

    def record_failure(self, user_id: str, action: str) -> bool:
        """
        Record a failed verification attempt.

        Returns:
            bool: True when this failure crossed the threshold and a penalty was applied
        """
        now = self.clock()
        key = self._user_key(user_id, action)
        count, first_attempt = self.failed_attempts.get(key, (0, now))
        if now - first_attempt > self.config.penalty_seconds:
            count, first_attempt = 0, now

        count += 1
        if count >= self.config.failed_attempt_threshold:
            self.failed_attempts.pop(key, None)
            self.add_penalty(user_id, action)
            return True

        self.failed_attempts[key] = (count, first_attempt)
        return False

    def clear_failures(self, user_id: str, action: str) -> None:
        self.failed_attempts.pop(self._user_key(user_id, action), None)

    def cleanup(self) -> int:
        """Drop expired counters and penalties; returns how many entries were removed."""
        now = self.clock()
        removed = 0
        for table in (self.user_limits, self.global_limits):
            for key in [key for key, counter in table.items() if now > counter.reset_at]:
                del table[key]
                removed += 1
        for key in [key for key, (_, first) in self.failed_attempts.items() if now - first > self.config.penalty_seconds]:
            del self.failed_attempts[key]
            removed += 1
        if removed:
            logger.debug("Rate limiter cleanup", extra={"removed": removed})
        return removed

    def get_status(self) -> Dict[str, int]:
        return {
            "user_entries": len(self.user_limits),
            "global_entries": len(self.global_limits),
            "tracked_failures": len(self.failed_attempts),
        }

    def retry_after(self, reset_at: float) -> int:
        return max(1, int(round(reset_at - self.clock())))

    def format_time_remaining(self, reset_at: float) -> str:
        seconds = max(0, int(round(reset_at - self.clock())))
        if seconds < 60:
            return f"{seconds} second{'s' if seconds != 1 else ''}"
        minutes = -(-seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"

    async def _sweep(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval_seconds)
            self.cleanup()

    def start(self) -> None:
        """Start the background sweep on the running loop"""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep())

    async def stop(self) -> None:
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        try:
            await self._sweep_task
        except asyncio.CancelledError:
            pass
        self._sweep_task = None
