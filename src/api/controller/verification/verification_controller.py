"""Verification controller: rate limiting and HTTP mapping for verification commands."""

from typing import Dict

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from src.api.controller.verification.dto.input_dto import StartVerificationRequestDto, UserCommandRequestDto
from src.core.exceptions.base import RateLimitedError
from src.core.exceptions.handler import ServiceErrorCode
from src.core.service.rate_limit.rate_limiter import RateLimiter
from src.core.service.verification.models.network import Network
from src.core.service.verification.models.outcome import OutcomeStatus, VerificationOutcome
from src.core.service.verification.verification_service import VerificationService
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

OUTCOME_HTTP_STATUS: Dict[OutcomeStatus, int] = {
    OutcomeStatus.CHALLENGE_ISSUED: 200,
    OutcomeStatus.ALREADY_VERIFIED: 200,
    OutcomeStatus.VERIFIED: 200,
    OutcomeStatus.FAILED: 200,
    OutcomeStatus.TRANSFER_NOT_FOUND: 200,
    OutcomeStatus.NOT_FOUND: 404,
    OutcomeStatus.INVALID_WALLET: 422,
    OutcomeStatus.INVALID_NETWORK: 422,
    OutcomeStatus.PRECONDITION_FAILED: 409,
    OutcomeStatus.IN_PROGRESS: 409,
    OutcomeStatus.RATE_LIMITED: 429,
    OutcomeStatus.ERROR: 500,
}

# Outcomes that count towards the failed-attempt penalty
FAILURE_STATUSES = (OutcomeStatus.FAILED, OutcomeStatus.TRANSFER_NOT_FOUND)


class VerificationController:
    """Controller for verification commands."""

    def __init__(self, verification_service: VerificationService, rate_limiter: RateLimiter):
        self.service = verification_service
        self.rate_limiter = rate_limiter

    def enforce_limits(self, user_id: str, action: str) -> None:
        """
        Reject the command when the user is penalised or over the action's limit.

        Raises:
            RateLimitedError: with retry_after seconds
        """
        penalty_reset = self.rate_limiter.is_penalized(user_id, action)
        if penalty_reset is not None:
            raise RateLimitedError(
                message=f"Too many failed attempts. Try again in "
                        f"{self.rate_limiter.format_time_remaining(penalty_reset)}.",
                retry_after=self.rate_limiter.retry_after(penalty_reset),
                code=ServiceErrorCode.USER_PENALIZED
            )

        decision = self.rate_limiter.check_user_limit(user_id, action)
        if not decision.allowed:
            raise RateLimitedError(
                message=f"Rate limit exceeded. Try again in "
                        f"{self.rate_limiter.format_time_remaining(decision.reset_at)}.",
                retry_after=self.rate_limiter.retry_after(decision.reset_at),
                details={"limit": decision.limit}
            )

    def _track_attempt(self, user_id: str, action: str, outcome: VerificationOutcome) -> None:
        if outcome.status in FAILURE_STATUSES:
            if self.rate_limiter.record_failure(user_id, action):
                logger.warning(
                    "User penalised after repeated failed verifications",
                    extra={"user_id": user_id, "action": action}
                )
        elif outcome.status == OutcomeStatus.VERIFIED:
            self.rate_limiter.clear_failures(user_id, action)

    @staticmethod
    def render(outcome: VerificationOutcome) -> JSONResponse:
        status_code = OUTCOME_HTTP_STATUS.get(outcome.status, 500)
        headers = {"Retry-After": "60"} if outcome.status == OutcomeStatus.RATE_LIMITED else None
        return JSONResponse(status_code=status_code, content=jsonable_encoder(outcome), headers=headers)

    async def start(self, request: StartVerificationRequestDto) -> JSONResponse:
        self.enforce_limits(request.user_id, "verify")
        outcome = await self.service.start_verification(request.user_id, request.username, request.wallet_address)
        return self.render(outcome)

    async def confirm(self, request: UserCommandRequestDto) -> JSONResponse:
        self.enforce_limits(request.user_id, "submit")
        outcome = await self.service.confirm_transaction(request.user_id, request.username)
        self._track_attempt(request.user_id, "submit", outcome)
        return self.render(outcome)

    async def verify_network(self, network: Network, request: UserCommandRequestDto) -> JSONResponse:
        self.enforce_limits(request.user_id, "submit")
        outcome = await self.service.verify_secondary(request.user_id, request.username, network)
        self._track_attempt(request.user_id, "submit", outcome)
        return self.render(outcome)

    async def status(self, user_id: str):
        self.enforce_limits(user_id, "status")
        status = await self.service.get_status(user_id)
        if status.error:
            return JSONResponse(status_code=500, content=jsonable_encoder(status))
        return status

    def configuration(self):
        return self.service.get_configuration()

    async def reset(self, user_id: str):
        self.enforce_limits(user_id, "reset")
        outcome = await self.service.reset(user_id)
        if outcome.errors:
            # partial reset: report what was done alongside the failures
            return JSONResponse(status_code=500, content=jsonable_encoder(outcome))
        return outcome
