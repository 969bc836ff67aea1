"""
FastAPI dependency injection functions.
Everything resolves from the AppContext stored on app.state at startup.
"""

from typing import Optional
from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader

from src.core.context import AppContext
from src.core.exceptions.base import UnauthorizedError
from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.rate_limit.rate_limiter import RateLimiter
from src.core.service.verification.store import VerificationStore
from src.core.service.verification.verification_service import VerificationService
from src.api.controller.verification.verification_controller import VerificationController
from src.core.logger.logger import get_logger

logger = get_logger(__name__)

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_app_context(request: Request) -> AppContext:
    """Get the application context created at startup."""
    context: Optional[AppContext] = getattr(request.app.state, "context", None)
    if context is None:
        raise ServiceError(
            code=ServiceErrorCode.SERVICE_UNAVAILABLE,
            message="Service is starting",
            status_code=503
        )
    return context


def get_verification_service(context: AppContext = Depends(get_app_context)) -> VerificationService:
    return context.verification_service


def get_verification_store(context: AppContext = Depends(get_app_context)) -> VerificationStore:
    return context.verification_store


def get_rate_limiter(context: AppContext = Depends(get_app_context)) -> RateLimiter:
    return context.rate_limiter


def get_verification_controller(
    service: VerificationService = Depends(get_verification_service),
    rate_limiter: RateLimiter = Depends(get_rate_limiter)
) -> VerificationController:
    """Get verification controller with service and rate limiter dependencies."""
    return VerificationController(service, rate_limiter)


def require_api_key(
    api_key: Optional[str] = Security(api_key_header),
    context: AppContext = Depends(get_app_context)
) -> None:
    """Check the X-API-Key header when COMMAND_API_KEY is configured."""
    expected = context.settings.COMMAND_API_KEY
    if expected and api_key != expected:
        logger.warning("Rejected command request with invalid API key")
        raise UnauthorizedError("Invalid or missing API key")
