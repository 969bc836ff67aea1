from typing import Any, Dict, Optional
from fastapi import status

from src.core.exceptions.handler import ServiceError, ServiceErrorCode


class NotFoundError(ServiceError):
    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.CHALLENGE_NOT_FOUND,
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
        )


class ValidationError(ServiceError):
    def __init__(
        self,
        message: str = "Validation error",
        code: str = ServiceErrorCode.INVALID_INPUT,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class PreconditionFailedError(ServiceError):
    def __init__(self, message: str = "Precondition failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.PRIMARY_NOT_VERIFIED,
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
        )


class UpstreamUnavailableError(ServiceError):
    def __init__(
        self,
        message: str = "Upstream service unavailable",
        code: str = ServiceErrorCode.RPC_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details,
        )


class StoreWriteFailureError(ServiceError):
    def __init__(self, message: str = "Failed to persist verification", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.STORE_WRITE_FAILED,
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
        )


class RateLimitedError(ServiceError):
    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        code: str = ServiceErrorCode.RATE_LIMIT_EXCEEDED,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = {"retry_after": retry_after}
        payload.update(details or {})
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=payload,
        )
        self.retry_after = retry_after


class UnauthorizedError(ServiceError):
    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ServiceErrorCode.INVALID_API_KEY,
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            details=details,
        )
