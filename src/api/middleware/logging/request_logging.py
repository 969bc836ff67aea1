import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.core.logger.logger import get_logger

logger = get_logger("http")

# Polled by orchestrators; logged at debug to keep the request log readable
QUIET_PATHS = ("/health", "/")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with a correlation id, status and duration"""

    async def dispatch(self, request: Request, call_next) -> Response:
        start_time = time.perf_counter()

        correlation_id = request.headers.get("X-Request-ID") or str(uuid4())
        request.state.request_id = correlation_id

        log_context = {
            "request_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }

        response: Optional[Response] = None
        try:
            response = await call_next(request)
        except Exception as e:
            log_context.update({
                "error_type": e.__class__.__name__,
                "duration_ms": round((time.perf_counter() - start_time) * 1000, 2)
            })
            logger.error(f"Request failed: {e}", extra=log_context, exc_info=True)
            raise

        duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log_context.update({"status_code": response.status_code, "duration_ms": duration_ms})
        response.headers["X-Request-ID"] = correlation_id

        if request.url.path in QUIET_PATHS and response.status_code < 400:
            logger.debug(f"{request.method} {request.url.path}", extra=log_context)
        elif response.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}", extra=log_context)
        elif response.status_code >= 400:
            logger.warning(f"{request.method} {request.url.path}", extra=log_context)
        else:
            logger.info(f"{request.method} {request.url.path}", extra=log_context)

        return response
