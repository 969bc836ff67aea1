import platform
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, status

from src.core.context import AppContext
from src.core.dependencies import get_app_context
from src.core.logger.logger import logger
from src.infra.config.redis import check_redis_health
from src.core.service.verification.models.user import VerificationStats

router = APIRouter(tags=["status"])


async def check_store_health(context: AppContext) -> Dict[str, Any]:
    """Check verification store health, including the backend it runs on."""
    try:
        health = await context.verification_store.health_check()
    except Exception as e:
        logger.error(f"Verification store health check failed: {str(e)}")
        health = {"status": "unhealthy", "message": str(e)}
    health["capabilities"] = context.verification_store.capabilities.model_dump()
    return health


def get_context(request: Request) -> Optional[AppContext]:
    # Health must answer even before startup has finished
    return getattr(request.app.state, "context", None)


@router.get("/health", status_code=status.HTTP_200_OK)
@router.get("/", status_code=status.HTTP_200_OK, include_in_schema=False)
async def health_check(context: Optional[AppContext] = Depends(get_context)):
    """
    Liveness and readiness of the service.
    Returns uptime, process info and the status of the store and Redis.
    """
    body: Dict[str, Any] = {
        "status": "starting",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "python_version": platform.python_version(),
    }
    if context is None:
        return body

    redis_health = await check_redis_health(context.redis)
    store_health = await check_store_health(context)

    services = {
        "redis": redis_health["status"],
        "store": store_health["status"],
    }
    if not context.ready:
        overall = "starting"
    elif any(value == "unhealthy" for value in services.values()):
        overall = "unhealthy"
    elif any(value == "degraded" for value in services.values()):
        overall = "degraded"
    else:
        overall = "ok"

    body.update({
        "status": overall,
        "version": context.settings.APP_VERSION,
        "uptime_seconds": context.uptime_seconds,
        "pid": context.pid,
        "services": services,
        "store": store_health,
        "redis": redis_health,
    })
    return body


@router.get("/stats", response_model=VerificationStats, status_code=status.HTTP_200_OK)
async def get_stats(context: AppContext = Depends(get_app_context)):
    """Aggregate verification counts per network."""
    return await context.verification_store.get_stats()
