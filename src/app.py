import json
from datetime import datetime
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from src.infra.config.settings import Settings, get_settings
from src.core.context import AppContext
from src.core.logger.logger import logger
from src.api.router import health, verification
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler


def create_app(context: Optional[AppContext] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    When a prepared context is passed it is used as-is (and still started and
    closed with the app); otherwise one is created from settings at startup.
    """
    settings = settings or (context.settings if context else get_settings())

    app = FastAPI(
        title=settings.APP_NAME,
        description="""
NFT holdings verification for Discord role gating.

## Flow
- **Start**: request a micro-payment challenge for your wallet on Monad testnet
- **Confirm**: after sending the exact amount, confirm to check NFT holdings (direct or staked)
- **Networks**: verify Arbitrum and Berachain holdings with the same wallet
        """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
        max_age=600,  # 10 minutes
    )

    # Request logging middleware (should be first to catch all requests)
    app.add_middleware(RequestLoggingMiddleware)

    # Add centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(verification.router)

    app.state.context = None

    @app.on_event("startup")
    async def startup_event():
        logger.info(json.dumps({
            "message": "Starting verification service",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION
        }))

        app_context = context or await AppContext.create(settings)
        await app_context.start()
        app.state.context = app_context

        capabilities = app_context.verification_store.capabilities
        logger.info(
            "Verification service ready",
            extra={
                "store_backend": capabilities.backend,
                "store_degraded": capabilities.degraded,
                "networks": [n.value for n in app_context.registry.get_supported_networks()]
            }
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(json.dumps({
            "message": "Shutting down verification service",
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION
        }))

        app_context = app.state.context
        if app_context is not None:
            await app_context.close()
            app.state.context = None

    return app
