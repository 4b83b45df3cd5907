"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.
It wires settings, the Instagram client and the reply policy into the
event router, and sets up routes and exception handlers.

Design Decisions:
- Build every collaborator once in create_app and keep it on app.state
- Use lifespan events for the configuration check and maintenance task
- Missing credentials are logged, not fatal
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app import __version__
from app.config import Settings, get_settings
from app.logging_config import (
    get_logger,
    install_asyncio_exception_handler,
    install_exception_hooks,
    setup_logging,
)
from app.maintenance import run_periodic_maintenance
from app.services.instagram_client import InstagramClient
from app.services.reply_policy import KeywordReplyPolicy, ReplyPolicy
from app.webhook import router as webhook_router
from app.webhook.processor import EventRouter, Messenger

# Initialize logging first
setup_logging()
install_exception_hooks()

logger = get_logger(__name__)

SERVICE_NAME = "Instagram DM Bot"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Logs the configuration check, installs the asyncio exception handler
    and runs the maintenance task until shutdown.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Starting Instagram DM Bot",
        host=settings.host,
        port=settings.port,
        dry_run=settings.dry_run
    )

    for name, is_set in settings.credential_status().items():
        if is_set:
            logger.info("Configuration check", setting=name, status="set")
        else:
            logger.warning("Configuration check", setting=name, status="missing")

    install_asyncio_exception_handler(asyncio.get_running_loop())

    maintenance_task = None
    if settings.maintenance_enabled:
        maintenance_task = asyncio.create_task(
            run_periodic_maintenance(settings.maintenance_interval_seconds)
        )

    yield

    # Shutdown
    if maintenance_task is not None:
        maintenance_task.cancel()
        with suppress(asyncio.CancelledError):
            await maintenance_task
    logger.info("Shutting down Instagram DM Bot")


def create_app(
    settings: Optional[Settings] = None,
    messenger: Optional[Messenger] = None,
    policy: Optional[ReplyPolicy] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment if omitted
        messenger: Outbound messenger; an InstagramClient if omitted
        policy: Reply policy; KeywordReplyPolicy if omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=SERVICE_NAME,
        description="Turns Instagram comments and DMs into automated replies",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    app.state.settings = settings
    app.state.event_router = EventRouter(
        settings,
        messenger or InstagramClient(settings),
        policy or KeywordReplyPolicy()
    )

    # Register routes
    app.include_router(webhook_router)

    # Add global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            error_type=type(exc).__name__
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "type": type(exc).__name__
            }
        )

    # Add root endpoint
    @app.get("/")
    async def root():
        """Root endpoint with basic info."""
        return {
            "message": f"{SERVICE_NAME} is running",
            "version": __version__,
            "endpoints": {
                "health": "/health",
                "ready": "/ready",
                "webhook": "/webhook"
            }
        }

    # Add health check endpoint
    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.

        Returns basic health status for load balancers and monitors.
        """
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME
        }

    # Add readiness check endpoint
    @app.get("/ready")
    async def readiness_check():
        """
        Readiness check endpoint.

        Ready once every credential is configured.
        """
        missing = settings.missing_credentials()
        if missing:
            logger.error("Readiness check failed", missing=missing)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=f"Not ready, missing configuration: {', '.join(missing)}"
            )

        return {
            "status": "ready",
            "service": SERVICE_NAME
        }

    return app


# Create the application instance
app = create_app()


def serve(settings: Optional[Settings] = None) -> None:
    """
    Serve the application with uvicorn.

    Without explicit settings the module-level app is served with the
    environment settings it was built from.
    """
    application = app if settings is None else create_app(settings=settings)
    settings = application.state.settings

    uvicorn.run(
        application,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=settings.log_requests
    )
