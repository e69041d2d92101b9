"""Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from chainpulse import __version__
from chainpulse.api import alerts, health, metrics
from chainpulse.config import setup_logging
from chainpulse.core.exceptions import MonitorError
from chainpulse.core.handlers import (
    general_exception_handler,
    http_exception_handler,
    monitor_error_handler,
    validation_error_handler,
)
from chainpulse.core.health import HealthService
from chainpulse.core.middleware import LoggingMiddleware, RequestIDMiddleware
from chainpulse.core.settings import Settings, settings as default_settings

logger = logging.getLogger(__name__)


def _lifespan(settings: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build (if needed), start and stop the health monitor."""
        logger.info(
            "Starting Chainpulse",
            extra={
                "version": __version__,
                "settings": {
                    "rpc_url": settings.rpc_url,
                    "explorer_base_url": settings.explorer_base_url,
                    "health_check_interval": settings.health_check_interval,
                    "health_check_timeout": settings.health_check_timeout,
                    "failure_threshold": settings.failure_threshold,
                },
            },
        )

        service: Optional[HealthService] = getattr(app.state, "health_service", None)
        if service is None:
            # ConfigurationError propagates and aborts startup
            service = HealthService.from_settings(settings)
            app.state.health_service = service

        initial = await service.start()
        logger.info(
            f"Initial health check: {initial.overall.value}",
            extra={"health_score": initial.health_score},
        )

        yield

        logger.info("Shutting down Chainpulse")
        await service.stop()

    return lifespan


def create_app(
    health_service: Optional[HealthService] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        health_service: Prebuilt monitor; built from settings at startup if omitted
        settings: Settings to use instead of the environment-loaded defaults
    """
    settings = settings or default_settings

    # Setup logging first
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        description="Health monitoring for a blockchain JSON-RPC node and explorer "
        "API: periodic probes, health scoring, alerting, call metrics and "
        "rate-limit tracking.",
        version=__version__,
        lifespan=_lifespan(settings),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        openapi_tags=[
            {
                "name": "health",
                "description": "Health checks, readiness and history",
            },
            {
                "name": "alerts",
                "description": "Alert listing and resolution",
            },
            {
                "name": "metrics",
                "description": "Outbound call metrics and rate-limit state",
            },
        ],
    )
    if health_service is not None:
        app.state.health_service = health_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(LoggingMiddleware)

    # Register exception handlers
    app.add_exception_handler(
        MonitorError, monitor_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError, validation_error_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        StarletteHTTPException, http_exception_handler  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, general_exception_handler)

    @app.get(
        "/api",
        response_model=Dict[str, Any],
        summary="API Information",
        description="Basic information about the monitor and its endpoints",
    )
    async def api_info() -> Dict[str, Any]:
        """Get API information and navigation links."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "endpoints": {
                "detailed": "/health/detailed",
                "history": "/health/history",
                "ready": "/ready",
                "metrics": "/metrics",
                "alerts": "/alerts",
            },
        }

    # Include routers
    app.include_router(health.router)
    app.include_router(alerts.router)
    app.include_router(metrics.router)

    return app


# Create app instance
app = create_app()


def run() -> None:
    """Serve the application with uvicorn on the configured host and port."""
    logger.info(
        f"Starting Chainpulse API on {default_settings.api_host}:{default_settings.api_port}"
    )
    try:
        uvicorn.run(
            "chainpulse.main:app",
            host=default_settings.api_host,
            port=default_settings.api_port,
            reload=default_settings.reload,
            log_level=default_settings.log_level.lower(),
        )
    except Exception as e:
        logger.error(f"Failed to start Chainpulse API: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
