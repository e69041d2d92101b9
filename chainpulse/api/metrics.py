"""Call metrics endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from chainpulse import __version__
from chainpulse.api.dependencies import get_health_service
from chainpulse.core.health import HealthService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["metrics"])


@router.get(
    "/metrics",
    summary="Call metrics",
    description="Outbound call counters, latest rate-limit quota and health uptime",
)
async def get_metrics(service: HealthService = Depends(get_health_service)) -> dict:
    """Return aggregate and per-dependency call metrics."""
    return {
        "api": service.get_metrics().to_response(),
        "services": {
            name: metrics.to_response()
            for name, metrics in service.get_service_metrics().items()
        },
        "rateLimit": service.rate_limits.to_response(),
        "health": {
            "uptimePercentage": round(service.get_uptime_percentage(), 2),
            "trend": service.get_health_trend().value,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
    }


@router.post(
    "/metrics/reset",
    summary="Reset metrics",
    description="Zero all call counters; history and alerts are kept",
)
async def reset_metrics(
    request: Request, service: HealthService = Depends(get_health_service)
) -> dict:
    """Reset counters and return the values they held."""
    previous = service.reset_metrics()

    logger.info(
        "Metrics reset via API",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "client": request.client.host if request.client else None,
        },
    )
    return {
        "success": True,
        "message": "Metrics reset successfully",
        "previousMetrics": {
            name: metrics.to_response() for name, metrics in previous.items()
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
