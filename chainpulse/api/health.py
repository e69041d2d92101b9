"""Health check endpoints."""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from chainpulse import __version__
from chainpulse.api.dependencies import get_health_service
from chainpulse.api.serializers import (
    alert_to_dict,
    format_uptime,
    result_to_dict,
    start_time,
    system_health_to_dict,
)
from chainpulse.core.health import HealthService, performance_grade
from chainpulse.core.health.history import HistoryStore
from chainpulse.models.health import HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

DEFAULT_HISTORY_LIMIT = 100

STATUS_CODES = {
    HealthStatus.HEALTHY: status.HTTP_200_OK,
    HealthStatus.DEGRADED: status.HTTP_206_PARTIAL_CONTENT,
    HealthStatus.UNHEALTHY: status.HTTP_503_SERVICE_UNAVAILABLE,
}


@router.get(
    "/health",
    summary="Health check",
    description="Run (or join) a probe cycle and report overall status. "
    "Responds 200 when healthy, 206 when degraded and 503 when unhealthy.",
    responses={
        200: {
            "description": "All dependencies are healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2025-01-15T14:30:52.123456+00:00",
                        "uptime": "1h 2m 3s",
                        "healthScore": 100,
                        "services": [
                            {
                                "name": "rpc",
                                "status": "healthy",
                                "responseTime": 84.12,
                                "lastCheck": "2025-01-15T14:30:52.120000+00:00",
                            }
                        ],
                        "version": "0.1.0",
                    }
                }
            },
        },
        206: {"description": "At least one dependency is degraded or slow"},
        503: {"description": "At least one dependency is unhealthy"},
    },
)
async def health_check(
    service: HealthService = Depends(get_health_service),
) -> JSONResponse:
    """Return overall status, score and per-service results."""
    health = await service.perform_health_check()

    return JSONResponse(
        status_code=STATUS_CODES[health.overall],
        content={
            "status": health.overall.value,
            "timestamp": health.last_check.isoformat(),
            "uptime": format_uptime(health.uptime),
            "healthScore": health.health_score,
            "services": [
                {
                    "name": result.service,
                    "status": result.status.value,
                    "responseTime": result.response_time,
                    "lastCheck": result.timestamp.isoformat(),
                }
                for result in health.services
            ],
            "version": __version__,
        },
    )


@router.get(
    "/health/detailed",
    summary="Detailed health",
    description="Latest cycle plus call metrics, uptime, trend and active alerts",
)
async def detailed_health(
    service: HealthService = Depends(get_health_service),
) -> JSONResponse:
    """Return the full snapshot with metrics and alert context."""
    health = await service.perform_health_check()
    alerts = service.get_all_alerts()
    metrics = service.get_metrics()
    now = datetime.now(timezone.utc)

    body = system_health_to_dict(health)
    body.update(
        {
            "metrics": {
                "api": {
                    **metrics.to_response(),
                    "performanceGrade": performance_grade(
                        metrics.average_response_time, metrics.error_rate
                    ),
                },
                "uptime": {
                    "percentage": round(service.get_uptime_percentage(), 2),
                    "trend": service.get_health_trend().value,
                    "startTime": start_time(health),
                },
            },
            "alerts": {
                "active": [alert_to_dict(a, now) for a in alerts if not a.resolved],
                "total": len(alerts),
                "byService": service.alerts.by_service(),
            },
            "version": __version__,
        }
    )
    return JSONResponse(content=body)


@router.get(
    "/health/history",
    summary="Health history",
    description="Retained health check results, oldest first, with summary statistics",
    responses={404: {"description": "The service is not monitored"}},
)
async def health_history(
    service_name: Optional[str] = Query(
        None, alias="service", description="Only results for this service"
    ),
    limit: int = Query(
        DEFAULT_HISTORY_LIMIT, ge=1, description="Newest N results (capped at capacity)"
    ),
    service: HealthService = Depends(get_health_service),
) -> JSONResponse:
    """Return a slice of the history buffer."""
    entries = service.get_health_history(service_name, limit)
    return JSONResponse(
        content={
            "history": [result_to_dict(e) for e in entries],
            "statistics": HistoryStore.statistics(entries),
            "filters": {
                "service": service_name or "all",
                "limit": min(limit, service.history.capacity),
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@router.get(
    "/ready",
    summary="Readiness check",
    description="Ready once the monitor has committed its first cycle",
    responses={503: {"description": "No cycle has completed yet"}},
)
async def readiness_check(
    service: HealthService = Depends(get_health_service),
) -> JSONResponse:
    """Report whether a health snapshot is available."""
    latest = service.latest_health()
    ready = latest is not None
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "ready": ready,
            "scheduler_running": service.scheduler.running,
            "services": service.services,
        },
    )
