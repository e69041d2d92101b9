"""Alert endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from chainpulse.api.dependencies import get_health_service
from chainpulse.api.serializers import alert_to_dict
from chainpulse.core.health import HealthService
from chainpulse.models.common import ResolveAlertResponse
from chainpulse.models.health import ResolveOutcome

logger = logging.getLogger(__name__)

router = APIRouter(tags=["alerts"])

# Resolved alerts shown by GET /alerts
RESOLVED_ALERTS_SHOWN = 20


@router.get(
    "/alerts",
    summary="List alerts",
    description="Active alerts, the most recent resolved alerts and counts",
)
async def list_alerts(service: HealthService = Depends(get_health_service)) -> dict:
    """Return active and recently resolved alerts."""
    now = datetime.now(timezone.utc)
    active = service.alerts.get_active_alerts()
    resolved = service.alerts.get_resolved_alerts()[-RESOLVED_ALERTS_SHOWN:]

    return {
        "active": [alert_to_dict(a, now) for a in active],
        "resolved": [alert_to_dict(a, now) for a in resolved],
        "summary": service.alerts.summary(),
        "timestamp": now.isoformat(),
    }


@router.post(
    "/alerts/{alert_id}/resolve",
    summary="Resolve alert",
    description="Mark an active alert resolved",
    responses={
        200: {
            "description": "Alert resolved",
            "content": {
                "application/json": {
                    "example": {
                        "success": True,
                        "message": "Alert resolved successfully",
                        "alertId": "unhealthy-rpc-3f2a9c1b7d4e",
                    }
                }
            },
        },
        404: {"description": "Alert unknown or already resolved"},
    },
)
async def resolve_alert(
    alert_id: str,
    request: Request,
    service: HealthService = Depends(get_health_service),
) -> JSONResponse:
    """Resolve one alert by id."""
    outcome = service.resolve_alert(alert_id)

    if outcome == ResolveOutcome.RESOLVED:
        logger.info(
            "Alert resolved via API",
            extra={
                "alert_id": alert_id,
                "request_id": getattr(request.state, "request_id", None),
                "client": request.client.host if request.client else None,
            },
        )
        body = ResolveAlertResponse(
            success=True, message="Alert resolved successfully", alert_id=alert_id
        )
        status_code = status.HTTP_200_OK
    else:
        body = ResolveAlertResponse(
            success=False, message="Alert not found", alert_id=alert_id
        )
        status_code = status.HTTP_404_NOT_FOUND

    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True))
