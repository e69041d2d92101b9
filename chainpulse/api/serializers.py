"""Rendering of monitor models into camelCase JSON bodies."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from chainpulse.models.health import (
    Alert,
    HealthCheckResult,
    SystemHealth,
)


def format_uptime(uptime_ms: float) -> str:
    """Render a duration in ms as ``1d 2h 3m``, ``2h 3m 4s``, ``3m 4s`` or ``4s``."""
    seconds = int(uptime_ms // 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)

    if days:
        return f"{days}d {hours}h {minutes}m"
    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


def result_to_dict(result: HealthCheckResult) -> Dict[str, Any]:
    return {
        "service": result.service,
        "status": result.status.value,
        "responseTime": result.response_time,
        "timestamp": result.timestamp.isoformat(),
        "error": result.error,
        "consecutiveFailures": result.consecutive_failures,
    }


def system_health_to_dict(health: SystemHealth) -> Dict[str, Any]:
    return {
        "overall": health.overall.value,
        "lastCheck": health.last_check.isoformat(),
        "uptime": health.uptime,
        "healthScore": health.health_score,
        "services": [result_to_dict(r) for r in health.services],
    }


def alert_to_dict(alert: Alert, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    return {
        "id": alert.id,
        "severity": alert.severity.value,
        "condition": alert.condition.value,
        "message": alert.message,
        "service": alert.service,
        "timestamp": alert.timestamp.isoformat(),
        "resolved": alert.resolved,
        "resolvedAt": alert.resolved_at.isoformat() if alert.resolved_at else None,
        "age": int((now - alert.timestamp).total_seconds() * 1000),
    }


def start_time(health: SystemHealth) -> str:
    """Wall-clock time the monitor started, derived from a snapshot."""
    return (health.last_check - timedelta(milliseconds=health.uptime)).isoformat()
