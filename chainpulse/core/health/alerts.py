"""Alert evaluation and lifecycle."""

import logging
import threading
import uuid
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from chainpulse.models.health import (
    Alert,
    AlertCondition,
    AlertSeverity,
    HealthCheckResult,
    HealthStatus,
    ResolveOutcome,
)

logger = logging.getLogger(__name__)


class AlertManager:
    """Creates, deduplicates and resolves alerts.

    At most one unresolved alert exists per (service, condition). Resolved
    alerts stay in the same list; active and resolved views are filters.
    """

    def __init__(self, failure_threshold: int = 3) -> None:
        self.failure_threshold = failure_threshold
        self._alerts: List[Alert] = []
        self._by_id: Dict[str, Alert] = {}
        self._open: Dict[Tuple[str, AlertCondition], str] = {}
        self._lock = threading.Lock()

    def evaluate(
        self, result: HealthCheckResult, slow_threshold_ms: Optional[float] = None
    ) -> List[Alert]:
        """Raise alerts for a new result; returns the alerts created."""
        created = []
        for condition in self._conditions(result, slow_threshold_ms):
            alert = self._create_if_absent(result, condition, slow_threshold_ms)
            if alert is not None:
                created.append(alert)
        return created

    def _conditions(
        self, result: HealthCheckResult, slow_threshold_ms: Optional[float]
    ) -> List[AlertCondition]:
        if result.status == HealthStatus.UNHEALTHY:
            return [AlertCondition.UNHEALTHY]
        if result.status == HealthStatus.DEGRADED:
            return [AlertCondition.DEGRADED]
        if slow_threshold_ms is not None and result.response_time > slow_threshold_ms:
            return [AlertCondition.SLOW_RESPONSE]
        return []

    def severity_for(
        self, condition: AlertCondition, consecutive_failures: int
    ) -> AlertSeverity:
        """Severity derived from the condition and failure streak."""
        if condition == AlertCondition.UNHEALTHY:
            return AlertSeverity.CRITICAL
        if condition == AlertCondition.DEGRADED:
            # One more failure trips the service to unhealthy
            if consecutive_failures >= self.failure_threshold - 1:
                return AlertSeverity.MEDIUM
            return AlertSeverity.LOW
        return AlertSeverity.MEDIUM

    def _message(
        self,
        result: HealthCheckResult,
        condition: AlertCondition,
        slow_threshold_ms: Optional[float],
    ) -> str:
        if condition == AlertCondition.SLOW_RESPONSE:
            return (
                f"High response time detected for {result.service}: "
                f"{result.response_time:.0f}ms (>{slow_threshold_ms:.0f}ms)"
            )
        error = result.error or "Unknown error"
        return (
            f"Service {result.service} is {result.status.value} after "
            f"{result.consecutive_failures} consecutive failure(s): {error}"
        )

    def _create_if_absent(
        self,
        result: HealthCheckResult,
        condition: AlertCondition,
        slow_threshold_ms: Optional[float],
    ) -> Optional[Alert]:
        key = (result.service, condition)
        with self._lock:
            if key in self._open:
                return None

            alert = Alert(
                id=f"{condition.value}-{result.service}-{uuid.uuid4().hex[:12]}",
                severity=self.severity_for(condition, result.consecutive_failures),
                condition=condition,
                message=self._message(result, condition, slow_threshold_ms),
                service=result.service,
                timestamp=datetime.now(timezone.utc),
            )
            self._alerts.append(alert)
            self._by_id[alert.id] = alert
            self._open[key] = alert.id

        logger.warning(
            f"Health alert: {alert.message}",
            extra={
                "alert_id": alert.id,
                "severity": alert.severity.value,
                "service": alert.service,
                "condition": condition.value,
            },
        )
        return alert

    def resolve_alert(self, alert_id: str) -> ResolveOutcome:
        """Mark an alert resolved; unknown or resolved ids are not found."""
        with self._lock:
            alert = self._by_id.get(alert_id)
            if alert is None or alert.resolved:
                return ResolveOutcome.NOT_FOUND
            alert.resolved = True
            alert.resolved_at = datetime.now(timezone.utc)
            self._open.pop((alert.service, alert.condition), None)

        logger.info(
            f"Alert resolved: {alert.message}",
            extra={"alert_id": alert_id, "service": alert.service},
        )
        return ResolveOutcome.RESOLVED

    def get_all_alerts(self) -> List[Alert]:
        """All alerts in creation order (copies)."""
        with self._lock:
            return [alert.model_copy() for alert in self._alerts]

    def get_active_alerts(self) -> List[Alert]:
        return [a for a in self.get_all_alerts() if not a.resolved]

    def get_resolved_alerts(self) -> List[Alert]:
        return [a for a in self.get_all_alerts() if a.resolved]

    def summary(self) -> Dict[str, object]:
        """Counts for the alerts endpoint; severities count active alerts."""
        alerts = self.get_all_alerts()
        active = [a for a in alerts if not a.resolved]
        severities = Counter(a.severity for a in active)
        return {
            "total": len(alerts),
            "active": len(active),
            "resolved": len(alerts) - len(active),
            "bySeverity": {
                severity.value: severities.get(severity, 0)
                for severity in reversed(list(AlertSeverity))
            },
        }

    def by_service(self) -> Dict[str, int]:
        """Number of alerts raised per service."""
        return dict(Counter(a.service for a in self.get_all_alerts()))
