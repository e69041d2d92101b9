"""Bounded history of health check results."""

import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from chainpulse.models.health import HealthCheckResult, HealthStatus, HealthTrend

DEFAULT_CAPACITY = 1000
# Healthy-ratio change, in percentage points, that counts as a trend
TREND_DEAD_BAND = 5.0


class HistoryStore:
    """Append-only ring buffer of HealthCheckResults.

    Oldest entries are dropped silently once ``capacity`` is reached, so
    uptime and trend describe the retained window only.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._entries: Deque[HealthCheckResult] = deque(maxlen=capacity)
        self._services: Dict[str, None] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, result: HealthCheckResult) -> None:
        """Add a result, evicting the oldest on overflow."""
        with self._lock:
            self._entries.append(result)
            self._services.setdefault(result.service, None)

    def services(self) -> List[str]:
        """Service names seen since start, in first-seen order."""
        with self._lock:
            return list(self._services)

    def _snapshot(self, service: Optional[str] = None) -> List[HealthCheckResult]:
        with self._lock:
            entries = list(self._entries)
        if service is not None:
            entries = [e for e in entries if e.service == service]
        return entries

    def get_history(
        self, service: Optional[str] = None, limit: Optional[int] = None
    ) -> List[HealthCheckResult]:
        """
        Return retained results, oldest first.

        Args:
            service: Only results for this service
            limit: Keep only the newest ``limit`` results (capped at capacity)
        """
        entries = self._snapshot(service)
        if limit is not None:
            limit = max(0, min(limit, self.capacity))
            entries = entries[-limit:] if limit else []
        return entries

    def get_uptime_percentage(self, service: Optional[str] = None) -> float:
        """Share of healthy results in the retained window."""
        return _healthy_percentage(self._snapshot(service))

    def get_health_trend(self, service: Optional[str] = None) -> HealthTrend:
        """Compare the newest third of the window against the oldest third."""
        entries = self._snapshot(service)
        third = len(entries) // 3
        if third == 0:
            return HealthTrend.STABLE

        earliest = _healthy_percentage(entries[:third])
        recent = _healthy_percentage(entries[-third:])
        difference = recent - earliest

        if difference > TREND_DEAD_BAND:
            return HealthTrend.IMPROVING
        if difference < -TREND_DEAD_BAND:
            return HealthTrend.DEGRADING
        return HealthTrend.STABLE

    @staticmethod
    def statistics(entries: Sequence[HealthCheckResult]) -> Dict[str, float]:
        """Summary figures for a slice of history."""
        if not entries:
            return {
                "totalChecks": 0,
                "averageResponseTime": 0,
                "healthyPercentage": 100,
                "degradedPercentage": 0,
                "unhealthyPercentage": 0,
            }

        total = len(entries)
        counts = {status: 0 for status in HealthStatus}
        for entry in entries:
            counts[entry.status] += 1

        return {
            "totalChecks": total,
            "averageResponseTime": round(sum(e.response_time for e in entries) / total),
            "healthyPercentage": round(counts[HealthStatus.HEALTHY] / total * 100),
            "degradedPercentage": round(counts[HealthStatus.DEGRADED] / total * 100),
            "unhealthyPercentage": round(counts[HealthStatus.UNHEALTHY] / total * 100),
        }


def _healthy_percentage(entries: Sequence[HealthCheckResult]) -> float:
    if not entries:
        return 100.0
    healthy = sum(1 for e in entries if e.status == HealthStatus.HEALTHY)
    return healthy / len(entries) * 100
