"""Health monitoring data models."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(str, Enum):
    """Health status enumeration."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class AlertSeverity(str, Enum):
    """Alert severity enumeration."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertCondition(str, Enum):
    """Condition that triggered an alert; half of the dedup key."""

    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    SLOW_RESPONSE = "slow_response"


class HealthTrend(str, Enum):
    """Direction of the windowed healthy ratio."""

    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"


class ResolveOutcome(str, Enum):
    """Result of resolving an alert."""

    RESOLVED = "resolved"
    NOT_FOUND = "not_found"


class ServiceMetrics(BaseModel):
    """Point-in-time copy of one dependency's call counters."""

    model_config = ConfigDict(frozen=True)

    service: str
    request_count: int = Field(0, ge=0)
    success_count: int = Field(0, ge=0)
    error_count: int = Field(0, ge=0)
    average_response_time: float = Field(0.0, ge=0.0, description="Mean latency in ms")
    last_request_time: Optional[datetime] = None

    @property
    def error_rate(self) -> float:
        """Errors as a percentage of requests."""
        if self.request_count == 0:
            return 0.0
        return self.error_count / self.request_count * 100

    @property
    def uptime_percentage(self) -> float:
        """Successes as a percentage of requests."""
        if self.request_count == 0:
            return 100.0
        return self.success_count / self.request_count * 100

    def to_response(self) -> dict:
        """Render with camelCase keys for the HTTP layer."""
        return {
            "requestCount": self.request_count,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "errorRate": round(self.error_rate, 2),
            "averageResponseTime": round(self.average_response_time, 2),
            "uptimePercentage": round(self.uptime_percentage, 2),
            "lastRequestTime": (
                self.last_request_time.isoformat() if self.last_request_time else None
            ),
        }


class RateLimitInfo(BaseModel):
    """Most recently observed provider quota."""

    model_config = ConfigDict(frozen=True)

    remaining: int = Field(..., ge=0)
    reset_at: datetime


class ProbeOutcome(BaseModel):
    """Raw result of one probe: latency and optional error."""

    model_config = ConfigDict(frozen=True)

    response_time_ms: float = Field(..., ge=0.0)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class HealthCheckResult(BaseModel):
    """Classified outcome of one probe for one service in one cycle."""

    model_config = ConfigDict(frozen=True)

    service: str
    status: HealthStatus
    response_time: float = Field(..., ge=0.0, description="Probe latency in ms")
    timestamp: datetime
    error: Optional[str] = None
    consecutive_failures: int = Field(0, ge=0)


class SystemHealth(BaseModel):
    """Snapshot derived from one probe cycle."""

    model_config = ConfigDict(frozen=True)

    overall: HealthStatus
    last_check: datetime
    uptime: float = Field(..., ge=0.0, description="Process uptime in ms")
    health_score: int = Field(..., ge=0, le=100)
    services: List[HealthCheckResult]


class Alert(BaseModel):
    """Alert raised for a service condition."""

    id: str
    severity: AlertSeverity
    condition: AlertCondition
    message: str
    service: str
    timestamp: datetime
    resolved: bool = False
    resolved_at: Optional[datetime] = None
