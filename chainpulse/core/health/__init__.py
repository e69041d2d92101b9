"""Health monitoring module."""

from .aggregator import HealthAggregator, health_score, overall_status
from .alerts import AlertManager
from .history import HistoryStore
from chainpulse.models.health import (
    Alert,
    AlertCondition,
    AlertSeverity,
    HealthCheckResult,
    HealthStatus,
    HealthTrend,
    ProbeOutcome,
    RateLimitInfo,
    ResolveOutcome,
    ServiceMetrics,
    SystemHealth,
)
from .probes import (
    BaseProbe,
    CallableProbe,
    ExplorerProbe,
    MetricsProbe,
    RpcProbe,
    SystemResourceProbe,
    performance_grade,
)
from .service import HealthService

__all__ = [
    "Alert",
    "AlertCondition",
    "AlertManager",
    "AlertSeverity",
    "BaseProbe",
    "CallableProbe",
    "ExplorerProbe",
    "HealthAggregator",
    "HealthCheckResult",
    "HealthService",
    "HealthStatus",
    "HealthTrend",
    "HistoryStore",
    "MetricsProbe",
    "ProbeOutcome",
    "RateLimitInfo",
    "ResolveOutcome",
    "RpcProbe",
    "ServiceMetrics",
    "SystemHealth",
    "SystemResourceProbe",
    "health_score",
    "overall_status",
    "performance_grade",
]
