"""Health service orchestrator."""

import logging
from typing import Dict, List, Optional

from chainpulse.core.exceptions import ConfigurationError, UnknownServiceError
from chainpulse.core.settings import Settings
from chainpulse.models.health import (
    Alert,
    HealthCheckResult,
    HealthTrend,
    RateLimitInfo,
    ResolveOutcome,
    ServiceMetrics,
    SystemHealth,
)
from chainpulse.services.explorer import ExplorerClient
from chainpulse.services.http_client import InstrumentedClient
from chainpulse.services.metrics import MetricsRecorder
from chainpulse.services.rate_limiter import RateLimitTracker
from chainpulse.services.rpc import RpcClient
from chainpulse.tasks.scheduler import ProbeScheduler

from .aggregator import HealthAggregator
from .alerts import AlertManager
from .history import HistoryStore
from .probes import (
    BaseProbe,
    ExplorerProbe,
    MetricsProbe,
    RpcProbe,
    SystemResourceProbe,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_API_KEYS = {"<YOUR_ORMI_API_KEY>", "<YOUR_API_KEY>", "changeme"}
MIN_API_KEY_LENGTH = 10


class HealthService:
    """Read-side facade over the monitor's components.

    Constructed explicitly and handed to the HTTP layer; ``start`` and
    ``stop`` own the background schedule.
    """

    def __init__(
        self,
        aggregator: HealthAggregator,
        recorder: MetricsRecorder,
        rate_limits: RateLimitTracker,
        interval: float = 30.0,
        clients: Optional[List[object]] = None,
    ) -> None:
        self.aggregator = aggregator
        self.history = aggregator.history
        self.alerts = aggregator.alerts
        self.recorder = recorder
        self.rate_limits = rate_limits
        self.scheduler = ProbeScheduler(aggregator, interval)
        self._clients = clients or []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        recorder: Optional[MetricsRecorder] = None,
        rate_limits: Optional[RateLimitTracker] = None,
        extra_probes: Optional[List[BaseProbe]] = None,
        failure_threshold: Optional[int] = None,
    ) -> "HealthService":
        """
        Build the monitor and its default probes from settings.

        Args:
            failure_threshold: Overrides ``settings.failure_threshold``; a
                one-shot check passes 1 so a single failure is unhealthy

        Raises:
            ConfigurationError: If the settings cannot produce a working monitor
        """
        validate_settings(settings)
        threshold = failure_threshold or settings.failure_threshold

        recorder = recorder or MetricsRecorder()
        rate_limits = rate_limits or RateLimitTracker()
        history = HistoryStore(settings.history_capacity)
        alerts = AlertManager(threshold)
        aggregator = HealthAggregator(
            history,
            alerts,
            timeout=settings.health_check_timeout,
            failure_threshold=threshold,
            slow_threshold_ms=settings.slow_response_threshold_ms,
            degraded_penalty=settings.degraded_penalty,
            unhealthy_penalty=settings.unhealthy_penalty,
        )

        clients: List[object] = []
        if settings.rpc_url:
            rpc = RpcClient(
                InstrumentedClient(
                    "rpc",
                    settings.rpc_url,
                    recorder,
                    timeout=settings.api_timeout,
                    max_retries=settings.max_retries,
                    retry_delay=settings.retry_delay,
                    headers={"Content-Type": "application/json"},
                )
            )
            clients.append(rpc)
            aggregator.register(RpcProbe(rpc))

        if settings.explorer_base_url:
            headers = {}
            if settings.explorer_api_key:
                headers["Authorization"] = f"Bearer {settings.explorer_api_key}"
            explorer = ExplorerClient(
                InstrumentedClient(
                    "explorer",
                    settings.explorer_base_url,
                    recorder,
                    rate_limits=rate_limits,
                    timeout=settings.api_timeout,
                    max_retries=settings.max_retries,
                    retry_delay=settings.retry_delay,
                    headers=headers,
                ),
                settings.explorer_health_path,
            )
            clients.append(explorer)
            aggregator.register(ExplorerProbe(explorer))

        if settings.system_probe_enabled:
            aggregator.register(SystemResourceProbe())

        if settings.metrics_probe_enabled and clients:
            aggregator.register(
                MetricsProbe(
                    recorder,
                    error_rate_threshold=settings.error_rate_threshold,
                    latency_threshold_ms=settings.slow_response_threshold_ms,
                )
            )

        for probe in extra_probes or []:
            aggregator.register(probe)

        if not aggregator.services:
            raise ConfigurationError(
                "No dependency is configured for monitoring",
                details={"hint": "Set RPC_URL or EXPLORER_BASE_URL"},
            )

        logger.info(
            "Health service configured",
            extra={
                "services": aggregator.services,
                "interval": settings.health_check_interval,
                "timeout": settings.health_check_timeout,
                "failure_threshold": threshold,
                "history_capacity": settings.history_capacity,
            },
        )
        return cls(
            aggregator,
            recorder,
            rate_limits,
            interval=settings.health_check_interval,
            clients=clients,
        )

    # Lifecycle

    async def start(self) -> SystemHealth:
        """Run an initial cycle, then start the periodic schedule."""
        health = await self.aggregator.run_cycle()
        self.scheduler.start()
        return health

    async def stop(self) -> None:
        """Stop the schedule and release outbound connections."""
        await self.scheduler.stop(grace=self.aggregator.timeout)
        for client in self._clients:
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Error closing client: {e}")
        logger.info(
            "Health service stopped",
            extra={"total_checks": len(self.history)},
        )

    # Queries

    async def perform_health_check(self) -> SystemHealth:
        """Run a fresh cycle (or join the one running) and return it."""
        return await self.aggregator.run_cycle()

    def latest_health(self) -> Optional[SystemHealth]:
        return self.aggregator.latest

    @property
    def services(self) -> List[str]:
        return self.aggregator.services

    def get_health_history(
        self, service: Optional[str] = None, limit: Optional[int] = None
    ) -> List[HealthCheckResult]:
        """
        History slice, oldest first.

        Raises:
            UnknownServiceError: If ``service`` is neither registered nor in history
        """
        if service is not None:
            known = self.known_services()
            if service not in known:
                raise UnknownServiceError(service, known)
        return self.history.get_history(service, limit)

    def known_services(self) -> List[str]:
        known = self.aggregator.services
        return known + [s for s in self.history.services() if s not in known]

    def get_uptime_percentage(self) -> float:
        return self.history.get_uptime_percentage()

    def get_health_trend(self) -> HealthTrend:
        return self.history.get_health_trend()

    def get_all_alerts(self) -> List[Alert]:
        return self.alerts.get_all_alerts()

    def resolve_alert(self, alert_id: str) -> ResolveOutcome:
        return self.alerts.resolve_alert(alert_id)

    def get_metrics(self, service: Optional[str] = None) -> ServiceMetrics:
        """Metrics for one dependency, or all dependencies folded together."""
        if service is None:
            return self.recorder.aggregate()
        return self.recorder.get_metrics(service)

    def get_service_metrics(self) -> Dict[str, ServiceMetrics]:
        return self.recorder.get_all_metrics()

    def reset_metrics(self, service: Optional[str] = None) -> Dict[str, ServiceMetrics]:
        """Zero call counters; history and alerts are untouched."""
        return self.recorder.reset_metrics(service)

    def get_rate_limit_info(self) -> Optional[RateLimitInfo]:
        return self.rate_limits.get_info()

    def is_rate_limited(self) -> bool:
        return self.rate_limits.is_rate_limited()


def validate_settings(settings: Settings) -> None:
    """
    Cross-field checks that field validators cannot express.

    Raises:
        ConfigurationError: On the first problem found
    """
    if settings.health_check_timeout >= settings.health_check_interval:
        raise ConfigurationError(
            "Probe timeout must be shorter than the probe interval",
            details={
                "health_check_timeout": settings.health_check_timeout,
                "health_check_interval": settings.health_check_interval,
            },
        )

    api_key = settings.explorer_api_key
    if settings.explorer_api_key_required and not api_key:
        raise ConfigurationError(
            "Missing required setting: EXPLORER_API_KEY",
            details={"hint": "Copy .env.example to .env and fill in the values"},
        )
    if api_key and (
        api_key in PLACEHOLDER_API_KEYS or len(api_key) < MIN_API_KEY_LENGTH
    ):
        raise ConfigurationError("Invalid explorer API key configuration")
