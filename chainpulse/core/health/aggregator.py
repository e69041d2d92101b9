"""Probe cycle execution and health aggregation."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from chainpulse.core.exceptions import ConfigurationError
from chainpulse.models.health import (
    HealthCheckResult,
    HealthStatus,
    ProbeOutcome,
    SystemHealth,
)

from .alerts import AlertManager
from .history import HistoryStore
from .probes import BaseProbe

logger = logging.getLogger(__name__)

DEFAULT_DEGRADED_PENALTY = 20
DEFAULT_UNHEALTHY_PENALTY = 50


def health_score(
    statuses: Iterable[HealthStatus],
    degraded_penalty: int = DEFAULT_DEGRADED_PENALTY,
    unhealthy_penalty: int = DEFAULT_UNHEALTHY_PENALTY,
) -> int:
    """100 minus a penalty per degraded and per unhealthy service, floored at 0."""
    score = 100
    for status in statuses:
        if status == HealthStatus.DEGRADED:
            score -= degraded_penalty
        elif status == HealthStatus.UNHEALTHY:
            score -= unhealthy_penalty
    return max(0, score)


def overall_status(
    results: Iterable[HealthCheckResult], slow_threshold_ms: Optional[float] = None
) -> HealthStatus:
    """Worst service status; slow responses alone make the system degraded."""
    results = list(results)
    statuses = {r.status for r in results}
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    if slow_threshold_ms is not None and any(
        r.response_time > slow_threshold_ms for r in results
    ):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


class HealthAggregator:
    """Runs registered probes and folds their results into SystemHealth.

    Failures degrade a service gradually (degraded, then unhealthy after
    ``failure_threshold`` in a row); one success restores it immediately.
    Cycles never overlap: a request for a cycle while one is running joins
    the running one.
    """

    def __init__(
        self,
        history: HistoryStore,
        alerts: AlertManager,
        timeout: float = 5.0,
        failure_threshold: int = 3,
        slow_threshold_ms: Optional[float] = 3000.0,
        degraded_penalty: int = DEFAULT_DEGRADED_PENALTY,
        unhealthy_penalty: int = DEFAULT_UNHEALTHY_PENALTY,
    ) -> None:
        if failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be at least 1")
        self.history = history
        self.alerts = alerts
        self.timeout = timeout
        self.failure_threshold = failure_threshold
        self.slow_threshold_ms = slow_threshold_ms
        self.degraded_penalty = degraded_penalty
        self.unhealthy_penalty = unhealthy_penalty

        self._probes: Dict[str, BaseProbe] = {}
        self._failures: Dict[str, int] = {}
        self._latest: Optional[SystemHealth] = None
        self._inflight: Optional[asyncio.Task] = None
        self._started_at = time.monotonic()
        self.cycle_count = 0
        self.skipped_cycles = 0

    def register(self, probe: BaseProbe) -> None:
        """Add a probe; names must be unique."""
        if probe.name in self._probes:
            raise ConfigurationError(
                f"Probe '{probe.name}' is already registered",
                details={"service": probe.name},
            )
        self._probes[probe.name] = probe
        self._failures[probe.name] = 0
        logger.info("Probe registered", extra={"service": probe.name})

    @property
    def services(self) -> List[str]:
        """Registered service names in registration order."""
        return list(self._probes)

    @property
    def probes(self) -> List[BaseProbe]:
        return list(self._probes.values())

    @property
    def latest(self) -> Optional[SystemHealth]:
        """Last committed snapshot; never waits for a running cycle."""
        return self._latest

    @property
    def cycle_running(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def consecutive_failures(self, service: str) -> int:
        return self._failures.get(service, 0)

    async def run_cycle(self) -> SystemHealth:
        """Run a cycle, or wait for the one already running."""
        task = self._inflight
        if task is None or task.done():
            task = self._launch()
        return await asyncio.shield(task)

    def try_start_cycle(self) -> Optional[asyncio.Task]:
        """Start a cycle unless one is running; a skip is logged."""
        if self.cycle_running:
            self.skipped_cycles += 1
            logger.warning(
                "Health check cycle skipped, previous cycle still running",
                extra={"skipped_cycles": self.skipped_cycles},
            )
            return None
        return self._launch()

    async def wait_for_inflight(self, timeout: Optional[float] = None) -> None:
        """Give a running cycle up to ``timeout`` seconds to finish."""
        task = self._inflight
        if task is None or task.done():
            return
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            logger.warning(
                "Abandoning in-flight health check cycle",
                extra={"timeout": timeout},
            )

    def _launch(self) -> asyncio.Task:
        self._inflight = asyncio.get_running_loop().create_task(self._cycle())
        self._inflight.add_done_callback(self._log_cycle_failure)
        return self._inflight

    @staticmethod
    def _log_cycle_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Health check cycle failed: {exc}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def _cycle(self) -> SystemHealth:
        cycle_start = time.perf_counter()
        probes = self.probes
        outcomes = await asyncio.gather(
            *(probe.probe(self.timeout) for probe in probes)
        )

        results = [
            self._classify(probe.name, outcome)
            for probe, outcome in zip(probes, outcomes)
        ]
        for result in results:
            self.history.append(result)
            self.alerts.evaluate(result, self.slow_threshold_ms)

        health = SystemHealth(
            overall=overall_status(results, self.slow_threshold_ms),
            last_check=datetime.now(timezone.utc),
            uptime=round((time.monotonic() - self._started_at) * 1000, 2),
            health_score=health_score(
                (r.status for r in results),
                self.degraded_penalty,
                self.unhealthy_penalty,
            ),
            services=results,
        )
        self._latest = health
        self.cycle_count += 1
        self._log_cycle(health, time.perf_counter() - cycle_start)
        return health

    def _classify(self, service: str, outcome: ProbeOutcome) -> HealthCheckResult:
        if outcome.ok:
            self._failures[service] = 0
            status = HealthStatus.HEALTHY
        else:
            self._failures[service] = self._failures.get(service, 0) + 1
            if self._failures[service] >= self.failure_threshold:
                status = HealthStatus.UNHEALTHY
            else:
                status = HealthStatus.DEGRADED

        return HealthCheckResult(
            service=service,
            status=status,
            response_time=outcome.response_time_ms,
            timestamp=datetime.now(timezone.utc),
            error=outcome.error,
            consecutive_failures=self._failures[service],
        )

    def _log_cycle(self, health: SystemHealth, duration: float) -> None:
        counts = {status: 0 for status in HealthStatus}
        for result in health.services:
            counts[result.status] += 1

        level = {
            HealthStatus.HEALTHY: logging.INFO,
            HealthStatus.DEGRADED: logging.WARNING,
            HealthStatus.UNHEALTHY: logging.ERROR,
        }[health.overall]
        logger.log(
            level,
            f"Health check completed: {health.overall.value}",
            extra={
                "health_score": health.health_score,
                "service_count": len(health.services),
                "healthy_services": counts[HealthStatus.HEALTHY],
                "degraded_services": counts[HealthStatus.DEGRADED],
                "unhealthy_services": counts[HealthStatus.UNHEALTHY],
                "active_alerts": len(self.alerts.get_active_alerts()),
                "check_duration_ms": round(duration * 1000, 2),
            },
        )
