"""Per-dependency call counters."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from chainpulse.models.health import ServiceMetrics

logger = logging.getLogger(__name__)


@dataclass
class _Counters:
    """Mutable counters for one dependency; guarded by ``lock``."""

    lock: threading.Lock
    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    average_response_time: float = 0.0
    last_request_time: Optional[datetime] = None

    def record(self, latency_ms: float, success: bool) -> None:
        self.request_count += 1
        if success:
            self.success_count += 1
        else:
            self.error_count += 1
        self.average_response_time += (
            latency_ms - self.average_response_time
        ) / self.request_count
        self.last_request_time = datetime.now(timezone.utc)

    def snapshot(self, service: str) -> ServiceMetrics:
        return ServiceMetrics(
            service=service,
            request_count=self.request_count,
            success_count=self.success_count,
            error_count=self.error_count,
            average_response_time=self.average_response_time,
            last_request_time=self.last_request_time,
        )

    def reset(self) -> None:
        self.request_count = 0
        self.success_count = 0
        self.error_count = 0
        self.average_response_time = 0.0
        self.last_request_time = None


class MetricsRecorder:
    """Accumulates request, success and error counts per dependency.

    Each service has its own lock, held only while counters change, so
    recording from business calls never waits on a probe or a reader.
    """

    def __init__(self) -> None:
        self._counters: Dict[str, _Counters] = {}
        self._registry_lock = threading.Lock()

    def _get(self, service: str) -> _Counters:
        counters = self._counters.get(service)
        if counters is None:
            with self._registry_lock:
                counters = self._counters.setdefault(
                    service, _Counters(lock=threading.Lock())
                )
        return counters

    def record_success(self, service: str, latency_ms: float) -> None:
        """Record a completed call."""
        self._record(service, latency_ms, success=True)

    def record_error(self, service: str, latency_ms: float) -> None:
        """Record a failed call."""
        self._record(service, latency_ms, success=False)

    def _record(self, service: str, latency_ms: float, success: bool) -> None:
        latency_ms = max(0.0, float(latency_ms))
        counters = self._get(service)
        with counters.lock:
            counters.record(latency_ms, success)

    def get_metrics(self, service: str) -> ServiceMetrics:
        """Return a snapshot for one service (zeroed if never seen)."""
        counters = self._counters.get(service)
        if counters is None:
            return ServiceMetrics(service=service)
        with counters.lock:
            return counters.snapshot(service)

    def get_all_metrics(self) -> Dict[str, ServiceMetrics]:
        """Return snapshots for every recorded service."""
        with self._registry_lock:
            services = list(self._counters)
        return {service: self.get_metrics(service) for service in services}

    def aggregate(self) -> ServiceMetrics:
        """Fold all services into one snapshot named ``all``."""
        snapshots = list(self.get_all_metrics().values())
        requests = sum(s.request_count for s in snapshots)
        weighted = sum(s.average_response_time * s.request_count for s in snapshots)
        last_times = [s.last_request_time for s in snapshots if s.last_request_time]
        return ServiceMetrics(
            service="all",
            request_count=requests,
            success_count=sum(s.success_count for s in snapshots),
            error_count=sum(s.error_count for s in snapshots),
            average_response_time=weighted / requests if requests else 0.0,
            last_request_time=max(last_times) if last_times else None,
        )

    def reset_metrics(self, service: Optional[str] = None) -> Dict[str, ServiceMetrics]:
        """Zero counters for one service or all; returns the previous values."""
        with self._registry_lock:
            targets = [service] if service is not None else list(self._counters)

        previous: Dict[str, ServiceMetrics] = {}
        for name in targets:
            counters = self._counters.get(name)
            if counters is None:
                continue
            with counters.lock:
                previous[name] = counters.snapshot(name)
                counters.reset()

        logger.info(
            "Metrics reset",
            extra={
                "services": list(previous),
                "previous_request_counts": {
                    name: m.request_count for name, m in previous.items()
                },
            },
        )
        return previous
