"""Service probe implementations."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

import httpx
import psutil

from chainpulse.core.exceptions import ProbeFailure
from chainpulse.models.health import ProbeOutcome
from chainpulse.services.explorer import ExplorerClient
from chainpulse.services.metrics import MetricsRecorder
from chainpulse.services.rpc import RpcClient

logger = logging.getLogger(__name__)

# System resource thresholds
MEMORY_CRITICAL_THRESHOLD = 90  # 90% of available memory

# Outbound call thresholds
ERROR_RATE_THRESHOLD = 10.0  # percent of requests
LATENCY_THRESHOLD_MS = 3000.0

# (grade, max average latency ms, max error rate %), best first
PERFORMANCE_GRADES = (
    ("A+", 500, 1),
    ("A", 1000, 2),
    ("B", 2000, 5),
    ("C", 3000, 10),
)


def performance_grade(average_response_time: float, error_rate: float) -> str:
    """Letter grade for outbound call performance, A+ down to D."""
    for grade, max_latency, max_error_rate in PERFORMANCE_GRADES:
        if average_response_time < max_latency and error_rate < max_error_rate:
            return grade
    return "D"


class BaseProbe(ABC):
    """A named liveness check for one dependency.

    ``probe`` enforces the timeout and converts every failure into a
    ``ProbeOutcome`` error; nothing raised by ``_check`` escapes.
    """

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    async def _check(self) -> None:
        """Issue one side-effect-free request; raise on failure."""

    async def probe(self, timeout: float) -> ProbeOutcome:
        """Run the check once within ``timeout`` seconds."""
        start = time.perf_counter()
        error = None
        try:
            await asyncio.wait_for(self._check(), timeout=timeout)
        except asyncio.TimeoutError:
            error = f"timeout after {timeout:g}s"
        except ProbeFailure as e:
            error = str(e) or "probe failed"
        except httpx.ConnectError as e:
            error = f"connection refused: {e}" if str(e) else "connection refused"
        except httpx.HTTPError as e:
            error = f"transport error: {e}" if str(e) else f"transport error: {type(e).__name__}"
        except Exception as e:
            logger.warning(
                f"Probe {self.name} raised unexpectedly: {e}",
                extra={"service": self.name},
            )
            error = f"probe error: {type(e).__name__}: {e}"

        elapsed_ms = (time.perf_counter() - start) * 1000
        return ProbeOutcome(response_time_ms=round(elapsed_ms, 2), error=error)


class RpcProbe(BaseProbe):
    """Fetch the latest block number from the JSON-RPC node."""

    def __init__(self, client: RpcClient, name: str = "rpc") -> None:
        super().__init__(name)
        self.client = client

    async def _check(self) -> None:
        block = await self.client.block_number(retries=0)
        logger.debug("RPC probe ok", extra={"service": self.name, "block": block})


class ExplorerProbe(BaseProbe):
    """Request the explorer API health path."""

    def __init__(self, client: ExplorerClient, name: str = "explorer") -> None:
        super().__init__(name)
        self.client = client

    async def _check(self) -> None:
        status_code = await self.client.ping(retries=0)
        logger.debug(
            "Explorer probe ok", extra={"service": self.name, "status_code": status_code}
        )


class SystemResourceProbe(BaseProbe):
    """Fail when local memory usage is critical."""

    def __init__(
        self,
        name: str = "system-resources",
        memory_threshold: float = MEMORY_CRITICAL_THRESHOLD,
    ) -> None:
        super().__init__(name)
        self.memory_threshold = memory_threshold

    async def _check(self) -> None:
        loop = asyncio.get_running_loop()
        memory = await loop.run_in_executor(None, psutil.virtual_memory)
        if memory.percent >= self.memory_threshold:
            raise ProbeFailure(
                f"memory usage critical: {memory.percent}% (>{self.memory_threshold}%)"
            )


class CallableProbe(BaseProbe):
    """Wrap an async callable as a probe; any exception is a failure."""

    def __init__(self, name: str, check: Callable[[], Awaitable[object]]) -> None:
        super().__init__(name)
        self._fn = check

    async def _check(self) -> None:
        await self._fn()


class MetricsProbe(BaseProbe):
    """Judge the outbound calls recorded so far against error and latency limits.

    No traffic yet counts as healthy.
    """

    def __init__(
        self,
        recorder: MetricsRecorder,
        name: str = "api-metrics",
        error_rate_threshold: float = ERROR_RATE_THRESHOLD,
        latency_threshold_ms: float = LATENCY_THRESHOLD_MS,
    ) -> None:
        super().__init__(name)
        self.recorder = recorder
        self.error_rate_threshold = error_rate_threshold
        self.latency_threshold_ms = latency_threshold_ms

    async def _check(self) -> None:
        metrics = self.recorder.aggregate()
        if metrics.request_count == 0:
            return

        grade = performance_grade(metrics.average_response_time, metrics.error_rate)
        if metrics.error_rate >= self.error_rate_threshold:
            raise ProbeFailure(
                f"error rate {metrics.error_rate:.2f}% "
                f"(>={self.error_rate_threshold:g}%), grade {grade}"
            )
        if metrics.average_response_time >= self.latency_threshold_ms:
            raise ProbeFailure(
                f"average response time {metrics.average_response_time:.2f}ms "
                f"(>={self.latency_threshold_ms:g}ms), grade {grade}"
            )
        logger.debug(
            "API metrics ok",
            extra={
                "service": self.name,
                "requests": metrics.request_count,
                "error_rate": round(metrics.error_rate, 2),
                "grade": grade,
            },
        )
