"""Common test fixtures and configuration."""

import asyncio
import os
import tempfile
from typing import Callable, Dict, Optional

# Keep rotating log files out of the working tree
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="chainpulse-logs-"))

import pytest
from fastapi.testclient import TestClient

from chainpulse.core.exceptions import ProbeFailure
from chainpulse.core.health import (
    AlertManager,
    CallableProbe,
    HealthAggregator,
    HealthService,
    HistoryStore,
)
from chainpulse.main import create_app
from chainpulse.services.metrics import MetricsRecorder
from chainpulse.services.rate_limiter import RateLimitTracker


class ScriptedCheck:
    """Async liveness check whose outcome a test can flip between calls."""

    def __init__(
        self, failing: bool = False, delay: float = 0.0, error: str = "boom"
    ) -> None:
        self.failing = failing
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failing:
            raise ProbeFailure(self.error)


@pytest.fixture
def scripted_check() -> Callable[..., ScriptedCheck]:
    """Factory for ScriptedCheck instances."""
    return ScriptedCheck


@pytest.fixture
def build_aggregator() -> Callable[..., HealthAggregator]:
    """Factory for an aggregator wired to fresh history and alerts."""

    def _build(
        checks: Dict[str, Callable],
        failure_threshold: int = 3,
        timeout: float = 1.0,
        slow_threshold_ms: Optional[float] = 3000.0,
        capacity: int = 1000,
    ) -> HealthAggregator:
        aggregator = HealthAggregator(
            HistoryStore(capacity),
            AlertManager(failure_threshold),
            timeout=timeout,
            failure_threshold=failure_threshold,
            slow_threshold_ms=slow_threshold_ms,
        )
        for name, check in checks.items():
            aggregator.register(CallableProbe(name, check))
        return aggregator

    return _build


@pytest.fixture
def build_service(build_aggregator) -> Callable[..., HealthService]:
    """Factory for a HealthService over CallableProbes."""

    def _build(
        checks: Dict[str, Callable], interval: float = 30.0, **kwargs
    ) -> HealthService:
        return HealthService(
            build_aggregator(checks, **kwargs),
            MetricsRecorder(),
            RateLimitTracker(),
            interval=interval,
        )

    return _build


@pytest.fixture
def checks(scripted_check) -> Dict[str, ScriptedCheck]:
    """Two healthy dependencies."""
    return {"rpc": scripted_check(), "explorer": scripted_check()}


@pytest.fixture
def health_service(build_service, checks) -> HealthService:
    return build_service(checks)


@pytest.fixture
def client(health_service) -> TestClient:
    """Test client for an app with an injected monitor (lifespan not run)."""
    app = create_app(health_service=health_service)
    return TestClient(app)
