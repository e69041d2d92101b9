"""Tests for probe cycles, hysteresis and scoring."""

import asyncio
import logging

import pytest

from chainpulse.core.exceptions import ConfigurationError
from chainpulse.core.health.aggregator import (
    HealthAggregator,
    health_score,
    overall_status,
)
from chainpulse.core.health.alerts import AlertManager
from chainpulse.core.health.history import HistoryStore
from chainpulse.core.health.probes import CallableProbe
from chainpulse.models.health import HealthCheckResult, HealthStatus

H, D, U = HealthStatus.HEALTHY, HealthStatus.DEGRADED, HealthStatus.UNHEALTHY


class TestScoring:
    """Test the pure scoring functions."""

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ([], 100),
            ([H, H], 100),
            ([D], 80),
            ([U], 50),
            ([D, U], 30),
            ([U, U], 0),
            ([U, U, U], 0),
        ],
    )
    def test_health_score(self, statuses, expected):
        assert health_score(statuses) == expected

    def test_custom_penalties(self):
        assert health_score([D, U], degraded_penalty=10, unhealthy_penalty=25) == 65

    def _result(self, status, response_time=10.0):
        from datetime import datetime, timezone

        return HealthCheckResult(
            service="rpc",
            status=status,
            response_time=response_time,
            timestamp=datetime.now(timezone.utc),
        )

    def test_overall_worst_status(self):
        assert overall_status([self._result(H), self._result(D)]) == D
        assert overall_status([self._result(D), self._result(U)]) == U
        assert overall_status([self._result(H)]) == H
        assert overall_status([]) == H

    def test_slow_response_degrades_overall(self):
        results = [self._result(H, response_time=3500.0)]

        assert overall_status(results, slow_threshold_ms=3000.0) == D
        assert overall_status(results) == H


class TestHealthAggregator:
    """Test cycle execution."""

    def test_threshold_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            HealthAggregator(HistoryStore(), AlertManager(), failure_threshold=0)

    def test_duplicate_probe_rejected(self, build_aggregator, scripted_check):
        aggregator = build_aggregator({"rpc": scripted_check()})

        with pytest.raises(ConfigurationError):
            aggregator.register(CallableProbe("rpc", scripted_check()))

    async def test_all_healthy(self, build_aggregator, scripted_check):
        aggregator = build_aggregator({"rpc": scripted_check(), "explorer": scripted_check()})

        health = await aggregator.run_cycle()

        assert health.overall == H
        assert health.health_score == 100
        assert [r.service for r in health.services] == ["rpc", "explorer"]
        assert aggregator.latest is health
        assert len(aggregator.history) == 2
        assert aggregator.cycle_count == 1

    async def test_hysteresis(self, build_aggregator, scripted_check):
        """Degraded below the threshold, unhealthy at it, healthy after one success."""
        check = scripted_check(failing=True)
        aggregator = build_aggregator({"rpc": check}, failure_threshold=3)

        statuses = []
        for _ in range(4):
            health = await aggregator.run_cycle()
            statuses.append(health.services[0].status)

        assert statuses == [D, D, U, U]
        assert aggregator.consecutive_failures("rpc") == 4

        check.failing = False
        health = await aggregator.run_cycle()

        assert health.services[0].status == H
        assert health.services[0].consecutive_failures == 0
        assert aggregator.consecutive_failures("rpc") == 0

    async def test_threshold_of_one(self, build_aggregator, scripted_check):
        aggregator = build_aggregator(
            {"rpc": scripted_check(failing=True)}, failure_threshold=1
        )

        health = await aggregator.run_cycle()

        assert health.services[0].status == U

    async def test_score_and_overall(self, build_aggregator, scripted_check):
        aggregator = build_aggregator(
            {"rpc": scripted_check(failing=True), "explorer": scripted_check()}
        )

        health = await aggregator.run_cycle()

        assert health.overall == D
        assert health.health_score == 80

    async def test_failing_probe_error_recorded(self, build_aggregator, scripted_check):
        aggregator = build_aggregator({"rpc": scripted_check(failing=True, error="HTTP 502")})

        health = await aggregator.run_cycle()

        assert health.services[0].error == "HTTP 502"
        assert aggregator.history.get_history()[0].error == "HTTP 502"

    async def test_timeout_classified(self, build_aggregator, scripted_check):
        aggregator = build_aggregator({"rpc": scripted_check(delay=1.0)}, timeout=0.05)

        health = await aggregator.run_cycle()

        assert health.services[0].status == D
        assert health.services[0].error == "timeout after 0.05s"

    async def test_alerts_raised_from_results(self, build_aggregator, scripted_check):
        aggregator = build_aggregator({"rpc": scripted_check(failing=True)})

        for _ in range(3):
            await aggregator.run_cycle()

        conditions = {a.condition.value for a in aggregator.alerts.get_active_alerts()}
        assert conditions == {"degraded", "unhealthy"}

    async def test_probes_run_concurrently(self, build_aggregator, scripted_check):
        aggregator = build_aggregator(
            {name: scripted_check(delay=0.2) for name in ("a", "b", "c")}
        )

        loop = asyncio.get_running_loop()
        start = loop.time()
        await aggregator.run_cycle()

        assert loop.time() - start < 0.5

    async def test_concurrent_requests_join_one_cycle(
        self, build_aggregator, scripted_check
    ):
        """Cycles never overlap; a second caller waits for the running one."""
        check = scripted_check(delay=0.1)
        aggregator = build_aggregator({"rpc": check})

        first, second = await asyncio.gather(aggregator.run_cycle(), aggregator.run_cycle())

        assert first is second
        assert check.calls == 1
        assert aggregator.cycle_count == 1

    async def test_try_start_skips_while_running(
        self, build_aggregator, scripted_check, caplog
    ):
        aggregator = build_aggregator({"rpc": scripted_check(delay=0.1)})

        task = aggregator.try_start_cycle()
        with caplog.at_level(logging.WARNING):
            skipped = aggregator.try_start_cycle()
        await task

        assert skipped is None
        assert aggregator.skipped_cycles == 1
        assert "skipped" in caplog.text

    async def test_uptime_is_non_decreasing(self, build_aggregator, scripted_check):
        aggregator = build_aggregator({"rpc": scripted_check()})

        first = await aggregator.run_cycle()
        second = await aggregator.run_cycle()

        assert second.uptime >= first.uptime
        assert second.last_check >= first.last_check

    async def test_wait_for_inflight(self, build_aggregator, scripted_check):
        aggregator = build_aggregator({"rpc": scripted_check(delay=0.05)})

        aggregator.try_start_cycle()
        assert aggregator.cycle_running
        await aggregator.wait_for_inflight(timeout=1.0)

        assert not aggregator.cycle_running
        assert aggregator.latest is not None
