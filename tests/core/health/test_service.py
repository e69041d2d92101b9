"""Tests for the health service facade and its construction from settings."""

import pytest

from chainpulse.core.exceptions import ConfigurationError, UnknownServiceError
from chainpulse.core.health.probes import (
    CallableProbe,
    ExplorerProbe,
    MetricsProbe,
    RpcProbe,
    SystemResourceProbe,
)
from chainpulse.core.health.service import HealthService, validate_settings
from chainpulse.core.settings import Settings
from chainpulse.models.health import HealthStatus, HealthTrend, ResolveOutcome


def make_settings(**overrides):
    values = {
        "rpc_url": "https://rpc.test",
        "explorer_base_url": "https://explorer.test",
        "system_probe_enabled": False,
        "metrics_probe_enabled": False,
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)


class TestFromSettings:
    """Test building the monitor from configuration."""

    def test_default_probes(self):
        service = HealthService.from_settings(make_settings(system_probe_enabled=True))

        probes = service.aggregator.probes
        assert service.services == ["rpc", "explorer", "system-resources"]
        assert isinstance(probes[0], RpcProbe)
        assert isinstance(probes[1], ExplorerProbe)
        assert isinstance(probes[2], SystemResourceProbe)

    def test_disabled_dependency_not_probed(self):
        service = HealthService.from_settings(make_settings(explorer_base_url=""))

        assert service.services == ["rpc"]

    def test_extra_probes(self, scripted_check):
        service = HealthService.from_settings(
            make_settings(), extra_probes=[CallableProbe("indexer", scripted_check())]
        )

        assert "indexer" in service.services

    def test_settings_flow_into_components(self):
        service = HealthService.from_settings(
            make_settings(
                failure_threshold=5,
                health_check_timeout=2.0,
                health_check_interval=15.0,
                history_capacity=50,
            )
        )

        assert service.aggregator.failure_threshold == 5
        assert service.aggregator.timeout == 2.0
        assert service.scheduler.interval == 15.0
        assert service.history.capacity == 50

    def test_metrics_probe_judges_recorded_calls(self):
        service = HealthService.from_settings(
            make_settings(metrics_probe_enabled=True, error_rate_threshold=25.0)
        )

        probe = service.aggregator.probes[-1]
        assert service.services == ["rpc", "explorer", "api-metrics"]
        assert isinstance(probe, MetricsProbe)
        assert probe.recorder is service.recorder
        assert probe.error_rate_threshold == 25.0
        assert probe.latency_threshold_ms == 3000.0

    def test_metrics_probe_needs_outbound_clients(self):
        settings = make_settings(
            rpc_url="", explorer_base_url="", metrics_probe_enabled=True
        )

        with pytest.raises(ConfigurationError, match="No dependency"):
            HealthService.from_settings(settings)

    def test_failure_threshold_override(self):
        service = HealthService.from_settings(
            make_settings(failure_threshold=5), failure_threshold=1
        )

        assert service.aggregator.failure_threshold == 1
        assert service.alerts.failure_threshold == 1

    def test_api_key_sent_as_bearer(self):
        service = HealthService.from_settings(
            make_settings(explorer_api_key="a-real-looking-key")
        )

        explorer = service.aggregator.probes[1].client
        assert explorer.http.headers["Authorization"] == "Bearer a-real-looking-key"

    def test_nothing_to_monitor(self):
        with pytest.raises(ConfigurationError, match="No dependency"):
            HealthService.from_settings(make_settings(rpc_url="", explorer_base_url=""))


class TestValidateSettings:
    """Test cross-field configuration checks."""

    def test_valid(self):
        validate_settings(make_settings())

    def test_timeout_must_be_below_interval(self):
        with pytest.raises(ConfigurationError, match="shorter than the probe interval"):
            validate_settings(
                make_settings(health_check_timeout=30.0, health_check_interval=30.0)
            )

    def test_required_key_missing(self):
        with pytest.raises(ConfigurationError, match="EXPLORER_API_KEY"):
            validate_settings(make_settings(explorer_api_key_required=True))

    @pytest.mark.parametrize("key", ["<YOUR_ORMI_API_KEY>", "changeme", "short"])
    def test_placeholder_key_rejected(self, key):
        with pytest.raises(ConfigurationError, match="Invalid explorer API key"):
            validate_settings(make_settings(explorer_api_key=key))


class TestHealthService:
    """Test the query facade and lifecycle."""

    async def test_start_runs_initial_cycle(self, health_service):
        health = await health_service.start()
        try:
            assert health.overall == HealthStatus.HEALTHY
            assert health_service.latest_health() is health
            assert health_service.scheduler.running
        finally:
            await health_service.stop()

        assert not health_service.scheduler.running

    async def test_latest_health_before_any_cycle(self, health_service):
        assert health_service.latest_health() is None

    async def test_history_queries(self, health_service):
        await health_service.perform_health_check()
        await health_service.perform_health_check()

        assert len(health_service.get_health_history()) == 4
        assert len(health_service.get_health_history("rpc")) == 2
        assert len(health_service.get_health_history("rpc", limit=1)) == 1
        assert health_service.get_uptime_percentage() == 100.0
        assert health_service.get_health_trend() == HealthTrend.STABLE

    def test_unknown_service_history(self, health_service):
        with pytest.raises(UnknownServiceError) as exc_info:
            health_service.get_health_history("nope")

        assert exc_info.value.status_code == 404
        assert exc_info.value.details["known_services"] == ["rpc", "explorer"]

    async def test_alert_roundtrip(self, build_service, scripted_check):
        service = build_service({"rpc": scripted_check(failing=True)})
        await service.perform_health_check()

        alert = service.get_all_alerts()[0]
        assert service.resolve_alert(alert.id) == ResolveOutcome.RESOLVED
        assert service.resolve_alert(alert.id) == ResolveOutcome.NOT_FOUND

    def test_metrics_queries(self, health_service):
        health_service.recorder.record_success("rpc", 10)
        health_service.recorder.record_error("explorer", 30)

        assert health_service.get_metrics().request_count == 2
        assert health_service.get_metrics("rpc").success_count == 1
        assert set(health_service.get_service_metrics()) == {"rpc", "explorer"}

        previous = health_service.reset_metrics()
        assert previous["explorer"].error_count == 1
        assert health_service.get_metrics().request_count == 0

    async def test_reset_keeps_history_and_alerts(self, build_service, scripted_check):
        service = build_service({"rpc": scripted_check(failing=True)})
        await service.perform_health_check()

        service.reset_metrics()

        assert len(service.get_health_history()) == 1
        assert len(service.get_all_alerts()) == 1

    def test_rate_limit_queries(self, health_service):
        assert health_service.get_rate_limit_info() is None
        assert health_service.is_rate_limited() is False
