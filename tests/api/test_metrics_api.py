"""Tests for the metrics endpoints."""

from datetime import datetime, timedelta, timezone


class TestMetricsEndpoints:
    """Test GET /metrics and POST /metrics/reset."""

    def test_metrics(self, client, health_service):
        health_service.recorder.record_success("rpc", 100)
        health_service.recorder.record_error("explorer", 300)

        response = client.get("/metrics")

        assert response.status_code == 200
        data = response.json()
        assert data["api"]["requestCount"] == 2
        assert data["api"]["errorRate"] == 50.0
        assert data["api"]["averageResponseTime"] == 200.0
        assert data["services"]["rpc"]["successCount"] == 1
        assert data["services"]["explorer"]["errorCount"] == 1
        assert data["rateLimit"] is None
        assert data["health"] == {"uptimePercentage": 100.0, "trend": "stable"}

    def test_rate_limit_block(self, client, health_service):
        health_service.rate_limits.observe(
            0, datetime.now(timezone.utc) + timedelta(seconds=30)
        )

        data = client.get("/metrics").json()

        assert data["rateLimit"]["remaining"] == 0
        assert data["rateLimit"]["isLimited"] is True

    def test_reset(self, client, health_service):
        health_service.recorder.record_success("rpc", 100)
        client.get("/health")

        response = client.post("/metrics/reset")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["previousMetrics"]["rpc"]["requestCount"] == 1

        after = client.get("/metrics").json()
        assert after["api"]["requestCount"] == 0
        # History is untouched
        assert len(client.get("/health/history").json()["history"]) == 2

    def test_api_info(self, client):
        data = client.get("/api").json()

        assert data["health"] == "/health"
        assert data["endpoints"]["metrics"] == "/metrics"
