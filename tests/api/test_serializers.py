"""Tests for response rendering helpers."""

from datetime import datetime, timedelta, timezone

import pytest

from chainpulse.api.serializers import alert_to_dict, format_uptime, start_time
from chainpulse.models.health import (
    Alert,
    AlertCondition,
    AlertSeverity,
    HealthStatus,
    SystemHealth,
)


@pytest.mark.parametrize(
    "uptime_ms, expected",
    [
        (0, "0s"),
        (59_999, "59s"),
        (61_000, "1m 1s"),
        (3_723_000, "1h 2m 3s"),
        (93_784_000, "1d 2h 3m"),
    ],
)
def test_format_uptime(uptime_ms, expected):
    assert format_uptime(uptime_ms) == expected


def test_alert_to_dict_age():
    created = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    alert = Alert(
        id="degraded-rpc-1",
        severity=AlertSeverity.LOW,
        condition=AlertCondition.DEGRADED,
        message="Service rpc is degraded",
        service="rpc",
        timestamp=created,
    )

    body = alert_to_dict(alert, now=created + timedelta(seconds=2))

    assert body["age"] == 2000
    assert body["severity"] == "low"
    assert body["resolvedAt"] is None


def test_start_time():
    last_check = datetime(2025, 1, 1, 12, 0, 10, tzinfo=timezone.utc)
    health = SystemHealth(
        overall=HealthStatus.HEALTHY,
        last_check=last_check,
        uptime=10_000,
        health_score=100,
        services=[],
    )

    assert start_time(health) == "2025-01-01T12:00:00+00:00"
