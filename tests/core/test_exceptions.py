"""Tests for the exception hierarchy."""

import pytest

from chainpulse.core.exceptions import (
    ConfigurationError,
    MonitorError,
    NotFoundError,
    ProbeFailure,
    ServiceError,
    ServiceUnavailableError,
    UnknownServiceError,
)


class TestExceptions:
    """Test status codes and metadata."""

    def test_base_defaults(self):
        exc = MonitorError("Something broke")

        assert exc.message == "Something broke"
        assert exc.status_code == 500
        assert exc.error_code == "MonitorError"
        assert exc.details == {}

    @pytest.mark.parametrize(
        "exc, status_code, error_code",
        [
            (NotFoundError("missing"), 404, "NotFoundError"),
            (UnknownServiceError("db", ["rpc"]), 404, "UNKNOWN_SERVICE"),
            (ServiceError("bug"), 500, "ServiceError"),
            (ServiceUnavailableError(), 503, "MONITOR_UNAVAILABLE"),
            (ConfigurationError(), 503, "CONFIG_ERROR"),
        ],
    )
    def test_status_codes(self, exc, status_code, error_code):
        assert isinstance(exc, MonitorError)
        assert exc.status_code == status_code
        assert exc.error_code == error_code

    def test_unknown_service_details(self):
        exc = UnknownServiceError("db", ["rpc", "explorer"])

        assert "db" in exc.message
        assert exc.details == {"service": "db", "known_services": ["rpc", "explorer"]}

    def test_probe_failure_is_not_a_monitor_error(self):
        assert not issubclass(ProbeFailure, MonitorError)
