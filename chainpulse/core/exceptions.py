"""Custom exception hierarchy for the health monitor."""

from typing import Any, Dict, Optional


class MonitorError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize the error with message and metadata."""
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}


class NotFoundError(MonitorError):
    """404-level errors for missing resources."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize not found error with 404 status."""
        super().__init__(message, 404, error_code, details)


class UnknownServiceError(NotFoundError):
    """Service name that no probe reports under."""

    def __init__(self, service: str, known: list[str]) -> None:
        """Initialize with the requested and known service names."""
        super().__init__(
            f"Service '{service}' is not monitored",
            "UNKNOWN_SERVICE",
            {"service": service, "known_services": known},
        )


class ServiceError(MonitorError):
    """500-level server errors for monitor bugs."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize service error with 500-level status."""
        super().__init__(message, 500, error_code, details)


class ServiceUnavailableError(MonitorError):
    """503 errors while the monitor is not running."""

    def __init__(
        self,
        message: str = "Health monitor is not running",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize with 503 status."""
        super().__init__(message, 503, "MONITOR_UNAVAILABLE", details)


class ConfigurationError(MonitorError):
    """Invalid or missing settings; fatal at startup."""

    def __init__(
        self,
        message: str = "Monitor configuration is invalid",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize configuration error."""
        super().__init__(
            message=message,
            status_code=503,
            error_code="CONFIG_ERROR",
            details=details,
        )


class ProbeFailure(Exception):
    """Raised inside a probe body for a reachable but failing dependency.

    Never escapes ``BaseProbe.probe``; the message becomes the result error.
    """
