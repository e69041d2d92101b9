"""FastAPI dependency providers."""

from fastapi import Request

from chainpulse.core.exceptions import ServiceUnavailableError
from chainpulse.core.health import HealthService


def get_health_service(request: Request) -> HealthService:
    """Return the monitor attached to the application.

    Raises:
        ServiceUnavailableError: If the app was started without a monitor
    """
    service = getattr(request.app.state, "health_service", None)
    if service is None:
        raise ServiceUnavailableError()
    return service
