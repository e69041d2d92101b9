"""REST client for the explorer/data API."""

import logging
from typing import Optional

from chainpulse.core.exceptions import ProbeFailure
from chainpulse.services.http_client import InstrumentedClient

logger = logging.getLogger(__name__)

# The public data API answers unauthenticated requests with this body; the
# endpoint is up even though the request is rejected.
TOKEN_MISSING_MESSAGE = "Id token not available."


class ExplorerClient:
    """Explorer API client used for liveness checks."""

    def __init__(self, http: InstrumentedClient, health_path: str) -> None:
        self.http = http
        self.health_path = health_path

    async def ping(self, retries: Optional[int] = None) -> int:
        """
        Request the health path and judge the answer.

        Returns:
            HTTP status code of an answer that counts as alive

        Raises:
            ProbeFailure: If the endpoint answered with a failing status
            httpx.HTTPError: On transport failure
        """
        response = await self.http.get(self.health_path, retries=retries)
        if response.status_code == 200:
            return 200
        if response.status_code == 401 and self._token_missing(response):
            return 401
        raise ProbeFailure(f"HTTP {response.status_code}")

    @staticmethod
    def _token_missing(response) -> bool:
        try:
            body = response.json()
        except ValueError:
            return False
        return isinstance(body, dict) and body.get("msg") == TOKEN_MISSING_MESSAGE

    async def close(self) -> None:
        await self.http.close()
