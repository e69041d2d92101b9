"""JSON-RPC client for the monitored chain node."""

import itertools
import logging
from typing import Any, List, Optional

from chainpulse.core.exceptions import ProbeFailure
from chainpulse.services.http_client import InstrumentedClient

logger = logging.getLogger(__name__)


class RpcClient:
    """Minimal EVM JSON-RPC client over an InstrumentedClient."""

    def __init__(self, http: InstrumentedClient) -> None:
        self.http = http
        self._ids = itertools.count(1)

    async def call(
        self, method: str, params: Optional[List[Any]] = None, retries: Optional[int] = None
    ) -> Any:
        """
        Issue one JSON-RPC call.

        Returns:
            The ``result`` member of the response

        Raises:
            ProbeFailure: On non-200 status, malformed body or RPC error object
            httpx.HTTPError: On transport failure
        """
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        response = await self.http.post("", json=payload, retries=retries)
        if response.status_code != 200:
            raise ProbeFailure(f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            raise ProbeFailure("invalid JSON-RPC response body")

        if not isinstance(body, dict):
            raise ProbeFailure("invalid JSON-RPC response body")
        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProbeFailure(f"rpc error: {message}")
        if "result" not in body:
            raise ProbeFailure("JSON-RPC response has no result")
        return body["result"]

    async def block_number(self, retries: Optional[int] = None) -> int:
        """Return the latest block number."""
        result = await self.call("eth_blockNumber", retries=retries)
        try:
            return int(result, 16)
        except (TypeError, ValueError):
            raise ProbeFailure(f"unexpected eth_blockNumber result: {result!r}")

    async def close(self) -> None:
        await self.http.close()
