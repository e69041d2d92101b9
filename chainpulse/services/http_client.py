"""Instrumented HTTP client for monitored dependencies."""

import asyncio
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx

from chainpulse.services.metrics import MetricsRecorder
from chainpulse.services.rate_limiter import RateLimitTracker

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429}
MAX_RETRY_DELAY = 30.0


class InstrumentedClient:
    """httpx client that reports every outbound call to a MetricsRecorder.

    Each attempt (including retries) is recorded as one request. Rate-limit
    headers are forwarded to the tracker when one is attached.
    """

    def __init__(
        self,
        service: str,
        base_url: str,
        recorder: MetricsRecorder,
        rate_limits: Optional[RateLimitTracker] = None,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.service = service
        self.base_url = base_url
        self.recorder = recorder
        self.rate_limits = rate_limits
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.headers = {"Accept": "application/json", **(headers or {})}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self.headers,
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client connections."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        url: str,
        retries: Optional[int] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send a request, retrying transport errors and retryable statuses.

        Args:
            method: HTTP method
            url: Path relative to ``base_url`` or absolute URL
            retries: Override ``max_retries`` for this call (probes use 0)
            **kwargs: Passed through to ``httpx.AsyncClient.request``

        Returns:
            The final response (status is not raised on)

        Raises:
            httpx.HTTPError: If the last attempt failed at the transport level
        """
        if self.rate_limits is not None and self.rate_limits.is_rate_limited():
            logger.warning(
                "Dependency is rate limited, sending anyway",
                extra={"service": self.service, "url": url},
            )

        max_retries = self.max_retries if retries is None else retries
        attempt = 0
        while True:
            client = await self._get_client()
            start = time.perf_counter()
            try:
                response = await client.request(method, url, **kwargs)
            except asyncio.CancelledError:
                # Abandoned by a caller timeout; still a failed call.
                self._record(start, success=False)
                raise
            except httpx.HTTPError as e:
                self._record(start, success=False)
                if attempt < max_retries and not isinstance(
                    e, httpx.UnsupportedProtocol
                ):
                    attempt += 1
                    logger.warning(
                        f"{self.service} request failed (attempt {attempt}): {e}",
                        extra={"service": self.service, "url": url},
                    )
                    await asyncio.sleep(self._backoff(attempt))
                    continue
                logger.error(
                    f"{self.service} request failed after {attempt + 1} attempts: {e}",
                    extra={"service": self.service, "url": url},
                )
                raise

            self._record(start, success=response.status_code < 400)
            self._observe_rate_limit(response)

            if self._should_retry(response) and attempt < max_retries:
                attempt += 1
                logger.warning(
                    f"{self.service} returned {response.status_code} "
                    f"(attempt {attempt})",
                    extra={"service": self.service, "url": url},
                )
                await asyncio.sleep(self._backoff(attempt))
                continue

            return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    @staticmethod
    def _should_retry(response: httpx.Response) -> bool:
        return (
            response.status_code >= 500
            or response.status_code in RETRYABLE_STATUS_CODES
        )

    def _backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter, capped."""
        delay = self.retry_delay * 2 ** (attempt - 1)
        jitter = random.uniform(0, self.retry_delay)
        return min(delay + jitter, MAX_RETRY_DELAY)

    def _record(self, start: float, success: bool) -> None:
        latency_ms = (time.perf_counter() - start) * 1000
        try:
            if success:
                self.recorder.record_success(self.service, latency_ms)
            else:
                self.recorder.record_error(self.service, latency_ms)
        except Exception:
            logger.exception(
                "Failed to record call metrics", extra={"service": self.service}
            )

    def _observe_rate_limit(self, response: httpx.Response) -> None:
        if self.rate_limits is None:
            return
        try:
            self.rate_limits.observe_headers(response.headers)
        except Exception:
            logger.exception(
                "Failed to record rate limit", extra={"service": self.service}
            )
