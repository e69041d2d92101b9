"""Provider rate-limit quota tracking."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from chainpulse.models.health import RateLimitInfo

logger = logging.getLogger(__name__)

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"
DEFAULT_RESET_WINDOW = timedelta(seconds=60)
LOW_REMAINING_THRESHOLD = 10


class RateLimitTracker:
    """Stores the last quota a dependency reported.

    Last observation wins: the provider is authoritative about its own
    window, so nothing is smoothed or kept.
    """

    def __init__(self) -> None:
        self._info: Optional[RateLimitInfo] = None
        self._lock = threading.Lock()

    def observe(self, remaining: int, reset_at: datetime) -> None:
        """Replace the stored quota."""
        if reset_at.tzinfo is None:
            reset_at = reset_at.replace(tzinfo=timezone.utc)
        info = RateLimitInfo(remaining=max(0, int(remaining)), reset_at=reset_at)
        with self._lock:
            self._info = info

        if info.remaining <= LOW_REMAINING_THRESHOLD:
            logger.warning(
                "Rate limit nearly exhausted",
                extra={
                    "remaining": info.remaining,
                    "reset_at": info.reset_at.isoformat(),
                },
            )

    def observe_headers(self, headers: Mapping[str, str]) -> bool:
        """
        Update from ``x-ratelimit-*`` response headers.

        Args:
            headers: Response headers (case-insensitive mapping expected)

        Returns:
            True if a quota was recorded, False if the headers carried none
        """
        remaining = headers.get(REMAINING_HEADER)
        if remaining is None:
            return False

        try:
            remaining_value = int(remaining)
            reset = headers.get(RESET_HEADER)
            if reset:
                reset_at = datetime.fromtimestamp(int(reset), tz=timezone.utc)
            else:
                reset_at = datetime.now(timezone.utc) + DEFAULT_RESET_WINDOW
        except (TypeError, ValueError, OverflowError, OSError):
            logger.debug(
                "Ignoring malformed rate limit headers",
                extra={"remaining": remaining, "reset": headers.get(RESET_HEADER)},
            )
            return False

        self.observe(remaining_value, reset_at)
        return True

    def get_info(self) -> Optional[RateLimitInfo]:
        """Return the last observed quota, if any."""
        with self._lock:
            return self._info

    def is_rate_limited(self, now: Optional[datetime] = None) -> bool:
        """True while the quota is spent and the window has not reset."""
        info = self.get_info()
        if info is None:
            return False
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return info.remaining <= 0 and now < info.reset_at

    def to_response(self) -> Optional[dict]:
        """Render for the HTTP layer."""
        info = self.get_info()
        if info is None:
            return None
        return {
            "remaining": info.remaining,
            "reset": info.reset_at.isoformat(),
            "isLimited": self.is_rate_limited(),
        }
