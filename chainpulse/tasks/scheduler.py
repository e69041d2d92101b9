"""Background probe scheduling."""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from chainpulse.core.health.aggregator import HealthAggregator

logger = logging.getLogger(__name__)


class ProbeScheduler:
    """Fires a health check cycle every ``interval`` seconds until stopped."""

    def __init__(self, aggregator: "HealthAggregator", interval: float) -> None:
        self.aggregator = aggregator
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._stopping: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer loop on the running event loop."""
        if self.running:
            logger.warning("Probe scheduler already running")
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(
            f"Probe scheduler started with {self.interval:g}s interval",
            extra={"services": self.aggregator.services},
        )

    async def stop(self, grace: Optional[float] = None) -> None:
        """
        Stop ticking; wait up to ``grace`` seconds for a running cycle.

        The timer is cancelled; the running cycle is not, so probe
        bookkeeping is never interrupted halfway.
        """
        task, self._task = self._task, None
        if task is not None:
            if self._stopping is not None:
                self._stopping.set()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        # A cycle may be running without the timer (on-demand checks)
        await self.aggregator.wait_for_inflight(timeout=grace)
        if task is None:
            return
        logger.info(
            "Probe scheduler stopped",
            extra={
                "cycles": self.aggregator.cycle_count,
                "skipped_cycles": self.aggregator.skipped_cycles,
            },
        )

    async def _run(self) -> None:
        assert self._stopping is not None
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                self.aggregator.try_start_cycle()
            except Exception as e:
                logger.error(f"Failed to start health check cycle: {e}")
