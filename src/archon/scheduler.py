"""
Periodic health-check scheduler.

Feeds a CheckAllNodesHealth action into the event loop's inbound queue
every health_check_interval_seconds. The interval is re-read on every
cycle, so a reloaded configuration takes effect without a restart; an
interval of 0 disables the ticker until it becomes positive again.
"""

import asyncio
from typing import Callable, Optional

from .actions import CheckAllNodesHealth
from .audit_logger import AuditLogger


class HealthCheckScheduler:
    """Interval ticker that enqueues node health checks."""

    COMPONENT = "HealthCheckScheduler"

    def __init__(
        self,
        outbox: asyncio.Queue,
        interval_source: Callable[[], int],
        logger: Optional[AuditLogger] = None,
        idle_poll_seconds: float = 5.0,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            outbox: Inbound queue of the event loop
            interval_source: Returns the current interval in seconds
            logger: Optional audit logger
            idle_poll_seconds: How often to re-check a disabled interval
        """
        self._outbox = outbox
        self._interval_source = interval_source
        self._logger = logger
        self._idle_poll_seconds = idle_poll_seconds
        self._running = False
        self._ticks = 0

    @property
    def ticks(self) -> int:
        """Number of health checks enqueued so far."""
        return self._ticks

    async def run(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """
        Run the ticker until stopped or cancelled.

        Args:
            stop_event: Optional event to signal the scheduler to stop
        """
        self._running = True

        while self._running:
            interval = self._interval_source()
            if interval <= 0:
                await asyncio.sleep(self._idle_poll_seconds)
                continue

            await asyncio.sleep(interval)

            # Check if we should stop
            if not self._running or (stop_event is not None and stop_event.is_set()):
                break

            self._outbox.put_nowait(CheckAllNodesHealth())
            self._ticks += 1
            if self._logger:
                self._logger.debug(
                    self.COMPONENT,
                    "Periodic health check enqueued",
                    {"interval_seconds": interval, "tick": self._ticks},
                )

        self._running = False

    def stop(self) -> None:
        """Signal the scheduler to stop."""
        self._running = False

    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._running
