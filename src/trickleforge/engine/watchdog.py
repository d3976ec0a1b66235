"""Countdown watchdog bounding the wall-clock time of a whole run."""

from __future__ import annotations

import time
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from trickleforge._internal.logging import get_logger
from trickleforge.engine.pacing import pause

if TYPE_CHECKING:
    import asyncio

logger = get_logger("engine.watchdog")


class CountdownWatchdog:
    """Sets the shared stop event once the countdown deadline has passed.

    The deadline is fixed when the watchdog is created and never moves.
    Workers are not asked to finish anything: the pool cancels them as soon
    as the stop event fires.

    Attributes:
        deadline: ``time.monotonic()`` value at which the run must end.
        end_time: Wall-clock equivalent of ``deadline`` for display.
    """

    def __init__(
        self,
        countdown: float,
        stop_event: asyncio.Event,
        *,
        interval: float = 1.0,
    ) -> None:
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)

        self._stop_event = stop_event
        self._interval = interval
        self.deadline = time.monotonic() + countdown
        self.end_time = datetime.now() + timedelta(seconds=countdown)
        self._expired = False

    @property
    def expired(self) -> bool:
        """Return True once the watchdog has fired."""
        return self._expired

    @property
    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self.deadline - time.monotonic())

    async def run(self) -> bool:
        """Poll every ``interval`` seconds until the deadline or a stop.

        Returns:
            True if the countdown expired, False if something else set the
            stop event first.
        """
        logger.info("Countdown running, end time %s", self.end_time.isoformat(timespec="seconds"))
        while True:
            if not await pause(self._interval, self._stop_event):
                return False
            if time.monotonic() >= self.deadline:
                self._expired = True
                logger.info("Countdown expired. Shutting down...")
                self._stop_event.set()
                return True
