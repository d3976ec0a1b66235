"""Interruptible pauses shared by the writer, worker and watchdog."""

from __future__ import annotations

import asyncio
import contextlib


async def pause(seconds: float, stop_event: asyncio.Event | None = None) -> bool:
    """Sleep for ``seconds`` unless the stop event fires first.

    Args:
        seconds: Time to sleep. Non-positive values only yield control.
        stop_event: Optional event that cuts the pause short.

    Returns:
        True if the full pause elapsed, False if the stop event was set.
    """
    if stop_event is None:
        await asyncio.sleep(max(seconds, 0.0))
        return True

    if stop_event.is_set():
        return False

    if seconds <= 0:
        await asyncio.sleep(0)
        return not stop_event.is_set()

    with contextlib.suppress(TimeoutError):
        await asyncio.wait_for(stop_event.wait(), timeout=seconds)
    return not stop_event.is_set()
