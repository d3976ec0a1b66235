"""Synchronous entry point that runs a worker pool on its own event loop."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from typing import TYPE_CHECKING

from trickleforge._internal.errors import EngineError, TrickleForgeError
from trickleforge._internal.logging import get_logger, setup_logging
from trickleforge.engine.connector import open_stream
from trickleforge.engine.pool import RunOutcome, WorkerPool

if TYPE_CHECKING:
    from trickleforge._internal.config import TrickleForgeConfig
    from trickleforge._internal.types import OutputCallback
    from trickleforge.engine.connector import Connector
    from trickleforge.request.configuration import Configuration

logger = get_logger("engine.runner")


def _install_uvloop() -> None:
    """Install uvloop as the default event loop policy if available.

    Falls back silently to the default asyncio event loop on Windows
    or if uvloop is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def run_trickle(
    config: Configuration,
    num_workers: int,
    *,
    settings: TrickleForgeConfig | None = None,
    connector: Connector = open_stream,
    on_output: OutputCallback | None = None,
    log_level: int = logging.INFO,
    json_logs: bool = False,
) -> RunOutcome:
    """Run a trickle test to completion in the current process.

    Blocks until every worker is done, the countdown expires, or SIGINT /
    SIGTERM stops the pool.

    Args:
        config: Finalized run configuration.
        num_workers: Number of concurrent workers.
        settings: Engine tuning settings. Defaults to built-in values.
        connector: Coroutine function opening a stream for a destination.
        on_output: Receives the diagnostic worker's text output.
        log_level: Logging level (default: logging.INFO).
        json_logs: Emit JSON log records.

    Returns:
        How the run ended.

    Raises:
        ConfigError: If the pool arguments are invalid.
        EngineError: If the run fails unexpectedly.
    """
    _install_uvloop()
    setup_logging(level=log_level, json_format=json_logs)

    pool = WorkerPool(
        config,
        num_workers,
        settings=settings,
        connector=connector,
        on_output=on_output,
    )

    start = time.monotonic()
    try:
        outcome = asyncio.run(_run_pool(pool))
    except TrickleForgeError:
        raise
    except Exception as exc:
        logger.exception("Trickle run failed")
        raise EngineError("Trickle run failed") from exc

    logger.info("Run finished after %.1fs: %s", time.monotonic() - start, outcome.value)
    return outcome


async def _run_pool(pool: WorkerPool) -> RunOutcome:
    """Run ``pool`` with signal handlers that stop it gracefully."""
    _install_signal_handlers(pool)
    try:
        return await pool.run()
    finally:
        _remove_signal_handlers()


def _install_signal_handlers(pool: WorkerPool) -> None:
    loop = asyncio.get_running_loop()

    def _signal_handler() -> None:
        logger.info("Signal received, stopping workers")
        pool.stop()

    if sys.platform != "win32":
        loop.add_signal_handler(signal.SIGINT, _signal_handler)
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)
    else:
        # Windows doesn't support add_signal_handler
        signal.signal(signal.SIGINT, lambda _s, _f: _signal_handler())
        signal.signal(signal.SIGTERM, lambda _s, _f: _signal_handler())


def _remove_signal_handlers() -> None:
    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    else:
        signal.signal(signal.SIGINT, signal.default_int_handler)
        signal.signal(signal.SIGTERM, signal.SIG_DFL)
