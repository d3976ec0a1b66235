"""Worker pool: N concurrent trickle workers under one countdown."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING

from trickleforge._internal.config import TrickleForgeConfig
from trickleforge._internal.errors import ConfigError, EngineError
from trickleforge._internal.logging import get_logger
from trickleforge.engine.connector import open_stream
from trickleforge.engine.watchdog import CountdownWatchdog
from trickleforge.engine.worker import TrickleWorker
from trickleforge.request.configuration import TrickleMode

if TYPE_CHECKING:
    from trickleforge._internal.types import OutputCallback
    from trickleforge.engine.connector import Connector
    from trickleforge.engine.worker import WorkerStats
    from trickleforge.request.configuration import Configuration

logger = get_logger("engine.pool")


class RunOutcome(Enum):
    """How a pool run ended."""

    COMPLETED = "completed"
    COUNTDOWN_EXPIRED = "countdown_expired"
    STOPPED = "stopped"


class WorkerPool:
    """Launches ``num_workers`` workers concurrently and waits for them.

    Workers share only the immutable configuration, the stop event and the
    parallelism gate. The gate is an ``asyncio.Semaphore`` held around each
    single-byte write. Pending connects and drains wait on the network
    without a permit, so a slow accept never stalls connected workers.

    The run ends when every worker has used all of its attempts, or when
    the countdown watchdog (or :meth:`stop`) sets the stop event. In the
    latter case remaining workers are cancelled outright; their only
    cleanup is closing their socket.

    Attributes:
        num_workers: Number of workers launched by :meth:`run`.
    """

    def __init__(
        self,
        config: Configuration,
        num_workers: int,
        *,
        settings: TrickleForgeConfig | None = None,
        connector: Connector = open_stream,
        on_output: OutputCallback | None = None,
    ) -> None:
        """Initialize the pool.

        Args:
            config: Shared run configuration.
            num_workers: Number of concurrent workers (>= 1).
            settings: Engine tuning settings. Defaults to built-in values.
            connector: Coroutine function opening a stream for a destination.
            on_output: Receives the diagnostic worker's text output.

        Raises:
            ConfigError: If ``num_workers`` is less than 1.
            EngineError: If the configured mode is not implemented.
        """
        if num_workers < 1:
            msg = f"num_workers must be >= 1, got: {num_workers}"
            raise ConfigError(msg)

        if config.mode is not TrickleMode.HTTP_BODY:
            msg = f"Test mode {config.mode.name} is not implemented"
            raise EngineError(msg)

        self.num_workers = num_workers
        self._config = config
        self._settings = settings or TrickleForgeConfig()
        self._connector = connector
        self._on_output = on_output
        self._stop_event: asyncio.Event | None = None
        self._stop_requested = False
        self._workers: list[TrickleWorker] = []

    @property
    def workers(self) -> list[TrickleWorker]:
        """Return the workers of the current or last run."""
        return list(self._workers)

    def stop(self) -> None:
        """Request an early stop. Safe to call from a signal handler."""
        self._stop_requested = True
        if self._stop_event is not None:
            logger.info("Stop requested, cancelling workers")
            self._stop_event.set()

    async def run(self) -> RunOutcome:
        """Run all workers under the countdown.

        Returns:
            How the run ended.
        """
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        if self._stop_requested:
            stop_event.set()

        gate = asyncio.Semaphore(self._settings.max_parallelism)
        watchdog = CountdownWatchdog(
            self._config.countdown,
            stop_event,
            interval=self._settings.watchdog_interval,
        )

        self._workers = [
            TrickleWorker(
                worker_id,
                self._config,
                settings=self._settings,
                stop_event=stop_event,
                gate=gate,
                connector=self._connector,
                on_output=self._on_output,
            )
            for worker_id in range(self.num_workers)
        ]

        logger.info(
            "Starting %d workers against %s:%d (parallelism=%d, countdown=%.1fs)",
            self.num_workers,
            self._config.destination.host,
            self._config.destination.port,
            self._settings.max_parallelism,
            self._config.countdown,
        )

        worker_tasks = [
            asyncio.create_task(worker.run(), name=f"trickle-worker-{worker.worker_id}")
            for worker in self._workers
        ]
        watchdog_task = asyncio.create_task(watchdog.run(), name="trickle-watchdog")
        stop_task = asyncio.create_task(stop_event.wait(), name="trickle-stop")
        all_workers = asyncio.ensure_future(asyncio.wait(worker_tasks))

        try:
            done, _pending = await asyncio.wait(
                {all_workers, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
            completed = all_workers in done
        finally:
            for task in worker_tasks:
                task.cancel()
            all_workers.cancel()
            stop_event.set()
            await asyncio.gather(
                *worker_tasks, all_workers, watchdog_task, stop_task, return_exceptions=True
            )

        self._raise_worker_errors(worker_tasks)

        if watchdog.expired:
            outcome = RunOutcome.COUNTDOWN_EXPIRED
        elif completed and not self._stop_requested:
            outcome = RunOutcome.COMPLETED
        else:
            outcome = RunOutcome.STOPPED

        logger.info("Pool finished: %s", outcome.value)
        return outcome

    def _raise_worker_errors(self, tasks: list[asyncio.Task[WorkerStats]]) -> None:
        for task in tasks:
            if task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                msg = f"Worker task {task.get_name()} crashed"
                raise EngineError(msg) from exc
