"""One trickle client: connect, trickle, drain, repeat."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from trickleforge._internal.config import MAX_ATTEMPTS, TrickleForgeConfig
from trickleforge._internal.errors import ConnectFailure
from trickleforge._internal.logging import get_worker_logger
from trickleforge.engine.connector import open_stream
from trickleforge.engine.drainer import drain
from trickleforge.engine.pacing import pause
from trickleforge.engine.writer import trickle
from trickleforge.request.assembler import assemble_request

if TYPE_CHECKING:
    from trickleforge._internal.errors import WriteFailure
    from trickleforge._internal.types import OutputCallback
    from trickleforge.engine.connector import Connector
    from trickleforge.engine.writer import TrickleResult
    from trickleforge.request.configuration import Configuration

DIAGNOSTIC_WORKER_ID = 0


class WorkerState(Enum):
    """Where a worker is within its current attempt."""

    CREATED = auto()
    ASSEMBLING = auto()
    CONNECTING = auto()
    TRICKLING_HEADERS = auto()
    TRICKLING_BODY = auto()
    DRAINING = auto()
    DONE = auto()


@dataclass
class WorkerStats:
    """Per-worker counters. Informational only; nothing acts on them."""

    attempts: int = 0
    connect_failures: int = 0
    write_failures: int = 0
    read_failures: int = 0
    bytes_sent: int = 0


class TrickleWorker:
    """Drives one logical slow client through up to ``MAX_ATTEMPTS`` attempts.

    Every attempt assembles the request, opens a fresh connection, trickles
    the head and (for POST/PUT) the body, then drains the response. Attempts
    do not stop after a success: the worker always uses all of them unless
    the stop event is set.

    State machine per attempt:
        ASSEMBLING -> CONNECTING -> TRICKLING_HEADERS -> [TRICKLING_BODY]
        -> DRAINING, then DONE after the last attempt.

    Failure handling:
        - connect failure: back off, skip to the next attempt;
        - write failure: back off, abort that sequence, keep going;
        - read failure: log only.

    Attributes:
        worker_id: Identity of the worker. Worker 0 is the diagnostic worker.
        stats: Counters for this worker.
    """

    def __init__(
        self,
        worker_id: int,
        config: Configuration,
        *,
        settings: TrickleForgeConfig | None = None,
        stop_event: asyncio.Event | None = None,
        gate: asyncio.Semaphore | None = None,
        connector: Connector = open_stream,
        on_output: OutputCallback | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            worker_id: Identity of this worker.
            config: Shared, read-only run configuration.
            settings: Engine tuning settings. Defaults to built-in values.
            stop_event: Shared event that ends the worker at its next pause.
            gate: Parallelism ceiling shared by all workers.
            connector: Coroutine function opening a stream for a destination.
            on_output: Receives diagnostic text. Only used by worker 0.
        """
        self.worker_id = worker_id
        self._config = config
        self._settings = settings or TrickleForgeConfig()
        self._stop_event = stop_event or asyncio.Event()
        self._gate = gate
        self._connector = connector
        self._on_output = on_output if worker_id == DIAGNOSTIC_WORKER_ID else None
        self._state = WorkerState.CREATED
        self._log = get_worker_logger("engine.worker", worker_id)
        self.stats = WorkerStats()

    @property
    def state(self) -> WorkerState:
        """Return the current state."""
        return self._state

    @property
    def is_diagnostic(self) -> bool:
        return self.worker_id == DIAGNOSTIC_WORKER_ID

    async def run(self) -> WorkerStats:
        """Run every attempt, then return the counters."""
        if self.is_diagnostic:
            self._log.info("Diagnostic worker - verbose information")
            self._log.info("Connecting...")

        try:
            for attempt in range(MAX_ATTEMPTS):
                if self._stop_event.is_set():
                    break
                await self._run_attempt(attempt)
        finally:
            self._state = WorkerState.DONE

        self._log.debug(
            "Finished: attempts=%d, bytes=%d, connect_failures=%d, write_failures=%d",
            self.stats.attempts,
            self.stats.bytes_sent,
            self.stats.connect_failures,
            self.stats.write_failures,
        )
        return self.stats

    async def _run_attempt(self, attempt: int) -> None:
        self._state = WorkerState.ASSEMBLING
        request = assemble_request(self._config)
        self._emit(f"Buffer to send:\n{request.head.decode('utf-8', errors='replace')}\n")

        self._state = WorkerState.CONNECTING
        self.stats.attempts += 1
        try:
            reader, writer = await self._connector(
                self._config.destination,
                timeout=self._settings.connect_timeout,
            )
        except ConnectFailure as exc:
            self.stats.connect_failures += 1
            if self.is_diagnostic:
                self._log.warning(
                    "%s. Retry %d of %d. Waiting %.0f seconds for retry...",
                    exc,
                    attempt,
                    MAX_ATTEMPTS,
                    self._settings.backoff_seconds,
                )
            await pause(self._settings.backoff_seconds, self._stop_event)
            return

        try:
            self._state = WorkerState.TRICKLING_HEADERS
            result = await self._trickle(writer, request.head, attempt)

            if request.body is not None and not result.interrupted:
                self._state = WorkerState.TRICKLING_BODY
                result = await self._trickle(writer, request.body, attempt)

            if result.interrupted or self._stop_event.is_set():
                return

            self._state = WorkerState.DRAINING
            failure = await drain(
                reader,
                on_line=self._emit_line if self._on_output is not None else None,
            )
            if failure is not None:
                self.stats.read_failures += 1
                self._log.warning(
                    "%s (%s). No retry for reading response.",
                    failure,
                    self._config.destination.host,
                )
            self._emit("Done.\n")
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _trickle(
        self,
        writer: asyncio.StreamWriter,
        data: bytes,
        attempt: int,
    ) -> TrickleResult:
        def _on_error(failure: WriteFailure) -> None:
            self.stats.write_failures += 1
            self._log.warning(
                "Error writing bytes to %s: %s. Retry %d of %d. Waiting %.0f seconds for retry...",
                self._config.destination.host,
                failure,
                attempt,
                MAX_ATTEMPTS,
                self._settings.backoff_seconds,
            )

        result = await trickle(
            writer,
            data,
            self._config.byte_delay,
            backoff=self._settings.backoff_seconds,
            stop_event=self._stop_event,
            gate=self._gate,
            on_byte=self._emit_byte if self._on_output is not None else None,
            on_error=_on_error,
        )
        self.stats.bytes_sent += result.bytes_sent
        return result

    def _emit(self, text: str) -> None:
        if self._on_output is not None:
            self._on_output(text)

    def _emit_byte(self, byte: bytes) -> None:
        self._emit(byte.decode("latin-1"))

    def _emit_line(self, line: str) -> None:
        self._emit(f"{line}\n")
